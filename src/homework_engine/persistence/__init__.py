"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from homework_engine.core.config import AppSettings
from homework_engine.persistence.dynamodb_backend import DynamoDBHomeworkStore
from homework_engine.persistence.redis_backend import RedisLockBackend
from homework_engine.persistence.s3_backend import S3BlobStore


def create_persistence(settings: AppSettings | None = None):
    """Create wired-up persistence backends from application settings.

    Returns:
        Tuple of (store, blob_store, lock_backend); lock_backend is None
        unless Redis is enabled.
    """
    if settings is None:
        settings = AppSettings()

    store = DynamoDBHomeworkStore(
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
    )

    blob_store = S3BlobStore(
        bucket=settings.s3.bucket,
        region=settings.s3.region,
        endpoint_url=settings.s3.endpoint_url,
        key_prefix=settings.s3.key_prefix,
    )

    lock_backend = None
    if settings.redis.enabled:
        lock_backend = RedisLockBackend(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            blocking_timeout=settings.redis.lock_blocking_timeout_seconds,
            retry_interval=settings.redis.lock_retry_interval_seconds,
        )

    return store, blob_store, lock_backend
