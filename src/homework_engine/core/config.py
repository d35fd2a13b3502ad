"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class HomeworkPolicyConfig(BaseSettings):
    """Tenant-agnostic homework workflow policy."""

    model_config = {"env_prefix": "HOMEWORK_POLICY_"}

    require_feedback_file_to_mark_reviewed: bool = False
    allow_legacy_doc_mime: bool = False
    max_file_size_bytes: int = 5 * 1024 * 1024
    max_filename_length: int = 200
    ensure_items_max_rows: int = 500
    version_retry_attempts: int = 5
    lock_ttl_seconds: int = 30


class DynamoDBConfig(BaseSettings):
    """DynamoDB metadata store configuration."""

    model_config = {"env_prefix": "HOMEWORK_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class S3Config(BaseSettings):
    """S3 blob storage configuration."""

    model_config = {"env_prefix": "HOMEWORK_S3_"}

    bucket: str = "homework-files"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    key_prefix: str = "tenants"


class RedisConfig(BaseSettings):
    """Redis advisory lock configuration."""

    model_config = {"env_prefix": "HOMEWORK_REDIS_"}

    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    lock_blocking_timeout_seconds: float = 10.0
    lock_retry_interval_seconds: float = 0.05


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "HOMEWORK_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    homework: HomeworkPolicyConfig = HomeworkPolicyConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    s3: S3Config = S3Config()
    redis: RedisConfig = RedisConfig()
