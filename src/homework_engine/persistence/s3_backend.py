"""S3 blob storage backend implementing IBlobStore."""

from __future__ import annotations

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from homework_engine.core.exceptions import BlobStoreError
from homework_engine.models.results import BlobPayload


class S3BlobStore:
    """Production IBlobStore backed by S3, one key per (tenant, file id)."""

    def __init__(self, bucket: str, region: str = "us-east-1",
                 endpoint_url: str | None = None, key_prefix: str = "tenants") -> None:
        self._bucket = bucket
        self._region = region
        self._endpoint_url = endpoint_url
        self._key_prefix = key_prefix.strip("/")
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("s3", **kwargs)

    def object_key(self, tenant_id: str, file_id: str) -> str:
        return f"{self._key_prefix}/{tenant_id}/homework/{file_id}"

    def put(
        self,
        tenant_id: str,
        file_id: str,
        data: bytes,
        mime_type: str,
        size_bytes: int,
        checksum: str | None = None,
    ) -> None:
        key = self.object_key(tenant_id, file_id)
        metadata = {"tenant-id": tenant_id, "size-bytes": str(size_bytes)}
        if checksum:
            metadata["checksum-sha256"] = checksum
        try:
            self._client.put_object(
                Bucket=self._bucket, Key=key, Body=data, ContentType=mime_type, Metadata=metadata,
            )
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(f"S3 write failed for {key!r}: {exc}") from exc

    def get(self, tenant_id: str, file_id: str) -> BlobPayload:
        key = self.object_key(tenant_id, file_id)
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
            data = resp["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(f"S3 read failed for {key!r}: {exc}") from exc

        metadata = resp.get("Metadata", {})
        return BlobPayload(
            data=data,
            mime_type=resp.get("ContentType", "application/octet-stream"),
            size_bytes=len(data),
            checksum=metadata.get("checksum-sha256"),
        )
