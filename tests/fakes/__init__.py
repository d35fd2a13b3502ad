"""Shared test doubles: re-export memory backends plus failure-injecting fakes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from homework_engine.core.exceptions import BlobStoreError
from homework_engine.persistence.memory_backend import (
    MemoryBlobStore,
    MemoryHomeworkStore,
    MemoryLockBackend,
)

T0 = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; call it to read, advance() to move forward."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FailingBlobStore(MemoryBlobStore):
    """MemoryBlobStore whose next ``fail_times`` puts raise BlobStoreError."""

    def __init__(self, fail_times: int = 1) -> None:
        super().__init__()
        self.fail_times = fail_times
        self.put_attempts = 0

    def put(self, tenant_id, file_id, data, mime_type, size_bytes, checksum=None) -> None:
        self.put_attempts += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise BlobStoreError("simulated object storage outage")
        super().put(tenant_id, file_id, data, mime_type, size_bytes, checksum)


__all__ = [
    "T0",
    "FailingBlobStore",
    "FakeClock",
    "MemoryBlobStore",
    "MemoryHomeworkStore",
    "MemoryLockBackend",
]
