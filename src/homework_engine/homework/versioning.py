"""Versioned file writes across the metadata store and the blob store.

The metadata row is committed first, then the bytes are written to the blob
store. A failed blob write is compensated inline: the file row is deleted and
the item is restored to its pre-write snapshot before InternalError is raised,
so callers never observe one store ahead of the other. The restore is skipped
when another writer has changed the item since this upload committed.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, Optional

from homework_engine.core.exceptions import (
    ConflictError,
    InternalError,
    LockError,
    NotFoundError,
    WriteConflictError,
)
from homework_engine.core.protocols import IBlobStore, IHomeworkStore, ILockBackend
from homework_engine.homework.status import (
    UploadEffect,
    assert_can_transition_to_submitted,
    resolve_upload_effect,
)
from homework_engine.models.homework import (
    HomeworkFile,
    HomeworkFileSlot,
    HomeworkItem,
    HomeworkStatus,
    ItemSnapshot,
    UploaderRole,
    ValidatedHomeworkFile,
)
from homework_engine.models.results import FileVersionResult

logger = logging.getLogger(__name__)


def version_lock_key(tenant_id: str, item_id: str, slot: HomeworkFileSlot) -> str:
    return f"homework:version:{tenant_id}:{item_id}:{HomeworkFileSlot(slot).value}"


def apply_upload_effect(item: HomeworkItem, effect: UploadEffect, now: datetime) -> HomeworkItem | None:
    """Return the item as it should look after the upload, or None if unchanged."""
    if effect is UploadEffect.MARK_SUBMITTED:
        assert_can_transition_to_submitted(item.status)
        changes = {
            "status": HomeworkStatus.SUBMITTED,
            "submitted_at": now,
            "assigned_at": item.assigned_at or now,
        }
    elif effect is UploadEffect.STAMP_ASSIGNED:
        changes = {"assigned_at": now}
    else:
        return None
    changes.update(updated_at=now, revision=item.revision + 1)
    return item.model_copy(update=changes)


@dataclass
class _CommittedVersion:
    file: HomeworkFile
    snapshot: ItemSnapshot
    item: HomeworkItem
    status_to: HomeworkStatus
    revision: int


class VersionedFileCoordinator:
    """Creates file versions and keeps metadata and bytes consistent."""

    def __init__(
        self,
        *,
        store: IHomeworkStore,
        blob_store: IBlobStore,
        lock_backend: Optional[ILockBackend] = None,
        max_attempts: int = 5,
        lock_ttl: int = 30,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._store = store
        self._blobs = blob_store
        self._locks = lock_backend
        self._max_attempts = max(1, max_attempts)
        self._lock_ttl = lock_ttl
        self._new_id = id_factory

    def create_file_version(
        self,
        tenant_id: str,
        item_id: str,
        slot: HomeworkFileSlot,
        uploader_role: UploaderRole,
        file: ValidatedHomeworkFile,
        *,
        now: datetime,
        uploader_id: str | None = None,
        mark_submitted_on_upload: bool = False,
        lock_when_reviewed: bool = False,
    ) -> FileVersionResult:
        slot = HomeworkFileSlot(slot)
        file_id = self._new_id()

        with self._version_lock(version_lock_key(tenant_id, item_id, slot)):
            committed = self._commit_metadata(
                tenant_id, item_id, slot, UploaderRole(uploader_role), file,
                file_id=file_id,
                now=now,
                uploader_id=uploader_id,
                mark_submitted_on_upload=mark_submitted_on_upload,
                lock_when_reviewed=lock_when_reviewed,
            )

        try:
            self._blobs.put(
                tenant_id, file_id, file.data, file.mime_type, file.size_bytes, file.checksum,
            )
        except Exception as exc:
            logger.warning(
                "Blob write failed for homework file %s (tenant=%s item=%s); compensating: %s",
                file_id, tenant_id, item_id, exc,
            )
            self._compensate(committed)
            raise InternalError(
                "Failed to persist homework file", {"reason": str(exc) or type(exc).__name__},
            ) from exc

        record = committed.file
        logger.info(
            "Stored homework file tenant=%s item=%s slot=%s version=%d status=%s->%s",
            tenant_id, item_id, slot, record.version, committed.snapshot.status,
            committed.status_to,
        )
        return FileVersionResult(
            id=record.id,
            slot=record.slot,
            version=record.version,
            filename=record.filename,
            mime_type=record.mime_type,
            size_bytes=record.size_bytes,
            checksum=record.checksum,
            uploaded_at=record.uploaded_at,
            status_from=committed.snapshot.status,
            status_to=committed.status_to,
            session_id=committed.item.session_id,
            student_id=committed.item.student_id,
        )

    # ---- internals ----

    @contextmanager
    def _version_lock(self, key: str) -> Iterator[None]:
        if self._locks is None:
            yield
            return
        token = self._locks.acquire(key, self._lock_ttl)
        try:
            yield
        finally:
            try:
                self._locks.release(key, token)
            except LockError as exc:
                # the commit is already guarded by the version key and item revision
                logger.warning("Failed to release version lock %s: %s", key, exc)

    def _commit_metadata(
        self,
        tenant_id: str,
        item_id: str,
        slot: HomeworkFileSlot,
        uploader_role: UploaderRole,
        file: ValidatedHomeworkFile,
        *,
        file_id: str,
        now: datetime,
        uploader_id: str | None,
        mark_submitted_on_upload: bool,
        lock_when_reviewed: bool,
    ) -> _CommittedVersion:
        for attempt in range(1, self._max_attempts + 1):
            item = self._store.get_item(tenant_id, item_id)
            if item is None:
                raise NotFoundError("Homework item not found", {"homeworkItemId": item_id})

            if lock_when_reviewed and item.status is HomeworkStatus.REVIEWED:
                raise ConflictError(
                    "Homework is already reviewed", {"homeworkItemId": item_id},
                )

            snapshot = item.snapshot()
            next_version = self._store.latest_file_version(tenant_id, item_id, slot) + 1
            record = HomeworkFile(
                id=file_id,
                tenant_id=tenant_id,
                homework_item_id=item_id,
                slot=slot,
                version=next_version,
                filename=file.filename,
                mime_type=file.mime_type,
                size_bytes=file.size_bytes,
                checksum=file.checksum,
                uploaded_by_role=uploader_role,
                uploaded_by_user_id=uploader_id,
                uploaded_at=now,
            )

            effect = resolve_upload_effect(slot, mark_submitted_on_upload, item.assigned_at is not None)
            updated = apply_upload_effect(item, effect, now)

            try:
                self._store.commit_file_version(record, item.revision, updated)
            except WriteConflictError as exc:
                logger.warning(
                    "Concurrent write on homework item %s slot=%s (attempt %d/%d): %s",
                    item_id, slot, attempt, self._max_attempts, exc,
                )
                continue

            return _CommittedVersion(
                file=record,
                snapshot=snapshot,
                item=item,
                status_to=updated.status if updated is not None else item.status,
                revision=updated.revision if updated is not None else item.revision,
            )

        raise ConflictError(
            "Concurrent uploads to the same homework slot",
            {"homeworkItemId": item_id, "slot": slot.value, "attempts": self._max_attempts},
        )

    def _compensate(self, committed: _CommittedVersion) -> None:
        try:
            restored = self._store.rollback_file_version(
                committed.file, committed.snapshot, committed.revision,
            )
        except Exception as exc:
            logger.exception(
                "Compensation failed for homework file %s (tenant=%s item=%s)",
                committed.file.id, committed.file.tenant_id, committed.file.homework_item_id,
            )
            raise InternalError(
                "Failed to persist homework file",
                {"reason": "COMPENSATION_FAILED", "fileId": committed.file.id},
            ) from exc
        if not restored:
            logger.warning(
                "Homework item %s changed after file %s was committed; kept its newer state",
                committed.file.homework_item_id, committed.file.id,
            )
