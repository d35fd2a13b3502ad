"""HomeworkEngine: single entry point wiring stores, policy, and clock."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional, Union

from homework_engine.core.config import AppSettings
from homework_engine.core.protocols import IBlobStore, IHomeworkStore, ILockBackend
from homework_engine.homework import bulk_review, download, lifecycle, sla
from homework_engine.homework.validation import validate_file_payload
from homework_engine.homework.versioning import VersionedFileCoordinator
from homework_engine.models.filters import RosterFilters, SlaFilters
from homework_engine.models.homework import (
    HomeworkFileSlot,
    UploaderRole,
    ValidatedHomeworkFile,
)
from homework_engine.models.results import (
    BulkReviewResult,
    DownloadPayload,
    EnsureItemsResult,
    FileVersionResult,
    HomeworkItemDetail,
    SlaSummary,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HomeworkEngine:
    """Tenant-scoped homework workflow operations.

    Callers are expected to have resolved tenant and actor already; every
    method takes the tenant id explicitly and never reads transport payloads.
    """

    def __init__(
        self,
        *,
        settings: AppSettings,
        store: IHomeworkStore,
        blob_store: IBlobStore,
        lock_backend: Optional[ILockBackend] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._store = store
        self._blobs = blob_store
        self._clock = clock
        self._coordinator = VersionedFileCoordinator(
            store=store,
            blob_store=blob_store,
            lock_backend=lock_backend,
            max_attempts=settings.homework.version_retry_attempts,
            lock_ttl=settings.homework.lock_ttl_seconds,
        )

    # ---- item lifecycle ----

    def ensure_items_for_session_students(
        self,
        tenant_id: str,
        filters: RosterFilters | None = None,
        max_rows: int | None = None,
    ) -> EnsureItemsResult:
        if max_rows is None:
            max_rows = self._settings.homework.ensure_items_max_rows
        return lifecycle.ensure_items_for_session_students(
            self._store,
            tenant_id,
            filters,
            now=self._clock(),
            max_rows=max_rows,
        )

    def get_item_detail(self, tenant_id: str, item_id: str) -> HomeworkItemDetail:
        return lifecycle.get_item_detail(self._store, tenant_id, item_id)

    # ---- uploads ----

    def validate_upload(
        self, filename: str, mime_type: str, size_bytes: int, data: bytes
    ) -> ValidatedHomeworkFile:
        return validate_file_payload(filename, mime_type, size_bytes, data, self._settings.homework)

    def create_file_version(
        self,
        tenant_id: str,
        item_id: str,
        slot: HomeworkFileSlot,
        uploader_role: UploaderRole,
        file: ValidatedHomeworkFile,
        *,
        uploader_id: str | None = None,
        mark_submitted_on_upload: bool = False,
        lock_when_reviewed: bool = False,
    ) -> FileVersionResult:
        return self._coordinator.create_file_version(
            tenant_id,
            item_id,
            slot,
            uploader_role,
            file,
            now=self._clock(),
            uploader_id=uploader_id,
            mark_submitted_on_upload=mark_submitted_on_upload,
            lock_when_reviewed=lock_when_reviewed,
        )

    def download_file(self, tenant_id: str, file_id: str) -> DownloadPayload:
        return download.download_file(self._store, self._blobs, tenant_id, file_id)

    # ---- review ----

    def mark_items_reviewed(
        self,
        tenant_id: str,
        item_ids: list[str],
        *,
        tutor_scope: str | None = None,
        require_feedback_file: bool | None = None,
    ) -> BulkReviewResult:
        if require_feedback_file is None:
            require_feedback_file = self._settings.homework.require_feedback_file_to_mark_reviewed
        return bulk_review.mark_items_reviewed(
            self._store,
            tenant_id,
            item_ids,
            now=self._clock(),
            require_feedback_file=require_feedback_file,
            tutor_scope=tutor_scope,
        )

    # ---- reporting ----

    def compute_sla_summary(
        self,
        tenant_id: str,
        filters: Union[SlaFilters, sla.SlaPredicate, None] = None,
    ) -> SlaSummary:
        return sla.compute_sla_summary(self._store, tenant_id, filters)
