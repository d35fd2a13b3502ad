"""Item lifecycle: create-if-absent materialization and item detail reads."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from homework_engine.core.exceptions import NotFoundError, ValidationError
from homework_engine.core.protocols import IHomeworkStore
from homework_engine.models.filters import RosterFilters
from homework_engine.models.homework import (
    HomeworkFile,
    HomeworkFileSlot,
    HomeworkItem,
    HomeworkStatus,
)
from homework_engine.models.results import (
    EnsureItemsResult,
    HomeworkItemDetail,
    SessionSummary,
    SlotCounts,
    VersionedFile,
)

logger = logging.getLogger(__name__)

MAX_ENSURE_ROWS = 500


def ensure_items_for_session_students(
    store: IHomeworkStore,
    tenant_id: str,
    filters: RosterFilters | None = None,
    *,
    now: datetime,
    max_rows: int = MAX_ENSURE_ROWS,
) -> EnsureItemsResult:
    """Create an ASSIGNED item for every matching roster pair that lacks one.

    Duplicate (tenant, session, student) inserts are skipped, so repeated
    calls with the same scope create nothing new.
    """
    if max_rows < 1:
        raise ValidationError("max_rows must be positive", {"field": "maxRows"})
    if filters is None:
        filters = RosterFilters()

    limit = min(max_rows, MAX_ENSURE_ROWS)
    entries = store.list_roster_entries(tenant_id, filters, limit)
    if not entries:
        return EnsureItemsResult(created_count=0, scanned_count=0)

    items = [
        HomeworkItem(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            session_id=entry.session_id,
            student_id=entry.student_id,
            status=HomeworkStatus.ASSIGNED,
            assigned_at=now,
            created_at=now,
            updated_at=now,
        )
        for entry in entries[:limit]
    ]
    created = store.create_items_if_absent(items)
    logger.info(
        "Ensured homework items tenant=%s scanned=%d created=%d",
        tenant_id, len(items), created,
    )
    return EnsureItemsResult(created_count=created, scanned_count=len(items))


def _slot_order(slot: HomeworkFileSlot) -> int:
    return list(HomeworkFileSlot).index(slot)


def to_versioned_file(row: HomeworkFile) -> VersionedFile:
    return VersionedFile(
        id=row.id,
        slot=row.slot,
        version=row.version,
        filename=row.filename,
        mime_type=row.mime_type,
        size_bytes=row.size_bytes,
        checksum=row.checksum,
        uploaded_at=row.uploaded_at,
        uploaded_by_role=row.uploaded_by_role,
    )


def build_slot_counts(files: list[HomeworkFile] | list[VersionedFile]) -> SlotCounts:
    counts = SlotCounts()
    for f in files:
        if f.slot is HomeworkFileSlot.ASSIGNMENT:
            counts.assignment += 1
        elif f.slot is HomeworkFileSlot.SUBMISSION:
            counts.submission += 1
        elif f.slot is HomeworkFileSlot.FEEDBACK:
            counts.feedback += 1
    return counts


def group_files_by_slot(
    files: list[VersionedFile],
) -> dict[HomeworkFileSlot, list[VersionedFile]]:
    grouped: dict[HomeworkFileSlot, list[VersionedFile]] = {slot: [] for slot in HomeworkFileSlot}
    for f in files:
        grouped[f.slot].append(f)
    return grouped


def get_item_detail(store: IHomeworkStore, tenant_id: str, item_id: str) -> HomeworkItemDetail:
    item = store.get_item(tenant_id, item_id)
    if item is None:
        raise NotFoundError("Homework item not found", {"homeworkItemId": item_id})

    rows = sorted(
        store.list_files(tenant_id, item_id),
        key=lambda f: (_slot_order(f.slot), -f.version, -f.uploaded_at.timestamp()),
    )
    files = [to_versioned_file(row) for row in rows]

    session = store.get_sessions(tenant_id, [item.session_id]).get(item.session_id)
    session_summary = None
    if session is not None:
        session_summary = SessionSummary(
            id=session.id,
            start_at=session.start_at,
            end_at=session.end_at,
            center_id=session.center_id,
            center_name=session.center_name,
            tutor_id=session.tutor_id,
            tutor_display=session.tutor_display,
        )

    return HomeworkItemDetail(
        homework_item_id=item.id,
        tenant_id=item.tenant_id,
        session_id=item.session_id,
        student_id=item.student_id,
        status=item.status,
        assigned_at=item.assigned_at,
        submitted_at=item.submitted_at,
        reviewed_at=item.reviewed_at,
        created_at=item.created_at,
        updated_at=item.updated_at,
        session=session_summary,
        files=files,
        file_counts=build_slot_counts(files),
        files_by_slot=group_files_by_slot(files),
    )
