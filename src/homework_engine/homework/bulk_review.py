"""Bulk mark-reviewed with eligibility filtering and status-guarded updates."""

from __future__ import annotations

import logging
from datetime import datetime

from homework_engine.core.exceptions import ConflictError, NotFoundError, ValidationError
from homework_engine.core.protocols import IHomeworkStore
from homework_engine.homework.status import assert_can_transition_to_reviewed
from homework_engine.models.homework import HomeworkFileSlot, HomeworkItem, HomeworkStatus
from homework_engine.models.results import BulkReviewResult, ChangedItem

logger = logging.getLogger(__name__)


def normalize_item_ids(item_ids: list[str] | None) -> list[str]:
    """Trim, drop blanks and de-duplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for raw in item_ids or []:
        value = (raw or "").strip()
        if value:
            seen.setdefault(value, None)
    ids = list(seen)
    if not ids:
        raise ValidationError("homeworkItemIds is required", {"field": "homeworkItemIds"})
    return ids


def _scope_to_tutor(
    store: IHomeworkStore, tenant_id: str, items: list[HomeworkItem], tutor_id: str
) -> list[HomeworkItem]:
    sessions = store.get_sessions(tenant_id, sorted({i.session_id for i in items}))
    owned = {sid for sid, session in sessions.items() if session.tutor_id == tutor_id}
    return [i for i in items if i.session_id in owned]


def mark_items_reviewed(
    store: IHomeworkStore,
    tenant_id: str,
    item_ids: list[str],
    *,
    now: datetime,
    require_feedback_file: bool,
    tutor_scope: str | None = None,
) -> BulkReviewResult:
    ids = normalize_item_ids(item_ids)

    items = store.get_items(tenant_id, ids)
    if tutor_scope:
        items = _scope_to_tutor(store, tenant_id, items, tutor_scope)
    if not items:
        raise NotFoundError("No homework items found", {"homeworkItemIds": ids})

    submitted = [i for i in items if i.status is HomeworkStatus.SUBMITTED]

    eligible = submitted
    if require_feedback_file and submitted:
        with_feedback = store.item_ids_with_slot(
            tenant_id, [i.id for i in submitted], HomeworkFileSlot.FEEDBACK,
        )
        eligible = [i for i in submitted if i.id in with_feedback]

    for item in eligible:
        assert_can_transition_to_reviewed(item.status)

    updated_ids: set[str] = set()
    if eligible:
        updated_ids = set(store.mark_reviewed(tenant_id, [i.id for i in eligible], now))
        if not updated_ids:
            raise ConflictError(
                "Homework items changed status concurrently",
                {"homeworkItemIds": [i.id for i in eligible]},
            )

    changed = [
        ChangedItem(
            id=item.id,
            from_status=item.status,
            to_status=HomeworkStatus.REVIEWED,
            session_id=item.session_id,
            student_id=item.student_id,
        )
        for item in eligible
        if item.id in updated_ids
    ]

    result = BulkReviewResult(
        selected_count=len(ids),
        reviewed_count=len(changed),
        skipped_not_submitted_count=len(ids) - len(submitted),
        skipped_missing_feedback_count=len(submitted) - len(eligible),
        changed_items=changed,
    )
    logger.info(
        "Bulk review tenant=%s selected=%d reviewed=%d skipped_not_submitted=%d "
        "skipped_missing_feedback=%d",
        tenant_id, result.selected_count, result.reviewed_count,
        result.skipped_not_submitted_count, result.skipped_missing_feedback_count,
    )
    return result
