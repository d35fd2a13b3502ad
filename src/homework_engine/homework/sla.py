"""Read-only SLA rollups over homework items and their sessions."""

from __future__ import annotations

import csv
import io
import math
from datetime import datetime
from typing import Any, Callable, Optional, Union

from homework_engine.core.protocols import IHomeworkStore
from homework_engine.models.filters import SlaFilters
from homework_engine.models.homework import HomeworkItem, HomeworkStatus, SessionRecord
from homework_engine.models.results import SlaBreakdownRow, SlaSummary

SlaPredicate = Callable[[HomeworkItem, Optional[SessionRecord]], bool]

CSV_COLUMNS = (
    "center",
    "tutor",
    "assigned",
    "submitted",
    "reviewed",
    "reviewedDurationCount",
    "avgReviewHours",
)


def build_sla_predicate(filters: SlaFilters) -> SlaPredicate:
    """Translate report filters into a row predicate.

    The date range applies to submitted_at so that it lines up with the
    submit -> review timing being measured.
    """
    status = None if filters.status in (None, "ALL") else HomeworkStatus(filters.status)
    start = filters.range_start
    end = filters.range_end_exclusive

    def predicate(item: HomeworkItem, session: Optional[SessionRecord]) -> bool:
        if status is not None and item.status is not status:
            return False
        if start is not None or end is not None:
            if item.submitted_at is None:
                return False
            if start is not None and item.submitted_at < start:
                return False
            if end is not None and item.submitted_at >= end:
                return False
        if filters.tutor_id and (session is None or session.tutor_id != filters.tutor_id):
            return False
        if filters.center_id and (session is None or session.center_id != filters.center_id):
            return False
        return True

    return predicate


def _match_all(item: HomeworkItem, session: Optional[SessionRecord]) -> bool:
    return True


def review_duration_hours(
    submitted_at: Optional[datetime], reviewed_at: Optional[datetime]
) -> Optional[float]:
    """Hours from submission to review, or None when missing or out of order."""
    if submitted_at is None or reviewed_at is None:
        return None
    hours = (reviewed_at - submitted_at).total_seconds() / 3600
    if not math.isfinite(hours) or hours < 0:
        return None
    return hours


class _Bucket:
    def __init__(self, session: Optional[SessionRecord]) -> None:
        self.center_id = session.center_id if session else None
        self.center_name = session.center_name if session else None
        self.tutor_id = session.tutor_id if session else None
        self.tutor_display = session.tutor_display if session else None
        self.counts = {status: 0 for status in HomeworkStatus}
        self.duration_hours = 0.0
        self.duration_count = 0

    def to_row(self) -> SlaBreakdownRow:
        return SlaBreakdownRow(
            center_id=self.center_id,
            center_name=self.center_name,
            tutor_id=self.tutor_id,
            tutor_display=self.tutor_display,
            assigned_count=self.counts[HomeworkStatus.ASSIGNED],
            submitted_count=self.counts[HomeworkStatus.SUBMITTED],
            reviewed_count=self.counts[HomeworkStatus.REVIEWED],
            reviewed_duration_count=self.duration_count,
            avg_review_hours=(
                self.duration_hours / self.duration_count if self.duration_count else None
            ),
        )


def _sort_key(row: SlaBreakdownRow) -> tuple[str, str, str, str]:
    center = row.center_name or ""
    tutor = row.tutor_display or ""
    return (center.casefold(), tutor.casefold(), center, tutor)


def summarize_items(
    rows: list[tuple[HomeworkItem, Optional[SessionRecord]]],
) -> SlaSummary:
    counts_by_status = {status: 0 for status in HomeworkStatus}
    total_hours = 0.0
    duration_count = 0
    buckets: dict[tuple[Optional[str], Optional[str]], _Bucket] = {}

    for item, session in rows:
        counts_by_status[item.status] += 1
        hours = review_duration_hours(item.submitted_at, item.reviewed_at)
        if hours is not None:
            total_hours += hours
            duration_count += 1

        key = (
            session.center_id if session else None,
            session.tutor_id if session else None,
        )
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = _Bucket(session)
        bucket.counts[item.status] += 1
        if hours is not None:
            bucket.duration_hours += hours
            bucket.duration_count += 1

    breakdown = sorted((b.to_row() for b in buckets.values()), key=_sort_key)
    return SlaSummary(
        counts_by_status=counts_by_status,
        avg_review_hours=total_hours / duration_count if duration_count else None,
        reviewed_duration_count=duration_count,
        breakdown_rows=breakdown,
    )


def compute_sla_summary(
    store: IHomeworkStore,
    tenant_id: str,
    filters: Union[SlaFilters, SlaPredicate, None] = None,
) -> SlaSummary:
    """Aggregate status counts and submit->review durations for one tenant."""
    if filters is None:
        predicate: SlaPredicate = _match_all
    elif isinstance(filters, SlaFilters):
        predicate = build_sla_predicate(filters)
    else:
        predicate = filters

    items = store.list_items(tenant_id)
    sessions = store.get_sessions(tenant_id, sorted({i.session_id for i in items}))

    matched = []
    for item in items:
        session = sessions.get(item.session_id)
        if predicate(item, session):
            matched.append((item, session))
    return summarize_items(matched)


def sla_summary_to_csv_rows(summary: SlaSummary) -> list[dict[str, Any]]:
    """Flatten the breakdown into aggregate-only export rows."""
    return [
        {
            "center": row.center_name or "",
            "tutor": row.tutor_display or "",
            "assigned": row.assigned_count,
            "submitted": row.submitted_count,
            "reviewed": row.reviewed_count,
            "reviewedDurationCount": row.reviewed_duration_count,
            "avgReviewHours": "" if row.avg_review_hours is None else f"{row.avg_review_hours:.2f}",
        }
        for row in summary.breakdown_rows
    ]


def sla_summary_to_csv(summary: SlaSummary) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    writer.writerows(sla_summary_to_csv_rows(summary))
    return buf.getvalue()
