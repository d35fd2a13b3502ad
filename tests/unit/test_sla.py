"""Tests for SLA rollups and the CSV export."""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from homework_engine.homework.sla import (
    CSV_COLUMNS,
    compute_sla_summary,
    review_duration_hours,
    sla_summary_to_csv,
    sla_summary_to_csv_rows,
)
from homework_engine.models.filters import SlaFilters
from homework_engine.models.homework import HomeworkStatus
from tests.fakes import T0
from tests.fakes.factories import OTHER_TENANT, TENANT, make_item, make_session

ASSIGNED = HomeworkStatus.ASSIGNED
SUBMITTED = HomeworkStatus.SUBMITTED
REVIEWED = HomeworkStatus.REVIEWED


def _reviewed(item_id, hours, session_id="s-1", **extra):
    return make_item(
        item_id, session_id=session_id, status=REVIEWED,
        submitted_at=T0, reviewed_at=T0 + timedelta(hours=hours), **extra,
    )


class TestReviewDurationHours:
    def test_positive_duration(self):
        assert review_duration_hours(T0, T0 + timedelta(hours=6)) == 6

    def test_zero_duration_counts(self):
        assert review_duration_hours(T0, T0) == 0

    @pytest.mark.parametrize("submitted, reviewed", [
        (None, T0),
        (T0, None),
        (T0, T0 - timedelta(minutes=1)),
    ])
    def test_missing_or_negative_is_excluded(self, submitted, reviewed):
        assert review_duration_hours(submitted, reviewed) is None


class TestComputeSlaSummary:
    def test_empty_tenant(self, store):
        summary = compute_sla_summary(store, TENANT)
        assert summary.counts_by_status == {ASSIGNED: 0, SUBMITTED: 0, REVIEWED: 0}
        assert summary.avg_review_hours is None
        assert summary.reviewed_duration_count == 0
        assert summary.breakdown_rows == []

    def test_counts_and_average(self, store):
        store.put_item(make_item("hw-1"))
        store.put_item(make_item("hw-2", status=SUBMITTED, submitted_at=T0))
        store.put_item(_reviewed("hw-3", 2))
        store.put_item(_reviewed("hw-4", 4))
        store.put_item(make_item("hw-5", status=REVIEWED, reviewed_at=T0))
        store.put_item(make_item(
            "hw-6", status=REVIEWED, submitted_at=T0, reviewed_at=T0 - timedelta(hours=1),
        ))

        summary = compute_sla_summary(store, TENANT)

        assert summary.counts_by_status == {ASSIGNED: 1, SUBMITTED: 1, REVIEWED: 4}
        assert summary.total_count == 6
        assert summary.reviewed_duration_count == 2
        assert summary.avg_review_hours == pytest.approx(3.0)

    def test_is_tenant_scoped(self, store):
        store.add_session(make_session("s-1", OTHER_TENANT))
        store.put_item(_reviewed("hw-x", 1, tenant_id=OTHER_TENANT))
        assert compute_sla_summary(store, TENANT).total_count == 0
        assert compute_sla_summary(store, OTHER_TENANT).total_count == 1

    def test_breakdown_per_center_and_tutor(self, store):
        store.add_session(make_session("s-2", tutor_id="tutor-2", tutor_name="alice"))
        store.add_session(make_session(
            "s-3", tutor_id="tutor-3", center_id="center-0", center_name="Annex", tutor_name="Zed",
        ))
        store.put_item(_reviewed("hw-1", 1))
        store.put_item(_reviewed("hw-2", 3))
        store.put_item(make_item("hw-3", session_id="s-2"))
        store.put_item(_reviewed("hw-4", 5, session_id="s-3"))

        rows = compute_sla_summary(store, TENANT).breakdown_rows

        assert [(r.center_name, r.tutor_display) for r in rows] == [
            ("Annex", "Zed"),
            ("Center center-1", "alice"),
            ("Center center-1", "Tutor tutor-1"),
        ]
        tutor_one = rows[2]
        assert tutor_one.reviewed_count == 2
        assert tutor_one.reviewed_duration_count == 2
        assert tutor_one.avg_review_hours == pytest.approx(2.0)
        assert rows[1].assigned_count == 1
        assert rows[1].avg_review_hours is None
        assert sum(r.assigned_count + r.submitted_count + r.reviewed_count for r in rows) == 4

    def test_items_without_session_land_in_blank_bucket_first(self, store):
        store.put_item(make_item("hw-1", session_id="gone"))
        store.put_item(make_item("hw-2"))
        rows = compute_sla_summary(store, TENANT).breakdown_rows
        assert rows[0].center_name is None and rows[0].tutor_display is None
        assert rows[0].assigned_count == 1

    def test_tutor_display_falls_back_to_email_then_id(self, store):
        store.add_session(make_session("s-2", tutor_id="t-2", tutor_name=None, tutor_email="t2@x.io"))
        store.add_session(make_session("s-3", tutor_id="t-3", tutor_name=None))
        store.put_item(make_item("hw-2", session_id="s-2"))
        store.put_item(make_item("hw-3", session_id="s-3"))
        displays = {r.tutor_id: r.tutor_display for r in compute_sla_summary(store, TENANT).breakdown_rows}
        assert displays["t-2"] == "t2@x.io"
        assert displays["t-3"] == "t-3"


class TestSlaFilters:
    @pytest.fixture
    def populated(self, store):
        store.add_session(make_session("s-2", tutor_id="tutor-2", center_id="center-2"))
        store.put_item(make_item("hw-1"))
        store.put_item(make_item("hw-2", status=SUBMITTED, submitted_at=T0))
        store.put_item(_reviewed("hw-3", 2, session_id="s-2"))
        store.put_item(make_item(
            "hw-4", status=SUBMITTED, submitted_at=T0 - timedelta(days=10),
        ))
        return store

    def test_status_filter(self, populated):
        summary = compute_sla_summary(populated, TENANT, SlaFilters(status="SUBMITTED"))
        assert summary.counts_by_status[SUBMITTED] == 2
        assert summary.total_count == 2

    def test_status_all_matches_everything(self, populated):
        assert compute_sla_summary(populated, TENANT, SlaFilters(status="ALL")).total_count == 4

    def test_date_range_applies_to_submitted_at_and_is_day_inclusive(self, populated):
        day = T0.date()
        summary = compute_sla_summary(populated, TENANT, SlaFilters(from_date=day, to_date=day))
        assert summary.total_count == 2
        assert summary.counts_by_status[ASSIGNED] == 0

    def test_date_range_excludes_older_submissions(self, populated):
        summary = compute_sla_summary(
            populated, TENANT, SlaFilters(from_date=T0.date() - timedelta(days=3)),
        )
        assert summary.total_count == 2

    def test_to_date_only(self, populated):
        summary = compute_sla_summary(
            populated, TENANT, SlaFilters(to_date=date(2026, 2, 28)),
        )
        assert summary.total_count == 1

    def test_tutor_and_center_filters(self, populated):
        by_tutor = compute_sla_summary(populated, TENANT, SlaFilters(tutor_id=" tutor-2 "))
        assert by_tutor.total_count == 1
        by_center = compute_sla_summary(populated, TENANT, SlaFilters(center_id="center-1"))
        assert by_center.total_count == 3

    def test_callable_predicate(self, populated):
        summary = compute_sla_summary(
            populated, TENANT, lambda item, session: item.id in {"hw-1", "hw-3"},
        )
        assert summary.total_count == 2

    def test_unknown_filter_field_rejected(self):
        with pytest.raises(PydanticValidationError):
            SlaFilters(student_id="x")

    def test_blank_tutor_rejected(self):
        with pytest.raises(PydanticValidationError):
            SlaFilters(tutor_id="   ")


class TestCsvExport:
    def test_rows_are_aggregate_only(self, store):
        store.put_item(_reviewed("hw-1", 1.5))
        store.put_item(make_item("hw-2"))
        rows = sla_summary_to_csv_rows(compute_sla_summary(store, TENANT))
        assert rows == [{
            "center": "Center center-1",
            "tutor": "Tutor tutor-1",
            "assigned": 1,
            "submitted": 0,
            "reviewed": 1,
            "reviewedDurationCount": 1,
            "avgReviewHours": "1.50",
        }]

    def test_csv_text_has_header_and_blank_average(self, store):
        store.put_item(make_item("hw-1"))
        text = sla_summary_to_csv(compute_sla_summary(store, TENANT))
        lines = text.splitlines()
        assert lines[0] == ",".join(CSV_COLUMNS)
        assert lines[1] == "Center center-1,Tutor tutor-1,1,0,0,0,"
