"""Model factories shared by unit tests."""

from __future__ import annotations

from datetime import timedelta

from homework_engine.homework.validation import validate_file_payload
from homework_engine.models.homework import HomeworkItem, HomeworkStatus, SessionRecord
from tests.fakes import T0

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"
PDF = "application/pdf"


def make_session(session_id: str, tenant_id: str = TENANT, *, days_ago: int = 0,
                 tutor_id: str = "tutor-1", center_id: str = "center-1", **extra) -> SessionRecord:
    extra.setdefault("tutor_name", f"Tutor {tutor_id}")
    extra.setdefault("center_name", f"Center {center_id}")
    return SessionRecord(
        id=session_id,
        tenant_id=tenant_id,
        start_at=T0 - timedelta(days=days_ago),
        tutor_id=tutor_id,
        center_id=center_id,
        **extra,
    )


def make_item(item_id: str, tenant_id: str = TENANT, *, session_id: str = "s-1",
              student_id: str | None = None, status: HomeworkStatus = HomeworkStatus.ASSIGNED,
              **extra) -> HomeworkItem:
    return HomeworkItem(
        id=item_id,
        tenant_id=tenant_id,
        session_id=session_id,
        student_id=student_id or f"student-{item_id}",
        status=status,
        **extra,
    )


def make_upload(data: bytes = b"%PDF-1.7 homework", filename: str = "worksheet.pdf"):
    return validate_file_payload(filename, PDF, len(data), data)
