"""Homework item, file, and the read-only session/roster entities."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class HomeworkStatus(StrEnum):
    ASSIGNED = "ASSIGNED"
    SUBMITTED = "SUBMITTED"
    REVIEWED = "REVIEWED"


class HomeworkFileSlot(StrEnum):
    ASSIGNMENT = "ASSIGNMENT"
    SUBMISSION = "SUBMISSION"
    FEEDBACK = "FEEDBACK"


class UploaderRole(StrEnum):
    ADMIN = "ADMIN"
    TUTOR = "TUTOR"
    PARENT = "PARENT"
    SYSTEM = "SYSTEM"


class HomeworkItem(BaseModel):
    """One unit of work per (tenant, session, student)."""

    id: str
    tenant_id: str
    session_id: str
    student_id: str
    status: HomeworkStatus = HomeworkStatus.ASSIGNED
    assigned_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    revision: int = 0  # bumped on every write; guards optimistic updates

    def snapshot(self) -> ItemSnapshot:
        return ItemSnapshot(
            status=self.status,
            assigned_at=self.assigned_at,
            submitted_at=self.submitted_at,
        )


class ItemSnapshot(BaseModel):
    """Pre-write item state restored by upload compensation."""

    status: HomeworkStatus
    assigned_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None


class HomeworkFile(BaseModel):
    """Metadata for one versioned artifact; bytes live in the blob store."""

    id: str
    tenant_id: str
    homework_item_id: str
    slot: HomeworkFileSlot
    version: int = Field(ge=1)
    filename: str
    mime_type: str
    size_bytes: int
    checksum: Optional[str] = None
    uploaded_by_role: UploaderRole
    uploaded_by_user_id: Optional[str] = None
    uploaded_at: datetime


class ValidatedHomeworkFile(BaseModel):
    """Upload payload that has passed file policy checks."""

    filename: str
    mime_type: str
    size_bytes: int
    data: bytes
    checksum: str


class SessionRecord(BaseModel):
    """Scheduled session owned by the scheduling subsystem (read-only here)."""

    id: str
    tenant_id: str
    start_at: datetime
    end_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    center_id: Optional[str] = None
    center_name: Optional[str] = None
    tutor_id: Optional[str] = None
    tutor_name: Optional[str] = None
    tutor_email: Optional[str] = None

    @property
    def tutor_display(self) -> Optional[str]:
        name = (self.tutor_name or "").strip()
        return name or self.tutor_email or self.tutor_id or None


class RosterEntry(BaseModel):
    """A student enrolled on a session (read-only here)."""

    id: str
    tenant_id: str
    session_id: str
    student_id: str
