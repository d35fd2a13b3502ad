"""Result models returned to callers (notification fan-out, audit, reports)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from homework_engine.models.homework import HomeworkFileSlot, HomeworkStatus, UploaderRole


class EnsureItemsResult(BaseModel):
    created_count: int = 0
    scanned_count: int = 0


class FileVersionResult(BaseModel):
    """Descriptor of a committed file version plus the item status delta."""

    id: str
    slot: HomeworkFileSlot
    version: int
    filename: str
    mime_type: str
    size_bytes: int
    checksum: Optional[str] = None
    uploaded_at: datetime
    status_from: HomeworkStatus
    status_to: HomeworkStatus
    session_id: str
    student_id: str

    @property
    def status_changed(self) -> bool:
        return self.status_from != self.status_to

    def audit_metadata(self) -> dict[str, Any]:
        """Metadata bag for the audit-log writer."""
        return {
            "slot": self.slot.value,
            "version": self.version,
            "sizeBytes": self.size_bytes,
            "mimeType": self.mime_type,
            "fromStatus": self.status_from.value,
            "toStatus": self.status_to.value,
        }


class ChangedItem(BaseModel):
    id: str
    from_status: HomeworkStatus
    to_status: HomeworkStatus
    session_id: str
    student_id: str


class BulkReviewResult(BaseModel):
    """Outcome of a bulk mark-reviewed call; ineligible ids are counted, not raised."""

    selected_count: int
    reviewed_count: int
    skipped_not_submitted_count: int
    skipped_missing_feedback_count: int = 0
    changed_items: list[ChangedItem] = Field(default_factory=list)

    def notification_targets(self) -> list[dict[str, str]]:
        return [
            {"homeworkItemId": item.id, "studentId": item.student_id}
            for item in self.changed_items
        ]


class SlaBreakdownRow(BaseModel):
    center_id: Optional[str] = None
    center_name: Optional[str] = None
    tutor_id: Optional[str] = None
    tutor_display: Optional[str] = None
    assigned_count: int = 0
    submitted_count: int = 0
    reviewed_count: int = 0
    reviewed_duration_count: int = 0
    avg_review_hours: Optional[float] = None


class SlaSummary(BaseModel):
    counts_by_status: dict[HomeworkStatus, int]
    avg_review_hours: Optional[float] = None
    reviewed_duration_count: int = 0
    breakdown_rows: list[SlaBreakdownRow] = Field(default_factory=list)

    @property
    def total_count(self) -> int:
        return sum(self.counts_by_status.values())


class SlotCounts(BaseModel):
    assignment: int = 0
    submission: int = 0
    feedback: int = 0


class VersionedFile(BaseModel):
    id: str
    slot: HomeworkFileSlot
    version: int
    filename: str
    mime_type: str
    size_bytes: int
    checksum: Optional[str] = None
    uploaded_at: datetime
    uploaded_by_role: UploaderRole


class SessionSummary(BaseModel):
    id: str
    start_at: datetime
    end_at: Optional[datetime] = None
    center_id: Optional[str] = None
    center_name: Optional[str] = None
    tutor_id: Optional[str] = None
    tutor_display: Optional[str] = None


class HomeworkItemDetail(BaseModel):
    homework_item_id: str
    tenant_id: str
    session_id: str
    student_id: str
    status: HomeworkStatus
    assigned_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    session: Optional[SessionSummary] = None
    files: list[VersionedFile] = Field(default_factory=list)
    file_counts: SlotCounts = Field(default_factory=SlotCounts)
    files_by_slot: dict[HomeworkFileSlot, list[VersionedFile]] = Field(default_factory=dict)


class BlobPayload(BaseModel):
    data: bytes
    mime_type: str
    size_bytes: int
    checksum: Optional[str] = None


class DownloadPayload(BaseModel):
    """Everything a download boundary needs to stream a file."""

    file_id: str
    filename: str
    data: bytes
    mime_type: str
    size_bytes: int
    content_disposition: str
