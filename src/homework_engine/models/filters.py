"""Filter inputs for roster scans and SLA reporting."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RosterFilters(BaseModel):
    """Scope for materializing homework items from session rosters."""

    student_ids: list[str] = Field(default_factory=list)
    tutor_id: Optional[str] = None
    center_id: Optional[str] = None
    start_from: Optional[datetime] = None
    start_to_exclusive: Optional[datetime] = None


class SlaFilters(BaseModel):
    """SLA report filters; the date range applies to ``submitted_at``."""

    model_config = ConfigDict(extra="forbid")

    status: Optional[Literal["ASSIGNED", "SUBMITTED", "REVIEWED", "ALL"]] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    tutor_id: Optional[str] = None
    center_id: Optional[str] = None

    @field_validator("tutor_id", "center_id")
    @classmethod
    def _strip_ids(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @property
    def range_start(self) -> Optional[datetime]:
        if self.from_date is None:
            return None
        return datetime.combine(self.from_date, time.min, tzinfo=timezone.utc)

    @property
    def range_end_exclusive(self) -> Optional[datetime]:
        # "to" is inclusive of the whole UTC day
        if self.to_date is None:
            return None
        start = datetime.combine(self.to_date, time.min, tzinfo=timezone.utc)
        return start + timedelta(days=1)
