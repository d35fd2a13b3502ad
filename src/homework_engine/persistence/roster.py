"""Roster scan rules shared by the metadata store backends."""

from __future__ import annotations

from homework_engine.models.filters import RosterFilters
from homework_engine.models.homework import RosterEntry, SessionRecord


def roster_matches(entry: RosterEntry, session: SessionRecord, filters: RosterFilters) -> bool:
    """Non-canceled sessions only, narrowed by the optional filters."""
    if session.canceled_at is not None:
        return False
    if filters.student_ids and entry.student_id not in filters.student_ids:
        return False
    if filters.tutor_id and session.tutor_id != filters.tutor_id:
        return False
    if filters.center_id and session.center_id != filters.center_id:
        return False
    if filters.start_from and session.start_at < filters.start_from:
        return False
    if filters.start_to_exclusive and session.start_at >= filters.start_to_exclusive:
        return False
    return True


def order_roster(pairs: list[tuple[RosterEntry, SessionRecord]]) -> list[RosterEntry]:
    """Newest session start first, then roster id ascending."""
    pairs = sorted(pairs, key=lambda p: p[0].id)
    pairs.sort(key=lambda p: p[1].start_at, reverse=True)
    return [entry for entry, _ in pairs]
