"""Homework item state machine and upload side-effect decision table.

ASSIGNED -> SUBMITTED -> REVIEWED. Re-submission while SUBMITTED is allowed;
REVIEWED is terminal. Nothing here performs I/O.
"""

from __future__ import annotations

from enum import StrEnum

from homework_engine.core.exceptions import InvalidTransitionError
from homework_engine.models.homework import HomeworkFileSlot, HomeworkStatus

_ALLOWED_TRANSITIONS: dict[HomeworkStatus, frozenset[HomeworkStatus]] = {
    HomeworkStatus.ASSIGNED: frozenset({HomeworkStatus.SUBMITTED}),
    HomeworkStatus.SUBMITTED: frozenset({HomeworkStatus.SUBMITTED, HomeworkStatus.REVIEWED}),
    HomeworkStatus.REVIEWED: frozenset(),
}


def can_transition(from_status: HomeworkStatus, to_status: HomeworkStatus) -> bool:
    return HomeworkStatus(to_status) in _ALLOWED_TRANSITIONS[HomeworkStatus(from_status)]


def can_transition_to_submitted(status: HomeworkStatus) -> bool:
    return can_transition(status, HomeworkStatus.SUBMITTED)


def can_transition_to_reviewed(status: HomeworkStatus) -> bool:
    return can_transition(status, HomeworkStatus.REVIEWED)


def assert_can_transition_to_submitted(status: HomeworkStatus) -> None:
    if not can_transition_to_submitted(status):
        raise InvalidTransitionError(str(status), HomeworkStatus.SUBMITTED.value)


def assert_can_transition_to_reviewed(status: HomeworkStatus) -> None:
    if not can_transition_to_reviewed(status):
        raise InvalidTransitionError(str(status), HomeworkStatus.REVIEWED.value)


class UploadEffect(StrEnum):
    MARK_SUBMITTED = "MARK_SUBMITTED"
    STAMP_ASSIGNED = "STAMP_ASSIGNED"
    NONE = "NONE"


# (mark_submitted_on_upload, is_assignment_slot, assigned_at_present) -> effect
_UPLOAD_EFFECTS: dict[tuple[bool, bool, bool], UploadEffect] = {
    (True, True, True): UploadEffect.MARK_SUBMITTED,
    (True, True, False): UploadEffect.MARK_SUBMITTED,
    (True, False, True): UploadEffect.MARK_SUBMITTED,
    (True, False, False): UploadEffect.MARK_SUBMITTED,
    (False, True, False): UploadEffect.STAMP_ASSIGNED,
    (False, True, True): UploadEffect.NONE,
    (False, False, True): UploadEffect.NONE,
    (False, False, False): UploadEffect.NONE,
}


def resolve_upload_effect(
    slot: HomeworkFileSlot,
    mark_submitted_on_upload: bool,
    assigned_at_present: bool,
) -> UploadEffect:
    """Pick the single status side effect an upload applies to its item."""
    key = (
        bool(mark_submitted_on_upload),
        HomeworkFileSlot(slot) is HomeworkFileSlot.ASSIGNMENT,
        bool(assigned_at_present),
    )
    return _UPLOAD_EFFECTS[key]
