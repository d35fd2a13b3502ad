"""Unit tests for the in-memory backends."""

from __future__ import annotations

from datetime import timedelta

import pytest

from homework_engine.core.exceptions import LockError, WriteConflictError
from homework_engine.models.filters import RosterFilters
from homework_engine.models.homework import (
    HomeworkFile,
    HomeworkFileSlot,
    HomeworkStatus,
    UploaderRole,
)
from homework_engine.persistence.protocols import IBlobStore, IHomeworkStore, ILockBackend
from tests.fakes import T0, MemoryBlobStore, MemoryHomeworkStore, MemoryLockBackend
from tests.fakes.factories import TENANT, make_item, make_session


def _file(version=1, file_id="f-1", slot=HomeworkFileSlot.SUBMISSION):
    return HomeworkFile(
        id=file_id, tenant_id=TENANT, homework_item_id="hw-1", slot=slot, version=version,
        filename="a.pdf", mime_type="application/pdf", size_bytes=1,
        uploaded_by_role=UploaderRole.TUTOR, uploaded_at=T0,
    )


def test_backends_satisfy_protocols():
    assert isinstance(MemoryHomeworkStore(), IHomeworkStore)
    assert isinstance(MemoryBlobStore(), IBlobStore)
    assert isinstance(MemoryLockBackend(), ILockBackend)


class TestCommitFileVersion:
    def test_stale_revision_rejected(self):
        store = MemoryHomeworkStore()
        store.put_item(make_item("hw-1", revision=3))
        with pytest.raises(WriteConflictError):
            store.commit_file_version(_file(), expected_revision=2)
        assert store.list_files(TENANT, "hw-1") == []

    def test_rollback_restores_snapshot_and_frees_version(self):
        store = MemoryHomeworkStore()
        item = make_item("hw-1")
        store.put_item(item)
        updated = item.model_copy(update={
            "status": HomeworkStatus.SUBMITTED, "submitted_at": T0, "revision": 1,
        })
        store.commit_file_version(_file(), expected_revision=0, updated_item=updated)
        assert store.rollback_file_version(_file(), item.snapshot(), expected_revision=1) is True

        restored = store.get_item(TENANT, "hw-1")
        assert restored.status is HomeworkStatus.ASSIGNED
        assert restored.submitted_at is None
        assert restored.revision == 2
        assert store.latest_file_version(TENANT, "hw-1", HomeworkFileSlot.SUBMISSION) == 0
        assert store.get_file(TENANT, "f-1") is None

    def test_rollback_skips_restore_when_revision_moved(self):
        store = MemoryHomeworkStore()
        store.put_item(make_item("hw-1"))
        store.commit_file_version(_file(), expected_revision=0)
        newer = make_item("hw-1", status=HomeworkStatus.SUBMITTED, submitted_at=T0, revision=1)
        store.put_item(newer)

        restored = store.rollback_file_version(
            _file(), make_item("hw-1").snapshot(), expected_revision=0,
        )

        assert restored is False
        assert store.get_item(TENANT, "hw-1") == newer
        assert store.get_file(TENANT, "f-1") is None


class TestRoster:
    def test_orders_newest_session_first_and_skips_canceled(self):
        store = MemoryHomeworkStore()
        store.add_session(make_session("old", days_ago=5))
        store.add_session(make_session("new", days_ago=1))
        store.add_session(make_session("gone", days_ago=0, canceled_at=T0))
        store.add_roster_entry(TENANT, "old", "stu-1")
        store.add_roster_entry(TENANT, "new", "stu-1")
        store.add_roster_entry(TENANT, "gone", "stu-1")

        entries = store.list_roster_entries(TENANT, RosterFilters(), limit=10)
        assert [e.session_id for e in entries] == ["new", "old"]

    def test_filters_by_student_and_window(self):
        store = MemoryHomeworkStore()
        store.add_session(make_session("s-1", days_ago=1))
        store.add_roster_entry(TENANT, "s-1", "stu-1")
        store.add_roster_entry(TENANT, "s-1", "stu-2")
        filters = RosterFilters(
            student_ids=["stu-2"],
            start_from=T0 - timedelta(days=2),
            start_to_exclusive=T0,
        )
        entries = store.list_roster_entries(TENANT, filters, limit=10)
        assert [e.student_id for e in entries] == ["stu-2"]


class TestMemoryLockBackend:
    def test_wrong_token_rejected(self):
        locks = MemoryLockBackend()
        locks.acquire("k", ttl=1)
        with pytest.raises(LockError):
            locks.release("k", "bogus")

    def test_contended_lock_times_out(self):
        locks = MemoryLockBackend()
        locks.acquire("k", ttl=1)
        with pytest.raises(LockError):
            locks.acquire("k", ttl=0.01)
