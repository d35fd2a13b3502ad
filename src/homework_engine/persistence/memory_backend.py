"""In-memory backends for unit tests: dict-backed fakes.

MemoryHomeworkStore serializes every operation on one re-entrant lock, which
gives each write method the same all-or-nothing behaviour as the DynamoDB
transactions it stands in for.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Any

from homework_engine.core.exceptions import BlobStoreError, LockError, WriteConflictError
from homework_engine.models.filters import RosterFilters
from homework_engine.models.homework import (
    HomeworkFile,
    HomeworkFileSlot,
    HomeworkItem,
    HomeworkStatus,
    ItemSnapshot,
    RosterEntry,
    SessionRecord,
)
from homework_engine.models.results import BlobPayload
from homework_engine.persistence.roster import order_roster, roster_matches


class MemoryHomeworkStore:
    """Dict-backed IHomeworkStore for unit tests."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._items: dict[tuple[str, str], HomeworkItem] = {}
        self._pairs: dict[tuple[str, str, str], str] = {}
        self._files: dict[tuple[str, str], HomeworkFile] = {}
        self._versions: dict[tuple[str, str, HomeworkFileSlot, int], str] = {}
        self._sessions: dict[tuple[str, str], SessionRecord] = {}
        self._roster: dict[tuple[str, str], RosterEntry] = {}

    # ---- seeding helpers (scheduling data is owned elsewhere) ----

    def add_session(self, session: SessionRecord) -> None:
        with self._lock:
            self._sessions[(session.tenant_id, session.id)] = session

    def add_roster_entry(self, tenant_id: str, session_id: str, student_id: str) -> RosterEntry:
        entry = RosterEntry(
            id=str(uuid.uuid4()), tenant_id=tenant_id, session_id=session_id, student_id=student_id,
        )
        with self._lock:
            self._roster[(tenant_id, entry.id)] = entry
        return entry

    def put_item(self, item: HomeworkItem) -> None:
        with self._lock:
            self._items[(item.tenant_id, item.id)] = item
            self._pairs[(item.tenant_id, item.session_id, item.student_id)] = item.id

    # ---- items ----

    def get_item(self, tenant_id: str, item_id: str) -> HomeworkItem | None:
        with self._lock:
            return self._items.get((tenant_id, item_id))

    def get_items(self, tenant_id: str, item_ids: list[str]) -> list[HomeworkItem]:
        with self._lock:
            return [
                self._items[(tenant_id, i)] for i in item_ids if (tenant_id, i) in self._items
            ]

    def list_items(self, tenant_id: str) -> list[HomeworkItem]:
        with self._lock:
            return [item for (t, _), item in self._items.items() if t == tenant_id]

    def create_items_if_absent(self, items: list[HomeworkItem]) -> int:
        created = 0
        with self._lock:
            for item in items:
                pair = (item.tenant_id, item.session_id, item.student_id)
                if pair in self._pairs:
                    continue
                self.put_item(item)
                created += 1
        return created

    def mark_reviewed(self, tenant_id: str, item_ids: list[str], reviewed_at: datetime) -> list[str]:
        updated: list[str] = []
        with self._lock:
            for item_id in item_ids:
                item = self._items.get((tenant_id, item_id))
                if item is None or item.status is not HomeworkStatus.SUBMITTED:
                    continue
                self._items[(tenant_id, item_id)] = item.model_copy(update={
                    "status": HomeworkStatus.REVIEWED,
                    "reviewed_at": reviewed_at,
                    "updated_at": reviewed_at,
                    "revision": item.revision + 1,
                })
                updated.append(item_id)
        return updated

    # ---- files ----

    def latest_file_version(self, tenant_id: str, item_id: str, slot: HomeworkFileSlot) -> int:
        with self._lock:
            versions = [
                v for (t, i, s, v) in self._versions
                if t == tenant_id and i == item_id and s == slot
            ]
        return max(versions, default=0)

    def list_files(self, tenant_id: str, item_id: str) -> list[HomeworkFile]:
        with self._lock:
            return [
                f for (t, _), f in self._files.items()
                if t == tenant_id and f.homework_item_id == item_id
            ]

    def get_file(self, tenant_id: str, file_id: str) -> HomeworkFile | None:
        with self._lock:
            return self._files.get((tenant_id, file_id))

    def item_ids_with_slot(
        self, tenant_id: str, item_ids: list[str], slot: HomeworkFileSlot
    ) -> set[str]:
        wanted = set(item_ids)
        with self._lock:
            return {
                i for (t, i, s, _) in self._versions
                if t == tenant_id and s == slot and i in wanted
            }

    def commit_file_version(
        self,
        file: HomeworkFile,
        expected_revision: int,
        updated_item: HomeworkItem | None = None,
    ) -> None:
        version_key = (file.tenant_id, file.homework_item_id, file.slot, file.version)
        with self._lock:
            current = self._items.get((file.tenant_id, file.homework_item_id))
            if current is None:
                raise WriteConflictError(f"Homework item {file.homework_item_id!r} disappeared")
            if current.revision != expected_revision:
                raise WriteConflictError(
                    f"Homework item {file.homework_item_id!r} revision "
                    f"{current.revision} != {expected_revision}"
                )
            if version_key in self._versions:
                raise WriteConflictError(
                    f"Version {file.version} already exists for slot {file.slot}"
                )
            self._versions[version_key] = file.id
            self._files[(file.tenant_id, file.id)] = file
            if updated_item is not None:
                self._items[(updated_item.tenant_id, updated_item.id)] = updated_item

    def rollback_file_version(
        self, file: HomeworkFile, snapshot: ItemSnapshot, expected_revision: int
    ) -> bool:
        version_key = (file.tenant_id, file.homework_item_id, file.slot, file.version)
        with self._lock:
            self._files.pop((file.tenant_id, file.id), None)
            if self._versions.get(version_key) == file.id:
                del self._versions[version_key]
            item = self._items.get((file.tenant_id, file.homework_item_id))
            if item is None or item.revision != expected_revision:
                return False
            self._items[(item.tenant_id, item.id)] = item.model_copy(update={
                "status": snapshot.status,
                "assigned_at": snapshot.assigned_at,
                "submitted_at": snapshot.submitted_at,
                "revision": item.revision + 1,
            })
            return True

    # ---- read-only scheduling data ----

    def get_sessions(self, tenant_id: str, session_ids: list[str]) -> dict[str, SessionRecord]:
        with self._lock:
            return {
                sid: self._sessions[(tenant_id, sid)]
                for sid in session_ids if (tenant_id, sid) in self._sessions
            }

    def list_roster_entries(
        self, tenant_id: str, filters: RosterFilters, limit: int
    ) -> list[RosterEntry]:
        with self._lock:
            pairs = []
            for (t, _), entry in self._roster.items():
                if t != tenant_id:
                    continue
                session = self._sessions.get((tenant_id, entry.session_id))
                if session is not None and roster_matches(entry, session, filters):
                    pairs.append((entry, session))
        return order_roster(pairs)[:limit]


class MemoryBlobStore:
    """Dict-backed IBlobStore for unit tests."""

    def __init__(self) -> None:
        self._blobs: dict[tuple[str, str], BlobPayload] = {}

    def put(
        self,
        tenant_id: str,
        file_id: str,
        data: bytes,
        mime_type: str,
        size_bytes: int,
        checksum: str | None = None,
    ) -> None:
        self._blobs[(tenant_id, file_id)] = BlobPayload(
            data=bytes(data), mime_type=mime_type, size_bytes=size_bytes, checksum=checksum,
        )

    def get(self, tenant_id: str, file_id: str) -> BlobPayload:
        try:
            return self._blobs[(tenant_id, file_id)]
        except KeyError as exc:
            raise BlobStoreError(f"No blob for tenant={tenant_id!r} file={file_id!r}") from exc

    def __contains__(self, key: Any) -> bool:
        return key in self._blobs


class MemoryLockBackend:
    """Process-local ILockBackend for unit tests."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._tokens: dict[str, str] = {}
        self.acquired: list[str] = []

    def acquire(self, key: str, ttl: int) -> str:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        if not lock.acquire(timeout=ttl):
            raise LockError(f"Timed out waiting for lock {key!r}")
        token = uuid.uuid4().hex
        self._tokens[key] = token
        self.acquired.append(key)
        return token

    def release(self, key: str, token: str) -> None:
        if self._tokens.get(key) != token:
            raise LockError(f"Lock {key!r} is not held by this token")
        del self._tokens[key]
        self._locks[key].release()
