"""Protocol interfaces for the engine's storage collaborators.

All inter-layer communication uses these Protocols: structural typing,
no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from homework_engine.models.filters import RosterFilters
    from homework_engine.models.homework import (
        HomeworkFile,
        HomeworkFileSlot,
        HomeworkItem,
        ItemSnapshot,
        RosterEntry,
        SessionRecord,
    )
    from homework_engine.models.results import BlobPayload


# ---------------------------------------------------------------------------
# Persistence: Metadata Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IHomeworkStore(Protocol):
    """Transactional metadata store for homework items and file versions.

    Every method is tenant-scoped. Write methods are atomic: either all of
    their effects become visible or none do.
    """

    # -- items --

    def get_item(self, tenant_id: str, item_id: str) -> HomeworkItem | None: ...

    def get_items(self, tenant_id: str, item_ids: list[str]) -> list[HomeworkItem]: ...

    def list_items(self, tenant_id: str) -> list[HomeworkItem]: ...

    def create_items_if_absent(self, items: list[HomeworkItem]) -> int:
        """Insert items unless (tenant, session, student) exists. Returns created count."""
        ...

    def mark_reviewed(
        self, tenant_id: str, item_ids: list[str], reviewed_at: datetime
    ) -> list[str]:
        """Move SUBMITTED items to REVIEWED. Returns ids whose status guard matched."""
        ...

    # -- files --

    def latest_file_version(self, tenant_id: str, item_id: str, slot: HomeworkFileSlot) -> int: ...

    def list_files(self, tenant_id: str, item_id: str) -> list[HomeworkFile]: ...

    def get_file(self, tenant_id: str, file_id: str) -> HomeworkFile | None: ...

    def item_ids_with_slot(
        self, tenant_id: str, item_ids: list[str], slot: HomeworkFileSlot
    ) -> set[str]: ...

    def commit_file_version(
        self,
        file: HomeworkFile,
        expected_revision: int,
        updated_item: HomeworkItem | None = None,
    ) -> None:
        """Insert a file version and optionally replace its item, atomically.

        Raises WriteConflictError when the (item, slot, version) key is taken
        or the item revision moved since it was read.
        """
        ...

    def rollback_file_version(
        self, file: HomeworkFile, snapshot: ItemSnapshot, expected_revision: int
    ) -> bool:
        """Delete a committed file version and restore the item snapshot.

        The snapshot is restored only while the item is still at
        ``expected_revision``; otherwise only the file rows are removed.
        Returns True when the snapshot was restored.
        """
        ...

    # -- read-only scheduling data --

    def get_sessions(self, tenant_id: str, session_ids: list[str]) -> dict[str, SessionRecord]: ...

    def list_roster_entries(
        self, tenant_id: str, filters: RosterFilters, limit: int
    ) -> list[RosterEntry]:
        """Roster rows of non-canceled sessions, newest session start first."""
        ...


# ---------------------------------------------------------------------------
# Persistence: Blob Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IBlobStore(Protocol):
    """Tenant-scoped byte storage keyed by file id."""

    def put(
        self,
        tenant_id: str,
        file_id: str,
        data: bytes,
        mime_type: str,
        size_bytes: int,
        checksum: str | None = None,
    ) -> None: ...

    def get(self, tenant_id: str, file_id: str) -> BlobPayload: ...


# ---------------------------------------------------------------------------
# Persistence: Advisory Lock
# ---------------------------------------------------------------------------

@runtime_checkable
class ILockBackend(Protocol):
    """Advisory lock keyed by an arbitrary string."""

    def acquire(self, key: str, ttl: int) -> str:
        """Block until the lock is held and return its ownership token."""
        ...

    def release(self, key: str, token: str) -> None: ...
