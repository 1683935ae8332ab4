"""Row sources for the authorization service.

``AuthzStore`` is the contract the storage layer implements. The
in-memory implementation backs the API and tests; production replaces it
with a database-backed store. ``CachedAuthzStore`` wraps any store with
a ``TTLCache``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any
from uuid import UUID

from src.authz.cache import TTLCache, WORKSPACE_BOARDS_TTL_SECONDS
from src.models.workspace import (
    Board,
    BoardMembership,
    Workspace,
    WorkspaceMembership,
    WorkspaceSettingRecord,
)


class AuthzStore(ABC):
    """Read access to the rows the resolvers need, plus settings writes."""

    @abstractmethod
    def get_workspace(self, workspace_id: UUID) -> Workspace | None: ...

    @abstractmethod
    def get_board(self, board_id: UUID) -> Board | None: ...

    @abstractmethod
    def list_boards(self, workspace_id: UUID) -> list[Board]: ...

    @abstractmethod
    def list_workspace_memberships(self, workspace_id: UUID) -> list[WorkspaceMembership]: ...

    @abstractmethod
    def list_board_memberships(self, board_id: UUID) -> list[BoardMembership]: ...

    @abstractmethod
    def list_setting_records(self, workspace_id: UUID) -> list[WorkspaceSettingRecord]: ...

    @abstractmethod
    def upsert_setting_record(self, record: WorkspaceSettingRecord) -> None:
        """Insert or replace the (workspace_id, setting_type) row."""


class InMemoryAuthzStore(AuthzStore):
    """In-memory implementation for the API and tests.

    The ``add_*`` seeding writes go straight to this store. A
    ``CachedAuthzStore`` wrapping it keeps serving rows it has already read
    until their TTL expires, so callers that seed after the first read
    must call ``invalidate_workspace`` or ``invalidate_board`` on the
    wrapper. Only ``upsert_setting_record`` through the wrapper
    invalidates by itself.
    """

    def __init__(self) -> None:
        self._workspaces: dict[UUID, Workspace] = {}
        self._boards: dict[UUID, Board] = {}
        self._workspace_members: dict[tuple[UUID, UUID], WorkspaceMembership] = {}
        self._board_members: dict[tuple[UUID, UUID], BoardMembership] = {}
        self._settings: dict[tuple[UUID, str], WorkspaceSettingRecord] = {}

    # --- writes used to seed the store ---

    def add_workspace(self, workspace: Workspace) -> Workspace:
        self._workspaces[workspace.id] = workspace
        return workspace

    def add_board(self, board: Board) -> Board:
        if board.workspace_id not in self._workspaces:
            msg = f"Workspace {board.workspace_id} not found."
            raise KeyError(msg)
        self._boards[board.id] = board
        return board

    def add_workspace_membership(self, membership: WorkspaceMembership) -> WorkspaceMembership:
        key = (membership.workspace_id, membership.principal_id)
        if key in self._workspace_members:
            msg = "User is already a member of this workspace"
            raise ValueError(msg)
        self._workspace_members[key] = membership
        return membership

    def add_board_membership(self, membership: BoardMembership) -> BoardMembership:
        key = (membership.board_id, membership.principal_id)
        if key in self._board_members:
            msg = "User is already a member of this board"
            raise ValueError(msg)
        self._board_members[key] = membership
        return membership

    def upsert_setting_record(self, record: WorkspaceSettingRecord) -> None:
        if record.workspace_id is None:
            msg = "Setting records must carry a workspace_id."
            raise ValueError(msg)
        self._settings[(record.workspace_id, record.setting_type)] = record

    # --- reads ---

    def get_workspace(self, workspace_id: UUID) -> Workspace | None:
        return self._workspaces.get(workspace_id)

    def get_board(self, board_id: UUID) -> Board | None:
        return self._boards.get(board_id)

    def list_boards(self, workspace_id: UUID) -> list[Board]:
        return [b for b in self._boards.values() if b.workspace_id == workspace_id]

    def list_workspace_memberships(self, workspace_id: UUID) -> list[WorkspaceMembership]:
        return [m for (ws, _), m in self._workspace_members.items() if ws == workspace_id]

    def list_board_memberships(self, board_id: UUID) -> list[BoardMembership]:
        return [m for (b, _), m in self._board_members.items() if b == board_id]

    def list_setting_records(self, workspace_id: UUID) -> list[WorkspaceSettingRecord]:
        return [r for (ws, _), r in self._settings.items() if ws == workspace_id]


class CachedAuthzStore(AuthzStore):
    """Read-through ``TTLCache`` in front of another store.

    Keys are ``<kind>:<id>``; writes invalidate the affected workspace.
    """

    def __init__(
        self,
        inner: AuthzStore,
        cache: TTLCache,
        *,
        boards_ttl: float = WORKSPACE_BOARDS_TTL_SECONDS,
    ) -> None:
        self._inner = inner
        self._cache = cache
        self._boards_ttl = boards_ttl

    @property
    def inner(self) -> AuthzStore:
        return self._inner

    def _cached(self, key: str, loader: Callable[[], Any], ttl: float | None = None) -> Any:
        return self._cache.get_or_set(key, loader, ttl)

    def get_workspace(self, workspace_id: UUID) -> Workspace | None:
        # Misses are not cached so a newly created workspace is visible at once.
        key = f"workspace:{workspace_id}"
        value = self._cache.get(key)
        if value is None:
            value = self._inner.get_workspace(workspace_id)
            if value is not None:
                self._cache.set(key, value)
        return value

    def get_board(self, board_id: UUID) -> Board | None:
        key = f"board:{board_id}"
        value = self._cache.get(key)
        if value is None:
            value = self._inner.get_board(board_id)
            if value is not None:
                self._cache.set(key, value)
        return value

    def list_boards(self, workspace_id: UUID) -> list[Board]:
        return self._cached(
            f"workspace_boards:{workspace_id}",
            lambda: self._inner.list_boards(workspace_id),
            self._boards_ttl,
        )

    def list_workspace_memberships(self, workspace_id: UUID) -> list[WorkspaceMembership]:
        return self._cached(
            f"workspace_members:{workspace_id}",
            lambda: self._inner.list_workspace_memberships(workspace_id),
        )

    def list_board_memberships(self, board_id: UUID) -> list[BoardMembership]:
        return self._cached(
            f"board_members:{board_id}",
            lambda: self._inner.list_board_memberships(board_id),
        )

    def list_setting_records(self, workspace_id: UUID) -> list[WorkspaceSettingRecord]:
        return self._cached(
            f"workspace_settings:{workspace_id}",
            lambda: self._inner.list_setting_records(workspace_id),
        )

    def upsert_setting_record(self, record: WorkspaceSettingRecord) -> None:
        self._inner.upsert_setting_record(record)
        self._cache.invalidate(f"workspace_settings:{record.workspace_id}")

    def invalidate_workspace(self, workspace_id: UUID) -> None:
        """Forget everything cached for ``workspace_id``."""
        for kind in ("workspace", "workspace_boards", "workspace_members", "workspace_settings"):
            self._cache.invalidate(f"{kind}:{workspace_id}")

    def invalidate_board(self, board_id: UUID) -> None:
        for kind in ("board", "board_members"):
            self._cache.invalidate(f"{kind}:{board_id}")
