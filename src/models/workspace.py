"""Workspace, board, and membership rows read by the authorization engine.

These mirror the rows the storage layer returns. The engine only reads
them; creating, mutating and deleting them is the storage layer's job.
"""

from typing import Any
from uuid import UUID

from pydantic import Field, field_validator

from src.models.common import (
    BoardGateBase,
    BoardVisibility,
    Role,
    UTCTimestamp,
    UUIDv7,
    WorkspaceVisibility,
    new_uuid7,
    utc_now,
)

# Roles a workspace_members row may carry. "owner" rows exist in older data
# alongside workspaces.owner_id and count as owner-equivalent.
WORKSPACE_MEMBERSHIP_ROLES = frozenset({Role.OWNER, Role.ADMIN, Role.MEMBER, Role.GUEST})
BOARD_MEMBERSHIP_ROLES = frozenset({Role.ADMIN, Role.MEMBER})


class Principal(BoardGateBase, frozen=True):
    """An authenticated user identity, as handed over by the auth layer."""

    id: UUID


class Workspace(BoardGateBase):
    """Top-level container owning boards, memberships and settings."""

    id: UUIDv7 = Field(default_factory=new_uuid7)
    name: str = Field(..., min_length=1, max_length=255)
    owner_id: UUID
    visibility: WorkspaceVisibility = WorkspaceVisibility.PRIVATE
    created_at: UTCTimestamp = Field(default_factory=utc_now)


class Board(BoardGateBase):
    """A kanban board inside a workspace. Its owner may differ from the workspace owner."""

    id: UUIDv7 = Field(default_factory=new_uuid7)
    workspace_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    owner_id: UUID
    visibility: BoardVisibility = BoardVisibility.WORKSPACE
    created_at: UTCTimestamp = Field(default_factory=utc_now)


class WorkspaceMembership(BoardGateBase, frozen=True):
    """(workspace, principal) -> role. Unique per pair."""

    workspace_id: UUID
    principal_id: UUID
    role: Role

    @field_validator("role")
    @classmethod
    def _persisted_role(cls, value: Role) -> Role:
        if value not in WORKSPACE_MEMBERSHIP_ROLES:
            msg = f"Invalid workspace membership role: {value}"
            raise ValueError(msg)
        return value


class BoardMembership(BoardGateBase, frozen=True):
    """(board, principal) -> role. Unique per pair."""

    board_id: UUID
    principal_id: UUID
    role: Role

    @field_validator("role")
    @classmethod
    def _persisted_role(cls, value: Role) -> Role:
        if value not in BOARD_MEMBERSHIP_ROLES:
            msg = f"Invalid board membership role: {value}"
            raise ValueError(msg)
        return value


class WorkspaceSettingRecord(BoardGateBase, frozen=True):
    """One persisted workspace setting row.

    ``setting_value`` is whatever the storage driver hands back: a JSON
    string, or an already-decoded scalar/object. Accepts both the column
    names (``setting_type``/``setting_value``) and the short ``type``/``value``.
    """

    workspace_id: UUID | None = None
    setting_type: str = Field(..., alias="type")
    setting_value: Any = Field(..., alias="value")
