"""Role resolution for workspaces and boards.

Ownership is checked before any membership lookup, so a workspace or
board owner resolves to ``owner`` whatever their membership rows say.
A missing workspace or board raises ``ResourceNotFound``; a principal
with no relationship resolves to ``Role.NONE``.

Deterministic -- no I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from src.authz.errors import ResourceNotFound
from src.authz.models import BoardAccess
from src.models.common import BoardVisibility, Role
from src.models.workspace import (
    Board,
    BoardMembership,
    Principal,
    Workspace,
    WorkspaceMembership,
)


def _principal_id(principal: Principal | UUID) -> UUID:
    return principal.id if isinstance(principal, Principal) else principal


def find_workspace_membership(
    principal: Principal | UUID,
    workspace: Workspace,
    memberships: Iterable[WorkspaceMembership],
) -> WorkspaceMembership | None:
    """Return the principal's membership row in ``workspace``, if any."""
    pid = _principal_id(principal)
    for membership in memberships:
        if membership.workspace_id == workspace.id and membership.principal_id == pid:
            return membership
    return None


def resolve_workspace_role(
    principal: Principal | UUID,
    workspace: Workspace | None,
    memberships: Iterable[WorkspaceMembership],
) -> Role:
    """Effective workspace role: owner, admin, member, guest, or none.

    Raises:
        ResourceNotFound: If ``workspace`` is None.
    """
    if workspace is None:
        raise ResourceNotFound("workspace")

    if _principal_id(principal) == workspace.owner_id:
        return Role.OWNER

    membership = find_workspace_membership(principal, workspace, memberships)
    if membership is None:
        return Role.NONE
    return membership.role


def resolve_board_access(
    principal: Principal | UUID,
    board: Board | None,
    workspace: Workspace | None,
    board_memberships: Iterable[BoardMembership],
    workspace_memberships: Iterable[WorkspaceMembership],
) -> BoardAccess:
    """Resolve both the coarse access flag and the board role.

    Order:
    1. Board owner -> owner
    2. Board membership row -> its role
    3. Workspace-visible board and any workspace relationship -> implicit member
    4. Otherwise -> none, no access

    Raises:
        ResourceNotFound: If ``board`` or ``workspace`` is None, or
            ``board`` does not belong to ``workspace``.
    """
    if board is None:
        raise ResourceNotFound("board")
    if workspace is None:
        raise ResourceNotFound("workspace", board.workspace_id)
    if board.workspace_id != workspace.id:
        raise ResourceNotFound("board", board.id)

    pid = _principal_id(principal)
    if pid == board.owner_id:
        return BoardAccess(has_access=True, role=Role.OWNER)

    for membership in board_memberships:
        if membership.board_id == board.id and membership.principal_id == pid:
            return BoardAccess(has_access=True, role=membership.role)

    if board.visibility == BoardVisibility.WORKSPACE:
        workspace_role = resolve_workspace_role(pid, workspace, workspace_memberships)
        if workspace_role != Role.NONE:
            return BoardAccess(has_access=True, role=Role.MEMBER, implicit=True)

    return BoardAccess(has_access=False, role=Role.NONE)


def resolve_board_role(
    principal: Principal | UUID,
    board: Board | None,
    workspace: Workspace | None,
    board_memberships: Iterable[BoardMembership],
    workspace_memberships: Iterable[WorkspaceMembership],
) -> Role:
    """Board role only; see ``resolve_board_access`` for the access flag."""
    return resolve_board_access(
        principal, board, workspace, board_memberships, workspace_memberships,
    ).role


def count_owner_equivalents(
    workspace: Workspace,
    memberships: Iterable[WorkspaceMembership],
) -> int:
    """Distinct principals who count as owners of ``workspace``.

    The ``owner_id`` principal always counts, with or without a row.
    """
    owners = {workspace.owner_id}
    for membership in memberships:
        if membership.workspace_id == workspace.id and membership.role == Role.OWNER:
            owners.add(membership.principal_id)
    return len(owners)
