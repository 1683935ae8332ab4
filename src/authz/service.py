"""Authorization service -- fetch rows, resolve, evaluate.

Composes the role resolver, settings resolver and permission evaluator
for a single request against an ``AuthzStore``. Missing workspaces and
boards raise ``ResourceNotFound`` before anything is evaluated; every
other outcome is a ``PermissionDecision``.
"""

from __future__ import annotations

import logging
from uuid import UUID

from src.authz.deletion import DeletionPlan, plan_board_deletion, plan_workspace_deletion
from src.authz.errors import ResourceNotFound
from src.authz.evaluator import PermissionEvaluator
from src.authz.models import (
    Action,
    BoardAccess,
    NormalizedSettings,
    PermissionDecision,
    SettingsResolution,
)
from src.authz.roles import (
    count_owner_equivalents,
    find_workspace_membership,
    resolve_board_access,
    resolve_workspace_role,
)
from src.authz.settings_resolver import SettingsResolver, validate_setting_update
from src.authz.stores import AuthzStore
from src.models.common import Role
from src.models.workspace import Board, Workspace, WorkspaceSettingRecord

logger = logging.getLogger(__name__)

# Actions decided from the workspace role alone.
WORKSPACE_ACTIONS = frozenset({
    Action.CREATE_BOARD,
    Action.INVITE_MEMBER,
    Action.ADD_MEMBER,
    Action.MANAGE_INVITATIONS,
    Action.UPDATE_SETTINGS,
    Action.DELETE_WORKSPACE,
})

# Actions about another member of the workspace.
MEMBER_ACTIONS = frozenset({Action.REMOVE_MEMBER, Action.CHANGE_MEMBER_ROLE})


class AuthorizationService:
    """Per-request authorization over an ``AuthzStore``."""

    def __init__(
        self,
        store: AuthzStore,
        *,
        evaluator: PermissionEvaluator | None = None,
        settings_resolver: SettingsResolver | None = None,
    ) -> None:
        self._store = store
        self._evaluator = evaluator or PermissionEvaluator()
        self._settings_resolver = settings_resolver or SettingsResolver()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _workspace(self, workspace_id: UUID) -> Workspace:
        workspace = self._store.get_workspace(workspace_id)
        if workspace is None:
            raise ResourceNotFound("workspace", workspace_id)
        return workspace

    def _board(self, board_id: UUID) -> Board:
        board = self._store.get_board(board_id)
        if board is None:
            raise ResourceNotFound("board", board_id)
        return board

    def settings_resolution(self, workspace_id: UUID) -> SettingsResolution:
        self._workspace(workspace_id)
        return self._settings_resolver.resolve(self._store.list_setting_records(workspace_id))

    def settings_for(self, workspace_id: UUID) -> NormalizedSettings:
        return self.settings_resolution(workspace_id).settings

    def workspace_role(self, principal_id: UUID, workspace_id: UUID) -> Role:
        workspace = self._workspace(workspace_id)
        return resolve_workspace_role(
            principal_id, workspace, self._store.list_workspace_memberships(workspace_id),
        )

    def board_access(self, principal_id: UUID, board_id: UUID) -> BoardAccess:
        board = self._board(board_id)
        workspace = self._workspace(board.workspace_id)
        return resolve_board_access(
            principal_id,
            board,
            workspace,
            self._store.list_board_memberships(board_id),
            self._store.list_workspace_memberships(workspace.id),
        )

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def workspace_decision(
        self,
        principal_id: UUID,
        workspace_id: UUID,
        action: Action | str,
    ) -> PermissionDecision:
        """Decide a workspace-level action (board creation, invites, settings...)."""
        role = self.workspace_role(principal_id, workspace_id)
        settings = self.settings_for(workspace_id)
        decision = self._evaluator.evaluate(action, role, role != Role.NONE, settings)
        self._log(principal_id, workspace_id, decision)
        return decision

    def board_decision(
        self,
        principal_id: UUID,
        board_id: UUID,
        action: Action | str,
        *,
        author_id: UUID | None = None,
    ) -> PermissionDecision:
        """Decide a board-level action.

        ``delete_board`` is evaluated with the workspace role plus the
        board role; collaboration actions with board access; authored
        content with the board role and ``author_id``.
        """
        board = self._board(board_id)
        access = self.board_access(principal_id, board_id)

        if action == Action.DELETE_BOARD:
            workspace_role = self.workspace_role(principal_id, board.workspace_id)
            decision = self._evaluator.evaluate(
                action,
                workspace_role,
                access.has_access,
                self.settings_for(board.workspace_id),
                board_role=access.role,
            )
        else:
            decision = self._evaluator.evaluate(
                action,
                access.role,
                access.has_access,
                self.settings_for(board.workspace_id),
                is_self=author_id is not None and author_id == principal_id,
            )
        self._log(principal_id, board_id, decision)
        return decision

    def member_decision(
        self,
        principal_id: UUID,
        workspace_id: UUID,
        target_id: UUID,
        action: Action | str = Action.REMOVE_MEMBER,
        *,
        new_role: Role | str | None = None,
    ) -> PermissionDecision:
        """Decide removing ``target_id`` or changing their role."""
        workspace = self._workspace(workspace_id)
        memberships = self._store.list_workspace_memberships(workspace_id)
        role = resolve_workspace_role(principal_id, workspace, memberships)

        target_is_owner = target_id == workspace.owner_id
        if target_is_owner:
            target_role: Role | None = Role.OWNER
        else:
            target_row = find_workspace_membership(target_id, workspace, memberships)
            target_role = target_row.role if target_row is not None else None

        decision = self._evaluator.evaluate(
            action,
            role,
            role != Role.NONE,
            self.settings_for(workspace_id),
            is_self=principal_id == target_id,
            target_role=target_role,
            target_is_workspace_owner=target_is_owner,
            owner_count=count_owner_equivalents(workspace, memberships),
            new_role=new_role,
        )
        self._log(principal_id, workspace_id, decision)
        return decision

    def remove_member_decision(
        self, principal_id: UUID, workspace_id: UUID, target_id: UUID,
    ) -> PermissionDecision:
        return self.member_decision(principal_id, workspace_id, target_id, Action.REMOVE_MEMBER)

    def decide(
        self,
        principal_id: UUID,
        workspace_id: UUID,
        action: Action | str,
        *,
        board_id: UUID | None = None,
        target_id: UUID | None = None,
        author_id: UUID | None = None,
        new_role: Role | str | None = None,
    ) -> PermissionDecision:
        """Route ``action`` to the right decision method.

        Raises:
            ResourceNotFound: If the workspace or board is missing, or the
                board lives in another workspace.
        """
        if action in WORKSPACE_ACTIONS:
            return self.workspace_decision(principal_id, workspace_id, action)
        if action in MEMBER_ACTIONS:
            if target_id is None:
                return self._evaluator.evaluate(action, self.workspace_role(principal_id, workspace_id))
            return self.member_decision(
                principal_id, workspace_id, target_id, action, new_role=new_role,
            )
        if board_id is not None:
            board = self._board(board_id)
            if board.workspace_id != workspace_id:
                raise ResourceNotFound("board", board_id)
            return self.board_decision(principal_id, board_id, action, author_id=author_id)
        # Unknown actions, or board actions without a board, fail closed.
        return self._evaluator.evaluate(action, self.workspace_role(principal_id, workspace_id))

    # ------------------------------------------------------------------
    # Guarded operations
    # ------------------------------------------------------------------

    def update_setting(
        self,
        principal_id: UUID,
        workspace_id: UUID,
        setting_type: str,
        value: object,
    ) -> PermissionDecision:
        """Validate and store a settings write if the principal may update settings.

        Raises:
            ResourceNotFound: If the workspace is missing.
            InvalidSettingUpdate: If the setting type or value is invalid.
        """
        decision = self.workspace_decision(principal_id, workspace_id, Action.UPDATE_SETTINGS)
        if not decision.allowed:
            return decision
        encoded = validate_setting_update(setting_type, value)
        self._store.upsert_setting_record(
            WorkspaceSettingRecord(
                workspace_id=workspace_id,
                setting_type=setting_type,
                setting_value=encoded,
            )
        )
        logger.info("Workspace %s setting %s updated by %s", workspace_id, setting_type, principal_id)
        return decision

    def board_deletion(
        self,
        principal_id: UUID,
        board_id: UUID,
        confirmation_name: str | None,
        *,
        workspace_id: UUID | None = None,
    ) -> tuple[PermissionDecision, DeletionPlan | None]:
        """Decide board deletion; on allow, also return the cascade plan.

        Raises:
            ResourceNotFound: If the board is missing or not in ``workspace_id``.
            ConfirmationMismatch: If allowed but the name does not match.
        """
        if workspace_id is not None and self._board(board_id).workspace_id != workspace_id:
            raise ResourceNotFound("board", board_id)
        decision = self.board_decision(principal_id, board_id, Action.DELETE_BOARD)
        if not decision.allowed:
            return decision, None
        return decision, plan_board_deletion(self._board(board_id), confirmation_name)

    def workspace_deletion(
        self,
        principal_id: UUID,
        workspace_id: UUID,
        confirmation_name: str | None,
    ) -> tuple[PermissionDecision, DeletionPlan | None]:
        decision = self.workspace_decision(principal_id, workspace_id, Action.DELETE_WORKSPACE)
        if not decision.allowed:
            return decision, None
        plan = plan_workspace_deletion(
            self._workspace(workspace_id),
            self._store.list_boards(workspace_id),
            confirmation_name,
        )
        return decision, plan

    @staticmethod
    def _log(principal_id: UUID, resource_id: UUID, decision: PermissionDecision) -> None:
        logger.debug(
            "authz %s principal=%s resource=%s allowed=%s reason=%s",
            decision.action,
            principal_id,
            resource_id,
            decision.allowed,
            decision.reason,
        )
