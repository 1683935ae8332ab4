"""Permission evaluation.

Every action maps to exactly one rule, and every rule declares whether
it is gated by the effective role (``Gate.ROLE``) or by board access
(``Gate.ACCESS``). Threshold settings are compared through
``role_meets_threshold`` rather than per-action string matching.

The evaluator is pure: no logging, no storage, and it never raises.
Unknown actions and unparseable roles are denied.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from src.authz.models import (
    Action,
    Gate,
    NormalizedSettings,
    PermissionDecision,
    Threshold,
    parse_threshold,
    role_meets_threshold,
)
from src.models.common import Role

UNKNOWN_ACTION = "unknown action"

BOARD_ACCESS_DENIED = "Access denied: You do not have access to this board"
LAST_OWNER = "Cannot remove the last owner from the workspace"
WORKSPACE_OWNER_TARGET = "Cannot remove the workspace owner"
MEMBER_NOT_FOUND = "Member not found in this workspace"
REMOVE_PRIVILEGED = "Only workspace owners can remove other owners or admins"
REMOVE_NO_PERMISSION = "You do not have permission to remove this member"
REMOVE_NOT_ALLOWED = "You do not have permission to remove members"
ROLE_CHANGE_CALLER = "Only admins and owners can update member roles"
ROLE_CHANGE_SELF = "You cannot change your own role"
ROLE_CHANGE_OWNER = "Cannot change the role of the workspace owner"
ROLE_CHANGE_INVALID = "Valid role is required"
SETTINGS_UPDATE = "Only admins and owners can update settings"
WORKSPACE_DELETE = "Only the workspace owner can delete the workspace"
NOT_A_MEMBER = "You are not a member of this workspace"

ASSIGNABLE_ROLES = frozenset({Role.ADMIN, Role.MEMBER, Role.GUEST})
_CONTENT_MODERATORS = frozenset({Role.OWNER, Role.ADMIN})

# Phrases used to build threshold denials, keyed by the gated action.
_THRESHOLD_SUBJECT: dict[Action, str] = {
    Action.CREATE_BOARD: "create boards in this workspace",
    Action.DELETE_BOARD: "delete this board",
    Action.INVITE_MEMBER: "add members to this workspace",
    Action.ADD_MEMBER: "add members to this workspace",
    Action.MANAGE_INVITATIONS: "manage invitations",
}

_OWN_CONTENT_DENIALS: dict[Action, str] = {
    Action.EDIT_OWN_CONTENT: "You can only edit your own content",
    Action.DELETE_OWN_CONTENT: "You can only delete your own content",
    Action.EDIT_COMMENT: "Comment not found or you do not have permission to edit it",
    Action.DELETE_COMMENT: "You can only delete your own comments",
    Action.EDIT_ATTACHMENT: "You can only edit your own attachments",
    Action.DELETE_ATTACHMENT: "You can only delete your own attachments",
}

_COLLABORATION_ACTIONS = (
    Action.VIEW_BOARD,
    Action.CREATE_LIST,
    Action.CREATE_CARD,
    Action.UPDATE_CARD,
    Action.MOVE_CARD,
    Action.ADD_CARD_MEMBER,
    Action.REMOVE_CARD_MEMBER,
    Action.ASSIGN_LABEL,
    Action.REMOVE_LABEL,
    Action.CREATE_COMMENT,
    Action.CREATE_CHECKLIST,
    Action.ADD_ATTACHMENT,
)


def threshold_denial(threshold: Threshold, subject: str) -> str:
    """User-facing reason for failing a threshold, naming the restriction."""
    if threshold == Threshold.OWNER_ONLY:
        return f"Only the workspace owner can {subject}"
    if threshold == Threshold.ADMINS_ONLY:
        return f"Only admins and owner can {subject}"
    return f"You do not have permission to {subject}"


def _coerce_role(value: object) -> Role:
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        try:
            return Role(value.strip().lower())
        except ValueError:
            return Role.NONE
    return Role.NONE


@dataclass(frozen=True)
class EvaluationContext:
    """Inputs to a single rule."""

    action: Action
    role: Role
    has_access: bool
    settings: NormalizedSettings
    is_self: bool
    board_role: Role | None
    target_role: Role | None
    target_is_workspace_owner: bool
    owner_count: int | None
    new_role: Role | None

    def allow(self, reason: str) -> PermissionDecision:
        return PermissionDecision(True, reason, self.role, self.action.value)

    def deny(self, reason: str) -> PermissionDecision:
        return PermissionDecision(False, reason, self.role, self.action.value)


Rule = Callable[[EvaluationContext], PermissionDecision]


@dataclass(frozen=True)
class ActionRule:
    gate: Gate
    check: Rule


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _threshold_rule(setting: Callable[[NormalizedSettings], str]) -> Rule:
    def check(ctx: EvaluationContext) -> PermissionDecision:
        if ctx.role == Role.OWNER:
            return ctx.allow("Workspace owner")
        threshold = parse_threshold(setting(ctx.settings))
        if role_meets_threshold(ctx.role, threshold):
            return ctx.allow(f"Role {ctx.role} meets {threshold} restriction")
        return ctx.deny(threshold_denial(threshold, _THRESHOLD_SUBJECT[ctx.action]))

    return check


def _delete_board(ctx: EvaluationContext) -> PermissionDecision:
    # ctx.role is the workspace role; board_role falls back to it when absent.
    board_role = ctx.board_role if ctx.board_role is not None else ctx.role
    if board_role == Role.OWNER:
        return ctx.allow("Board owner")
    if ctx.role == Role.OWNER:
        return ctx.allow("Workspace owner")
    threshold = ctx.settings.board_deletion_threshold
    if board_role == Role.ADMIN and role_meets_threshold(ctx.role, threshold):
        return ctx.allow(f"Board admin meets {threshold} restriction")
    if threshold == Threshold.ANY_MEMBER:
        return ctx.deny("You do not have permission to delete this board")
    return ctx.deny(threshold_denial(threshold, _THRESHOLD_SUBJECT[Action.DELETE_BOARD]))


def _remove_member(ctx: EvaluationContext) -> PermissionDecision:
    target = ctx.target_role
    if target is None or target == Role.NONE:
        return ctx.deny(MEMBER_NOT_FOUND)
    if target == Role.OWNER and (ctx.owner_count is None or ctx.owner_count <= 1):
        return ctx.deny(LAST_OWNER)
    if ctx.target_is_workspace_owner:
        return ctx.deny(WORKSPACE_OWNER_TARGET)
    if ctx.role == Role.OWNER:
        return ctx.allow("Workspace owner")
    if ctx.role == Role.NONE:
        return ctx.deny(NOT_A_MEMBER)
    if ctx.is_self:
        return ctx.allow("Members may leave the workspace")
    if ctx.role == Role.ADMIN:
        if target in (Role.OWNER, Role.ADMIN):
            return ctx.deny(REMOVE_PRIVILEGED)
        if target == Role.MEMBER:
            return ctx.allow("Admin removing a member")
        return ctx.deny(REMOVE_NO_PERMISSION)
    return ctx.deny(REMOVE_NOT_ALLOWED)


def _change_member_role(ctx: EvaluationContext) -> PermissionDecision:
    if ctx.role not in _CONTENT_MODERATORS:
        return ctx.deny(ROLE_CHANGE_CALLER)
    if ctx.is_self:
        return ctx.deny(ROLE_CHANGE_SELF)
    if ctx.target_role is None or ctx.target_role == Role.NONE:
        return ctx.deny(MEMBER_NOT_FOUND)
    if ctx.target_role == Role.OWNER or ctx.target_is_workspace_owner:
        return ctx.deny(ROLE_CHANGE_OWNER)
    if ctx.new_role is None or ctx.new_role not in ASSIGNABLE_ROLES:
        return ctx.deny(ROLE_CHANGE_INVALID)
    return ctx.allow(f"Role {ctx.role} may change member roles")


def _update_settings(ctx: EvaluationContext) -> PermissionDecision:
    if ctx.role in _CONTENT_MODERATORS:
        return ctx.allow(f"Role {ctx.role} may update settings")
    return ctx.deny(SETTINGS_UPDATE)


def _delete_workspace(ctx: EvaluationContext) -> PermissionDecision:
    if ctx.role == Role.OWNER:
        return ctx.allow("Workspace owner")
    return ctx.deny(WORKSPACE_DELETE)


def _board_access(ctx: EvaluationContext) -> PermissionDecision:
    if ctx.has_access:
        return ctx.allow("Board access")
    return ctx.deny(BOARD_ACCESS_DENIED)


def _own_content(ctx: EvaluationContext) -> PermissionDecision:
    # ctx.role is the board role here.
    if ctx.is_self:
        return ctx.allow("Author")
    if ctx.role in _CONTENT_MODERATORS:
        return ctx.allow(f"Board {ctx.role}")
    return ctx.deny(_OWN_CONTENT_DENIALS[ctx.action])


RULES: dict[Action, ActionRule] = {
    Action.CREATE_BOARD: ActionRule(Gate.ROLE, _threshold_rule(lambda s: s.board_creation)),
    Action.DELETE_BOARD: ActionRule(Gate.ROLE, _delete_board),
    Action.INVITE_MEMBER: ActionRule(Gate.ROLE, _threshold_rule(lambda s: s.membership_restriction)),
    Action.ADD_MEMBER: ActionRule(Gate.ROLE, _threshold_rule(lambda s: s.membership_restriction)),
    Action.MANAGE_INVITATIONS: ActionRule(Gate.ROLE, _threshold_rule(lambda s: s.membership_restriction)),
    Action.REMOVE_MEMBER: ActionRule(Gate.ROLE, _remove_member),
    Action.CHANGE_MEMBER_ROLE: ActionRule(Gate.ROLE, _change_member_role),
    Action.UPDATE_SETTINGS: ActionRule(Gate.ROLE, _update_settings),
    Action.DELETE_WORKSPACE: ActionRule(Gate.ROLE, _delete_workspace),
    **{action: ActionRule(Gate.ACCESS, _board_access) for action in _COLLABORATION_ACTIONS},
    **{action: ActionRule(Gate.ROLE, _own_content) for action in _OWN_CONTENT_DENIALS},
}


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class PermissionEvaluator:
    """Evaluate one action for one principal against resolved inputs."""

    def __init__(self, rules: dict[Action, ActionRule] | None = None) -> None:
        self._rules = rules if rules is not None else RULES

    def gate_for(self, action: Action | str) -> Gate | None:
        """Which resolver output gates ``action``, or None if unknown."""
        try:
            rule = self._rules.get(Action(action))
        except ValueError:
            return None
        return rule.gate if rule is not None else None

    def evaluate(
        self,
        action: Action | str,
        effective_role: Role | str | None,
        has_access: bool = False,
        settings: NormalizedSettings | None = None,
        is_self: bool = False,
        *,
        board_role: Role | str | None = None,
        target_role: Role | str | None = None,
        target_is_workspace_owner: bool = False,
        owner_count: int | None = None,
        new_role: Role | str | None = None,
    ) -> PermissionDecision:
        """Return the decision for ``action``.

        ``effective_role`` is the workspace role for workspace actions and
        ``delete_board``, and the board role for authored-content actions.
        ``board_role`` is only read by ``delete_board``; ``target_role``,
        ``target_is_workspace_owner`` and ``owner_count`` by member
        removal and role changes; ``new_role`` by role changes.
        """
        role = _coerce_role(effective_role)
        try:
            resolved_action = Action(action)
        except ValueError:
            return PermissionDecision(False, UNKNOWN_ACTION, role, str(action))

        rule = self._rules.get(resolved_action)
        if rule is None:
            return PermissionDecision(False, UNKNOWN_ACTION, role, resolved_action.value)

        ctx = EvaluationContext(
            action=resolved_action,
            role=role,
            has_access=bool(has_access),
            settings=settings if settings is not None else NormalizedSettings(),
            is_self=bool(is_self),
            board_role=_coerce_role(board_role) if board_role is not None else None,
            target_role=_coerce_role(target_role) if target_role is not None else None,
            target_is_workspace_owner=bool(target_is_workspace_owner),
            owner_count=owner_count,
            new_role=_coerce_role(new_role) if new_role is not None else None,
        )
        return rule.check(ctx)


_default_evaluator = PermissionEvaluator()


def evaluate(
    action: Action | str,
    effective_role: Role | str | None,
    has_access: bool = False,
    settings: NormalizedSettings | None = None,
    is_self: bool = False,
    **kwargs: object,
) -> PermissionDecision:
    """Module-level shortcut for ``PermissionEvaluator().evaluate``."""
    return _default_evaluator.evaluate(
        action, effective_role, has_access, settings, is_self, **kwargs,  # type: ignore[arg-type]
    )
