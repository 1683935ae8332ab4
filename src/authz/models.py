"""Authorization enums, dataclasses, and Pydantic models.

Defines the action catalogue, the ordered threshold vocabulary used by
workspace settings, the normalized settings model, and the decision
objects handed back to callers.

Deterministic -- no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from src.models.common import BoardGateBase, Role


# ---------------------------------------------------------------------------
# Enums (all StrEnum)
# ---------------------------------------------------------------------------


class Action(StrEnum):
    """Mutations (and board reads) gated by the evaluator."""

    # Workspace administration
    CREATE_BOARD = "create_board"
    DELETE_BOARD = "delete_board"
    INVITE_MEMBER = "invite_member"
    ADD_MEMBER = "add_member"
    MANAGE_INVITATIONS = "manage_invitations"
    REMOVE_MEMBER = "remove_member"
    CHANGE_MEMBER_ROLE = "change_member_role"
    UPDATE_SETTINGS = "update_settings"
    DELETE_WORKSPACE = "delete_workspace"

    # Board collaboration
    VIEW_BOARD = "view_board"
    CREATE_LIST = "create_list"
    CREATE_CARD = "create_card"
    UPDATE_CARD = "update_card"
    MOVE_CARD = "move_card"
    ADD_CARD_MEMBER = "add_card_member"
    REMOVE_CARD_MEMBER = "remove_card_member"
    ASSIGN_LABEL = "assign_label"
    REMOVE_LABEL = "remove_label"
    CREATE_COMMENT = "create_comment"
    CREATE_CHECKLIST = "create_checklist"
    ADD_ATTACHMENT = "add_attachment"

    # Authored content
    EDIT_OWN_CONTENT = "edit_own_content"
    DELETE_OWN_CONTENT = "delete_own_content"
    EDIT_COMMENT = "edit_comment"
    DELETE_COMMENT = "delete_comment"
    EDIT_ATTACHMENT = "edit_attachment"
    DELETE_ATTACHMENT = "delete_attachment"


class Gate(StrEnum):
    """Which resolver output a rule consumes.

    ``ROLE`` rules look at the effective role only; ``ACCESS`` rules look
    at ``has_access`` only (implicit workspace-visible access counts).
    """

    ROLE = "ROLE"
    ACCESS = "ACCESS"


class Threshold(StrEnum):
    """Minimum role required by a workspace restriction setting."""

    OWNER_ONLY = "owner_only"
    ADMINS_ONLY = "admins_only"
    ANY_MEMBER = "any_member"


# Permissiveness order: owner_only < admins_only < any_member.
THRESHOLD_RANK: dict[Threshold, int] = {
    Threshold.OWNER_ONLY: 0,
    Threshold.ADMINS_ONLY: 1,
    Threshold.ANY_MEMBER: 2,
}

# Every spelling found in persisted data, current and legacy.
THRESHOLD_ALIASES: dict[str, Threshold] = {
    "any_member": Threshold.ANY_MEMBER,
    "anyone": Threshold.ANY_MEMBER,
    "admins_only": Threshold.ADMINS_ONLY,
    "admin_only": Threshold.ADMINS_ONLY,
    "owner_only": Threshold.OWNER_ONLY,
    "nobody": Threshold.OWNER_ONLY,
}

# Least permissive threshold each non-owner role can pass.
ROLE_REQUIRED_THRESHOLD: dict[Role, Threshold] = {
    Role.ADMIN: Threshold.ADMINS_ONLY,
    Role.MEMBER: Threshold.ANY_MEMBER,
}


def parse_threshold(raw: object) -> Threshold:
    """Map a stored threshold spelling to ``Threshold``.

    Unknown values fail closed to ``OWNER_ONLY``.
    """
    if isinstance(raw, Threshold):
        return raw
    if isinstance(raw, str):
        return THRESHOLD_ALIASES.get(raw.strip().lower(), Threshold.OWNER_ONLY)
    return Threshold.OWNER_ONLY


def role_meets_threshold(role: Role, threshold: Threshold) -> bool:
    """True when ``role`` is permitted under ``threshold``.

    The owner passes every threshold. Guests and non-members pass none.
    """
    if role == Role.OWNER:
        return True
    required = ROLE_REQUIRED_THRESHOLD.get(role)
    if required is None:
        return False
    return THRESHOLD_RANK[threshold] >= THRESHOLD_RANK[required]


# ---------------------------------------------------------------------------
# Frozen dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BoardAccess:
    """Outcome of board role resolution.

    ``has_access`` is the coarse answer ("may open the board"); ``role`` is
    the finer one. When access comes only from workspace visibility,
    ``implicit`` is set and ``role`` is ``MEMBER``.
    """

    has_access: bool
    role: Role
    implicit: bool = False

    @property
    def explicit_role(self) -> Role | None:
        """Role backed by ownership or a board membership row, else None."""
        if self.implicit or self.role == Role.NONE:
            return None
        return self.role


@dataclass(frozen=True)
class SettingsDiagnostic:
    """A settings row the resolver could not use."""

    setting_type: str
    reason: str
    raw_value: object = None


@dataclass(frozen=True)
class PermissionDecision:
    """Allow/deny plus a reason suitable for showing to the user."""

    allowed: bool
    reason: str
    effective_role: Role
    action: str = ""


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class NormalizedSettings(BoardGateBase, frozen=True):
    """Fully-populated workspace restriction settings.

    Values keep the stored spelling (legacy ``admin_only`` survives
    migration); use the ``*_threshold`` properties for comparisons.
    """

    membership_restriction: str = "anyone"
    board_creation: str = "any_member"
    board_deletion: str = "any_member"

    @property
    def membership_threshold(self) -> Threshold:
        return parse_threshold(self.membership_restriction)

    @property
    def board_creation_threshold(self) -> Threshold:
        return parse_threshold(self.board_creation)

    @property
    def board_deletion_threshold(self) -> Threshold:
        return parse_threshold(self.board_deletion)


@dataclass
class SettingsResolution:
    """Normalized settings together with the rows that were skipped."""

    settings: NormalizedSettings
    diagnostics: list[SettingsDiagnostic] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.diagnostics
