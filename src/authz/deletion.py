"""Cascading deletion plans for boards and workspaces.

The storage layer deletes children before parents. These helpers check
the typed confirmation name and return the ordered steps; they do not
touch storage and do not check permissions (see ``Action.DELETE_BOARD``
and ``Action.DELETE_WORKSPACE``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from src.authz.errors import ConfirmationMismatch
from src.models.workspace import Board, Workspace

# (table, column the rows are matched on, table the match goes through)
# Rows under cards are matched through the board's cards.
_BOARD_CASCADE: tuple[tuple[str, str, str | None], ...] = (
    ("activities", "board_id", None),
    ("card_comments", "card_id", "cards"),
    ("card_attachments", "card_id", "cards"),
    ("card_members", "card_id", "cards"),
    ("card_labels", "card_id", "cards"),
    ("cards", "board_id", None),
    ("lists", "board_id", None),
    ("board_members", "board_id", None),
    ("board_stars", "board_id", None),
    ("boards", "id", None),
)

_WORKSPACE_TAIL: tuple[tuple[str, str], ...] = (
    ("invitations", "workspace_id"),
    ("workspace_members", "workspace_id"),
    ("workspace_settings", "workspace_id"),
    ("workspaces", "id"),
)


@dataclass(frozen=True)
class DeletionStep:
    """Delete rows of ``table`` where ``column`` matches ``value``.

    When ``through`` is set, ``value`` is the board id and ``column``
    refers to rows of ``through`` belonging to that board.
    """

    table: str
    column: str
    value: UUID
    through: str | None = None


@dataclass
class DeletionPlan:
    """Ordered deletion steps, children first."""

    resource: str
    resource_id: UUID
    steps: list[DeletionStep] = field(default_factory=list)

    @property
    def tables(self) -> list[str]:
        return [step.table for step in self.steps]


def _confirm(kind: str, expected: str, confirmation_name: str | None) -> None:
    label = kind.capitalize()
    if not confirmation_name:
        raise ConfirmationMismatch(f"{label} name confirmation is required")
    if confirmation_name != expected:
        raise ConfirmationMismatch(f"{label} name does not match")


def _board_steps(board_id: UUID) -> list[DeletionStep]:
    return [
        DeletionStep(table=table, column=column, value=board_id, through=through)
        for table, column, through in _BOARD_CASCADE
    ]


def plan_board_deletion(board: Board, confirmation_name: str | None) -> DeletionPlan:
    """Plan deleting ``board`` and everything under it.

    Raises:
        ConfirmationMismatch: If ``confirmation_name`` is empty or differs
            from the board's name.
    """
    _confirm("board", board.name, confirmation_name)
    return DeletionPlan(resource="board", resource_id=board.id, steps=_board_steps(board.id))


def plan_workspace_deletion(
    workspace: Workspace,
    boards: list[Board],
    confirmation_name: str | None,
) -> DeletionPlan:
    """Plan deleting ``workspace``: each board's cascade, then workspace rows.

    Raises:
        ConfirmationMismatch: If ``confirmation_name`` is empty or differs
            from the workspace's name.
        ValueError: If a board belongs to another workspace.
    """
    _confirm("workspace", workspace.name, confirmation_name)

    steps: list[DeletionStep] = []
    for board in boards:
        if board.workspace_id != workspace.id:
            msg = f"Board {board.id} does not belong to workspace {workspace.id}."
            raise ValueError(msg)
        steps.extend(_board_steps(board.id))

    steps.extend(
        DeletionStep(table=table, column=column, value=workspace.id)
        for table, column in _WORKSPACE_TAIL
    )
    return DeletionPlan(resource="workspace", resource_id=workspace.id, steps=steps)
