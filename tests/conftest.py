"""Shared pytest fixtures for the BoardGate test suite.

Provides:
- world: a seeded InMemoryAuthzStore (one workspace, four roles, three boards)
- client: AsyncClient with the API's store and row cache overridden
"""

from dataclasses import dataclass
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from uuid_extensions import uuid7

from src.authz.cache import TTLCache
from src.authz.stores import InMemoryAuthzStore
from src.models.common import BoardVisibility, Role
from src.models.workspace import (
    Board,
    BoardMembership,
    Workspace,
    WorkspaceMembership,
)


@dataclass
class World:
    store: InMemoryAuthzStore
    workspace: Workspace
    owner: UUID
    admin: UUID
    member: UUID
    guest: UUID
    outsider: UUID
    board_admin: UUID
    workspace_board: Board
    private_board: Board
    member_board: Board


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def world() -> World:
    store = InMemoryAuthzStore()
    owner, admin, member, guest, outsider, board_admin = (uuid7() for _ in range(6))

    workspace = store.add_workspace(Workspace(name="Product", owner_id=owner))
    for pid, role in (
        (owner, Role.OWNER),
        (admin, Role.ADMIN),
        (member, Role.MEMBER),
        (guest, Role.GUEST),
        (board_admin, Role.MEMBER),
    ):
        store.add_workspace_membership(
            WorkspaceMembership(workspace_id=workspace.id, principal_id=pid, role=role)
        )

    workspace_board = store.add_board(
        Board(workspace_id=workspace.id, name="Roadmap", owner_id=admin,
              visibility=BoardVisibility.WORKSPACE)
    )
    private_board = store.add_board(
        Board(workspace_id=workspace.id, name="Hiring", owner_id=admin,
              visibility=BoardVisibility.PRIVATE)
    )
    member_board = store.add_board(
        Board(workspace_id=workspace.id, name="Sprint", owner_id=member,
              visibility=BoardVisibility.PRIVATE)
    )
    store.add_board_membership(
        BoardMembership(board_id=private_board.id, principal_id=board_admin, role=Role.ADMIN)
    )
    store.add_board_membership(
        BoardMembership(board_id=member_board.id, principal_id=board_admin, role=Role.ADMIN)
    )

    return World(
        store=store,
        workspace=workspace,
        owner=owner,
        admin=admin,
        member=member,
        guest=guest,
        outsider=outsider,
        board_admin=board_admin,
        workspace_board=workspace_board,
        private_board=private_board,
        member_board=member_board,
    )


@pytest.fixture
async def client(world: World):
    """AsyncClient wired to the ``world`` store with a private row cache."""
    from src.api.authz import get_authz_store, get_row_cache
    from src.api.main import app

    cache = TTLCache()
    app.dependency_overrides[get_authz_store] = lambda: world.store
    app.dependency_overrides[get_row_cache] = lambda: cache

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
