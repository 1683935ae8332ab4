"""Tests for the workspace authorization endpoints.

Covers: settings read/write, role lookup, decisions vs enforcement,
404 vs 403 mapping, board deletion plans.
"""

import pytest
from httpx import AsyncClient
from uuid_extensions import uuid7


def _base(world) -> str:
    return f"/v1/workspaces/{world.workspace.id}/authz"


# ===================================================================
# Settings
# ===================================================================


class TestSettingsEndpoints:

    @pytest.mark.anyio
    async def test_defaults(self, client: AsyncClient, world) -> None:
        response = await client.get(f"{_base(world)}/settings")
        assert response.status_code == 200
        data = response.json()
        assert data["membership_restriction"] == "anyone"
        assert data["board_creation"] == "any_member"
        assert data["board_deletion"] == "any_member"
        assert data["diagnostics"] == []

    @pytest.mark.anyio
    async def test_unknown_workspace_404(self, client: AsyncClient) -> None:
        response = await client.get(f"/v1/workspaces/{uuid7()}/authz/settings")
        assert response.status_code == 404
        assert response.json()["detail"] == "Workspace not found"

    @pytest.mark.anyio
    async def test_admin_update_visible_immediately(self, client: AsyncClient, world) -> None:
        await client.get(f"{_base(world)}/settings")  # warm the cache
        response = await client.put(
            f"{_base(world)}/settings/board_creation_simplified",
            json={"principal_id": str(world.admin), "value": "admins_only"},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "setting_type": "board_creation_simplified"}

        data = (await client.get(f"{_base(world)}/settings")).json()
        assert data["board_creation"] == "admins_only"

    @pytest.mark.anyio
    async def test_member_update_403(self, client: AsyncClient, world) -> None:
        response = await client.put(
            f"{_base(world)}/settings/membership_restriction",
            json={"principal_id": str(world.member), "value": "owner_only"},
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Only admins and owners can update settings"

    @pytest.mark.anyio
    async def test_invalid_type_400(self, client: AsyncClient, world) -> None:
        response = await client.put(
            f"{_base(world)}/settings/theme",
            json={"principal_id": str(world.owner), "value": "dark"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid setting type"


# ===================================================================
# Roles and decisions
# ===================================================================


class TestRoleEndpoint:

    @pytest.mark.anyio
    async def test_owner_role(self, client: AsyncClient, world) -> None:
        response = await client.get(f"{_base(world)}/roles/{world.owner}")
        assert response.status_code == 200
        assert response.json()["role"] == "owner"

    @pytest.mark.anyio
    async def test_outsider_role_none(self, client: AsyncClient, world) -> None:
        response = await client.get(f"{_base(world)}/roles/{world.outsider}")
        assert response.json()["role"] == "none"


class TestDecisionEndpoints:

    @pytest.mark.anyio
    async def test_decision_reports_deny_with_200(self, client: AsyncClient, world) -> None:
        response = await client.post(
            f"{_base(world)}/decisions",
            json={"principal_id": str(world.guest), "action": "create_board"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["allowed"] is False
        assert data["effective_role"] == "guest"

    @pytest.mark.anyio
    async def test_enforce_deny_is_403_with_reason(self, client: AsyncClient, world) -> None:
        response = await client.post(
            f"{_base(world)}/enforce",
            json={
                "principal_id": str(world.owner),
                "action": "remove_member",
                "target_id": str(world.owner),
            },
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Cannot remove the last owner from the workspace"

    @pytest.mark.anyio
    async def test_role_change_without_role_403(self, client: AsyncClient, world) -> None:
        response = await client.post(
            f"{_base(world)}/enforce",
            json={
                "principal_id": str(world.admin),
                "action": "change_member_role",
                "target_id": str(world.member),
            },
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Valid role is required"

    @pytest.mark.anyio
    async def test_enforce_allow(self, client: AsyncClient, world) -> None:
        response = await client.post(
            f"{_base(world)}/enforce",
            json={
                "principal_id": str(world.guest),
                "action": "assign_label",
                "board_id": str(world.workspace_board.id),
            },
        )
        assert response.status_code == 200
        assert response.json()["allowed"] is True

    @pytest.mark.anyio
    async def test_unknown_board_404(self, client: AsyncClient, world) -> None:
        response = await client.post(
            f"{_base(world)}/enforce",
            json={"principal_id": str(world.owner), "action": "view_board", "board_id": str(uuid7())},
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Board not found"

    @pytest.mark.anyio
    async def test_unknown_action_denied(self, client: AsyncClient, world) -> None:
        response = await client.post(
            f"{_base(world)}/decisions",
            json={"principal_id": str(world.owner), "action": "teleport"},
        )
        assert response.json()["reason"] == "unknown action"


# ===================================================================
# Board deletion plan
# ===================================================================


class TestDeletionPlanEndpoint:

    @pytest.mark.anyio
    async def test_owner_gets_plan(self, client: AsyncClient, world) -> None:
        response = await client.post(
            f"{_base(world)}/boards/{world.private_board.id}/deletion-plan",
            json={"principal_id": str(world.owner), "confirmation_name": "Hiring"},
        )
        assert response.status_code == 200
        steps = response.json()["steps"]
        assert steps[0]["table"] == "activities"
        assert steps[-1]["table"] == "boards"

    @pytest.mark.anyio
    async def test_guest_403(self, client: AsyncClient, world) -> None:
        response = await client.post(
            f"{_base(world)}/boards/{world.private_board.id}/deletion-plan",
            json={"principal_id": str(world.guest), "confirmation_name": "Hiring"},
        )
        assert response.status_code == 403

    @pytest.mark.anyio
    async def test_name_mismatch_400(self, client: AsyncClient, world) -> None:
        response = await client.post(
            f"{_base(world)}/boards/{world.private_board.id}/deletion-plan",
            json={"principal_id": str(world.owner), "confirmation_name": "nope"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Board name does not match"
