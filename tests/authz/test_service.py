"""Tests for AuthorizationService against the seeded in-memory store."""

import pytest
from uuid_extensions import uuid7

from src.authz.errors import ConfirmationMismatch, InvalidSettingUpdate, ResourceNotFound
from src.authz.models import Action
from src.authz.service import AuthorizationService
from src.models.common import Role
from src.models.workspace import WorkspaceMembership, WorkspaceSettingRecord


def _set(world, setting_type: str, value: str) -> None:
    world.store.upsert_setting_record(
        WorkspaceSettingRecord(workspace_id=world.workspace.id, type=setting_type, value=value)
    )


class TestLookups:

    def test_workspace_roles(self, world) -> None:
        service = AuthorizationService(world.store)
        ws = world.workspace.id
        assert service.workspace_role(world.owner, ws) == Role.OWNER
        assert service.workspace_role(world.admin, ws) == Role.ADMIN
        assert service.workspace_role(world.guest, ws) == Role.GUEST
        assert service.workspace_role(world.outsider, ws) == Role.NONE

    def test_missing_workspace_is_not_found(self, world) -> None:
        service = AuthorizationService(world.store)
        with pytest.raises(ResourceNotFound):
            service.workspace_role(world.owner, uuid7())

    def test_board_access(self, world) -> None:
        service = AuthorizationService(world.store)
        implicit = service.board_access(world.guest, world.workspace_board.id)
        assert implicit.has_access and implicit.implicit
        assert service.board_access(world.guest, world.private_board.id).has_access is False
        assert service.board_access(world.board_admin, world.private_board.id).role == Role.ADMIN

    def test_settings_for(self, world) -> None:
        _set(world, "board_creation_simplified", '"owner_only"')
        service = AuthorizationService(world.store)
        assert service.settings_for(world.workspace.id).board_creation == "owner_only"


class TestWorkspaceDecisions:

    def test_create_board_threshold(self, world) -> None:
        _set(world, "board_creation_simplified", '"admins_only"')
        service = AuthorizationService(world.store)
        ws = world.workspace.id
        assert service.workspace_decision(world.admin, ws, Action.CREATE_BOARD).allowed is True
        assert service.workspace_decision(world.member, ws, Action.CREATE_BOARD).allowed is False
        assert service.workspace_decision(world.owner, ws, Action.CREATE_BOARD).allowed is True

    def test_outsider_cannot_invite(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.workspace_decision(world.outsider, world.workspace.id, Action.INVITE_MEMBER)
        assert decision.allowed is False
        assert decision.effective_role == Role.NONE


class TestBoardDecisions:

    def test_implicit_access_allows_collaboration(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.board_decision(world.guest, world.workspace_board.id, Action.ADD_CARD_MEMBER)
        assert decision.allowed is True

    def test_private_board_denies_collaboration(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.board_decision(world.member, world.private_board.id, Action.CREATE_COMMENT)
        assert decision.allowed is False

    def test_implicit_member_cannot_moderate(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.board_decision(
            world.member, world.workspace_board.id, Action.DELETE_COMMENT, author_id=world.guest,
        )
        assert decision.allowed is False

    def test_author_can_delete_own_comment(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.board_decision(
            world.member, world.workspace_board.id, Action.DELETE_COMMENT, author_id=world.member,
        )
        assert decision.allowed is True

    def test_board_admin_deletes_under_any_member(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.board_decision(world.board_admin, world.member_board.id, Action.DELETE_BOARD)
        assert decision.allowed is True

    def test_board_admin_blocked_by_admins_only(self, world) -> None:
        _set(world, "board_deletion_simplified", '"admins_only"')
        service = AuthorizationService(world.store)
        decision = service.board_decision(world.board_admin, world.member_board.id, Action.DELETE_BOARD)
        assert decision.allowed is False

    def test_workspace_owner_deletes_any_board(self, world) -> None:
        _set(world, "board_deletion_simplified", '"owner_only"')
        service = AuthorizationService(world.store)
        decision = service.board_decision(world.owner, world.private_board.id, Action.DELETE_BOARD)
        assert decision.allowed is True

    def test_board_owner_deletes_own_board(self, world) -> None:
        _set(world, "board_deletion_simplified", '"owner_only"')
        service = AuthorizationService(world.store)
        decision = service.board_decision(world.member, world.member_board.id, Action.DELETE_BOARD)
        assert decision.allowed is True

    def test_missing_board(self, world) -> None:
        with pytest.raises(ResourceNotFound):
            AuthorizationService(world.store).board_decision(world.owner, uuid7(), Action.VIEW_BOARD)


class TestMemberDecisions:

    def test_cannot_remove_sole_owner(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.remove_member_decision(world.owner, world.workspace.id, world.owner)
        assert decision.allowed is False
        assert decision.reason == "Cannot remove the last owner from the workspace"

    def test_co_owner_removable_by_owner(self, world) -> None:
        co_owner = uuid7()
        world.store.add_workspace_membership(
            WorkspaceMembership(workspace_id=world.workspace.id, principal_id=co_owner, role=Role.OWNER)
        )
        service = AuthorizationService(world.store)
        assert service.remove_member_decision(world.owner, world.workspace.id, co_owner).allowed is True
        # The workspace's recorded owner stays protected.
        decision = service.remove_member_decision(co_owner, world.workspace.id, world.owner)
        assert decision.reason == "Cannot remove the workspace owner"

    def test_admin_removes_member(self, world) -> None:
        service = AuthorizationService(world.store)
        assert service.remove_member_decision(world.admin, world.workspace.id, world.member).allowed is True

    def test_member_leaves(self, world) -> None:
        service = AuthorizationService(world.store)
        assert service.remove_member_decision(world.member, world.workspace.id, world.member).allowed is True

    def test_unknown_target(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.remove_member_decision(world.owner, world.workspace.id, world.outsider)
        assert decision.reason == "Member not found in this workspace"

    def test_change_role(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.member_decision(
            world.admin, world.workspace.id, world.guest, Action.CHANGE_MEMBER_ROLE, new_role="member",
        )
        assert decision.allowed is True


class TestDecideRouting:

    def test_board_from_other_workspace_is_not_found(self, world) -> None:
        service = AuthorizationService(world.store)
        with pytest.raises(ResourceNotFound):
            service.decide(world.owner, uuid7(), Action.VIEW_BOARD, board_id=world.workspace_board.id)

    def test_board_action_without_board_fails_closed(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.decide(world.owner, world.workspace.id, Action.VIEW_BOARD)
        assert decision.allowed is False

    def test_unknown_action(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.decide(world.owner, world.workspace.id, "archive_everything")
        assert decision.reason == "unknown action"


class TestGuardedOperations:

    def test_admin_updates_setting(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.update_setting(world.admin, world.workspace.id, "membership_restriction", "owner_only")
        assert decision.allowed is True
        assert service.settings_for(world.workspace.id).membership_restriction == "owner_only"

    def test_member_cannot_update_setting(self, world) -> None:
        service = AuthorizationService(world.store)
        decision = service.update_setting(world.member, world.workspace.id, "membership_restriction", "owner_only")
        assert decision.allowed is False
        assert service.settings_for(world.workspace.id).membership_restriction == "anyone"

    def test_invalid_setting_value(self, world) -> None:
        service = AuthorizationService(world.store)
        with pytest.raises(InvalidSettingUpdate):
            service.update_setting(world.owner, world.workspace.id, "membership_restriction", "everyone")

    def test_board_deletion_plan(self, world) -> None:
        service = AuthorizationService(world.store)
        decision, plan = service.board_deletion(world.owner, world.private_board.id, "Hiring")
        assert decision.allowed is True
        assert plan is not None and plan.tables[-1] == "boards"

    def test_board_deletion_denied_has_no_plan(self, world) -> None:
        service = AuthorizationService(world.store)
        decision, plan = service.board_deletion(world.guest, world.private_board.id, "Hiring")
        assert decision.allowed is False
        assert plan is None

    def test_board_deletion_name_mismatch(self, world) -> None:
        service = AuthorizationService(world.store)
        with pytest.raises(ConfirmationMismatch):
            service.board_deletion(world.owner, world.private_board.id, "hiring")

    def test_workspace_deletion(self, world) -> None:
        service = AuthorizationService(world.store)
        decision, plan = service.workspace_deletion(world.owner, world.workspace.id, "Product")
        assert decision.allowed is True
        assert plan is not None
        assert plan.tables.count("boards") == 3

        denied, none_plan = service.workspace_deletion(world.admin, world.workspace.id, "Product")
        assert denied.allowed is False and none_plan is None
