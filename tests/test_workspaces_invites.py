"""Tests for workspaces, member management and invitations."""

from datetime import datetime, timedelta, timezone

import pytest

from app.errors import (
    Conflict,
    InsufficientRole,
    InvitationExpired,
    NotFound,
    NotMember,
    StateError,
    ValidationError,
)
from app.models.board import Board
from app.models.card import CardMember
from app.models.invite import WorkspaceInvitation
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember
from app.services import access_control, card_service, invite_service, workspace_service


class TestWorkspaces:

    def test_creator_becomes_owner(self, db_session, make_user):
        user = make_user("solo@test.com")
        workspace = workspace_service.create_workspace(db_session, user.id, "Solo Studio")
        member = access_control.get_membership(db_session, user.id, workspace.id)
        assert member.role == "owner"
        assert workspace.owner_id == user.id

    def test_name_too_short(self, db_session, make_user):
        user = make_user("solo@test.com")
        with pytest.raises(ValidationError):
            workspace_service.create_workspace(db_session, user.id, "ab")

    def test_list_my_workspaces_with_role(self, db_session, seed_data):
        rows = workspace_service.list_my_workspaces(db_session, seed_data["guest_id"])
        assert [(ws.id, role) for ws, role in rows] == [(seed_data["workspace_id"], "guest")]

    def test_member_cannot_update(self, db_session, seed_data):
        with pytest.raises(InsufficientRole):
            workspace_service.update_workspace(
                db_session, seed_data["member_id"], seed_data["workspace_id"], {"name": "Nope"}
            )

    def test_admin_updates(self, db_session, seed_data):
        workspace = workspace_service.update_workspace(
            db_session, seed_data["admin_id"], seed_data["workspace_id"],
            {"name": "Acme HQ", "visibility": "public"},
        )
        assert (workspace.name, workspace.visibility) == ("Acme HQ", "public")

    def test_only_owner_deletes(self, db_session, seed_data):
        with pytest.raises(InsufficientRole):
            workspace_service.delete_workspace(
                db_session, seed_data["admin_id"], seed_data["workspace_id"]
            )

    def test_delete_cascades(self, db_session, seed_data):
        card_service.create_card(
            db_session, seed_data["owner_id"], seed_data["board_id"], seed_data["todo_id"], "Task"
        )
        invite_service.invite_member(
            db_session, seed_data["owner_id"], seed_data["workspace_id"], "new@test.com"
        )
        db_session.commit()

        workspace_service.delete_workspace(db_session, seed_data["owner_id"], seed_data["workspace_id"])
        db_session.commit()

        assert db_session.get(Workspace, seed_data["workspace_id"]) is None
        assert db_session.query(Board).count() == 0
        assert db_session.query(WorkspaceMember).count() == 0
        assert db_session.query(WorkspaceInvitation).count() == 0


class TestMembers:

    def test_members_sorted_by_rank(self, db_session, seed_data):
        members = workspace_service.list_members(db_session, seed_data["guest_id"], seed_data["workspace_id"])
        assert [m.role for m in members] == ["owner", "admin", "member", "guest"]

    def test_outsider_cannot_list(self, db_session, seed_data):
        with pytest.raises(NotMember):
            workspace_service.list_members(db_session, seed_data["outsider_id"], seed_data["workspace_id"])

    def test_admin_changes_member_role(self, db_session, seed_data):
        member = workspace_service.update_member_role(
            db_session, seed_data["admin_id"], seed_data["workspace_id"],
            seed_data["member_id"], "guest",
        )
        assert member.role == "guest"

    def test_owner_role_cannot_be_assigned(self, db_session, seed_data):
        with pytest.raises(ValidationError):
            workspace_service.update_member_role(
                db_session, seed_data["owner_id"], seed_data["workspace_id"],
                seed_data["member_id"], "owner",
            )

    def test_admin_cannot_demote_owner(self, db_session, seed_data):
        with pytest.raises(InsufficientRole):
            workspace_service.update_member_role(
                db_session, seed_data["admin_id"], seed_data["workspace_id"],
                seed_data["owner_id"], "member",
            )

    def test_member_cannot_manage(self, db_session, seed_data):
        with pytest.raises(InsufficientRole):
            workspace_service.remove_member(
                db_session, seed_data["member_id"], seed_data["workspace_id"], seed_data["guest_id"]
            )

    def test_remove_member_drops_assignments(self, db_session, seed_data):
        card = card_service.create_card(
            db_session, seed_data["owner_id"], seed_data["board_id"], seed_data["todo_id"], "Task",
            assignee_ids=[seed_data["member_id"]],
        )
        workspace_service.remove_member(
            db_session, seed_data["owner_id"], seed_data["workspace_id"], seed_data["member_id"]
        )
        assert access_control.get_membership(
            db_session, seed_data["member_id"], seed_data["workspace_id"]
        ) is None
        assert db_session.query(CardMember).filter_by(card_id=card.id).count() == 0

    def test_remove_unknown_member(self, db_session, seed_data):
        with pytest.raises(NotFound):
            workspace_service.remove_member(
                db_session, seed_data["owner_id"], seed_data["workspace_id"], seed_data["outsider_id"]
            )

    def test_leave(self, db_session, seed_data):
        workspace_service.leave_workspace(db_session, seed_data["guest_id"], seed_data["workspace_id"])
        assert access_control.get_membership(
            db_session, seed_data["guest_id"], seed_data["workspace_id"]
        ) is None

    def test_owner_cannot_leave(self, db_session, seed_data):
        with pytest.raises(StateError):
            workspace_service.leave_workspace(db_session, seed_data["owner_id"], seed_data["workspace_id"])

    def test_transfer_ownership(self, db_session, seed_data):
        workspace = workspace_service.transfer_ownership(
            db_session, seed_data["owner_id"], seed_data["workspace_id"], seed_data["member_id"]
        )
        assert workspace.owner_id == seed_data["member_id"]
        roles = {
            m.user_id: m.role
            for m in db_session.query(WorkspaceMember).filter_by(workspace_id=workspace.id)
        }
        assert roles[seed_data["member_id"]] == "owner"
        assert roles[seed_data["owner_id"]] == "admin"

    def test_transfer_requires_owner(self, db_session, seed_data):
        with pytest.raises(InsufficientRole):
            workspace_service.transfer_ownership(
                db_session, seed_data["admin_id"], seed_data["workspace_id"], seed_data["member_id"]
            )


class TestInvitations:

    def _invite(self, db_session, seed_data, email="new@test.com", role="member", inviter="owner_id"):
        return invite_service.invite_member(
            db_session, seed_data[inviter], seed_data["workspace_id"], email, role=role
        )

    def test_invite_creates_pending(self, db_session, seed_data):
        invitation = self._invite(db_session, seed_data, "New@Test.com")
        assert invitation.status == "pending"
        assert invitation.email == "new@test.com"

    def test_member_cannot_invite(self, db_session, seed_data):
        with pytest.raises(InsufficientRole):
            self._invite(db_session, seed_data, inviter="member_id")

    def test_invalid_email(self, db_session, seed_data):
        with pytest.raises(ValidationError):
            self._invite(db_session, seed_data, "not-an-email")

    def test_existing_member_conflict(self, db_session, seed_data):
        with pytest.raises(Conflict):
            self._invite(db_session, seed_data, "member@test.com")

    def test_duplicate_pending_conflict(self, db_session, seed_data):
        self._invite(db_session, seed_data)
        with pytest.raises(Conflict):
            self._invite(db_session, seed_data)

    def test_expired_pending_does_not_block(self, db_session, seed_data):
        first = self._invite(db_session, seed_data)
        first.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        second = self._invite(db_session, seed_data)
        assert first.status == "expired"
        assert second.status == "pending"

    def test_accept_creates_membership(self, db_session, seed_data, make_user):
        invitation = self._invite(db_session, seed_data, role="admin")
        user = make_user("new@test.com")

        accepted, membership = invite_service.accept_invitation(db_session, user, invitation.id)

        assert accepted.status == "accepted"
        assert membership.role == "admin"
        assert access_control.get_membership(db_session, user.id, seed_data["workspace_id"])

    def test_reject(self, db_session, seed_data, make_user):
        invitation = self._invite(db_session, seed_data)
        user = make_user("new@test.com")
        invite_service.reject_invitation(db_session, user, invitation.id)
        assert invitation.status == "rejected"
        assert access_control.get_membership(db_session, user.id, seed_data["workspace_id"]) is None

    def test_other_email_cannot_answer(self, db_session, seed_data):
        invitation = self._invite(db_session, seed_data)
        outsider = db_session.get(User, seed_data["outsider_id"])
        with pytest.raises(InsufficientRole):
            invite_service.accept_invitation(db_session, outsider, invitation.id)

    def test_answer_twice(self, db_session, seed_data, make_user):
        invitation = self._invite(db_session, seed_data)
        user = make_user("new@test.com")
        invite_service.reject_invitation(db_session, user, invitation.id)
        with pytest.raises(StateError):
            invite_service.accept_invitation(db_session, user, invitation.id)

    def test_expired_invitation_is_marked(self, db_session, seed_data, make_user):
        invitation = self._invite(db_session, seed_data)
        invitation.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        user = make_user("new@test.com")
        invitation_id = invitation.id

        with pytest.raises(InvitationExpired):
            invite_service.accept_invitation(db_session, user, invitation_id)

        # Flushed, not committed: committing is left to the caller.
        stored = (
            db_session.query(WorkspaceInvitation.status)
            .filter_by(id=invitation_id)
            .scalar()
        )
        assert stored == "expired"

    def test_list_my_invitations(self, db_session, seed_data, make_user):
        live = self._invite(db_session, seed_data)
        user = make_user("new@test.com")
        assert [inv.id for inv in invite_service.list_my_invitations(db_session, user)] == [live.id]

        live.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        assert invite_service.list_my_invitations(db_session, user) == []
        assert live.status == "expired"
