"""Tests for workspace membership and role checks."""

import pytest

from app.errors import InsufficientRole, NotMember, StateError
from app.services import access_control


class TestAuthorize:

    def test_returns_membership_for_any_member(self, db_session, seed_data):
        member = access_control.authorize(
            db_session, seed_data["guest_id"], seed_data["workspace_id"]
        )
        assert member.role == "guest"

    def test_non_member_rejected(self, db_session, seed_data):
        with pytest.raises(NotMember):
            access_control.authorize(
                db_session, seed_data["outsider_id"], seed_data["workspace_id"]
            )

    def test_role_outside_set_rejected(self, db_session, seed_data):
        with pytest.raises(InsufficientRole):
            access_control.authorize(
                db_session, seed_data["member_id"], seed_data["workspace_id"],
                access_control.MANAGERS,
            )

    def test_role_inside_set_allowed(self, db_session, seed_data):
        member = access_control.authorize(
            db_session, seed_data["admin_id"], seed_data["workspace_id"],
            access_control.MANAGERS,
        )
        assert member.user_id == seed_data["admin_id"]

    def test_membership_in_another_workspace_does_not_count(self, db_session, seed_data):
        from app.services.workspace_service import create_workspace

        other = create_workspace(db_session, seed_data["outsider_id"], "Other Co")
        with pytest.raises(NotMember):
            access_control.authorize(db_session, seed_data["owner_id"], other.id)


class TestPermissions:

    @pytest.mark.parametrize("role,allowed", [
        ("owner", True), ("admin", True), ("member", False), ("guest", False),
    ])
    def test_card_create_is_managers_only(self, db_session, seed_data, role, allowed):
        user_id = seed_data[f"{role}_id"]
        if allowed:
            access_control.require(db_session, user_id, seed_data["workspace_id"], "card.create")
        else:
            with pytest.raises(InsufficientRole):
                access_control.require(
                    db_session, user_id, seed_data["workspace_id"], "card.create"
                )

    def test_workspace_delete_is_owner_only(self, db_session, seed_data):
        with pytest.raises(InsufficientRole):
            access_control.require(
                db_session, seed_data["admin_id"], seed_data["workspace_id"], "workspace.delete"
            )
        access_control.require(
            db_session, seed_data["owner_id"], seed_data["workspace_id"], "workspace.delete"
        )

    def test_has_permission_any_member(self, db_session, seed_data):
        guest = access_control.get_membership(
            db_session, seed_data["guest_id"], seed_data["workspace_id"]
        )
        assert access_control.has_permission(guest, "comment.create")
        assert not access_control.has_permission(guest, "comment.delete_any")


class TestMemberChangeGuards:

    def _member(self, db_session, seed_data, role):
        return access_control.get_membership(
            db_session, seed_data[f"{role}_id"], seed_data["workspace_id"]
        )

    def test_cannot_target_self(self, db_session, seed_data):
        admin = self._member(db_session, seed_data, "admin")
        with pytest.raises(InsufficientRole):
            access_control.check_member_change(admin, admin)

    def test_cannot_target_owner(self, db_session, seed_data):
        admin = self._member(db_session, seed_data, "admin")
        owner = self._member(db_session, seed_data, "owner")
        with pytest.raises(InsufficientRole):
            access_control.check_member_change(admin, owner)

    def test_admin_cannot_target_admin(self, db_session, seed_data, make_user):
        from app.models.workspace import WorkspaceMember

        second = make_user("admin2@test.com")
        db_session.add(WorkspaceMember(
            user_id=second.id, workspace_id=seed_data["workspace_id"], role="admin",
        ))
        db_session.flush()

        admin = self._member(db_session, seed_data, "admin")
        other_admin = access_control.get_membership(
            db_session, second.id, seed_data["workspace_id"]
        )
        with pytest.raises(InsufficientRole):
            access_control.check_member_change(admin, other_admin)

    def test_owner_can_target_admin(self, db_session, seed_data):
        owner = self._member(db_session, seed_data, "owner")
        admin = self._member(db_session, seed_data, "admin")
        access_control.check_member_change(owner, admin)

    def test_owner_cannot_leave(self, db_session, seed_data):
        owner = self._member(db_session, seed_data, "owner")
        with pytest.raises(StateError):
            access_control.check_can_leave(owner)

    def test_member_can_leave(self, db_session, seed_data):
        access_control.check_can_leave(self._member(db_session, seed_data, "member"))
