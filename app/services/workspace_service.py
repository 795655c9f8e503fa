"""Workspace service — workspaces and their member lists.

The creator of a workspace becomes its `owner` member. Membership changes
go through the guards in access_control; the owner row is never changed
here except by transfer_ownership().

Functions flush but do NOT commit — the caller commits.
"""

import logging

from sqlalchemy import select

from app.errors import NotFound, ValidationError
from app.models.board import Board
from app.models.card import Card, CardMember
from app.models.invite import WorkspaceInvitation
from app.models.notification import Notification
from app.models.workspace import Workspace, WorkspaceMember
from app.services import access_control
from app.services.board_service import purge_boards
from app.services.validators import choice, require_text, sanitize

logger = logging.getLogger(__name__)


def _validate_name(name):
    return require_text(name, "Workspace name", max_length=255, min_length=3)


def _validate_visibility(visibility):
    return choice(visibility, "visibility", Workspace.VISIBILITIES)


def get_workspace_or_404(session, workspace_id):
    workspace = session.get(Workspace, workspace_id)
    if workspace is None:
        raise NotFound("Workspace not found.")
    return workspace


def create_workspace(session, owner_id, name, description=None, visibility="private"):
    """Create a workspace and make `owner_id` its owner member."""
    name = _validate_name(name)
    visibility = _validate_visibility(visibility or "private")

    workspace = Workspace(
        name=name,
        description=sanitize(description),
        visibility=visibility,
        owner_id=owner_id,
    )
    session.add(workspace)
    session.flush()

    session.add(
        WorkspaceMember(user_id=owner_id, workspace_id=workspace.id, role="owner")
    )
    session.flush()

    logger.info("Workspace %s created by %s", workspace.id, owner_id)
    return workspace


def list_my_workspaces(session, user_id):
    """Returns [(workspace, role), ...] newest first."""
    rows = (
        session.query(Workspace, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .filter(WorkspaceMember.user_id == user_id)
        .order_by(Workspace.created_at.desc())
        .all()
    )
    return rows


def get_workspace(session, user_id, workspace_id):
    """Returns (workspace, membership)."""
    workspace = get_workspace_or_404(session, workspace_id)
    member = access_control.require(session, user_id, workspace_id, "workspace.view")
    return workspace, member


def update_workspace(session, user_id, workspace_id, data):
    if "name" in data:
        name = _validate_name(data["name"])
    if "visibility" in data:
        _validate_visibility(data["visibility"])

    workspace = get_workspace_or_404(session, workspace_id)
    access_control.require(session, user_id, workspace_id, "workspace.update")

    if "name" in data:
        workspace.name = name
    if "description" in data:
        workspace.description = sanitize(data["description"])
    if "visibility" in data:
        workspace.visibility = data["visibility"]
    session.flush()
    return workspace


def delete_workspace(session, user_id, workspace_id):
    """Owner-only. Removes boards (with everything under them), members,
    invitations and notifications tied to the workspace."""
    workspace = get_workspace_or_404(session, workspace_id)
    access_control.require(session, user_id, workspace_id, "workspace.delete")

    board_ids = [
        row.id for row in session.query(Board.id).filter_by(workspace_id=workspace_id)
    ]
    purge_boards(session, board_ids)

    invitation_ids = [
        row.id
        for row in session.query(WorkspaceInvitation.id).filter_by(workspace_id=workspace_id)
    ]
    session.query(Notification).filter(
        Notification.workspace_id == workspace_id
    ).delete()
    if invitation_ids:
        session.query(Notification).filter(
            Notification.invitation_id.in_(invitation_ids)
        ).update({"invitation_id": None}, synchronize_session=False)
    session.query(WorkspaceInvitation).filter_by(workspace_id=workspace_id).delete()
    session.query(WorkspaceMember).filter_by(workspace_id=workspace_id).delete()
    session.delete(workspace)
    session.flush()
    logger.info("Workspace %s deleted by %s (%d boards)", workspace_id, user_id, len(board_ids))


# ──────────────────────────────────────────────
# Members
# ──────────────────────────────────────────────

def list_members(session, user_id, workspace_id):
    """Members ordered by role rank (owner first), then join date."""
    get_workspace_or_404(session, workspace_id)
    access_control.require(session, user_id, workspace_id, "workspace.view")
    members = (
        session.query(WorkspaceMember)
        .filter_by(workspace_id=workspace_id)
        .order_by(WorkspaceMember.created_at)
        .all()
    )
    members.sort(key=lambda m: -access_control.ROLE_RANK.get(m.role, 0))
    return members


def _get_target_member(session, workspace_id, target_user_id):
    target = access_control.get_membership(session, target_user_id, workspace_id)
    if target is None:
        raise NotFound("Member not found.")
    return target


def update_member_role(session, actor_id, workspace_id, target_user_id, role):
    if role not in access_control.ASSIGNABLE_ROLES:
        raise ValidationError(
            f"Invalid role '{role}'. Must be one of: {', '.join(access_control.ASSIGNABLE_ROLES)}"
        )

    get_workspace_or_404(session, workspace_id)
    actor = access_control.require(session, actor_id, workspace_id, "member.manage")
    target = _get_target_member(session, workspace_id, target_user_id)
    access_control.check_member_change(actor, target)

    target.role = role
    session.flush()
    return target


def remove_member(session, actor_id, workspace_id, target_user_id):
    get_workspace_or_404(session, workspace_id)
    actor = access_control.require(session, actor_id, workspace_id, "member.manage")
    target = _get_target_member(session, workspace_id, target_user_id)
    access_control.check_member_change(actor, target)

    _drop_card_assignments(session, workspace_id, target_user_id)
    session.delete(target)
    session.flush()


def leave_workspace(session, user_id, workspace_id):
    get_workspace_or_404(session, workspace_id)
    member = access_control.require(session, user_id, workspace_id, "workspace.view")
    access_control.check_can_leave(member)

    _drop_card_assignments(session, workspace_id, user_id)
    session.delete(member)
    session.flush()


def transfer_ownership(session, owner_id, workspace_id, new_owner_id):
    """Hand the owner role to another member; the old owner becomes admin."""
    workspace = get_workspace_or_404(session, workspace_id)
    current = access_control.require(session, owner_id, workspace_id, "workspace.transfer")
    if new_owner_id == owner_id:
        raise ValidationError("You already own this workspace.")
    target = _get_target_member(session, workspace_id, new_owner_id)

    current.role = "admin"
    target.role = "owner"
    workspace.owner_id = target.user_id
    session.flush()
    logger.info("Workspace %s ownership %s -> %s", workspace_id, owner_id, new_owner_id)
    return workspace


def _drop_card_assignments(session, workspace_id, user_id):
    card_ids = (
        select(Card.id)
        .join(Board, Board.id == Card.board_id)
        .where(Board.workspace_id == workspace_id)
    )
    session.query(CardMember).filter(
        CardMember.user_id == user_id,
        CardMember.card_id.in_(card_ids),
    ).delete(synchronize_session="fetch")
