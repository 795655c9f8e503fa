"""Invite service — workspace invitations by email.

Handles the full lifecycle of a workspace invitation:
- invite: owner/admin invites an email address with a role
- list: pending invitations addressed to the current user
- accept / reject: the invitee answers; accepting creates the membership

Only one pending invitation may exist per (workspace, email). Pending
invitations past `expires_at` are flipped to `expired` whenever they are
touched. Answering a lapsed invitation raises InvitationExpired after the
status change is flushed; the caller commits it before returning the error.

Functions flush but do NOT commit — the caller commits.
"""

import logging
import re
from datetime import datetime, timedelta, timezone

from app.errors import (
    Conflict,
    InsufficientRole,
    InvitationExpired,
    NotFound,
    StateError,
    ValidationError,
)
from app.models.invite import WorkspaceInvitation
from app.models.user import User
from app.models.workspace import WorkspaceMember
from app.services import access_control
from app.services.workspace_service import get_workspace_or_404

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalize_email(email):
    email = (email or "").lower().strip()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email address is required.")
    return email


def _expire_if_needed(invitation, now=None):
    """Flip a stale pending invitation to `expired`. Returns True if it is expired."""
    if invitation.status == "expired":
        return True
    if invitation.status == "pending" and invitation.is_expired:
        invitation.status = "expired"
        invitation.responded_at = now or datetime.now(timezone.utc)
        return True
    return False


def invite_member(session, inviter_id, workspace_id, email, role="member", expires_days=7):
    """Create a pending invitation.

    Args:
        session: SQLAlchemy session.
        inviter_id: Acting user (owner or admin).
        workspace_id: Target workspace.
        email: Invitee address (lowercased).
        role: admin | member | guest.
        expires_days: Days until the invitation lapses (default 7).

    Returns:
        WorkspaceInvitation: the new pending invitation.

    Raises:
        Conflict: the address already belongs to a member, or a pending
            invitation for it exists.
    """
    email = _normalize_email(email)
    if role not in access_control.ASSIGNABLE_ROLES:
        raise ValidationError(
            f"Invalid role '{role}'. Must be one of: {', '.join(access_control.ASSIGNABLE_ROLES)}"
        )

    get_workspace_or_404(session, workspace_id)
    access_control.require(session, inviter_id, workspace_id, "invite.create")

    existing_member = (
        session.query(WorkspaceMember)
        .join(User, User.id == WorkspaceMember.user_id)
        .filter(WorkspaceMember.workspace_id == workspace_id, User.email == email)
        .first()
    )
    if existing_member is not None:
        raise Conflict("This user is already a member of the workspace.")

    pending = (
        session.query(WorkspaceInvitation)
        .filter_by(workspace_id=workspace_id, email=email, status="pending")
        .all()
    )
    for invitation in pending:
        if not _expire_if_needed(invitation):
            raise Conflict("A pending invitation already exists for this email.")

    invitation = WorkspaceInvitation(
        workspace_id=workspace_id,
        email=email,
        role=role,
        invited_by_id=inviter_id,
        status="pending",
        expires_at=datetime.now(timezone.utc) + timedelta(days=expires_days),
    )
    session.add(invitation)
    session.flush()
    logger.info("Invitation %s sent to %s for workspace %s", invitation.id, email, workspace_id)
    return invitation


def list_my_invitations(session, user):
    """Pending, unexpired invitations addressed to the user's email."""
    invitations = (
        session.query(WorkspaceInvitation)
        .filter_by(email=user.email.lower(), status="pending")
        .order_by(WorkspaceInvitation.created_at.desc())
        .all()
    )
    live = [inv for inv in invitations if not _expire_if_needed(inv)]
    session.flush()
    return live


def list_workspace_invitations(session, user_id, workspace_id):
    get_workspace_or_404(session, workspace_id)
    access_control.require(session, user_id, workspace_id, "invite.create")
    invitations = (
        session.query(WorkspaceInvitation)
        .filter_by(workspace_id=workspace_id)
        .order_by(WorkspaceInvitation.created_at.desc())
        .all()
    )
    for invitation in invitations:
        _expire_if_needed(invitation)
    session.flush()
    return invitations


def _get_answerable(session, user, invitation_id):
    invitation = session.get(WorkspaceInvitation, invitation_id)
    if invitation is None:
        raise NotFound("Invitation not found.")
    if invitation.email.lower() != user.email.lower():
        raise InsufficientRole("This invitation was sent to a different email address.")
    if invitation.status != "pending":
        raise StateError(f"This invitation has already been {invitation.status}.")
    if _expire_if_needed(invitation):
        session.flush()
        raise InvitationExpired()
    return invitation


def accept_invitation(session, user, invitation_id):
    """Accept an invitation and join the workspace with its role.

    Returns:
        (invitation, membership)
    """
    invitation = _get_answerable(session, user, invitation_id)

    membership = access_control.get_membership(session, user.id, invitation.workspace_id)
    if membership is None:
        membership = WorkspaceMember(
            user_id=user.id,
            workspace_id=invitation.workspace_id,
            role=invitation.role,
        )
        session.add(membership)

    invitation.status = "accepted"
    invitation.responded_at = datetime.now(timezone.utc)
    session.flush()
    return invitation, membership


def reject_invitation(session, user, invitation_id):
    invitation = _get_answerable(session, user, invitation_id)
    invitation.status = "rejected"
    invitation.responded_at = datetime.now(timezone.utc)
    session.flush()
    return invitation
