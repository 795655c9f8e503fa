"""Invitations blueprint — /api/invitations/*

The invitee's side of workspace invitations. Invitations are matched to
the logged-in user by email address.

Route Map:
  GET  /api/invitations               — My pending invitations
  POST /api/invitations/<id>/accept   — Accept and join the workspace
  POST /api/invitations/<id>/reject   — Decline
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from app.errors import InvitationExpired
from app.extensions import db
from app.services import invite_service
from app.services.activity_service import log_activity
from app.services.background import run_in_background
from app.services.notification_service import notify_invitation_response

invitations_bp = Blueprint("invitations", __name__, url_prefix="/api/invitations")


@invitations_bp.route("", methods=["GET"])
@login_required
def my_invitations():
    invitations = invite_service.list_my_invitations(db.session, current_user)
    # Lapsed invitations were flipped to expired while listing.
    db.session.commit()
    return jsonify({"invitations": [inv.to_dict() for inv in invitations]})


@invitations_bp.route("/<invitation_id>/accept", methods=["POST"])
@login_required
def accept(invitation_id):
    try:
        invitation, membership = invite_service.accept_invitation(
            db.session, current_user, invitation_id
        )
    except InvitationExpired:
        # Persist the expired status before the 409 goes out.
        db.session.commit()
        raise
    db.session.commit()

    run_in_background(notify_invitation_response, invitation.id, current_user.id)
    run_in_background(
        log_activity, current_user.id, "invitation.accepted", "workspace",
        invitation.workspace_id, None, {"role": membership.role},
    )
    return jsonify({
        "invitation": invitation.to_dict(),
        "member": membership.to_dict(),
    })


@invitations_bp.route("/<invitation_id>/reject", methods=["POST"])
@login_required
def reject(invitation_id):
    try:
        invitation = invite_service.reject_invitation(db.session, current_user, invitation_id)
    except InvitationExpired:
        db.session.commit()
        raise
    db.session.commit()

    run_in_background(notify_invitation_response, invitation.id, current_user.id)
    return jsonify({"invitation": invitation.to_dict()})
