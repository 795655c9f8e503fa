"""Workspaces blueprint — /api/workspaces/*

Workspace CRUD, member management, invitations and the workspace-level
board and trash listings. JSON in, JSON out; CSRF-exempt (session auth).

Route Map:
  GET    /api/workspaces                              — My workspaces
  POST   /api/workspaces                              — Create workspace
  GET    /api/workspaces/<id>                         — Workspace + my role
  PATCH  /api/workspaces/<id>                         — Update workspace
  DELETE /api/workspaces/<id>                         — Delete workspace (owner)
  GET    /api/workspaces/<id>/members                 — Member list
  PATCH  /api/workspaces/<id>/members/<user_id>       — Change member role
  DELETE /api/workspaces/<id>/members/<user_id>       — Remove member
  POST   /api/workspaces/<id>/leave                   — Leave workspace
  POST   /api/workspaces/<id>/transfer                — Transfer ownership
  GET    /api/workspaces/<id>/invitations             — Invitations sent
  POST   /api/workspaces/<id>/invitations             — Invite by email
  GET    /api/workspaces/<id>/boards                  — Active boards
  POST   /api/workspaces/<id>/boards                  — Create board
  GET    /api/workspaces/<id>/trash/boards            — Trashed boards
  GET    /api/workspaces/<id>/trash/cards             — Trashed cards
"""

import logging

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from app.blueprints.helpers import json_body, retention_days
from app.extensions import db
from app.services import board_service, invite_service, trash_service, workspace_service
from app.services.activity_service import log_activity
from app.services.background import run_in_background
from app.services.notification_service import notify_board_created, notify_workspace_invitation

logger = logging.getLogger(__name__)

workspaces_bp = Blueprint("workspaces", __name__, url_prefix="/api/workspaces")


# ─── Workspaces ──────────────────────────────────────────────────

@workspaces_bp.route("", methods=["GET"])
@login_required
def list_workspaces():
    rows = workspace_service.list_my_workspaces(db.session, current_user.id)
    return jsonify({
        "workspaces": [dict(ws.to_dict(), role=role) for ws, role in rows],
    })


@workspaces_bp.route("", methods=["POST"])
@login_required
def create_workspace():
    data = json_body()
    workspace = workspace_service.create_workspace(
        db.session,
        current_user.id,
        data.get("name"),
        description=data.get("description"),
        visibility=data.get("visibility"),
    )
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "workspace.created", "workspace",
        workspace.id, workspace.name,
    )
    return jsonify({"workspace": dict(workspace.to_dict(), role="owner")}), 201


@workspaces_bp.route("/<workspace_id>", methods=["GET"])
@login_required
def get_workspace(workspace_id):
    workspace, member = workspace_service.get_workspace(db.session, current_user.id, workspace_id)
    return jsonify({"workspace": dict(workspace.to_dict(), role=member.role)})


@workspaces_bp.route("/<workspace_id>", methods=["PATCH"])
@login_required
def update_workspace(workspace_id):
    data = json_body()
    workspace = workspace_service.update_workspace(
        db.session, current_user.id, workspace_id, data
    )
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "workspace.updated", "workspace",
        workspace.id, workspace.name, {"fields": sorted(data)},
    )
    return jsonify({"workspace": workspace.to_dict()})


@workspaces_bp.route("/<workspace_id>", methods=["DELETE"])
@login_required
def delete_workspace(workspace_id):
    workspace_service.delete_workspace(db.session, current_user.id, workspace_id)
    db.session.commit()
    return jsonify({"success": True})


# ─── Members ─────────────────────────────────────────────────────

@workspaces_bp.route("/<workspace_id>/members", methods=["GET"])
@login_required
def list_members(workspace_id):
    members = workspace_service.list_members(db.session, current_user.id, workspace_id)
    return jsonify({"members": [m.to_dict() for m in members]})


@workspaces_bp.route("/<workspace_id>/members/<user_id>", methods=["PATCH"])
@login_required
def update_member(workspace_id, user_id):
    role = json_body().get("role")
    member = workspace_service.update_member_role(
        db.session, current_user.id, workspace_id, user_id, role
    )
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "member.role_changed", "workspace",
        workspace_id, None, {"user_id": user_id, "role": member.role},
    )
    return jsonify({"member": member.to_dict()})


@workspaces_bp.route("/<workspace_id>/members/<user_id>", methods=["DELETE"])
@login_required
def remove_member(workspace_id, user_id):
    workspace_service.remove_member(db.session, current_user.id, workspace_id, user_id)
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "member.removed", "workspace",
        workspace_id, None, {"user_id": user_id},
    )
    return jsonify({"success": True})


@workspaces_bp.route("/<workspace_id>/leave", methods=["POST"])
@login_required
def leave(workspace_id):
    workspace_service.leave_workspace(db.session, current_user.id, workspace_id)
    db.session.commit()

    run_in_background(log_activity, current_user.id, "member.left", "workspace", workspace_id)
    return jsonify({"success": True})


@workspaces_bp.route("/<workspace_id>/transfer", methods=["POST"])
@login_required
def transfer(workspace_id):
    new_owner_id = json_body().get("user_id")
    workspace = workspace_service.transfer_ownership(
        db.session, current_user.id, workspace_id, new_owner_id
    )
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "workspace.ownership_transferred", "workspace",
        workspace.id, workspace.name, {"new_owner_id": new_owner_id},
    )
    return jsonify({"workspace": workspace.to_dict()})


# ─── Invitations ─────────────────────────────────────────────────

@workspaces_bp.route("/<workspace_id>/invitations", methods=["GET"])
@login_required
def list_invitations(workspace_id):
    invitations = invite_service.list_workspace_invitations(
        db.session, current_user.id, workspace_id
    )
    db.session.commit()
    return jsonify({"invitations": [inv.to_dict() for inv in invitations]})


@workspaces_bp.route("/<workspace_id>/invitations", methods=["POST"])
@login_required
def invite(workspace_id):
    data = json_body()
    invitation = invite_service.invite_member(
        db.session,
        current_user.id,
        workspace_id,
        data.get("email"),
        role=data.get("role") or "member",
        expires_days=current_app.config.get("INVITATION_EXPIRY_DAYS", 7),
    )
    db.session.commit()

    run_in_background(notify_workspace_invitation, current_user.id, invitation.id)
    run_in_background(
        log_activity, current_user.id, "invitation.sent", "workspace",
        workspace_id, invitation.email, {"role": invitation.role},
    )
    return jsonify({"invitation": invitation.to_dict()}), 201


# ─── Boards ──────────────────────────────────────────────────────

@workspaces_bp.route("/<workspace_id>/boards", methods=["GET"])
@login_required
def list_boards(workspace_id):
    boards = board_service.list_boards(db.session, current_user.id, workspace_id)
    return jsonify({"boards": [b.to_dict() for b in boards]})


@workspaces_bp.route("/<workspace_id>/boards", methods=["POST"])
@login_required
def create_board(workspace_id):
    data = json_body()
    board = board_service.create_board(
        db.session,
        current_user.id,
        workspace_id,
        data.get("name"),
        key_slug=data.get("key_slug"),
        mode=data.get("mode"),
        lists=data.get("lists"),
        board_limit=current_app.config.get(
            "FREE_PLAN_BOARD_LIMIT", board_service.DEFAULT_FREE_BOARD_LIMIT
        ),
    )
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "board.created", "board", board.id, board.name,
    )
    run_in_background(notify_board_created, current_user.id, board.id)
    return jsonify({"board": board.to_dict(include_lists=True)}), 201


# ─── Trash ───────────────────────────────────────────────────────

@workspaces_bp.route("/<workspace_id>/trash/boards", methods=["GET"])
@login_required
def trashed_boards(workspace_id):
    rows = board_service.list_trashed_boards(
        db.session, current_user.id, workspace_id, retention_days=retention_days()
    )
    return jsonify({
        "boards": [dict(board.to_dict(), days_left=days_left) for board, days_left in rows],
    })


@workspaces_bp.route("/<workspace_id>/trash/cards", methods=["GET"])
@login_required
def trashed_cards(workspace_id):
    rows = trash_service.list_trashed_cards_in_workspace(
        db.session, current_user.id, workspace_id, retention_days=retention_days()
    )
    return jsonify({
        "cards": [dict(card.to_dict(), days_left=days_left) for card, days_left in rows],
    })
