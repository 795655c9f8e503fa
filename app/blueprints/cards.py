"""Cards blueprint — /api/cards/*

Cards are created under their board: POST /api/boards/<id>/cards.

Route Map:
  GET    /api/cards/<id>                        — Card with members and labels
  PATCH  /api/cards/<id>                        — Update fields
  POST   /api/cards/<id>/move                   — Move to list + index
  POST   /api/cards/<id>/trash                  — Move to trash
  POST   /api/cards/<id>/restore                — Restore from trash
  DELETE /api/cards/<id>                        — Delete permanently
  POST   /api/cards/<id>/members                — Assign member
  DELETE /api/cards/<id>/members/<user_id>      — Unassign member
  POST   /api/cards/<id>/labels                 — Attach label
  DELETE /api/cards/<id>/labels/<label_id>      — Detach label
  GET    /api/cards/<id>/comments               — Comments
  POST   /api/cards/<id>/comments               — Add comment / reply
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from app.blueprints.helpers import json_body, retention_days
from app.extensions import db
from app.services import card_service, comment_service, label_service
from app.services.activity_service import log_activity
from app.services.background import run_in_background
from app.services.notification_service import notify_task_assigned

cards_bp = Blueprint("cards", __name__, url_prefix="/api/cards")


# ─── Card ────────────────────────────────────────────────────────

@cards_bp.route("/<card_id>", methods=["GET"])
@login_required
def get_card(card_id):
    card = card_service.get_card(db.session, current_user.id, card_id)
    return jsonify({"card": card.to_dict(include_relations=True)})


@cards_bp.route("/<card_id>", methods=["PATCH"])
@login_required
def update_card(card_id):
    data = json_body()
    card = card_service.update_card(db.session, current_user.id, card_id, data)
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "card.updated", "card", card.id, card.title,
        {"fields": sorted(data)},
    )
    return jsonify({"card": card.to_dict(include_relations=True)})


@cards_bp.route("/<card_id>/move", methods=["POST"])
@login_required
def move_card(card_id):
    data = json_body()
    card = card_service.move_card(
        db.session, current_user.id, card_id, data.get("to_list_id"), data.get("to_index")
    )
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "card.moved", "card", card.id, card.title,
        {"list_id": card.list_id, "order_idx": card.order_idx},
    )
    return jsonify({"card": card.to_dict()})


@cards_bp.route("/<card_id>/trash", methods=["POST"])
@login_required
def trash_card(card_id):
    card = card_service.trash_card(db.session, current_user.id, card_id)
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "card.trashed", "card", card.id, card.title,
    )
    return jsonify({"card": card.to_dict()})


@cards_bp.route("/<card_id>/restore", methods=["POST"])
@login_required
def restore_card(card_id):
    card = card_service.restore_card(
        db.session, current_user.id, card_id, retention_days=retention_days()
    )
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "card.restored", "card", card.id, card.title,
    )
    return jsonify({"card": card.to_dict()})


@cards_bp.route("/<card_id>", methods=["DELETE"])
@login_required
def delete_card(card_id):
    title = card_service.delete_card_permanently(db.session, current_user.id, card_id)
    db.session.commit()

    run_in_background(log_activity, current_user.id, "card.deleted", "card", card_id, title)
    return jsonify({"success": True})


# ─── Assignees ───────────────────────────────────────────────────

@cards_bp.route("/<card_id>/members", methods=["POST"])
@login_required
def assign_member(card_id):
    user_id = json_body().get("user_id")
    assignment = card_service.assign_member(db.session, current_user.id, card_id, user_id)
    db.session.commit()

    if assignment.user_id != current_user.id:
        run_in_background(notify_task_assigned, current_user.id, assignment.user_id, card_id)
    run_in_background(
        log_activity, current_user.id, "card.assigned", "card", card_id, None,
        {"user_id": user_id},
    )
    return jsonify({"card_id": card_id, "user_id": user_id}), 201


@cards_bp.route("/<card_id>/members/<user_id>", methods=["DELETE"])
@login_required
def unassign_member(card_id, user_id):
    card_service.unassign_member(db.session, current_user.id, card_id, user_id)
    db.session.commit()
    return jsonify({"success": True})


# ─── Labels ──────────────────────────────────────────────────────

@cards_bp.route("/<card_id>/labels", methods=["POST"])
@login_required
def add_label(card_id):
    label_id = json_body().get("label_id")
    label_service.add_label_to_card(db.session, current_user.id, card_id, label_id)
    db.session.commit()
    return jsonify({"card_id": card_id, "label_id": label_id})


@cards_bp.route("/<card_id>/labels/<label_id>", methods=["DELETE"])
@login_required
def remove_label(card_id, label_id):
    label_service.remove_label_from_card(db.session, current_user.id, card_id, label_id)
    db.session.commit()
    return jsonify({"success": True})


# ─── Comments ────────────────────────────────────────────────────

@cards_bp.route("/<card_id>/comments", methods=["GET"])
@login_required
def get_comments(card_id):
    comments = comment_service.list_comments(db.session, current_user.id, card_id)
    return jsonify({"comments": [c.to_dict() for c in comments]})


@cards_bp.route("/<card_id>/comments", methods=["POST"])
@login_required
def add_comment(card_id):
    data = json_body()
    comment = comment_service.add_comment(
        db.session, current_user.id, card_id, data.get("body"), parent_id=data.get("parent_id")
    )
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "comment.created", "card", card_id, None,
        {"comment_id": comment.id},
    )
    return jsonify({"comment": comment.to_dict()}), 201
