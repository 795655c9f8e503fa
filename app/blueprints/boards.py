"""Boards blueprint — /api/boards/*

Board lifecycle (pin, trash, restore, permanent delete) plus the lists,
labels and trashed cards that hang off a board. Boards are created under
their workspace: POST /api/workspaces/<id>/boards.

Route Map:
  GET    /api/boards/<id>                 — Board with its lists
  PATCH  /api/boards/<id>                 — Rename / key slug / mode
  POST   /api/boards/<id>/pin             — Toggle pinned
  POST   /api/boards/<id>/trash           — Move to trash
  POST   /api/boards/<id>/restore         — Restore from trash
  DELETE /api/boards/<id>                 — Delete permanently
  GET    /api/boards/<id>/lists           — Lists with active card counts
  POST   /api/boards/<id>/lists           — Create list
  PUT    /api/boards/<id>/lists/order     — Reorder all lists
  GET    /api/boards/<id>/labels          — Labels
  POST   /api/boards/<id>/labels          — Create label
  POST   /api/boards/<id>/cards           — Create card
  GET    /api/boards/<id>/trash           — Trashed cards with days left
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from app.blueprints.helpers import json_body, retention_days
from app.extensions import db
from app.services import board_service, card_service, label_service, list_service, trash_service
from app.services.activity_service import log_activity
from app.services.background import run_in_background
from app.services.notification_service import notify_board_trashed, notify_task_assigned

boards_bp = Blueprint("boards", __name__, url_prefix="/api/boards")


# ─── Board ───────────────────────────────────────────────────────

@boards_bp.route("/<board_id>", methods=["GET"])
@login_required
def get_board(board_id):
    board = board_service.get_board(db.session, current_user.id, board_id)
    return jsonify({"board": board.to_dict(include_lists=True)})


@boards_bp.route("/<board_id>", methods=["PATCH"])
@login_required
def update_board(board_id):
    data = json_body()
    board = board_service.update_board(db.session, current_user.id, board_id, data)
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "board.updated", "board", board.id, board.name,
        {"fields": sorted(data)},
    )
    return jsonify({"board": board.to_dict()})


@boards_bp.route("/<board_id>/pin", methods=["POST"])
@login_required
def pin_board(board_id):
    board = board_service.toggle_pin(db.session, current_user.id, board_id)
    db.session.commit()
    return jsonify({"board": board.to_dict()})


@boards_bp.route("/<board_id>/trash", methods=["POST"])
@login_required
def trash_board(board_id):
    board = board_service.trash_board(db.session, current_user.id, board_id)
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "board.trashed", "board", board.id, board.name,
    )
    run_in_background(notify_board_trashed, current_user.id, board.id)
    return jsonify({"board": board.to_dict()})


@boards_bp.route("/<board_id>/restore", methods=["POST"])
@login_required
def restore_board(board_id):
    board = board_service.restore_board(
        db.session, current_user.id, board_id, retention_days=retention_days()
    )
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "board.restored", "board", board.id, board.name,
    )
    return jsonify({"board": board.to_dict()})


@boards_bp.route("/<board_id>", methods=["DELETE"])
@login_required
def delete_board(board_id):
    name = board_service.delete_board_permanently(db.session, current_user.id, board_id)
    db.session.commit()

    run_in_background(
        log_activity, current_user.id, "board.deleted", "board", board_id, name,
    )
    return jsonify({"success": True})


# ─── Lists ───────────────────────────────────────────────────────

@boards_bp.route("/<board_id>/lists", methods=["GET"])
@login_required
def get_lists(board_id):
    rows = list_service.list_lists(db.session, current_user.id, board_id)
    return jsonify({"lists": [lst.to_dict(card_count=count) for lst, count in rows]})


@boards_bp.route("/<board_id>/lists", methods=["POST"])
@login_required
def create_list(board_id):
    data = json_body()
    board_list = list_service.create_list(
        db.session, current_user.id, board_id, data.get("name"),
        is_done=data.get("is_done", False),
    )
    db.session.commit()
    return jsonify({"list": board_list.to_dict()}), 201


@boards_bp.route("/<board_id>/lists/order", methods=["PUT"])
@login_required
def reorder_lists(board_id):
    ordered = list_service.reorder_lists(
        db.session, current_user.id, board_id, json_body().get("orders")
    )
    db.session.commit()
    return jsonify({"lists": [lst.to_dict() for lst in ordered]})


# ─── Labels ──────────────────────────────────────────────────────

@boards_bp.route("/<board_id>/labels", methods=["GET"])
@login_required
def get_labels(board_id):
    labels = label_service.list_labels(db.session, current_user.id, board_id)
    return jsonify({"labels": [label.to_dict() for label in labels]})


@boards_bp.route("/<board_id>/labels", methods=["POST"])
@login_required
def create_label(board_id):
    data = json_body()
    label = label_service.create_label(
        db.session, current_user.id, board_id, data.get("name"), data.get("color_hex")
    )
    db.session.commit()
    return jsonify({"label": label.to_dict()}), 201


# ─── Cards ───────────────────────────────────────────────────────

@boards_bp.route("/<board_id>/cards", methods=["POST"])
@login_required
def create_card(board_id):
    data = json_body()
    card = card_service.create_card(
        db.session,
        current_user.id,
        board_id,
        data.get("list_id"),
        data.get("title"),
        description=data.get("description"),
        priority=data.get("priority"),
        due_date=data.get("due_date"),
        start_date=data.get("start_date"),
        assignee_ids=data.get("assignee_ids"),
        label_ids=data.get("label_ids"),
    )
    db.session.commit()

    payload = card.to_dict(include_relations=True)
    assignee_ids = [m["id"] for m in payload["members"] if m["id"] != current_user.id]

    run_in_background(
        log_activity, current_user.id, "card.created", "card", card.id, card.title,
        {"key": card.key},
    )
    for assignee_id in assignee_ids:
        run_in_background(notify_task_assigned, current_user.id, assignee_id, card.id)
    return jsonify({"card": payload}), 201


@boards_bp.route("/<board_id>/trash", methods=["GET"])
@login_required
def trashed_cards(board_id):
    rows = trash_service.list_trashed_cards(
        db.session, current_user.id, board_id, retention_days=retention_days()
    )
    return jsonify({
        "cards": [dict(card.to_dict(), days_left=days_left) for card, days_left in rows],
    })
