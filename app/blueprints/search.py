"""Search blueprint — /api/search/*

Route Map:
  GET /api/search/cards        — Cards of ?board_id (?q, ?list_id, ?label_id,
                                 ?member_id, ?due_before, ?due_after, ?limit)
  GET /api/search/workspaces   — My workspaces by name (?q, ?limit)
  GET /api/search/boards       — Boards in my workspaces by name (?q, ?limit)
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from app.blueprints.helpers import int_arg
from app.extensions import db
from app.services import search_service

search_bp = Blueprint("search", __name__, url_prefix="/api/search")


@search_bp.route("/cards", methods=["GET"])
@login_required
def search_cards():
    args = request.args
    cards = search_service.search_cards(
        db.session,
        current_user.id,
        args.get("board_id"),
        q=args.get("q"),
        list_id=args.get("list_id") or None,
        label_id=args.get("label_id") or None,
        member_id=args.get("member_id") or None,
        due_before=args.get("due_before"),
        due_after=args.get("due_after"),
        limit=int_arg("limit", 100, maximum=search_service.CARD_LIMIT),
    )
    return jsonify({"results": [card.to_dict() for card in cards]})


@search_bp.route("/workspaces", methods=["GET"])
@login_required
def search_workspaces():
    workspaces = search_service.search_workspaces(
        db.session,
        current_user.id,
        request.args.get("q"),
        limit=int_arg("limit", 10, maximum=search_service.NAME_LIMIT),
    )
    return jsonify({"results": [{"id": ws.id, "name": ws.name} for ws in workspaces]})


@search_bp.route("/boards", methods=["GET"])
@login_required
def search_boards():
    boards = search_service.search_boards(
        db.session,
        current_user.id,
        request.args.get("q"),
        limit=int_arg("limit", 10, maximum=search_service.NAME_LIMIT),
    )
    return jsonify({
        "results": [
            {"id": b.id, "name": b.name, "workspace_id": b.workspace_id} for b in boards
        ]
    })
