"""Lists blueprint — /api/lists/*

Route Map:
  PATCH  /api/lists/<id>         — Rename / is_done / move to order_idx
  DELETE /api/lists/<id>         — Delete (?move_to_list_id=... when it holds cards)
  GET    /api/lists/<id>/cards   — Active cards (paged, ?q, ?label_id, ?member_id)
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from app.blueprints.helpers import json_body, page_meta, pagination
from app.extensions import db
from app.services import card_service, list_service

lists_bp = Blueprint("lists", __name__, url_prefix="/api/lists")


@lists_bp.route("/<list_id>", methods=["PATCH"])
@login_required
def update_list(list_id):
    board_list = list_service.update_list(db.session, current_user.id, list_id, json_body())
    db.session.commit()
    return jsonify({"list": board_list.to_dict()})


@lists_bp.route("/<list_id>", methods=["DELETE"])
@login_required
def delete_list(list_id):
    moved = list_service.delete_list(
        db.session, current_user.id, list_id,
        move_to_list_id=request.args.get("move_to_list_id") or None,
    )
    db.session.commit()
    return jsonify({"success": True, "moved_cards": moved})


@lists_bp.route("/<list_id>/cards", methods=["GET"])
@login_required
def list_cards(list_id):
    page, limit = pagination(default_limit=50, max_limit=200)
    cards, total = card_service.list_cards(
        db.session,
        current_user.id,
        list_id,
        page=page,
        limit=limit,
        q=request.args.get("q"),
        label_id=request.args.get("label_id"),
        member_id=request.args.get("member_id"),
    )
    return jsonify({
        "cards": [card.to_dict(include_relations=True) for card in cards],
        **page_meta(total, page, limit),
    })
