"""Activity blueprint — /api/activity/*

Route Map:
  GET /api/activity         — Feed (?workspace_id, ?action, ?entity_type, paged)
  GET /api/activity/stats   — My action counts over ?days (default 30)
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from app.blueprints.helpers import int_arg, page_meta, pagination
from app.extensions import db
from app.services.activity_service import activity_stats, list_activities

activity_bp = Blueprint("activity", __name__, url_prefix="/api/activity")


@activity_bp.route("", methods=["GET"])
@login_required
def feed():
    page, limit = pagination(default_limit=50)
    logs, total = list_activities(
        db.session,
        current_user.id,
        workspace_id=request.args.get("workspace_id") or None,
        action=request.args.get("action") or None,
        entity_type=request.args.get("entity_type") or None,
        page=page,
        limit=limit,
    )
    return jsonify({
        "activities": [log.to_dict() for log in logs],
        **page_meta(total, page, limit),
    })


@activity_bp.route("/stats", methods=["GET"])
@login_required
def stats():
    days = int_arg("days", 30, maximum=365)
    return jsonify(activity_stats(db.session, current_user.id, days=days))
