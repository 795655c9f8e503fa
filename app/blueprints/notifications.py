"""Notifications blueprint — /api/notifications/*

In-app notifications of the logged-in user and their email preferences.

Route Map:
  GET    /api/notifications                 — Paged list (?unread_only=true)
  GET    /api/notifications/unread-count    — Unread badge count
  POST   /api/notifications/<id>/read       — Mark one read
  POST   /api/notifications/read-all        — Mark all read
  DELETE /api/notifications/<id>            — Delete one
  GET    /api/notifications/settings        — Email preferences
  PUT    /api/notifications/settings        — Update email preferences
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from app.blueprints.helpers import json_body, page_meta, pagination
from app.extensions import db
from app.services import notification_service

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


# ─── Notifications ───────────────────────────────────────────────

@notifications_bp.route("", methods=["GET"])
@login_required
def list_notifications():
    page, limit = pagination()
    unread_only = request.args.get("unread_only", "").lower() in ("1", "true", "yes")
    items, total, unread = notification_service.list_notifications(
        db.session, current_user.id, unread_only=unread_only, page=page, limit=limit
    )
    return jsonify({
        "notifications": [n.to_dict() for n in items],
        "unread_count": unread,
        **page_meta(total, page, limit),
    })


@notifications_bp.route("/unread-count", methods=["GET"])
@login_required
def unread_count():
    return jsonify({"count": notification_service.unread_count(db.session, current_user.id)})


@notifications_bp.route("/<notification_id>/read", methods=["POST"])
@login_required
def mark_read(notification_id):
    notification = notification_service.mark_read(db.session, current_user.id, notification_id)
    db.session.commit()
    return jsonify({"notification": notification.to_dict()})


@notifications_bp.route("/read-all", methods=["POST"])
@login_required
def mark_all_read():
    updated = notification_service.mark_all_read(db.session, current_user.id)
    db.session.commit()
    return jsonify({"updated": updated})


@notifications_bp.route("/<notification_id>", methods=["DELETE"])
@login_required
def delete_notification(notification_id):
    notification_service.delete_notification(db.session, current_user.id, notification_id)
    db.session.commit()
    return jsonify({"success": True})


# ─── Settings ────────────────────────────────────────────────────

@notifications_bp.route("/settings", methods=["GET"])
@login_required
def get_settings():
    setting = notification_service.get_settings(db.session, current_user.id)
    db.session.commit()
    return jsonify({"settings": setting.to_dict()})


@notifications_bp.route("/settings", methods=["PUT"])
@login_required
def update_settings():
    setting = notification_service.update_settings(db.session, current_user.id, json_body())
    db.session.commit()
    return jsonify({"settings": setting.to_dict()})
