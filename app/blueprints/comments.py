"""Comments blueprint — /api/comments/*

Route Map:
  PATCH  /api/comments/<id>   — Edit (author only)
  DELETE /api/comments/<id>   — Delete with all replies
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from app.blueprints.helpers import json_body
from app.extensions import db
from app.services import comment_service

comments_bp = Blueprint("comments", __name__, url_prefix="/api/comments")


@comments_bp.route("/<comment_id>", methods=["PATCH"])
@login_required
def update_comment(comment_id):
    comment = comment_service.update_comment(
        db.session, current_user.id, comment_id, json_body().get("body")
    )
    db.session.commit()
    return jsonify({"comment": comment.to_dict()})


@comments_bp.route("/<comment_id>", methods=["DELETE"])
@login_required
def delete_comment(comment_id):
    deleted = comment_service.delete_comment(db.session, current_user.id, comment_id)
    db.session.commit()
    return jsonify({"success": True, "deleted": deleted})
