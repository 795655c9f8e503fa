"""Labels blueprint — /api/labels/*

Route Map:
  PATCH  /api/labels/<id>   — Rename / recolor
  DELETE /api/labels/<id>   — Delete (detaches it from every card)
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from app.blueprints.helpers import json_body
from app.extensions import db
from app.services import label_service

labels_bp = Blueprint("labels", __name__, url_prefix="/api/labels")


@labels_bp.route("/<label_id>", methods=["PATCH"])
@login_required
def update_label(label_id):
    label = label_service.update_label(db.session, current_user.id, label_id, json_body())
    db.session.commit()
    return jsonify({"label": label.to_dict()})


@labels_bp.route("/<label_id>", methods=["DELETE"])
@login_required
def delete_label(label_id):
    label_service.delete_label(db.session, current_user.id, label_id)
    db.session.commit()
    return jsonify({"success": True})
