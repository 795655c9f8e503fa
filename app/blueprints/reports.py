"""Reports blueprint — /api/reports/*

Route Map:
  GET /api/reports/workspaces/<id>            — Workspace report (?start_date, ?end_date)
  GET /api/reports/workspaces/<id>/timeline   — Workspace activity over ?days (default 30)
  GET /api/reports/dashboard                  — My totals across all my workspaces
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from app.blueprints.helpers import int_arg
from app.extensions import db
from app.services import report_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.route("/workspaces/<workspace_id>", methods=["GET"])
@login_required
def workspace_report(workspace_id):
    report = report_service.workspace_report(
        db.session,
        current_user.id,
        workspace_id,
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
    )
    return jsonify(report)


@reports_bp.route("/workspaces/<workspace_id>/timeline", methods=["GET"])
@login_required
def timeline(workspace_id):
    days = int_arg("days", 30, maximum=365)
    activities = report_service.activity_timeline(
        db.session, current_user.id, workspace_id, days=days
    )
    return jsonify({"activities": [log.to_dict() for log in activities]})


@reports_bp.route("/dashboard", methods=["GET"])
@login_required
def dashboard():
    return jsonify(report_service.user_dashboard(db.session, current_user.id))
