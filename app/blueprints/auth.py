"""Auth blueprint — /auth/*

Minimal session auth for the JSON API (Flask-Login cookie session).

Route Map:
  POST /auth/register  — Create account and log in
  POST /auth/login     — Email + password login
  POST /auth/logout    — End the session
  GET  /auth/me        — Current user
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from app.blueprints.helpers import json_body
from app.extensions import db, limiter
from app.models.user import User
from app.services.activity_service import log_activity
from app.services.background import run_in_background
from app.services.validators import sanitize

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ──────────────────────────────────────────────
# POST /auth/register
# ──────────────────────────────────────────────

@auth_bp.route("/register", methods=["POST"])
@limiter.limit("10 per minute")
def register():
    """Create a user account and start a session."""
    data = json_body()
    email = (data.get("email") or "").lower().strip()
    password = data.get("password") or ""
    full_name = sanitize(data.get("full_name") or "")

    # --- Validation ---
    errors = []

    if not email or "@" not in email:
        errors.append("A valid email is required.")
    if not password:
        errors.append("Password is required.")
    elif len(password) < 8:
        errors.append("Password must be at least 8 characters.")
    if not full_name:
        errors.append("Full name is required.")

    if errors:
        return jsonify({"error": errors[0], "errors": errors}), 400

    # Check email uniqueness
    if User.query.filter_by(email=email).first():
        return jsonify({"error": "An account with this email already exists."}), 409

    # --- Create user ---
    user = User(
        email=email,
        password_hash=generate_password_hash(password),
        full_name=full_name,
    )
    db.session.add(user)
    db.session.commit()

    login_user(user)
    run_in_background(log_activity, user.id, "user.registered", "user", user.id, user.email)

    return jsonify({"user": user.to_dict()}), 201


# ──────────────────────────────────────────────
# POST /auth/login
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("15 per minute")
def login():
    """Standard email + password login."""
    data = json_body()
    email = (data.get("email") or "").lower().strip()
    password = data.get("password") or ""
    remember = bool(data.get("remember"))

    if not email or not password:
        return jsonify({"error": "Email and password are required."}), 400

    user = User.query.filter_by(email=email).first()

    if user is None or not check_password_hash(user.password_hash, password):
        return jsonify({"error": "Invalid email or password."}), 401

    if not user.is_active:
        return jsonify({"error": "Your account has been deactivated."}), 403

    login_user(user, remember=remember)
    return jsonify({"user": user.to_dict()})


# ──────────────────────────────────────────────
# POST /auth/logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
