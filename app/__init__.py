import os
import logging
import time

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from werkzeug.security import generate_password_hash

from app.config import config_by_name
from app.errors import ServiceError
from app.extensions import db, migrate, login_manager, csrf, limiter, serialize_sqlite_writes

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if app.config.get("SQLITE_SERIALIZE_WRITES") and database_uri.startswith("sqlite"):
        with app.app_context():
            serialize_sqlite_writes(db.engine)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from app import models  # noqa: F401

    # --- Register blueprints ---
    from app.blueprints.auth import auth_bp
    from app.blueprints.workspaces import workspaces_bp
    from app.blueprints.invitations import invitations_bp
    from app.blueprints.boards import boards_bp
    from app.blueprints.lists import lists_bp
    from app.blueprints.cards import cards_bp
    from app.blueprints.comments import comments_bp
    from app.blueprints.labels import labels_bp
    from app.blueprints.notifications import notifications_bp
    from app.blueprints.activity import activity_bp
    from app.blueprints.search import search_bp
    from app.blueprints.reports import reports_bp

    api_blueprints = [
        auth_bp,
        workspaces_bp,
        invitations_bp,
        boards_bp,
        lists_bp,
        cards_bp,
        comments_bp,
        labels_bp,
        notifications_bp,
        activity_bp,
        search_bp,
        reports_bp,
    ]
    for bp in api_blueprints:
        app.register_blueprint(bp)
        # JSON only; session cookie is SameSite=Lax
        csrf.exempt(bp)

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    # --- Error handlers ---
    register_error_handlers(app)

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # JSON only: nothing to load, nothing to frame
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_error_handlers(app):
    """Every error leaves the API as `{"error": ...}` JSON."""

    @app.errorhandler(ServiceError)
    def service_error(e):
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        logger.error("Unhandled error: %r", getattr(e, "original_exception", e))
        return jsonify({"error": "Internal server error"}), 500


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-user")
    @click.option("--email", default="owner@taskboard.local", help="User email")
    @click.option("--password", default="password123", help="User password")
    @click.option("--workspace", "workspace_name", default="Demo Workspace", help="Workspace name")
    def seed_user(email, password, workspace_name):
        """Create a user that owns a demo workspace with one board.

        Usage:
            flask seed-user
            flask seed-user --email me@example.com --password s3cret
        """
        from app.models.user import User
        from app.services.board_service import create_board
        from app.services.workspace_service import create_workspace

        # --- 1. User ---
        user = User.query.filter_by(email=email).first()
        if user:
            click.echo(f"User already exists: {email}")
        else:
            user = User(
                email=email,
                password_hash=generate_password_hash(password),
                full_name="Demo Owner",
            )
            db.session.add(user)
            db.session.flush()
            click.echo(f"Created user: {email}")

        # --- 2. Workspace + board ---
        workspace = create_workspace(db.session, user.id, workspace_name)
        board = create_board(db.session, user.id, workspace.id, "Product Roadmap", key_slug="ROAD")
        db.session.commit()

        click.echo("")
        click.echo("=" * 60)
        click.echo("Seed data created successfully!")
        click.echo("=" * 60)
        click.echo(f"  User:      {email} / {password}")
        click.echo(f"  Workspace: {workspace.name} (id: {workspace.id})")
        click.echo(f"  Board:     {board.name} (id: {board.id})")
        click.echo("=" * 60)

    @app.cli.command("send-digests")
    def send_digests():
        """Send every notification digest that is currently due.

        Usage:
            flask send-digests
        """
        from app.services.digest_service import run_once

        stats = run_once()
        if stats is None:
            click.echo("A digest run is already in progress.")
            return
        click.echo(
            f"Digests: sent={stats['sent']} not_due={stats['not_due']} "
            f"empty={stats['empty']} failed={stats['failed']}"
        )

    @app.cli.command("sweep-trash")
    @click.option("--days", type=int, default=None, help="Retention window (default TRASH_RETENTION_DAYS).")
    def sweep_trash(days):
        """Permanently delete boards and cards trashed longer than the retention window."""
        from app.services.trash_service import sweep_expired_trash

        retention = days if days is not None else app.config["TRASH_RETENTION_DAYS"]
        result = sweep_expired_trash(db.session, retention_days=retention)
        db.session.commit()
        click.echo(f"Deleted {result['boards']} board(s) and {result['cards']} card(s).")

    @app.cli.command("cleanup-activity")
    @click.option("--days", type=int, default=None, help="Retention window (default ACTIVITY_RETENTION_DAYS).")
    def cleanup_activity(days):
        """Delete activity log rows older than the retention window."""
        from app.services.activity_service import cleanup_old_activity

        retention = days if days is not None else app.config["ACTIVITY_RETENTION_DAYS"]
        deleted = cleanup_old_activity(db.session, retention_days=retention)
        db.session.commit()
        click.echo(f"Deleted {deleted} activity log(s).")

    @app.cli.command("run-scheduler")
    def run_scheduler():
        """Run digests every DIGEST_INTERVAL_SECONDS and the trash / activity
        cleanup every SWEEP_INTERVAL_SECONDS, until interrupted.

        Usage:
            flask run-scheduler
        """
        from app.services.activity_service import cleanup_old_activity
        from app.services.digest_service import run_once
        from app.services.trash_service import sweep_expired_trash

        digest_every = app.config["DIGEST_INTERVAL_SECONDS"]
        sweep_every = app.config["SWEEP_INTERVAL_SECONDS"]
        next_digest = next_sweep = time.monotonic()
        click.echo(f"Scheduler started (digests every {digest_every}s, sweep every {sweep_every}s)")

        try:
            while True:
                now = time.monotonic()
                if now >= next_digest:
                    next_digest = now + digest_every
                    try:
                        run_once()
                    except Exception:
                        db.session.rollback()
                        logger.exception("Scheduled digest run failed")
                if now >= next_sweep:
                    next_sweep = now + sweep_every
                    try:
                        sweep_expired_trash(
                            db.session, retention_days=app.config["TRASH_RETENTION_DAYS"]
                        )
                        cleanup_old_activity(
                            db.session, retention_days=app.config["ACTIVITY_RETENTION_DAYS"]
                        )
                        db.session.commit()
                    except Exception:
                        db.session.rollback()
                        logger.exception("Scheduled cleanup failed")
                time.sleep(max(1, min(next_digest, next_sweep) - time.monotonic()))
        except KeyboardInterrupt:
            click.echo("Scheduler stopped.")
