"""
QA Evidence Hub
Flask Application Factory.

Usage:
    from qa_evidence import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from qa_evidence.config import config
from qa_evidence.core.exceptions import ConflictError, NotFoundError, PermissionDenied, ValidationError
from qa_evidence.middleware.logging_config import configure_logging
from qa_evidence.middleware.timing import init_request_timing
from qa_evidence.models import db

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine  # noqa: E402


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # per-route limits only
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def _register_error_handlers(app):
    """Map service-layer exceptions to JSON responses once for every blueprint."""

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error):
        return jsonify({"error": str(error), "code": "ERR_NOT_FOUND"}), 404

    @app.errorhandler(ValidationError)
    def _handle_validation(error):
        return jsonify({"error": str(error), "code": "ERR_VALIDATION_RULE", "details": error.details}), 422

    @app.errorhandler(ConflictError)
    def _handle_conflict(error):
        return jsonify({"error": str(error), "code": "ERR_CONFLICT_DUPLICATE"}), 409

    @app.errorhandler(PermissionDenied)
    def _handle_forbidden(error):
        logger.info("Forbidden %s %s: %s", request.method, request.path, error)
        return jsonify({"error": str(error), "code": "ERR_FORBIDDEN"}), 403

    @app.errorhandler(413)
    def _handle_too_large(error):
        return jsonify({"error": "Request body too large", "code": "ERR_VALIDATION_INVALID"}), 413

    @app.errorhandler(404)
    def _handle_route_not_found(error):
        return jsonify({"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}), 404

    @app.errorhandler(405)
    def _handle_method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(429)
    def _handle_rate_limited(error):
        return jsonify({"error": "Too many requests", "retry_after": error.description}), 429

    @app.errorhandler(500)
    def _handle_server_error(error):
        logger.error("500 error: %s", error, exc_info=True)
        return jsonify({"error": "Internal server error", "code": "ERR_INTERNAL"}), 500


def _register_cli(app):
    @app.cli.command("seed-admins")
    def seed_admins_command():
        """Create the default administrator accounts that are missing."""
        from qa_evidence.services.user_service import seed_default_admins

        created = seed_default_admins()
        db.session.commit()
        click.echo(f"{created} administrator(s) created")


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from qa_evidence.models import auth as _auth_models            # noqa: F401
    from qa_evidence.models import ticket as _ticket_models        # noqa: F401
    from qa_evidence.models import bug_report as _bug_models       # noqa: F401

    # ── Blueprints ───────────────────────────────────────────────────────
    from qa_evidence.blueprints.bug_report_bp import bug_report_bp
    from qa_evidence.blueprints.dashboard_bp import dashboard_bp
    from qa_evidence.blueprints.health_bp import health_bp
    from qa_evidence.blueprints.ticket_bp import ticket_bp
    from qa_evidence.blueprints.user_bp import user_bp

    app.register_blueprint(user_bp)
    app.register_blueprint(ticket_bp)
    app.register_blueprint(bug_report_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(health_bp)

    _register_error_handlers(app)
    _register_cli(app)

    # ── Auto-create tables and seed administrators ───────────────────────
    if not app.testing:
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)
            if app.config.get("SEED_DEFAULT_ADMINS"):
                from qa_evidence.services.user_service import seed_default_admins

                seed_default_admins()
                db.session.commit()

    return app
