"""
Campaign Engine
Flask Application Factory.

Usage:
    from campaign_engine import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine, event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from campaign_engine.config import config
from campaign_engine.middleware.logging_config import configure_logging
from campaign_engine.middleware.rate_limiter import init_rate_limits
from campaign_engine.middleware.security_headers import init_security_headers
from campaign_engine.middleware.session_auth import init_session_auth
from campaign_engine.middleware.timing import init_request_timing
from campaign_engine.models import db
from campaign_engine.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
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
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL") or "memory://",
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to the APP_ENV env var, or "development".

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

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

    # ── Middleware ───────────────────────────────────────────────────────
    init_request_timing(app)
    init_session_auth(app)
    init_security_headers(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)  # 1 MB

    @app.before_request
    def _guard_content_type():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                return api_error(
                    E.VALIDATION_REQUIRED, "Content-Type must be application/json", status=415,
                )
        return None

    # ── Import all models so Alembic and create_all see them ─────────────
    from campaign_engine.models import activity as _activity_models      # noqa: F401
    from campaign_engine.models import business as _business_models      # noqa: F401
    from campaign_engine.models import campaign as _campaign_models      # noqa: F401
    from campaign_engine.models import escalation as _escalation_models  # noqa: F401
    from campaign_engine.models import task as _task_models              # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        if app.config.get("SQLALCHEMY_DATABASE_URI", "").startswith("sqlite:///") and not app.testing:
            os.makedirs(app.instance_path, exist_ok=True)
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from campaign_engine.blueprints.activity_bp import activity_bp
    from campaign_engine.blueprints.business_bp import business_bp
    from campaign_engine.blueprints.campaign_bp import campaign_bp
    from campaign_engine.blueprints.escalation_bp import escalation_bp
    from campaign_engine.blueprints.health_bp import health_bp
    from campaign_engine.blueprints.task_bp import task_bp

    app.register_blueprint(business_bp)
    app.register_blueprint(campaign_bp)
    app.register_blueprint(task_bp)
    app.register_blueprint(escalation_bp)
    app.register_blueprint(activity_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed the two demo businesses, each with one playbook."""
        from campaign_engine.services.seed_service import seed_demo_businesses
        count = seed_demo_businesses()
        logger.info("Seeded %s demo businesses.", count)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.VALIDATION_INVALID, "Request body too large", status=413)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"retry_after": e.description})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
