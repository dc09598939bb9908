"""
Utility Permit Tracker
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

from app.config import config
from app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.jobs import init_celery
from app.middleware.jwt_auth import init_jwt_middleware
from app.middleware.logging_config import configure_logging
from app.middleware.org_context import init_org_context
from app.middleware.rate_limiter import init_rate_limits, rate_limit_key
from app.middleware.security_headers import init_security_headers
from app.middleware.timing import init_request_timing
from app.models import db
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(key_func=rate_limit_key)


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
    # Instantiated so ProductionConfig can refuse to start without its secrets
    app.config.from_object(config[config_name]())
    app.config.setdefault("RATELIMIT_STORAGE_URI", app.config.get("REDIS_URL") or "memory://")
    if app.config.get("TESTING"):
        app.config["RATELIMIT_STORAGE_URI"] = "memory://"
    # Default dev SQLite file lives under instance/
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "")
    CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])

    # ── Security headers (CSP, HSTS, X-Frame-Options, etc.) ─────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth + organization context (sets g.current_user) ────────────
    init_jwt_middleware(app)
    init_org_context(app)

    # ── Rate limiting (keyed on g.organization_id, so after auth) ────────
    app.config.setdefault("RATELIMIT_DEFAULT", "100/minute")
    limiter.init_app(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    @app.before_request
    def _guard_request():
        from flask import abort
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.get_data(cache=True) and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import auth as _auth_models             # noqa: F401
    from app.models import ticket as _ticket_models         # noqa: F401
    from app.models import permit as _permit_models         # noqa: F401
    from app.models import fieldwork as _fieldwork_models   # noqa: F401
    from app.models import audit as _audit_models           # noqa: F401
    from app.models import jobs as _jobs_models             # noqa: F401

    # ── Auto-create tables in development/testing (migrations own production)
    if config_name != "production":
        with app.app_context():
            db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.audit_bp import audit_bp
    from app.blueprints.auth_bp import auth_bp
    from app.blueprints.fieldwork_bp import fieldwork_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.jobs_bp import jobs_bp
    from app.blueprints.permit_bp import permit_bp
    from app.blueprints.ticket_bp import ticket_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(ticket_bp)
    app.register_blueprint(permit_bp)
    app.register_blueprint(fieldwork_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(jobs_bp)

    # ── Job pipeline (Celery bound to this app; handlers registered) ─────
    init_celery(app)
    import importlib
    importlib.import_module("app.jobs.handlers")  # registers @register_handler bodies

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed the Austin Utility Contractors demo organization."""
        from app.services.demo_seed import seed_demo_data
        created = seed_demo_data()
        db.session.commit()
        if created is None:
            logger.info("Demo data already present.")
        else:
            logger.info("Seeded demo organization %s.", created["organization_id"])

    @app.cli.command("dispatch-jobs")
    def dispatch_jobs_cmd():
        """Re-send queued jobs whose broker hand-off failed."""
        from app.jobs.queues import dispatch_pending_jobs
        count = dispatch_pending_jobs()
        logger.info("Dispatched %s queued jobs.", count)

    # ── Domain exceptions → standard error body ──────────────────────────
    @app.errorhandler(NotFoundError)
    def _not_found_error(e):
        logger.info("Not found: %s", e)
        return api_error(E.NOT_FOUND, e.public_message)

    @app.errorhandler(ValidationError)
    def _validation_error(e):
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @app.errorhandler(ConflictError)
    def _conflict_error(e):
        return api_error(E.CONFLICT_DUPLICATE, str(e), details={"field": e.field})

    @app.errorhandler(AuthenticationError)
    def _authentication_error(e):
        return api_error(E.UNAUTHORIZED, str(e) or "Authentication required")

    @app.errorhandler(PermissionDeniedError)
    def _permission_denied(e):
        return api_error(E.FORBIDDEN, str(e) or "Permission denied")

    @app.errorhandler(SQLAlchemyError)
    def _database_error(e):
        db.session.rollback()
        logger.error("Database error: %s", e)
        return api_error(E.DATABASE, "Database error")

    # ── HTTP error handlers ──────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed")

    @app.errorhandler(413)
    def payload_too_large(e):
        return api_error(E.PAYLOAD_TOO_LARGE, "Request body too large")

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return api_error(E.UNSUPPORTED_MEDIA_TYPE, "Content-Type must be application/json")

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"limit": str(e.description)})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        db.session.rollback()
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
