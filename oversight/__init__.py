"""
Donor Oversight Platform
Flask Application Factory.

Usage:
    from oversight import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os
import time

import click
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from oversight.config import config
from oversight.core.error_handlers import register_error_handlers
from oversight.middleware.jwt_auth import init_jwt_middleware
from oversight.middleware.logging_config import configure_logging
from oversight.middleware.rate_limiter import init_rate_limits
from oversight.middleware.security_headers import init_security_headers
from oversight.middleware.timing import init_request_timing
from oversight.models import db

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
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def _init_lock_sweep(app):
    """Clear expired activity edit locks at most once per sweep interval."""
    interval = app.config.get("LOCK_SWEEP_INTERVAL_SECONDS", 0)
    if not interval:
        return
    state = {"last": 0.0}

    @app.before_request
    def _sweep_expired_locks():
        now = time.monotonic()
        if now - state["last"] < interval:
            return
        state["last"] = now
        from oversight.services.activity_service import cleanup_expired_locks
        cleanup_expired_locks()


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

    # ProductionConfig.__init__ checks DATABASE_URL and SECRET_KEY
    env_config = config[config_name]()

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(env_config)
    app.config["APP_ENV"] = config_name
    os.makedirs(app.instance_path, exist_ok=True)

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

    # ── Security headers (CSP, HSTS, X-Frame-Options, etc.) ─────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.jwt_user_id from Bearer token) ───────
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    @app.before_request
    def _guard_request():
        from flask import request as _req, abort
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and _req.content_length and _req.content_length > max_len:
            abort(413, description="Request body too large")
        if _req.method in ("POST", "PUT", "PATCH") and _req.path.startswith("/api/"):
            ct = _req.content_type or ""
            if _req.data and "json" not in ct and "multipart/form-data" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Expired edit-lock sweep ──────────────────────────────────────────
    _init_lock_sweep(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from oversight.models import user as _user_models             # noqa: F401
    from oversight.models import objective as _objective_models   # noqa: F401
    from oversight.models import activity as _activity_models     # noqa: F401
    from oversight.models import actual as _actual_models         # noqa: F401
    from oversight.models import approval as _approval_models     # noqa: F401
    from oversight.models import comment as _comment_models       # noqa: F401
    from oversight.models import audit as _audit_models           # noqa: F401
    from oversight.models import notification as _notification_models  # noqa: F401
    from oversight.models import setting as _setting_models       # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ──
    with app.app_context():
        if not app.config.get("TESTING"):
            db.create_all()
            app.logger.info("db.create_all() completed successfully")

    # ── Blueprints ───────────────────────────────────────────────────────
    from oversight.blueprints import all_blueprints

    for bp in all_blueprints():
        app.register_blueprint(bp)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed")
    def seed_cmd():
        """Seed default settings and the bootstrap Admin (ADMIN_EMAIL / ADMIN_PASSWORD)."""
        from oversight.constants import ROLE_ADMIN
        from oversight.services import settings_service, user_service

        created = settings_service.seed_defaults()
        logger.info("Seeded %s default settings.", created)

        email = os.getenv("ADMIN_EMAIL")
        password = os.getenv("ADMIN_PASSWORD")
        if not email or not password:
            logger.warning("ADMIN_EMAIL / ADMIN_PASSWORD not set — skipping admin bootstrap.")
            return
        if user_service.get_user_by_email(email):
            logger.info("Admin %s already exists.", email)
            return
        user_service.create_user({
            "email": email,
            "password": password,
            "full_name": os.getenv("ADMIN_NAME", "System Administrator"),
            "role": ROLE_ADMIN,
        }, audit=False)
        logger.info("Created admin user %s.", email)

    @app.cli.command("cleanup-locks")
    def cleanup_locks_cmd():
        """Clear expired activity edit locks."""
        from oversight.services.activity_service import cleanup_expired_locks
        click.echo(f"Cleared {cleanup_expired_locks()} expired locks.")

    @app.cli.command("create-user")
    @click.option("--email", required=True)
    @click.option("--full-name", required=True)
    @click.option("--role", default="ProjectManager", show_default=True)
    @click.password_option()
    def create_user_cmd(email, full_name, role, password):
        """Create a user account."""
        from oversight.core.exceptions import ConflictError, ValidationError
        from oversight.services import user_service

        try:
            user = user_service.create_user({
                "email": email, "password": password, "full_name": full_name, "role": role,
            }, audit=False)
        except (ValidationError, ConflictError) as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Created {user.role} {user.email} (id={user.id})")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
