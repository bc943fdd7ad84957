"""
Execution Readiness Portal
Flask Application Factory.

Usage:
    from readiness import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from readiness.config import config
from readiness.middleware.actor_context import init_actor_context
from readiness.middleware.logging_config import configure_logging
from readiness.middleware.rate_limiter import init_rate_limits
from readiness.middleware.timing import init_request_timing
from readiness.models import db

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
    default_limits=[],                     # no global limit; applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def _register_models():
    # Import every model module so metadata is complete before create_all
    from readiness.models import (  # noqa: F401
        audit,
        escalation,
        hierarchy,
        notification,
        proof,
        scheduling,
        unit,
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
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    _register_models()
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request middleware ───────────────────────────────────────────────
    init_request_timing(app)
    init_actor_context(app)
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    # ── Blueprints ───────────────────────────────────────────────────────
    from readiness.blueprints.audit_bp import audit_bp
    from readiness.blueprints.cron_bp import cron_bp
    from readiness.blueprints.health_bp import health_bp
    from readiness.blueprints.hierarchy_bp import hierarchy_bp
    from readiness.blueprints.notification_bp import notification_bp
    from readiness.blueprints.unit_bp import unit_bp

    app.register_blueprint(hierarchy_bp)
    app.register_blueprint(unit_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(cron_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Database bootstrap (dev only; production uses flask db upgrade) ──
    if config_name == "development":
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            db.create_all()

    # ── Scheduler (importing jobs registers them) ────────────────────────
    from readiness.services.scheduler_service import SchedulerService
    SchedulerService.init_app(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("run-jobs")
    @click.option("--force", is_flag=True, help="Run every enabled job, due or not.")
    def run_jobs_cmd(force):
        """Run the due jobs (escalation tick, proof expiry)."""
        for outcome in SchedulerService.run_due_jobs(force=force):
            logger.info("Job %s: %s", outcome["job_name"], outcome["status"])

    return app
