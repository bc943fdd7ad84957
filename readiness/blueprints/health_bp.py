"""
Execution Readiness Portal
Health blueprint.

Endpoints:
    GET /api/v1/health - liveness + database reachability
"""

import logging

from flask import Blueprint, jsonify
from sqlalchemy import text

from readiness.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1")


@health_bp.route("/health", methods=["GET"])
def health():
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except Exception as exc:
        logger.error("Health check database probe failed: %s", exc)
        database = "unavailable"
    status = 200 if database == "ok" else 503
    return jsonify({"status": "ok" if status == 200 else "degraded",
                    "app": "Execution Readiness Portal", "database": database}), status
