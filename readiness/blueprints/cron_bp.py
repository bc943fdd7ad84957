"""
Execution Readiness Portal
Cron Blueprint: HTTP trigger for the external scheduler.

Endpoints:
    POST|GET /api/v1/cron/escalations    run escalation_tick
    POST|GET /api/v1/cron/proof-expiry   run proof_expiry_check
    GET      /api/v1/cron/jobs           registered jobs and their last runs

Protected by ``Authorization: Bearer <CRON_SECRET>`` whenever CRON_SECRET
is configured.
"""

import hmac
import logging

from flask import Blueprint, current_app, jsonify, request

from readiness.services.scheduler_service import SchedulerService
from readiness.utils.errors import E, api_error

logger = logging.getLogger(__name__)

cron_bp = Blueprint("cron", __name__, url_prefix="/api/v1/cron")


@cron_bp.before_request
def _check_cron_secret():
    secret = current_app.config.get("CRON_SECRET")
    if not secret:
        return None
    header = request.headers.get("Authorization", "")
    token = header[7:] if header.startswith("Bearer ") else ""
    if not hmac.compare_digest(token, secret):
        logger.warning("Rejected cron call to %s", request.path)
        return api_error(E.UNAUTHENTICATED, "Invalid cron secret")
    return None


def _run(job_name):
    result = SchedulerService.run_job(job_name)
    status = 200 if result.get("status") in ("success", "skipped") else 500
    return jsonify(result), status


@cron_bp.route("/escalations", methods=["GET", "POST"])
def run_escalations():
    return _run("escalation_tick")


@cron_bp.route("/proof-expiry", methods=["GET", "POST"])
def run_proof_expiry():
    return _run("proof_expiry_check")


@cron_bp.route("/jobs", methods=["GET"])
def list_jobs():
    SchedulerService.ensure_jobs_registered()
    return jsonify({"jobs": SchedulerService.list_jobs()})
