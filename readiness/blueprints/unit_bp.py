"""
Execution Readiness Portal
Unit & Proof Blueprint.

Endpoints:
    POST /api/v1/workstreams/<id>/units - create unit
    GET  /api/v1/units/<id> - unit detail
    GET  /api/v1/units/<id>/history - status events, escalations, proofs
    POST /api/v1/units/<id>/proofs - submit proof
    POST /api/v1/units/<id>/proofs/<proof_id>/decision - approve / reject
    POST /api/v1/units/<id>/escalate - manual escalation
    POST /api/v1/units/<id>/block - block (or propose)
    POST /api/v1/units/<id>/unblock
    POST /api/v1/units/<id>/confirm
    POST /api/v1/units/<id>/archive

Parsing and serialisation only; every rule lives in the services.
"""

from flask import Blueprint, jsonify

from readiness import limiter
from readiness.blueprints import BadRequest, json_body, register_error_handlers, require_actor
from readiness.middleware.rate_limiter import escalation_limit
from readiness.services import escalation_service, proof_service, unit_service

unit_bp = Blueprint("units", __name__, url_prefix="/api/v1")
register_error_handlers(unit_bp)


def _flag(data, key):
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise BadRequest(f"{key} must be a boolean", details={key: repr(value)})
    return value


@unit_bp.route("/workstreams/<int:workstream_id>/units", methods=["POST"])
def create_unit(workstream_id):
    unit = unit_service.create_unit(workstream_id, require_actor(), json_body())
    return jsonify(unit.to_dict()), 201


@unit_bp.route("/units/<int:unit_id>", methods=["GET"])
def get_unit(unit_id):
    return jsonify(unit_service.get_unit(unit_id).to_dict())


@unit_bp.route("/units/<int:unit_id>/history", methods=["GET"])
def unit_history(unit_id):
    return jsonify(unit_service.unit_history(unit_id))


# ── Proofs ───────────────────────────────────────────────────────────────────

@unit_bp.route("/units/<int:unit_id>/proofs", methods=["POST"])
def submit_proof(unit_id):
    proof = proof_service.submit_proof(unit_id, require_actor(), json_body())
    return jsonify(proof.to_dict()), 201


@unit_bp.route("/units/<int:unit_id>/proofs/<int:proof_id>/decision", methods=["POST"])
def decide_proof(unit_id, proof_id):
    """Body: {"decision": "approve" | "reject", "reason": "..."}"""
    data = json_body()
    decision = (data.get("decision") or "").lower()
    if decision not in ("approve", "reject"):
        raise BadRequest("decision must be 'approve' or 'reject'", details={"decision": decision})
    result = proof_service.decide_proof(
        proof_id, require_actor(), decision == "approve",
        reason=data.get("reason"), unit_id=unit_id,
    )
    return jsonify(result)


# ── Escalation & block lifecycle ─────────────────────────────────────────────

@unit_bp.route("/units/<int:unit_id>/escalate", methods=["POST"])
@limiter.limit(escalation_limit)
def escalate(unit_id):
    """Body: {"reason": "...", "level": 1-3, "mark_as_blocked": false}"""
    data = json_body()
    level = data.get("level", 1)
    if isinstance(level, str) and level.isdigit():
        level = int(level)
    result = escalation_service.escalate(
        unit_id, require_actor(), level, data.get("reason"),
        mark_as_blocked=_flag(data, "mark_as_blocked"),
    )
    return jsonify(result), 201


@unit_bp.route("/units/<int:unit_id>/block", methods=["POST"])
def block(unit_id):
    result = unit_service.block_unit(unit_id, require_actor(), json_body().get("reason"))
    return jsonify(result), 200 if result["blocked_applied"] else 202


@unit_bp.route("/units/<int:unit_id>/unblock", methods=["POST"])
def unblock(unit_id):
    result = unit_service.unblock_unit(unit_id, require_actor(), json_body().get("reason"))
    return jsonify(result)


@unit_bp.route("/units/<int:unit_id>/confirm", methods=["POST"])
def confirm(unit_id):
    return jsonify(unit_service.confirm_unit(unit_id, require_actor()))


@unit_bp.route("/units/<int:unit_id>/archive", methods=["POST"])
def archive(unit_id):
    unit = unit_service.archive_unit(unit_id, require_actor(), json_body().get("reason"))
    return jsonify(unit.to_dict())
