"""
Execution Readiness Portal
Hierarchy Blueprint: clients, programs, workstreams and their roll-ups.

Endpoints:
    POST /api/v1/clients
    POST /api/v1/clients/<id>/programs
    POST /api/v1/programs/<id>/workstreams
    GET  /api/v1/programs/<id>/status
    GET  /api/v1/workstreams/<id>/status
    POST /api/v1/workstreams/<id>/archive
    GET  /api/v1/clients/<id>/attention-queue
"""

from flask import Blueprint, jsonify

from readiness.blueprints import json_body, register_error_handlers, require_actor
from readiness.services import workstream_service

hierarchy_bp = Blueprint("hierarchy", __name__, url_prefix="/api/v1")
register_error_handlers(hierarchy_bp)


@hierarchy_bp.route("/clients", methods=["POST"])
def create_client():
    data = json_body()
    client = workstream_service.create_client(require_actor(), name=data.get("name"), slug=data.get("slug"))
    return jsonify(client.to_dict()), 201


@hierarchy_bp.route("/clients/<int:client_id>/programs", methods=["POST"])
def create_program(client_id):
    data = json_body()
    program = workstream_service.create_program(
        client_id, require_actor(), name=data.get("name"), description=data.get("description", ""),
    )
    return jsonify(program.to_dict()), 201


@hierarchy_bp.route("/programs/<int:program_id>/workstreams", methods=["POST"])
def create_workstream(program_id):
    ws = workstream_service.create_workstream(program_id, require_actor(), name=json_body().get("name"))
    return jsonify(ws.to_dict()), 201


@hierarchy_bp.route("/programs/<int:program_id>/status", methods=["GET"])
def program_status(program_id):
    return jsonify(workstream_service.program_status(program_id))


@hierarchy_bp.route("/workstreams/<int:workstream_id>/status", methods=["GET"])
def workstream_status(workstream_id):
    return jsonify(workstream_service.workstream_status(workstream_id))


@hierarchy_bp.route("/workstreams/<int:workstream_id>/archive", methods=["POST"])
def archive_workstream(workstream_id):
    return jsonify(workstream_service.archive_workstream(workstream_id, require_actor()))


@hierarchy_bp.route("/clients/<int:client_id>/attention-queue", methods=["GET"])
def attention_queue(client_id):
    items = workstream_service.attention_queue(client_id)
    return jsonify({"items": items, "total": len(items)})
