"""
Execution Readiness Portal
Audit blueprint: read-only view over unit status events.

Endpoints:
    GET  /api/v1/audit - list / filter status events

There is deliberately no write, update or delete route.
"""

from flask import Blueprint, jsonify, request

from readiness.blueprints import BadRequest, paginate_query, register_error_handlers
from readiness.models.audit import StatusEvent
from readiness.utils.helpers import parse_datetime

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1")
register_error_handlers(audit_bp)


@audit_bp.route("/audit", methods=["GET"])
def list_status_events():
    """
    Return paginated status events, newest first.

    Query params:
        unit_id - filter by unit
        event_type - filter by event type
        actor - filter by triggering actor
        since - ISO-8601 lower bound on created_at
        limit/offset - pagination
    """
    q = StatusEvent.query

    unit_id = request.args.get("unit_id", type=int)
    if unit_id is not None:
        q = q.filter(StatusEvent.unit_id == unit_id)

    event_type = request.args.get("event_type")
    if event_type:
        q = q.filter(StatusEvent.event_type == event_type)

    actor = request.args.get("actor")
    if actor:
        q = q.filter(StatusEvent.triggered_by == actor)

    since = request.args.get("since")
    if since:
        try:
            q = q.filter(StatusEvent.created_at >= parse_datetime(since))
        except ValueError as exc:
            raise BadRequest(str(exc), details={"since": since}) from exc

    q = q.order_by(StatusEvent.created_at.desc(), StatusEvent.id.desc())
    items, total = paginate_query(q, default_limit=50, max_limit=200)
    return jsonify({"events": [e.to_dict() for e in items], "total": total})
