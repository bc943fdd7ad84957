"""
Execution Readiness Portal
Notification Blueprint.

Endpoints:
    GET  /api/v1/notifications - caller's notifications (user + role keys)
    POST /api/v1/notifications/<id>/read - mark one as read
"""

from flask import Blueprint, jsonify, request

from readiness.blueprints import register_error_handlers, require_actor
from readiness.services.notification import NotificationService

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/v1")
register_error_handlers(notification_bp)


@notification_bp.route("/notifications", methods=["GET"])
def list_notifications():
    """
    Query params:
        client_id - restrict to one client
        unread_only - "true" to hide read items
        limit/offset - pagination (default 50)
    """
    actor = require_actor()
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    limit = min(request.args.get("limit", 50, type=int), 200)
    offset = max(request.args.get("offset", 0, type=int), 0)
    items, total = NotificationService.list_for_actor(
        actor,
        client_id=request.args.get("client_id", type=int),
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": [n.to_dict() for n in items], "total": total})


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
def mark_read(notification_id):
    require_actor()
    notif = NotificationService.mark_read(notification_id)
    return jsonify(notif.to_dict())
