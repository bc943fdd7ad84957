"""
Execution Readiness Portal
Notification Service.

Outbound notification sink for escalations, block requests and proof
decisions.  Writes one in-app ``Notification`` row per recipient key and
never commits: rows ride along with the caller's transaction.  Email/SMS
delivery reads from the table and lives outside this package.

Recipient keys:
    role:<ROLE>   every holder of ROLE within ``client_id``
    user:<id>     one actor
"""

import logging

from readiness.core.exceptions import NotFoundError
from readiness.models import db
from readiness.models.notification import Notification

logger = logging.getLogger(__name__)


def role_key(role: str) -> str:
    return f"role:{role}"


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def notify(recipients_by_role, *, title, message="", category="escalation",
               priority="normal", client_id=None, unit_id=None, escalation_id=None):
        """
        Fan an event out to role tiers.

        Fire-and-forget: a failure is logged and swallowed so the business
        action that raised the event still succeeds.

        Returns:
            List of Notification instances added to the session.
        """
        notifications = []
        try:
            for role in recipients_by_role:
                notif = Notification(
                    client_id=client_id,
                    recipient=role_key(role),
                    title=title,
                    message=message,
                    category=category,
                    priority=priority,
                    unit_id=unit_id,
                    escalation_id=escalation_id,
                )
                db.session.add(notif)
                notifications.append(notif)
        except Exception:
            logger.error("Notification fan-out failed for unit %s", unit_id, exc_info=True,
                         extra={"unit_id": unit_id})
            return []
        return notifications

    @staticmethod
    def notify_user(user_id, *, title, message="", category="proof", priority="normal",
                    client_id=None, unit_id=None):
        """Notify a single actor (e.g. the uploader of a decided proof)."""
        try:
            notif = Notification(
                client_id=client_id,
                recipient=user_key(user_id),
                title=title,
                message=message,
                category=category,
                priority=priority,
                unit_id=unit_id,
            )
            db.session.add(notif)
        except Exception:
            logger.error("Notification to user %s failed", user_id, exc_info=True,
                         extra={"unit_id": unit_id})
            return None
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_actor(actor, client_id=None, unread_only=False, limit=50, offset=0):
        """
        Notifications addressed to the actor directly or to their role, newest first.
        """
        q = Notification.query.filter(
            Notification.recipient.in_([user_key(actor.user_id), role_key(actor.role)])
        )
        if client_id:
            q = q.filter_by(client_id=client_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id):
        """Mark a single notification as read."""
        notif = db.session.get(Notification, notification_id)
        if not notif:
            raise NotFoundError(resource="Notification", resource_id=notification_id)
        notif.mark_read()
        db.session.commit()
        return notif
