"""
Execution Readiness Portal
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking

Recipients are keys, not user rows: ``role:<ROLE>`` fans out to every
holder of that role within the client, ``user:<id>`` targets one actor.
Outbound transports (email/SMS) read from this table and are external.
"""

from datetime import datetime, timezone

from readiness.models import db


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient key per event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    recipient = db.Column(db.String(150), nullable=False, index=True,
                          comment="role:<ROLE> or user:<id>")
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    category = db.Column(db.String(30), default="system")
    priority = db.Column(db.String(20), default="normal")

    # Link to source entity
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id", ondelete="CASCADE"), nullable=True)
    escalation_id = db.Column(db.Integer, db.ForeignKey("escalation_events.id"), nullable=True)

    # Read tracking
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "recipient": self.recipient,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "priority": self.priority,
            "unit_id": self.unit_id,
            "escalation_id": self.escalation_id,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
