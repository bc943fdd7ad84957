"""
Execution Readiness Portal
Audit domain model.

Models:
    - StatusEvent: immutable, append-only record of every meaningful unit
      transition (blocked/unblocked, proof decisions, escalations,
      confirmation, archive, derived status changes).

Rows are written only through ``readiness.services.audit_emitter``; no
update or delete path exists.  The mapper listeners below refuse either
operation if some caller reaches for the ORM directly.
"""

from datetime import datetime, timezone

from sqlalchemy import event

from readiness.models import db


# ── Constants ────────────────────────────────────────────────────────────────

STATUS_EVENT_TYPES = {
    "unit_created",
    "unit_confirmed",
    "unit_archived",
    "blocked",
    "block_proposed",
    "unblocked",
    "proof_submitted",
    "proof_approved",
    "proof_rejected",
    "proof_expired",
    "escalation_raised",
    "manual_escalation",
    "status_computed",
}


class StatusEvent(db.Model):
    """Append-only audit row referenced by unit id."""

    __tablename__ = "unit_status_events"
    __table_args__ = (
        db.Index("ix_status_events_unit_ts", "unit_id", "created_at"),
        db.Index("ix_status_events_type_ts", "event_type", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    event_type = db.Column(db.String(30), nullable=False)
    old_status = db.Column(db.String(10), nullable=True)
    new_status = db.Column(db.String(10), nullable=True)
    triggered_by = db.Column(db.String(150), nullable=False, default="system")
    triggered_by_role = db.Column(db.String(30), nullable=True)
    reason = db.Column(db.Text, nullable=True)
    details = db.Column("metadata", db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "event_type": self.event_type,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "triggered_by": self.triggered_by,
            "triggered_by_role": self.triggered_by_role,
            "reason": self.reason,
            "metadata": dict(self.details or {}),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<StatusEvent {self.id}: {self.event_type} on unit {self.unit_id}>"


@event.listens_for(StatusEvent, "before_update")
def _refuse_update(mapper, connection, target):
    raise RuntimeError(f"StatusEvent {target.id} is append-only and cannot be updated")


@event.listens_for(StatusEvent, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise RuntimeError(f"StatusEvent {target.id} is append-only and cannot be deleted")
