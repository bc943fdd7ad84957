"""
Execution Readiness Portal
Escalation domain model.

Models:
    - EscalationEvent: immutable record of an alert level reached
      (automatic) or requested (manual)

Only the resolution columns change after insert: an event moves from
``active`` to ``resolved`` when its unit turns GREEN or is confirmed
BLOCKED.
"""

from datetime import datetime, timezone

from readiness.models import db


# ── Constants ────────────────────────────────────────────────────────────────

TRIGGER_TYPES = {"automatic", "manual"}
ESCALATION_STATES = {"active", "resolved"}


class EscalationEvent(db.Model):
    """Alert level reached or requested for a unit."""

    __tablename__ = "escalation_events"
    __table_args__ = (
        db.Index("ix_escalation_unit_state", "unit_id", "state"),
        db.CheckConstraint("level >= 1 AND level <= 3", name="ck_escalation_level_range"),
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(
        db.Integer, db.ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    level = db.Column(db.Integer, nullable=False)
    trigger_type = db.Column(db.String(10), nullable=False, comment="automatic | manual")
    reason = db.Column(db.Text, nullable=True, comment="Mandatory for manual escalations")
    elapsed_pct = db.Column(db.Float, nullable=True, comment="Automatic only")
    threshold_pct = db.Column(db.Float, nullable=True, comment="Automatic only")

    proposed_blocked = db.Column(db.Boolean, nullable=False, default=False)
    proposed_by = db.Column(db.String(150), nullable=True)
    proposed_by_role = db.Column(db.String(30), nullable=True)

    recipients = db.Column(db.JSON, nullable=False, default=list,
                           comment="Role tiers notified")
    triggered_by = db.Column(db.String(150), nullable=False, default="system")
    triggered_by_role = db.Column(db.String(30), nullable=True)
    triggered_at = db.Column(db.DateTime(timezone=True), nullable=False,
                             default=lambda: datetime.now(timezone.utc))

    state = db.Column(db.String(10), nullable=False, default="active")
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolution = db.Column(db.String(30), nullable=True, comment="unit_green | unit_blocked")

    unit = db.relationship("Unit", back_populates="escalations")

    def resolve(self, resolution: str, when: datetime | None = None):
        self.state = "resolved"
        self.resolution = resolution
        self.resolved_at = when or datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "level": self.level,
            "trigger_type": self.trigger_type,
            "reason": self.reason,
            "elapsed_pct": self.elapsed_pct,
            "threshold_pct": self.threshold_pct,
            "proposed_blocked": self.proposed_blocked,
            "proposed_by": self.proposed_by,
            "proposed_by_role": self.proposed_by_role,
            "recipients": list(self.recipients or []),
            "triggered_by": self.triggered_by,
            "triggered_by_role": self.triggered_by_role,
            "triggered_at": self.triggered_at.isoformat() if self.triggered_at else None,
            "state": self.state,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolution": self.resolution,
        }

    def __repr__(self):
        return f"<EscalationEvent {self.id}: unit={self.unit_id} L{self.level} {self.state}>"
