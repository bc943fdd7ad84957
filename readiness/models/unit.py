"""
Execution Readiness Portal
Unit domain model.

Models:
    - Unit: smallest trackable deliverable requiring proof-backed verification

A unit owns its proofs, its blocked state and its escalation level.
``computed_status`` is a cache of ``status_resolver.resolve`` refreshed by
every mutation path; it is never written anywhere else.
"""

from datetime import datetime, timezone

from readiness.models import db
from readiness.models.archive import ArchiveMixin


# ── Constants ────────────────────────────────────────────────────────────────

UNIT_STATUSES = {"RED", "GREEN", "BLOCKED"}

ALERT_PROFILES = {"STANDARD", "CRITICAL", "CUSTOM"}

# Elapsed-time percentages that raise escalation levels 1, 2, 3
PROFILE_THRESHOLDS = {
    "STANDARD": (50, 75, 90),
    "CRITICAL": (30, 60, 90),
}

MAX_ESCALATION_LEVEL = 3


class Unit(ArchiveMixin, db.Model):
    """
    Deliverable whose readiness is proven by evidence.

    Invariants kept by the service layer:
    - ``is_blocked`` implies a non-empty ``blocked_reason``.
    - ``current_escalation_level`` only grows within a deadline cycle; it
      is reset to 0 when the unit turns GREEN.
    - ``version`` is the optimistic-concurrency counter.
    """

    __tablename__ = "units"
    __table_args__ = (
        db.Index("ix_units_workstream_status", "workstream_id", "computed_status"),
        db.CheckConstraint(
            "NOT is_blocked OR (blocked_reason IS NOT NULL AND length(trim(blocked_reason)) > 0)",
            name="ck_units_blocked_reason_required",
        ),
        db.CheckConstraint(
            "current_escalation_level >= 0 AND current_escalation_level <= 3",
            name="ck_units_escalation_level_range",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    workstream_id = db.Column(
        db.Integer, db.ForeignKey("workstreams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")

    # Proof requirements
    required_proof_count = db.Column(db.Integer, nullable=False, default=1)
    required_proof_types = db.Column(db.JSON, nullable=False, default=list,
                                     comment="e.g. [\"photo\", \"document\"]")
    requires_reviewer_approval = db.Column(db.Boolean, nullable=False, default=True)
    requires_reference_number = db.Column(db.Boolean, nullable=False, default=False)
    requires_expiry_date = db.Column(db.Boolean, nullable=False, default=False)

    # Deadline and alerting
    deadline = db.Column(db.DateTime(timezone=True), nullable=False)
    alert_profile = db.Column(db.String(20), nullable=False, default="STANDARD",
                              comment="STANDARD | CRITICAL | CUSTOM")
    alert_thresholds = db.Column(db.JSON, nullable=True,
                                 comment="CUSTOM only: strictly increasing percentages")
    high_criticality = db.Column(db.Boolean, nullable=False, default=False)
    current_escalation_level = db.Column(db.Integer, nullable=False, default=0)

    # Blocked override
    is_blocked = db.Column(db.Boolean, nullable=False, default=False)
    blocked_reason = db.Column(db.Text, nullable=True)
    blocked_by = db.Column(db.String(150), nullable=True)
    blocked_by_role = db.Column(db.String(30), nullable=True)
    blocked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Scope confirmation
    is_confirmed = db.Column(db.Boolean, nullable=False, default=True)
    confirmed_by = db.Column(db.String(150), nullable=True)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Derived status cache
    computed_status = db.Column(db.String(10), nullable=False, default="RED",
                                comment="RED | GREEN | BLOCKED")
    status_computed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.Column(db.String(150), nullable=False, default="system")
    created_by_role = db.Column(db.String(30), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    workstream = db.relationship("Workstream", back_populates="units")
    proofs = db.relationship("Proof", back_populates="unit", order_by="Proof.id",
                             lazy="select")
    escalations = db.relationship("EscalationEvent", back_populates="unit",
                                  order_by="EscalationEvent.id", lazy="dynamic")

    @property
    def thresholds(self) -> tuple:
        """Ordered alert percentages for this unit's profile."""
        if self.alert_profile == "CUSTOM":
            return tuple(self.alert_thresholds or ())
        return PROFILE_THRESHOLDS.get(self.alert_profile or "STANDARD", PROFILE_THRESHOLDS["STANDARD"])

    def to_dict(self):
        return {
            "id": self.id,
            "workstream_id": self.workstream_id,
            "title": self.title,
            "description": self.description,
            "required_proof_count": self.required_proof_count,
            "required_proof_types": list(self.required_proof_types or []),
            "requires_reviewer_approval": self.requires_reviewer_approval,
            "requires_reference_number": self.requires_reference_number,
            "requires_expiry_date": self.requires_expiry_date,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "alert_profile": self.alert_profile,
            "alert_thresholds": list(self.thresholds),
            "high_criticality": self.high_criticality,
            "current_escalation_level": self.current_escalation_level,
            "is_blocked": self.is_blocked,
            "blocked_reason": self.blocked_reason,
            "blocked_by": self.blocked_by,
            "blocked_at": self.blocked_at.isoformat() if self.blocked_at else None,
            "is_confirmed": self.is_confirmed,
            "confirmed_by": self.confirmed_by,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "is_archived": self.is_archived,
            "computed_status": self.computed_status,
            "status_computed_at": self.status_computed_at.isoformat() if self.status_computed_at else None,
            "created_by": self.created_by,
            "created_by_role": self.created_by_role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "version": self.version,
        }

    def __repr__(self):
        return f"<Unit {self.id}: {self.title[:40]} [{self.computed_status}]>"
