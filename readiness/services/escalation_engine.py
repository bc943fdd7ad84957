"""
Escalation Engine: time-driven alert level evaluation.

Pure decision logic; persistence, notification and audit happen in
``escalation_service``.

Policy: one level per tick.  When several thresholds were crossed since
the previous tick, the unit climbs the next level only; later ticks raise
the rest in index order, each with its own event.

Level → recipient tiers:
    1  WORKSTREAM_LEAD
    2  WORKSTREAM_LEAD, PROGRAM_OWNER
    3  WORKSTREAM_LEAD, PROGRAM_OWNER, PLATFORM_ADMIN
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from readiness.core.exceptions import ValidationError
from readiness.models.unit import ALERT_PROFILES, MAX_ESCALATION_LEVEL
from readiness.utils.helpers import as_utc

MIN_THRESHOLDS = 1
MAX_THRESHOLDS = 5

LEVEL_RECIPIENTS = {
    1: ("WORKSTREAM_LEAD",),
    2: ("WORKSTREAM_LEAD", "PROGRAM_OWNER"),
    3: ("WORKSTREAM_LEAD", "PROGRAM_OWNER", "PLATFORM_ADMIN"),
}

LEVEL_PRIORITY = {1: "normal", 2: "high", 3: "critical"}


@dataclass(frozen=True)
class EscalationDecision:
    """Outcome of evaluating one unit at one instant."""

    unit_id: int | None
    escalate: bool
    new_level: int | None = None
    threshold_pct: float | None = None
    elapsed_pct: float = 0.0
    recipients: tuple = field(default_factory=tuple)
    skipped_reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "escalate": self.escalate,
            "new_level": self.new_level,
            "threshold_pct": self.threshold_pct,
            "elapsed_pct": round(self.elapsed_pct, 2),
            "recipients": list(self.recipients),
            "skipped_reason": self.skipped_reason,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Configuration validation (write time)
# ═════════════════════════════════════════════════════════════════════════════

def validate_thresholds(values) -> tuple:
    """Validate a CUSTOM threshold list and return it as a tuple of floats.

    Raises:
        ValidationError: wrong count, non-numeric, outside [0, 100] or not
            strictly increasing.
    """
    if not isinstance(values, (list, tuple)):
        raise ValidationError("alert_thresholds must be a list of percentages",
                              details={"alert_thresholds": "must be a list"})
    if not MIN_THRESHOLDS <= len(values) <= MAX_THRESHOLDS:
        raise ValidationError(
            f"alert_thresholds must contain {MIN_THRESHOLDS}-{MAX_THRESHOLDS} values",
            details={"alert_thresholds": f"got {len(values)} values"},
        )
    cleaned = []
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValidationError("alert_thresholds must be numeric",
                                  details={"alert_thresholds": f"invalid value {v!r}"})
        if v < 0 or v > 100:
            raise ValidationError("alert_thresholds must be within [0, 100]",
                                  details={"alert_thresholds": f"out of range {v!r}"})
        if cleaned and v <= cleaned[-1]:
            raise ValidationError("alert_thresholds must be strictly increasing",
                                  details={"alert_thresholds": f"{v!r} after {cleaned[-1]!r}"})
        cleaned.append(float(v))
    return tuple(cleaned)


def validate_alert_profile(profile: str, thresholds=None):
    """Return ``(profile, stored_thresholds)`` ready to persist on a unit.

    STANDARD/CRITICAL ignore supplied thresholds; CUSTOM requires them.
    """
    profile = (profile or "STANDARD").upper()
    if profile not in ALERT_PROFILES:
        raise ValidationError(f"Unknown alert_profile '{profile}'",
                              details={"alert_profile": sorted(ALERT_PROFILES)})
    if profile == "CUSTOM":
        if thresholds is None:
            raise ValidationError("CUSTOM alert_profile requires alert_thresholds",
                                  details={"alert_thresholds": "required"})
        return profile, list(validate_thresholds(thresholds))
    return profile, None


def thresholds_for(unit) -> tuple:
    return tuple(unit.thresholds)


# ═════════════════════════════════════════════════════════════════════════════
# Evaluation
# ═════════════════════════════════════════════════════════════════════════════

def elapsed_fraction(created_at: datetime, deadline: datetime, now: datetime) -> float:
    """Fraction of the created→deadline window that has passed, clamped to [0, 1].

    A deadline at or before creation counts as fully elapsed.
    """
    created_at, deadline, now = as_utc(created_at), as_utc(deadline), as_utc(now)
    window = (deadline - created_at).total_seconds()
    if window <= 0:
        return 1.0
    frac = (now - created_at).total_seconds() / window
    return max(0.0, min(1.0, frac))


def recipients_for_level(level: int) -> tuple:
    """Role tiers notified at *level* (clamped to 1..3)."""
    level = max(1, min(MAX_ESCALATION_LEVEL, int(level)))
    return LEVEL_RECIPIENTS[level]


def priority_for_level(level: int) -> str:
    return LEVEL_PRIORITY[max(1, min(MAX_ESCALATION_LEVEL, int(level)))]


def evaluate(unit, now: datetime, status: str | None = None) -> EscalationDecision:
    """Decide whether *unit* climbs an escalation level at *now*.

    *status* defaults to the unit's cached ``computed_status``; callers that
    have just resolved a fresher value pass it in.
    """
    status = status or unit.computed_status
    unit_id = unit.id

    if unit.is_archived:
        return EscalationDecision(unit_id, False, skipped_reason="archived")
    if not unit.is_confirmed:
        return EscalationDecision(unit_id, False, skipped_reason="unconfirmed")
    if unit.is_blocked or status == "BLOCKED":
        return EscalationDecision(unit_id, False, skipped_reason="blocked")
    if status == "GREEN":
        return EscalationDecision(unit_id, False, skipped_reason="green")

    pct = elapsed_fraction(unit.created_at, unit.deadline, now) * 100
    current = unit.current_escalation_level or 0
    levels = thresholds_for(unit)[:MAX_ESCALATION_LEVEL]

    if current >= len(levels):
        return EscalationDecision(unit_id, False, elapsed_pct=pct, skipped_reason="max_level")

    next_threshold = levels[current]
    if next_threshold <= pct:
        new_level = current + 1
        return EscalationDecision(
            unit_id, True,
            new_level=new_level,
            threshold_pct=float(next_threshold),
            elapsed_pct=pct,
            recipients=recipients_for_level(new_level),
        )
    return EscalationDecision(unit_id, False, elapsed_pct=pct, skipped_reason="below_threshold")
