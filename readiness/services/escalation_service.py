"""
Escalation Service: applies escalation decisions.

    escalate                     manual escalation, optional block request
    evaluate_all_eligible_units  the periodic tick

The tick re-derives each candidate unit's status first (a unit that has
quietly become GREEN resolves instead of escalating), then asks the pure
engine for a decision and applies it.  Each unit is its own transaction:
one failing unit is rolled back and logged, the others proceed.  Ticks are
idempotent because the level is persisted and climbs one step per tick.
"""

import logging
from datetime import datetime, timezone

from readiness.core.exceptions import ValidationError
from readiness.models import db
from readiness.models.unit import MAX_ESCALATION_LEVEL, Unit
from readiness.services import authority
from readiness.services.audit_emitter import audit
from readiness.services.escalation_engine import EscalationDecision, evaluate
from readiness.services.unit_service import (
    apply_block_request,
    load_unit,
    open_escalation_event,
    raise_escalation_level,
    refresh_unit_status,
)
from readiness.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)


def _validate_level(level):
    if isinstance(level, bool) or not isinstance(level, int) or not 1 <= level <= MAX_ESCALATION_LEVEL:
        raise ValidationError(f"level must be an integer between 1 and {MAX_ESCALATION_LEVEL}",
                              details={"level": repr(level)})
    return level


def escalate(unit_id, actor, level, reason, mark_as_blocked=False, now=None):
    """Manual escalation at a caller-supplied level.

    The unit's level becomes ``max(current, level)``; it never decreases.
    On a GREEN unit the event is recorded already resolved and the level
    is left alone.

    With *mark_as_blocked*, actors allowed to confirm blocking block the
    unit; anyone else turns the event into a block proposal.

    Returns ``{"event": …, "blocked_applied": bool, "unit": …}``.
    """
    reason = reason.strip() if isinstance(reason, str) else ""
    if not reason:
        raise ValidationError("Escalation reason is required", details={"reason": "required"})
    level = _validate_level(level)
    unit = load_unit(unit_id)
    now = now or datetime.now(timezone.utc)

    proposed = bool(mark_as_blocked) and not authority.confirm_blocked(actor).allowed
    event = open_escalation_event(unit, level=level, trigger_type="manual", actor=actor,
                                  reason=reason, proposed_blocked=proposed, now=now)
    old_level = unit.current_escalation_level or 0
    active = raise_escalation_level(unit, event, now=now)
    audit.record(unit_id=unit.id, event_type="manual_escalation", old_status=unit.computed_status,
                 new_status=unit.computed_status, actor=actor, reason=reason,
                 metadata={"escalation_id": event.id, "level": level, "previous_level": old_level,
                           "proposed_blocked": proposed, "active": active})

    blocked_applied = False
    if mark_as_blocked and not proposed and not unit.is_blocked:
        blocked_applied, _ = apply_block_request(unit, actor, reason, now=now)
    elif proposed:
        audit.record(unit_id=unit.id, event_type="block_proposed", old_status=unit.computed_status,
                     new_status=unit.computed_status, actor=actor, reason=reason,
                     metadata={"escalation_id": event.id})

    commit_or_conflict("Unit", unit.id)
    logger.info("Manual escalation L%d on unit %s by %s (blocked=%s proposed=%s)",
                level, unit.id, actor.user_id, blocked_applied, proposed,
                extra={"unit_id": unit.id, "event_type": "manual_escalation", "actor_role": actor.role})
    return {"event": event.to_dict(), "blocked_applied": blocked_applied, "unit": unit.to_dict()}


def _candidate_ids():
    rows = (
        db.session.query(Unit.id)
        .filter(
            Unit.is_archived.is_(False),
            Unit.is_confirmed.is_(True),
            Unit.is_blocked.is_(False),
        )
        .order_by(Unit.id)
        .all()
    )
    return [r[0] for r in rows]


def evaluate_unit(unit, now):
    """Refresh, decide and apply for one locked unit.  No commit."""
    _, status = refresh_unit_status(unit, now=now)
    decision = evaluate(unit, now, status=status)
    if not decision.escalate:
        return decision

    unit.current_escalation_level = decision.new_level
    event = open_escalation_event(
        unit,
        level=decision.new_level,
        trigger_type="automatic",
        elapsed_pct=round(decision.elapsed_pct, 2),
        threshold_pct=decision.threshold_pct,
        now=now,
    )
    audit.record(
        unit_id=unit.id,
        event_type="escalation_raised",
        old_status=status,
        new_status=status,
        metadata={
            "escalation_id": event.id,
            "level": decision.new_level,
            "elapsed_pct": round(decision.elapsed_pct, 2),
            "threshold_pct": decision.threshold_pct,
            "recipients": list(decision.recipients),
        },
    )
    logger.info("Unit %s escalated to L%d (%.1f%% ≥ %.0f%%)", unit.id, decision.new_level,
                decision.elapsed_pct, decision.threshold_pct,
                extra={"unit_id": unit.id, "event_type": "escalation_raised"})
    return decision


def evaluate_all_eligible_units(now=None):
    """Run one escalation tick.  Returns the decision for every candidate unit."""
    now = now or datetime.now(timezone.utc)
    decisions = []
    for unit_id in _candidate_ids():
        try:
            unit = load_unit(unit_id)
            decision = evaluate_unit(unit, now)
            commit_or_conflict("Unit", unit_id)
        except Exception as exc:
            db.session.rollback()
            logger.error("Escalation tick failed for unit %s: %s", unit_id, exc, exc_info=True,
                         extra={"unit_id": unit_id})
            decision = EscalationDecision(unit_id, False, skipped_reason="error")
        decisions.append(decision)
    raised = sum(1 for d in decisions if d.escalate)
    logger.info("Escalation tick: %d units evaluated, %d escalated", len(decisions), raised)
    return decisions
