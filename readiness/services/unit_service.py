"""
Unit Service: unit lifecycle and status refresh.

Every mutation path goes through ``refresh_unit_status``, which calls the
pure resolver, caches the result on the unit, emits ``status_computed`` on
change, resolves escalations and refreshes the parent workstream.  No
status is ever written anywhere else.

Lifecycle:
    create ──► RED (unconfirmed when created below workstream-lead tier)
      │  confirm ──► counted by roll-ups and escalation
      │  block   ──► BLOCKED  (lower tiers only propose)
      │  unblock ──► re-derived from proofs
      └  archive ──► invisible to mutations, history kept

Units are read with ``SELECT … FOR UPDATE`` and written under the
``version`` check; a stale write surfaces as ``ConcurrencyConflict``.
"""

import logging
from datetime import datetime, timezone

from readiness.core.exceptions import ConflictError, NotFoundError, ValidationError
from readiness.models import db
from readiness.models.audit import StatusEvent
from readiness.models.escalation import EscalationEvent
from readiness.models.proof import Proof
from readiness.models.unit import MAX_ESCALATION_LEVEL, Unit
from readiness.services import authority
from readiness.services.audit_emitter import audit
from readiness.services.escalation_engine import (
    priority_for_level,
    recipients_for_level,
    validate_alert_profile,
)
from readiness.services.notification import NotificationService
from readiness.services.status_resolver import resolve
from readiness.services.workstream_service import get_workstream, refresh_workstream_status
from readiness.utils.helpers import commit_or_conflict, parse_datetime

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════════════
# Loading
# ═════════════════════════════════════════════════════════════════════════════

def load_unit(unit_id, *, for_update=True, include_archived=False) -> Unit:
    """Fetch a unit, locking the row where the dialect supports it.

    Archived units raise NotFoundError unless *include_archived*.
    """
    q = Unit.query.filter(Unit.id == unit_id)
    if for_update:
        q = q.with_for_update()
    unit = q.first()
    if unit is None or (unit.is_archived and not include_archived):
        raise NotFoundError(resource="Unit", resource_id=unit_id)
    return unit


def client_id_for(unit):
    ws = unit.workstream
    return ws.program.client_id if ws is not None and ws.program is not None else None


# ═════════════════════════════════════════════════════════════════════════════
# Status refresh
# ═════════════════════════════════════════════════════════════════════════════

def resolve_active_escalations(unit, resolution, now=None):
    """Mark every active escalation on *unit* resolved; returns the count."""
    now = now or _now()
    active = unit.escalations.filter(EscalationEvent.state == "active").all()
    for esc in active:
        esc.resolve(resolution, when=now)
    return len(active)


def refresh_unit_status(unit, *, actor=None, now=None, reason=None):
    """Re-derive *unit*'s status and persist the cache.  No commit.

    A GREEN unit always ends at level 0 with no active escalations, whether
    or not the status changed.  On a transition to BLOCKED active
    escalations are resolved.  Returns ``(old_status, new_status)``.
    """
    now = now or _now()
    old_status = unit.computed_status
    new_status = resolve(unit, unit.proofs)
    unit.computed_status = new_status
    unit.status_computed_at = now

    metadata = {}
    if new_status == "GREEN":
        if unit.current_escalation_level:
            metadata["escalation_level_reset_from"] = unit.current_escalation_level
            unit.current_escalation_level = 0
        metadata["escalations_resolved"] = resolve_active_escalations(unit, "unit_green", now)
    elif new_status == "BLOCKED" and old_status != new_status:
        metadata["escalations_resolved"] = resolve_active_escalations(unit, "unit_blocked", now)

    if old_status != new_status:
        audit.record(
            unit_id=unit.id,
            event_type="status_computed",
            old_status=old_status,
            new_status=new_status,
            actor=actor,
            reason=reason,
            metadata=metadata,
        )
        logger.info("Unit %s status %s → %s", unit.id, old_status, new_status,
                    extra={"unit_id": unit.id, "event_type": "status_computed"})

    refresh_workstream_status(unit.workstream_id, now=now)
    return old_status, new_status


# ═════════════════════════════════════════════════════════════════════════════
# Escalation events (shared by manual, automatic and proposed-block paths)
# ═════════════════════════════════════════════════════════════════════════════

def open_escalation_event(unit, *, level, trigger_type, actor=None, reason=None,
                          elapsed_pct=None, threshold_pct=None, proposed_blocked=False,
                          now=None):
    """Insert an escalation event and notify the level's role tiers.  No commit."""
    level = max(1, min(MAX_ESCALATION_LEVEL, int(level)))
    recipients = list(recipients_for_level(level))
    event = EscalationEvent(
        unit_id=unit.id,
        level=level,
        trigger_type=trigger_type,
        reason=reason,
        elapsed_pct=elapsed_pct,
        threshold_pct=threshold_pct,
        proposed_blocked=proposed_blocked,
        proposed_by=actor.user_id if (proposed_blocked and actor) else None,
        proposed_by_role=actor.role if (proposed_blocked and actor) else None,
        recipients=recipients,
        triggered_by=actor.user_id if actor else "system",
        triggered_by_role=actor.role if actor else None,
        triggered_at=now or _now(),
        state="active",
    )
    db.session.add(event)
    db.session.flush()

    if trigger_type == "automatic":
        title = f"Escalation level {level}: {unit.title}"
        message = (f"Unit '{unit.title}' is still RED at {elapsed_pct:.0f}% of its deadline window "
                   f"(threshold {threshold_pct:.0f}%).")
        category = "escalation"
    else:
        verb = "blocking proposed" if proposed_blocked else "manual escalation"
        title = f"{verb.capitalize()}: {unit.title}"
        message = f"Unit '{unit.title}': {reason}"
        category = "block" if proposed_blocked else "manual_escalation"
    NotificationService.notify(
        recipients,
        title=title,
        message=message,
        category=category,
        priority=priority_for_level(level),
        client_id=client_id_for(unit),
        unit_id=unit.id,
        escalation_id=event.id,
    )
    return event


def raise_escalation_level(unit, event, now=None):
    """Lift *unit* to ``max(current, event.level)``.

    A GREEN unit has nothing to escalate: the event is resolved at once and
    the level stays put.  Returns True when the event stays active.
    """
    if unit.computed_status == "GREEN":
        event.resolve("unit_green", when=now or _now())
        return False
    unit.current_escalation_level = max(unit.current_escalation_level or 0, event.level)
    return True


# ═════════════════════════════════════════════════════════════════════════════
# Create
# ═════════════════════════════════════════════════════════════════════════════

def _clean_types(values):
    if values is None:
        return []
    if not isinstance(values, (list, tuple, set)):
        raise ValidationError("required_proof_types must be a list",
                              details={"required_proof_types": "must be a list"})
    cleaned = []
    for v in values:
        if not isinstance(v, str) or not v.strip():
            raise ValidationError("proof types must be non-empty strings",
                                  details={"required_proof_types": repr(v)})
        t = v.strip().lower()
        if t not in cleaned:
            cleaned.append(t)
    return cleaned


def create_unit(workstream_id, actor, data, now=None):
    """Create a unit under *workstream_id* from a request-shaped dict."""
    authority.require(authority.create_unit(actor))
    ws = get_workstream(workstream_id)

    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})

    try:
        deadline = parse_datetime(data.get("deadline"))
    except ValueError as exc:
        raise ValidationError(str(exc), details={"deadline": "invalid"}) from exc
    if deadline is None:
        raise ValidationError("deadline is required", details={"deadline": "required"})

    count = data.get("required_proof_count", 1)
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise ValidationError("required_proof_count must be a non-negative integer",
                              details={"required_proof_count": repr(count)})

    profile, thresholds = validate_alert_profile(
        data.get("alert_profile", "STANDARD"), data.get("alert_thresholds"),
    )
    now = now or _now()
    unconfirmed = authority.starts_unconfirmed(actor)

    unit = Unit(
        workstream_id=ws.id,
        title=title,
        description=data.get("description") or "",
        required_proof_count=count,
        required_proof_types=_clean_types(data.get("required_proof_types")),
        requires_reviewer_approval=bool(data.get("requires_reviewer_approval", True)),
        requires_reference_number=bool(data.get("requires_reference_number", False)),
        requires_expiry_date=bool(data.get("requires_expiry_date", False)),
        deadline=deadline,
        alert_profile=profile,
        alert_thresholds=thresholds,
        high_criticality=bool(data.get("high_criticality", False)),
        current_escalation_level=0,
        is_blocked=False,
        is_confirmed=not unconfirmed,
        confirmed_by=None if unconfirmed else actor.user_id,
        confirmed_at=None if unconfirmed else now,
        created_by=actor.user_id,
        created_by_role=actor.role,
        created_at=now,
    )
    unit.computed_status = resolve(unit, [])
    unit.status_computed_at = now
    db.session.add(unit)
    db.session.flush()

    audit.record(
        unit_id=unit.id,
        event_type="unit_created",
        new_status=unit.computed_status,
        actor=actor,
        metadata={"is_confirmed": unit.is_confirmed, "alert_profile": profile},
    )
    refresh_workstream_status(ws.id, now=now)
    commit_or_conflict("Unit", unit.id)
    logger.info("Unit %s created by %s (confirmed=%s)", unit.id, actor.user_id, unit.is_confirmed,
                extra={"unit_id": unit.id, "actor_role": actor.role})
    return unit


# ═════════════════════════════════════════════════════════════════════════════
# Block / unblock
# ═════════════════════════════════════════════════════════════════════════════

def _require_reason(reason, field="reason"):
    text = reason.strip() if isinstance(reason, str) else ""
    if not text:
        raise ValidationError(f"{field} is required", details={field: "required"})
    return text


def apply_block_request(unit, actor, reason, now=None):
    """Block *unit* if *actor* may confirm blocking, otherwise record a proposal.

    Shared by ``block_unit`` and manual escalation with ``mark_as_blocked``.
    Returns ``(blocked_applied, proposal_event_or_None)``.  No commit.
    """
    now = now or _now()
    decision = authority.confirm_blocked(actor)
    if decision.allowed:
        if unit.is_blocked:
            raise ConflictError("Unit", f"Unit {unit.id} is already blocked")
        old_status = unit.computed_status
        unit.is_blocked = True
        unit.blocked_reason = reason
        unit.blocked_by = actor.user_id
        unit.blocked_by_role = actor.role
        unit.blocked_at = now
        audit.record(unit_id=unit.id, event_type="blocked", old_status=old_status,
                     new_status="BLOCKED", actor=actor, reason=reason)
        refresh_unit_status(unit, actor=actor, now=now, reason=reason)
        NotificationService.notify(
            ["WORKSTREAM_LEAD", "PROGRAM_OWNER"],
            title=f"Unit blocked: {unit.title}",
            message=reason,
            category="block",
            priority="high",
            client_id=client_id_for(unit),
            unit_id=unit.id,
        )
        return True, None

    level = max(unit.current_escalation_level or 0, 1)
    event = open_escalation_event(unit, level=level, trigger_type="manual", actor=actor,
                                  reason=reason, proposed_blocked=True, now=now)
    raise_escalation_level(unit, event, now=now)
    audit.record(unit_id=unit.id, event_type="block_proposed", old_status=unit.computed_status,
                 new_status=unit.computed_status, actor=actor, reason=reason,
                 metadata={"escalation_id": event.id, "rule": decision.rule})
    logger.info("Block proposed on unit %s by %s (%s)", unit.id, actor.user_id, actor.role,
                extra={"unit_id": unit.id, "actor_role": actor.role})
    return False, event


def block_unit(unit_id, actor, reason, now=None):
    reason = _require_reason(reason)
    unit = load_unit(unit_id)
    applied, event = apply_block_request(unit, actor, reason, now=now)
    commit_or_conflict("Unit", unit.id)
    return {
        "unit": unit.to_dict(),
        "blocked_applied": applied,
        "event": event.to_dict() if event else None,
    }


def unblock_unit(unit_id, actor, reason=None, now=None):
    """Clear the blocked override; status is re-derived from proofs."""
    authority.require(authority.unblock(actor))
    unit = load_unit(unit_id)
    if not unit.is_blocked:
        raise ConflictError("Unit", f"Unit {unit.id} is not blocked")
    now = now or _now()
    previous_reason = unit.blocked_reason
    unit.is_blocked = False
    unit.blocked_reason = None
    unit.blocked_by = None
    unit.blocked_by_role = None
    unit.blocked_at = None
    _, new_status = refresh_unit_status(unit, actor=actor, now=now, reason=reason)
    audit.record(unit_id=unit.id, event_type="unblocked", old_status="BLOCKED",
                 new_status=new_status, actor=actor, reason=reason,
                 metadata={"previous_reason": previous_reason})
    commit_or_conflict("Unit", unit.id)
    logger.info("Unit %s unblocked by %s → %s", unit.id, actor.user_id, new_status,
                extra={"unit_id": unit.id, "actor_role": actor.role})
    return {"unit": unit.to_dict(), "new_unit_status": new_status}


# ═════════════════════════════════════════════════════════════════════════════
# Confirm / archive
# ═════════════════════════════════════════════════════════════════════════════

def confirm_unit(unit_id, actor, now=None):
    authority.require(authority.confirm_scope(actor))
    unit = load_unit(unit_id)
    if unit.is_confirmed:
        raise ConflictError("Unit", f"Unit {unit.id} is already confirmed")
    now = now or _now()
    unit.is_confirmed = True
    unit.confirmed_by = actor.user_id
    unit.confirmed_at = now
    audit.record(unit_id=unit.id, event_type="unit_confirmed", old_status=unit.computed_status,
                 new_status=unit.computed_status, actor=actor)
    refresh_workstream_status(unit.workstream_id, now=now)
    commit_or_conflict("Unit", unit.id)
    return {"unit": unit.to_dict(), "confirmed": True}


def archive_unit(unit_id, actor, reason=None):
    authority.require(authority.archive(actor))
    unit = load_unit(unit_id)
    unit.archive()
    audit.record(unit_id=unit.id, event_type="unit_archived", old_status=unit.computed_status,
                 new_status=unit.computed_status, actor=actor, reason=reason)
    refresh_workstream_status(unit.workstream_id)
    commit_or_conflict("Unit", unit.id)
    return unit


# ═════════════════════════════════════════════════════════════════════════════
# Read
# ═════════════════════════════════════════════════════════════════════════════

def get_unit(unit_id):
    return load_unit(unit_id, for_update=False)


def unit_history(unit_id):
    """Full trail of a unit, archived or not."""
    unit = load_unit(unit_id, for_update=False, include_archived=True)
    events = (
        StatusEvent.query.filter_by(unit_id=unit.id)
        .order_by(StatusEvent.created_at.asc(), StatusEvent.id.asc()).all()
    )
    proofs = Proof.query.filter_by(unit_id=unit.id).order_by(Proof.id.asc()).all()
    return {
        "unit": unit.to_dict(),
        "status_events": [e.to_dict() for e in events],
        "escalations": [e.to_dict() for e in unit.escalations.all()],
        "proofs": [p.to_dict() for p in proofs],
    }
