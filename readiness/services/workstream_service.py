"""
Workstream Service: hierarchy creation and status roll-up.

Workstream status is derived only: the aggregate of its confirmed,
non-archived units' cached statuses.  ``refresh_workstream_status`` is
called by every unit mutation path so ``Workstream.overall_status`` never
drifts from its units.  Programs roll up their workstreams the same way,
ignoring EMPTY ones.
"""

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import exists

from readiness.core.exceptions import NotFoundError, ValidationError
from readiness.models import db
from readiness.models.escalation import EscalationEvent
from readiness.models.hierarchy import Client, Program, Workstream
from readiness.models.unit import Unit
from readiness.services import authority
from readiness.services.aggregator import aggregate, aggregate_rollup
from readiness.services.audit_emitter import audit
from readiness.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]{0,99}$")


# ═════════════════════════════════════════════════════════════════════════════
# Hierarchy creation
# ═════════════════════════════════════════════════════════════════════════════

def _require_name(value, field="name"):
    name = (value or "").strip() if isinstance(value, str) else ""
    if not name:
        raise ValidationError(f"{field} is required", details={field: "required"})
    return name


def create_client(actor, *, name, slug=None):
    authority.require(authority.manage_hierarchy(actor))
    name = _require_name(name)
    slug = (slug or re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")).lower()
    if not _SLUG_RE.match(slug):
        raise ValidationError("slug must be lowercase letters, digits and dashes",
                              details={"slug": slug})
    if Client.query.filter_by(slug=slug).first():
        raise ValidationError(f"Client slug '{slug}' already exists", details={"slug": "duplicate"})
    client = Client(name=name, slug=slug)
    db.session.add(client)
    db.session.commit()
    logger.info("Client created: %s", slug)
    return client


def create_program(client_id, actor, *, name, description=""):
    authority.require(authority.manage_hierarchy(actor))
    client = db.session.get(Client, client_id)
    if not client:
        raise NotFoundError(resource="Client", resource_id=client_id)
    program = Program(client_id=client.id, name=_require_name(name), description=description or "")
    db.session.add(program)
    db.session.commit()
    return program


def create_workstream(program_id, actor, *, name):
    authority.require(authority.manage_hierarchy(actor))
    program = db.session.get(Program, program_id)
    if not program or program.is_archived:
        raise NotFoundError(resource="Program", resource_id=program_id)
    ws = Workstream(program_id=program.id, name=_require_name(name), overall_status="EMPTY")
    db.session.add(ws)
    db.session.commit()
    return ws


def get_workstream(workstream_id, include_archived=False):
    ws = db.session.get(Workstream, workstream_id)
    if not ws or (ws.is_archived and not include_archived):
        raise NotFoundError(resource="Workstream", resource_id=workstream_id)
    return ws


# ═════════════════════════════════════════════════════════════════════════════
# Status roll-up
# ═════════════════════════════════════════════════════════════════════════════

def _counted_units_query(workstream_id):
    """Units that feed the aggregate: confirmed and not archived."""
    return Unit.query_active().filter(
        Unit.workstream_id == workstream_id,
        Unit.is_confirmed.is_(True),
    )


def workstream_status(workstream_id):
    """Live aggregate for one workstream with per-status counts."""
    ws = get_workstream(workstream_id, include_archived=True)
    statuses = [s for (s,) in _counted_units_query(ws.id).with_entities(Unit.computed_status)]
    counts = {"RED": 0, "GREEN": 0, "BLOCKED": 0}
    for s in statuses:
        counts[s] = counts.get(s, 0) + 1
    return {
        "workstream_id": ws.id,
        "status": aggregate(statuses),
        "unit_count": len(statuses),
        "counts": counts,
        "is_archived": ws.is_archived,
    }


def refresh_workstream_status(workstream_id, now=None):
    """Recompute and cache ``Workstream.overall_status``; no commit."""
    ws = db.session.get(Workstream, workstream_id)
    if ws is None:
        return None
    statuses = [s for (s,) in _counted_units_query(ws.id).with_entities(Unit.computed_status)]
    new_status = aggregate(statuses)
    if ws.overall_status != new_status:
        logger.info("Workstream %s status %s → %s", ws.id, ws.overall_status, new_status)
    ws.overall_status = new_status
    ws.status_computed_at = now or datetime.now(timezone.utc)
    return new_status


def program_status(program_id):
    """Roll up the program's non-archived workstreams; EMPTY ones carry no signal."""
    program = db.session.get(Program, program_id)
    if not program:
        raise NotFoundError(resource="Program", resource_id=program_id)
    workstreams = program.workstreams.filter(Workstream.is_archived.is_(False)).all()
    per_ws = {ws.id: workstream_status(ws.id)["status"] for ws in workstreams}
    return {
        "program_id": program.id,
        "status": aggregate_rollup(per_ws.values()),
        "workstreams": per_ws,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Archive
# ═════════════════════════════════════════════════════════════════════════════

def archive_workstream(workstream_id, actor):
    """Archive a workstream and cascade to its active units."""
    authority.require(authority.archive(actor))
    ws = get_workstream(workstream_id)
    ws.archive()
    cascaded = 0
    for unit in ws.units.filter(Unit.is_archived.is_(False)).all():
        unit.archive()
        audit.record(
            unit_id=unit.id,
            event_type="unit_archived",
            old_status=unit.computed_status,
            new_status=unit.computed_status,
            actor=actor,
            reason=f"Workstream {ws.id} archived",
            metadata={"cascade_from_workstream": ws.id},
        )
        cascaded += 1
    refresh_workstream_status(ws.id)
    commit_or_conflict("Workstream", ws.id)
    logger.info("Workstream %s archived by %s (%d units)", ws.id, actor.user_id, cascaded,
                extra={"actor_role": actor.role})
    return {"workstream": ws.to_dict(), "units_archived": cascaded}


# ═════════════════════════════════════════════════════════════════════════════
# Attention queue
# ═════════════════════════════════════════════════════════════════════════════

def attention_queue(client_id):
    """Confirmed, live units of a client that are BLOCKED or actively escalated.

    Ordered by escalation level (desc) then deadline (asc).
    """
    if not db.session.get(Client, client_id):
        raise NotFoundError(resource="Client", resource_id=client_id)
    active_escalation = exists().where(
        EscalationEvent.unit_id == Unit.id,
        EscalationEvent.state == "active",
    )
    units = (
        Unit.query
        .join(Workstream, Unit.workstream_id == Workstream.id)
        .join(Program, Workstream.program_id == Program.id)
        .filter(
            Program.client_id == client_id,
            Workstream.is_archived.is_(False),
            Unit.is_archived.is_(False),
            Unit.is_confirmed.is_(True),
            (Unit.is_blocked.is_(True)) | active_escalation,
        )
        .order_by(Unit.current_escalation_level.desc(), Unit.deadline.asc(), Unit.id.asc())
        .all()
    )
    items = []
    for unit in units:
        active = unit.escalations.filter_by(state="active").all()
        items.append({
            **unit.to_dict(),
            "workstream_name": unit.workstream.name,
            "active_escalations": [e.to_dict() for e in active],
        })
    return items
