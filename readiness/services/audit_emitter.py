"""
Audit Emitter: append-only status event sink.

The emitter exposes exactly one operation, ``record``.  There is no
update, delete or edit surface; the model's mapper listeners refuse those
too.

Failure policy: a failed audit write never breaks the business action
that triggered it.  The failure is logged at ERROR and handed to every
registered failure hook (the external alerting collaborator).

The default sink writes the row inside a savepoint of the caller's
session.  The event commits with the mutation it describes, while a
failed insert rolls back only the savepoint.  Pending business writes are
flushed before the savepoint opens so their errors still reach the caller.

Usage:
    from readiness.services.audit_emitter import audit

    audit.record(unit_id=unit.id, event_type="blocked",
                 old_status="GREEN", new_status="BLOCKED",
                 actor=actor, reason="permit pending")
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from readiness.models import db
from readiness.models.audit import STATUS_EVENT_TYPES, StatusEvent
from readiness.utils.helpers import flush_or_conflict

logger = logging.getLogger(__name__)

FailureHook = Callable[[dict, Exception], None]


def _session_sink(event: StatusEvent) -> None:
    with db.session.begin_nested():
        db.session.add(event)
        db.session.flush()


def _request_id() -> str | None:
    from flask import g, has_request_context

    if has_request_context():
        return getattr(g, "request_id", None)
    return None


class AuditEmitter:
    """Fire-and-forget appender for ``StatusEvent`` rows."""

    def __init__(self, sink: Callable[[StatusEvent], None] | None = None):
        self._sink = sink or _session_sink
        self._failure_hooks: list[FailureHook] = []

    def on_failure(self, hook: FailureHook) -> FailureHook:
        """Register *hook*; usable as a decorator."""
        self._failure_hooks.append(hook)
        return hook

    def use_sink(self, sink: Callable[[StatusEvent], None] | None) -> None:
        """Swap the sink (``None`` restores the session sink)."""
        self._sink = sink or _session_sink

    def record(
        self,
        *,
        unit_id: int,
        event_type: str,
        old_status: str | None = None,
        new_status: str | None = None,
        actor=None,
        reason: str | None = None,
        metadata: dict | None = None,
    ) -> StatusEvent | None:
        """Append one status event.  Returns the event, or None if the write failed."""
        details = dict(metadata or {})
        payload = {
            "unit_id": unit_id,
            "event_type": event_type,
            "old_status": old_status,
            "new_status": new_status,
            "triggered_by": actor.user_id if actor else "system",
            "triggered_by_role": actor.role if actor else None,
            "reason": reason,
        }
        if self._sink is _session_sink:
            flush_or_conflict("Unit", unit_id)
        try:
            if event_type not in STATUS_EVENT_TYPES:
                raise ValueError(f"Unknown status event type '{event_type}'")
            request_id = _request_id()
            if request_id:
                details.setdefault("request_id", request_id)
            event = StatusEvent(**payload, details=details)
            self._sink(event)
        except Exception as exc:
            logger.error(
                "Audit write failed for %s on unit %s; main flow unaffected",
                event_type, unit_id,
                exc_info=True,
                extra={"unit_id": unit_id, "event_type": event_type},
            )
            for hook in list(self._failure_hooks):
                try:
                    hook(payload, exc)
                except Exception:
                    logger.exception("Audit failure hook %r raised", hook)
            return None
        return event


audit = AuditEmitter()
