"""
Execution Readiness Portal
Scheduled Jobs.

Jobs:
    - escalation_tick: evaluate every eligible unit against its alert profile
    - proof_expiry_check: invalidate expired proofs and recompute their units
"""

from __future__ import annotations

import logging
from typing import Any

from readiness.services.scheduler_service import register_job

logger = logging.getLogger(__name__)


@register_job("escalation_tick")
def escalation_tick(app, now=None) -> dict[str, Any]:
    """Raise time-based escalation levels on RED units."""
    from readiness.services.escalation_service import evaluate_all_eligible_units

    decisions = evaluate_all_eligible_units(now=now)
    escalated = [d.to_dict() for d in decisions if d.escalate]
    return {
        "evaluated": len(decisions),
        "escalated": len(escalated),
        "errors": sum(1 for d in decisions if d.skipped_reason == "error"),
        "escalations": escalated,
    }


@register_job("proof_expiry_check")
def proof_expiry_check(app, today=None) -> dict[str, Any]:
    """Mark proofs past their expiry date invalid and recompute units."""
    from readiness.services.proof_service import expire_proofs

    return expire_proofs(today=today)
