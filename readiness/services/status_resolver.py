"""
Status Resolver: unit readiness derivation.

Pure function over a unit's configuration and its proof set:

    BLOCKED  unit.is_blocked (dominates everything)
    GREEN    counting proofs satisfy both the required count and the
             required type coverage
    RED      otherwise

No database access, no clock.  The deadline drives escalation, never
GREEN/RED eligibility.  Callers persist the result as
``Unit.computed_status`` (see ``unit_service.refresh_unit_status``).

Usage:
    from readiness.services.status_resolver import resolve
    status = resolve(unit, unit.proofs)
"""

from __future__ import annotations

from collections.abc import Iterable

RED = "RED"
GREEN = "GREEN"
BLOCKED = "BLOCKED"


def counts_toward_requirements(unit, proof) -> bool:
    """Does *proof* count toward *unit*'s requirements?

    Approved + not superseded + valid.  When the unit waives reviewer
    approval a valid pending proof counts as well.  Reference-number and
    expiry-date requirements filter out proofs missing those fields.
    Rejected proofs never count.
    """
    if proof.is_superseded or proof.is_valid is False:
        return False
    if proof.approval_status == "approved":
        pass
    elif proof.approval_status == "pending" and unit.requires_reviewer_approval is False:
        pass
    else:
        return False
    if unit.requires_reference_number and not (proof.reference_number or "").strip():
        return False
    if unit.requires_expiry_date and proof.expiry_date is None:
        return False
    return True


def counting_proofs(unit, proofs: Iterable) -> list:
    """Return the subset of *proofs* that count toward *unit*'s requirements."""
    return [p for p in proofs if counts_toward_requirements(unit, p)]


def resolve(unit, proofs: Iterable) -> str:
    """Derive RED / GREEN / BLOCKED for *unit* given its *proofs*.

    A unit requiring zero proofs and no types is vacuously satisfied and
    resolves GREEN with an empty proof set.
    """
    if unit.is_blocked:
        return BLOCKED

    live = counting_proofs(unit, proofs)
    present_types = {p.type for p in live}
    required_types = set(unit.required_proof_types or [])
    required_count = unit.required_proof_count or 0

    if len(live) >= required_count and required_types <= present_types:
        return GREEN
    return RED
