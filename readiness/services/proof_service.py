"""
Proof Service: the proof ledger.

    submit_proof   append a pending proof (viewers excluded)
    decide_proof   approve/reject through the authority gate; approving a
                   correction supersedes the proof it names and re-derives
                   unit status in the same transaction
    expire_proofs  invalidate proofs past their expiry date and recompute
                   the affected units

Proof rows are never deleted and an approved proof is never edited; the
only later change is being superseded or expiring.
"""

import logging
import re
from collections import defaultdict
from datetime import date, datetime, timezone

from readiness.core.exceptions import ConflictError, NotFoundError, ValidationError
from readiness.models import db
from readiness.models.proof import Proof
from readiness.services import authority
from readiness.services.audit_emitter import audit
from readiness.services.notification import NotificationService
from readiness.services.unit_service import client_id_for, load_unit, refresh_unit_status
from readiness.utils.helpers import commit_or_conflict, parse_date

logger = logging.getLogger(__name__)

_TYPE_RE = re.compile(r"^[a-z][a-z0-9_]{0,29}$")


def submit_proof(unit_id, actor, data, today=None):
    """Append a pending proof to a unit.  Returns the Proof."""
    authority.require(authority.submit_proof(actor))
    unit = load_unit(unit_id)

    proof_type = (data.get("type") or "").strip().lower()
    if not _TYPE_RE.match(proof_type):
        raise ValidationError("type is required (lowercase slug, e.g. 'photo')",
                              details={"type": proof_type or "required"})

    try:
        expiry = parse_date(data.get("expiry_date"))
    except ValueError as exc:
        raise ValidationError(str(exc), details={"expiry_date": "invalid"}) from exc
    reference = (data.get("reference_number") or "").strip() or None

    errors = {}
    if unit.requires_reference_number and not reference:
        errors["reference_number"] = "required by unit"
    if unit.requires_expiry_date and expiry is None:
        errors["expiry_date"] = "required by unit"
    if expiry is not None and expiry < (today or date.today()):
        errors["expiry_date"] = "already expired"
    if errors:
        raise ValidationError("Proof does not meet unit requirements", details=errors)

    replaces = _correction_target(unit, data.get("supersedes_proof_id"))

    proof = Proof(
        unit=unit,
        type=proof_type,
        url=data.get("url"),
        file_name=data.get("file_name"),
        file_hash=data.get("file_hash"),
        reference_number=reference,
        expiry_date=expiry,
        notes=data.get("notes"),
        supersedes_proof_id=replaces.id if replaces else None,
        approval_status="pending",
        uploaded_by=actor.user_id,
        uploaded_by_role=actor.role,
        is_superseded=False,
        is_valid=True,
        is_expired=False,
    )
    db.session.add(proof)
    db.session.flush()

    audit.record(unit_id=unit.id, event_type="proof_submitted", old_status=unit.computed_status,
                 new_status=unit.computed_status, actor=actor,
                 metadata={"proof_id": proof.id, "type": proof_type})
    refresh_unit_status(unit, actor=actor)
    if unit.requires_reviewer_approval:
        NotificationService.notify(
            ["WORKSTREAM_LEAD"],
            title=f"Proof awaiting review: {unit.title}",
            message=f"A {proof_type} proof was submitted by {actor.user_id}.",
            category="proof",
            client_id=client_id_for(unit),
            unit_id=unit.id,
        )
    commit_or_conflict("Unit", unit.id)
    logger.info("Proof %s submitted on unit %s", proof.id, unit.id,
                extra={"unit_id": unit.id, "actor_role": actor.role})
    return proof


def _correction_target(unit, proof_id):
    """The active approved proof on *unit* that a new submission replaces, or None."""
    if proof_id in (None, ""):
        return None
    try:
        proof_id = int(proof_id)
    except (TypeError, ValueError):
        raise ValidationError("supersedes_proof_id must be an integer",
                              details={"supersedes_proof_id": "invalid"}) from None
    target = db.session.get(Proof, proof_id)
    if target is None or target.unit_id != unit.id:
        raise ValidationError(f"Proof {proof_id} is not on unit {unit.id}",
                              details={"supersedes_proof_id": "not on unit"})
    if not target.is_active:
        raise ValidationError(f"Proof {proof_id} is not an active approved proof",
                              details={"supersedes_proof_id": "not active"})
    return target


def decide_proof(proof_id, actor, approve, reason=None, unit_id=None, now=None):
    """Approve or reject a pending proof.

    Returns a dict with the proof, the unit's new status and the id of the
    proof it superseded (if any).
    """
    proof = db.session.get(Proof, proof_id)
    if proof is None or (unit_id is not None and proof.unit_id != unit_id):
        raise NotFoundError(resource="Proof", resource_id=proof_id)
    unit = load_unit(proof.unit_id)

    authority.require(authority.decide_proof(actor, unit, proof, approve))
    if proof.approval_status != "pending":
        raise ConflictError("Proof", f"Proof {proof.id} is already {proof.approval_status}")
    reason = reason.strip() if isinstance(reason, str) else None
    if not approve and not reason:
        raise ValidationError("reason is required to reject a proof", details={"reason": "required"})

    now = now or datetime.now(timezone.utc)
    old_status = unit.computed_status
    superseded_id = None

    proof.approved_by = actor.user_id
    proof.approved_by_role = actor.role
    proof.decided_at = now
    if approve:
        proof.approval_status = "approved"
        prior = db.session.get(Proof, proof.supersedes_proof_id) if proof.supersedes_proof_id else None
        # Another correction may have replaced the target since submission.
        if prior is not None and prior.is_active:
            prior.is_superseded = True
            prior.superseded_by_proof_id = proof.id
            prior.superseded_at = now
            superseded_id = prior.id
    else:
        proof.approval_status = "rejected"
        proof.rejection_reason = reason

    _, new_status = refresh_unit_status(unit, actor=actor, now=now, reason=reason)
    event_type = "proof_approved" if approve else "proof_rejected"
    metadata = {"proof_id": proof.id, "type": proof.type}
    if superseded_id:
        metadata["superseded_proof_id"] = superseded_id
    audit.record(unit_id=unit.id, event_type=event_type, old_status=old_status,
                 new_status=new_status, actor=actor, reason=reason, metadata=metadata)
    NotificationService.notify_user(
        proof.uploaded_by,
        title=f"Proof {proof.approval_status}: {unit.title}",
        message=reason or f"Your {proof.type} proof was {proof.approval_status}.",
        category="proof",
        client_id=client_id_for(unit),
        unit_id=unit.id,
    )
    commit_or_conflict("Unit", unit.id)
    logger.info("Proof %s %s by %s; unit %s → %s", proof.id, proof.approval_status,
                actor.user_id, unit.id, new_status,
                extra={"unit_id": unit.id, "event_type": event_type, "actor_role": actor.role})
    return {
        "proof": proof.to_dict(),
        "new_unit_status": new_status,
        "superseded_proof_id": superseded_id,
    }


def expire_proofs(today=None):
    """Invalidate proofs whose expiry date has passed and recompute their units.

    Commits per unit; a failure on one unit is logged and does not stop the
    rest.
    """
    today = today or date.today()
    stale = (
        Proof.query
        .filter(Proof.expiry_date.isnot(None), Proof.expiry_date < today,
                Proof.is_expired.is_(False))
        .all()
    )
    by_unit = defaultdict(list)
    for p in stale:
        by_unit[p.unit_id].append(p.id)

    result = {"expired": 0, "units_recomputed": 0, "status_changes": [], "errors": 0}
    for unit_id, proof_ids in by_unit.items():
        try:
            unit = load_unit(unit_id, include_archived=True)
            for proof in Proof.query.filter(Proof.id.in_(proof_ids)).all():
                proof.is_expired = True
                proof.is_valid = False
            if unit.is_archived:
                commit_or_conflict("Unit", unit.id)
                result["expired"] += len(proof_ids)
                continue
            old_status, new_status = refresh_unit_status(unit, reason="proof expired")
            if old_status != new_status:
                audit.record(unit_id=unit.id, event_type="proof_expired", old_status=old_status,
                             new_status=new_status, reason="proof expired",
                             metadata={"proof_ids": proof_ids})
                result["status_changes"].append(
                    {"unit_id": unit.id, "old_status": old_status, "new_status": new_status}
                )
            commit_or_conflict("Unit", unit.id)
            result["expired"] += len(proof_ids)
            result["units_recomputed"] += 1
        except Exception:
            db.session.rollback()
            result["errors"] += 1
            logger.error("Proof expiry failed for unit %s", unit_id, exc_info=True,
                         extra={"unit_id": unit_id})
    logger.info("Proof expiry: %d expired across %d units", result["expired"], len(by_unit))
    return result
