"""
Authority Gate: the single home of role-based decisions.

Every sensitive transition asks one function here and gets back an
``Allow`` or a ``Deny`` carrying the violated rule and a user-facing
reason.  Services call ``require(decision)`` to turn a Deny into
``AuthorizationError``; blueprints never compare role strings.

Role tiers (ascending):
    CLIENT_VIEWER < FIELD_CONTRIBUTOR < WORKSTREAM_LEAD < PROGRAM_OWNER < PLATFORM_ADMIN

Rules:
    self_approval              uploader may never approve or reject own proof
    reviewer_tier              deciding a proof needs WORKSTREAM_LEAD+
    high_criticality_tier      approving on a high-criticality unit needs PROGRAM_OWNER+
    blocked_confirmation_tier  setting BLOCKED needs WORKSTREAM_LEAD+ (lower tiers propose)
    unblock_tier               clearing BLOCKED needs PROGRAM_OWNER+
    confirm_scope_tier         confirming a unit needs WORKSTREAM_LEAD+
    archive_tier               archiving needs PROGRAM_OWNER+
    viewer_cannot_submit       viewers may not upload proofs
    create_unit_tier           viewers may not create units
    hierarchy_tier             creating clients/programs/workstreams needs PROGRAM_OWNER+
"""

from __future__ import annotations

from dataclasses import dataclass

from readiness.core.exceptions import AuthorizationError

# ── Role tiers ───────────────────────────────────────────────────────────────

ROLE_TIERS = {
    "CLIENT_VIEWER": 1,
    "FIELD_CONTRIBUTOR": 2,
    "WORKSTREAM_LEAD": 3,
    "PROGRAM_OWNER": 4,
    "PLATFORM_ADMIN": 5,
}

LOWEST_ROLE = "CLIENT_VIEWER"


def is_known_role(role: str | None) -> bool:
    return role in ROLE_TIERS


def tier(role: str | None) -> int:
    """Numeric tier of *role*; unknown roles rank below every real one."""
    return ROLE_TIERS.get(role or "", 0)


def at_least(role: str | None, minimum: str) -> bool:
    return tier(role) >= ROLE_TIERS[minimum]


@dataclass(frozen=True)
class Actor:
    """Identity attached to every mutating call."""

    user_id: str
    role: str

    @property
    def tier(self) -> int:
        return tier(self.role)

    def to_dict(self) -> dict:
        return {"user_id": self.user_id, "role": self.role}


# ── Decisions ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Allow:
    allowed = True


@dataclass(frozen=True)
class Deny:
    rule: str
    reason: str
    allowed = False


ALLOW = Allow()


def require(decision) -> None:
    """Raise AuthorizationError for a Deny, do nothing for an Allow."""
    if not decision.allowed:
        raise AuthorizationError(decision.rule, decision.reason)


# ── Decision functions ───────────────────────────────────────────────────────

def approve_proof(actor: Actor, unit, proof):
    """Separation of duties first, then reviewer tier, then high-criticality."""
    decision = reject_proof(actor, unit, proof)
    if not decision.allowed:
        return decision
    if unit.high_criticality and not at_least(actor.role, "PROGRAM_OWNER"):
        return Deny(
            "high_criticality_tier",
            "Requires program-owner approval for high-criticality unit",
        )
    return ALLOW


def reject_proof(actor: Actor, unit, proof):
    """Rejecting shares the self-approval and reviewer rules with approving."""
    if actor.user_id == proof.uploaded_by:
        return Deny("self_approval", "Cannot approve or reject own proof")
    if not at_least(actor.role, "WORKSTREAM_LEAD"):
        return Deny("reviewer_tier", "Only workstream leads and above can review proofs")
    return ALLOW


def decide_proof(actor: Actor, unit, proof, approve: bool):
    return approve_proof(actor, unit, proof) if approve else reject_proof(actor, unit, proof)


def confirm_blocked(actor: Actor):
    """Deny means the caller records a proposed block instead of blocking."""
    if at_least(actor.role, "WORKSTREAM_LEAD"):
        return ALLOW
    return Deny(
        "blocked_confirmation_tier",
        "Only workstream leads and above can mark a unit as blocked; the request was recorded as a proposal",
    )


def unblock(actor: Actor):
    if at_least(actor.role, "PROGRAM_OWNER"):
        return ALLOW
    return Deny("unblock_tier", "Only program owners and platform admins can unblock a unit")


def confirm_scope(actor: Actor):
    if at_least(actor.role, "WORKSTREAM_LEAD"):
        return ALLOW
    return Deny("confirm_scope_tier", "Only workstream leads and above can confirm a unit")


def archive(actor: Actor):
    if at_least(actor.role, "PROGRAM_OWNER"):
        return ALLOW
    return Deny("archive_tier", "Only program owners and platform admins can archive")


def submit_proof(actor: Actor):
    if at_least(actor.role, "FIELD_CONTRIBUTOR"):
        return ALLOW
    return Deny("viewer_cannot_submit", "Viewers cannot submit proofs")


def create_unit(actor: Actor):
    if at_least(actor.role, "FIELD_CONTRIBUTOR"):
        return ALLOW
    return Deny("create_unit_tier", "Viewers cannot create units")


def starts_unconfirmed(actor: Actor) -> bool:
    """Units created below workstream-lead tier wait for scope confirmation."""
    return not at_least(actor.role, "WORKSTREAM_LEAD")


def manage_hierarchy(actor: Actor):
    if at_least(actor.role, "PROGRAM_OWNER"):
        return ALLOW
    return Deny("hierarchy_tier", "Only program owners and platform admins can create clients, programs or workstreams")
