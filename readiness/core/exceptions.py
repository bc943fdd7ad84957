"""
Readiness-wide exception hierarchy.

Every service raises these types; blueprints register handlers against
them once and get consistent HTTP status codes everywhere.

Usage:
    from readiness.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Unit", resource_id=42)
    raise ValidationError("reason is required", details={"reason": "required"})
    raise AuthorizationError("self_approval", "Cannot approve own proof")
"""


class NotFoundError(Exception):
    """Raised when a unit/proof/workstream does not exist or is archived.

    Archived entities are invisible to mutation paths, so they raise this
    too; history endpoints read them without going through this check.

    Args:
        resource: Human-readable entity name (e.g. "Unit", "Proof").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input violates a business rule at configuration or mutation time.

    Malformed alert thresholds, a missing blocked reason or a missing
    escalation reason are rejected here, never silently coerced.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class AuthorizationError(Exception):
    """Raised when the authority gate denies an action.

    Maps to HTTP 403.  ``rule`` is the machine-readable name of the violated
    rule; the message is written for end users so client layers need no
    extra lookup.

    Args:
        rule: e.g. "self_approval", "high_criticality_tier", "unblock_tier".
        message: Human-readable denial reason.
    """

    def __init__(self, rule: str, message: str) -> None:
        self.rule = rule
        super().__init__(message)


class ConcurrencyConflict(Exception):
    """Raised when a unit was modified by someone else between read and write.

    Maps to HTTP 409.  The caller must retry the whole read-modify-write,
    not merely the write.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} id={resource_id} was modified concurrently; retry the operation")


class ConflictError(Exception):
    """Raised when an action does not fit the entity's current state.

    Deciding an already-decided proof, unblocking a unit that is not
    blocked, confirming an already confirmed unit.  Maps to HTTP 409.
    """

    def __init__(self, resource: str, message: str) -> None:
        self.resource = resource
        super().__init__(message)
