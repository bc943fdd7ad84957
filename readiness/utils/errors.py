"""JSON error envelope shared by every blueprint.

Body shape: ``{"error": <message>, "code": <code>, "details": {...}?}``.
``code`` is an ``E`` constant, or the violated authority rule for 403s::

    return api_error(E.NOT_FOUND, "Unit 7 not found")
    return api_error(exc.rule, str(exc), status=403)
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes; the HTTP status follows from ``STATUS_BY_CODE``."""

    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"      # malformed body / query
    VALIDATION_RULE = "ERR_VALIDATION_RULE"            # well-formed but rejected
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    NOT_FOUND = "ERR_NOT_FOUND"                        # missing or archived
    CONFLICT_STATE = "ERR_CONFLICT_STATE"              # transition not allowed now
    CONFLICT_CONCURRENT = "ERR_CONFLICT_CONCURRENT"    # stale unit version; retry


STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_RULE: 422,
    E.UNAUTHENTICATED: 401,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.CONFLICT_CONCURRENT: 409,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build ``(response, status)``; *status* overrides the code's default (400)."""
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or STATUS_BY_CODE.get(code, 400)
