"""
Execution Readiness Portal
Blueprint registry and shared request helpers.
"""

import logging

from flask import request

from readiness.core.exceptions import (
    AuthorizationError,
    ConcurrencyConflict,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from readiness.middleware.actor_context import current_actor
from readiness.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit - max items (default 200, capped at max_limit)
        offset - starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


class Unauthenticated(Exception):
    """Mutating or personalised route called without actor identity."""


class BadRequest(Exception):
    """Malformed request body (as opposed to a business-rule violation)."""

    def __init__(self, message, details=None):
        self.details = details or {}
        super().__init__(message)


def json_body():
    """Request JSON as a dict; anything else is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def require_actor():
    actor = current_actor()
    if actor is None:
        raise Unauthenticated("Actor identity is required")
    return actor


def register_error_handlers(bp):
    """Map the readiness exception hierarchy onto HTTP responses for *bp*."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error):
        return api_error(E.VALIDATION_RULE, str(error), details=error.details)

    @bp.errorhandler(BadRequest)
    def _handle_bad_request(error):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(Unauthenticated)
    def _handle_unauthenticated(error):
        return api_error(E.UNAUTHENTICATED, str(error))

    @bp.errorhandler(AuthorizationError)
    def _handle_forbidden(error):
        logger.info("Authority gate denied %s: %s", error.rule, error)
        return api_error(error.rule, str(error), status=403)

    @bp.errorhandler(ConcurrencyConflict)
    def _handle_concurrency(error):
        return api_error(E.CONFLICT_CONCURRENT, str(error), details={"retry": True})

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error):
        return api_error(E.CONFLICT_STATE, str(error))

    return bp
