"""
Actor Context Middleware: attaches the caller's identity to ``g.actor``.

Authentication happens upstream (gateway / identity provider).  It hands
the verified identity over as two headers:

    X-Actor-Id     opaque user identifier
    X-Actor-Role   one of the role tiers in ``readiness.services.authority``

Rules:
  - an unknown role → 400
  - a mutating /api/v1 request without identity → 401
  - health and cron paths skip identity (cron has its own bearer secret)
"""

import logging

from flask import g, request

from readiness.services.authority import ROLE_TIERS, Actor
from readiness.utils.errors import E, api_error

logger = logging.getLogger(__name__)

ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"

SKIP_PREFIXES = (
    "/api/v1/health",
    "/api/v1/cron/",
)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def init_actor_context(app):
    """Register the actor context hook as a before_request handler."""

    @app.before_request
    def _actor_context():
        g.actor = None

        if not request.path.startswith("/api/v1/"):
            return None
        for prefix in SKIP_PREFIXES:
            if request.path.startswith(prefix):
                return None

        user_id = (request.headers.get(ACTOR_ID_HEADER) or "").strip()
        role = (request.headers.get(ACTOR_ROLE_HEADER) or "").strip().upper()

        if role and role not in ROLE_TIERS:
            logger.warning("Unknown actor role %r on %s", role, request.path)
            return api_error(E.VALIDATION_INVALID, f"Unknown role '{role}'",
                             details={"allowed": sorted(ROLE_TIERS, key=ROLE_TIERS.get)})

        if user_id and role:
            g.actor = Actor(user_id=user_id, role=role)
        elif request.method in MUTATING_METHODS:
            return api_error(E.UNAUTHENTICATED, "Actor identity is required",
                             details={"headers": [ACTOR_ID_HEADER, ACTOR_ROLE_HEADER]})
        return None


def current_actor():
    """The request's Actor, or None when the caller is anonymous."""
    return getattr(g, "actor", None)
