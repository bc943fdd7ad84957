"""
Rate limiting configuration.

The Limiter instance is created in readiness/__init__.py with no default
limits; this module applies limits per blueprint.  Manual escalation
fans out notifications to whole role tiers, so it gets its own, tighter
limit via ``escalation_limit`` on the route.

    - write endpoints:  60/minute per remote IP
    - read endpoints:   200/minute
    - health, cron:     exempt

Rate limiting is disabled in testing mode.
"""

from flask import current_app


def escalation_limit():
    """Limit string for the manual escalation endpoint (config driven)."""
    return current_app.config.get("MANUAL_ESCALATION_RATE_LIMIT", "20/hour")


def init_rate_limits(app, limiter):
    """Apply rate limits to API blueprints."""

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("units", "hierarchy"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("60/minute", methods=["POST"])(bp)

    for bp_name in ("audit", "notifications"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("200/minute")(bp)

    for bp_name in ("health", "cron"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.exempt(bp)

    app.logger.info("Rate limiter configured: write 60/min, read 200/min, "
                    "manual escalation %s", app.config.get("MANUAL_ESCALATION_RATE_LIMIT"))
