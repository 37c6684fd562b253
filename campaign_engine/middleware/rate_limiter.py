"""
Rate limiting configuration.

The Limiter instance is created in campaign_engine/__init__.py with no
default limits; this module applies limits per blueprint.

Usage:
    from campaign_engine.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

# Blueprints whose routes mutate campaign state
WRITE_BLUEPRINTS = ("businesses", "campaigns", "tasks", "escalations")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints (per remote IP).

        - Mutation blueprints:  60/minute
        - Activity feed:       200/minute
        - Health checks:       exempt

    Disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    bp = app.blueprints.get("activity")
    if bp:
        limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: write=%s read=%s", WRITE_LIMIT, READ_LIMIT)
