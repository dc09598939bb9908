"""
Rate limiting configuration.

The Limiter instance is created in app/__init__.py with the app-wide
default (RATELIMIT_DEFAULT, 100/minute). This module chooses the key
(organization when authenticated, remote IP otherwise) and exempts the
health probes.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = "100/minute"


def rate_limit_key():
    """Dynamic rate limit key: organization if authenticated, else remote IP."""
    organization_id = getattr(g, "organization_id", None)
    if organization_id:
        return f"org:{organization_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    # Health checks are exempt
    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — default %s per organization/IP",
        app.config.get("RATELIMIT_DEFAULT", DEFAULT_LIMIT),
    )
