"""
Organization Context Middleware — resolves the acting user for API requests.

When a JWT-authenticated request arrives:
  1. g.jwt_user_id is already set by jwt_auth middleware
  2. This middleware loads the user and verifies it is active and its
     organization is active
  3. Sets g.current_user and g.organization_id for the route handler

The role and organization are always read from the database row, not the
token claims, so a role change or deactivation takes effect immediately.

This middleware does NOT block anonymous requests. It records
g.auth_error so ``login_required`` can report why access was refused.

Chain order:
  jwt_auth.py  →  org_context.py  →  route handler
"""

import logging

from flask import g, request

from app.models import db
from app.models.auth import User

logger = logging.getLogger(__name__)


def init_org_context(app):
    """Register organization context middleware as a before_request hook."""

    @app.before_request
    def _org_context():
        g.current_user = None
        g.organization_id = None
        g.auth_error = getattr(g, "jwt_error", "missing")

        if not request.path.startswith("/api/v1/"):
            return None

        user_id = getattr(g, "jwt_user_id", None)
        if user_id is None:
            return None

        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            logger.warning("JWT subject %s not found or inactive", user_id)
            g.auth_error = "inactive"
            return None
        if user.organization is None or not user.organization.is_active:
            logger.warning("Organization of user %s is deactivated", user_id)
            g.auth_error = "inactive"
            return None

        g.current_user = user
        g.organization_id = user.organization_id
        g.auth_error = None
        return None

    logger.info("Organization context middleware installed")
