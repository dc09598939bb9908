"""
Permission Decorators — JWT-aware role checks for route protection.

Every business endpoint is wrapped in one of these. ``login_required``
rejects anonymous callers; ``require_roles`` additionally checks the
caller's role against an allow-list.

Usage:
    @bp.route("/tickets/import", methods=["POST"])
    @require_permit_coordinator
    def import_ticket():
        ...

    @bp.route("/audit/organization/summary", methods=["GET"])
    @require_roles(COMPLIANCE_MANAGER)
    def organization_summary():
        ...

Decorators rely on g.current_user set by org_context middleware.
"""

import functools
import logging

from flask import g

from app.models.auth import (
    COMPLIANCE_MANAGER,
    FIELD_SUPERVISOR,
    PERMIT_COORDINATOR,
    ROLES,
)
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

_AUTH_ERROR_MESSAGES = {
    "missing": "No token provided",
    "invalid": "Invalid token",
    "inactive": "Invalid or inactive user",
}


def login_required(f):
    """Decorator: require an authenticated, active user."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "current_user", None) is None:
            reason = getattr(g, "auth_error", None) or "missing"
            return api_error(E.UNAUTHORIZED, _AUTH_ERROR_MESSAGES.get(reason, "Authentication required"))
        return f(*args, **kwargs)
    return decorated


def require_roles(*roles: str):
    """
    Decorator: require the authenticated user to hold one of ``roles``.

    Implies ``login_required``.
    """
    allowed = tuple(roles)

    def decorator(f):
        @functools.wraps(f)
        @login_required
        def decorated(*args, **kwargs):
            user = g.current_user
            if user.role not in allowed:
                logger.warning(
                    "User %s denied: role %s not in %s on %s",
                    user.id, user.role, allowed, f.__name__,
                )
                return api_error(
                    E.FORBIDDEN,
                    "Permission denied",
                    details={"required": list(allowed), "current": user.role},
                )
            return f(*args, **kwargs)
        return decorated
    return decorator


require_permit_coordinator = require_roles(PERMIT_COORDINATOR)
require_field_supervisor = require_roles(FIELD_SUPERVISOR)
require_compliance_manager = require_roles(COMPLIANCE_MANAGER)
require_any_role = require_roles(*ROLES)
require_manager_or_coordinator = require_roles(PERMIT_COORDINATOR, COMPLIANCE_MANAGER)
