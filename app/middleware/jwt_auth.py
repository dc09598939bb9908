"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_*.

Sets on every /api/v1/ request:
    g.jwt_user_id          — "sub" claim, or None
    g.jwt_organization_id  — "organization_id" claim, or None
    g.jwt_role             — "role" claim, or None
    g.jwt_error            — why the token was rejected: "missing" | "invalid" | None

This middleware never blocks. Route decorators in
``app.middleware.permission_required`` decide whether an anonymous
request is acceptable.
"""

import logging

import jwt as pyjwt
from flask import g, request

from app.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_organization_id = None
        g.jwt_role = None
        g.jwt_error = "missing"

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "invalid"
            logger.info("Expired JWT on %s", path)
            return
        except pyjwt.InvalidTokenError:
            g.jwt_error = "invalid"
            logger.info("Invalid JWT on %s", path)
            return

        g.jwt_user_id = payload.get("sub")
        g.jwt_organization_id = payload.get("organization_id")
        g.jwt_role = payload.get("role")
        g.jwt_error = None
