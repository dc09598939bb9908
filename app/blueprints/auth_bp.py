"""
Auth Blueprint — JWT authentication endpoints.

  POST  /api/v1/auth/login       — Email + password → access token
  POST  /api/v1/auth/register    — Compliance manager creates a user in their organization
  GET   /api/v1/auth/me          — Current user profile
  PATCH /api/v1/auth/password    — Change own password
"""

from flask import Blueprint, g, jsonify, request

from app.middleware.permission_required import login_required, require_compliance_manager
from app.services.jwt_service import generate_token_response
from app.services.user_service import authenticate_user, change_user_password, register_user
from app.utils.errors import E, api_error

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password, return an access token.

    Body: { "email": "...", "password": "..." }
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    user = authenticate_user(email, password)
    return jsonify({
        **generate_token_response(user),
        "user": user.to_dict(include_organization=True),
    }), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
@require_compliance_manager
def register():
    """
    Create a user in the caller's organization.

    Body: { "email", "password", "name", "role", "organization_id"? }
    """
    data = request.get_json(silent=True) or {}
    if not data.get("email") or not data.get("password"):
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    user = register_user(g.current_user, data)
    return jsonify({"user": user.to_dict(include_organization=True)}), 201


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": g.current_user.to_dict(include_organization=True)}), 200


# ═══════════════════════════════════════════════════════════════
# PATCH /api/v1/auth/password
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/password", methods=["PATCH"])
@login_required
def change_password():
    """Body: { "current_password": "...", "new_password": "..." }"""
    data = request.get_json(silent=True) or {}
    change_user_password(
        g.current_user,
        data.get("current_password") or "",
        data.get("new_password") or "",
    )
    return jsonify({"message": "Password updated"}), 200
