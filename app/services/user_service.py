"""
User Service — login, registration, password change.
"""

import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models import db
from app.models.audit import write_audit
from app.models.auth import ROLES, Organization, User
from app.utils.crypto import hash_password, verify_password
from app.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _normalize_email(email: str) -> str:
    try:
        valid = validate_email(email or "", check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)})
    return valid.normalized.lower()


def _check_password_length(password: str, field: str = "password") -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={field: "too_short"},
        )


# ═══════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════
def authenticate_user(email: str, password: str) -> User:
    """Return the user for valid credentials, else raise AuthenticationError.

    Unknown email, inactive account and wrong password all produce the
    same message.
    """
    email = (email or "").strip().lower()
    user = User.query.filter_by(email=email).first()
    if not user or not user.is_active or not verify_password(password or "", user.password_hash):
        logger.info("Failed login for %s", email)
        raise AuthenticationError("Invalid credentials")

    user.last_login_at = datetime.now(timezone.utc)
    commit_or_raise("User", "id", user.id)
    return user


# ═══════════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════════
def register_user(actor: User, data: dict) -> User:
    """Create a user on behalf of a compliance manager.

    The new account lands in the actor's organization; naming another
    organization is refused.
    """
    email = _normalize_email(data.get("email", ""))
    password = data.get("password", "")
    name = (data.get("name") or "").strip()
    role = data.get("role", "")
    organization_id = data.get("organization_id") or actor.organization_id

    _check_password_length(password)
    if not name:
        raise ValidationError("Name is required", details={"name": "required"})
    if role not in ROLES:
        raise ValidationError(
            f"Role must be one of: {', '.join(ROLES)}", details={"role": "invalid"},
        )

    organization = db.session.get(Organization, organization_id)
    if organization is None:
        raise NotFoundError(resource="Organization", resource_id=organization_id)
    if organization.id != actor.organization_id:
        raise PermissionDeniedError("Cannot register users in another organization")

    if User.query.filter_by(email=email).first():
        raise ConflictError("User", "email", email)

    user = User(
        organization_id=organization.id,
        email=email,
        password_hash=hash_password(password),
        name=name,
        role=role,
    )
    db.session.add(user)
    db.session.flush()

    write_audit(
        organization_id=organization.id,
        entity_type="USER",
        entity_id=user.id,
        action="USER_CREATED",
        actor=actor,
        new_data={"email": user.email, "name": user.name, "role": user.role},
    )
    commit_or_raise("User", "email", email)
    logger.info("User %s registered in organization %s", user.email, organization.code)
    return user


# ═══════════════════════════════════════════════════════════════
# Password change
# ═══════════════════════════════════════════════════════════════
def change_user_password(user: User, current_password: str, new_password: str) -> None:
    """Change the password after verifying the current one."""
    if not current_password or not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect", details={"current_password": "invalid"})
    _check_password_length(new_password, field="new_password")

    user.password_hash = hash_password(new_password)
    write_audit(
        organization_id=user.organization_id,
        entity_type="USER",
        entity_id=user.id,
        action="PASSWORD_CHANGED",
        actor=user,
    )
    commit_or_raise("User", "id", user.id)
