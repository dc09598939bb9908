"""
Auth Models — organizations and users.

Organizations are the tenant boundary: every ticket, permit and audit
row carries an organization_id. Users belong to exactly one
organization and hold exactly one role.
"""

from app.models import db
from app.models.base import _iso, _utcnow, _uuid


# ── Roles ────────────────────────────────────────────────────────────────────

PERMIT_COORDINATOR = "PERMIT_COORDINATOR"
FIELD_SUPERVISOR = "FIELD_SUPERVISOR"
COMPLIANCE_MANAGER = "COMPLIANCE_MANAGER"

ROLES = (PERMIT_COORDINATOR, FIELD_SUPERVISOR, COMPLIANCE_MANAGER)

ROLE_DISPLAY_NAMES = {
    PERMIT_COORDINATOR: "Permit Coordinator",
    FIELD_SUPERVISOR: "Field Supervisor",
    COMPLIANCE_MANAGER: "Compliance Manager",
}


# ═══════════════════════════════════════════════════════════════
# 1. ORGANIZATIONS
# ═══════════════════════════════════════════════════════════════
class Organization(db.Model):
    __tablename__ = "organizations"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False)
    address = db.Column(db.String(500))
    contact_email = db.Column(db.String(200))
    contact_phone = db.Column(db.String(50))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    users = db.relationship("User", back_populates="organization", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "address": self.address,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Organization {self.code}>"


# ═══════════════════════════════════════════════════════════════
# 2. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    organization_id = db.Column(
        db.String(36),
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(30), nullable=False)  # PERMIT_COORDINATOR | FIELD_SUPERVISOR | COMPLIANCE_MANAGER
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    organization = db.relationship("Organization", back_populates="users")

    @property
    def role_display_name(self):
        return ROLE_DISPLAY_NAMES.get(self.role, self.role)

    def to_dict(self, include_organization=False):
        d = {
            "id": self.id,
            "organization_id": self.organization_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "role_display_name": self.role_display_name,
            "is_active": self.is_active,
            "last_login_at": _iso(self.last_login_at),
            "created_at": _iso(self.created_at),
        }
        if include_organization and self.organization:
            d["organization"] = {
                "id": self.organization.id,
                "name": self.organization.name,
                "code": self.organization.code,
            }
        return d

    def __repr__(self):
        return f"<User {self.email} {self.role}>"
