"""
Utility Permit Tracker
Audit domain model.

Models:
    - AuditLog: immutable, append-only compliance trail.

Rows are written through ``write_audit`` and never change afterwards;
the mapper listeners below reject any UPDATE or DELETE issued through
the ORM.
"""

from sqlalchemy import event

from app.models import db
from app.models.base import _iso, _utcnow, _uuid


# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {
    "TICKET", "PERMIT", "TRAFFIC_PLAN", "INSPECTION",
    "EVIDENCE", "FEE", "JOB", "USER",
}

AUDIT_ACTIONS = {
    # Ticket lifecycle
    "TICKET_CREATED",
    "STATUS_UPDATED",
    "PERMIT_PREFILL_REQUESTED",
    # Permits
    "PERMIT_CREATED",
    "PERMIT_UPDATED",
    "PERMIT_SUBMITTED",
    # Field work requests
    "TRAFFIC_PLAN_REQUESTED",
    "TRAFFIC_PLAN_GENERATED",
    "INSPECTION_REQUESTED",
    "INSPECTION_SCHEDULED",
    "EVIDENCE_UPLOADED",
    "FEE_CREATED",
    "CLOSEOUT_REQUESTED",
    # Users
    "USER_CREATED",
    "PASSWORD_CHANGED",
}

SYSTEM_ACTOR = "system"


class AuditImmutableError(Exception):
    """Raised when code tries to modify or delete an audit row."""


class AuditLog(db.Model):
    """
    One row per recorded action.

    ``previous_data`` / ``new_data`` hold JSON snapshots of the changed
    state. ``ticket_id`` is null for organization-level events such as
    user registration.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_org_ts", "organization_id", "timestamp"),
        db.Index("idx_audit_ticket_ts", "ticket_id", "timestamp"),
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_action", "action"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    organization_id = db.Column(
        db.String(36),
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ticket_id = db.Column(
        db.String(36),
        db.ForeignKey("tickets.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Who
    actor = db.Column(
        db.String(200), nullable=False, default=SYSTEM_ACTOR,
        comment="User email at the time of the action, or 'system'",
    )
    actor_user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # What
    action = db.Column(db.String(60), nullable=False)
    entity_type = db.Column(db.String(30), nullable=False)
    entity_id = db.Column(db.String(36), nullable=False)
    previous_data = db.Column(db.JSON, nullable=True)
    new_data = db.Column(db.JSON, nullable=True)

    # When / where
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(500))

    user = db.relationship("User", lazy="joined")
    ticket = db.relationship("Ticket", lazy="select")

    def to_dict(self, include_user=True) -> dict:
        d = {
            "id": self.id,
            "organization_id": self.organization_id,
            "ticket_id": self.ticket_id,
            "actor": self.actor,
            "actor_user_id": self.actor_user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "previous_data": self.previous_data,
            "new_data": self.new_data,
            "timestamp": _iso(self.timestamp),
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }
        if include_user:
            d["user"] = (
                {"id": self.user.id, "name": self.user.name,
                 "email": self.user.email, "role": self.user.role}
                if self.user else None
            )
        return d

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise AuditImmutableError(f"Audit entry {target.id} is append-only and cannot be modified")


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise AuditImmutableError(f"Audit entry {target.id} is append-only and cannot be deleted")


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    organization_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    ticket_id: str | None = None,
    actor=None,
    previous_data: dict | None = None,
    new_data: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    ``actor`` is a User instance or None for system actions. Request IP
    and user agent are captured when a request context is active.
    """
    if entity_type not in AUDIT_ENTITY_TYPES:
        raise ValueError(f"Unknown audit entity type: {entity_type}")
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")

    ip_address = None
    user_agent = None
    from flask import has_request_context, request
    if has_request_context():
        ip_address = request.headers.get("X-Forwarded-For", request.remote_addr)
        if ip_address:
            ip_address = ip_address.split(",")[0].strip()
        user_agent = (request.headers.get("User-Agent") or "")[:500] or None

    log = AuditLog(
        organization_id=organization_id,
        ticket_id=ticket_id,
        actor=actor.email if actor is not None else SYSTEM_ACTOR,
        actor_user_id=actor.id if actor is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        previous_data=previous_data,
        new_data=new_data,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.session.add(log)
    db.session.flush()
    return log
