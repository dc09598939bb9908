"""
Audit Service — read side of the compliance trail.

    ticket_audit_trail      newest-first history of one ticket
    build_audit_package     full export of a ticket for regulators (oldest-first trail)
    organization_summary    counts by action and by actor for an organization
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func

from app.models import db
from app.models.audit import AuditLog
from app.models.auth import User
from app.models.base import _iso
from app.services.ticket_service import get_ticket_for_org

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 50


def ticket_audit_trail(organization_id: str, ticket_id: str) -> list[dict]:
    ticket = get_ticket_for_org(organization_id, ticket_id)
    logs = (
        AuditLog.query.filter_by(organization_id=organization_id, ticket_id=ticket.id)
        .order_by(AuditLog.timestamp.desc())
        .all()
    )
    return [log.to_dict() for log in logs]


def build_audit_package(organization_id: str, ticket_id: str, exported_by) -> dict:
    """Everything an auditor needs about one ticket, in one document."""
    ticket = get_ticket_for_org(organization_id, ticket_id)
    logs = (
        AuditLog.query.filter_by(organization_id=organization_id, ticket_id=ticket.id)
        .order_by(AuditLog.timestamp.asc())
        .all()
    )
    logger.info("Audit package exported for ticket %s by %s",
                ticket.ticket_number, exported_by.email,
                extra={"organization_id": organization_id, "ticket_id": ticket.id})

    return {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "exported_by": {
            "id": exported_by.id,
            "name": exported_by.name,
            "email": exported_by.email,
            "role": exported_by.role,
        },
        "ticket": {
            "id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "status": ticket.status,
            "excavator_name": ticket.excavator_name,
            "work_address": ticket.work_address,
            "work_description": ticket.work_description,
            "utility_types": list(ticket.utility_types or []),
            "work_start_date": _iso(ticket.work_start_date),
            "work_end_date": _iso(ticket.work_end_date),
            "created_at": _iso(ticket.created_at),
        },
        "permits": [p.to_dict() for p in ticket.permits],
        "traffic_plans": [t.to_dict() for t in ticket.traffic_plans],
        "inspections": [i.to_dict() for i in ticket.inspections],
        "evidence": [e.to_dict() for e in ticket.evidence],
        "fees": [f.to_dict() for f in ticket.fees],
        "audit_trail": [
            {
                "timestamp": _iso(log.timestamp),
                "action": log.action,
                "entity_type": log.entity_type,
                "entity_id": log.entity_id,
                "actor": log.actor,
                "user": log.user.name if log.user else None,
                "role": log.user.role if log.user else None,
                "previous_data": log.previous_data,
                "new_data": log.new_data,
            }
            for log in logs
        ],
    }


def organization_summary(organization_id: str) -> dict:
    base = AuditLog.query.filter_by(organization_id=organization_id)
    total = base.count()

    recent = base.order_by(AuditLog.timestamp.desc()).limit(RECENT_ACTIVITY_LIMIT).all()

    by_action = (
        db.session.query(AuditLog.action, func.count(AuditLog.id))
        .filter(AuditLog.organization_id == organization_id)
        .group_by(AuditLog.action)
        .all()
    )
    by_actor = (
        db.session.query(AuditLog.actor_user_id, AuditLog.actor, func.count(AuditLog.id))
        .filter(AuditLog.organization_id == organization_id)
        .group_by(AuditLog.actor_user_id, AuditLog.actor)
        .all()
    )
    user_ids = [uid for uid, _, _ in by_actor if uid]
    users = {u.id: u for u in User.query.filter(User.id.in_(user_ids)).all()} if user_ids else {}

    return {
        "total_actions": total,
        "recent_activity": [
            {
                **log.to_dict(),
                "ticket_number": log.ticket.ticket_number if log.ticket else None,
            }
            for log in recent
        ],
        "action_breakdown": sorted(
            ({"action": action, "count": count} for action, count in by_action),
            key=lambda row: (-row["count"], row["action"]),
        ),
        "user_activity": sorted(
            (
                {
                    "user_id": uid,
                    "actor": actor,
                    "name": users[uid].name if uid in users else None,
                    "role": users[uid].role if uid in users else None,
                    "count": count,
                }
                for uid, actor, count in by_actor
            ),
            key=lambda row: (-row["count"], row["actor"]),
        ),
    }
