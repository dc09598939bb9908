"""
Field work service — traffic plans, inspections, evidence, closeouts.

Request operations record the request in the audit log and queue a job;
the job handlers own the eventual work. Listing operations are
organization-scoped reads with an optional ticket filter.
"""

import logging

from app.core.exceptions import NotFoundError, ValidationError
from app.jobs.queues import (
    CLOSEOUT_PROCESSING,
    add_closeout_job,
    add_inspection_job,
    add_traffic_plan_job,
)
from app.models.audit import write_audit
from app.models.fieldwork import EVIDENCE_TYPES, INSPECTION_STATUSES, Evidence, Inspection, TrafficPlan
from app.models.jobs import JobRecord
from app.models.permit import Permit
from app.services.ticket_service import get_ticket_for_org
from app.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)


def _require(data: dict, *fields: str) -> None:
    missing = [f for f in fields if not data.get(f)]
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}",
            details={"missing": missing},
        )


def _actor_id(actor):
    return actor.id if actor is not None else None


# ═══════════════════════════════════════════════════════════════
# Requests (queue a job)
# ═══════════════════════════════════════════════════════════════
def request_traffic_plan(organization_id: str, data: dict, actor=None) -> JobRecord:
    _require(data, "ticket_id", "template_id")
    ticket = get_ticket_for_org(organization_id, data["ticket_id"])
    write_audit(
        organization_id=organization_id,
        ticket_id=ticket.id,
        entity_type="TRAFFIC_PLAN",
        entity_id=ticket.id,
        action="TRAFFIC_PLAN_REQUESTED",
        actor=actor,
        new_data={"template_id": data["template_id"]},
    )
    return add_traffic_plan_job(ticket, data["template_id"], actor_id=_actor_id(actor))


def request_inspection(organization_id: str, data: dict, actor=None) -> JobRecord:
    _require(data, "ticket_id", "inspection_type", "preferred_date")
    preferred = parse_datetime(data["preferred_date"])
    if preferred is None:
        raise ValidationError("preferred_date must be an ISO date", details={"preferred_date": "invalid"})

    ticket = get_ticket_for_org(organization_id, data["ticket_id"])
    permit_id = data.get("permit_id")
    if permit_id:
        permit = Permit.query_for_org(organization_id).filter_by(id=permit_id, ticket_id=ticket.id).first()
        if permit is None:
            raise NotFoundError(resource="Permit", resource_id=permit_id, organization_id=organization_id)

    write_audit(
        organization_id=organization_id,
        ticket_id=ticket.id,
        entity_type="INSPECTION",
        entity_id=permit_id or ticket.id,
        action="INSPECTION_REQUESTED",
        actor=actor,
        new_data={"inspection_type": data["inspection_type"],
                  "preferred_date": preferred.isoformat(), "permit_id": permit_id},
    )
    return add_inspection_job(
        ticket, data["inspection_type"], preferred.isoformat(),
        permit_id=permit_id, actor_id=_actor_id(actor),
    )


def request_closeout(organization_id: str, data: dict, actor=None) -> JobRecord:
    _require(data, "ticket_id")
    ticket = get_ticket_for_org(organization_id, data["ticket_id"])
    write_audit(
        organization_id=organization_id,
        ticket_id=ticket.id,
        entity_type="TICKET",
        entity_id=ticket.id,
        action="CLOSEOUT_REQUESTED",
        actor=actor,
        new_data={"status": ticket.status},
    )
    return add_closeout_job(ticket, actor_id=_actor_id(actor))


# ═══════════════════════════════════════════════════════════════
# Listings
# ═══════════════════════════════════════════════════════════════
def list_traffic_plans(organization_id: str, ticket_id: str | None = None) -> list[dict]:
    q = TrafficPlan.query_for_org(organization_id)
    if ticket_id:
        q = q.filter(TrafficPlan.ticket_id == ticket_id)
    return [t.to_dict() for t in q.order_by(TrafficPlan.created_at.desc()).all()]


def list_inspections(organization_id: str, ticket_id: str | None = None, status: str | None = None) -> list[dict]:
    q = Inspection.query_for_org(organization_id)
    if ticket_id:
        q = q.filter(Inspection.ticket_id == ticket_id)
    if status:
        if status not in INSPECTION_STATUSES:
            raise ValidationError(
                f"Unknown inspection status: {status}", details={"allowed": sorted(INSPECTION_STATUSES)},
            )
        q = q.filter(Inspection.status == status)
    return [i.to_dict() for i in q.order_by(Inspection.scheduled_date.asc()).all()]


def list_evidence(organization_id: str, ticket_id: str | None = None, evidence_type: str | None = None) -> list[dict]:
    q = Evidence.query_for_org(organization_id)
    if ticket_id:
        q = q.filter(Evidence.ticket_id == ticket_id)
    if evidence_type:
        if evidence_type not in EVIDENCE_TYPES:
            raise ValidationError(
                f"Unknown evidence type: {evidence_type}", details={"allowed": list(EVIDENCE_TYPES)},
            )
        q = q.filter(Evidence.type == evidence_type)
    return [e.to_dict() for e in q.order_by(Evidence.captured_at.desc()).all()]


def list_closeouts(organization_id: str, ticket_id: str | None = None) -> list[dict]:
    q = JobRecord.query_for_org(organization_id).filter(JobRecord.queue == CLOSEOUT_PROCESSING)
    if ticket_id:
        q = q.filter(JobRecord.ticket_id == ticket_id)
    return [j.to_dict() for j in q.order_by(JobRecord.created_at.desc()).all()]
