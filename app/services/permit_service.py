"""
Permit Service — prefill, edit and submit municipal permit applications.

Prefill and submission are mocked: prefill derives the application from
the ticket, and submission assigns a permit number locally instead of
calling a municipal portal.
"""

import logging
import time
from datetime import datetime, timezone

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.audit import write_audit
from app.models.permit import DEFAULT_PERMIT_FEE, Permit
from app.services.ticket_service import get_ticket_for_org
from app.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

# Utilities whose work zones require a traffic-control plan
TRAFFIC_CONTROL_UTILITIES = frozenset({"ELECTRIC", "GAS", "FIBER"})

ESTIMATED_COST = "$2,500"
SPECIAL_REQUIREMENTS = "Standard utility installation"


def build_prefilled_data(ticket, municipality: str, permit_type: str) -> dict:
    """Draft permit application fields from a ticket."""
    utility_types = list(ticket.utility_types or [])
    return {
        "applicant_name": ticket.excavator_name,
        "applicant_phone": ticket.excavator_phone,
        "applicant_email": ticket.excavator_email,
        "work_address": ticket.work_address,
        "work_description": ticket.work_description,
        "start_date": ticket.work_start_date.date().isoformat() if ticket.work_start_date else None,
        "end_date": ticket.work_end_date.date().isoformat() if ticket.work_end_date else None,
        "utility_types": utility_types,
        "emergency_contact": ticket.emergency_contact,
        "municipality": municipality,
        "permit_type": permit_type,
        "estimated_cost": ESTIMATED_COST,
        "traffic_control_required": bool(TRAFFIC_CONTROL_UTILITIES.intersection(utility_types)),
        "special_requirements": SPECIAL_REQUIREMENTS,
    }


def _get_permit(organization_id: str, permit_id: str) -> Permit:
    permit = Permit.query_for_org(organization_id).filter_by(id=permit_id).first()
    if permit is None:
        raise NotFoundError(resource="Permit", resource_id=permit_id, organization_id=organization_id)
    return permit


# ═══════════════════════════════════════════════════════════════
# Create / read
# ═══════════════════════════════════════════════════════════════
def prefill_permit(organization_id: str, ticket_id: str, municipality: str, permit_type: str, actor=None) -> Permit:
    """Create a DRAFT permit with application data derived from the ticket."""
    if not ticket_id or not municipality or not permit_type:
        raise ValidationError(
            "ticket_id, municipality and permit_type are required",
            details={"required": ["ticket_id", "municipality", "permit_type"]},
        )
    ticket = get_ticket_for_org(organization_id, ticket_id)

    prefilled = build_prefilled_data(ticket, municipality, permit_type)
    permit = Permit(
        organization_id=organization_id,
        ticket_id=ticket.id,
        municipality=municipality,
        permit_type=permit_type,
        application_data=dict(prefilled),
        prefilled_data=prefilled,
        fee=DEFAULT_PERMIT_FEE,
        status="DRAFT",
    )
    db.session.add(permit)
    db.session.flush()

    write_audit(
        organization_id=organization_id,
        ticket_id=ticket.id,
        entity_type="PERMIT",
        entity_id=permit.id,
        action="PERMIT_CREATED",
        actor=actor,
        new_data={"municipality": municipality, "permit_type": permit_type,
                  "status": permit.status, "fee": DEFAULT_PERMIT_FEE},
    )
    commit_or_raise("Permit", "ticket_id", ticket.id)
    logger.info("Prefilled %s permit for ticket %s", municipality, ticket.ticket_number,
                extra={"organization_id": organization_id, "ticket_id": ticket.id})
    return permit


def list_permits(organization_id: str, ticket_id: str | None = None, status: str | None = None) -> list[dict]:
    q = Permit.query_for_org(organization_id)
    if ticket_id:
        q = q.filter(Permit.ticket_id == ticket_id)
    if status:
        q = q.filter(Permit.status == status)
    return [p.to_dict(include_ticket=True) for p in q.order_by(Permit.created_at.desc()).all()]


def get_permit(organization_id: str, permit_id: str) -> dict:
    return _get_permit(organization_id, permit_id).to_dict(include_ticket=True)


# ═══════════════════════════════════════════════════════════════
# Update / submit
# ═══════════════════════════════════════════════════════════════
def update_permit_application(organization_id: str, permit_id: str, changes: dict, actor=None) -> Permit:
    """Shallow-merge ``changes`` into the application data."""
    if not isinstance(changes, dict) or not changes:
        raise ValidationError("Request body must be a non-empty object")

    permit = _get_permit(organization_id, permit_id)
    previous = dict(permit.application_data or {})
    merged = {**previous, **changes}
    permit.application_data = merged

    write_audit(
        organization_id=organization_id,
        ticket_id=permit.ticket_id,
        entity_type="PERMIT",
        entity_id=permit.id,
        action="PERMIT_UPDATED",
        actor=actor,
        previous_data={k: previous.get(k) for k in changes},
        new_data=changes,
    )
    commit_or_raise("Permit", "id", permit.id)
    return permit


def submit_permit(organization_id: str, permit_id: str, actor=None) -> Permit:
    """Mock municipal submission: assign a permit number and mark SUBMITTED."""
    permit = _get_permit(organization_id, permit_id)
    previous_status = permit.status

    permit.permit_number = f"{permit.municipality.upper()}-{int(time.time() * 1000)}"
    permit.status = "SUBMITTED"
    permit.submitted_at = datetime.now(timezone.utc)

    write_audit(
        organization_id=organization_id,
        ticket_id=permit.ticket_id,
        entity_type="PERMIT",
        entity_id=permit.id,
        action="PERMIT_SUBMITTED",
        actor=actor,
        previous_data={"status": previous_status},
        new_data={"status": permit.status, "permit_number": permit.permit_number},
    )
    commit_or_raise("Permit", "permit_number", permit.permit_number)
    logger.info("Submitted permit %s", permit.permit_number,
                extra={"organization_id": organization_id, "ticket_id": permit.ticket_id})
    return permit
