"""
Ticket Service — 811 intake, listing, status updates and dashboard counts.

Import payload (snake_case):
{
    "ticket_number": "TX-811-2025-12345",        # optional, generated when absent
    "request_date": "2025-01-15",
    "work_start_date": "2025-01-20", "work_end_date": "2025-01-25",
    "excavator_company": "...",
    "excavator_contact": {"name": "...", "phone": "...", "email": "..."},
    "work_location": {"address": "...", "city": "...", "state": "TX", "zip": "...",
                      "coordinates": {"latitude": 30.26, "longitude": -97.74}},
    "work_description": "...",
    "utility_types": ["electric", "fiber optic"],
    "emergency_contact": "...",
    "special_instructions": "..."
}

Status is a free label: any value in TICKET_STATUSES may replace any
other. Each change is captured in the audit log with the old and new value.
"""

import logging
import random
import time
from datetime import datetime, timezone

from sqlalchemy import func

from app.core.exceptions import NotFoundError, ValidationError
from app.jobs.queues import add_permit_prefill_job, add_ticket_processing_job
from app.models import db
from app.models.audit import write_audit
from app.models.base import _iso
from app.models.fieldwork import Inspection
from app.models.permit import Fee, Permit
from app.models.ticket import TICKET_SOURCES, TICKET_STATUSES, UTILITY_TYPES, Ticket
from app.utils.helpers import commit_or_raise, parse_datetime

logger = logging.getLogger(__name__)

DEFAULT_TICKET_PREFIX = "TX811"

# Mock geocoder centre: Austin, TX
_GEOCODE_CENTER = (30.2672, -97.7431)
_GEOCODE_SPREAD = 0.1

_UTILITY_ALIASES = {
    **{name.lower(): name for name in UTILITY_TYPES},
    "electricity": "ELECTRIC",
    "power": "ELECTRIC",
    "natural gas": "GAS",
    "wastewater": "SEWER",
    "telephone": "TELECOM",
    "fiber optic": "FIBER",
}


# ═══════════════════════════════════════════════════════════════
# Intake helpers
# ═══════════════════════════════════════════════════════════════
def parse_utility_types(values) -> list[str]:
    """Map free-text utility names onto UtilityType values, dropping unknowns."""
    parsed = []
    for value in values or []:
        mapped = _UTILITY_ALIASES.get(str(value).strip().lower())
        if mapped and mapped not in parsed:
            parsed.append(mapped)
    return parsed


def geocode_address(address: str) -> tuple[float, float]:
    """Mock geocoder: a point near Austin, TX."""
    lat = _GEOCODE_CENTER[0] + (random.random() - 0.5) * _GEOCODE_SPREAD
    lng = _GEOCODE_CENTER[1] + (random.random() - 0.5) * _GEOCODE_SPREAD
    logger.debug("Geocoded %r -> %.5f, %.5f", address, lat, lng)
    return lat, lng


def generate_ticket_number(prefix: str = DEFAULT_TICKET_PREFIX) -> str:
    """``<prefix>-<epoch ms>-<3 digit random>``."""
    return f"{prefix}-{int(time.time() * 1000)}-{random.randint(0, 999):03d}"


def _object_field(errors: list, container: dict, key: str, label: str) -> dict:
    value = container.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        errors.append(f"{label} must be an object")
        return {}
    return value


def _text_field(errors: list, container: dict, key: str, label: str, required: bool = True) -> None:
    value = container.get(key)
    if value is None or value == "":
        if required:
            errors.append(f"{label} is required")
    elif not isinstance(value, str):
        errors.append(f"{label} must be a string")


def validate_ticket_payload(payload: dict) -> list[str]:
    """Return every problem found in an import payload (empty list when valid)."""
    if not isinstance(payload, dict):
        return ["Payload must be an object"]

    errors = []
    _text_field(errors, payload, "ticket_number", "Ticket number", required=False)
    contact = _object_field(errors, payload, "excavator_contact", "Excavator contact")
    location = _object_field(errors, payload, "work_location", "Work location")
    coords = _object_field(errors, location, "coordinates", "Coordinates")

    _text_field(errors, payload, "excavator_company", "Excavator company")
    _text_field(errors, contact, "phone", "Excavator phone")
    _text_field(errors, location, "address", "Work address")
    if not payload.get("work_start_date"):
        errors.append("Work start date is required")
    if not payload.get("work_end_date"):
        errors.append("Work end date is required")
    _text_field(errors, payload, "work_description", "Work description")
    _text_field(errors, contact, "email", "Excavator email", required=False)
    _text_field(errors, payload, "emergency_contact", "Emergency contact", required=False)

    raw_types = payload.get("utility_types") or []
    if not isinstance(raw_types, list) or not raw_types:
        errors.append("At least one utility type is required")
    elif not parse_utility_types(raw_types):
        errors.append("No recognized utility types in: " + ", ".join(str(t) for t in raw_types))

    start = parse_datetime(payload.get("work_start_date"))
    end = parse_datetime(payload.get("work_end_date"))
    if payload.get("work_start_date") and start is None:
        errors.append("Work start date is not a valid date")
    if payload.get("work_end_date") and end is None:
        errors.append("Work end date is not a valid date")
    if start and end and start >= end:
        errors.append("Work start date must be before end date")

    lat, lng = coords.get("latitude"), coords.get("longitude")
    if lat is not None and lng is not None:
        try:
            lat, lng = float(lat), float(lng)
        except (TypeError, ValueError):
            errors.append("Coordinates must be numeric")
        else:
            if not (-90 <= lat <= 90 and -180 <= lng <= 180):
                errors.append("Coordinates out of range")

    return errors


def _compose_address(location: dict) -> str:
    city_line = f"{location.get('state') or ''} {location.get('zip') or ''}".strip()
    parts = [location.get("address"), location.get("city"), city_line]
    return ", ".join(str(p) for p in parts if p)


def _coordinates(location: dict, address: str) -> tuple[float, float]:
    """Supplied coordinates win; validate_ticket_payload has already range-checked them."""
    coords = location.get("coordinates") or {}
    lat, lng = coords.get("latitude"), coords.get("longitude")
    if lat is not None and lng is not None:
        return float(lat), float(lng)
    return geocode_address(address)


def _get_ticket(organization_id: str, ticket_id: str) -> Ticket:
    ticket = Ticket.query_for_org(organization_id).filter_by(id=ticket_id).first()
    if ticket is None:
        raise NotFoundError(resource="Ticket", resource_id=ticket_id, organization_id=organization_id)
    return ticket


def get_ticket_for_org(organization_id: str, ticket_id: str) -> Ticket:
    """Public accessor used by sibling services; 404 across organizations."""
    return _get_ticket(organization_id, ticket_id)


# ═══════════════════════════════════════════════════════════════
# Import
# ═══════════════════════════════════════════════════════════════
def import_ticket(source: str, payload: dict, organization_id: str, actor=None) -> tuple[Ticket, object]:
    """Create a ticket from an 811 payload, audit it and queue post-processing.

    Returns (ticket, job).
    """
    errors = validate_ticket_payload(payload)
    if errors:
        raise ValidationError("Invalid ticket data", details={"errors": errors})

    location = payload.get("work_location") or {}
    contact = payload.get("excavator_contact") or {}
    work_address = _compose_address(location)
    latitude, longitude = _coordinates(location, work_address)

    ticket_number = (payload.get("ticket_number") or "").strip() or generate_ticket_number()
    if Ticket.query_for_org(organization_id).filter_by(ticket_number=ticket_number).first():
        raise ValidationError(
            "Invalid ticket data",
            details={"errors": [f"Ticket {ticket_number} has already been imported"]},
        )

    ticket = Ticket(
        organization_id=organization_id,
        ticket_number=ticket_number,
        source=source if source in TICKET_SOURCES else "811",
        status="INTAKE",
        excavator_name=payload["excavator_company"],
        excavator_phone=contact["phone"],
        excavator_email=contact.get("email"),
        work_address=work_address,
        latitude=latitude,
        longitude=longitude,
        utility_types=parse_utility_types(payload["utility_types"]),
        work_start_date=parse_datetime(payload["work_start_date"]),
        work_end_date=parse_datetime(payload["work_end_date"]),
        work_description=payload["work_description"],
        emergency_contact=payload.get("emergency_contact"),
        raw_data={"source": source, "payload": payload},
    )
    db.session.add(ticket)
    db.session.flush()

    write_audit(
        organization_id=organization_id,
        ticket_id=ticket.id,
        entity_type="TICKET",
        entity_id=ticket.id,
        action="TICKET_CREATED",
        actor=actor,
        new_data=ticket.snapshot(),
    )
    commit_or_raise("Ticket", "ticket_number", ticket_number)
    logger.info("Imported ticket %s from %s", ticket.ticket_number, source,
                extra={"organization_id": organization_id, "ticket_id": ticket.id})

    job = add_ticket_processing_job(ticket, actor_id=actor.id if actor else None)
    return ticket, job


# ═══════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════
def list_tickets(organization_id: str, status: str | None = None, page: int = 1, limit: int = 20) -> dict:
    """Newest-first page of tickets with permit/inspection summaries."""
    q = Ticket.query_for_org(organization_id)
    if status:
        if status not in TICKET_STATUSES:
            raise ValidationError(
                f"Unknown status: {status}", details={"allowed": list(TICKET_STATUSES)},
            )
        q = q.filter(Ticket.status == status)

    total = q.count()
    tickets = (
        q.order_by(Ticket.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "tickets": [t.to_list_dict() for t in tickets],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


def get_ticket(organization_id: str, ticket_id: str) -> dict:
    return _get_ticket(organization_id, ticket_id).to_dict(include_children=True)


# ═══════════════════════════════════════════════════════════════
# Mutations
# ═══════════════════════════════════════════════════════════════
def update_ticket_status(organization_id: str, ticket_id: str, status: str, actor=None) -> Ticket:
    """Set any valid status, recording the previous value in the audit log."""
    if status not in TICKET_STATUSES:
        raise ValidationError(
            f"Invalid status: {status}", details={"allowed": list(TICKET_STATUSES)},
        )

    ticket = _get_ticket(organization_id, ticket_id)
    previous = ticket.status
    ticket.status = status
    ticket.updated_at = datetime.now(timezone.utc)

    write_audit(
        organization_id=organization_id,
        ticket_id=ticket.id,
        entity_type="TICKET",
        entity_id=ticket.id,
        action="STATUS_UPDATED",
        actor=actor,
        previous_data={"status": previous},
        new_data={"status": status},
    )
    commit_or_raise("Ticket", "id", ticket.id)
    logger.info("Ticket %s status %s -> %s", ticket.ticket_number, previous, status,
                extra={"organization_id": organization_id, "ticket_id": ticket.id})
    return ticket


def request_permit_prefill(
    organization_id: str,
    ticket_id: str,
    municipality: str,
    permit_type: str,
    actor=None,
):
    """Queue a permit-prefill job for a ticket. Returns the job record."""
    if not municipality or not permit_type:
        raise ValidationError(
            "municipality and permit_type are required",
            details={"municipality": municipality or None, "permit_type": permit_type or None},
        )
    ticket = _get_ticket(organization_id, ticket_id)
    write_audit(
        organization_id=organization_id,
        ticket_id=ticket.id,
        entity_type="TICKET",
        entity_id=ticket.id,
        action="PERMIT_PREFILL_REQUESTED",
        actor=actor,
        new_data={"municipality": municipality, "permit_type": permit_type},
    )
    return add_permit_prefill_job(ticket, municipality, permit_type, actor_id=actor.id if actor else None)


# ═══════════════════════════════════════════════════════════════
# Dashboard
# ═══════════════════════════════════════════════════════════════
def dashboard_summary(organization_id: str) -> dict:
    """Headline counts plus the ten most recent tickets."""
    now = datetime.now(timezone.utc)

    tickets_pending = (
        Ticket.query_for_org(organization_id)
        .filter(Ticket.status.in_(("INTAKE", "PERMIT_FILED")))
        .count()
    )
    permits_awaiting = (
        Permit.query_for_org(organization_id)
        .filter(Permit.status == "PENDING_APPROVAL")
        .count()
    )
    inspections_upcoming = (
        Inspection.query_for_org(organization_id)
        .filter(Inspection.status == "SCHEDULED", Inspection.scheduled_date >= now)
        .count()
    )
    fees_outstanding = (
        Fee.query_for_org(organization_id)
        .filter(Fee.status == "OUTSTANDING")
        .count()
    )
    fees_outstanding_amount = (
        db.session.query(func.coalesce(func.sum(Fee.amount), 0))
        .filter(Fee.organization_id == organization_id, Fee.status == "OUTSTANDING")
        .scalar()
    )
    recent = (
        Ticket.query_for_org(organization_id)
        .order_by(Ticket.created_at.desc())
        .limit(10)
        .all()
    )

    return {
        "stats": {
            "tickets_pending": tickets_pending,
            "permits_awaiting_approval": permits_awaiting,
            "inspections_upcoming": inspections_upcoming,
            "fees_outstanding": fees_outstanding,
            "fees_outstanding_amount": float(fees_outstanding_amount or 0),
        },
        "recent_tickets": [
            {
                "id": t.id,
                "ticket_number": t.ticket_number,
                "status": t.status,
                "work_address": t.work_address,
                "excavator_name": t.excavator_name,
                "created_at": _iso(t.created_at),
                "permits": [{"id": p.id, "status": p.status} for p in t.permits],
                "inspections": [{"id": i.id, "status": i.status} for i in t.inspections],
            }
            for t in recent
        ],
    }
