"""
Demo data — Austin Utility Contractors.

One organization, one user per role (password ``password123``) and two
tickets: a fiber installation with its full permit / traffic plan /
inspection / evidence / fee history, and a water main repair still at
intake.

Safe to run multiple times — does nothing when organization AUC exists.
Call this from the ``flask seed-demo`` CLI command; the caller commits.
"""

import logging
from datetime import datetime, timezone

from app.models import db
from app.models.audit import AuditLog
from app.models.auth import (
    COMPLIANCE_MANAGER,
    FIELD_SUPERVISOR,
    PERMIT_COORDINATOR,
    Organization,
    User,
)
from app.models.fieldwork import Evidence, Inspection, TrafficPlan
from app.models.permit import Fee, Permit
from app.models.ticket import Ticket
from app.utils.crypto import hash_password

logger = logging.getLogger(__name__)

DEMO_ORG_CODE = "AUC"
DEMO_PASSWORD = "password123"


def _dt(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def seed_demo_data() -> dict | None:
    """Insert the demo dataset. Returns created ids, or None if already seeded."""
    if Organization.query.filter_by(code=DEMO_ORG_CODE).first():
        logger.info("Demo organization %s already present, skipping seed", DEMO_ORG_CODE)
        return None

    org = Organization(
        name="Austin Utility Contractors",
        code=DEMO_ORG_CODE,
        address="123 Business Drive, Austin, TX 78701",
        contact_email="info@austinutils.com",
        contact_phone="(512) 555-0100",
    )
    db.session.add(org)
    db.session.flush()

    password_hash = hash_password(DEMO_PASSWORD)
    coordinator, supervisor, manager = (
        User(organization_id=org.id, email=email, password_hash=password_hash, name=name, role=role)
        for email, name, role in (
            ("coordinator@austinutils.com", "Sarah Johnson", PERMIT_COORDINATOR),
            ("supervisor@austinutils.com", "Mike Rodriguez", FIELD_SUPERVISOR),
            ("compliance@austinutils.com", "Jennifer Chen", COMPLIANCE_MANAGER),
        )
    )
    db.session.add_all([coordinator, supervisor, manager])
    db.session.flush()

    # ── Ticket 1: fiber install with full history ────────────────────────
    fiber = Ticket(
        organization_id=org.id,
        ticket_number="TX-811-2025-12345",
        source="811",
        status="PERMIT_FILED",
        excavator_name="Fiber Connect Solutions",
        excavator_phone="(512) 555-0200",
        excavator_email="project@fiberconnect.com",
        work_address="123 Main Street, Austin, TX 78701",
        latitude=30.2672,
        longitude=-97.7431,
        utility_types=["FIBER", "ELECTRIC"],
        work_start_date=_dt("2025-03-01"),
        work_end_date=_dt("2025-03-15"),
        work_description=(
            "Installation of fiber optic cable for residential internet service. "
            "Work includes trenching, conduit installation, and restoration."
        ),
        emergency_contact="(512) 555-0300",
        raw_data={
            "original_ticket": "TX-811-2025-12345",
            "request_date": "2025-02-15",
            "work_type": "New Installation",
            "depth": "18 inches",
            "method": "Open Cut",
        },
        created_at=_dt("2025-02-15T09:00:00"),
    )
    db.session.add(fiber)
    db.session.flush()

    permit = Permit(
        organization_id=org.id,
        ticket_id=fiber.id,
        permit_number="AUSTIN-2025-001",
        municipality="City of Austin",
        permit_type="Right-of-Way Excavation",
        application_data={
            "applicant_name": "Fiber Connect Solutions",
            "work_type": "Utility Installation",
            "traffic_control_required": True,
            "restoration_method": "Full Depth Replacement",
        },
        prefilled_data={
            "applicant_name": fiber.excavator_name,
            "applicant_phone": fiber.excavator_phone,
            "work_address": fiber.work_address,
            "work_description": fiber.work_description,
            "estimated_cost": "$2,500",
            "municipality": "City of Austin",
            "permit_type": "Right-of-Way Excavation",
        },
        fee=75.00,
        status="APPROVED",
        submitted_at=_dt("2025-02-20"),
        approved_at=_dt("2025-02-25"),
    )
    db.session.add(permit)
    db.session.flush()

    db.session.add_all([
        TrafficPlan(
            organization_id=org.id,
            ticket_id=fiber.id,
            template_id="residential-street-v1",
            template_name="Residential Street Template",
            generated_data={
                "street_type": "Residential",
                "lane_configuration": "2-lane",
                "traffic_devices": ["Cones", "Warning Signs", "Flaggers"],
                "work_zone_length": "200 feet",
            },
            pdf_path="/storage/traffic-plans/tx-811-2025-12345-traffic-plan.pdf",
        ),
        Inspection(
            organization_id=org.id,
            ticket_id=fiber.id,
            permit_id=permit.id,
            inspection_type="Pre-Construction",
            scheduled_date=_dt("2025-03-01"),
            scheduled_time="10:00 AM",
            inspector="City Inspector John Smith",
            inspector_contact="(512) 974-1234",
            status="SCHEDULED",
            calendar_event_id="cal-event-12345",
        ),
        Evidence(
            organization_id=org.id,
            ticket_id=fiber.id,
            user_id=supervisor.id,
            type="LOCATE_PROOF",
            title="Pre-work utility locates verification",
            description="Photo showing all utilities properly marked before excavation",
            file_path="/storage/evidence/locate-proof-001.jpg",
            file_type="image/jpeg",
            file_size=2048576,
            gps_latitude=30.2672,
            gps_longitude=-97.7431,
            captured_at=_dt("2025-02-28"),
        ),
        Fee(
            organization_id=org.id,
            ticket_id=fiber.id,
            type="PERMIT_FEE",
            description="Right-of-Way Excavation Permit Fee",
            amount=75.00,
            due_date=_dt("2025-03-01"),
            paid_date=_dt("2025-02-28"),
            paid_amount=75.00,
            status="PAID",
            reference_number="PAY-AUSTIN-001",
        ),
    ])

    # Historical entries carry their original timestamps
    for action, entity_type, entity_id, previous, new, ts in (
        ("TICKET_CREATED", "TICKET", fiber.id, None, {"status": "INTAKE"}, "2025-02-15T09:00:00"),
        ("PERMIT_CREATED", "PERMIT", permit.id, None,
         {"permit_number": permit.permit_number, "status": "DRAFT"}, "2025-02-20T10:30:00"),
        ("STATUS_UPDATED", "TICKET", fiber.id, {"status": "INTAKE"},
         {"status": "PERMIT_FILED"}, "2025-02-20T14:15:00"),
    ):
        db.session.add(AuditLog(
            organization_id=org.id,
            ticket_id=fiber.id,
            actor=coordinator.email,
            actor_user_id=coordinator.id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            previous_data=previous,
            new_data=new,
            timestamp=_dt(ts),
        ))

    # ── Ticket 2: water main repair at intake ────────────────────────────
    water = Ticket(
        organization_id=org.id,
        ticket_number="TX-811-2025-12346",
        source="811",
        status="INTAKE",
        excavator_name="Metro Water Services",
        excavator_phone="(512) 555-0400",
        excavator_email="dispatch@metrowater.com",
        work_address="456 Oak Avenue, Austin, TX 78702",
        latitude=30.2849,
        longitude=-97.7341,
        utility_types=["WATER", "SEWER"],
        work_start_date=_dt("2025-03-10"),
        work_end_date=_dt("2025-03-12"),
        work_description="Emergency water main repair due to leak detected during routine inspection.",
        emergency_contact="(512) 555-0401",
        raw_data={
            "original_ticket": "TX-811-2025-12346",
            "request_date": "2025-02-18",
            "work_type": "Emergency Repair",
            "priority": "High",
        },
        created_at=_dt("2025-02-18T08:00:00"),
    )
    db.session.add(water)
    db.session.flush()

    logger.info("Seeded demo organization %s with %d users and 2 tickets", org.code, 3)
    return {
        "organization_id": org.id,
        "user_ids": [coordinator.id, supervisor.id, manager.id],
        "ticket_ids": [fiber.id, water.id],
    }
