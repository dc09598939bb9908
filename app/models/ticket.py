"""
Utility Permit Tracker
Ticket domain model.

Models:
    - Ticket: one 811 locate notice and the work it authorizes.

The status field is a plain label. Any status may follow any other;
history lives in the audit log, not in the ticket row.
"""

from app.models import db
from app.models.base import OrgScopedModel, _iso, _utcnow, _uuid


# ── Constants ────────────────────────────────────────────────────────────────

TICKET_STATUSES = (
    "INTAKE",
    "PERMIT_FILED",
    "INSPECTION_SCHEDULED",
    "FIELD_WORK",
    "INSPECTION_PENDING",
    "CLOSED",
)

UTILITY_TYPES = ("ELECTRIC", "GAS", "WATER", "SEWER", "TELECOM", "CABLE", "FIBER")

TICKET_SOURCES = {"811", "manual"}


class Ticket(OrgScopedModel):
    """An excavation notice imported from the one-call center."""

    __tablename__ = "tickets"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "ticket_number", name="uq_tickets_org_number"),
        db.Index("ix_tickets_org_status", "organization_id", "status"),
        db.Index("ix_tickets_org_created", "organization_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    ticket_number = db.Column(db.String(100), nullable=False)
    source = db.Column(db.String(30), nullable=False, default="811")
    status = db.Column(db.String(30), nullable=False, default="INTAKE")

    # Excavator
    excavator_name = db.Column(db.String(200), nullable=False)
    excavator_phone = db.Column(db.String(50), nullable=False)
    excavator_email = db.Column(db.String(200))

    # Location
    work_address = db.Column(db.String(500), nullable=False)
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)

    # Work
    utility_types = db.Column(db.JSON, nullable=False, default=list)
    work_start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    work_end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    work_description = db.Column(db.Text, nullable=False)
    emergency_contact = db.Column(db.String(200))

    raw_data = db.Column(db.JSON, default=dict, comment="Original intake payload, kept verbatim")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    permits = db.relationship(
        "Permit", back_populates="ticket", lazy="select",
        cascade="all, delete-orphan", order_by="Permit.created_at",
    )
    traffic_plans = db.relationship(
        "TrafficPlan", back_populates="ticket", lazy="select",
        cascade="all, delete-orphan", order_by="TrafficPlan.created_at",
    )
    inspections = db.relationship(
        "Inspection", back_populates="ticket", lazy="select",
        cascade="all, delete-orphan", order_by="Inspection.scheduled_date",
    )
    evidence = db.relationship(
        "Evidence", back_populates="ticket", lazy="select",
        cascade="all, delete-orphan", order_by="Evidence.captured_at",
    )
    fees = db.relationship(
        "Fee", back_populates="ticket", lazy="select",
        cascade="all, delete-orphan", order_by="Fee.created_at",
    )

    def to_dict(self, include_children=False):
        d = {
            "id": self.id,
            "organization_id": self.organization_id,
            "ticket_number": self.ticket_number,
            "source": self.source,
            "status": self.status,
            "excavator_name": self.excavator_name,
            "excavator_phone": self.excavator_phone,
            "excavator_email": self.excavator_email,
            "work_address": self.work_address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "utility_types": list(self.utility_types or []),
            "work_start_date": _iso(self.work_start_date),
            "work_end_date": _iso(self.work_end_date),
            "work_description": self.work_description,
            "emergency_contact": self.emergency_contact,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_children:
            d["raw_data"] = self.raw_data or {}
            d["permits"] = [p.to_dict() for p in self.permits]
            d["traffic_plans"] = [t.to_dict() for t in self.traffic_plans]
            d["inspections"] = [i.to_dict() for i in self.inspections]
            d["evidence"] = [e.to_dict() for e in self.evidence]
            d["fees"] = [f.to_dict() for f in self.fees]
        return d

    def to_list_dict(self):
        """Row shape for the ticket list: summaries and counts only."""
        d = self.to_dict()
        d["permits"] = [
            {"id": p.id, "status": p.status, "municipality": p.municipality}
            for p in self.permits
        ]
        d["inspections"] = [
            {"id": i.id, "status": i.status, "scheduled_date": _iso(i.scheduled_date)}
            for i in self.inspections
        ]
        d["counts"] = {"evidence": len(self.evidence), "fees": len(self.fees)}
        return d

    def snapshot(self):
        """Audit payload: the fields an auditor needs to identify the notice."""
        return {
            "ticket_number": self.ticket_number,
            "source": self.source,
            "status": self.status,
            "excavator_name": self.excavator_name,
            "work_address": self.work_address,
            "utility_types": list(self.utility_types or []),
            "work_start_date": _iso(self.work_start_date),
            "work_end_date": _iso(self.work_end_date),
        }

    def __repr__(self):
        return f"<Ticket {self.ticket_number} {self.status}>"
