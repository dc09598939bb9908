"""
Utility Permit Tracker
Permit & fee models.

Models:
    - Permit: municipal right-of-way permit application for a ticket
    - Fee: a charge owed against a ticket (permit fee, inspection fee, ...)
"""

from app.models import db
from app.models.base import OrgScopedModel, _iso, _utcnow, _uuid


# ── Constants ────────────────────────────────────────────────────────────────

PERMIT_STATUSES = {"DRAFT", "PENDING_APPROVAL", "SUBMITTED", "APPROVED", "REJECTED"}
FEE_STATUSES = {"OUTSTANDING", "PAID", "WAIVED"}

DEFAULT_PERMIT_FEE = 75.00


class Permit(OrgScopedModel):
    __tablename__ = "permits"
    __table_args__ = (
        db.Index("ix_permits_org_status", "organization_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    ticket_id = db.Column(
        db.String(36), db.ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    permit_number = db.Column(db.String(100), comment="Assigned on municipal submission")
    municipality = db.Column(db.String(200), nullable=False)
    permit_type = db.Column(db.String(100), nullable=False)
    application_data = db.Column(db.JSON, default=dict)
    prefilled_data = db.Column(db.JSON, default=dict)
    fee = db.Column(db.Numeric(10, 2))
    status = db.Column(db.String(30), nullable=False, default="DRAFT")
    submitted_at = db.Column(db.DateTime(timezone=True))
    approved_at = db.Column(db.DateTime(timezone=True))
    pdf_path = db.Column(db.String(500))
    xml_path = db.Column(db.String(500))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    ticket = db.relationship("Ticket", back_populates="permits")
    inspections = db.relationship("Inspection", back_populates="permit", lazy="select")

    def to_dict(self, include_ticket=False):
        d = {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "organization_id": self.organization_id,
            "permit_number": self.permit_number,
            "municipality": self.municipality,
            "permit_type": self.permit_type,
            "application_data": self.application_data or {},
            "prefilled_data": self.prefilled_data or {},
            "fee": float(self.fee) if self.fee is not None else None,
            "status": self.status,
            "submitted_at": _iso(self.submitted_at),
            "approved_at": _iso(self.approved_at),
            "pdf_path": self.pdf_path,
            "xml_path": self.xml_path,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_ticket and self.ticket:
            d["ticket"] = {
                "id": self.ticket.id,
                "ticket_number": self.ticket.ticket_number,
                "work_address": self.ticket.work_address,
                "excavator_name": self.ticket.excavator_name,
                "status": self.ticket.status,
            }
        return d

    def __repr__(self):
        return f"<Permit {self.municipality} {self.status}>"


class Fee(OrgScopedModel):
    __tablename__ = "fees"
    __table_args__ = (
        db.Index("ix_fees_org_status", "organization_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    ticket_id = db.Column(
        db.String(36), db.ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    type = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(500))
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True))
    paid_date = db.Column(db.DateTime(timezone=True))
    paid_amount = db.Column(db.Numeric(10, 2))
    status = db.Column(db.String(20), nullable=False, default="OUTSTANDING")
    reference_number = db.Column(db.String(100))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    ticket = db.relationship("Ticket", back_populates="fees")

    def to_dict(self):
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "type": self.type,
            "description": self.description,
            "amount": float(self.amount) if self.amount is not None else None,
            "due_date": _iso(self.due_date),
            "paid_date": _iso(self.paid_date),
            "paid_amount": float(self.paid_amount) if self.paid_amount is not None else None,
            "status": self.status,
            "reference_number": self.reference_number,
            "created_at": _iso(self.created_at),
        }
