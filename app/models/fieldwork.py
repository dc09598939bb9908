"""
Utility Permit Tracker
Field work models.

Models:
    - TrafficPlan: traffic-control plan generated from a template
    - Inspection: municipal inspection slot for a ticket (optionally a permit)
    - Evidence: photo / document captured in the field
"""

from sqlalchemy.orm import validates

from app.models import db
from app.models.base import OrgScopedModel, _iso, _utcnow, _uuid


# ── Constants ────────────────────────────────────────────────────────────────

INSPECTION_STATUSES = {"SCHEDULED", "COMPLETED", "CANCELLED", "FAILED"}
EVIDENCE_TYPES = ("LOCATE_PROOF", "INSPECTION_EVIDENCE", "AS_BUILT", "COMPLIANCE_PHOTO")


class TrafficPlan(OrgScopedModel):
    __tablename__ = "traffic_plans"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    ticket_id = db.Column(
        db.String(36), db.ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    template_id = db.Column(db.String(100), nullable=False)
    template_name = db.Column(db.String(200), nullable=False)
    generated_data = db.Column(db.JSON, default=dict)
    pdf_path = db.Column(db.String(500))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    ticket = db.relationship("Ticket", back_populates="traffic_plans")

    def to_dict(self):
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "template_id": self.template_id,
            "template_name": self.template_name,
            "generated_data": self.generated_data or {},
            "pdf_path": self.pdf_path,
            "created_at": _iso(self.created_at),
        }


class Inspection(OrgScopedModel):
    __tablename__ = "inspections"
    __table_args__ = (
        db.Index("ix_inspections_org_status_date", "organization_id", "status", "scheduled_date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    ticket_id = db.Column(
        db.String(36), db.ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    permit_id = db.Column(
        db.String(36), db.ForeignKey("permits.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    inspection_type = db.Column(db.String(100), nullable=False)
    scheduled_date = db.Column(db.DateTime(timezone=True), nullable=False)
    scheduled_time = db.Column(db.String(20))
    inspector = db.Column(db.String(200))
    inspector_contact = db.Column(db.String(200))
    status = db.Column(db.String(20), nullable=False, default="SCHEDULED")
    notes = db.Column(db.Text)
    completed_at = db.Column(db.DateTime(timezone=True))
    calendar_event_id = db.Column(db.String(200))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    ticket = db.relationship("Ticket", back_populates="inspections")
    permit = db.relationship("Permit", back_populates="inspections")

    def to_dict(self):
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "permit_id": self.permit_id,
            "inspection_type": self.inspection_type,
            "scheduled_date": _iso(self.scheduled_date),
            "scheduled_time": self.scheduled_time,
            "inspector": self.inspector,
            "inspector_contact": self.inspector_contact,
            "status": self.status,
            "notes": self.notes,
            "completed_at": _iso(self.completed_at),
            "calendar_event_id": self.calendar_event_id,
            "created_at": _iso(self.created_at),
        }


class Evidence(OrgScopedModel):
    __tablename__ = "evidence"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    ticket_id = db.Column(
        db.String(36), db.ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    type = db.Column(db.String(30), nullable=False)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    file_path = db.Column(db.String(500), nullable=False)
    file_type = db.Column(db.String(100))
    file_size = db.Column(db.Integer)
    gps_latitude = db.Column(db.Float)
    gps_longitude = db.Column(db.Float)
    captured_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    ticket = db.relationship("Ticket", back_populates="evidence")
    user = db.relationship("User")

    @validates("gps_latitude")
    def _validate_latitude(self, key, value):
        if value is not None and not -90 <= value <= 90:
            raise ValueError("gps_latitude must be between -90 and 90")
        return value

    @validates("gps_longitude")
    def _validate_longitude(self, key, value):
        if value is not None and not -180 <= value <= 180:
            raise ValueError("gps_longitude must be between -180 and 180")
        return value

    def to_dict(self):
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "file_path": self.file_path,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "gps_latitude": self.gps_latitude,
            "gps_longitude": self.gps_longitude,
            "captured_at": _iso(self.captured_at),
            "uploaded_by": self.user.name if self.user else None,
        }
