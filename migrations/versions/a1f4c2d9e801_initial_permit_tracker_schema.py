"""initial_permit_tracker_schema

Create organizations, users, tickets, permits, fees, traffic plans,
inspections, evidence, audit logs and job records.

Revision ID: a1f4c2d9e801
Revises:
Create Date: 2025-03-01 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1f4c2d9e801"
down_revision = None
branch_labels = None
depends_on = None


def _org_fk():
    return sa.Column(
        "organization_id", sa.String(length=36),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False,
    )


def _ticket_fk(nullable=False, ondelete="CASCADE"):
    return sa.Column(
        "ticket_id", sa.String(length=36),
        sa.ForeignKey("tickets.id", ondelete=ondelete), nullable=nullable,
    )


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "organizations" not in existing_tables:
        op.create_table(
            "organizations",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("code", sa.String(length=50), nullable=False, unique=True),
            sa.Column("address", sa.String(length=500), nullable=True),
            sa.Column("contact_email", sa.String(length=200), nullable=True),
            sa.Column("contact_phone", sa.String(length=50), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            sa.Column("email", sa.String(length=200), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("role", sa.String(length=30), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_users_organization_id", "users", ["organization_id"])

    if "tickets" not in existing_tables:
        op.create_table(
            "tickets",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            sa.Column("ticket_number", sa.String(length=100), nullable=False),
            sa.Column("source", sa.String(length=30), nullable=False, server_default="811"),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="INTAKE"),
            sa.Column("excavator_name", sa.String(length=200), nullable=False),
            sa.Column("excavator_phone", sa.String(length=50), nullable=False),
            sa.Column("excavator_email", sa.String(length=200), nullable=True),
            sa.Column("work_address", sa.String(length=500), nullable=False),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("utility_types", sa.JSON(), nullable=False),
            sa.Column("work_start_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("work_end_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("work_description", sa.Text(), nullable=False),
            sa.Column("emergency_contact", sa.String(length=200), nullable=True),
            sa.Column("raw_data", sa.JSON(), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("organization_id", "ticket_number", name="uq_tickets_org_number"),
        )
        op.create_index("ix_tickets_organization_id", "tickets", ["organization_id"])
        op.create_index("ix_tickets_org_status", "tickets", ["organization_id", "status"])
        op.create_index("ix_tickets_org_created", "tickets", ["organization_id", "created_at"])

    if "permits" not in existing_tables:
        op.create_table(
            "permits",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            _ticket_fk(),
            sa.Column("permit_number", sa.String(length=100), nullable=True),
            sa.Column("municipality", sa.String(length=200), nullable=False),
            sa.Column("permit_type", sa.String(length=100), nullable=False),
            sa.Column("application_data", sa.JSON(), nullable=True),
            sa.Column("prefilled_data", sa.JSON(), nullable=True),
            sa.Column("fee", sa.Numeric(10, 2), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="DRAFT"),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("pdf_path", sa.String(length=500), nullable=True),
            sa.Column("xml_path", sa.String(length=500), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_permits_organization_id", "permits", ["organization_id"])
        op.create_index("ix_permits_ticket_id", "permits", ["ticket_id"])
        op.create_index("ix_permits_org_status", "permits", ["organization_id", "status"])

    if "fees" not in existing_tables:
        op.create_table(
            "fees",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            _ticket_fk(),
            sa.Column("type", sa.String(length=50), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("amount", sa.Numeric(10, 2), nullable=False),
            sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("paid_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("paid_amount", sa.Numeric(10, 2), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="OUTSTANDING"),
            sa.Column("reference_number", sa.String(length=100), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_fees_organization_id", "fees", ["organization_id"])
        op.create_index("ix_fees_ticket_id", "fees", ["ticket_id"])
        op.create_index("ix_fees_org_status", "fees", ["organization_id", "status"])

    if "traffic_plans" not in existing_tables:
        op.create_table(
            "traffic_plans",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            _ticket_fk(),
            sa.Column("template_id", sa.String(length=100), nullable=False),
            sa.Column("template_name", sa.String(length=200), nullable=False),
            sa.Column("generated_data", sa.JSON(), nullable=True),
            sa.Column("pdf_path", sa.String(length=500), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_traffic_plans_organization_id", "traffic_plans", ["organization_id"])
        op.create_index("ix_traffic_plans_ticket_id", "traffic_plans", ["ticket_id"])

    if "inspections" not in existing_tables:
        op.create_table(
            "inspections",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            _ticket_fk(),
            sa.Column("permit_id", sa.String(length=36),
                      sa.ForeignKey("permits.id", ondelete="SET NULL"), nullable=True),
            sa.Column("inspection_type", sa.String(length=100), nullable=False),
            sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("scheduled_time", sa.String(length=20), nullable=True),
            sa.Column("inspector", sa.String(length=200), nullable=True),
            sa.Column("inspector_contact", sa.String(length=200), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="SCHEDULED"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("calendar_event_id", sa.String(length=200), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_inspections_organization_id", "inspections", ["organization_id"])
        op.create_index("ix_inspections_ticket_id", "inspections", ["ticket_id"])
        op.create_index("ix_inspections_permit_id", "inspections", ["permit_id"])
        op.create_index(
            "ix_inspections_org_status_date", "inspections",
            ["organization_id", "status", "scheduled_date"],
        )

    if "evidence" not in existing_tables:
        op.create_table(
            "evidence",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            _ticket_fk(),
            sa.Column("user_id", sa.String(length=36),
                      sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("type", sa.String(length=30), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("file_path", sa.String(length=500), nullable=False),
            sa.Column("file_type", sa.String(length=100), nullable=True),
            sa.Column("file_size", sa.Integer(), nullable=True),
            sa.Column("gps_latitude", sa.Float(), nullable=True),
            sa.Column("gps_longitude", sa.Float(), nullable=True),
            sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_evidence_organization_id", "evidence", ["organization_id"])
        op.create_index("ix_evidence_ticket_id", "evidence", ["ticket_id"])
        op.create_index("ix_evidence_user_id", "evidence", ["user_id"])

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            _ticket_fk(nullable=True, ondelete="SET NULL"),
            sa.Column("actor", sa.String(length=200), nullable=False, server_default="system"),
            sa.Column("actor_user_id", sa.String(length=36),
                      sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=36), nullable=False),
            sa.Column("previous_data", sa.JSON(), nullable=True),
            sa.Column("new_data", sa.JSON(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.Column("ip_address", sa.String(length=64), nullable=True),
            sa.Column("user_agent", sa.String(length=500), nullable=True),
        )
        op.create_index("ix_audit_logs_organization_id", "audit_logs", ["organization_id"])
        op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"])
        op.create_index("idx_audit_org_ts", "audit_logs", ["organization_id", "timestamp"])
        op.create_index("idx_audit_ticket_ts", "audit_logs", ["ticket_id", "timestamp"])
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])

    if "job_records" not in existing_tables:
        op.create_table(
            "job_records",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            _ticket_fk(nullable=True, ondelete="SET NULL"),
            sa.Column("queue", sa.String(length=60), nullable=False),
            sa.Column("job_name", sa.String(length=60), nullable=False),
            sa.Column("payload", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="queued"),
            sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("result", sa.JSON(), nullable=True),
            sa.Column("error", sa.Text(), nullable=True),
            sa.Column("next_retry_delay_ms", sa.Integer(), nullable=True),
            sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_job_records_organization_id", "job_records", ["organization_id"])
        op.create_index("ix_job_records_ticket_id", "job_records", ["ticket_id"])
        op.create_index("ix_job_records_queue", "job_records", ["queue"])
        op.create_index(
            "ix_job_records_org_queue_status", "job_records",
            ["organization_id", "queue", "status"],
        )


def downgrade():
    for table in (
        "job_records", "audit_logs", "evidence", "inspections", "traffic_plans",
        "fees", "permits", "tickets", "users", "organizations",
    ):
        op.drop_table(table)
