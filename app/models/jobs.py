"""
Utility Permit Tracker
Job envelope model.

Models:
    - JobRecord: persisted envelope for one unit of deferred work.

Every enqueue writes a JobRecord before handing the id to the broker, so
job state (attempts, result, last error) can be inspected through the API
regardless of the broker backing the queue.
"""

from app.models import db
from app.models.base import OrgScopedModel, _iso, _utcnow, _uuid


# ── Constants ────────────────────────────────────────────────────────────────

JOB_STATUSES = {"queued", "running", "retrying", "completed", "failed"}
TERMINAL_JOB_STATUSES = {"completed", "failed"}


class JobRecord(OrgScopedModel):
    __tablename__ = "job_records"
    __table_args__ = (
        db.Index("ix_job_records_org_queue_status", "organization_id", "queue", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    queue = db.Column(db.String(60), nullable=False, index=True)
    job_name = db.Column(db.String(60), nullable=False)
    ticket_id = db.Column(
        db.String(36), db.ForeignKey("tickets.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    payload = db.Column(db.JSON, default=dict)
    status = db.Column(db.String(20), nullable=False, default="queued")
    attempts = db.Column(db.Integer, nullable=False, default=0)
    max_attempts = db.Column(db.Integer, nullable=False, default=1)
    result = db.Column(db.JSON, nullable=True)
    error = db.Column(db.Text, nullable=True)
    next_retry_delay_ms = db.Column(db.Integer, nullable=True)
    # Set once the broker accepts the job; NULL rows are re-sent by dispatch-jobs
    dispatched_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    started_at = db.Column(db.DateTime(timezone=True))
    completed_at = db.Column(db.DateTime(timezone=True))
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "queue": self.queue,
            "job_name": self.job_name,
            "ticket_id": self.ticket_id,
            "payload": self.payload or {},
            "status": self.status,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "result": self.result,
            "error": self.error,
            "next_retry_delay_ms": self.next_retry_delay_ms,
            "dispatched_at": _iso(self.dispatched_at),
            "created_at": _iso(self.created_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }

    def __repr__(self):
        return f"<JobRecord {self.queue}/{self.job_name} {self.status}>"
