"""Job Service — organization-scoped reads of job envelopes."""

from app.core.exceptions import NotFoundError, ValidationError
from app.jobs.queues import QUEUES
from app.models.jobs import JOB_STATUSES, JobRecord


def list_jobs(organization_id: str, queue: str | None = None, status: str | None = None,
              ticket_id: str | None = None, limit: int = 100) -> list[dict]:
    q = JobRecord.query_for_org(organization_id)
    if queue:
        if queue not in QUEUES:
            raise ValidationError(f"Unknown queue: {queue}", details={"allowed": sorted(QUEUES)})
        q = q.filter(JobRecord.queue == queue)
    if status:
        if status not in JOB_STATUSES:
            raise ValidationError(f"Unknown job status: {status}", details={"allowed": sorted(JOB_STATUSES)})
        q = q.filter(JobRecord.status == status)
    if ticket_id:
        q = q.filter(JobRecord.ticket_id == ticket_id)
    return [j.to_dict() for j in q.order_by(JobRecord.created_at.desc()).limit(limit).all()]


def get_job(organization_id: str, job_id: str) -> dict:
    job = JobRecord.query_for_org(organization_id).filter_by(id=job_id).first()
    if job is None:
        raise NotFoundError(resource="Job", resource_id=job_id, organization_id=organization_id)
    return job.to_dict()
