"""
Queue registry and enqueue helpers.

Five named queues carry deferred work. Each has one job name and its own
retry policy:

    queue                      job                     attempts  backoff
    ticket-processing          process-ticket          3         exponential, 2000 ms base
    permit-prefill             prefill-permit          2         fixed 5000 ms (first run also delayed 5000 ms)
    traffic-plan-generation    generate-traffic-plan   1         none
    inspection-scheduling      schedule-inspection     1         none
    closeout-processing        process-closeout        1         none

``enqueue`` commits a JobRecord and only then dispatches its id to Celery,
so a worker can never pick up a job whose row is not yet visible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from kombu.exceptions import OperationalError as BrokerError

from app.models import db
from app.models.jobs import JobRecord
from app.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)


TICKET_PROCESSING = "ticket-processing"
PERMIT_PREFILL = "permit-prefill"
TRAFFIC_PLAN_GENERATION = "traffic-plan-generation"
INSPECTION_SCHEDULING = "inspection-scheduling"
CLOSEOUT_PROCESSING = "closeout-processing"


@dataclass(frozen=True)
class QueueOptions:
    name: str
    job_name: str
    attempts: int = 1
    backoff: str | None = None          # "exponential" | "fixed" | None
    backoff_delay_ms: int = 0
    initial_delay_ms: int = 0


QUEUES: dict[str, QueueOptions] = {
    q.name: q
    for q in (
        QueueOptions(TICKET_PROCESSING, "process-ticket", attempts=3,
                     backoff="exponential", backoff_delay_ms=2000),
        QueueOptions(PERMIT_PREFILL, "prefill-permit", attempts=2,
                     backoff="fixed", backoff_delay_ms=5000, initial_delay_ms=5000),
        QueueOptions(TRAFFIC_PLAN_GENERATION, "generate-traffic-plan"),
        QueueOptions(INSPECTION_SCHEDULING, "schedule-inspection"),
        QueueOptions(CLOSEOUT_PROCESSING, "process-closeout"),
    )
}


def get_queue(name: str) -> QueueOptions:
    try:
        return QUEUES[name]
    except KeyError:
        raise ValueError(f"Unknown queue: {name}") from None


def compute_retry_delay(options: QueueOptions, attempt: int) -> int:
    """Delay in ms before retrying after failed attempt number ``attempt`` (1-based)."""
    if options.backoff == "exponential":
        return options.backoff_delay_ms * 2 ** (max(attempt, 1) - 1)
    if options.backoff == "fixed":
        return options.backoff_delay_ms
    return 0


# ═══════════════════════════════════════════════════════════════
# Enqueue
# ═══════════════════════════════════════════════════════════════
def enqueue(
    queue: str,
    payload: dict,
    *,
    organization_id: str,
    ticket_id: str | None = None,
) -> JobRecord:
    """Persist a job envelope, commit, then hand it to the broker.

    Commits the caller's pending changes along with the job row.
    """
    options = get_queue(queue)
    job = JobRecord(
        queue=options.name,
        job_name=options.job_name,
        organization_id=organization_id,
        ticket_id=ticket_id,
        payload=payload,
        status="queued",
        max_attempts=options.attempts,
    )
    db.session.add(job)
    commit_or_raise("JobRecord")
    dispatch(job)
    return job


def dispatch(job: JobRecord) -> None:
    """Send a committed job to Celery on its queue.

    A broker outage leaves the row queued with the error recorded and
    ``dispatched_at`` unset; ``flask dispatch-jobs`` re-sends such rows.
    """
    from app.jobs.tasks import execute_job

    options = get_queue(job.queue)
    countdown = options.initial_delay_ms / 1000 if options.initial_delay_ms else None
    log_extra = {"job_id": job.id, "queue": job.queue, "organization_id": job.organization_id}
    try:
        execute_job.apply_async(args=[job.id], queue=job.queue, countdown=countdown)
    except BrokerError as exc:
        logger.error("Broker unavailable, job %s left queued: %s", job.id, exc, extra=log_extra)
        job.error = f"Dispatch failed: {exc}"
        db.session.commit()
        return
    job.dispatched_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.info("Enqueued %s on %s", job.job_name, job.queue, extra=log_extra)


def dispatch_pending_jobs(limit: int = 500) -> int:
    """Re-send queued jobs the broker never accepted, oldest first.

    Returns how many were dispatched. Jobs already handed to the broker
    (``dispatched_at`` set) are left alone even while still queued.
    """
    pending = (
        JobRecord.query.filter(
            JobRecord.status == "queued",
            JobRecord.dispatched_at.is_(None),
        )
        .order_by(JobRecord.created_at)
        .limit(limit)
        .all()
    )
    for job in pending:
        job.error = None
        db.session.commit()
        dispatch(job)
    return len(pending)


# ── Named helpers ────────────────────────────────────────────────────────────

def add_ticket_processing_job(ticket, actor_id=None) -> JobRecord:
    return enqueue(
        TICKET_PROCESSING,
        {"ticket_id": ticket.id, "ticket_number": ticket.ticket_number, "requested_by": actor_id},
        organization_id=ticket.organization_id,
        ticket_id=ticket.id,
    )


def add_permit_prefill_job(ticket, municipality, permit_type, actor_id=None) -> JobRecord:
    return enqueue(
        PERMIT_PREFILL,
        {"ticket_id": ticket.id, "municipality": municipality,
         "permit_type": permit_type, "requested_by": actor_id},
        organization_id=ticket.organization_id,
        ticket_id=ticket.id,
    )


def add_traffic_plan_job(ticket, template_id, actor_id=None) -> JobRecord:
    return enqueue(
        TRAFFIC_PLAN_GENERATION,
        {"ticket_id": ticket.id, "template_id": template_id, "requested_by": actor_id},
        organization_id=ticket.organization_id,
        ticket_id=ticket.id,
    )


def add_inspection_job(ticket, inspection_type, preferred_date, permit_id=None, actor_id=None) -> JobRecord:
    return enqueue(
        INSPECTION_SCHEDULING,
        {"ticket_id": ticket.id, "permit_id": permit_id, "inspection_type": inspection_type,
         "preferred_date": preferred_date, "requested_by": actor_id},
        organization_id=ticket.organization_id,
        ticket_id=ticket.id,
    )


def add_closeout_job(ticket, actor_id=None) -> JobRecord:
    return enqueue(
        CLOSEOUT_PROCESSING,
        {"ticket_id": ticket.id, "requested_by": actor_id},
        organization_id=ticket.organization_id,
        ticket_id=ticket.id,
    )
