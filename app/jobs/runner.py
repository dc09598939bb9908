"""
Job runner — executes one JobRecord and records the outcome.

Handlers are plain functions registered per job name:

    @register_handler("process-ticket")
    def process_ticket(payload):
        ...
        return {"processed": True}

``run_job`` is broker-agnostic: the Celery task calls it, and tests call
it directly. Delivery is at-least-once, so a job that already reached a
terminal state is skipped rather than re-run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from app.jobs.queues import compute_retry_delay, get_queue
from app.models import db
from app.models.jobs import JobRecord

logger = logging.getLogger(__name__)

_handler_registry: dict[str, Callable[[dict], dict]] = {}


def register_handler(job_name: str):
    """Decorator to register the handler for a job name."""
    def decorator(fn: Callable[[dict], dict]) -> Callable[[dict], dict]:
        _handler_registry[job_name] = fn
        return fn
    return decorator


def get_registered_handlers() -> dict[str, Callable[[dict], dict]]:
    return dict(_handler_registry)


def run_job(job_id: str) -> dict:
    """
    Execute a single job attempt.

    Returns:
        Dict with job_id, status and retry_in_ms. ``status`` is
        "retrying" when the caller should schedule another attempt after
        ``retry_in_ms`` milliseconds.
    """
    job = db.session.get(JobRecord, job_id)
    if job is None:
        logger.error("Job %s not found", job_id, extra={"job_id": job_id})
        return {"job_id": job_id, "status": "missing", "retry_in_ms": None}

    log_extra = {"job_id": job.id, "queue": job.queue, "organization_id": job.organization_id}
    if job.is_terminal:
        logger.info("Job already %s, skipping redelivery", job.status, extra=log_extra)
        return {"job_id": job.id, "status": job.status, "retry_in_ms": None}

    now = datetime.now(timezone.utc)
    job.status = "running"
    job.attempts += 1
    job.started_at = job.started_at or now
    job.next_retry_delay_ms = None
    db.session.commit()
    attempt = job.attempts
    log_extra["attempt"] = attempt
    logger.info("Running %s (attempt %d/%d)", job.job_name, attempt, job.max_attempts, extra=log_extra)

    handler = _handler_registry.get(job.job_name)
    try:
        if handler is None:
            raise LookupError(f"No handler registered for job {job.job_name}")
        result = handler(dict(job.payload or {}))
    except Exception as exc:
        db.session.rollback()
        return _record_failure(job_id, exc, log_extra)

    job = db.session.get(JobRecord, job_id)
    job.status = "completed"
    job.result = result if isinstance(result, dict) else {"output": result}
    job.error = None
    job.completed_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.info("Completed %s", job.job_name, extra=log_extra)
    return {"job_id": job.id, "status": job.status, "retry_in_ms": None}


def _record_failure(job_id: str, exc: Exception, log_extra: dict) -> dict:
    job = db.session.get(JobRecord, job_id)
    job.error = f"{type(exc).__name__}: {exc}"

    if job.attempts < job.max_attempts:
        delay = compute_retry_delay(get_queue(job.queue), job.attempts)
        job.status = "retrying"
        job.next_retry_delay_ms = delay
        db.session.commit()
        logger.warning("Job %s failed, retrying in %dms: %s", job.job_name, delay, exc, extra=log_extra)
        return {"job_id": job.id, "status": "retrying", "retry_in_ms": delay}

    job.status = "failed"
    job.completed_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.error("Job %s failed permanently after %d attempts: %s",
                 job.job_name, job.attempts, exc, extra=log_extra, exc_info=exc)
    return {"job_id": job.id, "status": "failed", "retry_in_ms": None}
