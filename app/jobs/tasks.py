"""
Celery task definitions.

One generic task executes any JobRecord; the queue a job is sent to is
chosen at dispatch time from the record.
"""

import logging

from app.jobs import celery_app
from app.jobs.runner import run_job

logger = logging.getLogger(__name__)


@celery_app.task(name="app.jobs.execute_job", bind=True, acks_late=True)
def execute_job(self, job_id: str) -> dict:
    outcome = run_job(job_id)
    if outcome["status"] == "retrying":
        # run_job bounds attempts via JobRecord.max_attempts
        raise self.retry(countdown=outcome["retry_in_ms"] / 1000, max_retries=None)
    return outcome
