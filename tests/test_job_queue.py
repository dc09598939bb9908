"""
Job pipeline tests — queue registry, retry backoff, enqueue/dispatch,
runner bookkeeping (retrying → failed, terminal skip) and the jobs API.
"""

import pytest
from kombu.exceptions import OperationalError

from app.jobs import celery_app, runner
from app.jobs.queues import (
    CLOSEOUT_PROCESSING,
    PERMIT_PREFILL,
    QUEUES,
    TICKET_PROCESSING,
    compute_retry_delay,
    dispatch_pending_jobs,
    enqueue,
    get_queue,
)
from app.jobs.runner import get_registered_handlers, run_job
from app.models import db
from app.models.jobs import JobRecord


@pytest.fixture()
def failing_handler(monkeypatch):
    """Replace a job handler with one that raises; returns the call counter."""
    calls = {"n": 0}

    def _install(job_name, fail_times=None):
        def _handler(payload):
            calls["n"] += 1
            if fail_times is None or calls["n"] <= fail_times:
                raise RuntimeError("municipal portal timeout")
            return {"ok": True}
        monkeypatch.setitem(runner._handler_registry, job_name, _handler)
        return calls

    return _install


def _queued_job(organization, ticket, queue=TICKET_PROCESSING):
    options = get_queue(queue)
    job = JobRecord(
        organization_id=organization.id, ticket_id=ticket.id,
        queue=queue, job_name=options.job_name, payload={"ticket_id": ticket.id},
        max_attempts=options.attempts,
    )
    db.session.add(job)
    db.session.commit()
    return job


# ═══════════════════════════════════════════════════════════════
# Registry / backoff
# ═══════════════════════════════════════════════════════════════

def test_queue_registry():
    assert set(QUEUES) == {
        "ticket-processing", "permit-prefill", "traffic-plan-generation",
        "inspection-scheduling", "closeout-processing",
    }
    assert QUEUES[TICKET_PROCESSING].attempts == 3
    assert QUEUES[PERMIT_PREFILL].initial_delay_ms == 5000
    assert QUEUES[CLOSEOUT_PROCESSING].attempts == 1
    with pytest.raises(ValueError):
        get_queue("nope")


def test_every_job_name_has_a_handler():
    handlers = get_registered_handlers()
    assert {q.job_name for q in QUEUES.values()} <= set(handlers)


def test_exponential_backoff():
    options = QUEUES[TICKET_PROCESSING]
    assert [compute_retry_delay(options, n) for n in (1, 2, 3)] == [2000, 4000, 8000]


def test_fixed_backoff():
    options = QUEUES[PERMIT_PREFILL]
    assert compute_retry_delay(options, 1) == compute_retry_delay(options, 2) == 5000


def test_no_backoff():
    assert compute_retry_delay(QUEUES[CLOSEOUT_PROCESSING], 1) == 0


# ═══════════════════════════════════════════════════════════════
# Runner
# ═══════════════════════════════════════════════════════════════

def test_run_job_success(organization, make_ticket):
    ticket = make_ticket(organization)
    job = _queued_job(organization, ticket)

    outcome = run_job(job.id)
    assert outcome == {"job_id": job.id, "status": "completed", "retry_in_ms": None}
    job = db.session.get(JobRecord, job.id)
    assert job.attempts == 1
    assert job.result == {"processed": True, "ticket_id": ticket.id}
    assert job.started_at is not None and job.completed_at is not None


def test_run_job_retries_then_fails(organization, make_ticket, failing_handler):
    ticket = make_ticket(organization)
    job = _queued_job(organization, ticket)
    failing_handler("process-ticket")

    first = run_job(job.id)
    assert first["status"] == "retrying"
    assert first["retry_in_ms"] == 2000

    second = run_job(job.id)
    assert second["retry_in_ms"] == 4000

    third = run_job(job.id)
    assert third["status"] == "failed"

    job = db.session.get(JobRecord, job.id)
    assert job.attempts == 3
    assert job.status == "failed"
    assert job.error == "RuntimeError: municipal portal timeout"


def test_run_job_recovers_after_retry(organization, make_ticket, failing_handler):
    ticket = make_ticket(organization)
    job = _queued_job(organization, ticket, queue=PERMIT_PREFILL)
    failing_handler("prefill-permit", fail_times=1)

    assert run_job(job.id)["retry_in_ms"] == 5000
    assert run_job(job.id)["status"] == "completed"
    job = db.session.get(JobRecord, job.id)
    assert job.error is None
    assert job.result == {"ok": True}


def test_single_attempt_queue_fails_immediately(organization, make_ticket, failing_handler):
    ticket = make_ticket(organization)
    job = _queued_job(organization, ticket, queue=CLOSEOUT_PROCESSING)
    failing_handler("process-closeout")
    assert run_job(job.id)["status"] == "failed"


def test_terminal_job_not_rerun(organization, make_ticket, failing_handler):
    ticket = make_ticket(organization)
    job = _queued_job(organization, ticket)
    run_job(job.id)
    calls = failing_handler("process-ticket")

    outcome = run_job(job.id)
    assert outcome["status"] == "completed"
    assert calls["n"] == 0
    assert db.session.get(JobRecord, job.id).attempts == 1


def test_run_missing_job():
    assert run_job("does-not-exist")["status"] == "missing"


# ═══════════════════════════════════════════════════════════════
# Enqueue / dispatch
# ═══════════════════════════════════════════════════════════════

def test_enqueue_runs_eagerly(organization, make_ticket):
    ticket = make_ticket(organization)
    job = enqueue(CLOSEOUT_PROCESSING, {"ticket_id": ticket.id},
                  organization_id=organization.id, ticket_id=ticket.id)
    db.session.expire_all()
    job = db.session.get(JobRecord, job.id)
    assert job.job_name == "process-closeout"
    assert job.status == "completed"
    assert job.result == {"closed": True, "ticket_id": ticket.id}


def test_broker_outage_leaves_job_queued(organization, make_ticket, monkeypatch):
    from app.jobs.tasks import execute_job

    def _down(*args, **kwargs):
        raise OperationalError("connection refused")

    monkeypatch.setattr(execute_job, "apply_async", _down)
    ticket = make_ticket(organization)
    job = enqueue(TICKET_PROCESSING, {"ticket_id": ticket.id},
                  organization_id=organization.id, ticket_id=ticket.id)

    job = db.session.get(JobRecord, job.id)
    assert job.status == "queued"
    assert job.error.startswith("Dispatch failed")
    assert job.dispatched_at is None

    monkeypatch.undo()
    assert dispatch_pending_jobs() == 1
    db.session.expire_all()
    job = db.session.get(JobRecord, job.id)
    assert job.status == "completed"
    assert job.dispatched_at is not None
    assert dispatch_pending_jobs() == 0


def test_dispatch_pending_skips_jobs_the_broker_accepted(organization, make_ticket, monkeypatch):
    from app.jobs.tasks import execute_job

    sent = []
    monkeypatch.setattr(execute_job, "apply_async", lambda *args, **kwargs: sent.append(kwargs["args"][0]))
    ticket = make_ticket(organization)
    job = enqueue(PERMIT_PREFILL, {"ticket_id": ticket.id},
                  organization_id=organization.id, ticket_id=ticket.id)
    assert sent == [job.id]

    # Accepted but not yet run (countdown pending or backlog)
    job = db.session.get(JobRecord, job.id)
    assert job.status == "queued"
    assert job.dispatched_at is not None

    assert dispatch_pending_jobs() == 0
    assert sent == [job.id]


def test_celery_configured_for_tests(app):
    assert celery_app.conf.task_always_eager is True
    assert app.extensions["celery"] is celery_app


# ═══════════════════════════════════════════════════════════════
# Jobs API
# ═══════════════════════════════════════════════════════════════

def test_jobs_api_lists_and_filters(client, organization, other_organization, supervisor,
                                    auth_headers, make_ticket):
    ticket = make_ticket(organization)
    mine = _queued_job(organization, ticket)
    _queued_job(organization, ticket, queue=CLOSEOUT_PROCESSING)
    _queued_job(other_organization, make_ticket(other_organization))

    headers = auth_headers(supervisor)
    res = client.get("/api/v1/jobs", headers=headers)
    assert res.status_code == 200
    assert res.get_json()["total"] == 2

    res = client.get(f"/api/v1/jobs?queue={TICKET_PROCESSING}&status=queued&ticket_id={ticket.id}",
                     headers=headers)
    assert [j["id"] for j in res.get_json()["jobs"]] == [mine.id]

    assert client.get("/api/v1/jobs?queue=bogus", headers=headers).status_code == 400
    assert client.get("/api/v1/jobs?status=bogus", headers=headers).status_code == 400


def test_jobs_api_get_scoped(client, organization, other_organization, supervisor, auth_headers, make_ticket):
    mine = _queued_job(organization, make_ticket(organization))
    theirs = _queued_job(other_organization, make_ticket(other_organization))
    headers = auth_headers(supervisor)

    res = client.get(f"/api/v1/jobs/{mine.id}", headers=headers)
    assert res.status_code == 200
    assert res.get_json()["job"]["queue"] == TICKET_PROCESSING
    assert client.get(f"/api/v1/jobs/{theirs.id}", headers=headers).status_code == 404
