"""
Ticket lifecycle tests — intake validation, import, listing, status
updates (no transition table), permit prefill requests, dashboard and
organization isolation.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.models import db
from app.models.audit import AuditLog
from app.models.base import _iso
from app.models.fieldwork import Inspection
from app.models.jobs import JobRecord
from app.models.permit import Fee, Permit
from app.models.ticket import TICKET_STATUSES, Ticket
from app.services.ticket_service import (
    generate_ticket_number,
    geocode_address,
    parse_utility_types,
    validate_ticket_payload,
)


# ═══════════════════════════════════════════════════════════════
# Intake helpers
# ═══════════════════════════════════════════════════════════════

def test_parse_utility_types_aliases():
    assert parse_utility_types(["Electricity", "natural gas", "Fiber Optic", "wastewater"]) == [
        "ELECTRIC", "GAS", "FIBER", "SEWER",
    ]
    assert parse_utility_types(["power", "POWER", "steam"]) == ["ELECTRIC"]
    assert parse_utility_types(None) == []


def test_geocode_address_near_austin():
    lat, lng = geocode_address("1 Congress Ave")
    assert abs(lat - 30.2672) <= 0.05
    assert abs(lng - (-97.7431)) <= 0.05


def test_generate_ticket_number_format():
    number = generate_ticket_number()
    prefix, epoch_ms, suffix = number.split("-")
    assert prefix == "TX811"
    assert epoch_ms.isdigit() and len(suffix) == 3


def test_validate_payload_accepts_valid(ticket_payload):
    assert validate_ticket_payload(ticket_payload) == []


def test_validate_payload_reports_every_problem():
    errors = validate_ticket_payload({})
    assert errors == [
        "Excavator company is required",
        "Excavator phone is required",
        "Work address is required",
        "Work start date is required",
        "Work end date is required",
        "Work description is required",
        "At least one utility type is required",
    ]


def test_validate_payload_date_order(ticket_payload):
    ticket_payload["work_start_date"] = "2025-03-15"
    ticket_payload["work_end_date"] = "2025-03-15"
    assert validate_ticket_payload(ticket_payload) == ["Work start date must be before end date"]


def test_validate_payload_bad_date_and_unknown_types(ticket_payload):
    ticket_payload["work_end_date"] = "next tuesday"
    ticket_payload["utility_types"] = ["steam"]
    errors = validate_ticket_payload(ticket_payload)
    assert "Work end date is not a valid date" in errors
    assert any(e.startswith("No recognized utility types") for e in errors)


@pytest.mark.parametrize("field,value,message", [
    ("excavator_contact", "555-0100", "Excavator contact must be an object"),
    ("work_location", "123 Main Street", "Work location must be an object"),
    ("ticket_number", 20001, "Ticket number must be a string"),
    ("excavator_company", ["ACME"], "Excavator company must be a string"),
])
def test_validate_payload_reports_wrong_types(ticket_payload, field, value, message):
    ticket_payload[field] = value
    assert message in validate_ticket_payload(ticket_payload)


def test_validate_payload_nested_wrong_types(ticket_payload):
    ticket_payload["work_location"]["coordinates"] = [30.2, -97.7]
    ticket_payload["excavator_contact"]["phone"] = 5125550200
    errors = validate_ticket_payload(ticket_payload)
    assert "Coordinates must be an object" in errors
    assert "Excavator phone must be a string" in errors


def test_validate_payload_rejects_non_object():
    assert validate_ticket_payload(["not", "a", "dict"]) == ["Payload must be an object"]


# ═══════════════════════════════════════════════════════════════
# Import
# ═══════════════════════════════════════════════════════════════

def test_import_ticket_creates_audit_and_job(client, coordinator, auth_headers, ticket_payload):
    res = client.post("/api/v1/tickets/import",
                      json={"source": "texas811", "payload": ticket_payload},
                      headers=auth_headers(coordinator))
    assert res.status_code == 201
    data = res.get_json()
    assert data["ticket_number"] == "TX-811-2025-20001"

    ticket = db.session.get(Ticket, data["ticket_id"])
    assert ticket.status == "INTAKE"
    assert ticket.organization_id == coordinator.organization_id
    assert ticket.work_address == "123 Main Street, Austin, TX 78701"
    assert ticket.utility_types == ["FIBER", "ELECTRIC"]
    assert (ticket.latitude, ticket.longitude) == (30.2672, -97.7431)
    assert ticket.raw_data["source"] == "texas811"

    audit = AuditLog.query.filter_by(ticket_id=ticket.id).one()
    assert audit.action == "TICKET_CREATED"
    assert audit.entity_type == "TICKET"
    assert audit.actor == coordinator.email
    assert audit.previous_data is None
    assert audit.new_data["ticket_number"] == "TX-811-2025-20001"

    job = db.session.get(JobRecord, data["job_id"])
    assert job.queue == "ticket-processing"
    assert job.job_name == "process-ticket"
    assert job.max_attempts == 3
    # Celery runs eagerly under test
    assert job.status == "completed"
    assert job.result == {"processed": True, "ticket_id": ticket.id}


def test_import_generates_number_and_geocodes(client, coordinator, auth_headers, ticket_payload):
    del ticket_payload["ticket_number"]
    del ticket_payload["work_location"]["coordinates"]
    res = client.post("/api/v1/tickets/import",
                      json={"source": "manual", "payload": ticket_payload},
                      headers=auth_headers(coordinator))
    assert res.status_code == 201
    ticket = db.session.get(Ticket, res.get_json()["ticket_id"])
    assert ticket.ticket_number.startswith("TX811-")
    assert abs(ticket.latitude - 30.2672) <= 0.05


def test_import_validation_error_lists_problems(client, coordinator, auth_headers):
    res = client.post("/api/v1/tickets/import",
                      json={"source": "manual", "payload": {"excavator_company": "ACME"}},
                      headers=auth_headers(coordinator))
    assert res.status_code == 400
    body = res.get_json()
    assert body["error"] == "Invalid ticket data"
    assert "Excavator phone is required" in body["details"]["errors"]
    assert Ticket.query.count() == 0


@pytest.mark.parametrize("field,value,message", [
    ("excavator_contact", "555-0100", "Excavator contact must be an object"),
    ("work_location", "123 Main Street", "Work location must be an object"),
    ("ticket_number", 20001, "Ticket number must be a string"),
])
def test_import_malformed_payload_is_rejected(client, coordinator, auth_headers, ticket_payload,
                                              field, value, message):
    ticket_payload[field] = value
    res = client.post("/api/v1/tickets/import",
                      json={"source": "manual", "payload": ticket_payload},
                      headers=auth_headers(coordinator))
    assert res.status_code == 400
    assert message in res.get_json()["details"]["errors"]
    assert Ticket.query.count() == 0


def test_import_non_object_payload_is_rejected(client, coordinator, auth_headers):
    res = client.post("/api/v1/tickets/import",
                      json={"source": "manual", "payload": "TX-811-2025-20001"},
                      headers=auth_headers(coordinator))
    assert res.status_code == 400
    assert res.get_json()["details"]["errors"] == ["Payload must be an object"]


@pytest.mark.parametrize("source,stored", [("manual", "manual"), ("texas811", "811")])
def test_import_records_ticket_source(client, coordinator, auth_headers, ticket_payload, source, stored):
    res = client.post("/api/v1/tickets/import",
                      json={"source": source, "payload": ticket_payload},
                      headers=auth_headers(coordinator))
    assert res.status_code == 201
    assert db.session.get(Ticket, res.get_json()["ticket_id"]).source == stored


def test_import_duplicate_ticket_number(client, coordinator, auth_headers, ticket_payload):
    body = {"source": "manual", "payload": ticket_payload}
    assert client.post("/api/v1/tickets/import", json=body, headers=auth_headers(coordinator)).status_code == 201
    res = client.post("/api/v1/tickets/import", json=body, headers=auth_headers(coordinator))
    assert res.status_code == 400
    assert Ticket.query.count() == 1


def test_import_requires_source_and_payload(client, coordinator, auth_headers):
    res = client.post("/api/v1/tickets/import", json={"source": "manual"},
                      headers=auth_headers(coordinator))
    assert res.status_code == 400


def test_import_requires_json_content_type(client, coordinator, auth_headers):
    res = client.post("/api/v1/tickets/import", data="source=manual",
                      content_type="application/x-www-form-urlencoded",
                      headers=auth_headers(coordinator))
    assert res.status_code == 415


def test_import_forbidden_for_supervisor(client, supervisor, auth_headers, ticket_payload):
    res = client.post("/api/v1/tickets/import",
                      json={"source": "manual", "payload": ticket_payload},
                      headers=auth_headers(supervisor))
    assert res.status_code == 403


# ═══════════════════════════════════════════════════════════════
# List / detail
# ═══════════════════════════════════════════════════════════════

def test_list_tickets_paginated_newest_first(client, organization, supervisor, auth_headers, make_ticket):
    base = datetime(2025, 2, 1, tzinfo=timezone.utc)
    for i in range(5):
        make_ticket(organization, created_at=base + timedelta(days=i))

    res = client.get("/api/v1/tickets?page=1&limit=2", headers=auth_headers(supervisor))
    assert res.status_code == 200
    data = res.get_json()
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 5, "total_pages": 3}
    numbers = [t["ticket_number"] for t in data["tickets"]]
    assert numbers == ["TX-811-TEST-0005", "TX-811-TEST-0004"]
    assert data["tickets"][0]["counts"] == {"evidence": 0, "fees": 0}


def test_list_tickets_limit_is_capped(client, organization, supervisor, auth_headers, make_ticket):
    make_ticket(organization)
    res = client.get("/api/v1/tickets?limit=1000", headers=auth_headers(supervisor))
    assert res.get_json()["pagination"]["limit"] == 100


def test_list_tickets_status_filter(client, organization, manager, auth_headers, make_ticket):
    make_ticket(organization, status="INTAKE")
    make_ticket(organization, status="FIELD_WORK")
    res = client.get("/api/v1/tickets?status=FIELD_WORK", headers=auth_headers(manager))
    tickets = res.get_json()["tickets"]
    assert [t["status"] for t in tickets] == ["FIELD_WORK"]

    res = client.get("/api/v1/tickets?status=DONE", headers=auth_headers(manager))
    assert res.status_code == 400


def test_list_requires_authentication(client):
    assert client.get("/api/v1/tickets").status_code == 401


def test_get_ticket_with_children(client, organization, supervisor, auth_headers, make_ticket):
    ticket = make_ticket(organization)
    db.session.add(Permit(organization_id=organization.id, ticket_id=ticket.id,
                          municipality="City of Austin", permit_type="ROW", fee=75))
    db.session.commit()

    res = client.get(f"/api/v1/tickets/{ticket.id}", headers=auth_headers(supervisor))
    assert res.status_code == 200
    data = res.get_json()["ticket"]
    assert data["ticket_number"] == ticket.ticket_number
    assert len(data["permits"]) == 1
    for key in ("traffic_plans", "inspections", "evidence", "fees"):
        assert data[key] == []


def test_ticket_timestamps_serialize_as_utc(client, organization, supervisor, auth_headers, make_ticket):
    ticket = make_ticket(organization)
    db.session.expire_all()

    res = client.get(f"/api/v1/tickets/{ticket.id}", headers=auth_headers(supervisor))
    data = res.get_json()["ticket"]
    assert data["work_start_date"] == "2025-03-01T00:00:00+00:00"
    for key in ("work_end_date", "created_at", "updated_at"):
        assert datetime.fromisoformat(data[key]).utcoffset() == timedelta(0)


def test_iso_attaches_utc_to_naive_datetimes():
    assert _iso(datetime(2025, 3, 1, 8, 30)) == "2025-03-01T08:30:00+00:00"
    assert _iso(datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)) == "2025-03-01T08:30:00+00:00"
    assert _iso(None) is None


def test_tickets_isolated_between_organizations(
    client, organization, other_organization, coordinator, auth_headers, make_ticket,
):
    mine = make_ticket(organization)
    theirs = make_ticket(other_organization)

    headers = auth_headers(coordinator)
    listed = client.get("/api/v1/tickets", headers=headers).get_json()["tickets"]
    assert [t["id"] for t in listed] == [mine.id]

    res = client.get(f"/api/v1/tickets/{theirs.id}", headers=headers)
    assert res.status_code == 404
    assert res.get_json()["error"] == "Ticket not found"

    res = client.patch(f"/api/v1/tickets/{theirs.id}/status", json={"status": "CLOSED"}, headers=headers)
    assert res.status_code == 404


# ═══════════════════════════════════════════════════════════════
# Status updates
# ═══════════════════════════════════════════════════════════════

def test_status_update_writes_audit(client, organization, coordinator, auth_headers, make_ticket):
    ticket = make_ticket(organization)
    res = client.patch(f"/api/v1/tickets/{ticket.id}/status", json={"status": "PERMIT_FILED"},
                       headers=auth_headers(coordinator))
    assert res.status_code == 200
    assert res.get_json()["ticket"]["status"] == "PERMIT_FILED"

    log = AuditLog.query.filter_by(ticket_id=ticket.id, action="STATUS_UPDATED").one()
    assert log.previous_data == {"status": "INTAKE"}
    assert log.new_data == {"status": "PERMIT_FILED"}
    assert log.actor_user_id == coordinator.id


@pytest.mark.parametrize("start,target", [
    ("INTAKE", "CLOSED"),
    ("CLOSED", "INTAKE"),
    ("FIELD_WORK", "FIELD_WORK"),
    ("INSPECTION_PENDING", "PERMIT_FILED"),
])
def test_any_status_may_follow_any_other(client, organization, manager, auth_headers, make_ticket, start, target):
    ticket = make_ticket(organization, status=start)
    res = client.patch(f"/api/v1/tickets/{ticket.id}/status", json={"status": target},
                       headers=auth_headers(manager))
    assert res.status_code == 200
    assert res.get_json()["ticket"]["status"] == target


def test_status_update_rejects_unknown_status(client, organization, coordinator, auth_headers, make_ticket):
    ticket = make_ticket(organization)
    res = client.patch(f"/api/v1/tickets/{ticket.id}/status", json={"status": "ARCHIVED"},
                       headers=auth_headers(coordinator))
    assert res.status_code == 400
    assert res.get_json()["details"]["allowed"] == list(TICKET_STATUSES)
    assert AuditLog.query.count() == 0


def test_status_update_forbidden_for_supervisor(client, organization, supervisor, auth_headers, make_ticket):
    ticket = make_ticket(organization)
    res = client.patch(f"/api/v1/tickets/{ticket.id}/status", json={"status": "FIELD_WORK"},
                       headers=auth_headers(supervisor))
    assert res.status_code == 403


def test_status_update_rolls_back_on_database_error(
    client, organization, coordinator, auth_headers, make_ticket, monkeypatch,
):
    ticket = make_ticket(organization)

    def _failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db.session, "commit", _failing_commit)
    res = client.patch(f"/api/v1/tickets/{ticket.id}/status", json={"status": "CLOSED"},
                       headers=auth_headers(coordinator))
    monkeypatch.undo()

    assert res.status_code == 500
    assert res.get_json()["code"] == "ERR_DATABASE"
    db.session.expire_all()
    assert db.session.get(Ticket, ticket.id).status == "INTAKE"
    assert AuditLog.query.filter_by(action="STATUS_UPDATED").count() == 0


# ═══════════════════════════════════════════════════════════════
# Permit prefill request
# ═══════════════════════════════════════════════════════════════

def test_prefill_permit_request_queues_job(client, organization, coordinator, auth_headers, make_ticket):
    ticket = make_ticket(organization)
    res = client.post(f"/api/v1/tickets/{ticket.id}/prefill-permit",
                      json={"municipality": "City of Austin", "permit_type": "Right-of-Way Excavation"},
                      headers=auth_headers(coordinator))
    assert res.status_code == 202
    job = res.get_json()["job"]
    assert job["queue"] == "permit-prefill"
    assert job["max_attempts"] == 2
    assert job["payload"]["municipality"] == "City of Austin"
    assert AuditLog.query.filter_by(action="PERMIT_PREFILL_REQUESTED", ticket_id=ticket.id).count() == 1


def test_prefill_permit_request_requires_fields(client, organization, coordinator, auth_headers, make_ticket):
    ticket = make_ticket(organization)
    res = client.post(f"/api/v1/tickets/{ticket.id}/prefill-permit", json={"municipality": "Austin"},
                      headers=auth_headers(coordinator))
    assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════
# Dashboard
# ═══════════════════════════════════════════════════════════════

def test_dashboard_summary_counts(client, organization, other_organization, supervisor, auth_headers, make_ticket):
    t1 = make_ticket(organization, status="INTAKE")
    make_ticket(organization, status="PERMIT_FILED")
    make_ticket(organization, status="CLOSED")
    make_ticket(other_organization, status="INTAKE")

    future = datetime.now(timezone.utc) + timedelta(days=3)
    past = datetime.now(timezone.utc) - timedelta(days=3)
    db.session.add_all([
        Permit(organization_id=organization.id, ticket_id=t1.id, municipality="Austin",
               permit_type="ROW", status="PENDING_APPROVAL", fee=75),
        Inspection(organization_id=organization.id, ticket_id=t1.id, inspection_type="Final",
                   scheduled_date=future, status="SCHEDULED"),
        Inspection(organization_id=organization.id, ticket_id=t1.id, inspection_type="Pre",
                   scheduled_date=past, status="SCHEDULED"),
        Fee(organization_id=organization.id, ticket_id=t1.id, type="PERMIT_FEE",
            amount=75, status="OUTSTANDING"),
        Fee(organization_id=organization.id, ticket_id=t1.id, type="INSPECTION_FEE",
            amount=40, status="PAID"),
    ])
    db.session.commit()

    res = client.get("/api/v1/tickets/dashboard/summary", headers=auth_headers(supervisor))
    assert res.status_code == 200
    data = res.get_json()
    assert data["stats"]["tickets_pending"] == 2
    assert data["stats"]["permits_awaiting_approval"] == 1
    assert data["stats"]["inspections_upcoming"] == 1
    assert data["stats"]["fees_outstanding"] == 1
    assert len(data["recent_tickets"]) == 3
