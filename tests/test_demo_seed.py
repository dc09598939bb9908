"""Demo seed — dataset shape, idempotency and the ``flask seed-demo`` command."""

from app.models import db
from app.models.audit import AuditLog
from app.models.auth import Organization, User
from app.models.permit import Fee, Permit
from app.models.ticket import Ticket
from app.services.demo_seed import DEMO_PASSWORD, seed_demo_data


def test_seed_creates_demo_dataset():
    created = seed_demo_data()
    db.session.commit()

    assert len(created["user_ids"]) == 3
    assert len(created["ticket_ids"]) == 2
    org = db.session.get(Organization, created["organization_id"])
    assert org.code == "AUC"
    assert User.query.filter_by(organization_id=org.id).count() == 3

    fiber = Ticket.query.filter_by(ticket_number="TX-811-2025-12345").one()
    assert fiber.status == "PERMIT_FILED"
    assert Ticket.query.filter_by(ticket_number="TX-811-2025-12346").one().status == "INTAKE"

    permit = Permit.query.filter_by(ticket_id=fiber.id).one()
    assert permit.permit_number == "AUSTIN-2025-001"
    assert permit.status == "APPROVED"
    assert Fee.query.filter_by(ticket_id=fiber.id).one().status == "PAID"

    actions = [a.action for a in AuditLog.query.order_by(AuditLog.timestamp).all()]
    assert actions == ["TICKET_CREATED", "PERMIT_CREATED", "STATUS_UPDATED"]


def test_seed_is_idempotent():
    assert seed_demo_data() is not None
    db.session.commit()
    assert seed_demo_data() is None
    assert Organization.query.count() == 1


def test_seed_cli_command_and_login(app, client):
    result = app.test_cli_runner().invoke(args=["seed-demo"])
    assert result.exit_code == 0
    assert Ticket.query.count() == 2

    res = client.post("/api/v1/auth/login", json={
        "email": "compliance@austinutils.com", "password": DEMO_PASSWORD,
    })
    assert res.status_code == 200
    assert res.get_json()["user"]["role"] == "COMPLIANCE_MANAGER"
