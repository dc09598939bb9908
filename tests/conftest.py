"""
Shared pytest fixtures for the Utility Permit Tracker test suite.

Provides:
    - app: Flask application (session-scoped, Celery in eager mode)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - organization / other_organization: tenant rows
    - coordinator / supervisor / manager: one user per role
    - auth_headers: factory → {"Authorization": "Bearer ..."} for a user
    - make_ticket: factory for tickets persisted directly
    - ticket_payload: a valid 811 import payload
"""

from datetime import datetime, timezone

import pytest

from app import create_app
from app.models import db as _db
from app.models.auth import (
    COMPLIANCE_MANAGER,
    FIELD_SUPERVISOR,
    PERMIT_COORDINATOR,
    Organization,
    User,
)
from app.models.ticket import Ticket
from app.services.jwt_service import generate_access_token
from app.utils.crypto import hash_password

TEST_PASSWORD = "SecurePass123!"

# bcrypt is slow by design; hash once per session
_PASSWORD_HASH = None


def _password_hash():
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(TEST_PASSWORD)
    return _PASSWORD_HASH


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


def create_organization(code="AUC", name="Austin Utility Contractors", **kwargs):
    org = Organization(name=name, code=code, **kwargs)
    _db.session.add(org)
    _db.session.commit()
    return org


def create_user(organization, role, email=None, name=None, **kwargs):
    user = User(
        organization_id=organization.id,
        email=email or f"{role.lower()}@{organization.code.lower()}.example.com",
        password_hash=_password_hash(),
        name=name or role.replace("_", " ").title(),
        role=role,
        **kwargs,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def organization():
    return create_organization()


@pytest.fixture()
def other_organization():
    return create_organization(code="MWS", name="Metro Water Services")


@pytest.fixture()
def coordinator(organization):
    return create_user(organization, PERMIT_COORDINATOR, email="coordinator@austinutils.com")


@pytest.fixture()
def supervisor(organization):
    return create_user(organization, FIELD_SUPERVISOR, email="supervisor@austinutils.com")


@pytest.fixture()
def manager(organization):
    return create_user(organization, COMPLIANCE_MANAGER, email="compliance@austinutils.com")


@pytest.fixture()
def auth_headers():
    """Return a function building Bearer headers for a user."""
    def _headers(user):
        token = generate_access_token(user.id, user.organization_id, user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture()
def make_ticket():
    """Persist a ticket without going through import (no audit, no job)."""
    counter = {"n": 0}

    def _make(organization, **overrides):
        counter["n"] += 1
        fields = dict(
            organization_id=organization.id,
            ticket_number=f"TX-811-TEST-{counter['n']:04d}",
            source="811",
            status="INTAKE",
            excavator_name="Fiber Connect Solutions",
            excavator_phone="(512) 555-0200",
            excavator_email="project@fiberconnect.com",
            work_address="123 Main Street, Austin, TX 78701",
            latitude=30.2672,
            longitude=-97.7431,
            utility_types=["FIBER", "ELECTRIC"],
            work_start_date=datetime(2025, 3, 1, tzinfo=timezone.utc),
            work_end_date=datetime(2025, 3, 15, tzinfo=timezone.utc),
            work_description="Fiber optic installation",
        )
        fields.update(overrides)
        ticket = Ticket(**fields)
        _db.session.add(ticket)
        _db.session.commit()
        return ticket

    return _make


@pytest.fixture()
def ticket_payload():
    return {
        "ticket_number": "TX-811-2025-20001",
        "excavator_company": "Fiber Connect Solutions",
        "excavator_contact": {
            "name": "Pat Lee",
            "phone": "(512) 555-0200",
            "email": "project@fiberconnect.com",
        },
        "work_location": {
            "address": "123 Main Street",
            "city": "Austin",
            "state": "TX",
            "zip": "78701",
            "coordinates": {"latitude": 30.2672, "longitude": -97.7431},
        },
        "work_start_date": "2025-03-01",
        "work_end_date": "2025-03-15",
        "work_description": "Installation of fiber optic cable",
        "utility_types": ["fiber", "Electric"],
        "emergency_contact": "(512) 555-0300",
    }
