"""
Pytest fixtures for E-Trans backend tests.

Provides test database setup, tenant fixtures, users per role, a recording
mailer and helpers to authenticate test client requests.
"""

import pytest

from etrans import create_app
from etrans.extensions import db
from etrans.models import Client, Company, Role, Shipment, ShipmentStatus, User
from etrans.services import session_service
from etrans.services.auth_service import hash_password
from etrans.services.session_service import Identity

PASSWORD = "Password123!"


class RecordingMailer:
    """Stands in for the email provider; keeps every message in memory."""

    available = True

    def __init__(self):
        self.sent = []

    def send_verification_code(self, to, code, company_label):
        self.sent.append({"kind": "verification", "to": to, "code": code})
        return True

    def send_welcome(self, to, first_name, company_label):
        self.sent.append({"kind": "welcome", "to": to})
        return True

    def last_code(self, to):
        for message in reversed(self.sent):
            if message["kind"] == "verification" and message["to"] == to:
                return message["code"]
        return None


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'RATELIMIT_ENABLED': False,
        'RESEND_API_KEY': '',
        'GEMINI_API_KEY': '',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def mailer(app):
    previous = app.extensions["mailer"]
    recording = RecordingMailer()
    app.extensions["mailer"] = recording
    yield recording
    app.extensions["mailer"] = previous


@pytest.fixture(scope='function')
def company_a(db_session):
    """Create Company A (first tenant)."""
    company = Company(name="Alpha Transit", slug="alpha-transit")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    """Create Company B (second tenant)."""
    company = Company(name="Beta Logistics", slug="beta-logistics")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def make_user(db_session, password_hash):
    """Factory for verified, active users."""
    def _make(company, role=Role.DIRECTOR, email=None, **overrides):
        user = User(
            company_id=company.id,
            email=email or f"{role.value.lower()}@{company.slug}.test",
            name=f"{role.value.title()} {company.name}",
            password_hash=password_hash,
            role=role,
            email_verified=True,
            is_active=True,
        )
        for key, value in overrides.items():
            setattr(user, key, value)
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def director_a(make_user, company_a):
    return make_user(company_a, Role.DIRECTOR)


@pytest.fixture(scope='function')
def accountant_a(make_user, company_a):
    return make_user(company_a, Role.ACCOUNTANT)


@pytest.fixture(scope='function')
def agent_a(make_user, company_a):
    return make_user(company_a, Role.AGENT)


@pytest.fixture(scope='function')
def client_user_a(make_user, company_a):
    return make_user(company_a, Role.CLIENT)


@pytest.fixture(scope='function')
def director_b(make_user, company_b):
    return make_user(company_b, Role.DIRECTOR)


@pytest.fixture(scope='function')
def identity_a(director_a):
    return Identity.from_user(director_a)


@pytest.fixture(scope='function')
def identity_b(director_b):
    return Identity.from_user(director_b)


@pytest.fixture(scope='function')
def customer_a(db_session, company_a):
    record = Client(company_id=company_a.id, name="Guinea Import SARL", nif="GN-001", city="Conakry")
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(scope='function')
def make_shipment(db_session):
    """Insert a shipment directly, bypassing the service layer."""
    counter = {"n": 0}

    def _make(company, **fields):
        counter["n"] += 1
        shipment = Shipment(
            company_id=company.id,
            tracking_number=fields.pop("tracking_number", f"TR-TEST-{counter['n']:04d}"),
            client_name=fields.pop("client_name", "Client"),
            description=fields.pop("description", "General cargo"),
            status=fields.pop("status", ShipmentStatus.PENDING),
            **fields,
        )
        db_session.add(shipment)
        db_session.commit()
        return shipment
    return _make


@pytest.fixture(scope='function')
def shipment_a(make_shipment, company_a):
    return make_shipment(company_a, client_name="Guinea Import SARL", bl_number="MEDU0001")


@pytest.fixture(scope='function')
def shipment_b(make_shipment, company_b):
    return make_shipment(company_b, client_name="Beta Client", bl_number="MEDU9999")


@pytest.fixture(scope='function')
def auth_headers(app):
    """Bearer header for a user, minted directly without a login round trip."""
    def _headers(user):
        token = session_service.create_access_token(user)
        return {"Authorization": f"Bearer {token}"}
    return _headers
