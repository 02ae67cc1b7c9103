"""
Shared fixtures: in-memory SQLite, a fresh schema per test, an app client
and a notifier double.
"""

import os

# Settings are read at import time; configure before importing gassafe.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_SECRET_KEY"] = "test-session-secret"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "s3cret-pass"
os.environ["PUBLIC_BASE_URL"] = "https://bookings.example.com"
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.pop("EMAIL_FROM", None)

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from gassafe.db import Base, SessionLocal, engine
from gassafe.email.service import EmailNotConfiguredError
from gassafe.main import app
from gassafe.models import ConfirmedBooking, Lead
from gassafe.routers.admin import get_notifier
from gassafe.services.workspace import registry

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "s3cret-pass"


class FakeNotifier:
    """Records quote emails; `error` makes send_quote_email raise it."""

    def __init__(self, error=None):
        self.error = error
        self.sent = []

    def send_quote_email(self, lead):
        if self.error is not None:
            raise self.error
        self.sent.append(lead.id)

    def generate_mailto_link(self, lead):
        return f"mailto:{lead.client_email}?subject=Quote"


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    registry.clear()
    yield
    registry.clear()
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_lead(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "address": f"{counter['n']} Test St",
            "client_email": f"owner{counter['n']}@example.com",
            "expiry_date": date(2030, 1, 1),
            "created_at": datetime(2026, 1, 1) + timedelta(minutes=counter["n"]),
        }
        data.update(overrides)
        lead = Lead(**data)
        db.add(lead)
        db.commit()
        return lead

    return _make


@pytest.fixture
def make_booking(db):
    def _make(lead, **overrides):
        data = {"lead_id": lead.id, "contact_name": "J Smith"}
        data.update(overrides)
        booking = ConfirmedBooking(**data)
        db.add(booking)
        db.commit()
        return booking

    return _make


@pytest.fixture
def fresh_lead():
    """Re-read a lead through a new session so bulk updates are visible."""

    def _get(lead_id):
        session = SessionLocal()
        try:
            return session.get(Lead, lead_id)
        finally:
            session.close()

    return _get


@pytest.fixture
def notifier():
    fake = FakeNotifier()
    app.dependency_overrides[get_notifier] = lambda: fake
    return fake


@pytest.fixture
def unconfigured_notifier():
    fake = FakeNotifier(error=EmailNotConfiguredError("not configured"))
    app.dependency_overrides[get_notifier] = lambda: fake
    return fake


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_client(client):
    resp = client.post(
        "/admin/login",
        data={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    return client


PRICE_75 = Decimal("75.00")
