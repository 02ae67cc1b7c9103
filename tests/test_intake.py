"""
Tests for the renewal intake form: field validation and the single insert.
"""

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from gassafe.models import Lead
from gassafe.services import intake

VALID = {
    "expiry_date": "2030-01-01",
    "address": "1 Test St",
    "client_email": "a@b.com",
}


def test_validate_accepts_complete_form():
    assert intake.validate(VALID) == {}


@pytest.mark.parametrize(
    "overrides, field, message",
    [
        ({"expiry_date": ""}, "expiry_date", "Expiry date is required"),
        ({"expiry_date": "not-a-date"}, "expiry_date", "Expiry date is required"),
        ({"address": "   "}, "address", "Property address is required"),
        ({"client_email": ""}, "client_email", "Email is required"),
        ({"client_email": "nobody"}, "client_email", "Please enter a valid email"),
        ({"client_email": "a@b"}, "client_email", "Please enter a valid email"),
    ],
)
def test_validate_reports_failing_field(overrides, field, message):
    errors = intake.validate({**VALID, **overrides})
    assert errors == {field: message}


def test_validate_reports_every_failing_field():
    errors = intake.validate({})
    assert set(errors) == {"expiry_date", "address", "client_email"}


def test_tenant_name_required_only_when_flag_set():
    assert intake.validate({**VALID, "has_tenant": False}) == {}
    assert intake.validate({**VALID, "has_tenant": "on"}) == {
        "tenant_name": "Tenant name is required"
    }
    assert intake.validate({**VALID, "has_tenant": True, "tenant_name": "Pat"}) == {}


def test_submit_creates_exactly_one_lead_with_null_quote(db):
    result = intake.submit(db, VALID)

    assert result.ok
    leads = db.execute(select(Lead)).scalars().all()
    assert len(leads) == 1
    lead = leads[0]
    assert lead.address == "1 Test St"
    assert lead.client_email == "a@b.com"
    assert lead.expiry_date == date(2030, 1, 1)
    assert lead.quoted_price is None
    assert lead.deleted_at is None
    assert len(lead.id) == 36


def test_submit_drops_tenant_name_without_flag(db):
    result = intake.submit(db, {**VALID, "tenant_name": "Ignored"})
    assert result.lead.tenant_name is None
    assert result.lead.has_tenant is False


def test_invalid_submit_never_touches_database(db, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("create_lead must not be called")

    monkeypatch.setattr(intake, "create_lead", fail)

    result = intake.submit(db, {**VALID, "client_email": "broken"})

    assert not result.ok
    assert result.errors == {"client_email": "Please enter a valid email"}
    assert result.values["client_email"] == "broken"


def test_persistence_failure_keeps_values_and_reports_retry(db, monkeypatch):
    def boom(*args, **kwargs):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(intake, "create_lead", boom)

    result = intake.submit(db, VALID)

    assert not result.ok
    assert result.errors == {}
    assert result.message == intake.SUBMIT_FAILED_MESSAGE
    assert result.values["address"] == "1 Test St"


def test_form_post_shows_confirmation(client, db):
    resp = client.post("/", data=VALID)

    assert resp.status_code == 200
    assert "Request received" in resp.text
    assert db.execute(select(Lead)).scalars().one().address == "1 Test St"


def test_form_post_shows_inline_errors(client, db):
    resp = client.post("/", data={**VALID, "address": ""})

    assert resp.status_code == 422
    assert "Property address is required" in resp.text
    assert "a@b.com" in resp.text
    assert db.execute(select(Lead)).scalars().all() == []


def test_json_intake(client):
    resp = client.post("/api/leads", json=VALID)
    assert resp.status_code == 201
    assert len(resp.json()["id"]) == 36

    resp = client.post("/api/leads", json={"address": "x"})
    assert resp.status_code == 422
    assert resp.json()["detail"]["client_email"] == "Email is required"
