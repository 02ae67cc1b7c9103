"""
Tests for quote email composition, SendGrid dispatch and the mailto fallback.
"""

from urllib.parse import parse_qs, urlsplit

import pytest

from conftest import PRICE_75
from gassafe.email import service
from gassafe.email.config import EmailSettings


class FakeResponse:
    def __init__(self, status_code=202):
        self.status_code = status_code
        self.body = b""


class FakeSendGrid:
    """Stands in for SendGridAPIClient; records every message sent."""

    sent = []
    status_code = 202
    error = None

    def __init__(self, api_key):
        self.api_key = api_key

    def send(self, message):
        if FakeSendGrid.error is not None:
            raise FakeSendGrid.error
        FakeSendGrid.sent.append(message.get())
        return FakeResponse(FakeSendGrid.status_code)


@pytest.fixture
def sendgrid(monkeypatch):
    FakeSendGrid.sent = []
    FakeSendGrid.status_code = 202
    FakeSendGrid.error = None
    monkeypatch.setattr(service, "SendGridAPIClient", FakeSendGrid)
    monkeypatch.setattr(
        service,
        "get_email_settings",
        lambda: EmailSettings(
            from_address="quotes@example.com",
            from_name="Gas Safety Team",
            sendgrid_api_key="SG.test",
        ),
    )
    return FakeSendGrid


def test_unconfigured_email_raises(make_lead, monkeypatch):
    monkeypatch.setattr(service, "get_email_settings", lambda: EmailSettings())
    lead = make_lead(quoted_price=PRICE_75)

    with pytest.raises(service.EmailNotConfiguredError):
        service.send_quote_email(lead)


def test_quote_email_sent_through_sendgrid(make_lead, sendgrid):
    lead = make_lead(address="1 Test St", client_email="a@b.com", quoted_price=PRICE_75)

    service.send_quote_email(lead)

    assert len(sendgrid.sent) == 1
    payload = sendgrid.sent[0]
    assert payload["subject"] == "Gas Safety Certificate Renewal - 1 Test St"
    assert payload["personalizations"][0]["to"][0]["email"] == "a@b.com"
    bodies = " ".join(part["value"] for part in payload["content"])
    assert "£75.00" in bodies
    assert f"https://bookings.example.com/complete-booking/{lead.id}" in bodies


def test_sendgrid_error_status_raises_delivery_error(make_lead, sendgrid):
    sendgrid.status_code = 500
    lead = make_lead(quoted_price=PRICE_75)

    with pytest.raises(service.EmailDeliveryError):
        service.send_quote_email(lead)


def test_sendgrid_exception_raises_delivery_error(make_lead, sendgrid):
    sendgrid.error = ConnectionError("unreachable")
    lead = make_lead(quoted_price=PRICE_75)

    with pytest.raises(service.EmailDeliveryError):
        service.send_quote_email(lead)


def test_mailto_link_prefills_subject_and_body(make_lead):
    lead = make_lead(address="1 Test St", client_email="a@b.com", quoted_price=PRICE_75)

    link = service.generate_mailto_link(lead)

    parts = urlsplit(link)
    assert parts.scheme == "mailto"
    assert parts.path == "a@b.com"
    query = parse_qs(parts.query)
    assert query["subject"] == ["Gas Safety Certificate Renewal - 1 Test St"]
    body = query["body"][0]
    assert "Property Address: 1 Test St" in body
    assert "Proposed Quote: £75.00" in body
    assert f"/complete-booking/{lead.id}" in body
