"""
Tests for the admin workspace: loading, selection bookkeeping, batch quote,
soft deletion and quote-email dispatch.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from conftest import FakeNotifier, PRICE_75
from gassafe.email.service import EmailNotConfiguredError
from gassafe.services import workspace as workspace_module
from gassafe.services.leads import JoinedBooking
from gassafe.services.workspace import (
    AdminWorkspace,
    EmailDispatchStatus,
    WorkspaceRegistry,
    WorkspaceSnapshot,
    format_booking_details,
)


def _loaded(db, clock=None):
    ws = AdminWorkspace(clock=clock) if clock else AdminWorkspace()
    ws.load_data(db)
    return ws


def test_load_data_orders_newest_first_and_hides_deleted(db, make_lead, make_booking):
    first = make_lead()
    second = make_lead()
    make_lead(deleted_at=datetime(2026, 2, 1))
    make_booking(first)

    snapshot = _loaded(db).snapshot

    assert [lead.id for lead in snapshot.leads] == [second.id, first.id]
    assert len(snapshot.bookings) == 1
    joined = snapshot.bookings[0]
    assert joined.lead_id == first.id
    assert joined.address == first.address
    assert joined.client_email == first.client_email


def test_one_failing_fetch_does_not_block_the_other(db, make_lead, monkeypatch):
    lead = make_lead()

    def boom(session):
        raise SQLAlchemyError("bookings table unavailable")

    monkeypatch.setattr(workspace_module, "list_confirmed_bookings", boom)
    snapshot = _loaded(db).snapshot

    assert [l.id for l in snapshot.leads] == [lead.id]
    assert snapshot.leads_error is None
    assert snapshot.bookings_error == workspace_module.LOAD_FAILED_MESSAGE


def test_stale_snapshot_is_ignored(db, make_lead):
    make_lead()
    ws = _loaded(db)
    ws.load_data(db)
    current = ws.snapshot

    applied = ws.apply_snapshot(WorkspaceSnapshot(generation=1))

    assert applied is False
    assert ws.snapshot is current


def test_toggle_one_and_toggle_all(db, make_lead):
    a, b, c = make_lead(), make_lead(), make_lead()
    ws = _loaded(db)

    assert ws.toggle_one(a.id) is True
    assert ws.selected == {a.id}
    assert ws.toggle_one(a.id) is False
    assert ws.selected == set()

    ws.toggle_all()
    assert ws.all_selected
    assert ws.selected == {a.id, b.id, c.id}

    ws.toggle_one(b.id)
    assert not ws.all_selected
    ws.toggle_all()
    assert ws.selected == {a.id, b.id, c.id}

    ws.toggle_all()
    assert ws.selected == set()


def test_selection_never_exceeds_loaded_leads(db, make_lead):
    lead = make_lead()
    ws = _loaded(db)

    assert ws.toggle_one("not-a-lead") is False
    ws.select([lead.id, "ghost"])
    assert ws.selected == {lead.id}
    assert 0 <= len(ws.selected) <= len(ws.snapshot.leads)


def test_toggle_all_with_no_leads_selects_nothing(db):
    ws = _loaded(db)
    ws.toggle_all()
    assert ws.selected == set()
    assert not ws.all_selected


def test_batch_quote_is_noop_without_price_or_selection(db, make_lead, monkeypatch):
    lead = make_lead()
    ws = _loaded(db)

    def fail(*args, **kwargs):
        raise AssertionError("no backend call expected")

    monkeypatch.setattr(workspace_module, "set_quoted_price", fail)

    assert ws.apply_batch_quote(db, "75").applied is False

    ws.toggle_one(lead.id)
    for price in ("", "   ", "abc", "-5"):
        result = ws.apply_batch_quote(db, price)
        assert result.applied is False
        assert result.message == workspace_module.QUOTE_INVALID_MESSAGE
    assert ws.selected == {lead.id}


def test_batch_quote_updates_exactly_selected(db, make_lead, fresh_lead, clock):
    a, b, c = make_lead(), make_lead(), make_lead()
    ws = _loaded(db, clock=clock)
    ws.toggle_one(a.id)
    ws.toggle_one(c.id)

    result = ws.apply_batch_quote(db, "75")

    assert result.applied
    assert sorted(result.affected_ids) == sorted([a.id, c.id])
    assert fresh_lead(a.id).quoted_price == PRICE_75
    assert fresh_lead(c.id).quoted_price == PRICE_75
    assert fresh_lead(b.id).quoted_price is None
    assert ws.selected == set()
    assert ws.price_input == ""


def test_quote_highlight_clears_after_window(db, make_lead, clock):
    lead = make_lead()
    ws = _loaded(db, clock=clock)
    ws.toggle_one(lead.id)
    ws.apply_batch_quote(db, "75.00")

    assert ws.is_highlighted(lead.id)
    clock.advance(1.4)
    assert ws.is_highlighted(lead.id)
    clock.advance(0.2)
    assert not ws.is_highlighted(lead.id)


def test_quote_is_stored_with_two_decimals(db, make_lead, fresh_lead):
    lead = make_lead()
    ws = _loaded(db)
    ws.toggle_one(lead.id)
    ws.apply_batch_quote(db, "£1,234.5")

    assert fresh_lead(lead.id).quoted_price == Decimal("1234.50")


def test_batch_quote_failure_keeps_selection_and_price(db, make_lead, monkeypatch):
    lead = make_lead()
    ws = _loaded(db)
    ws.toggle_one(lead.id)

    def boom(*args, **kwargs):
        raise SQLAlchemyError("write failed")

    monkeypatch.setattr(workspace_module, "set_quoted_price", boom)
    result = ws.apply_batch_quote(db, "80")

    assert result.applied is False
    assert result.message == workspace_module.QUOTE_FAILED_MESSAGE
    assert ws.selected == {lead.id}
    assert ws.price_input == "80"
    assert not ws.is_highlighted(lead.id)


def test_delete_selected_requires_confirmation(db, make_lead, fresh_lead):
    lead = make_lead()
    ws = _loaded(db)
    ws.toggle_one(lead.id)

    result = ws.delete_selected(db, confirmed=False)

    assert result.applied is False
    assert fresh_lead(lead.id).deleted_at is None


def test_delete_selected_soft_deletes_and_reloads(db, make_lead, fresh_lead):
    keep, drop = make_lead(), make_lead()
    ws = _loaded(db)
    ws.toggle_one(drop.id)

    result = ws.delete_selected(db, confirmed=True)

    assert result.applied
    assert ws.selected == set()
    assert [l.id for l in ws.snapshot.leads] == [keep.id]
    row = fresh_lead(drop.id)
    assert row is not None
    assert row.deleted_at is not None


def test_send_quote_email_requires_quote(db, make_lead):
    lead = make_lead()
    notifier = FakeNotifier()

    dispatch = _loaded(db).send_quote_email(lead, notifier)

    assert dispatch.status is EmailDispatchStatus.MISSING_DETAILS
    assert notifier.sent == []


def test_send_quote_email_success(db, make_lead):
    lead = make_lead(quoted_price=PRICE_75)
    notifier = FakeNotifier()
    ws = _loaded(db)

    dispatch = ws.send_quote_email(lead, notifier)

    assert dispatch.status is EmailDispatchStatus.SENT
    assert notifier.sent == [lead.id]
    assert not ws.is_sending(lead.id)


def test_send_quote_email_falls_back_to_mailto(db, make_lead):
    lead = make_lead(quoted_price=PRICE_75)
    ws = _loaded(db)

    for error in (EmailNotConfiguredError("missing key"), RuntimeError("smtp down")):
        dispatch = ws.send_quote_email(lead, FakeNotifier(error=error))
        assert dispatch.status is EmailDispatchStatus.FALLBACK
        assert dispatch.mailto.startswith(f"mailto:{lead.client_email}")
        assert not ws.is_sending(lead.id)


def test_repeat_dispatch_refused_while_in_flight(db, make_lead):
    lead = make_lead(quoted_price=PRICE_75)
    ws = _loaded(db)
    nested = []

    class ReentrantNotifier(FakeNotifier):
        def send_quote_email(self, lead):
            assert ws.is_sending(lead.id)
            nested.append(ws.send_quote_email(lead, FakeNotifier()))
            super().send_quote_email(lead)

    notifier = ReentrantNotifier()
    dispatch = ws.send_quote_email(lead, notifier)

    assert dispatch.status is EmailDispatchStatus.SENT
    assert nested[0].status is EmailDispatchStatus.IN_FLIGHT
    assert notifier.sent == [lead.id]


def test_format_booking_details_layout():
    booking = JoinedBooking(
        id="b1",
        lead_id="l1",
        contact_name="J Smith",
        contact_phone=None,
        contact_email="j@example.com",
        created_at=datetime(2026, 3, 4, 9, 30),
        address="1 Test St",
        client_email="a@b.com",
        expiry_date=None,
        quoted_price=PRICE_75,
    )

    assert format_booking_details(booking).splitlines() == [
        "Property Address: 1 Test St",
        "Certificate Expiry: Not specified",
        "Quoted Price: £75.00",
        "Client Email: a@b.com",
        "Contact Name: J Smith",
        "Contact Phone: Not provided",
        "Contact Email: j@example.com",
        "Confirmed At: 2026-03-04 09:30",
    ]


def test_registry_keeps_one_workspace_per_session(clock):
    sessions = WorkspaceRegistry(clock=clock, idle_seconds=60)

    first = sessions.get("session-a")

    assert sessions.get("session-a") is first
    assert sessions.get("session-b") is not first
    assert len(sessions) == 2

    sessions.discard("session-a")
    assert len(sessions) == 1


def test_registry_evicts_sessions_idle_past_max_age(clock):
    sessions = WorkspaceRegistry(clock=clock, idle_seconds=60)
    abandoned = sessions.get("abandoned")
    sessions.get("active")

    clock.advance(40)
    sessions.get("active")
    clock.advance(30)
    sessions.get("active")

    assert len(sessions) == 1
    assert sessions.get("abandoned") is not abandoned
    assert len(sessions) == 2
