from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gassafe.models import ConfirmedBooking
from gassafe.services.leads import find_booking_for_lead, get_lead

logger = logging.getLogger("gassafe.services.completion")

INVALID_LINK_MESSAGE = "Invalid booking link."
CONTACT_NAME_REQUIRED = "Contact name is required"
CONFIRM_FAILED_MESSAGE = "Failed to confirm booking. Please try again."


class CompletionState(str, Enum):
    LOADING = "loading"
    NOT_FOUND = "not_found"
    ALREADY_CONFIRMED = "already_confirmed"
    AWAITING_CONTACT_DETAILS = "awaiting_contact_details"
    CONFIRMED = "confirmed"


@dataclass
class CompletionView:
    """What the completion page should show for one token."""

    state: CompletionState
    lead_id: Optional[str] = None
    address: Optional[str] = None
    quoted_price: Optional[Decimal] = None
    booking_id: Optional[str] = None
    errors: Dict[str, str] = field(default_factory=dict)
    message: Optional[str] = None
    values: Dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.state in (CompletionState.CONFIRMED, CompletionState.ALREADY_CONFIRMED)


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def resolve(db: Session, token: str) -> CompletionView:
    """
    Resolve a completion token to the view state.

    Unknown and soft-deleted leads are NOT_FOUND; a lead that already has a
    confirmed booking is ALREADY_CONFIRMED.
    """
    try:
        lead = get_lead(db, token)
    except SQLAlchemyError:
        logger.exception("Failed to look up booking token %s", token)
        db.rollback()
        lead = None

    if lead is None:
        logger.warning("Booking link did not resolve: token=%s", token)
        return CompletionView(state=CompletionState.NOT_FOUND, message=INVALID_LINK_MESSAGE)

    existing = find_booking_for_lead(db, lead.id)
    view = CompletionView(
        state=CompletionState.AWAITING_CONTACT_DETAILS,
        lead_id=lead.id,
        address=lead.address,
        quoted_price=lead.quoted_price,
    )
    if existing is not None:
        view.state = CompletionState.ALREADY_CONFIRMED
        view.booking_id = existing.id
    return view


def submit(db: Session, token: str, contact: Mapping[str, Any]) -> CompletionView:
    """
    Record the on-site contact for a lead as its confirmed booking.

    The unique lead_id constraint turns a racing second insert into
    ALREADY_CONFIRMED instead of a duplicate row.
    """
    view = resolve(db, token)
    if view.state is not CompletionState.AWAITING_CONTACT_DETAILS:
        return view

    values = {
        "contact_name": _clean(contact.get("contact_name")),
        "contact_phone": _clean(contact.get("contact_phone")),
        "contact_email": _clean(contact.get("contact_email")),
    }
    view.values = values

    if not values["contact_name"]:
        view.errors = {"contact_name": CONTACT_NAME_REQUIRED}
        return view

    booking = ConfirmedBooking(
        lead_id=view.lead_id,
        contact_name=values["contact_name"],
        contact_phone=values["contact_phone"] or None,
        contact_email=values["contact_email"] or None,
    )

    try:
        db.add(booking)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Booking for lead=%s was confirmed concurrently", view.lead_id)
        return resolve(db, token)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to confirm booking for lead=%s", view.lead_id)
        view.message = CONFIRM_FAILED_MESSAGE
        return view

    logger.info("Booking confirmed: booking=%s lead=%s", booking.id, view.lead_id)
    view.state = CompletionState.CONFIRMED
    view.booking_id = booking.id
    view.values = {}
    return view
