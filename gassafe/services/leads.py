from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from gassafe.models import ConfirmedBooking, Lead

logger = logging.getLogger("gassafe.services.leads")


@dataclass
class JoinedBooking:
    """A confirmed booking with the parent lead's columns flattened in."""

    id: str
    lead_id: str
    contact_name: str
    contact_phone: Optional[str]
    contact_email: Optional[str]
    created_at: datetime
    address: str
    client_email: str
    expiry_date: Optional[date]
    quoted_price: Optional[Decimal]


def _joined_booking_stmt():
    return select(
        ConfirmedBooking,
        Lead.address,
        Lead.client_email,
        Lead.expiry_date,
        Lead.quoted_price,
    ).join(Lead, ConfirmedBooking.lead_id == Lead.id)


def _to_joined(row: Any) -> JoinedBooking:
    booking, address, client_email, expiry_date, quoted_price = row
    return JoinedBooking(
        id=booking.id,
        lead_id=booking.lead_id,
        contact_name=booking.contact_name,
        contact_phone=booking.contact_phone,
        contact_email=booking.contact_email,
        created_at=booking.created_at,
        address=address,
        client_email=client_email,
        expiry_date=expiry_date,
        quoted_price=quoted_price,
    )


def create_lead(session: Session, lead_data: Dict[str, Any]) -> Lead:
    """
    Insert one lead and commit. Rolls back and re-raises on failure.
    """
    try:
        lead = Lead(**lead_data)
        session.add(lead)
        session.commit()
        logger.info("Created lead id=%s email=%s", lead.id, lead.client_email)
        return lead
    except Exception:
        session.rollback()
        logger.exception("Failed to create lead from data: %r", lead_data)
        raise


def list_active_leads(session: Session) -> List[Lead]:
    """All leads that have not been soft-deleted, newest first."""
    stmt = (
        select(Lead)
        .where(Lead.deleted_at.is_(None))
        .order_by(Lead.created_at.desc())
    )
    leads: List[Lead] = list(session.execute(stmt).scalars().all())
    logger.debug("Fetched %d active leads", len(leads))
    return leads


def list_confirmed_bookings(session: Session) -> List[JoinedBooking]:
    """Confirmed bookings joined with their lead, newest first."""
    stmt = _joined_booking_stmt().order_by(ConfirmedBooking.created_at.desc())
    bookings = [_to_joined(row) for row in session.execute(stmt).all()]
    logger.debug("Fetched %d confirmed bookings", len(bookings))
    return bookings


def get_joined_booking(session: Session, booking_id: str) -> Optional[JoinedBooking]:
    stmt = _joined_booking_stmt().where(ConfirmedBooking.id == booking_id)
    row = session.execute(stmt).first()
    return _to_joined(row) if row is not None else None


def get_lead(session: Session, lead_id: str) -> Optional[Lead]:
    """Active lead by id; soft-deleted leads read as missing."""
    lead: Optional[Lead] = session.get(Lead, lead_id)
    if lead is not None and lead.is_deleted:
        return None
    return lead


def find_booking_for_lead(session: Session, lead_id: str) -> Optional[ConfirmedBooking]:
    stmt = select(ConfirmedBooking).where(ConfirmedBooking.lead_id == lead_id)
    return session.execute(stmt).scalars().first()


def set_quoted_price(session: Session, lead_ids: Iterable[str], price: Decimal) -> int:
    """
    Single bulk UPDATE of quoted_price for exactly the given lead ids.

    Returns the number of rows matched. Rolls back and re-raises on failure.
    """
    ids = list(lead_ids)
    try:
        result = session.execute(
            update(Lead)
            .where(Lead.id.in_(ids))
            .values(quoted_price=price)
        )
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Failed to set quoted_price=%s for %d leads", price, len(ids))
        raise

    logger.info("Quoted %s on %d lead(s)", price, result.rowcount)
    return result.rowcount


def soft_delete_leads(session: Session, lead_ids: Iterable[str]) -> int:
    """
    Stamp deleted_at on the given leads. Rows are never removed.
    """
    ids = list(lead_ids)
    now = datetime.utcnow()
    try:
        result = session.execute(
            update(Lead)
            .where(Lead.id.in_(ids), Lead.deleted_at.is_(None))
            .values(deleted_at=now)
        )
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Failed to soft-delete %d leads", len(ids))
        raise

    logger.info("Soft-deleted %d lead(s)", result.rowcount)
    return result.rowcount
