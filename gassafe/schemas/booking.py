from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from gassafe.schemas.lead import LeadView


class ContactDetailsRequest(BaseModel):
    """Contact person supplied on the booking-completion page."""

    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None


class ConfirmedBookingView(BaseModel):
    """
    Confirmed booking joined with its parent lead's address, email,
    expiry and quote.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    lead_id: str
    contact_name: str
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    created_at: datetime

    address: str
    client_email: str
    expiry_date: Optional[date] = None
    quoted_price: Optional[Decimal] = None


class CompletionResponse(BaseModel):
    state: str
    lead_id: Optional[str] = None
    address: Optional[str] = None
    quoted_price: Optional[Decimal] = None


class WorkspaceResponse(BaseModel):
    leads: List[LeadView]
    bookings: List[ConfirmedBookingView]
    leads_error: Optional[str] = None
    bookings_error: Optional[str] = None
