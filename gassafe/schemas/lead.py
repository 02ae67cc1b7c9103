from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class LeadIntakeRequest(BaseModel):
    """
    Incoming payload from the public renewal form (JSON variant).

    Fields stay loose strings on purpose: presence/format checks are done by
    services.intake.validate so the API and the HTML form report the same
    per-field messages.
    """

    expiry_date: Optional[str] = None
    address: Optional[str] = None
    client_email: Optional[str] = None
    has_tenant: bool = False
    tenant_name: Optional[str] = None


class LeadView(BaseModel):
    """Admin/API view of a lead record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    address: str
    client_email: str
    expiry_date: date
    has_tenant: bool = False
    tenant_name: Optional[str] = None
    quoted_price: Optional[Decimal] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime


class LeadCreatedResponse(BaseModel):
    id: str
    message: str = "Thanks! We'll be in touch with a quote shortly."


class BatchQuoteRequest(BaseModel):
    """Admin payload to quote several leads at one price."""

    lead_ids: List[str] = Field(default_factory=list)
    # JSON clients send either 75.0 or "75.00"; both end up in parse_price.
    price: Optional[Union[Decimal, str]] = None


class BatchDeleteRequest(BaseModel):
    """Admin payload to soft-delete several leads; `confirm` must be true."""

    lead_ids: List[str] = Field(default_factory=list)
    confirm: bool = False


class BatchResponse(BaseModel):
    applied: bool
    affected_ids: List[str] = Field(default_factory=list)
    message: Optional[str] = None
