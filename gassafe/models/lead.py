import datetime
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Column, Date, DateTime, Index, Numeric, String, Text
from sqlalchemy.orm import relationship

from gassafe.db import Base


def new_token() -> str:
    """Unguessable identifier; doubles as the booking-completion token."""
    return str(uuid.uuid4())


class Lead(Base):
    """Gas safety certificate renewal request captured by the public form."""

    __tablename__ = "leads"

    id: str = Column(String(36), primary_key=True, default=new_token)
    address: str = Column(Text, nullable=False)
    client_email: str = Column(String(255), index=True, nullable=False)
    expiry_date: datetime.date = Column(Date, nullable=False)
    has_tenant: bool = Column(Boolean, nullable=False, default=False)
    tenant_name: Optional[str] = Column(String(255), nullable=True)
    quoted_price: Optional[Decimal] = Column(Numeric(10, 2), nullable=True)
    deleted_at: Optional[datetime.datetime] = Column(DateTime, nullable=True, index=True)
    created_at: datetime.datetime = Column(
        DateTime, default=datetime.datetime.utcnow, nullable=False, index=True
    )

    confirmed_booking = relationship(
        "ConfirmedBooking",
        back_populates="lead",
        uselist=False,
    )

    __table_args__ = (
        Index("ix_leads_deleted_created", "deleted_at", "created_at"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def booking_path(self) -> str:
        return f"/complete-booking/{self.id}"
