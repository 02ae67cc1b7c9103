import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from gassafe.db import Base
from gassafe.models.lead import new_token


class ConfirmedBooking(Base):
    """Acceptance of a quote plus the on-site contact for the visit."""

    __tablename__ = "confirmed_bookings"

    id: str = Column(String(36), primary_key=True, default=new_token)
    # Unique: a lead gets at most one confirmed booking, even under racing submits.
    lead_id: str = Column(
        String(36),
        ForeignKey("leads.id"),
        nullable=False,
        unique=True,
        index=True,
    )
    contact_name: str = Column(String(255), nullable=False)
    contact_phone: Optional[str] = Column(String(64), nullable=True)
    contact_email: Optional[str] = Column(String(255), nullable=True)
    created_at: datetime.datetime = Column(
        DateTime, default=datetime.datetime.utcnow, nullable=False, index=True
    )

    lead = relationship("Lead", back_populates="confirmed_booking")
