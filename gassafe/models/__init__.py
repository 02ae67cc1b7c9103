"""
Models package for the gas safety bookings service.

Imports and exposes ORM models so they are registered with Base.metadata.
"""

from __future__ import annotations

from gassafe.db import Base
from .confirmed_booking import ConfirmedBooking  # noqa: F401
from .lead import Lead, new_token  # noqa: F401

__all__ = [
    "Base",
    "ConfirmedBooking",
    "Lead",
    "new_token",
]
