from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from gassafe.config import settings

TWO_PLACES = Decimal("0.01")


def parse_price(raw: Any) -> Optional[Decimal]:
    """
    Parse an admin-entered price into a non-negative 2dp Decimal.

    Returns None for blank, non-numeric or negative input.
    """
    if raw is None:
        return None
    text = str(raw).strip().lstrip(settings.currency_symbol).replace(",", "")
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    return value.quantize(TWO_PLACES)


def format_price(price: Optional[Any], missing: str = "Not quoted yet") -> str:
    if price is None or price == "":
        return missing
    return f"{settings.currency_symbol}{Decimal(str(price)).quantize(TWO_PLACES)}"


def format_date(value: Optional[date], missing: str = "Not specified") -> str:
    if value is None:
        return missing
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    return value.isoformat()


def booking_link(lead_id: str) -> str:
    return f"{settings.public_base}/complete-booking/{lead_id}"
