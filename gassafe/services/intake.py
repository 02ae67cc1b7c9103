from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gassafe.models import Lead
from gassafe.services.leads import create_lead

logger = logging.getLogger("gassafe.services.intake")

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

SUBMIT_FAILED_MESSAGE = "Failed to submit booking. Please try again."

ErrorMap = Dict[str, str]

EMPTY_FORM: Dict[str, Any] = {
    "expiry_date": "",
    "address": "",
    "client_email": "",
    "has_tenant": False,
    "tenant_name": "",
}


@dataclass
class IntakeResult:
    """Outcome of one form submission; `values` is what the form re-renders."""

    lead: Optional[Lead] = None
    errors: ErrorMap = field(default_factory=dict)
    message: Optional[str] = None
    values: Dict[str, Any] = field(default_factory=lambda: dict(EMPTY_FORM))

    @property
    def ok(self) -> bool:
        return self.lead is not None


def _text(fields: Mapping[str, Any], name: str) -> str:
    value = fields.get(name)
    if value is None:
        return ""
    return str(value).strip()


def _flag(fields: Mapping[str, Any], name: str) -> bool:
    value = fields.get(name)
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "on", "yes"}
    return bool(value)


def parse_expiry_date(raw: Any) -> Optional[date]:
    """Accept a date or an ISO `YYYY-MM-DD` string; anything else is None."""
    if isinstance(raw, date):
        return raw
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        return None


def validate(fields: Mapping[str, Any]) -> ErrorMap:
    """
    Presence/format checks for the renewal form.

    Returns field name -> message for every failing field; empty means valid.
    """
    errors: ErrorMap = {}

    if parse_expiry_date(fields.get("expiry_date")) is None:
        errors["expiry_date"] = "Expiry date is required"

    if not _text(fields, "address"):
        errors["address"] = "Property address is required"

    email = _text(fields, "client_email")
    if not email:
        errors["client_email"] = "Email is required"
    elif not EMAIL_PATTERN.search(email):
        errors["client_email"] = "Please enter a valid email"

    if _flag(fields, "has_tenant") and not _text(fields, "tenant_name"):
        errors["tenant_name"] = "Tenant name is required"

    return errors


def normalize(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Form values as the template expects them (strings + a bool flag)."""
    return {
        "expiry_date": _text(fields, "expiry_date"),
        "address": _text(fields, "address"),
        "client_email": _text(fields, "client_email"),
        "has_tenant": _flag(fields, "has_tenant"),
        "tenant_name": _text(fields, "tenant_name"),
    }


def submit(db: Session, fields: Mapping[str, Any]) -> IntakeResult:
    """
    Validate and insert exactly one lead.

    Invalid input never reaches the database. A persistence failure keeps the
    submitted values so the form can be re-shown for a retry.
    """
    values = normalize(fields)
    errors = validate(fields)
    if errors:
        logger.info("Intake rejected; invalid fields=%s", sorted(errors))
        return IntakeResult(errors=errors, values=values)

    has_tenant = values["has_tenant"]
    lead_data = {
        "expiry_date": parse_expiry_date(fields.get("expiry_date")),
        "address": values["address"],
        "client_email": values["client_email"],
        "has_tenant": has_tenant,
        "tenant_name": values["tenant_name"] if has_tenant else None,
        "quoted_price": None,
    }

    try:
        lead = create_lead(db, lead_data)
    except SQLAlchemyError:
        logger.exception("Lead insert failed for %s", values["client_email"])
        return IntakeResult(message=SUBMIT_FAILED_MESSAGE, values=values)

    logger.info("Lead submitted successfully id=%s", lead.id)
    return IntakeResult(lead=lead)
