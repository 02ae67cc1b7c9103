from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, ReplyTo

from gassafe.email.config import EmailSettings, get_email_settings
from gassafe.services.formatting import booking_link, format_date, format_price

logger = logging.getLogger("gassafe.email.service")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

QUOTE_SUBJECT_PREFIX = "Gas Safety Certificate Renewal"


class EmailNotConfiguredError(RuntimeError):
    """SendGrid credentials or the sender address are missing."""


class EmailDeliveryError(RuntimeError):
    """SendGrid rejected the message or could not be reached."""


def _init_jinja() -> Optional[Environment]:
    if not TEMPLATES_DIR.exists():
        logger.error("Email templates directory does not exist: %s", TEMPLATES_DIR)
        return None

    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )


JINJA_ENV: Optional[Environment] = _init_jinja()


def _render_template(template_name: str, context: Mapping[str, Any]) -> str:
    if JINJA_ENV is None:
        raise RuntimeError(
            "Jinja environment is not initialised; templates directory missing"
        )

    try:
        template = JINJA_ENV.get_template(template_name)
    except Exception as exc:
        logger.error(
            "Failed to load email template %s: %s",
            template_name,
            exc,
            exc_info=True,
        )
        raise

    return template.render(**context)


def _quote_context(lead: Any) -> dict:
    return {
        "to_name": str(lead.client_email).split("@")[0],
        "address": lead.address,
        "expiry_date": format_date(lead.expiry_date),
        "quoted_price": format_price(lead.quoted_price),
        "booking_link": booking_link(lead.id),
    }


def _quote_subject(lead: Any) -> str:
    return f"{QUOTE_SUBJECT_PREFIX} - {lead.address}"


def _quote_plain_body(context: Mapping[str, Any]) -> str:
    return (
        "Dear Customer,\n\n"
        "Thank you for your interest in our gas safety certificate renewal service.\n\n"
        f"Property Address: {context['address']}\n"
        f"Certificate Expiry: {context['expiry_date']}\n"
        f"Proposed Quote: {context['quoted_price']}\n\n"
        "To go ahead, please confirm your booking and tell us who will give "
        f"our engineer access:\n{context['booking_link']}\n\n"
        "Best regards,\nGas Safety Team"
    )


def _require_settings() -> EmailSettings:
    email_settings = get_email_settings()
    if not email_settings.is_configured:
        raise EmailNotConfiguredError(
            "Email is not configured. Set SENDGRID_API_KEY and EMAIL_FROM."
        )
    return email_settings


def send_quote_email(lead: Any) -> None:
    """
    Send the quote for one lead to its client email via SendGrid.

    Raises EmailNotConfiguredError when credentials are missing and
    EmailDeliveryError when SendGrid fails; callers fall back to
    generate_mailto_link().
    """
    email_settings = _require_settings()

    context = _quote_context(lead)
    message = Mail(
        from_email=(str(email_settings.from_address), email_settings.from_name),
        to_emails=str(lead.client_email),
        subject=_quote_subject(lead),
        html_content=_render_template("quote_email.html", context),
        plain_text_content=_quote_plain_body(context),
    )
    if email_settings.reply_to:
        message.reply_to = ReplyTo(str(email_settings.reply_to))

    try:
        client = SendGridAPIClient(email_settings.sendgrid_api_key)
        response = client.send(message)
    except Exception as exc:  # network / API errors
        logger.error(
            "Failed to send quote email via SendGrid to %s: %s",
            lead.client_email,
            exc,
            exc_info=True,
        )
        raise EmailDeliveryError(str(exc)) from exc

    if response.status_code >= 400:
        logger.error(
            "SendGrid responded with error for %s: status=%s body=%s",
            lead.client_email,
            response.status_code,
            getattr(response, "body", b"")[:1000],
        )
        raise EmailDeliveryError(f"SendGrid returned status {response.status_code}")

    logger.info(
        "Quote email sent: lead=%s to=%s status=%s",
        lead.id,
        lead.client_email,
        response.status_code,
    )


def generate_mailto_link(lead: Any) -> str:
    """Pre-filled mail-compose link for the local mail client. Always available."""
    context = _quote_context(lead)
    subject = quote(_quote_subject(lead), safe="")
    body = quote(_quote_plain_body(context), safe="")
    return f"mailto:{lead.client_email}?subject={subject}&body={body}"


class QuoteNotifier:
    """Notification collaborator handed to the admin workspace."""

    def send_quote_email(self, lead: Any) -> None:
        send_quote_email(lead)

    def generate_mailto_link(self, lead: Any) -> str:
        return generate_mailto_link(lead)


default_notifier = QuoteNotifier()
