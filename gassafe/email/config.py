import logging
from typing import Optional

from pydantic import BaseModel, EmailStr

from gassafe.config import settings

logger = logging.getLogger("gassafe.email.config")


class EmailSettings(BaseModel):
    """
    Email configuration derived from Settings.

    Quote emails go out through SendGrid; without an API key and a from
    address the notifier is considered unconfigured.
    """

    from_address: Optional[EmailStr] = None
    from_name: Optional[str] = None
    reply_to: Optional[EmailStr] = None

    sendgrid_api_key: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.sendgrid_api_key and self.from_address)


_email_settings: Optional[EmailSettings] = None


def init_email_settings() -> EmailSettings:
    """
    Initialize the global EmailSettings instance from gassafe.config.settings.
    Safe to call multiple times; initialization is idempotent.
    """
    global _email_settings

    if _email_settings is not None:
        return _email_settings

    from_address = settings.email_from_address
    from_name: Optional[str] = settings.email_from_name or (
        str(from_address) if from_address else None
    )

    _email_settings = EmailSettings(
        from_address=from_address,
        from_name=from_name,
        reply_to=settings.email_reply_to,
        sendgrid_api_key=settings.sendgrid_api_key,
    )

    if _email_settings.is_configured:
        logger.info("EmailSettings initialized for %s", _email_settings.from_address)
    else:
        logger.warning(
            "SENDGRID_API_KEY or EMAIL_FROM missing; quote emails will fall back to mailto links."
        )

    return _email_settings


def get_email_settings() -> EmailSettings:
    """
    Accessor used by email.service.
    Ensures settings are initialized before returning.
    """
    return init_email_settings()
