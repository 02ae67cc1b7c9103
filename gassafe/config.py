from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import AnyHttpUrl, EmailStr, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gassafe.config")

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"


class Settings(BaseSettings):
    """
    Central configuration for the gas safety bookings service.

    - Reads from .env (local) and the process environment.
    - Ignores extra env vars so adding new ones doesn't break startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # Core app
    # -------------------------------------------------------------------------
    app_name: str = Field(default="Gas Safety Bookings", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    environment: str = Field(default="local", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # -------------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------------
    database_url: str = Field(
        default="sqlite:///./data/gassafe.db",
        alias="DATABASE_URL",
    )

    # -------------------------------------------------------------------------
    # Public URLs
    # -------------------------------------------------------------------------
    # Used to build booking-completion links in quote emails.
    public_base_url: AnyHttpUrl = Field(
        default="http://localhost:5000",
        alias="PUBLIC_BASE_URL",
    )

    # -------------------------------------------------------------------------
    # Admin gate
    # -------------------------------------------------------------------------
    admin_username: str = Field(default=DEFAULT_ADMIN_USERNAME, alias="ADMIN_USERNAME")
    admin_password: str = Field(default=DEFAULT_ADMIN_PASSWORD, alias="ADMIN_PASSWORD")
    session_secret_key: str = Field(..., alias="SESSION_SECRET_KEY")
    admin_session_max_age_days: int = Field(
        default=30,
        ge=1,
        alias="ADMIN_SESSION_MAX_AGE_DAYS",
    )
    session_cookie_secure: bool = Field(default=False, alias="SESSION_COOKIE_SECURE")

    # -------------------------------------------------------------------------
    # Admin workspace
    # -------------------------------------------------------------------------
    quote_highlight_seconds: float = Field(default=1.5, alias="QUOTE_HIGHLIGHT_SECONDS")
    currency_symbol: str = Field(default="£", alias="CURRENCY_SYMBOL")

    # -------------------------------------------------------------------------
    # Email (SendGrid)
    # -------------------------------------------------------------------------
    email_from_address: Optional[EmailStr] = Field(default=None, alias="EMAIL_FROM")
    email_from_name: str = Field(default="Gas Safety Team", alias="EMAIL_FROM_NAME")
    email_reply_to: Optional[EmailStr] = Field(default=None, alias="EMAIL_REPLY_TO")
    sendgrid_api_key: Optional[str] = Field(default=None, alias="SENDGRID_API_KEY")

    @property
    def admin_session_max_age_seconds(self) -> int:
        return self.admin_session_max_age_days * 24 * 60 * 60

    @property
    def public_base(self) -> str:
        """PUBLIC_BASE_URL as a plain string without the trailing slash."""
        return str(self.public_base_url).rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader so config is evaluated once per process.
    """
    settings = Settings()
    logger.info(
        "Settings loaded (env=%s, debug=%s)",
        settings.environment,
        settings.debug,
    )
    if (
        settings.admin_username == DEFAULT_ADMIN_USERNAME
        and settings.admin_password == DEFAULT_ADMIN_PASSWORD
    ):
        logger.warning(
            "ADMIN_USERNAME/ADMIN_PASSWORD are not set; using the default admin "
            "credential. Set both env vars in production."
        )
    return settings


# Singleton used everywhere else
settings: Settings = get_settings()
