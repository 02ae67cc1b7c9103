# gassafe/auth.py

"""
Admin authentication for the gas safety bookings service.

A single shared admin credential (ADMIN_USERNAME / ADMIN_PASSWORD) guards
the admin workspace:

- `login()` checks the credential and returns an AdminSession.
- `start_session()` signs it into the `admin_auth` cookie with
  SESSION_SECRET_KEY; the cookie lives for ADMIN_SESSION_MAX_AGE_DAYS.
- Every admin request re-verifies the signature and age of the cookie, so a
  token cannot be forged without the server secret.
- `logout()` unconditionally clears the cookie.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from fastapi import HTTPException, Request, Response, status
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from gassafe.config import settings

logger = logging.getLogger("gassafe.auth")

SESSION_COOKIE_NAME = "admin_auth"
SESSION_SALT = "gassafe.admin-session"
LOGIN_PATH = "/admin/login"


@dataclass(frozen=True)
class AdminSession:
    """Authenticated admin; passed explicitly to routes that need it."""

    username: str
    session_id: str
    issued_at: datetime


@lru_cache
def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.session_secret_key, salt=SESSION_SALT)


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def check_credentials(username: str, password: str) -> bool:
    """Constant-time comparison against the configured admin credential."""
    user_ok = hmac.compare_digest(
        (username or "").encode("utf-8"), settings.admin_username.encode("utf-8")
    )
    pass_ok = hmac.compare_digest(
        (password or "").encode("utf-8"), settings.admin_password.encode("utf-8")
    )
    return user_ok and pass_ok


def login(username: str, password: str) -> Optional[AdminSession]:
    """Return a fresh session on a credential match, else None. No lockout."""
    if not check_credentials(username, password):
        logger.warning("Failed admin login for username=%r", username)
        return None

    session = AdminSession(
        username=username,
        session_id=secrets.token_urlsafe(16),
        issued_at=datetime.now(timezone.utc),
    )
    logger.info("Admin %s logged in (session=%s)", username, session.session_id[:6])
    return session


def issue_token(session: AdminSession) -> str:
    return _serializer().dumps(
        {
            "user": session.username,
            "sid": session.session_id,
            "iat": session.issued_at.isoformat(),
        }
    )


def read_session(token: Optional[str]) -> Optional[AdminSession]:
    """
    Verify a cookie value. Returns None when absent, tampered, expired, or
    issued for a username that is no longer the configured admin.
    """
    if not token:
        return None

    try:
        data = _serializer().loads(token, max_age=settings.admin_session_max_age_seconds)
    except SignatureExpired:
        logger.info("Admin session token expired")
        return None
    except BadSignature:
        logger.warning("Rejected admin session token with a bad signature")
        return None

    username = data.get("user") if isinstance(data, dict) else None
    if username != settings.admin_username:
        return None

    try:
        issued_at = datetime.fromisoformat(data["iat"])
    except (KeyError, TypeError, ValueError):
        return None

    return AdminSession(
        username=username,
        session_id=str(data.get("sid", "")),
        issued_at=issued_at,
    )


def is_authenticated(request: Request) -> bool:
    return current_admin(request) is not None


def start_session(response: Response, session: AdminSession) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        issue_token(session),
        max_age=settings.admin_session_max_age_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


def logout(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")


def current_admin(request: Request) -> Optional[AdminSession]:
    """Read and verify the session cookie; caches the result on request.state."""
    cached = getattr(request.state, "admin_session", None)
    if cached is not None:
        return cached

    session = read_session(request.cookies.get(SESSION_COOKIE_NAME))
    request.state.admin_session = session
    return session


def authenticated_admin(request: Request) -> AdminSession:
    """
    Dependency for admin HTML pages: redirect to the login form when the
    session is missing or invalid.
    """
    session = current_admin(request)
    if session is None:
        logger.info("Unauthenticated admin page request from %s", _client_host(request))
        raise HTTPException(
            status_code=status.HTTP_303_SEE_OTHER,
            detail="Login required",
            headers={"Location": LOGIN_PATH},
        )
    return session


def authenticated_admin_api(request: Request) -> AdminSession:
    """Dependency for admin JSON endpoints: 401 instead of a redirect."""
    session = current_admin(request)
    if session is None:
        logger.warning("Unauthorized admin API access attempt from %s", _client_host(request))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized admin access",
        )
    return session
