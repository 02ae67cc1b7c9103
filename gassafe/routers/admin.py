from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from sqlalchemy.orm import Session

from gassafe import auth
from gassafe.auth import AdminSession, authenticated_admin
from gassafe.db import get_db
from gassafe.email.service import QuoteNotifier, default_notifier
from gassafe.services.leads import get_lead
from gassafe.services.render import render_template
from gassafe.services.workspace import (
    AdminWorkspace,
    EmailDispatchStatus,
    format_booking_details,
    registry,
)

logger = logging.getLogger("gassafe.routers.admin")

router = APIRouter(prefix="/admin", tags=["admin"])

WORKSPACE_PATH = "/admin"


def get_notifier() -> QuoteNotifier:
    """Notification collaborator; overridden in tests."""
    return default_notifier


def session_workspace(admin: AdminSession = Depends(authenticated_admin)) -> AdminWorkspace:
    """The calling admin's workspace as-is; routes that render reload it themselves."""
    return registry.get(admin.session_id)


def get_workspace(
    workspace: AdminWorkspace = Depends(session_workspace),
    db: Session = Depends(get_db),
) -> AdminWorkspace:
    """The calling admin's workspace, loaded at least once."""
    if workspace.snapshot.generation == 0:
        workspace.load_data(db)
    return workspace


def _back_to_workspace() -> RedirectResponse:
    return RedirectResponse(url=WORKSPACE_PATH, status_code=status.HTTP_303_SEE_OTHER)


def build_admin_context(
    *,
    admin: AdminSession,
    active_nav: str,
    **extra: Any,
) -> Dict[str, Any]:
    """
    Base context builder for all admin pages.

    Ensures admin_base.html always gets the keys it expects.
    """
    base: Dict[str, Any] = {
        "active_nav": active_nav,
        "current_admin": admin.username,
    }
    base.update(extra)
    return base


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request) -> Response:
    if auth.is_authenticated(request):
        return _back_to_workspace()
    return render_template(request, "admin_login.html", {"error": None, "username": ""})


@router.post("/login", response_class=HTMLResponse)
def login_submit(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
) -> Response:
    error: Optional[str] = None
    if not username.strip() or not password.strip():
        error = "Please enter both username and password"
    else:
        session = auth.login(username, password)
        if session is not None:
            response = _back_to_workspace()
            auth.start_session(response, session)
            return response
        error = "Invalid username or password"

    return render_template(
        request,
        "admin_login.html",
        {"error": error, "username": username},
        status_code=status.HTTP_401_UNAUTHORIZED,
    )


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    session = auth.current_admin(request)
    if session is not None:
        registry.discard(session.session_id)
        logger.info("Admin %s logged out", session.username)
    response = RedirectResponse(url=auth.LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)
    auth.logout(response)
    return response


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


@router.get("", response_class=HTMLResponse)
def workspace_page(
    request: Request,
    admin: AdminSession = Depends(authenticated_admin),
    workspace: AdminWorkspace = Depends(session_workspace),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Leads + confirmed bookings, with selection and batch actions."""
    snapshot = workspace.load_data(db)

    logger.info(
        "Rendering admin workspace (leads=%d, bookings=%d, selected=%d)",
        len(snapshot.leads),
        len(snapshot.bookings),
        len(workspace.selected),
    )

    context = build_admin_context(
        admin=admin,
        active_nav="workspace",
        snapshot=snapshot,
        selected=workspace.selected,
        all_selected=workspace.all_selected,
        highlighted=workspace.highlighted_ids(),
        price_input=workspace.price_input,
        notice=workspace.pop_notice(),
    )
    return render_template(request, "admin_dashboard.html", context)


@router.post("/leads/toggle-all")
def toggle_all(workspace: AdminWorkspace = Depends(get_workspace)) -> RedirectResponse:
    workspace.toggle_all()
    return _back_to_workspace()


@router.post("/leads/{lead_id}/toggle")
def toggle_one(lead_id: str, workspace: AdminWorkspace = Depends(get_workspace)) -> RedirectResponse:
    workspace.toggle_one(lead_id)
    return _back_to_workspace()


@router.post("/leads/quote")
def apply_quote(
    price: str = Form(""),
    workspace: AdminWorkspace = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    result = workspace.apply_batch_quote(db, price)
    if result.applied:
        workspace.flash(f"Quote applied to {len(result.affected_ids)} lead(s).", level="success")
    else:
        workspace.flash(result.message, level="error")
    return _back_to_workspace()


@router.post("/leads/delete")
def delete_selected(
    confirm: Optional[str] = Form(None),
    workspace: AdminWorkspace = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    result = workspace.delete_selected(db, confirmed=bool(confirm))
    if result.applied:
        workspace.flash(f"Deleted {len(result.affected_ids)} lead(s).", level="success")
    else:
        workspace.flash(result.message, level="error")
    return _back_to_workspace()


@router.post("/leads/{lead_id}/send-quote")
def send_quote(
    lead_id: str,
    workspace: AdminWorkspace = Depends(get_workspace),
    notifier: QuoteNotifier = Depends(get_notifier),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    lead = get_lead(db, lead_id)
    if lead is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")

    dispatch = workspace.send_quote_email(lead, notifier)
    level = {
        EmailDispatchStatus.SENT: "success",
        EmailDispatchStatus.FALLBACK: "warning",
    }.get(dispatch.status, "error")
    workspace.flash(dispatch.message, mailto=dispatch.mailto, level=level)
    return _back_to_workspace()


# ---------------------------------------------------------------------------
# Confirmed booking detail
# ---------------------------------------------------------------------------


@router.get("/bookings/{booking_id}", response_class=HTMLResponse)
def booking_detail(
    booking_id: str,
    request: Request,
    admin: AdminSession = Depends(authenticated_admin),
    workspace: AdminWorkspace = Depends(session_workspace),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Read-only booking + lead details with a copy-to-clipboard block."""
    booking = workspace.booking_detail(db, booking_id)
    if booking is None:
        logger.warning("Confirmed booking not found for detail view: id=%s", booking_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

    context = build_admin_context(
        admin=admin,
        active_nav="workspace",
        booking=booking,
        details_text=format_booking_details(booking),
    )
    return render_template(request, "admin_booking_detail.html", context)


@router.get("/bookings/{booking_id}/details.txt", response_class=PlainTextResponse)
def booking_details_text(
    booking_id: str,
    workspace: AdminWorkspace = Depends(session_workspace),
    db: Session = Depends(get_db),
) -> PlainTextResponse:
    booking = workspace.booking_detail(db, booking_id)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return PlainTextResponse(format_booking_details(booking))
