from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from sqlalchemy.orm import Session

from gassafe.db import get_db
from gassafe.services import completion, intake
from gassafe.services.completion import CompletionState, CompletionView
from gassafe.services.render import render_template

logger = logging.getLogger("gassafe.routers.public")

router = APIRouter(tags=["public"])

NOTICES = {
    "invalid-link": completion.INVALID_LINK_MESSAGE,
}


@router.get("/", response_class=HTMLResponse)
def booking_form(request: Request, notice: Optional[str] = None) -> HTMLResponse:
    """Public renewal request form."""
    return render_template(
        request,
        "booking_form.html",
        {
            "values": dict(intake.EMPTY_FORM),
            "errors": {},
            "notice": NOTICES.get(notice or ""),
        },
    )


@router.post("/", response_class=HTMLResponse)
def submit_booking_form(
    request: Request,
    expiry_date: str = Form(""),
    address: str = Form(""),
    client_email: str = Form(""),
    has_tenant: Optional[str] = Form(None),
    tenant_name: str = Form(""),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    result = intake.submit(
        db,
        {
            "expiry_date": expiry_date,
            "address": address,
            "client_email": client_email,
            "has_tenant": has_tenant,
            "tenant_name": tenant_name,
        },
    )

    if result.ok:
        return render_template(request, "booking_form_success.html", {"lead": result.lead})

    status_code = (
        status.HTTP_422_UNPROCESSABLE_ENTITY
        if result.errors
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return render_template(
        request,
        "booking_form.html",
        {
            "values": result.values,
            "errors": result.errors,
            "message": result.message,
        },
        status_code=status_code,
    )


def _render_completion(request: Request, token: str, view: CompletionView) -> Response:
    if view.state is CompletionState.NOT_FOUND:
        return RedirectResponse(url="/?notice=invalid-link", status_code=status.HTTP_303_SEE_OTHER)

    if view.is_success:
        return render_template(request, "booking_confirmed.html", {"view": view})

    status_code = status.HTTP_200_OK
    if view.errors:
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif view.message:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return render_template(
        request,
        "complete_booking.html",
        {"view": view, "token": token},
        status_code=status_code,
    )


@router.get("/complete-booking/{token}", response_class=HTMLResponse)
def complete_booking_page(
    token: str,
    request: Request,
    db: Session = Depends(get_db),
) -> Response:
    """Booking-completion page reached from the quote email link."""
    return _render_completion(request, token, completion.resolve(db, token))


@router.post("/complete-booking/{token}", response_class=HTMLResponse)
def complete_booking_submit(
    token: str,
    request: Request,
    contact_name: str = Form(""),
    contact_phone: str = Form(""),
    contact_email: str = Form(""),
    db: Session = Depends(get_db),
) -> Response:
    view = completion.submit(
        db,
        token,
        {
            "contact_name": contact_name,
            "contact_phone": contact_phone,
            "contact_email": contact_email,
        },
    )
    return _render_completion(request, token, view)
