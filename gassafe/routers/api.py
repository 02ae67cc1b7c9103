from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from gassafe.auth import AdminSession, authenticated_admin_api
from gassafe.db import get_db
from gassafe.schemas.booking import (
    CompletionResponse,
    ConfirmedBookingView,
    ContactDetailsRequest,
    WorkspaceResponse,
)
from gassafe.schemas.lead import (
    BatchDeleteRequest,
    BatchQuoteRequest,
    BatchResponse,
    LeadCreatedResponse,
    LeadIntakeRequest,
    LeadView,
)
from gassafe.services import completion, intake
from gassafe.services.completion import CompletionState, CompletionView
from gassafe.services.workspace import AdminWorkspace, registry

logger = logging.getLogger("gassafe.routers.api")

router = APIRouter(prefix="/api", tags=["api"])


@router.post(
    "/leads",
    status_code=status.HTTP_201_CREATED,
    response_model=LeadCreatedResponse,
    summary="Submit a gas safety certificate renewal request.",
)
def create_lead(
    payload: LeadIntakeRequest,
    db: Session = Depends(get_db),
) -> LeadCreatedResponse:
    """
    JSON twin of the public form. Field errors come back as a 422 with the
    same field -> message map the HTML form shows.
    """
    result = intake.submit(db, payload.model_dump())
    if result.errors:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=result.errors,
        )
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=result.message,
        )
    return LeadCreatedResponse(id=result.lead.id)


def _request_workspace(admin: AdminSession, db: Session) -> AdminWorkspace:
    """
    Workspace scoped to one JSON call. Batch ids come in the payload, so the
    selection the same admin holds in the HTML workspace is left untouched.
    """
    logger.debug("JSON batch call by admin %s", admin.username)
    workspace = AdminWorkspace()
    workspace.load_data(db)
    return workspace


@router.get("/admin/workspace", response_model=WorkspaceResponse)
def workspace_snapshot(
    admin: AdminSession = Depends(authenticated_admin_api),
    db: Session = Depends(get_db),
) -> WorkspaceResponse:
    snapshot = registry.get(admin.session_id).load_data(db)
    return WorkspaceResponse(
        leads=[LeadView.model_validate(lead) for lead in snapshot.leads],
        bookings=[ConfirmedBookingView.model_validate(b) for b in snapshot.bookings],
        leads_error=snapshot.leads_error,
        bookings_error=snapshot.bookings_error,
    )


@router.post("/admin/leads/quote", response_model=BatchResponse)
def quote_leads(
    payload: BatchQuoteRequest,
    admin: AdminSession = Depends(authenticated_admin_api),
    db: Session = Depends(get_db),
) -> BatchResponse:
    """Quote exactly the given leads; a blank price or empty id list is a no-op."""
    workspace = _request_workspace(admin, db)
    workspace.select(payload.lead_ids)
    price = "" if payload.price is None else str(payload.price)
    result = workspace.apply_batch_quote(db, price)
    if not result.applied and result.affected_ids:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=result.message,
        )
    return BatchResponse(
        applied=result.applied,
        affected_ids=result.affected_ids,
        message=result.message,
    )


@router.post("/admin/leads/delete", response_model=BatchResponse)
def delete_leads(
    payload: BatchDeleteRequest,
    admin: AdminSession = Depends(authenticated_admin_api),
    db: Session = Depends(get_db),
) -> BatchResponse:
    workspace = _request_workspace(admin, db)
    workspace.select(payload.lead_ids)
    result = workspace.delete_selected(db, confirmed=payload.confirm)
    if not result.applied and result.affected_ids:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=result.message,
        )
    return BatchResponse(
        applied=result.applied,
        affected_ids=result.affected_ids,
        message=result.message,
    )


def _completion_response(view: CompletionView) -> CompletionResponse:
    if view.state is CompletionState.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=view.message)
    if view.errors:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=view.errors)
    if view.message and not view.is_success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=view.message)
    return CompletionResponse(
        state=view.state.value,
        lead_id=view.lead_id,
        address=view.address,
        quoted_price=view.quoted_price,
    )


@router.get("/bookings/{token}", response_model=CompletionResponse)
def booking_status(token: str, db: Session = Depends(get_db)) -> CompletionResponse:
    return _completion_response(completion.resolve(db, token))


@router.post("/bookings/{token}", response_model=CompletionResponse)
def confirm_booking(
    token: str,
    payload: ContactDetailsRequest,
    db: Session = Depends(get_db),
) -> CompletionResponse:
    return _completion_response(completion.submit(db, token, payload.model_dump()))
