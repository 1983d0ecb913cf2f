from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session
from typing import Any, Dict

from stratix.db import get_db
from stratix.models import Profile
from stratix.repositories import get_invitation_store
from stratix.services import InvitationService
from stratix.schemas import (
    InvitationAccept,
    InvitationBatchCreate,
    InvitationCancel,
    InvitationCreate,
    InvitationFilter,
    InvitationUpdate,
    envelope,
)
from stratix.api.auth import get_current_user_dep, rate_limit, require_admin
from stratix.api.params import parse_model

router = APIRouter(dependencies=[Depends(rate_limit("standard"))])


def get_invitation_service(db: Session = Depends(get_db)) -> InvitationService:
    """Dependency to get InvitationService over the configured store."""
    return InvitationService(db, get_invitation_store(db))


@router.post("")
def create_invitations(
    payload: Dict[str, Any] = Body(...),
    caller: Profile = Depends(require_admin),
    service: InvitationService = Depends(get_invitation_service),
):
    """Create one invitation, or a batch when the body carries an ``invitations`` list."""
    if isinstance(payload.get("invitations"), list):
        batch = parse_model(InvitationBatchCreate, payload, "Invalid batch invitation data")
        result = service.create_batch(caller, batch)
        summary = result["summary"]
        return envelope(result, f"Batch invitation created: {summary['successful']}/{summary['total']} successful")

    data = parse_model(InvitationCreate, payload, "Invalid invitation data")
    return envelope(service.create(caller, data), "Invitation created successfully")


@router.get("")
def list_invitations(
    request: Request,
    caller: Profile = Depends(require_admin),
    service: InvitationService = Depends(get_invitation_service),
):
    filters = parse_model(InvitationFilter, dict(request.query_params), "Invalid query parameters")
    return envelope(service.list_invitations(filters), "Invitations retrieved successfully")


@router.put("")
def update_invitation(
    payload: Dict[str, Any] = Body(...),
    caller: Profile = Depends(require_admin),
    service: InvitationService = Depends(get_invitation_service),
):
    data = parse_model(InvitationUpdate, payload, "Invalid invitation update data")
    return envelope(service.update(caller, data), "Invitation updated successfully")


@router.delete("")
def cancel_invitations(
    payload: Dict[str, Any] = Body(...),
    caller: Profile = Depends(require_admin),
    service: InvitationService = Depends(get_invitation_service),
):
    """Cancel pending or sent invitations."""
    data = parse_model(InvitationCancel, payload, "Invalid cancellation data")
    result = service.cancel(caller, data)
    summary = result["summary"]
    return envelope(result, f"Cancelled {summary['successful']}/{summary['total']} invitations")


@router.post("/accept")
def accept_invitation(
    payload: Dict[str, Any] = Body(...),
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    service: InvitationService = Depends(get_invitation_service),
):
    """Redeem an invitation code for the signed-in user."""
    data = parse_model(InvitationAccept, payload, "Invalid invitation code")
    return envelope(service.accept(current_user, data), "Invitation accepted")
