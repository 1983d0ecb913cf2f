from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session
from typing import Any, Dict

from stratix.db import get_db
from stratix.models import Profile
from stratix.services import AdminUserService
from stratix.schemas import UserBatchRequest, UserFilter, UserUpdateRequest, envelope
from stratix.api.auth import rate_limit, require_admin, require_admin_or_manager
from stratix.api.params import parse_model

router = APIRouter(dependencies=[Depends(rate_limit("standard"))])


def get_admin_user_service(db: Session = Depends(get_db)) -> AdminUserService:
    """Dependency to get AdminUserService instance."""
    return AdminUserService(db)


@router.get("")
def list_users(
    request: Request,
    caller: Profile = Depends(require_admin_or_manager),
    service: AdminUserService = Depends(get_admin_user_service),
):
    """List users; managers only see their own company."""
    filters = parse_model(UserFilter, dict(request.query_params), "Invalid query parameters")
    return envelope(service.list_users(caller, filters), "Users retrieved successfully")


@router.post("")
def batch_user_action(
    payload: Dict[str, Any] = Body(...),
    caller: Profile = Depends(require_admin),
    service: AdminUserService = Depends(get_admin_user_service),
):
    """Apply one action to a list of users."""
    batch = parse_model(UserBatchRequest, payload, "Invalid batch request data")
    result = service.batch_action(caller, batch)
    summary = result["summary"]
    return envelope(
        result,
        f"Batch {batch.action} completed: {summary['successful']}/{summary['total']} successful",
    )


@router.put("")
def update_user(
    payload: Dict[str, Any] = Body(...),
    caller: Profile = Depends(require_admin_or_manager),
    service: AdminUserService = Depends(get_admin_user_service),
):
    update = parse_model(UserUpdateRequest, payload, "Invalid update data")
    return envelope(service.update_user(caller, update), "User updated successfully")
