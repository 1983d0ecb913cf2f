from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session
from typing import Any, Dict

from stratix.db import get_db
from stratix.models import Profile
from stratix.repositories import get_invitation_store
from stratix.services import AdminDashboardService
from stratix.schemas import DashboardAction, envelope
from stratix.api.auth import rate_limit, require_admin
from stratix.api.params import parse_model

router = APIRouter(dependencies=[Depends(rate_limit("standard"))])


def get_dashboard_service(db: Session = Depends(get_db)) -> AdminDashboardService:
    """Dependency to get AdminDashboardService instance."""
    return AdminDashboardService(db, get_invitation_store(db))


@router.get("")
def dashboard(
    caller: Profile = Depends(require_admin),
    service: AdminDashboardService = Depends(get_dashboard_service),
):
    """Aggregated admin dashboard; failing sections are reported in ``sectionErrors``."""
    return envelope(service.overview(caller), "Admin dashboard data retrieved successfully")


@router.post("")
def dashboard_action(
    payload: Dict[str, Any] = Body(...),
    caller: Profile = Depends(require_admin),
    service: AdminDashboardService = Depends(get_dashboard_service),
):
    """Run a dashboard quick action."""
    action = parse_model(DashboardAction, payload, "Invalid dashboard action")
    result = service.run_action(caller, action.action, action.parameters)
    return envelope(result, result.get("message") or "Action completed successfully")
