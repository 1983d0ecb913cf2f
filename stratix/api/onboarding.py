from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Any, Dict

from stratix.db import get_db
from stratix.services import OnboardingService, OnboardingValidationService, create_validation_service
from stratix.schemas import (
    CompleteOnboardingRequest,
    FieldValidationRequest,
    OnboardingProgressRequest,
    OnboardingSessionPatch,
    OnboardingStartRequest,
    StepValidationRequest,
    envelope,
)
from stratix.api.auth import get_current_user_dep, rate_limit

router = APIRouter()


def get_onboarding_service(db: Session = Depends(get_db)) -> OnboardingService:
    """Dependency to get OnboardingService instance."""
    return OnboardingService(db)


def get_validation_service() -> OnboardingValidationService:
    return create_validation_service()


@router.post("/start", dependencies=[Depends(rate_limit("session"))])
def start_onboarding(
    payload: OnboardingStartRequest,
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Resume the caller's onboarding session or start a new one."""
    result = service.start(current_user["user_id"], payload)
    message = "Onboarding session resumed" if result["resumed"] else "Onboarding session started"
    return envelope(result, message)


@router.post("/progress", dependencies=[Depends(rate_limit("standard"))])
def record_progress(
    payload: OnboardingProgressRequest,
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Save one wizard step."""
    return envelope(service.record_progress(current_user["user_id"], payload), "Progress saved")


@router.get("/status", dependencies=[Depends(rate_limit("standard"))])
def onboarding_status(
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return envelope(service.get_status(current_user["user_id"]))


@router.get("/session/{session_id}", dependencies=[Depends(rate_limit("standard"))])
def get_session(
    session_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return envelope(service.get_session(current_user["user_id"], session_id))


@router.patch("/session/{session_id}", dependencies=[Depends(rate_limit("standard"))])
def update_session(
    session_id: str,
    payload: OnboardingSessionPatch,
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return envelope(service.update_session(current_user["user_id"], session_id, payload), "Session updated")


@router.delete("/session/{session_id}", dependencies=[Depends(rate_limit("standard"))])
def abandon_session(
    session_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Abandon an onboarding session; completed sessions are kept."""
    return envelope(service.abandon_session(current_user["user_id"], session_id), "Session abandoned")


@router.post("/validate", dependencies=[Depends(rate_limit("ai"))])
def validate_step(
    payload: StepValidationRequest,
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    validator: OnboardingValidationService = Depends(get_validation_service),
):
    """Validate one step's data without saving it."""
    result = validator.validate_step(payload.step_number, payload.data, {
        "user_id": current_user["user_id"],
        "session_id": payload.session_id,
    })
    return envelope(result)


@router.post("/validate/field", dependencies=[Depends(rate_limit("ai"))])
def validate_field(
    payload: FieldValidationRequest,
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    validator: OnboardingValidationService = Depends(get_validation_service),
):
    result = validator.validate_field(payload.step_number, payload.field, payload.value, {
        "user_id": current_user["user_id"],
    })
    return envelope(result)


@router.post("/complete", dependencies=[Depends(rate_limit("organization"))])
def complete_onboarding(
    payload: CompleteOnboardingRequest,
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Turn the caller's wizard data into an organization with objectives."""
    return envelope(service.complete(current_user["user_id"], payload), "Onboarding completed")


@router.post("/organization/insights", dependencies=[Depends(rate_limit("organization"))])
def organization_insights(
    payload: CompleteOnboardingRequest,
    current_user: Dict[str, Any] = Depends(get_current_user_dep),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return envelope(service.organization_insights(current_user["user_id"], payload.session_id))
