from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from stratix.core import settings
from stratix.core.cache import TTLCache, onboarding_status_cache, onboarding_status_key
from stratix.exceptions import ForbiddenError, NotFoundError, ValidationError
from stratix.models import OnboardingSession, SessionStatusEnum, utcnow
from stratix.repositories import OnboardingSessionRepository, OrganizationRepository
from stratix.schemas import (
    CompleteOnboardingRequest,
    OnboardingProgressRequest,
    OnboardingSessionPatch,
    OnboardingStartRequest,
    ProgressOut,
    SessionOut,
    TransformationContext,
)
from stratix.step_schemas import STEP_ESTIMATED_MINUTES, STEP_NAMES, STEP_TITLES, TOTAL_STEPS
from .base import BaseService
from .transformation import WizardDataTransformationPipeline, create_transformation_pipeline
from .validation import OnboardingValidationService, create_validation_service, normalize_session_data
from .wizard_transformer import WizardDataTransformer, create_wizard_data_transformer

STEP_FEEDBACK = {
    1: "¡Genial! Con esta información personalizaremos tu experiencia.",
    2: "Perfecto, entiendo tu contexto empresarial. Esto ayudará a sugerir OKRs para tu industria y tamaño.",
    3: "Con esta información podremos abordar tus desafíos específicos.",
    4: "Excelente, tu configuración de OKRs está casi lista.",
    5: "¡Fantástico! Has completado la configuración inicial.",
}
INVALID_STEP_FEEDBACK = "Por favor, completa los campos requeridos antes de continuar."


def step_info(step_number: int) -> Dict[str, Any]:
    return {
        "step_number": step_number,
        "step_name": STEP_NAMES.get(step_number, f"step_{step_number}"),
        "title": STEP_TITLES.get(step_number, ""),
        "estimated_minutes": STEP_ESTIMATED_MINUTES.get(step_number, 0),
    }


class OnboardingService(BaseService):
    """Onboarding session lifecycle for the calling user."""

    def __init__(
        self,
        db: Session,
        validator: Optional[OnboardingValidationService] = None,
        pipeline: Optional[WizardDataTransformationPipeline] = None,
        transformer: Optional[WizardDataTransformer] = None,
        status_cache: Optional[TTLCache] = None,
    ):
        super().__init__(db)
        self.repository = OnboardingSessionRepository(db)
        self.validator = validator or create_validation_service()
        self.pipeline = pipeline or create_transformation_pipeline(db)
        self.transformer = transformer or create_wizard_data_transformer()
        self.status_cache = status_cache if status_cache is not None else onboarding_status_cache

    def start(self, user_id: str, request: OnboardingStartRequest) -> Dict[str, Any]:
        """Resume the caller's live session or open a new one."""
        try:
            self.logger.info(f"Starting onboarding for user {user_id}")
            existing = self.repository.get_active_for_user(user_id)
            resumed = False

            if existing is not None and self._expire_if_due(existing):
                existing = None
            if existing is not None and request.restart:
                existing.status = SessionStatusEnum.abandoned
                existing.updated_at = utcnow()
                self.db.flush()
                existing = None

            if existing is not None:
                session = existing
                resumed = True
            else:
                session = self.repository.create_for_user(
                    user_id,
                    ttl_hours=settings.onboarding_session_ttl_hours,
                    total_steps=TOTAL_STEPS,
                )
                if request.user_preferences or request.context:
                    session.form_data = {
                        "_preferences": dict(request.user_preferences),
                        "_context": dict(request.context),
                    }

            self.commit()
            self._invalidate_status(user_id)
            self.logger.info(f"{'Resumed' if resumed else 'Created'} onboarding session {session.id}")

            return {
                "session": self._session_out(session),
                "resumed": resumed,
                "current_step": step_info(session.current_step),
                "progress": self._progress_out(session.id),
            }

        except Exception as e:
            self.rollback()
            self.logger.error(f"Error starting onboarding for user {user_id}: {str(e)}")
            raise

    def record_progress(self, user_id: str, request: OnboardingProgressRequest) -> Dict[str, Any]:
        """Validate and store one step, merge its data and advance the session."""
        try:
            self.logger.info(f"Recording step {request.step_number} for session {request.session_id}")
            session = self._owned_session(user_id, request.session_id)
            self._require_in_progress(session)

            steps = normalize_session_data(session.form_data)
            previous = {number: data for number, data in steps.items() if number < request.step_number}
            validation = self.validator.validate_step(request.step_number, request.step_data, {
                "user_id": user_id,
                "session_id": session.id,
                "previous_steps": previous,
            })

            now = utcnow()
            completed = request.completed and validation.is_valid
            progress = self.repository.upsert_progress(
                session.id,
                request.step_number,
                STEP_NAMES.get(request.step_number, f"step_{request.step_number}"),
                {
                    "step_data": dict(request.step_data),
                    "completed": completed,
                    "skipped": request.skipped,
                    "ai_validation": validation.to_json(),
                    "completion_time": now if completed else None,
                    "updated_at": now,
                },
            )

            form_data = dict(session.form_data or {})
            form_data[str(request.step_number)] = {
                **dict(form_data.get(str(request.step_number)) or {}),
                **request.step_data,
            }
            session.form_data = form_data

            advanced = False
            if request.auto_advance and (completed or request.skipped) \
                    and request.step_number == session.current_step:
                session.current_step = min(request.step_number + 1, session.total_steps)
                advanced = session.current_step > request.step_number

            session.completion_percentage = self._completion_percentage(session)
            session.updated_at = now

            self.commit()
            self._invalidate_status(user_id)

            result = {
                "session": self._session_out(session),
                "progress": ProgressOut.model_validate(progress).model_dump(mode="json"),
                "validation": validation.to_json(),
                "feedback": STEP_FEEDBACK.get(request.step_number, "") if validation.is_valid else INVALID_STEP_FEEDBACK,
            }
            if advanced:
                result["next_step"] = step_info(session.current_step)
            return result

        except Exception as e:
            self.rollback()
            self.logger.error(f"Error recording progress for session {request.session_id}: {str(e)}")
            raise

    def get_status(self, user_id: str) -> Dict[str, Any]:
        key = onboarding_status_key(user_id)
        cached = self.status_cache.get(key)
        if cached is not None:
            return {**cached, "cached": True}

        session = self.repository.get_active_for_user(user_id)
        if session is not None and self._expire_if_due(session):
            self.commit()
            session = None

        if session is None:
            status = {
                "has_active_session": False,
                "session": None,
                "current_step": None,
                "progress": [],
                "completion_percentage": 0.0,
            }
        else:
            status = {
                "has_active_session": True,
                "session": self._session_out(session),
                "current_step": step_info(session.current_step),
                "progress": self._progress_out(session.id),
                "completion_percentage": session.completion_percentage,
            }

        self.status_cache.set(key, status)
        return {**status, "cached": False}

    def get_session(self, user_id: str, session_id: str) -> Dict[str, Any]:
        session = self._owned_session(user_id, session_id)
        if self._expire_if_due(session):
            self.commit()
        return {
            "session": self._session_out(session),
            "progress": self._progress_out(session.id),
            "current_step": step_info(session.current_step),
        }

    def update_session(self, user_id: str, session_id: str, patch: OnboardingSessionPatch) -> Dict[str, Any]:
        try:
            session = self._owned_session(user_id, session_id)
            self._require_in_progress(session)

            if patch.current_step is not None:
                if patch.current_step > session.total_steps:
                    raise ValidationError(f"Step {patch.current_step} exceeds the session's {session.total_steps} steps")
                session.current_step = patch.current_step
            if patch.form_data is not None:
                session.form_data = {**dict(session.form_data or {}), **patch.form_data}
            session.updated_at = utcnow()

            self.commit()
            self._invalidate_status(user_id)
            return {"session": self._session_out(session)}

        except Exception as e:
            self.rollback()
            self.logger.error(f"Error updating session {session_id}: {str(e)}")
            raise

    def abandon_session(self, user_id: str, session_id: str) -> Dict[str, Any]:
        try:
            session = self._owned_session(user_id, session_id)
            if session.status == SessionStatusEnum.completed:
                raise ValidationError("Completed sessions cannot be abandoned")

            session.status = SessionStatusEnum.abandoned
            session.updated_at = utcnow()
            self.commit()
            self._invalidate_status(user_id)
            self.logger.info(f"Abandoned onboarding session {session_id}")
            return {"session": self._session_out(session)}

        except Exception as e:
            self.rollback()
            self.logger.error(f"Error abandoning session {session_id}: {str(e)}")
            raise

    def complete(self, user_id: str, request: CompleteOnboardingRequest) -> Dict[str, Any]:
        """Transform the session's form data and save it in one transaction."""
        session = self._resolve_session(user_id, request.session_id)
        self._require_in_progress(session)
        if request.organization_id:
            self._require_membership(user_id, request.organization_id)

        context = TransformationContext(
            user_id=user_id,
            session_id=session.id,
            organization_id=request.organization_id,
        )
        transformation = self.pipeline.transform(session.form_data or {}, context)
        if not transformation.success:
            raise ValidationError(
                "Onboarding data could not be transformed",
                {"errors": [issue.to_json() for issue in transformation.errors]},
            )

        saved = self.pipeline.save_to_database(transformation.data, context)
        if not saved.success:
            raise ValidationError("Onboarding data could not be saved", {"errors": saved.errors})

        self._invalidate_status(user_id)
        return {
            "organization_id": saved.organization_id,
            "objective_ids": saved.objective_ids,
            "warnings": [warning.to_json() for warning in transformation.warnings],
            "metadata": transformation.metadata.to_json(),
        }

    def organization_insights(self, user_id: str, session_id: Optional[str] = None) -> Dict[str, Any]:
        """Organization summary, OKR hints and completion analytics for a session."""
        session = self._resolve_session(user_id, session_id)
        form_data = session.form_data or {}
        return {
            "session_id": session.id,
            **self.transformer.transform_wizard_to_org_data(form_data),
            "okr_setup": self.transformer.transform_for_okr_setup(form_data),
            "completion": self.transformer.extract_completion_analytics(
                session, self.repository.list_progress(session.id)
            ),
        }

    def _resolve_session(self, user_id: str, session_id: Optional[str]) -> OnboardingSession:
        if session_id:
            return self._owned_session(user_id, session_id)
        session = self.repository.get_active_for_user(user_id)
        if session is None:
            raise NotFoundError("Active onboarding session")
        return session

    def _owned_session(self, user_id: str, session_id: str) -> OnboardingSession:
        session = self.repository.get(session_id)
        if session is None:
            raise NotFoundError("Onboarding session", session_id)
        if session.user_id != user_id:
            raise ForbiddenError("Not authorized for this onboarding session")
        return session

    def _require_membership(self, user_id: str, organization_id: str) -> None:
        organizations = OrganizationRepository(self.db)
        if organizations.get(organization_id) is None:
            raise NotFoundError("Organization", organization_id)
        if organizations.get_member(organization_id, user_id) is None:
            raise ForbiddenError("Not a member of this organization")

    def _require_in_progress(self, session: OnboardingSession) -> None:
        if self._expire_if_due(session):
            self.commit()
            self._invalidate_status(session.user_id)
            raise ValidationError("Onboarding session has expired")
        if session.status != SessionStatusEnum.in_progress:
            raise ValidationError(f"Onboarding session is not in progress (status: {session.status.value})")

    def _expire_if_due(self, session: OnboardingSession) -> bool:
        """Mark an overdue in-progress session expired; the caller commits."""
        if session.status == SessionStatusEnum.in_progress and session.expires_at < utcnow():
            session.status = SessionStatusEnum.expired
            session.updated_at = utcnow()
            self.db.flush()
            self.logger.info(f"Onboarding session {session.id} expired")
            return True
        return False

    def _completion_percentage(self, session: OnboardingSession) -> float:
        if not session.total_steps:
            return 0.0
        done = sum(1 for step in self.repository.list_progress(session.id) if step.completed or step.skipped)
        return round(min(done, session.total_steps) / session.total_steps * 100, 2)

    def _progress_out(self, session_id: str) -> List[Dict[str, Any]]:
        return [
            ProgressOut.model_validate(step).model_dump(mode="json")
            for step in self.repository.list_progress(session_id)
        ]

    @staticmethod
    def _session_out(session: OnboardingSession) -> Dict[str, Any]:
        return SessionOut.model_validate(session).model_dump(mode="json")

    def _invalidate_status(self, user_id: str) -> None:
        self.status_cache.delete(onboarding_status_key(user_id))
