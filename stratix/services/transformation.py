"""Wizard data transformation pipeline.

Turns the raw, step-number keyed form data of an onboarding session into
normalized profile, organization, OKR, team and preference records, and
persists them when the wizard completes.
"""

import math
import re
import time
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from stratix.core import settings
from stratix.core.cache import TTLCache, onboarding_status_cache, onboarding_status_key
from stratix.exceptions import ForbiddenError, NotFoundError, ValidationError
from stratix.models import SessionStatusEnum, utcnow
from stratix.repositories import OnboardingSessionRepository, OrganizationRepository
from stratix.schemas import (
    CommunicationPreferences,
    DepartmentData,
    KeyResultData,
    LaunchPreferences,
    NotificationSettings,
    ObjectiveData,
    OrganizationData,
    RoleData,
    SaveResult,
    TeamStructureData,
    TrackingPreferences,
    TransformationContext,
    TransformationIssue,
    TransformationMetadata,
    TransformationResult,
    TransformationWarning,
    TransformedData,
    UserPreferencesData,
    UserProfileData,
)
from .ai import AISuggester, NullSuggester, build_suggester
from .analytics import AnalyticsTracker, analytics
from .base import BaseService
from .validation import OnboardingValidationService, create_validation_service, normalize_session_data, pick

DEFAULT_TIMEZONE = "America/Mexico_City"
DEFAULT_COUNTRY = "México"
MAX_TEXT_LENGTH = 200
MAX_HIERARCHY_LEVELS = 5

_DISALLOWED_CHARS = re.compile(r"[^\w\sáéíóúÁÉÍÓÚñÑ\-.,]")
_WHITESPACE = re.compile(r"\s+")

transformation_cache = TTLCache(ttl_seconds=settings.transformation_cache_ttl_seconds)


class TransformationConfig(BaseModel):
    enable_ai: bool = True
    enable_validation: bool = True
    enable_cache: bool = True
    enable_analytics: bool = True
    strict_mode: bool = False
    ai_timeout: float = 10.0
    cache_ttl: int = 3600


def clean_text(text: Optional[str]) -> str:
    """Trim, collapse whitespace, strip unusual characters and cap the length."""
    if not text:
        return ""
    cleaned = _WHITESPACE.sub(" ", text.strip())
    cleaned = _DISALLOWED_CHARS.sub("", cleaned)
    return cleaned[:MAX_TEXT_LENGTH]


def normalize_url(url: Optional[str]) -> str:
    if not url:
        return ""
    normalized = url.strip()
    if not normalized.startswith(("http://", "https://")):
        normalized = "https://" + normalized
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def _bool(data: Optional[Mapping[str, Any]], default: bool, *keys: str) -> bool:
    value = pick(data, *keys)
    return default if value is None else bool(value)


def _employee_count(value: Any) -> int:
    """Positive head count; unparseable or non-positive values count as one."""
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 1
    return max(1, count)


class WizardDataTransformationPipeline(BaseService):
    """Validate, map, enhance and clean wizard data; save it atomically."""

    def __init__(
        self,
        db: Optional[Session] = None,
        config: Optional[TransformationConfig] = None,
        validator: Optional[OnboardingValidationService] = None,
        suggester: Optional[AISuggester] = None,
        cache: Optional[TTLCache] = None,
        tracker: Optional[AnalyticsTracker] = None,
    ):
        super().__init__(db)
        self.config = config or TransformationConfig()
        self.suggester = suggester or NullSuggester()
        self.validator = validator or OnboardingValidationService(suggester=self.suggester)
        self.cache = cache if cache is not None else transformation_cache
        self.tracker = tracker or analytics

    def transform(self, session_data: Mapping[Any, Any], context: TransformationContext) -> TransformationResult:
        """Transform a session's form data; failures are reported in the result, never raised."""
        started = time.perf_counter()
        steps = normalize_session_data(session_data)
        warnings: List[TransformationWarning] = []
        validation_passed = True

        try:
            if self.config.enable_validation:
                validation = self.validator.validate_complete(steps, {
                    "user_id": context.user_id,
                    "session_id": context.session_id,
                })
                validation_passed = validation.is_valid
                if not validation.is_valid and self.config.strict_mode:
                    self.logger.info(f"Strict transformation rejected session {context.session_id}")
                    result = self._failure(
                        [
                            TransformationIssue(step=0, field=issue.field, code=issue.code, message=issue.message)
                            for issue in validation.errors
                        ],
                        started,
                    )
                    self._track(result, context)
                    return result

                for issue in validation.errors:
                    warnings.append(TransformationWarning(
                        field=issue.field,
                        message=issue.message,
                        suggestion=f"Corrige el error {issue.code} para mejorar la calidad de los datos",
                    ))
                for warning in validation.warnings:
                    warnings.append(TransformationWarning(
                        field=warning.field,
                        message=warning.message,
                        suggestion=warning.recommendation,
                    ))

            data = self._map_steps(steps, context)

            ai_enhanced = False
            if self.config.enable_ai:
                ai_enhanced = self._enhance_with_ai(data)

            data = self._post_process(data)

            result = TransformationResult(
                success=True,
                data=data,
                warnings=warnings,
                metadata=TransformationMetadata(
                    transformed_at=utcnow(),
                    processing_time_ms=self._elapsed(started),
                    ai_enhanced=ai_enhanced,
                    steps_processed=sorted(steps),
                    validation_passed=validation_passed,
                ),
            )

            if self.config.enable_cache:
                self.cache.set(
                    f"transformation_{context.session_id}",
                    result.model_copy(deep=True),
                    ttl_seconds=self.config.cache_ttl,
                )

        except Exception as e:
            self.logger.exception(f"Transformation of session {context.session_id} failed: {str(e)}")
            result = self._failure(
                [TransformationIssue(
                    field="_system",
                    code="TRANSFORMATION_ERROR",
                    message="Error interno de transformación",
                    context={"error": str(e)},
                )],
                started,
            )

        self._track(result, context)
        return result

    def save_to_database(self, data: TransformedData, context: TransformationContext) -> SaveResult:
        """Persist organization, membership, OKRs and session completion in one transaction."""
        if self.db is None:
            raise RuntimeError("save_to_database requires a database session")

        organizations = OrganizationRepository(self.db)
        sessions = OnboardingSessionRepository(self.db)

        try:
            self.logger.info(f"Saving onboarding data for session {context.session_id}")

            organization_id = context.organization_id
            if organization_id:
                if organizations.get(organization_id) is None:
                    raise NotFoundError("Organization", organization_id)
                if organizations.get_member(organization_id, context.user_id) is None:
                    raise ForbiddenError("Not a member of this organization")
            else:
                organization = organizations.create_from_data(
                    data.organization,
                    created_by=context.user_id,
                    settings={
                        "teamStructure": data.team_structure.to_json(),
                        "preferences": data.preferences.to_json(),
                    },
                )
                organization_id = organization.id
                organizations.add_member(
                    organization_id,
                    context.user_id,
                    "org_owner",
                    job_title=data.user_profile.job_title,
                )

            objective_ids = []
            for objective in data.objectives:
                organizations.add_objective(organization_id, context.session_id, objective)
                objective_ids.append(objective.id)
            for key_result in data.key_results:
                organizations.add_key_result(key_result)

            session = sessions.get(context.session_id)
            if session is None:
                raise NotFoundError("Onboarding session", context.session_id)
            now = utcnow()
            session.status = SessionStatusEnum.completed
            session.completion_percentage = 100.0
            session.current_step = session.total_steps
            session.completed_at = now
            session.updated_at = now
            session.form_data = {
                "userProfile": data.user_profile.to_json(),
                "organization": data.organization.to_json(),
                "objectives": [objective.to_json() for objective in data.objectives],
                "preferences": data.preferences.to_json(),
            }

            self.commit()
            self.logger.info(f"Saved organization {organization_id} with {len(objective_ids)} objectives")

        except Exception as e:
            self.rollback()
            self.logger.error(f"Error saving onboarding data for session {context.session_id}: {str(e)}")
            return SaveResult(success=False, errors=[str(e)])

        if self.config.enable_cache:
            onboarding_status_cache.delete(onboarding_status_key(context.user_id))
        if self.config.enable_analytics:
            self.tracker.track("onboarding_data_saved", {
                "user_id": context.user_id,
                "session_id": context.session_id,
                "organization_id": organization_id,
                "objective_count": len(data.objectives),
                "key_result_count": len(data.key_results),
            })

        return SaveResult(success=True, organization_id=organization_id, objective_ids=objective_ids)

    def complete(self, session_data: Mapping[Any, Any], context: TransformationContext) -> SaveResult:
        """Transform then save; transformation errors are returned as messages."""
        result = self.transform(session_data, context)
        if not result.success:
            return SaveResult(success=False, errors=[issue.message for issue in result.errors])
        return self.save_to_database(result.data, context)

    def get_cached(self, session_id: str) -> Optional[TransformationResult]:
        return self.cache.get(f"transformation_{session_id}")

    def _map_steps(self, steps: Dict[int, Dict[str, Any]], context: TransformationContext) -> TransformedData:
        step1, step2, step3 = steps.get(1, {}), steps.get(2, {}), steps.get(3, {})
        step4, step5 = steps.get(4, {}), steps.get(5, {})

        comms = pick(step1, "communicationPreferences", "communication_preferences") or {}
        user_profile = UserProfileData(
            first_name=pick(step1, "firstName", "first_name", default=""),
            last_name=pick(step1, "lastName", "last_name", default=""),
            email=pick(step1, "email", default=""),
            job_title=pick(step1, "jobTitle", "job_title"),
            phone_number=pick(step1, "phoneNumber", "phone_number"),
            timezone=pick(step1, "timezone") or DEFAULT_TIMEZONE,
            language=pick(step1, "language") or "es",
            communication_preferences=CommunicationPreferences(
                email_notifications=_bool(comms, True, "emailNotifications", "email_notifications"),
                sms_notifications=_bool(comms, False, "smsNotifications", "sms_notifications"),
                push_notifications=_bool(comms, True, "pushNotifications", "push_notifications"),
                weekly_reports=_bool(comms, True, "weeklyReports", "weekly_reports"),
            ),
        )

        employee_count = _employee_count(pick(step2, "employeeCount", "employee_count"))
        departments = list(pick(step2, "departments") or [])
        organization = OrganizationData(
            name=pick(step2, "organizationName", "organization_name", "companyName", "company_name", default=""),
            industry=pick(step2, "industry", "industryId", "industry_id", default=""),
            size=pick(step2, "organizationSize", "organization_size", "companySize", "company_size") or "small",
            employee_count=employee_count,
            website=pick(step2, "website"),
            description=pick(step2, "description"),
            country=pick(step2, "country", default=""),
            city=pick(step2, "city"),
            founded_year=pick(step2, "foundedYear", "founded_year"),
            departments=departments,
            business_goals=list(pick(step3, "businessGoals", "business_goals") or []),
            current_challenges=list(pick(step3, "currentChallenges", "current_challenges") or []),
            okr_maturity=pick(step3, "okrMaturity", "okr_maturity") or "beginner",
        )

        time_horizon = pick(step3, "timeHorizon", "time_horizon") or "quarterly"
        objectives: List[ObjectiveData] = []
        key_results: List[KeyResultData] = []
        for index, raw in enumerate(pick(step4, "objectives") or []):
            objective_id = f"obj_{context.session_id}_{index}"
            owner = pick(raw, "owner") or context.user_id
            objectives.append(ObjectiveData(
                id=objective_id,
                title=pick(raw, "title", default=""),
                description=pick(raw, "description", default=""),
                owner=owner,
                priority=pick(raw, "priority") or "medium",
                category=pick(raw, "category") or "business",
                time_horizon=time_horizon,
            ))
            for kr_index, kr in enumerate(pick(raw, "keyResults", "key_results") or []):
                key_results.append(KeyResultData(
                    id=f"{objective_id}_kr_{kr_index}",
                    objective_id=objective_id,
                    title=pick(kr, "title", default=""),
                    description=pick(kr, "description"),
                    metric=pick(kr, "metric", default=""),
                    target=str(pick(kr, "target", default="")),
                    unit=pick(kr, "unit", default=""),
                    baseline=str(pick(kr, "baseline") or "0"),
                    owner=pick(kr, "owner") or owner,
                ))

        member_count = math.ceil(employee_count / len(departments)) if departments else 1
        team_structure = TeamStructureData(
            departments=[
                DepartmentData(
                    name=name,
                    description=f"Department: {name}",
                    head_of_department=context.user_id if index == 0 else None,
                    member_count=member_count or 1,
                )
                for index, name in enumerate(departments)
            ],
            roles=[RoleData(
                name=user_profile.job_title or "Manager",
                description="Leadership role",
                department_id="dept_1",
                level=1,
                permissions=["read", "write", "admin"],
            )],
            hierarchy_levels=max(1, min(math.ceil(math.log2(employee_count)), MAX_HIERARCHY_LEVELS)),
        )

        tracking = pick(step4, "trackingPreferences", "tracking_preferences") or {}
        notifications = pick(tracking, "notificationSettings", "notification_settings") or {}
        launch = pick(step5, "launchPreferences", "launch_preferences") or {}
        preferences = UserPreferencesData(
            okr_cycle=pick(step4, "okrCycle", "okr_cycle") or "quarterly",
            review_frequency=pick(step4, "reviewFrequency", "review_frequency") or "weekly",
            tracking_preferences=TrackingPreferences(
                update_frequency=pick(tracking, "updateFrequency", "update_frequency") or "weekly",
                notification_settings=NotificationSettings(
                    deadline_reminders=_bool(notifications, True, "deadlineReminders", "deadline_reminders"),
                    progress_alerts=_bool(notifications, True, "progressAlerts", "progress_alerts"),
                    team_updates=_bool(notifications, True, "teamUpdates", "team_updates"),
                ),
                reporting_format=pick(tracking, "reportingFormat", "reporting_format") or "dashboard",
            ),
            launch_preferences=LaunchPreferences(
                send_invitations=_bool(launch, False, "sendInvitations", "send_invitations"),
                schedule_kickoff=_bool(launch, False, "scheduleKickoff", "schedule_kickoff"),
                enable_notifications=_bool(launch, True, "enableNotifications", "enable_notifications"),
                setup_integrations=_bool(launch, False, "setupIntegrations", "setup_integrations"),
            ),
        )

        return TransformedData(
            user_profile=user_profile,
            organization=organization,
            objectives=objectives,
            key_results=key_results,
            team_structure=team_structure,
            preferences=preferences,
        )

    def _enhance_with_ai(self, data: TransformedData) -> bool:
        """Attach organization insights and lengthen objective descriptions; True if insights were produced."""
        org = data.organization
        ai_context = {
            "industry": org.industry,
            "organization_size": org.size,
            "okr_maturity": org.okr_maturity,
            "timeout": self.config.ai_timeout,
        }
        enhanced = False

        try:
            insights = self.suggester.suggest(
                "Analiza esta organización y genera insights estratégicos: "
                f"nombre {org.name}; industria {org.industry}; tamaño {org.size}; "
                f"empleados {org.employee_count}; objetivos {', '.join(org.business_goals)}; "
                f"desafíos {', '.join(org.current_challenges)}",
                ai_context,
            )
            if insights:
                org.ai_insights = {
                    "strategicRecommendations": insights,
                    "industryBenchmarks": {},
                    "growthOpportunities": {},
                    "riskFactors": {},
                    "generatedAt": utcnow().isoformat(),
                }
                enhanced = True
        except Exception as e:
            self.logger.warning(f"AI organization insights skipped: {str(e)}")

        for objective in data.objectives:
            try:
                improved = self.suggester.suggest(
                    "Mejora este objetivo para que sea más específico y medible: "
                    f"título {objective.title}; descripción {objective.description}; "
                    f"industria {org.industry}; contexto {', '.join(org.business_goals)}",
                    ai_context,
                )
            except Exception as e:
                self.logger.warning(f"AI enhancement skipped for objective {objective.id}: {str(e)}")
                continue
            if improved and len(improved) > len(objective.description):
                objective.description = improved

        return enhanced

    def _post_process(self, data: TransformedData) -> TransformedData:
        data.user_profile.first_name = clean_text(data.user_profile.first_name)
        data.user_profile.last_name = clean_text(data.user_profile.last_name)
        data.organization.name = clean_text(data.organization.name)

        if data.organization.website:
            data.organization.website = normalize_url(data.organization.website)

        data.objectives = [
            objective for objective in data.objectives
            if objective.title.strip() and objective.description.strip()
        ]
        kept = {objective.id for objective in data.objectives}
        data.key_results = [
            kr for kr in data.key_results
            if kr.objective_id in kept and kr.title.strip() and kr.metric.strip()
        ]

        if not data.organization.country:
            data.organization.country = DEFAULT_COUNTRY
        if not data.user_profile.timezone:
            data.user_profile.timezone = DEFAULT_TIMEZONE
        return data

    def _failure(self, errors: List[TransformationIssue], started: float) -> TransformationResult:
        return TransformationResult(
            success=False,
            errors=errors,
            metadata=TransformationMetadata(
                transformed_at=utcnow(),
                processing_time_ms=self._elapsed(started),
            ),
        )

    def _track(self, result: TransformationResult, context: TransformationContext) -> None:
        if not self.config.enable_analytics:
            return
        self.tracker.track("onboarding_data_transformed", {
            "session_id": context.session_id,
            "user_id": context.user_id,
            "success": result.success,
            "processing_time_ms": result.metadata.processing_time_ms,
            "ai_enhanced": result.metadata.ai_enhanced,
            "steps_processed": len(result.metadata.steps_processed),
            "objective_count": len(result.data.objectives) if result.data else 0,
            "key_result_count": len(result.data.key_results) if result.data else 0,
            "error_count": len(result.errors),
            "warning_count": len(result.warnings),
        })

    @staticmethod
    def _elapsed(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 3)


def create_transformation_pipeline(db: Optional[Session] = None, **overrides: Any) -> WizardDataTransformationPipeline:
    """Pipeline wired from settings: AI enhancement only when its feature flag is on."""
    config = TransformationConfig(**{
        "enable_ai": settings.feature_ai_enhancement,
        "strict_mode": settings.onboarding_strict_mode,
        "ai_timeout": settings.ai_timeout_seconds,
        "cache_ttl": settings.transformation_cache_ttl_seconds,
        **overrides,
    })
    return WizardDataTransformationPipeline(
        db,
        config=config,
        validator=create_validation_service(),
        suggester=build_suggester(config.enable_ai),
    )


def transform_step_data(step_number: int, step_data: Dict[str, Any], context: Optional[TransformationContext] = None) -> TransformedData:
    """Transform a single step in isolation; raises ValidationError when it fails."""
    context = context or TransformationContext(user_id="temp", session_id="temp")
    pipeline = create_transformation_pipeline(enable_cache=False)
    result = pipeline.transform({step_number: step_data}, context)
    if not result.success:
        raise ValidationError(
            f"Transformation failed: {', '.join(issue.message for issue in result.errors)}",
            {"errors": [issue.to_json() for issue in result.errors]},
        )
    return result.data
