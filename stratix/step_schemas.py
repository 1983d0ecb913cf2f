"""Per-step schemas of the onboarding wizard.

Keys are accepted in camelCase (wizard payloads) or snake_case; the
company step also takes the older ``company_*`` vocabulary.
"""

from datetime import date
from typing import Dict, List, Literal, Optional, Type
from urllib.parse import urlparse

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

NAME_PATTERN = r"^[a-zA-ZáéíóúÁÉÍÓÚñÑüÜ\s]+$"
ORGANIZATION_NAME_PATTERN = r"^[a-zA-Z0-9áéíóúÁÉÍÓÚñÑüÜ\s\-&.,]+$"
PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"

OrganizationSize = Literal[
    "startup", "small", "medium", "large", "enterprise",
    "pyme", "empresa", "corporacion",
]


class StepModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CommunicationPreferencesInput(StepModel):
    email_notifications: bool
    sms_notifications: bool
    push_notifications: bool
    weekly_reports: bool


class WelcomeStep(StepModel):
    """Step 1: personal profile and communication preferences."""
    first_name: str = Field(..., min_length=2, max_length=50, pattern=NAME_PATTERN)
    last_name: str = Field(..., min_length=2, max_length=50, pattern=NAME_PATTERN)
    email: EmailStr
    job_title: Optional[str] = Field(None, min_length=2, max_length=100)
    phone_number: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    timezone: str = Field(..., min_length=1, max_length=50)
    language: Literal["es", "en"]
    communication_preferences: Optional[CommunicationPreferencesInput] = None

    @field_validator("email")
    @classmethod
    def _check_email_length(cls, value: str) -> str:
        if len(value) > 100:
            raise ValueError("El correo no puede exceder 100 caracteres")
        return value


class OrganizationStep(StepModel):
    """Step 2: organization information."""
    organization_name: str = Field(
        ..., min_length=2, max_length=100, pattern=ORGANIZATION_NAME_PATTERN,
        validation_alias=AliasChoices("organizationName", "organization_name", "companyName", "company_name"),
    )
    industry: str = Field(
        ..., min_length=1, max_length=50,
        validation_alias=AliasChoices("industry", "industryId", "industry_id"),
    )
    organization_size: OrganizationSize = Field(
        ..., validation_alias=AliasChoices("organizationSize", "organization_size", "companySize", "company_size"),
    )
    employee_count: int = Field(
        ..., ge=1, le=1_000_000,
        validation_alias=AliasChoices("employeeCount", "employee_count"),
    )
    website: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=500)
    country: str = Field(..., min_length=2, max_length=50)
    city: Optional[str] = Field(None, min_length=2, max_length=50)
    founded_year: Optional[int] = Field(None, ge=1800)
    departments: List[str] = Field(..., min_length=1, max_length=20)

    @field_validator("website")
    @classmethod
    def _check_website(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Debe ser una URL válida")
        return value

    @field_validator("founded_year")
    @classmethod
    def _check_founded_year(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value > date.today().year:
            raise ValueError("No puede ser un año futuro")
        return value


class SuccessMetric(StepModel):
    name: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    unit: str = Field(..., min_length=1)
    frequency: Literal["daily", "weekly", "monthly", "quarterly"]


class StrategyStep(StepModel):
    """Step 3: business goals and strategy."""
    business_goals: List[str] = Field(..., min_length=1, max_length=10)
    time_horizon: Literal["quarterly", "semi-annual", "annual", "multi-year"]
    current_challenges: List[str] = Field(..., min_length=1, max_length=10)
    success_metrics: List[SuccessMetric] = Field(..., min_length=1, max_length=15)
    okr_maturity: Literal["beginner", "developing", "proficient", "advanced", "expert"]
    strategic_priorities: List[str] = Field(..., min_length=1, max_length=7)
    competitive_advantages: Optional[List[str]] = Field(None, max_length=5)


class KeyResultInput(StepModel):
    title: str = Field(..., min_length=5, max_length=150)
    metric: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    unit: str = Field(..., min_length=1)
    baseline: str = Field(..., min_length=1)


class ObjectiveInput(StepModel):
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=10, max_length=300)
    owner: str = Field(..., min_length=1)
    priority: Literal["high", "medium", "low"]
    category: str = Field(..., min_length=1)
    key_results: List[KeyResultInput] = Field(..., min_length=1, max_length=5)


class TeamStructureInput(StepModel):
    departments: List[str] = Field(..., min_length=1)
    roles: List[str] = Field(..., min_length=1)
    hierarchy_levels: int = Field(..., ge=1, le=10)


class NotificationSettingsInput(StepModel):
    deadline_reminders: bool
    progress_alerts: bool
    team_updates: bool


class TrackingPreferencesInput(StepModel):
    update_frequency: Literal["daily", "weekly", "bi-weekly"]
    notification_settings: NotificationSettingsInput
    reporting_format: Literal["dashboard", "email", "presentation"]


class OKRSetupStep(StepModel):
    """Step 4: OKR cycle, objectives and tracking."""
    okr_cycle: Literal["quarterly", "monthly", "bi-annual", "annual"]
    review_frequency: Literal["weekly", "bi-weekly", "monthly"]
    objectives: List[ObjectiveInput] = Field(..., min_length=1, max_length=5)
    team_structure: TeamStructureInput
    tracking_preferences: TrackingPreferencesInput


class LaunchPreferencesInput(StepModel):
    send_invitations: bool
    schedule_kickoff: bool
    enable_notifications: bool
    setup_integrations: bool


class ReviewStep(StepModel):
    """Step 5: final review, consents and launch preferences."""
    final_review: bool
    terms_accepted: bool
    data_processing_consent: bool
    communication_consent: Optional[bool] = None
    feedback_opt_in: Optional[bool] = None
    launch_preferences: LaunchPreferencesInput
    additional_comments: Optional[str] = Field(None, max_length=1000)

    @field_validator("final_review")
    @classmethod
    def _require_final_review(cls, value: bool) -> bool:
        if value is not True:
            raise ValueError("Debe confirmar la revisión final")
        return value

    @field_validator("terms_accepted")
    @classmethod
    def _require_terms(cls, value: bool) -> bool:
        if value is not True:
            raise ValueError("Debe aceptar los términos y condiciones")
        return value

    @field_validator("data_processing_consent")
    @classmethod
    def _require_consent(cls, value: bool) -> bool:
        if value is not True:
            raise ValueError("Debe otorgar consentimiento para el procesamiento de datos")
        return value


STEP_SCHEMAS: Dict[int, Type[StepModel]] = {
    1: WelcomeStep,
    2: OrganizationStep,
    3: StrategyStep,
    4: OKRSetupStep,
    5: ReviewStep,
}

STEP_NAMES: Dict[int, str] = {
    1: "welcome",
    2: "company",
    3: "organization",
    4: "preferences",
    5: "review",
}

STEP_TITLES: Dict[int, str] = {
    1: "Bienvenida",
    2: "Información de la empresa",
    3: "Estrategia y objetivos",
    4: "Configuración de OKRs",
    5: "Revisión final",
}

STEP_ESTIMATED_MINUTES: Dict[int, int] = {1: 2, 2: 4, 3: 5, 4: 8, 5: 2}

TOTAL_STEPS = len(STEP_SCHEMAS)


def get_step_schema(step_number: int) -> Optional[Type[StepModel]]:
    return STEP_SCHEMAS.get(step_number)
