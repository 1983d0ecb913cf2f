from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, Dict, List, Literal, Optional
from datetime import datetime, timezone
from enum import Enum

from .core.roles import RoleType


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire; accepts either on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# ORM enum columns rendered as their plain string value
EnumValue = Annotated[str, BeforeValidator(_enum_value)]


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# Client timestamps compared against naive UTC columns
UTCDateTime = Annotated[datetime, AfterValidator(_naive_utc)]


def envelope(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    """Successful response envelope."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, mode="json")
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


# --- Validation results ---------------------------------------------------

class ValidationIssue(CamelModel):
    field: str
    code: str
    message: str
    severity: Literal["error", "warning"] = "error"
    context: Optional[Dict[str, Any]] = None


class ValidationWarning(CamelModel):
    field: str
    code: str
    message: str
    recommendation: Optional[str] = None


class ValidationSuggestion(CamelModel):
    field: str
    type: Literal["improvement", "alternative", "completion"] = "improvement"
    message: str
    value: Optional[Any] = None
    confidence: float


class ValidationMetadata(CamelModel):
    validated_at: datetime
    validated_by: str = "OnboardingValidationService"
    step_number: int
    duration_ms: float = 0
    ai_used: bool = False
    cache_hit: bool = False


class FieldValidationResult(CamelModel):
    errors: List[ValidationIssue] = []
    warnings: List[ValidationWarning] = []
    suggestions: List[ValidationSuggestion] = []


class ValidationResult(FieldValidationResult):
    is_valid: bool
    metadata: ValidationMetadata


# --- Transformation pipeline ---------------------------------------------

class CommunicationPreferences(CamelModel):
    email_notifications: bool = True
    sms_notifications: bool = False
    push_notifications: bool = True
    weekly_reports: bool = True


class UserProfileData(CamelModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    job_title: Optional[str] = None
    phone_number: Optional[str] = None
    timezone: str = "America/Mexico_City"
    language: Literal["es", "en"] = "es"
    communication_preferences: CommunicationPreferences = Field(default_factory=CommunicationPreferences)


class OrganizationData(CamelModel):
    name: str = ""
    industry: str = ""
    size: str = "small"
    employee_count: int = 1
    website: Optional[str] = None
    description: Optional[str] = None
    country: str = ""
    city: Optional[str] = None
    founded_year: Optional[int] = None
    departments: List[str] = []
    ai_insights: Dict[str, Any] = {}
    business_goals: List[str] = []
    current_challenges: List[str] = []
    okr_maturity: str = "beginner"


class ObjectiveData(CamelModel):
    id: str
    title: str
    description: str
    owner: str
    priority: Literal["high", "medium", "low"] = "medium"
    category: str = "business"
    time_horizon: str = "quarterly"
    status: Literal["draft", "active", "completed"] = "draft"
    parent_id: Optional[str] = None
    department_id: Optional[str] = None


class KeyResultData(CamelModel):
    id: str
    objective_id: str
    title: str
    description: Optional[str] = None
    metric: str
    target: str
    unit: str = ""
    baseline: str = "0"
    owner: str
    status: Literal["draft", "active", "completed"] = "draft"
    tracking_frequency: Literal["daily", "weekly", "monthly"] = "weekly"


class DepartmentData(CamelModel):
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    head_of_department: Optional[str] = None
    member_count: int = 1


class RoleData(CamelModel):
    name: str
    description: Optional[str] = None
    department_id: str
    level: int
    permissions: List[str] = []


class TeamStructureData(CamelModel):
    departments: List[DepartmentData] = []
    roles: List[RoleData] = []
    hierarchy_levels: int = 1
    reporting_structure: Dict[str, str] = {}


class NotificationSettings(CamelModel):
    deadline_reminders: bool = True
    progress_alerts: bool = True
    team_updates: bool = True


class TrackingPreferences(CamelModel):
    update_frequency: str = "weekly"
    notification_settings: NotificationSettings = Field(default_factory=NotificationSettings)
    reporting_format: str = "dashboard"


class LaunchPreferences(CamelModel):
    send_invitations: bool = False
    schedule_kickoff: bool = False
    enable_notifications: bool = True
    setup_integrations: bool = False


class UserPreferencesData(CamelModel):
    okr_cycle: str = "quarterly"
    review_frequency: str = "weekly"
    tracking_preferences: TrackingPreferences = Field(default_factory=TrackingPreferences)
    launch_preferences: LaunchPreferences = Field(default_factory=LaunchPreferences)


class TransformedData(CamelModel):
    user_profile: UserProfileData = Field(default_factory=UserProfileData)
    organization: OrganizationData = Field(default_factory=OrganizationData)
    objectives: List[ObjectiveData] = []
    key_results: List[KeyResultData] = []
    team_structure: TeamStructureData = Field(default_factory=TeamStructureData)
    preferences: UserPreferencesData = Field(default_factory=UserPreferencesData)


class TransformationIssue(CamelModel):
    step: int = 0
    field: str
    code: str
    message: str
    original_value: Optional[Any] = None
    context: Optional[Dict[str, Any]] = None


class TransformationWarning(CamelModel):
    step: int = 0
    field: str
    message: str
    suggestion: Optional[str] = None


class TransformationMetadata(CamelModel):
    transformed_at: datetime
    transformed_by: str = "WizardDataTransformationPipeline"
    processing_time_ms: float = 0
    ai_enhanced: bool = False
    steps_processed: List[int] = []
    validation_passed: bool = False


class TransformationResult(CamelModel):
    success: bool
    data: Optional[TransformedData] = None
    errors: List[TransformationIssue] = []
    warnings: List[TransformationWarning] = []
    metadata: TransformationMetadata


class TransformationContext(CamelModel):
    user_id: str
    session_id: str
    organization_id: Optional[str] = None


class SaveResult(CamelModel):
    success: bool
    organization_id: Optional[str] = None
    objective_ids: List[str] = []
    errors: List[str] = []


# --- Onboarding API -------------------------------------------------------

class OnboardingStartRequest(BaseModel):
    user_preferences: Dict[str, Any] = {}
    context: Dict[str, Any] = {}
    restart: bool = False


class OnboardingProgressRequest(BaseModel):
    session_id: str = Field(..., min_length=1)
    step_number: int = Field(..., ge=1, le=5)
    step_data: Dict[str, Any] = {}
    completed: bool = False
    skipped: bool = False
    auto_advance: bool = True


class OnboardingSessionPatch(BaseModel):
    current_step: Optional[int] = Field(None, ge=1, le=5)
    form_data: Optional[Dict[str, Any]] = None


class StepValidationRequest(BaseModel):
    step_number: int
    data: Dict[str, Any] = {}
    session_id: Optional[str] = None


class FieldValidationRequest(BaseModel):
    step_number: int
    field: str = Field(..., min_length=1)
    value: Any = None


class CompleteOnboardingRequest(BaseModel):
    session_id: Optional[str] = None
    organization_id: Optional[str] = None


class ProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    step_number: int
    step_name: str
    step_data: Dict[str, Any]
    completed: bool
    skipped: bool
    ai_validation: Optional[Dict[str, Any]] = None
    completion_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    status: EnumValue
    current_step: int
    total_steps: int
    form_data: Dict[str, Any]
    ai_suggestions: Optional[Any] = None
    completion_percentage: float
    completed_at: Optional[datetime] = None
    expires_at: datetime
    created_at: datetime
    updated_at: datetime


# --- Admin: users ---------------------------------------------------------

ProfileStatus = Literal["active", "inactive", "pending", "suspended"]
BatchAction = Literal["activate", "deactivate", "delete", "update_role", "transfer_company", "reset_password"]


class UserFilter(CamelModel):
    company_id: Optional[str] = None
    role_type: Optional[RoleType] = None
    status: Optional[ProfileStatus] = None
    department_id: Optional[str] = None
    search: Optional[str] = None
    created_after: Optional[UTCDateTime] = None
    created_before: Optional[UTCDateTime] = None
    last_active_after: Optional[UTCDateTime] = None
    last_active_before: Optional[UTCDateTime] = None
    limit: int = Field(50, ge=1, le=1000)
    offset: int = Field(0, ge=0)
    sort_by: Literal["name", "email", "createdAt", "lastActive", "company"] = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"


class BatchOptions(CamelModel):
    new_role: Optional[RoleType] = None
    new_company_id: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=500)
    notify_users: bool = False
    force_action: bool = False


class UserBatchRequest(CamelModel):
    action: BatchAction
    user_ids: List[str] = Field(..., min_length=1, max_length=100)
    options: BatchOptions = Field(default_factory=BatchOptions)


class BatchItemResult(CamelModel):
    user_id: str
    success: bool
    action: str
    message: str
    data: Optional[Dict[str, Any]] = None


class UserUpdates(CamelModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    role_type: Optional[RoleType] = None
    company_id: Optional[str] = None
    department_id: Optional[str] = None
    status: Optional[ProfileStatus] = None
    metadata: Optional[Dict[str, Any]] = None


class UserUpdateRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    updates: UserUpdates
    reason: Optional[str] = Field(None, max_length=500)
    notify_user: bool = False


class UserOut(CamelModel):
    id: str
    email: str
    display_name: Optional[str] = None
    role_type: RoleType
    company_id: Optional[str] = None
    company_name: str = "Unknown Company"
    department_id: Optional[str] = None
    status: EnumValue
    metadata: Dict[str, Any] = {}
    created_at: datetime
    last_active: Optional[datetime] = None


# --- Admin: invitations ---------------------------------------------------

InvitationStatus = Literal["pending", "sent", "accepted", "expired", "cancelled"]


class InvitationCreate(CamelModel):
    email: EmailStr
    company_id: str = Field(..., min_length=1)
    role_type: RoleType
    department_id: Optional[str] = None
    invitation_type: Literal["single", "batch"] = "single"
    expires_in_hours: int = Field(72, ge=1, le=168)
    welcome_message: Optional[str] = Field(None, max_length=500)
    auto_activate: bool = False


class BatchInvitationItem(CamelModel):
    email: EmailStr
    role_type: Optional[RoleType] = None
    department_id: Optional[str] = None
    expires_in_hours: int = Field(72, ge=1, le=168)
    welcome_message: Optional[str] = Field(None, max_length=500)


class InvitationBatchCreate(CamelModel):
    invitations: List[BatchInvitationItem] = Field(..., min_length=1, max_length=50)
    company_id: str = Field(..., min_length=1)
    default_role: Optional[RoleType] = None
    send_immediately: bool = True


class InvitationUpdate(CamelModel):
    invitation_id: str = Field(..., min_length=1)
    status: Optional[InvitationStatus] = None
    expires_at: Optional[UTCDateTime] = None
    role_type: Optional[RoleType] = None
    department_id: Optional[str] = None
    welcome_message: Optional[str] = Field(None, max_length=500)


class InvitationCancel(CamelModel):
    invitation_ids: List[str] = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


class InvitationAccept(CamelModel):
    invitation_code: str = Field(..., min_length=1)


class InvitationFilter(CamelModel):
    company_id: Optional[str] = None
    status: Optional[InvitationStatus] = None
    email: Optional[str] = None
    batch_id: Optional[str] = None
    limit: int = Field(100, ge=1, le=1000)
    offset: int = Field(0, ge=0)


class InvitationRecord(CamelModel):
    """Storage-neutral invitation, shared by every InvitationStore."""
    id: str
    email: str
    company_id: str
    role_type: RoleType
    department_id: Optional[str] = None
    invitation_code: str
    status: InvitationStatus = "pending"
    invitation_type: str = "single"
    batch_id: Optional[str] = None
    welcome_message: Optional[str] = None
    auto_activate: bool = False
    invited_by: str
    created_at: datetime
    expires_at: datetime
    sent_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    metadata: Dict[str, Any] = {}

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


# --- Admin: dashboard -----------------------------------------------------

class DashboardAction(CamelModel):
    action: str = Field(..., min_length=1)
    parameters: Dict[str, Any] = {}
