"""Onboarding validation.

Each wizard step is checked in three passes: the step schema, a few
hard-coded business rules, and (optionally) free-text suggestions from the
AI collaborator. Results are cached by a hash of (step, data).
"""

import json
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from stratix.core import settings, get_logger
from stratix.core.cache import TTLCache, compute_hash
from stratix.models import utcnow
from stratix.schemas import (
    FieldValidationResult,
    ValidationIssue,
    ValidationMetadata,
    ValidationResult,
    ValidationSuggestion,
    ValidationWarning,
)
from stratix.step_schemas import get_step_schema
from .ai import AISuggester, NullSuggester, build_suggester
from .analytics import AnalyticsTracker, analytics

DISPOSABLE_EMAIL_DOMAINS = frozenset({
    "10minutemail.com",
    "tempmail.org",
    "guerrillamail.com",
    "mailinator.com",
    "throwaway.email",
})

# Inclusive employee-count range for each declared organization size
SIZE_RANGES: Dict[str, Tuple[int, float]] = {
    "startup": (1, 10),
    "small": (11, 50),
    "pyme": (11, 50),
    "medium": (51, 200),
    "empresa": (51, 250),
    "large": (201, 1000),
    "corporacion": (251, float("inf")),
    "enterprise": (1001, float("inf")),
}

MAX_RECOMMENDED_KEY_RESULTS = 3

validation_cache = TTLCache(ttl_seconds=settings.validation_cache_ttl_seconds)


class ValidationConfig(BaseModel):
    enable_ai: bool = True
    enable_cache: bool = True
    enable_analytics: bool = True
    cache_ttl: int = 300
    ai_timeout: float = 5.0
    language: str = "es"
    strict_mode: bool = False


def pick(data: Optional[Mapping[str, Any]], *keys: str, default: Any = None) -> Any:
    """First present, non-None value among ``keys``."""
    if not data:
        return default
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def normalize_session_data(session_data: Optional[Mapping[Any, Any]]) -> Dict[int, Dict[str, Any]]:
    """Step-number keyed form data, with JSON string keys turned back into ints."""
    normalized: Dict[int, Dict[str, Any]] = {}
    for key, value in (session_data or {}).items():
        try:
            step = int(key)
        except (TypeError, ValueError):
            continue
        normalized[step] = dict(value or {})
    return normalized


def is_disposable_email(email: str) -> bool:
    domain = email.rsplit("@", 1)[-1].lower() if "@" in email else ""
    return domain in DISPOSABLE_EMAIL_DOMAINS


def _schema_issues(error: SchemaError) -> List[ValidationIssue]:
    issues = []
    for detail in error.errors():
        message = detail.get("msg", "")
        if detail.get("type") == "value_error" and "error" in detail.get("ctx", {}):
            message = str(detail["ctx"]["error"])
        issues.append(ValidationIssue(
            field=".".join(str(part) for part in detail.get("loc", ())),
            code=detail.get("type", "invalid"),
            message=message,
            severity="error",
        ))
    return issues


class OnboardingValidationService:
    """Validates wizard steps, single fields and complete sessions."""

    def __init__(
        self,
        config: Optional[ValidationConfig] = None,
        suggester: Optional[AISuggester] = None,
        cache: Optional[TTLCache] = None,
        tracker: Optional[AnalyticsTracker] = None,
    ):
        self.config = config or ValidationConfig()
        self.suggester = suggester or NullSuggester()
        self.cache = cache if cache is not None else validation_cache
        self.tracker = tracker or analytics
        self.logger = get_logger(self.__class__.__name__)

    def validate_step(
        self,
        step_number: int,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> ValidationResult:
        """Validate one step; never raises, internal failures become a ``_system`` error."""
        started = time.perf_counter()
        context = context or {}

        try:
            cache_key = self._cache_key(step_number, data)
            if self.config.enable_cache:
                cached = self.cache.get(cache_key)
                if cached is not None:
                    result = cached.model_copy(deep=True)
                    result.metadata.cache_hit = True
                    result.metadata.duration_ms = self._elapsed(started)
                    return result

            schema = get_step_schema(step_number)
            if schema is None:
                raise ValueError(f"Invalid step number: {step_number}")

            errors = self._schema_validation(schema, data)
            business_errors, warnings, suggestions = self._business_rules(step_number, data)
            errors.extend(business_errors)

            ai_used = False
            if self.config.enable_ai:
                ai_suggestions = self._ai_suggestions(step_number, data, context)
                ai_used = bool(ai_suggestions)
                suggestions.extend(ai_suggestions)

            result = ValidationResult(
                is_valid=not errors,
                errors=errors,
                warnings=warnings,
                suggestions=suggestions,
                metadata=ValidationMetadata(
                    validated_at=utcnow(),
                    step_number=step_number,
                    duration_ms=self._elapsed(started),
                    ai_used=ai_used,
                ),
            )

            if self.config.enable_cache:
                self.cache.set(cache_key, result.model_copy(deep=True), ttl_seconds=self.config.cache_ttl)

        except Exception as e:
            self.logger.exception(f"Validation of step {step_number} failed: {str(e)}")
            result = ValidationResult(
                is_valid=False,
                errors=[ValidationIssue(
                    field="_system",
                    code="VALIDATION_ERROR",
                    message="Error interno de validación",
                    context={"error": str(e)},
                )],
                metadata=ValidationMetadata(
                    validated_at=utcnow(),
                    step_number=step_number,
                    duration_ms=self._elapsed(started),
                ),
            )

        self._track(result, context)
        return result

    def validate_field(
        self,
        step_number: int,
        field: str,
        value: Any,
        context: Optional[Dict[str, Any]] = None,
    ) -> FieldValidationResult:
        """Live feedback for one field; errors of other fields are ignored."""
        schema = get_step_schema(step_number)
        if schema is None:
            return FieldValidationResult()

        errors: List[ValidationIssue] = []
        try:
            schema.model_validate({field: value})
        except SchemaError as e:
            for issue in _schema_issues(e):
                if field in issue.field.split("."):
                    issue.field = field
                    errors.append(issue)

        warnings: List[ValidationWarning] = []
        suggestions: List[ValidationSuggestion] = []

        if field == "email" and isinstance(value, str) and is_disposable_email(value):
            warnings.append(self._disposable_email_warning(field))

        if field in ("organizationName", "organization_name", "companyName", "company_name") \
                and isinstance(value, str) and len(value) < 5:
            suggestions.append(ValidationSuggestion(
                field=field,
                type="improvement",
                message="Un nombre más descriptivo ayuda a identificar mejor tu organización",
                confidence=0.6,
            ))

        return FieldValidationResult(errors=errors, warnings=warnings, suggestions=suggestions)

    def validate_complete(
        self,
        session_data: Mapping[Any, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> ValidationResult:
        """Validate every submitted step, then the cross-step heuristics."""
        started = time.perf_counter()
        steps = normalize_session_data(session_data)
        context = dict(context or {})

        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        suggestions: List[ValidationSuggestion] = []

        for step_number in sorted(steps):
            previous = {number: data for number, data in steps.items() if number < step_number}
            step_result = self.validate_step(
                step_number,
                steps[step_number],
                {**context, "previous_steps": previous},
            )
            errors.extend(step_result.errors)
            warnings.extend(step_result.warnings)
            suggestions.extend(step_result.suggestions)

        cross_warnings, cross_suggestions = self._cross_step_rules(steps)
        warnings.extend(cross_warnings)
        suggestions.extend(cross_suggestions)

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            suggestions=suggestions,
            metadata=ValidationMetadata(
                validated_at=utcnow(),
                step_number=0,
                duration_ms=self._elapsed(started),
                ai_used=self.config.enable_ai and not isinstance(self.suggester, NullSuggester),
            ),
        )

    def get_step_schema(self, step_number: int):
        return get_step_schema(step_number)

    def _schema_validation(self, schema, data: Dict[str, Any]) -> List[ValidationIssue]:
        try:
            schema.model_validate(data)
        except SchemaError as e:
            return _schema_issues(e)
        return []

    def _business_rules(
        self, step_number: int, data: Dict[str, Any]
    ) -> Tuple[List[ValidationIssue], List[ValidationWarning], List[ValidationSuggestion]]:
        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        suggestions: List[ValidationSuggestion] = []

        if step_number == 1:
            email = data.get("email")
            if isinstance(email, str) and is_disposable_email(email):
                warnings.append(self._disposable_email_warning("email"))

        elif step_number == 2:
            employee_count = pick(data, "employeeCount", "employee_count")
            size = pick(data, "organizationSize", "organization_size", "companySize", "company_size")
            if isinstance(employee_count, (int, float)) and size in SIZE_RANGES:
                low, high = SIZE_RANGES[size]
                if employee_count < low or employee_count > high:
                    warnings.append(ValidationWarning(
                        field="employeeCount",
                        code="SIZE_MISMATCH",
                        message=f'El número de empleados no coincide con el tamaño "{size}"',
                        recommendation="Verifica que la información sea consistente",
                    ))

        elif step_number == 3:
            goals = pick(data, "businessGoals", "business_goals")
            metrics = pick(data, "successMetrics", "success_metrics")
            if isinstance(goals, list) and isinstance(metrics, list) and len(metrics) < len(goals):
                suggestions.append(ValidationSuggestion(
                    field="successMetrics",
                    type="improvement",
                    message="Considera agregar más métricas para cada objetivo empresarial",
                    confidence=0.8,
                ))

        elif step_number == 4:
            objectives = data.get("objectives")
            if isinstance(objectives, list):
                for index, objective in enumerate(objectives):
                    if not isinstance(objective, dict):
                        continue
                    key_results = pick(objective, "keyResults", "key_results")
                    if isinstance(key_results, list) and len(key_results) > MAX_RECOMMENDED_KEY_RESULTS:
                        warnings.append(ValidationWarning(
                            field=f"objectives.{index}.keyResults",
                            code="TOO_MANY_KRS",
                            message="Se recomienda un máximo de 3 resultados clave por objetivo",
                            recommendation="Los KRs más específicos son más fáciles de medir",
                        ))

        return errors, warnings, suggestions

    def _cross_step_rules(
        self, steps: Dict[int, Dict[str, Any]]
    ) -> Tuple[List[ValidationWarning], List[ValidationSuggestion]]:
        warnings: List[ValidationWarning] = []
        suggestions: List[ValidationSuggestion] = []
        step1, step2 = steps.get(1, {}), steps.get(2, {})
        step3, step4 = steps.get(3, {}), steps.get(4, {})

        email = step1.get("email")
        website = step2.get("website")
        if isinstance(email, str) and isinstance(website, str) and "@" in email:
            email_domain = email.split("@", 1)[1].lower()
            website_domain = website.lower()
            for prefix in ("https://", "http://"):
                if website_domain.startswith(prefix):
                    website_domain = website_domain[len(prefix):]
            if website_domain.startswith("www."):
                website_domain = website_domain[4:]
            if email_domain and website_domain and email_domain not in website_domain:
                warnings.append(ValidationWarning(
                    field="cross_validation",
                    code="DOMAIN_MISMATCH",
                    message="El dominio del correo no coincide con el sitio web de la organización",
                    recommendation="Verifica que la información sea consistente",
                ))

        goals = pick(step3, "businessGoals", "business_goals")
        objectives = step4.get("objectives")
        if isinstance(goals, list) and isinstance(objectives, list) and len(objectives) < len(goals):
            suggestions.append(ValidationSuggestion(
                field="cross_validation",
                type="improvement",
                message="Considera crear objetivos OKR para todos tus objetivos empresariales",
                confidence=0.9,
            ))

        return warnings, suggestions

    def _ai_suggestions(
        self, step_number: int, data: Dict[str, Any], context: Dict[str, Any]
    ) -> List[ValidationSuggestion]:
        previous = context.get("previous_steps") or {}
        company = previous.get(2) or previous.get("2") or {}
        prompt = (
            f"Valida y mejora estos datos del paso {step_number} de onboarding: "
            f"{json.dumps(data, ensure_ascii=False, default=str)}"
        )
        try:
            text = self.suggester.suggest(prompt, {
                "step": step_number,
                "industry": pick(company, "industry", "industry_id"),
                "organization_size": pick(company, "organizationSize", "company_size"),
                "timeout": self.config.ai_timeout,
            })
        except Exception as e:
            self.logger.warning(f"AI validation skipped for step {step_number}: {str(e)}")
            return []

        if not text:
            return []
        return [ValidationSuggestion(field="_ai", type="improvement", message=text, confidence=0.7)]

    def _track(self, result: ValidationResult, context: Dict[str, Any]) -> None:
        if not self.config.enable_analytics:
            return
        self.tracker.track("onboarding_validation", {
            "step_number": result.metadata.step_number,
            "is_valid": result.is_valid,
            "error_count": len(result.errors),
            "warning_count": len(result.warnings),
            "suggestion_count": len(result.suggestions),
            "cache_hit": result.metadata.cache_hit,
            "user_id": context.get("user_id"),
            "session_id": context.get("session_id"),
        })

    @staticmethod
    def _disposable_email_warning(field: str) -> ValidationWarning:
        return ValidationWarning(
            field=field,
            code="DISPOSABLE_EMAIL",
            message="Considera usar tu correo empresarial",
            recommendation="Los correos empresariales facilitan la gestión del equipo",
        )

    @staticmethod
    def _cache_key(step_number: int, data: Dict[str, Any]) -> str:
        return f"validation_step{step_number}_{compute_hash(step_number, data)}"

    @staticmethod
    def _elapsed(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 3)


def create_validation_service(**overrides: Any) -> OnboardingValidationService:
    """Service wired from settings: AI only when the validation feature flag is on."""
    config = ValidationConfig(
        enable_ai=settings.feature_ai_validation,
        cache_ttl=settings.validation_cache_ttl_seconds,
        ai_timeout=settings.ai_timeout_seconds,
        **overrides,
    )
    return OnboardingValidationService(config=config, suggester=build_suggester(config.enable_ai))
