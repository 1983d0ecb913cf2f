import pytest
from stratix.core.cache import TTLCache
from stratix.exceptions import AIServiceError
from stratix.services.ai import AISuggester
from stratix.services.analytics import AnalyticsTracker
from stratix.services.validation import OnboardingValidationService, ValidationConfig


class StaticSuggester(AISuggester):
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = 0

    def suggest(self, text, context=None):
        self.calls += 1
        if self.error:
            raise self.error
        return self.text


class TestOnboardingValidationService:
    """Test step, field and complete-session validation."""

    @pytest.fixture
    def tracker(self):
        return AnalyticsTracker()

    @pytest.fixture
    def validator(self, tracker):
        return OnboardingValidationService(
            config=ValidationConfig(enable_ai=False),
            cache=TTLCache(ttl_seconds=60),
            tracker=tracker,
        )

    def test_valid_welcome_step(self, validator, welcome_step):
        result = validator.validate_step(1, welcome_step)

        assert result.is_valid
        assert result.errors == []
        assert result.metadata.step_number == 1
        assert result.metadata.cache_hit is False

    def test_missing_required_fields_are_errors(self, validator):
        result = validator.validate_step(1, {"email": "maria@acme.mx"})

        assert not result.is_valid
        fields = {issue.field for issue in result.errors}
        assert {"firstName", "lastName", "timezone", "language"} <= fields

    def test_name_pattern_rejects_digits(self, validator, welcome_step):
        welcome_step["firstName"] = "M4ria"
        result = validator.validate_step(1, welcome_step)

        assert not result.is_valid
        assert any(issue.field == "firstName" for issue in result.errors)

    def test_disposable_email_is_a_warning_not_an_error(self, validator, welcome_step):
        welcome_step["email"] = "maria@mailinator.com"
        result = validator.validate_step(1, welcome_step)

        assert result.is_valid
        assert [warning.code for warning in result.warnings] == ["DISPOSABLE_EMAIL"]

    def test_size_mismatch_warning(self, validator, company_step):
        company_step["organizationSize"] = "startup"
        company_step["employeeCount"] = 300
        result = validator.validate_step(2, company_step)

        assert result.is_valid
        assert any(warning.code == "SIZE_MISMATCH" for warning in result.warnings)

    def test_future_founded_year_is_rejected(self, validator, company_step):
        company_step["foundedYear"] = 3000
        result = validator.validate_step(2, company_step)

        assert not result.is_valid
        assert any("futuro" in issue.message for issue in result.errors)

    def test_fewer_metrics_than_goals_suggests_more(self, validator, strategy_step):
        strategy_step["successMetrics"] = strategy_step["successMetrics"][:1]
        result = validator.validate_step(3, strategy_step)

        assert result.is_valid
        assert any(suggestion.field == "successMetrics" for suggestion in result.suggestions)

    def test_too_many_key_results_warning(self, validator, okr_step):
        kr = okr_step["objectives"][0]["keyResults"][0]
        okr_step["objectives"][0]["keyResults"] = [dict(kr) for _ in range(4)]
        result = validator.validate_step(4, okr_step)

        assert any(warning.code == "TOO_MANY_KRS" for warning in result.warnings)

    def test_review_step_requires_consents(self, validator, review_step):
        review_step["termsAccepted"] = False
        result = validator.validate_step(5, review_step)

        assert not result.is_valid
        assert any("términos" in issue.message for issue in result.errors)

    def test_unknown_step_is_a_system_error(self, validator):
        result = validator.validate_step(9, {})

        assert not result.is_valid
        assert result.errors[0].field == "_system"
        assert result.errors[0].code == "VALIDATION_ERROR"

    def test_second_validation_is_served_from_cache(self, validator, welcome_step):
        first = validator.validate_step(1, welcome_step)
        second = validator.validate_step(1, dict(welcome_step))

        assert first.metadata.cache_hit is False
        assert second.metadata.cache_hit is True
        assert second.is_valid == first.is_valid

    def test_validation_emits_analytics(self, validator, tracker, welcome_step):
        validator.validate_step(1, welcome_step, {"user_id": "user_test", "session_id": "s1"})

        events = tracker.events("onboarding_validation")
        assert len(events) == 1
        assert events[0]["properties"]["is_valid"] is True
        assert events[0]["properties"]["user_id"] == "user_test"

    def test_ai_suggestion_added_when_enabled(self, tracker, welcome_step):
        suggester = StaticSuggester("Agrega tu teléfono para recibir alertas")
        validator = OnboardingValidationService(
            config=ValidationConfig(enable_ai=True, enable_cache=False),
            suggester=suggester,
            tracker=tracker,
        )
        result = validator.validate_step(1, welcome_step)

        ai = [suggestion for suggestion in result.suggestions if suggestion.field == "_ai"]
        assert len(ai) == 1
        assert ai[0].confidence == 0.7
        assert result.metadata.ai_used is True

    def test_ai_failure_degrades_to_no_suggestions(self, tracker, welcome_step):
        suggester = StaticSuggester(error=AIServiceError("gateway timeout"))
        validator = OnboardingValidationService(
            config=ValidationConfig(enable_ai=True, enable_cache=False),
            suggester=suggester,
            tracker=tracker,
        )
        result = validator.validate_step(1, welcome_step)

        assert result.is_valid
        assert not any(suggestion.field == "_ai" for suggestion in result.suggestions)
        assert result.metadata.ai_used is False
        assert suggester.calls == 1

    def test_validate_field_only_reports_that_field(self, validator):
        result = validator.validate_field(1, "firstName", "M")

        assert [issue.field for issue in result.errors] == ["firstName"]

    def test_validate_field_disposable_email(self, validator):
        result = validator.validate_field(1, "email", "someone@tempmail.org")

        assert result.errors == []
        assert result.warnings[0].code == "DISPOSABLE_EMAIL"

    def test_validate_field_short_organization_name(self, validator):
        result = validator.validate_field(2, "organizationName", "Acme")

        assert len(result.suggestions) == 1

    def test_validate_field_unknown_step(self, validator):
        result = validator.validate_field(7, "anything", "x")

        assert result.errors == [] and result.warnings == [] and result.suggestions == []

    def test_validate_complete_valid_session(self, validator, wizard_data):
        result = validator.validate_complete(wizard_data)

        assert result.is_valid
        assert result.metadata.step_number == 0
        assert not any(warning.code == "DOMAIN_MISMATCH" for warning in result.warnings)

    def test_validate_complete_domain_mismatch(self, validator, wizard_data):
        wizard_data["2"]["website"] = "https://otraempresa.com"
        result = validator.validate_complete(wizard_data)

        assert any(warning.code == "DOMAIN_MISMATCH" for warning in result.warnings)

    def test_validate_complete_fewer_objectives_than_goals(self, validator, wizard_data):
        wizard_data["3"]["businessGoals"].append("Reducir churn")
        wizard_data["3"]["successMetrics"].append(
            {"name": "Churn", "target": "3", "unit": "%", "frequency": "monthly"}
        )
        result = validator.validate_complete(wizard_data)

        assert any(suggestion.field == "cross_validation" for suggestion in result.suggestions)

    def test_validate_complete_collects_step_errors(self, validator, wizard_data):
        wizard_data["1"]["email"] = "no-es-un-correo"
        result = validator.validate_complete(wizard_data)

        assert not result.is_valid
        assert any(issue.field == "email" for issue in result.errors)
