from datetime import datetime, timedelta

import pytest
from stratix.models import OnboardingProgress, OnboardingSession
from stratix.services.wizard_transformer import WizardDataTransformer, form_data_by_step_name


@pytest.fixture
def transformer():
    return WizardDataTransformer()


@pytest.fixture
def named_form_data():
    return {
        "welcome": {
            "full_name": "María González",
            "job_title": "Directora",
            "email": "maria@acme.mx",
            "experience_with_okr": "none",
            "primary_goal": "Ordenar prioridades",
            "urgency_level": "high",
        },
        "company": {"company_name": "Acme", "industry_id": "technology", "company_size": "startup", "country": "México"},
        "organization": {"business_goals": ["Crecer"], "current_challenges": ["alignment"], "okr_maturity": "beginner"},
        "preferences": {"language": "es", "ai_assistance_level": "extensive"},
    }


def progress_step(number, name, completed=True, seconds=None):
    created = datetime(2026, 3, 1, 12, 0, 0)
    return OnboardingProgress(
        session_id="s1",
        step_number=number,
        step_name=name,
        completed=completed,
        skipped=False,
        created_at=created,
        completion_time=created + timedelta(seconds=seconds) if seconds is not None else None,
    )


class TestWizardDataTransformer:

    def test_step_numbers_are_renamed(self):
        named = form_data_by_step_name({"1": {"a": 1}, "2": {"b": 2}, "extra": {"c": 3}, "_flag": True})

        assert named == {"welcome": {"a": 1}, "company": {"b": 2}, "extra": {"c": 3}}

    def test_org_data_from_named_sections(self, transformer, named_form_data):
        result = transformer.transform_wizard_to_org_data(named_form_data)

        org = result["organization"]
        assert org["name"] == "Acme"
        assert org["size"] == "startup"
        assert org["primary_contact"]["name"] == "María González"
        assert org["business_goals"] == ["Crecer"]
        assert [item["type"] for item in result["recommendations"]] == ["learning", "strategy", "process"]
        assert "Revisar las sugerencias de OKRs generadas por IA" in result["next_steps"]
        assert result["next_steps"][-1] == "Programar la primera revisión de progreso"

    def test_org_data_from_numbered_sections(self, transformer, wizard_data):
        org = transformer.transform_wizard_to_org_data(wizard_data)["organization"]

        assert org["name"] == "Acme México"
        assert org["primary_contact"]["name"] == "María González"

    def test_empty_form_data_uses_defaults(self, transformer):
        result = transformer.transform_wizard_to_org_data({})

        assert result["organization"]["size"] == "startup"
        assert result["organization"]["okr_maturity"] == "beginner"
        assert result["recommendations"] == []
        assert len(result["next_steps"]) == 3

    def test_okr_setup(self, transformer, named_form_data):
        setup = transformer.transform_for_okr_setup(named_form_data)

        assert setup["suggested_objectives"][0]["priority"] == "high"
        assert setup["suggested_objectives"][-1]["title"] == "Avanzar en Crecer"
        assert setup["team_structure"]["hierarchy"] == "flat"
        assert setup["priority_matrix"]["high_priority"] == ["Atención inmediata: Ordenar prioridades"]
        assert setup["priority_matrix"]["low_priority"] == ["Resolver: alignment"]

    def test_okr_setup_unknown_industry(self, transformer):
        setup = transformer.transform_for_okr_setup({"company": {"industry_id": "mining", "company_size": "huge"}})

        assert all(item["source"] == "industry" for item in setup["suggested_objectives"])
        assert setup["team_structure"]["hierarchy"] == "hierarchical"

    def test_completion_analytics(self, transformer):
        session = OnboardingSession(total_steps=5)
        progress = [
            progress_step(1, "welcome", seconds=30),
            progress_step(2, "company", seconds=300),
            progress_step(3, "organization", completed=False),
        ]

        analytics = transformer.extract_completion_analytics(session, progress)

        assert analytics["completion_rate"] == 40.0
        assert analytics["time_spent_ms"] == 330000
        assert "Baja tasa de finalización (40.0%)" in analytics["risk_factors"]
        assert "Paso 'welcome' completado demasiado rápido" in analytics["risk_factors"]
        assert not any("company" in factor for factor in analytics["risk_factors"])

    def test_completion_analytics_zero_total_steps(self, transformer):
        analytics = transformer.extract_completion_analytics(OnboardingSession(total_steps=0), [])

        assert analytics["completion_rate"] == 0
        assert analytics["step_analytics"] == []
