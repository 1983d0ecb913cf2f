import pytest
from stratix.core.cache import TTLCache, onboarding_status_cache, onboarding_status_key
from stratix.exceptions import AIServiceError, ValidationError
from stratix.models import KeyResult, Objective, Organization, OrganizationMember, SessionStatusEnum
from stratix.repositories import OnboardingSessionRepository
from stratix.schemas import TransformationContext
from stratix.services.ai import AISuggester
from stratix.services.analytics import AnalyticsTracker
from stratix.services.transformation import (
    TransformationConfig,
    WizardDataTransformationPipeline,
    clean_text,
    normalize_url,
    transform_step_data,
)
from stratix.services.validation import OnboardingValidationService, ValidationConfig


class ScriptedSuggester(AISuggester):
    """Answers from a list of replies; an exception in the list is raised."""

    def __init__(self, *replies):
        self.replies = list(replies)

    def suggest(self, text, context=None):
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_pipeline(db=None, suggester=None, **config):
    return WizardDataTransformationPipeline(
        db,
        config=TransformationConfig(**{"enable_ai": False, **config}),
        validator=OnboardingValidationService(config=ValidationConfig(enable_ai=False), cache=TTLCache()),
        suggester=suggester,
        cache=TTLCache(),
        tracker=AnalyticsTracker(),
    )


@pytest.fixture
def context():
    return TransformationContext(user_id="admin", session_id="sess_1")


class TestTextHelpers:

    def test_clean_text_collapses_and_strips(self):
        assert clean_text("  Acme   México!!  ") == "Acme México"

    def test_clean_text_caps_length(self):
        assert len(clean_text("a" * 500)) == 200

    def test_clean_text_empty(self):
        assert clean_text(None) == ""

    def test_normalize_url(self):
        assert normalize_url("acme.mx/") == "https://acme.mx"
        assert normalize_url("http://acme.mx") == "http://acme.mx"
        assert normalize_url("") == ""


class TestTransform:
    """Test mapping, defaults and validation modes."""

    def test_maps_complete_session(self, wizard_data, context):
        result = make_pipeline().transform(wizard_data, context)

        assert result.success
        data = result.data
        assert data.user_profile.first_name == "María"
        assert data.organization.name == "Acme México"
        assert data.organization.employee_count == 25
        assert data.organization.website == "https://www.acme.mx"
        assert [objective.id for objective in data.objectives] == ["obj_sess_1_0", "obj_sess_1_1"]
        assert data.key_results[0].id == "obj_sess_1_0_kr_0"
        assert data.key_results[0].objective_id == "obj_sess_1_0"
        assert data.objectives[0].time_horizon == "annual"
        assert result.metadata.steps_processed == [1, 2, 3, 4, 5]
        assert result.metadata.validation_passed is True

    def test_team_structure(self, wizard_data, context):
        team = make_pipeline().transform(wizard_data, context).data.team_structure

        assert [department.name for department in team.departments] == ["Producto", "Ventas"]
        assert team.departments[0].head_of_department == "admin"
        assert team.departments[1].head_of_department is None
        assert team.departments[0].member_count == 13
        assert team.hierarchy_levels == 5

    def test_defaults_for_sparse_data(self, context):
        result = make_pipeline(enable_validation=False).transform({}, context)

        assert result.success
        data = result.data
        assert data.user_profile.timezone == "America/Mexico_City"
        assert data.user_profile.language == "es"
        assert data.organization.size == "small"
        assert data.organization.employee_count == 1
        assert data.organization.okr_maturity == "beginner"
        assert data.organization.country == "México"
        assert data.team_structure.hierarchy_levels == 1
        assert data.objectives == []

    def test_owner_and_baseline_fallbacks(self, context):
        steps = {4: {"objectives": [{
            "title": "Mejorar retención",
            "description": "Reducir cancelaciones",
            "keyResults": [{"title": "Churn menor a 3%", "metric": "churn", "target": 3}],
        }]}}
        data = make_pipeline(enable_validation=False).transform(steps, context).data

        assert data.objectives[0].owner == "admin"
        assert data.objectives[0].priority == "medium"
        assert data.objectives[0].category == "business"
        assert data.key_results[0].baseline == "0"
        assert data.key_results[0].target == "3"
        assert data.key_results[0].owner == "admin"

    def test_drops_empty_objectives_and_orphan_key_results(self, context):
        steps = {4: {"objectives": [
            {"title": "", "description": "", "keyResults": [{"title": "KR huérfano", "metric": "m", "target": "1"}]},
            {"title": "Objetivo válido", "description": "Con descripción", "keyResults": [
                {"title": "", "metric": "m", "target": "1"},
                {"title": "KR válido", "metric": "m", "target": "1"},
            ]},
        ]}}
        data = make_pipeline(enable_validation=False).transform(steps, context).data

        assert [objective.id for objective in data.objectives] == ["obj_sess_1_1"]
        assert [kr.id for kr in data.key_results] == ["obj_sess_1_1_kr_1"]

    def test_strict_mode_rejects_invalid_data(self, wizard_data, context):
        wizard_data["1"]["email"] = "invalido"
        result = make_pipeline(strict_mode=True).transform(wizard_data, context)

        assert not result.success
        assert result.data is None
        assert any(issue.field == "email" and issue.step == 0 for issue in result.errors)

    def test_lenient_mode_records_validation_errors_as_warnings(self, wizard_data, context):
        wizard_data["1"]["email"] = "invalido"
        result = make_pipeline().transform(wizard_data, context)

        assert result.success
        assert result.metadata.validation_passed is False
        assert any(warning.field == "email" for warning in result.warnings)

    def test_result_is_cached(self, wizard_data, context):
        pipeline = make_pipeline()
        pipeline.transform(wizard_data, context)

        cached = pipeline.get_cached("sess_1")
        assert cached is not None
        assert cached.success

    def test_transformation_emits_analytics(self, wizard_data, context):
        pipeline = make_pipeline()
        pipeline.transform(wizard_data, context)

        events = pipeline.tracker.events("onboarding_data_transformed")
        assert events[0]["properties"]["objective_count"] == 2

    @pytest.mark.parametrize("employee_count", [-5, 0, "muchos", None])
    def test_bad_employee_count_is_carried_forward(self, wizard_data, context, employee_count):
        wizard_data["2"]["employeeCount"] = employee_count
        result = make_pipeline().transform(wizard_data, context)

        assert result.success
        assert result.metadata.validation_passed is False
        assert result.data.organization.employee_count == 1
        assert result.data.team_structure.hierarchy_levels == 1
        assert all(department.member_count == 1 for department in result.data.team_structure.departments)

    def test_unexpected_error_becomes_system_issue(self, context, monkeypatch):
        def broken(self, steps, context):
            raise RuntimeError("mapping failed")

        monkeypatch.setattr(WizardDataTransformationPipeline, "_map_steps", broken)
        result = make_pipeline(enable_validation=False).transform({2: {"employeeCount": 10}}, context)

        assert not result.success
        assert result.errors[0].field == "_system"
        assert result.errors[0].code == "TRANSFORMATION_ERROR"
        assert result.errors[0].context == {"error": "mapping failed"}

    def test_transform_step_data_raises_on_failure(self, monkeypatch):
        def broken(self, steps, context):
            raise RuntimeError("mapping failed")

        monkeypatch.setattr(WizardDataTransformationPipeline, "_map_steps", broken)
        with pytest.raises(ValidationError):
            transform_step_data(2, {"employeeCount": 10})


class TestAIEnhancement:

    def test_insights_and_longer_descriptions_applied(self, wizard_data, context):
        suggester = ScriptedSuggester(
            "Enfócate en clientes medianos",
            "Crecer el MRR con clientes medianos del norte del país durante el año",
            "corto",
        )
        result = make_pipeline(suggester=suggester, enable_ai=True).transform(wizard_data, context)

        assert result.metadata.ai_enhanced is True
        org = result.data.organization
        assert org.ai_insights["strategicRecommendations"] == "Enfócate en clientes medianos"
        assert result.data.objectives[0].description.endswith("durante el año")
        assert result.data.objectives[1].description == "Primeros clientes fuera de México"

    def test_ai_failures_are_ignored(self, wizard_data, context):
        suggester = ScriptedSuggester(AIServiceError("down"), AIServiceError("down"), AIServiceError("down"))
        result = make_pipeline(suggester=suggester, enable_ai=True).transform(wizard_data, context)

        assert result.success
        assert result.metadata.ai_enhanced is False
        assert result.data.organization.ai_insights == {}
        assert result.data.objectives[0].description == "Crecer el MRR con clientes medianos"


class TestSaveToDatabase:
    """Test the single-transaction save."""

    @pytest.fixture
    def session(self, seeded_db):
        session = OnboardingSessionRepository(seeded_db).create_for_user("admin", ttl_hours=24, total_steps=5)
        seeded_db.commit()
        return session

    def test_save_creates_everything_and_completes_session(self, seeded_db, session, wizard_data):
        context = TransformationContext(user_id="admin", session_id=session.id)
        pipeline = make_pipeline(seeded_db)
        onboarding_status_cache.set(onboarding_status_key("admin"), {"stale": True})

        saved = pipeline.complete(wizard_data, context)

        assert saved.success
        assert saved.objective_ids == [f"obj_{session.id}_0", f"obj_{session.id}_1"]
        organization = seeded_db.get(Organization, saved.organization_id)
        assert organization.name == "Acme México"
        assert organization.settings["teamStructure"]["hierarchyLevels"] == 5
        member = seeded_db.query(OrganizationMember).filter_by(organization_id=organization.id).one()
        assert member.user_id == "admin"
        assert member.role == "org_owner"
        assert seeded_db.query(KeyResult).count() == 2

        seeded_db.refresh(session)
        assert session.status == SessionStatusEnum.completed
        assert session.completion_percentage == 100.0
        assert session.completed_at is not None
        assert set(session.form_data) == {"userProfile", "organization", "objectives", "preferences"}
        assert onboarding_status_cache.get(onboarding_status_key("admin")) is None
        assert pipeline.tracker.events("onboarding_data_saved")

    def test_failure_rolls_back_every_write(self, seeded_db, wizard_data):
        context = TransformationContext(user_id="admin", session_id="missing_session")
        pipeline = make_pipeline(seeded_db)
        result = pipeline.transform(wizard_data, context)

        saved = pipeline.save_to_database(result.data, context)

        assert not saved.success
        assert saved.errors
        assert seeded_db.query(Organization).count() == 0
        assert seeded_db.query(OrganizationMember).count() == 0
        assert seeded_db.query(Objective).count() == 0

    def test_existing_organization_must_exist(self, seeded_db, session, wizard_data):
        context = TransformationContext(user_id="admin", session_id=session.id, organization_id="org_missing")
        saved = make_pipeline(seeded_db).complete(wizard_data, context)

        assert not saved.success
        seeded_db.refresh(session)
        assert session.status == SessionStatusEnum.in_progress

    def test_strict_failure_is_returned_as_messages(self, seeded_db, session, wizard_data):
        wizard_data["5"]["termsAccepted"] = False
        context = TransformationContext(user_id="admin", session_id=session.id)
        saved = make_pipeline(seeded_db, strict_mode=True).complete(wizard_data, context)

        assert not saved.success
        assert any("términos" in error for error in saved.errors)
        assert seeded_db.query(Organization).count() == 0

    def test_existing_organization_requires_membership(self, seeded_db, session, wizard_data):
        seeded_db.add(Organization(id="org_globex", name="Globex Latam", created_by="emp_2"))
        seeded_db.commit()
        context = TransformationContext(user_id="admin", session_id=session.id, organization_id="org_globex")

        saved = make_pipeline(seeded_db).complete(wizard_data, context)

        assert not saved.success
        assert saved.errors == ["Not a member of this organization"]
        assert seeded_db.query(Objective).count() == 0
