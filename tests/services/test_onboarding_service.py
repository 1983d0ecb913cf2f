from datetime import timedelta

import pytest
from stratix.core.cache import TTLCache
from stratix.exceptions import ForbiddenError, NotFoundError, ValidationError
from stratix.models import Objective, OnboardingSession, SessionStatusEnum, utcnow
from stratix.schemas import (
    CompleteOnboardingRequest,
    OnboardingProgressRequest,
    OnboardingSessionPatch,
    OnboardingStartRequest,
)
from stratix.services import OnboardingService


@pytest.fixture
def service(seeded_db):
    return OnboardingService(seeded_db, status_cache=TTLCache(ttl_seconds=60))


@pytest.fixture
def started(service):
    return service.start("admin", OnboardingStartRequest())["session"]


def save_step(service, session_id, step_number, data, user_id="admin", **options):
    return service.record_progress(user_id, OnboardingProgressRequest(
        session_id=session_id,
        step_number=step_number,
        step_data=data,
        completed=True,
        **options,
    ))


class TestStart:
    """Test opening, resuming and restarting sessions."""

    def test_start_creates_session(self, service):
        result = service.start("admin", OnboardingStartRequest())

        assert result["resumed"] is False
        session = result["session"]
        assert session["status"] == "in_progress"
        assert session["current_step"] == 1
        assert session["total_steps"] == 5
        assert session["completion_percentage"] == 0.0
        assert result["current_step"]["step_name"] == "welcome"
        assert result["progress"] == []

    def test_start_resumes_live_session(self, service, started):
        result = service.start("admin", OnboardingStartRequest())

        assert result["resumed"] is True
        assert result["session"]["id"] == started["id"]

    def test_restart_abandons_previous_session(self, service, seeded_db, started):
        result = service.start("admin", OnboardingStartRequest(restart=True))

        assert result["resumed"] is False
        assert result["session"]["id"] != started["id"]
        assert seeded_db.get(OnboardingSession, started["id"]).status == SessionStatusEnum.abandoned

    def test_expired_session_is_not_resumed(self, service, seeded_db, started):
        seeded_db.get(OnboardingSession, started["id"]).expires_at = utcnow() - timedelta(minutes=1)
        seeded_db.commit()

        result = service.start("admin", OnboardingStartRequest())

        assert result["resumed"] is False
        assert seeded_db.get(OnboardingSession, started["id"]).status == SessionStatusEnum.expired

    def test_start_keeps_preferences_and_context(self, service):
        result = service.start("admin", OnboardingStartRequest(
            user_preferences={"language": "es"},
            context={"source": "invitation"},
        ))

        assert result["session"]["form_data"] == {
            "_preferences": {"language": "es"},
            "_context": {"source": "invitation"},
        }


class TestProgress:
    """Test step recording and session advancement."""

    def test_valid_step_advances_session(self, service, started, welcome_step):
        result = save_step(service, started["id"], 1, welcome_step)

        assert result["validation"]["isValid"] is True
        assert result["progress"]["completed"] is True
        assert result["session"]["current_step"] == 2
        assert result["session"]["completion_percentage"] == 20.0
        assert result["session"]["form_data"]["1"]["firstName"] == "María"
        assert result["next_step"]["step_number"] == 2
        assert result["feedback"].startswith("¡Genial!")

    def test_invalid_step_is_stored_but_not_completed(self, service, started):
        result = save_step(service, started["id"], 1, {"firstName": "M"})

        assert result["validation"]["isValid"] is False
        assert result["progress"]["completed"] is False
        assert result["session"]["current_step"] == 1
        assert result["session"]["completion_percentage"] == 0.0
        assert "next_step" not in result
        assert result["feedback"] == "Por favor, completa los campos requeridos antes de continuar."

    def test_saving_a_step_twice_updates_it(self, service, started, welcome_step):
        save_step(service, started["id"], 1, welcome_step)
        welcome_step["jobTitle"] = "CEO"
        result = save_step(service, started["id"], 1, welcome_step)

        assert result["progress"]["step_data"]["jobTitle"] == "CEO"
        assert result["session"]["completion_percentage"] == 20.0
        assert len(service.get_session("admin", started["id"])["progress"]) == 1

    def test_skipped_step_counts_towards_completion(self, service, started):
        result = service.record_progress("admin", OnboardingProgressRequest(
            session_id=started["id"], step_number=1, skipped=True,
        ))

        assert result["session"]["current_step"] == 2
        assert result["session"]["completion_percentage"] == 20.0

    def test_without_auto_advance_step_is_kept(self, service, started, welcome_step):
        result = save_step(service, started["id"], 1, welcome_step, auto_advance=False)

        assert result["session"]["current_step"] == 1
        assert result["session"]["completion_percentage"] == 20.0

    def test_other_users_session_is_forbidden(self, service, started, welcome_step):
        with pytest.raises(ForbiddenError):
            save_step(service, started["id"], 1, welcome_step, user_id="manager")

    def test_unknown_session_is_not_found(self, service, welcome_step):
        with pytest.raises(NotFoundError):
            save_step(service, "session_missing", 1, welcome_step)

    def test_expired_session_rejects_progress(self, service, seeded_db, started, welcome_step):
        seeded_db.get(OnboardingSession, started["id"]).expires_at = utcnow() - timedelta(hours=1)
        seeded_db.commit()

        with pytest.raises(ValidationError, match="expired"):
            save_step(service, started["id"], 1, welcome_step)
        assert seeded_db.get(OnboardingSession, started["id"]).status == SessionStatusEnum.expired


class TestStatusAndSession:

    def test_status_without_session(self, service):
        status = service.get_status("manager")

        assert status["has_active_session"] is False
        assert status["cached"] is False

    def test_status_is_cached_until_progress(self, service, started, welcome_step):
        first = service.get_status("admin")
        second = service.get_status("admin")

        assert first["cached"] is False
        assert second["cached"] is True
        assert second["session"]["id"] == started["id"]

        save_step(service, started["id"], 1, welcome_step)
        third = service.get_status("admin")
        assert third["cached"] is False
        assert third["completion_percentage"] == 20.0

    def test_update_session(self, service, started):
        result = service.update_session("admin", started["id"], OnboardingSessionPatch(
            current_step=3, form_data={"notes": "x"},
        ))

        assert result["session"]["current_step"] == 3
        assert result["session"]["form_data"]["notes"] == "x"

    def test_abandon_session(self, service, started):
        result = service.abandon_session("admin", started["id"])

        assert result["session"]["status"] == "abandoned"
        assert service.get_status("admin")["has_active_session"] is False

    def test_completed_session_cannot_be_abandoned(self, service, seeded_db, started):
        seeded_db.get(OnboardingSession, started["id"]).status = SessionStatusEnum.completed
        seeded_db.commit()

        with pytest.raises(ValidationError):
            service.abandon_session("admin", started["id"])


class TestComplete:

    def test_complete_saves_organization(self, service, seeded_db, started, wizard_data):
        for number in range(1, 6):
            save_step(service, started["id"], number, wizard_data[str(number)])

        result = service.complete("admin", CompleteOnboardingRequest())

        assert result["organization_id"]
        assert len(result["objective_ids"]) == 2
        assert seeded_db.query(Objective).count() == 2
        session = seeded_db.get(OnboardingSession, started["id"])
        assert session.status == SessionStatusEnum.completed
        assert service.get_status("admin")["has_active_session"] is False

    def test_complete_without_active_session(self, service):
        with pytest.raises(NotFoundError):
            service.complete("manager", CompleteOnboardingRequest())

    def test_organization_insights(self, service, started, wizard_data):
        for number in (1, 2, 3):
            save_step(service, started["id"], number, wizard_data[str(number)])

        insights = service.organization_insights("admin")

        assert insights["session_id"] == started["id"]
        assert "okr_setup" in insights
        assert "completion" in insights

    def test_complete_into_existing_organization_requires_membership(self, service, seeded_db, started, wizard_data):
        for number in range(1, 6):
            save_step(service, started["id"], number, wizard_data[str(number)])
        organization_id = service.complete("admin", CompleteOnboardingRequest())["organization_id"]

        other = service.start("manager", OnboardingStartRequest())["session"]
        for number in range(1, 6):
            save_step(service, other["id"], number, wizard_data[str(number)], user_id="manager")

        with pytest.raises(ForbiddenError):
            service.complete("manager", CompleteOnboardingRequest(organization_id=organization_id))
        assert seeded_db.query(Objective).count() == 2
        assert seeded_db.get(OnboardingSession, other["id"]).status == SessionStatusEnum.in_progress

    def test_member_can_complete_into_their_organization(self, service, seeded_db, started, wizard_data):
        for number in range(1, 6):
            save_step(service, started["id"], number, wizard_data[str(number)])
        organization_id = service.complete("admin", CompleteOnboardingRequest())["organization_id"]

        again = service.start("admin", OnboardingStartRequest())["session"]
        for number in range(1, 6):
            save_step(service, again["id"], number, wizard_data[str(number)])
        result = service.complete("admin", CompleteOnboardingRequest(organization_id=organization_id))

        assert result["organization_id"] == organization_id
        assert seeded_db.query(Objective).count() == 4

    def test_complete_into_unknown_organization(self, service, started, wizard_data):
        for number in range(1, 6):
            save_step(service, started["id"], number, wizard_data[str(number)])

        with pytest.raises(NotFoundError):
            service.complete("admin", CompleteOnboardingRequest(organization_id="org_missing"))
