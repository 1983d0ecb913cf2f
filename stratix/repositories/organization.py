import re
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select

from stratix.models import Organization, OrganizationMember, Objective, KeyResult
from stratix.schemas import OrganizationData, ObjectiveData, KeyResultData
from .base import BaseRepository


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "organization"


class OrganizationRepository(BaseRepository[Organization]):
    """Repository for organizations, their members and their OKRs."""

    def __init__(self, db: Session):
        super().__init__(db, Organization)

    def create_from_data(self, data: OrganizationData, created_by: str, settings: Optional[dict] = None) -> Organization:
        organization = Organization(
            id=self._gen_id("org"),
            name=data.name,
            slug=slugify(data.name),
            industry=data.industry,
            size=data.size,
            employee_count=data.employee_count,
            website=data.website,
            description=data.description,
            country=data.country,
            city=data.city,
            founded_year=data.founded_year,
            okr_maturity=data.okr_maturity,
            business_goals=list(data.business_goals),
            current_challenges=list(data.current_challenges),
            ai_insights=dict(data.ai_insights),
            settings=settings or {},
            created_by=created_by,
        )
        return self.add(organization)

    def get_member(self, organization_id: str, user_id: str) -> Optional[OrganizationMember]:
        return self.db.execute(
            select(OrganizationMember).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
            )
        ).scalar_one_or_none()

    def add_member(
        self,
        organization_id: str,
        user_id: str,
        role: str,
        job_title: Optional[str] = None,
        department: Optional[str] = None,
    ) -> OrganizationMember:
        member = self.get_member(organization_id, user_id)
        if member is None:
            member = OrganizationMember(
                id=self._gen_id("member"),
                organization_id=organization_id,
                user_id=user_id,
            )
            self.db.add(member)
        member.role = role
        member.job_title = job_title
        member.department = department
        self.db.flush()
        return member

    def add_objective(self, organization_id: str, session_id: str, data: ObjectiveData) -> Objective:
        objective = Objective(
            id=data.id,
            organization_id=organization_id,
            session_id=session_id,
            title=data.title,
            description=data.description,
            owner=data.owner,
            priority=data.priority,
            category=data.category,
            time_horizon=data.time_horizon,
            status=data.status,
        )
        return self.add(objective)

    def add_key_result(self, data: KeyResultData) -> KeyResult:
        key_result = KeyResult(
            id=data.id,
            objective_id=data.objective_id,
            title=data.title,
            description=data.description,
            metric=data.metric,
            target=data.target,
            unit=data.unit,
            baseline=data.baseline,
            owner=data.owner,
            status=data.status,
            tracking_frequency=data.tracking_frequency,
        )
        return self.add(key_result)

    def list_objectives(self, organization_id: str) -> List[Objective]:
        return list(self.db.execute(
            select(Objective).where(Objective.organization_id == organization_id).order_by(Objective.id)
        ).scalars().all())
