from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import select, func, or_

from stratix.core.roles import RoleType
from stratix.models import Company, Profile, ProfileStatusEnum
from stratix.schemas import UserFilter
from .base import BaseRepository

SORT_COLUMNS = {
    "name": Profile.display_name,
    "email": Profile.email,
    "createdAt": Profile.created_at,
    "lastActive": Profile.last_active,
    "company": Company.name,
}


class CompanyRepository(BaseRepository[Company]):
    """Repository for companies."""

    def __init__(self, db: Session):
        super().__init__(db, Company)

    def names_by_id(self, company_ids) -> Dict[str, str]:
        ids = [company_id for company_id in set(company_ids) if company_id]
        if not ids:
            return {}
        rows = self.db.execute(select(Company.id, Company.name).where(Company.id.in_(ids))).all()
        return {company_id: name for company_id, name in rows}


class ProfileRepository(BaseRepository[Profile]):
    """Repository for user profiles. Soft-deleted profiles are invisible."""

    def __init__(self, db: Session):
        super().__init__(db, Profile)

    def get_active(self, user_id: str) -> Optional[Profile]:
        return self.db.execute(
            select(Profile).where(Profile.id == user_id, Profile.deleted_at.is_(None))
        ).scalar_one_or_none()

    def get_by_email(self, email: str) -> Optional[Profile]:
        return self.db.execute(
            select(Profile).where(func.lower(Profile.email) == email.lower(), Profile.deleted_at.is_(None))
        ).scalar_one_or_none()

    def _filtered(self, filters: UserFilter):
        conditions = [Profile.deleted_at.is_(None)]
        if filters.company_id:
            conditions.append(Profile.company_id == filters.company_id)
        if filters.role_type:
            conditions.append(Profile.role_type == RoleType(filters.role_type))
        if filters.status:
            conditions.append(Profile.status == ProfileStatusEnum(filters.status))
        if filters.department_id:
            conditions.append(Profile.department_id == filters.department_id)
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            conditions.append(or_(
                func.lower(Profile.display_name).like(pattern),
                func.lower(Profile.email).like(pattern),
            ))
        if filters.created_after:
            conditions.append(Profile.created_at >= filters.created_after)
        if filters.created_before:
            conditions.append(Profile.created_at <= filters.created_before)
        if filters.last_active_after:
            conditions.append(Profile.last_active >= filters.last_active_after)
        if filters.last_active_before:
            conditions.append(Profile.last_active <= filters.last_active_before)
        return conditions

    def search(self, filters: UserFilter) -> Tuple[List[Profile], int]:
        """One page of matching profiles plus the unpaginated total."""
        conditions = self._filtered(filters)
        total = self.count(*conditions)

        sort_column = SORT_COLUMNS[filters.sort_by]
        order = sort_column.asc() if filters.sort_order == "asc" else sort_column.desc()
        query = (
            select(Profile)
            .outerjoin(Company, Profile.company_id == Company.id)
            .where(*conditions)
            .order_by(order, Profile.id)
            .offset(filters.offset)
            .limit(filters.limit)
        )
        return list(self.db.execute(query).scalars().all()), total

    def statistics(self, company_id: Optional[str] = None) -> Dict[str, object]:
        """Status counts and role breakdown over non-deleted profiles."""
        conditions = [Profile.deleted_at.is_(None)]
        if company_id:
            conditions.append(Profile.company_id == company_id)

        status_rows = self.db.execute(
            select(Profile.status, func.count()).where(*conditions).group_by(Profile.status)
        ).all()
        role_rows = self.db.execute(
            select(Profile.role_type, func.count()).where(*conditions).group_by(Profile.role_type)
        ).all()

        stats: Dict[str, object] = {status.value: 0 for status in ProfileStatusEnum}
        for status, total in status_rows:
            stats[status.value] = total
        stats["total"] = sum(total for _, total in status_rows)
        stats["roleBreakdown"] = {role.value: 0 for role in RoleType}
        for role, total in role_rows:
            stats["roleBreakdown"][role.value] = total
        return stats
