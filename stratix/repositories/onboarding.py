from datetime import datetime, timedelta
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select, func

from stratix.models import OnboardingSession, OnboardingProgress, SessionStatusEnum, utcnow
from .base import BaseRepository


class OnboardingSessionRepository(BaseRepository[OnboardingSession]):
    """Repository for onboarding sessions and their per-step progress."""

    def __init__(self, db: Session):
        super().__init__(db, OnboardingSession)

    def create_for_user(self, user_id: str, ttl_hours: int, total_steps: int = 5) -> OnboardingSession:
        now = utcnow()
        session = OnboardingSession(
            id=self._gen_id("session"),
            user_id=user_id,
            status=SessionStatusEnum.in_progress,
            current_step=1,
            total_steps=total_steps,
            form_data={},
            completion_percentage=0.0,
            expires_at=now + timedelta(hours=ttl_hours),
            created_at=now,
            updated_at=now,
        )
        return self.add(session)

    def get_by_user(self, session_id: str, user_id: str) -> Optional[OnboardingSession]:
        """Get a session by ID for specific user."""
        return self.db.execute(
            select(OnboardingSession).where(
                OnboardingSession.id == session_id,
                OnboardingSession.user_id == user_id,
            )
        ).scalar_one_or_none()

    def get_active_for_user(self, user_id: str) -> Optional[OnboardingSession]:
        """Most recent in-progress session of the user, expired or not."""
        return self.db.execute(
            select(OnboardingSession)
            .where(
                OnboardingSession.user_id == user_id,
                OnboardingSession.status == SessionStatusEnum.in_progress,
            )
            .order_by(OnboardingSession.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()

    def list_past_due(self, now: Optional[datetime] = None) -> List[OnboardingSession]:
        now = now or utcnow()
        return list(self.db.execute(
            select(OnboardingSession).where(
                OnboardingSession.status == SessionStatusEnum.in_progress,
                OnboardingSession.expires_at < now,
            )
        ).scalars().all())

    def count_by_status(self) -> Dict[str, int]:
        rows = self.db.execute(
            select(OnboardingSession.status, func.count()).group_by(OnboardingSession.status)
        ).all()
        counts = {status.value: 0 for status in SessionStatusEnum}
        for status, total in rows:
            key = status.value if hasattr(status, "value") else str(status)
            counts[key] = total
        return counts

    def average_completion(self) -> float:
        value = self.db.execute(select(func.avg(OnboardingSession.completion_percentage))).scalar()
        return round(float(value or 0), 2)

    def get_progress(self, session_id: str, step_number: int) -> Optional[OnboardingProgress]:
        return self.db.execute(
            select(OnboardingProgress).where(
                OnboardingProgress.session_id == session_id,
                OnboardingProgress.step_number == step_number,
            )
        ).scalar_one_or_none()

    def list_progress(self, session_id: str) -> List[OnboardingProgress]:
        return list(self.db.execute(
            select(OnboardingProgress)
            .where(OnboardingProgress.session_id == session_id)
            .order_by(OnboardingProgress.step_number)
        ).scalars().all())

    def upsert_progress(self, session_id: str, step_number: int, step_name: str, values: Dict) -> OnboardingProgress:
        progress = self.get_progress(session_id, step_number)
        if progress is None:
            progress = OnboardingProgress(
                id=self._gen_id("progress"),
                session_id=session_id,
                step_number=step_number,
                step_name=step_name,
                step_data={},
            )
            self.db.add(progress)
        for field, value in values.items():
            setattr(progress, field, value)
        self.db.flush()
        return progress
