"""Invitation storage.

Route handlers and services depend on ``InvitationStore`` only. The
in-memory store backs development and tests; the SQL store persists to
the ``invitations`` table.
"""

from abc import ABC, abstractmethod
from threading import Lock
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy import select

from stratix.core import settings
from stratix.core.roles import RoleType
from stratix.models import Invitation, InvitationStatusEnum
from stratix.schemas import InvitationRecord

LIVE_STATUSES = ("pending", "sent")


def blocks(existing: InvitationRecord, invitation: InvitationRecord) -> bool:
    """Whether ``existing`` is a live invitation for the same email and company."""
    return (
        existing.email == invitation.email
        and existing.company_id == invitation.company_id
        and existing.status in LIVE_STATUSES
        and existing.expires_at > invitation.created_at
    )


class InvitationStore(ABC):
    """Key-value style store of invitations.

    A ``transactional`` store writes through the request's database session
    and is undone by its rollback; other stores need their writes reverted
    by the caller.
    """

    transactional = False

    @abstractmethod
    def get(self, invitation_id: str) -> Optional[InvitationRecord]:
        ...

    @abstractmethod
    def set(self, invitation: InvitationRecord) -> InvitationRecord:
        """Insert or replace by id."""

    @abstractmethod
    def insert_unique(self, invitation: InvitationRecord) -> Optional[InvitationRecord]:
        """Atomically insert unless a live invitation blocks it.

        Returns the blocking invitation, or None once ``invitation`` is stored.
        """

    @abstractmethod
    def list(self) -> List[InvitationRecord]:
        ...

    @abstractmethod
    def delete(self, invitation_id: str) -> bool:
        ...

    def find_by_code(self, invitation_code: str) -> Optional[InvitationRecord]:
        return next((inv for inv in self.list() if inv.invitation_code == invitation_code), None)


class InMemoryInvitationStore(InvitationStore):
    """Process-local store. Contents are lost on restart and not shared between workers."""

    def __init__(self):
        self._items: Dict[str, InvitationRecord] = {}
        self._lock = Lock()

    def get(self, invitation_id: str) -> Optional[InvitationRecord]:
        with self._lock:
            item = self._items.get(invitation_id)
            return item.model_copy(deep=True) if item else None

    def set(self, invitation: InvitationRecord) -> InvitationRecord:
        with self._lock:
            self._items[invitation.id] = invitation.model_copy(deep=True)
        return invitation

    def insert_unique(self, invitation: InvitationRecord) -> Optional[InvitationRecord]:
        with self._lock:
            for item in self._items.values():
                if blocks(item, invitation):
                    return item.model_copy(deep=True)
            self._items[invitation.id] = invitation.model_copy(deep=True)
        return None

    def list(self) -> List[InvitationRecord]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def delete(self, invitation_id: str) -> bool:
        with self._lock:
            return self._items.pop(invitation_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


class SqlInvitationStore(InvitationStore):
    """Store backed by the ``invitations`` table of the request's session."""

    transactional = True

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_record(row: Invitation) -> InvitationRecord:
        return InvitationRecord(
            id=row.id,
            email=row.email,
            company_id=row.company_id,
            role_type=row.role_type,
            department_id=row.department_id,
            invitation_code=row.invitation_code,
            status=row.status.value,
            invitation_type=row.invitation_type,
            batch_id=row.batch_id,
            welcome_message=row.welcome_message,
            auto_activate=row.auto_activate,
            invited_by=row.invited_by,
            created_at=row.created_at,
            expires_at=row.expires_at,
            sent_at=row.sent_at,
            accepted_at=row.accepted_at,
            metadata=row.invitation_metadata or {},
        )

    def get(self, invitation_id: str) -> Optional[InvitationRecord]:
        row = self.db.get(Invitation, invitation_id)
        return self._to_record(row) if row else None

    def set(self, invitation: InvitationRecord) -> InvitationRecord:
        row = self.db.get(Invitation, invitation.id)
        if row is None:
            row = Invitation(id=invitation.id)
            self.db.add(row)
        row.email = invitation.email
        row.company_id = invitation.company_id
        row.role_type = RoleType(invitation.role_type)
        row.department_id = invitation.department_id
        row.invitation_code = invitation.invitation_code
        row.status = InvitationStatusEnum(invitation.status)
        row.invitation_type = invitation.invitation_type
        row.batch_id = invitation.batch_id
        row.welcome_message = invitation.welcome_message
        row.auto_activate = invitation.auto_activate
        row.invited_by = invitation.invited_by
        row.created_at = invitation.created_at
        row.expires_at = invitation.expires_at
        row.sent_at = invitation.sent_at
        row.accepted_at = invitation.accepted_at
        row.invitation_metadata = dict(invitation.metadata)
        self.db.flush()
        return invitation

    def insert_unique(self, invitation: InvitationRecord) -> Optional[InvitationRecord]:
        for row in self._live_rows(invitation.email, invitation.company_id):
            if row.expires_at > invitation.created_at:
                return self._to_record(row)
            # Overdue rows would still hold the partial unique index
            row.status = InvitationStatusEnum.expired

        try:
            with self.db.begin_nested():
                self.set(invitation)
        except IntegrityError:
            # Lost the race against a concurrent insert
            live = self._live_rows(invitation.email, invitation.company_id)
            if not live:
                raise
            return self._to_record(live[0])
        return None

    def _live_rows(self, email: str, company_id: str) -> List[Invitation]:
        return list(self.db.execute(
            select(Invitation).where(
                Invitation.email == email,
                Invitation.company_id == company_id,
                Invitation.status.in_([InvitationStatusEnum.pending, InvitationStatusEnum.sent]),
            )
        ).scalars().all())

    def list(self) -> List[InvitationRecord]:
        rows = self.db.execute(select(Invitation)).scalars().all()
        return [self._to_record(row) for row in rows]

    def delete(self, invitation_id: str) -> bool:
        row = self.db.get(Invitation, invitation_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        return True

    def find_by_code(self, invitation_code: str) -> Optional[InvitationRecord]:
        row = self.db.execute(
            select(Invitation).where(Invitation.invitation_code == invitation_code)
        ).scalar_one_or_none()
        return self._to_record(row) if row else None


# Shared by every request of this process when INVITATION_STORE=memory
memory_invitation_store = InMemoryInvitationStore()


def get_invitation_store(db: Session) -> InvitationStore:
    if settings.invitation_store == "database":
        return SqlInvitationStore(db)
    return memory_invitation_store
