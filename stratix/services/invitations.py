import secrets
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from stratix.core.roles import RoleType
from stratix.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from stratix.models import Company, Profile, ProfileStatusEnum, utcnow
from stratix.repositories import CompanyRepository, InvitationStore, ProfileRepository
from stratix.schemas import (
    InvitationAccept,
    InvitationBatchCreate,
    InvitationCancel,
    InvitationCreate,
    InvitationFilter,
    InvitationRecord,
    InvitationUpdate,
)
from .base import BaseService
from .sync_logging import SyncLoggingService, sync_logger

ACTIVE_STATUSES = ("pending", "sent")
INVITATION_STATUSES = ("pending", "sent", "accepted", "expired", "cancelled")


def generate_invitation_code() -> str:
    return secrets.token_hex(16)


class InvitationService(BaseService):
    """Invitation lifecycle on top of an ``InvitationStore``."""

    def __init__(self, db: Session, store: InvitationStore, sync_log: Optional[SyncLoggingService] = None):
        super().__init__(db)
        self.store = store
        self.companies = CompanyRepository(db)
        self.profiles = ProfileRepository(db)
        self.sync_log = sync_log or sync_logger
        # (invitation id, previous record) for writes to a non-transactional store
        self._journal: List[Tuple[str, Optional[InvitationRecord]]] = []

    def commit(self):
        super().commit()
        self._journal.clear()

    def rollback(self):
        super().rollback()
        self._revert_store()

    def create(self, caller: Profile, data: InvitationCreate) -> Dict[str, Any]:
        company = self._company(data.company_id)
        try:
            invitation = self._issue(
                caller,
                company,
                email=data.email,
                role_type=data.role_type,
                department_id=data.department_id,
                expires_in_hours=data.expires_in_hours,
                welcome_message=data.welcome_message,
                auto_activate=data.auto_activate,
                invitation_type=data.invitation_type,
            )
            sent = self._send(invitation, company)
            self.commit()
        except Exception as e:
            self.rollback()
            self.logger.error(f"Error creating invitation for {data.email}: {str(e)}")
            raise

        self.sync_log.info(
            "profile_sync",
            f"Invitation created for {invitation.email}",
            company_id=company.id,
            details={"invitationId": invitation.id, "roleType": invitation.role_type.value, "emailSent": sent},
            metadata={"createdBy": caller.id},
        )
        return {
            "id": invitation.id,
            "email": invitation.email,
            "companyId": company.id,
            "companyName": company.name,
            "roleType": invitation.role_type.value,
            "status": invitation.status,
            "invitationCode": invitation.invitation_code,
            "expiresAt": invitation.expires_at.isoformat(),
            "createdAt": invitation.created_at.isoformat(),
            "sent": sent,
        }

    def create_batch(self, caller: Profile, data: InvitationBatchCreate) -> Dict[str, Any]:
        """Issue invitations sharing one batch id; failures are collected per email."""
        company = self._company(data.company_id)
        batch_id = f"batch_{uuid.uuid4().hex}"
        created: List[InvitationRecord] = []
        failures: List[Dict[str, str]] = []

        try:
            for item in data.invitations:
                try:
                    invitation = self._issue(
                        caller,
                        company,
                        email=item.email,
                        role_type=item.role_type or data.default_role or RoleType.empleado,
                        department_id=item.department_id,
                        expires_in_hours=item.expires_in_hours,
                        welcome_message=item.welcome_message,
                        invitation_type="batch",
                        batch_id=batch_id,
                    )
                    if data.send_immediately:
                        self._send(invitation, company)
                    created.append(invitation)
                except (ConflictError, ValidationError) as e:
                    failures.append({"email": item.email, "error": e.message})
            self.commit()
        except Exception as e:
            self.rollback()
            self.logger.error(f"Error creating invitation batch {batch_id}: {str(e)}")
            raise

        self.sync_log.info(
            "batch_sync",
            f"Batch invitation created: {len(created)} invitations",
            company_id=company.id,
            details={
                "batchId": batch_id,
                "successful": len(created),
                "failed": len(failures),
                "totalRequested": len(data.invitations),
            },
            metadata={"createdBy": caller.id},
        )
        return {
            "batchId": batch_id,
            "invitations": [
                {
                    "id": invitation.id,
                    "email": invitation.email,
                    "roleType": invitation.role_type.value,
                    "status": invitation.status,
                    "invitationCode": invitation.invitation_code,
                    "expiresAt": invitation.expires_at.isoformat(),
                }
                for invitation in created
            ],
            "summary": {
                "total": len(data.invitations),
                "successful": len(created),
                "failed": len(failures),
            },
            "failures": failures,
        }

    def list_invitations(self, filters: InvitationFilter) -> Dict[str, Any]:
        try:
            invitations = self._expire_overdue(self.store.list())
            self.commit()
        except Exception as e:
            self.rollback()
            self.logger.error(f"Error listing invitations: {str(e)}")
            raise

        if filters.company_id:
            invitations = [inv for inv in invitations if inv.company_id == filters.company_id]
        if filters.status:
            invitations = [inv for inv in invitations if inv.status == filters.status]
        if filters.email:
            needle = filters.email.lower()
            invitations = [inv for inv in invitations if needle in inv.email]
        if filters.batch_id:
            invitations = [inv for inv in invitations if inv.batch_id == filters.batch_id]

        invitations.sort(key=lambda inv: inv.created_at, reverse=True)
        page = invitations[filters.offset:filters.offset + filters.limit]
        names = self.companies.names_by_id(inv.company_id for inv in page)

        statistics = {status: 0 for status in INVITATION_STATUSES}
        for invitation in invitations:
            statistics[invitation.status] += 1
        statistics["total"] = len(invitations)

        return {
            "invitations": [
                {
                    **invitation.model_dump(by_alias=True, mode="json", exclude={"invitation_code"}),
                    "companyName": names.get(invitation.company_id, "Unknown Company"),
                    "createdBy": invitation.invited_by,
                }
                for invitation in page
            ],
            "pagination": {
                "total": len(invitations),
                "limit": filters.limit,
                "offset": filters.offset,
                "hasMore": filters.offset + filters.limit < len(invitations),
            },
            "statistics": statistics,
            "filters": filters.model_dump(by_alias=True, mode="json", exclude_none=True),
        }

    def update(self, caller: Profile, data: InvitationUpdate) -> Dict[str, Any]:
        invitation = self.store.get(data.invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation", data.invitation_id)

        changes = data.model_dump(exclude={"invitation_id"}, exclude_none=True)
        try:
            updated = invitation.model_copy(update=changes)
            self._write(updated)
            self.commit()
        except Exception as e:
            self.rollback()
            self.logger.error(f"Error updating invitation {data.invitation_id}: {str(e)}")
            raise

        self.sync_log.info(
            "profile_sync",
            f"Invitation updated: {updated.id}",
            details={"invitationId": updated.id, "updates": data.model_dump(by_alias=True, mode="json", exclude_none=True)},
            metadata={"updatedBy": caller.id},
        )
        return {
            "id": updated.id,
            "email": updated.email,
            "companyId": updated.company_id,
            "roleType": RoleType(updated.role_type).value,
            "status": updated.status,
            "expiresAt": updated.expires_at.isoformat(),
            "updatedBy": caller.id,
            "updatedAt": utcnow().isoformat(),
        }

    def cancel(self, caller: Profile, data: InvitationCancel) -> Dict[str, Any]:
        now = utcnow()
        results = []
        try:
            for invitation_id in data.invitation_ids:
                invitation = self.store.get(invitation_id)
                if invitation is None:
                    results.append({"invitationId": invitation_id, "success": False, "error": "Invitation not found"})
                    continue
                if invitation.status not in ACTIVE_STATUSES:
                    results.append({
                        "invitationId": invitation_id,
                        "success": False,
                        "error": f"Cannot cancel invitation with status: {invitation.status}",
                    })
                    continue
                invitation.status = "cancelled"
                invitation.metadata = {
                    **invitation.metadata,
                    "cancelledBy": caller.id,
                    "cancelledAt": now.isoformat(),
                    "reason": data.reason,
                }
                self._write(invitation)
                results.append({"invitationId": invitation_id, "success": True, "action": "cancelled"})
            self.commit()
        except Exception as e:
            self.rollback()
            self.logger.error(f"Error cancelling invitations: {str(e)}")
            raise

        successful = sum(1 for result in results if result["success"])
        self.sync_log.info(
            "profile_sync",
            f"Invitations cancelled: {successful}/{len(data.invitation_ids)}",
            details={"invitationIds": data.invitation_ids, "reason": data.reason},
            metadata={"cancelledBy": caller.id},
        )
        return {
            "results": results,
            "summary": {
                "total": len(data.invitation_ids),
                "successful": successful,
                "failed": len(data.invitation_ids) - successful,
            },
            "reason": data.reason,
            "cancelledBy": caller.id,
            "cancelledAt": now.isoformat(),
        }

    def accept(self, user: Dict[str, Any], data: InvitationAccept) -> Dict[str, Any]:
        """Redeem an invitation code for the calling user and apply its role and company."""
        user_id = user["user_id"]
        invitation = self.store.find_by_code(data.invitation_code)
        if invitation is None:
            raise NotFoundError("Invitation")

        try:
            now = utcnow()
            if invitation.status in ACTIVE_STATUSES and invitation.expires_at < now:
                invitation.status = "expired"
                self._write(invitation)
                self.commit()
                raise ValidationError("Invitation has expired")
            if invitation.status not in ACTIVE_STATUSES:
                raise ValidationError(f"Invitation cannot be accepted (status: {invitation.status})")

            caller_email = (user.get("email") or "").lower()
            if caller_email and caller_email != invitation.email:
                raise ForbiddenError("Invitation was issued to a different email address")

            profile = self.profiles.get(user_id)
            if profile is None:
                profile = self.profiles.add(Profile(
                    id=user_id,
                    email=invitation.email,
                    display_name=user.get("name"),
                    created_at=now,
                ))
            profile.role_type = RoleType(invitation.role_type)
            profile.company_id = invitation.company_id
            profile.department_id = invitation.department_id
            profile.status = ProfileStatusEnum.active
            profile.deleted_at = None
            profile.last_active = now
            profile.updated_at = now
            profile.profile_metadata = {**(profile.profile_metadata or {}), "source": "invitation"}

            invitation.status = "accepted"
            invitation.accepted_at = now
            self._write(invitation)
            self.commit()
        except Exception as e:
            self.rollback()
            self.logger.error(f"Error accepting invitation for user {user_id}: {str(e)}")
            raise

        self.sync_log.info(
            "role_assignment",
            f"Invitation accepted by {user_id}",
            user_id=user_id,
            company_id=invitation.company_id,
            details={"invitationId": invitation.id, "roleType": profile.role_type.value},
        )
        return {
            "invitationId": invitation.id,
            "userId": user_id,
            "companyId": invitation.company_id,
            "roleType": profile.role_type.value,
            "departmentId": invitation.department_id,
            "acceptedAt": invitation.accepted_at.isoformat(),
        }

    def statistics(self) -> Dict[str, int]:
        counts = {status: 0 for status in INVITATION_STATUSES}
        for invitation in self.store.list():
            counts[invitation.status] += 1
        counts["total"] = sum(counts.values())
        return counts

    def _company(self, company_id: str) -> Company:
        company = self.companies.get(company_id)
        if company is None:
            raise NotFoundError("Company")
        return company

    def _issue(
        self,
        caller: Profile,
        company: Company,
        email: str,
        role_type: RoleType,
        expires_in_hours: int,
        department_id: Optional[str] = None,
        welcome_message: Optional[str] = None,
        auto_activate: bool = False,
        invitation_type: str = "single",
        batch_id: Optional[str] = None,
    ) -> InvitationRecord:
        now = utcnow()
        invitation = InvitationRecord(
            id=f"inv_{uuid.uuid4().hex}",
            email=email,
            company_id=company.id,
            role_type=role_type,
            department_id=department_id,
            invitation_code=generate_invitation_code(),
            status="pending",
            invitation_type=invitation_type,
            batch_id=batch_id,
            welcome_message=welcome_message,
            auto_activate=auto_activate,
            invited_by=caller.id,
            created_at=now,
            expires_at=now + timedelta(hours=expires_in_hours),
        )
        existing = self.store.insert_unique(invitation)
        if existing is not None:
            raise ConflictError(
                "Active invitation already exists for this email and company",
                {"invitationId": existing.id},
            )
        if not self.store.transactional:
            self._journal.append((invitation.id, None))
        return invitation

    def _write(self, invitation: InvitationRecord) -> None:
        if not self.store.transactional:
            self._journal.append((invitation.id, self.store.get(invitation.id)))
        self.store.set(invitation)

    def _revert_store(self) -> None:
        """Undo uncommitted writes to a non-transactional store, newest first."""
        for invitation_id, previous in reversed(self._journal):
            if previous is None:
                self.store.delete(invitation_id)
            else:
                self.store.set(previous)
        if self._journal:
            self.logger.info(f"Reverted {len(self._journal)} invitation store writes")
        self._journal.clear()

    def _send(self, invitation: InvitationRecord, company: Company) -> bool:
        """Mock delivery through the sync log; marks the invitation sent."""
        self.sync_log.info(
            "profile_sync",
            f"Invitation email sent to {invitation.email}",
            user_id=invitation.email,
            company_id=company.id,
            details={
                "invitationId": invitation.id,
                "roleType": RoleType(invitation.role_type).value,
                "companyName": company.name,
            },
            metadata={"emailProvider": "mock", "sentAt": utcnow().isoformat()},
        )
        invitation.status = "sent"
        invitation.sent_at = utcnow()
        self._write(invitation)
        return True

    def _expire_overdue(self, invitations: List[InvitationRecord]) -> List[InvitationRecord]:
        now = utcnow()
        for invitation in invitations:
            if invitation.status in ACTIVE_STATUSES and invitation.expires_at < now:
                invitation.status = "expired"
                self._write(invitation)
        return invitations
