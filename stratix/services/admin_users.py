from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from stratix.core.roles import RoleType, can_assign_role
from stratix.exceptions import ConflictError, ForbiddenError, NotFoundError
from stratix.models import Profile, ProfileStatusEnum, utcnow
from stratix.repositories import CompanyRepository, ProfileRepository
from stratix.schemas import BatchItemResult, UserBatchRequest, UserFilter, UserOut, UserUpdateRequest
from .base import BaseService
from .sync_logging import SyncLoggingService, sync_logger

PASSWORD_RESET_HOURS = 24


class AdminUserService(BaseService):
    """User administration: filtered listing, batch actions and single updates."""

    def __init__(self, db: Session, sync_log: Optional[SyncLoggingService] = None):
        super().__init__(db)
        self.profiles = ProfileRepository(db)
        self.companies = CompanyRepository(db)
        self.sync_log = sync_log or sync_logger

    def list_users(self, caller: Profile, filters: UserFilter) -> Dict[str, Any]:
        """One page of users with pagination, statistics and the effective filters."""
        if caller.role_type == RoleType.gerente:
            if filters.company_id and filters.company_id != caller.company_id:
                raise ForbiddenError("Cannot access users from other companies")
            filters = filters.model_copy(update={"company_id": caller.company_id})

        profiles, total = self.profiles.search(filters)
        names = self.companies.names_by_id(profile.company_id for profile in profiles)
        users = [self._user_out(profile, names).to_json() for profile in profiles]

        self.logger.info(f"Retrieved {len(users)} of {total} users for {caller.id}")
        return {
            "users": users,
            "pagination": {
                "total": total,
                "limit": filters.limit,
                "offset": filters.offset,
                "hasMore": filters.offset + filters.limit < total,
            },
            "statistics": self.profiles.statistics(filters.company_id),
            "filters": filters.model_dump(by_alias=True, mode="json", exclude_none=True),
            "metadata": {
                "retrievedAt": utcnow().isoformat(),
                "retrievedBy": caller.id,
                "accessLevel": "full" if caller.role_type == RoleType.corporativo else "company",
            },
        }

    def batch_action(self, caller: Profile, request: UserBatchRequest) -> Dict[str, Any]:
        """Apply one action to many users; each user succeeds or fails on its own."""
        options = request.options
        if request.action == "update_role" and options.new_role \
                and not can_assign_role(caller.role_type, options.new_role):
            raise ForbiddenError("Insufficient permissions to assign this role")

        started = utcnow()
        results: List[BatchItemResult] = []
        try:
            self.logger.info(f"Batch {request.action} on {len(request.user_ids)} users by {caller.id}")
            for user_id in request.user_ids:
                try:
                    with self.savepoint():
                        success, message, data = self._apply(caller, request, user_id)
                except Exception as e:
                    self.logger.error(f"Batch {request.action} failed for {user_id}: {str(e)}")
                    success, message, data = False, str(e), {}

                results.append(BatchItemResult(
                    user_id=user_id,
                    success=success,
                    action=request.action,
                    message=message,
                    data=data,
                ))
                if success and options.notify_users:
                    self._notify(user_id, request.action, {
                        "reason": options.reason,
                        "performedBy": caller.id,
                        **data,
                    })

            self.commit()
        except Exception as e:
            self.rollback()
            self.logger.error(f"Batch {request.action} aborted: {str(e)}")
            raise

        successful = sum(1 for result in results if result.success)
        summary = {"total": len(results), "successful": successful, "failed": len(results) - successful}
        self.sync_log.log_timing(
            "batch_sync",
            started,
            f"Batch user action: {request.action}",
            details={"action": request.action, **summary},
            metadata={"performedBy": caller.id},
        )

        return {
            "action": request.action,
            "results": [result.to_json() for result in results],
            "summary": summary,
            "options": options.model_dump(by_alias=True, mode="json"),
            "performedBy": caller.id,
            "performedAt": utcnow().isoformat(),
        }

    def update_user(self, caller: Profile, request: UserUpdateRequest) -> Dict[str, Any]:
        updates = request.updates
        try:
            target = self.profiles.get_active(request.user_id)
            if target is None:
                raise NotFoundError("User", request.user_id)

            is_corporate = caller.role_type == RoleType.corporativo
            if not is_corporate and target.company_id != caller.company_id:
                raise ForbiddenError("Cannot update users from other companies")
            if updates.role_type and not can_assign_role(caller.role_type, updates.role_type):
                raise ForbiddenError("Insufficient permissions to assign this role")
            if updates.company_id and updates.company_id != target.company_id:
                if not is_corporate:
                    raise ForbiddenError("Only corporate admins can transfer users between companies")
                if self.companies.get(updates.company_id) is None:
                    raise NotFoundError("Target company")
            if updates.email and updates.email.lower() != target.email.lower():
                other = self.profiles.get_by_email(updates.email)
                if other is not None and other.id != target.id:
                    raise ConflictError("Email address is already in use")

            previous: Dict[str, Any] = {}
            changes = {
                "displayName": ("display_name", updates.display_name),
                "email": ("email", updates.email),
                "roleType": ("role_type", updates.role_type),
                "companyId": ("company_id", updates.company_id),
                "departmentId": ("department_id", updates.department_id),
                "status": ("status", ProfileStatusEnum(updates.status) if updates.status else None),
            }
            for field, (attribute, value) in changes.items():
                current = getattr(target, attribute)
                if value is not None and value != current:
                    previous[field] = current.value if hasattr(current, "value") else current
                    setattr(target, attribute, value)
            if updates.metadata:
                previous["metadata"] = dict(target.profile_metadata or {})
                target.profile_metadata = {**(target.profile_metadata or {}), **updates.metadata}

            target.updated_at = utcnow()
            self.commit()
        except Exception as e:
            self.rollback()
            self.logger.error(f"Error updating user {request.user_id}: {str(e)}")
            raise

        updated_fields = list(previous)
        if request.notify_user and updated_fields:
            self._notify(target.id, "profile_update", {
                "updatedFields": updated_fields,
                "reason": request.reason,
                "performedBy": caller.id,
            })
        self.sync_log.info(
            "profile_sync",
            f"User profile updated: {target.id}",
            user_id=target.id,
            company_id=target.company_id,
            details={"updatedFields": updated_fields, "previousValues": previous, "reason": request.reason},
            metadata={"updatedBy": caller.id},
        )

        names = self.companies.names_by_id([target.company_id])
        return {
            "userId": target.id,
            "updatedFields": updated_fields,
            "previousValues": previous,
            "newValues": updates.model_dump(by_alias=True, mode="json", exclude_none=True),
            "updatedUser": self._user_out(target, names).to_json(),
            "updatedBy": caller.id,
            "updatedAt": utcnow().isoformat(),
            "reason": request.reason,
        }

    def _apply(self, caller: Profile, request: UserBatchRequest, user_id: str) -> Tuple[bool, str, Dict[str, Any]]:
        action, options = request.action, request.options
        if action == "delete" and not options.force_action:
            return False, "User deletion requires forceAction flag", {}

        profile = self.profiles.get_active(user_id)
        if profile is None:
            return False, "User not found", {}

        now = utcnow()
        if action in ("activate", "deactivate"):
            previous = profile.status.value
            profile.status = ProfileStatusEnum.active if action == "activate" else ProfileStatusEnum.inactive
            message = "User activated" if action == "activate" else "User deactivated"
            data = {"previousStatus": previous, "newStatus": profile.status.value}

        elif action == "delete":
            profile.deleted_at = now
            profile.status = ProfileStatusEnum.inactive
            message, data = "User deleted", {"deletedAt": now.isoformat()}

        elif action == "update_role":
            if not options.new_role:
                return False, "New role is required for role update", {}
            previous = profile.role_type.value
            profile.role_type = options.new_role
            message, data = "Role updated", {"previousRole": previous, "newRole": options.new_role.value}

        elif action == "transfer_company":
            if not options.new_company_id:
                return False, "New company ID is required for transfer", {}
            company = self.companies.get(options.new_company_id)
            if company is None:
                return False, "Target company not found", {}
            previous = profile.company_id
            profile.company_id = company.id
            message = "User transferred"
            data = {"previousCompanyId": previous, "newCompanyId": company.id, "targetCompanyName": company.name}

        else:  # reset_password
            expires = now + timedelta(hours=PASSWORD_RESET_HOURS)
            profile.profile_metadata = {
                **(profile.profile_metadata or {}),
                "passwordReset": {
                    "requestedAt": now.isoformat(),
                    "requestedBy": caller.id,
                    "expiresAt": expires.isoformat(),
                },
            }
            message = "Password reset initiated"
            data = {"resetSent": True, "resetMethod": "email", "resetExpires": expires.isoformat()}

        profile.updated_at = now
        self.db.flush()
        return True, message, data

    def _notify(self, user_id: str, action: str, details: Dict[str, Any]) -> None:
        self.sync_log.info(
            "profile_sync",
            f"User notification sent: {action}",
            user_id=user_id,
            details={"action": action, **details},
            metadata={"notificationProvider": "mock", "sentAt": utcnow().isoformat()},
        )

    @staticmethod
    def _user_out(profile: Profile, company_names: Dict[str, str]) -> UserOut:
        return UserOut(
            id=profile.id,
            email=profile.email,
            display_name=profile.display_name,
            role_type=profile.role_type,
            company_id=profile.company_id,
            company_name=company_names.get(profile.company_id) or "Unknown Company",
            department_id=profile.department_id,
            status=profile.status,
            metadata=profile.profile_metadata or {},
            created_at=profile.created_at,
            last_active=profile.last_active,
        )
