"""Admin dashboard aggregation and quick actions.

Every section is collected independently: a section that raises is reported
as ``None`` with its error under ``sectionErrors`` and the rest of the
dashboard is still returned.
"""

import copy
import random
from datetime import timedelta
from threading import Lock
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy.orm import Session

from stratix.core.cache import onboarding_status_cache, onboarding_status_key
from stratix.exceptions import ValidationError
from stratix.models import Company, Profile, SessionStatusEnum, utcnow
from stratix.repositories import InvitationStore, OnboardingSessionRepository, ProfileRepository
from .base import BaseService
from .invitations import InvitationService
from .sync_logging import SyncLoggingService, sync_logger

REFRESH_INTERVAL_SECONDS = 30
TREND_DAYS = 7
RECENT_ACTIONS_LIMIT = 10
ADMIN_OPERATIONS = ("role_assignment", "company_assignment", "batch_sync", "profile_sync")
QUICK_ACTIONS = ("refresh_data", "cleanup_sessions", "resolve_alert", "system_health_check")

SHORTCUTS = [
    {"id": "send_invitations", "title": "Send Invitations", "icon": "user-plus", "url": "/admin/invitations/create"},
    {"id": "manage_users", "title": "Manage Users", "icon": "users", "url": "/admin/users"},
    {"id": "view_logs", "title": "System Logs", "icon": "file-text", "url": "/admin/logs"},
]


class SecurityAlertBook:
    """Canned security alerts with per-process resolution state."""

    _SEED = [
        {
            "id": "alert_001",
            "type": "suspicious_activity",
            "severity": "medium",
            "title": "Multiple failed login attempts detected",
            "description": "User user_123 has had 5 failed login attempts in the last hour",
            "minutesAgo": 30,
            "userId": "user_123",
            "status": "open",
            "actions": ["block_user", "require_password_reset", "notify_admin"],
        },
        {
            "id": "alert_002",
            "type": "geo_anomaly",
            "severity": "high",
            "title": "Login from unusual location",
            "description": "User user_456 logged in from a new country",
            "minutesAgo": 120,
            "userId": "user_456",
            "status": "investigating",
            "actions": ["verify_identity", "temporary_restriction", "log_investigation"],
        },
        {
            "id": "alert_003",
            "type": "admin_action",
            "severity": "low",
            "title": "Mass user role changes",
            "description": "Administrator admin_1 changed roles for 15 users in bulk operation",
            "minutesAgo": 240,
            "userId": "admin_1",
            "status": "resolved",
            "actions": ["audit_completed", "documentation_updated"],
        },
    ]

    def __init__(self):
        self._lock = Lock()
        self._alerts = copy.deepcopy(self._SEED)

    def unresolved(self) -> List[Dict[str, Any]]:
        now = utcnow()
        with self._lock:
            alerts = [dict(alert) for alert in self._alerts if alert["status"] != "resolved"]
        for alert in alerts:
            alert["timestamp"] = (now - timedelta(minutes=alert.pop("minutesAgo"))).isoformat()
        return alerts

    def resolve(self, alert_id: str, resolved_by: str) -> bool:
        """Mark an alert resolved; returns False when no such alert exists."""
        with self._lock:
            for alert in self._alerts:
                if alert["id"] == alert_id:
                    alert["status"] = "resolved"
                    alert["resolvedBy"] = resolved_by
                    return True
        return False

    def reset(self) -> None:
        with self._lock:
            self._alerts = copy.deepcopy(self._SEED)


security_alerts = SecurityAlertBook()


def compute_health(session_stats: Dict[str, Any], error_stats: Dict[str, Any], performance: Dict[str, Any]) -> Dict[str, Any]:
    """Score starts at 100 and loses points for errors, slow operations and session pile-up."""
    active = session_stats.get("activeSessions", 0)
    total = session_stats.get("totalSessions", 0)

    score = 100.0
    error_rate = error_stats.get("totalErrors", 0) / max(active, 1)
    score -= min(error_rate * 50, 40)

    if performance.get("overallHealth") == "degraded":
        score -= 20
    elif performance.get("overallHealth") == "unhealthy":
        score -= 40

    if total and active > total * 0.8:
        score -= 10

    score = max(0, round(score))
    if score >= 80:
        status = "healthy"
    elif score >= 60:
        status = "warning"
    else:
        status = "critical"
    return {"score": score, "status": status, "lastUpdated": utcnow().isoformat()}


def activity_trends(days: int = TREND_DAYS) -> List[Dict[str, Any]]:
    """Synthetic daily activity; seeded by date so a day's numbers are stable."""
    today = utcnow().date()
    trends = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        rng = random.Random(day.toordinal())
        trends.append({
            "date": day.isoformat(),
            "activeUsers": rng.randint(50, 149),
            "newRegistrations": rng.randint(1, 10),
            "loginAttempts": rng.randint(75, 224),
            "failedLogins": rng.randint(2, 11),
            "sessionDuration": rng.randint(60, 179),
        })
    return trends


class AdminDashboardService(BaseService):
    """Aggregates dashboard sections and runs quick actions."""

    def __init__(
        self,
        db: Session,
        invitation_store: InvitationStore,
        sync_log: Optional[SyncLoggingService] = None,
        alerts: Optional[SecurityAlertBook] = None,
    ):
        super().__init__(db)
        self.sessions = OnboardingSessionRepository(db)
        self.profiles = ProfileRepository(db)
        self.invitations = InvitationService(db, invitation_store, sync_log)
        self.sync_log = sync_log or sync_logger
        self.alerts = alerts or security_alerts

    def overview(self, caller: Profile) -> Dict[str, Any]:
        section_errors: Dict[str, str] = {}

        def settle(name: str, collect: Callable[[], Any]) -> Any:
            try:
                return collect()
            except Exception as e:
                self.logger.error(f"Dashboard section {name} failed: {str(e)}")
                self.rollback()
                section_errors[name] = str(e)
                return None

        session_stats = settle("sessionStats", self.session_statistics)
        error_stats = settle("errorStats", self.sync_log.get_error_stats)
        performance = settle("performanceMetrics", self.sync_log.get_performance_metrics)
        health = settle("systemHealth", lambda: compute_health(session_stats or {}, error_stats or {}, performance or {}))
        user_stats = settle("userStats", self.user_statistics)
        company_stats = settle("companyStats", self.company_statistics)
        invitation_stats = settle("invitationStats", self.invitation_statistics)
        trends = settle("userTrends", activity_trends)
        alerts = settle("securityAlerts", self.alerts.unresolved)
        recent = settle("recentActions", self.recent_admin_actions)

        sync_health = (performance or {}).get("overallHealth")
        now = utcnow().isoformat()
        return {
            "overview": {
                "systemHealth": health,
                "userStats": user_stats,
                "companyStats": company_stats,
                "sessionStats": session_stats,
                "invitationStats": invitation_stats,
            },
            "activity": {
                "userTrends": trends,
                "recentActions": recent,
                "securityAlerts": alerts,
            },
            "performance": {
                "metrics": performance,
                "errorStats": error_stats,
            },
            "systemStatus": {
                "database": "degraded" if "sessionStats" in section_errors else "operational",
                "sessions": "operational" if (session_stats or {}).get("activeSessions") else "degraded",
                "sync": "operational" if sync_health == "healthy" else "degraded",
            },
            "quickActions": SHORTCUTS,
            "sectionErrors": section_errors,
            "metadata": {
                "generatedAt": now,
                "generatedBy": caller.id,
                "refreshInterval": REFRESH_INTERVAL_SECONDS,
            },
        }

    def session_statistics(self) -> Dict[str, Any]:
        counts = self.sessions.count_by_status()
        return {
            "totalSessions": sum(counts.values()),
            "activeSessions": counts.get(SessionStatusEnum.in_progress.value, 0),
            "byStatus": counts,
            "averageCompletion": self.sessions.average_completion(),
        }

    def user_statistics(self) -> Dict[str, Any]:
        stats = self.profiles.statistics()
        week_ago = utcnow() - timedelta(days=7)
        stats["newThisWeek"] = self.profiles.count(Profile.deleted_at.is_(None), Profile.created_at >= week_ago)
        return stats

    def company_statistics(self) -> Dict[str, Any]:
        companies = self.db.query(Company).all()
        sizes = {company.id: 0 for company in companies}
        for profile in self.db.query(Profile).filter(Profile.deleted_at.is_(None)).all():
            if profile.company_id in sizes:
                sizes[profile.company_id] += 1

        largest = None
        if companies:
            biggest = max(companies, key=lambda company: sizes[company.id])
            largest = {"id": biggest.id, "name": biggest.name, "users": sizes[biggest.id]}
        newest = max(companies, key=lambda company: company.created_at, default=None)
        return {
            "total": len(companies),
            "largest": largest,
            "newest": {"id": newest.id, "name": newest.name} if newest else None,
        }

    def invitation_statistics(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = dict(self.invitations.statistics())
        decided = stats["accepted"] + stats["expired"] + stats["cancelled"]
        stats["acceptanceRate"] = round(stats["accepted"] / decided * 100, 1) if decided else 0.0
        return stats

    def recent_admin_actions(self) -> List[Dict[str, Any]]:
        entries = [entry for entry in self.sync_log.get_logs() if entry.operation in ADMIN_OPERATIONS]
        return [
            {
                "id": entry.id,
                "operation": entry.operation,
                "message": entry.message,
                "userId": entry.user_id,
                "companyId": entry.company_id,
                "timestamp": entry.timestamp.isoformat(),
                "level": entry.level,
            }
            for entry in entries[:RECENT_ACTIONS_LIMIT]
        ]

    def run_action(self, caller: Profile, action: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        if action not in QUICK_ACTIONS:
            raise ValidationError("Unknown action", {"action": action, "allowed": list(QUICK_ACTIONS)})

        now = utcnow().isoformat()
        if action == "refresh_data":
            result = {"message": "Dashboard data refreshed successfully"}

        elif action == "cleanup_sessions":
            cleaned = self.cleanup_sessions()
            result = {"cleaned": cleaned, "message": f"Cleaned up {cleaned} expired sessions"}

        elif action == "resolve_alert":
            alert_id = (parameters or {}).get("alertId")
            if not alert_id:
                raise ValidationError("Alert ID is required")
            found = self.alerts.resolve(alert_id, caller.id)
            result = {
                "alertId": alert_id,
                "resolved": found,
                "resolvedBy": caller.id,
                "message": f"Security alert {alert_id} resolved" if found else f"Security alert {alert_id} not found",
            }

        else:  # system_health_check
            session_stats = self.session_statistics()
            performance = self.sync_log.get_performance_metrics()
            health = compute_health(session_stats, self.sync_log.get_error_stats(), performance)
            result = {
                "healthCheck": {
                    "checks": {
                        "database": {"status": "healthy"},
                        "sessions": {"status": "healthy", "activeSessions": session_stats["activeSessions"]},
                        "sync": {"status": performance["overallHealth"]},
                    },
                    "overallStatus": health["status"],
                    "score": health["score"],
                },
                "message": "System health check completed",
            }

        result = {"action": action, "status": "completed", "timestamp": now, **result}
        self.sync_log.info(
            "health_check",
            f"Dashboard action executed: {action}",
            user_id=caller.id,
            details={"action": action, "parameters": parameters},
            metadata={"dashboardAction": True},
        )
        return result

    def cleanup_sessions(self) -> int:
        """Mark every overdue in-progress onboarding session expired."""
        try:
            overdue = self.sessions.list_past_due()
            now = utcnow()
            for session in overdue:
                session.status = SessionStatusEnum.expired
                session.updated_at = now
            self.commit()
            for session in overdue:
                onboarding_status_cache.delete(onboarding_status_key(session.user_id))
            self.logger.info(f"Expired {len(overdue)} onboarding sessions")
            return len(overdue)
        except Exception as e:
            self.rollback()
            self.logger.error(f"Error cleaning up onboarding sessions: {str(e)}")
            raise
