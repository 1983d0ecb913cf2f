"""Structured operational log for admin and profile synchronization work.

Entries are kept in memory (bounded) for the admin dashboard and are also
forwarded to the standard ``logging`` tree under ``stratix.sync``.
"""

import csv
import io
import json
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from threading import Lock
from typing import Any, Deque, Dict, List, Optional, Union

from stratix.core.logging import get_logger
from stratix.models import utcnow

LOG_LEVELS = ("debug", "info", "warn", "error", "critical")
LEVEL_ORDER = {level: index for index, level in enumerate(LOG_LEVELS)}
OPERATIONS = (
    "profile_sync",
    "role_assignment",
    "company_assignment",
    "conflict_resolution",
    "batch_sync",
    "health_check",
)
ERROR_CATEGORIES = (
    "network",
    "validation",
    "authorization",
    "data_integrity",
    "external_service",
    "system",
    "user_error",
)

MAX_LOG_ENTRIES = 10000
MAX_DURATIONS_PER_OPERATION = 1000

_STDLIB_LEVELS = {"debug": 10, "info": 20, "warn": 30, "error": 40, "critical": 50}

# (keywords, code, category, retryable), first match wins
_ERROR_RULES = (
    (("network", "fetch"), "NETWORK_ERROR", "network", True),
    (("validation", "invalid"), "VALIDATION_ERROR", "validation", False),
    (("unauthorized", "forbidden"), "AUTH_ERROR", "authorization", False),
    (("not found", "missing"), "DATA_NOT_FOUND", "data_integrity", False),
    (("timeout",), "TIMEOUT_ERROR", "network", True),
)


@dataclass
class SyncError:
    code: str
    category: str
    message: str
    retryable: bool
    details: Optional[Any] = None


@dataclass
class SyncLogEntry:
    id: str
    timestamp: datetime
    level: str
    operation: str
    message: str
    user_id: Optional[str] = None
    company_id: Optional[str] = None
    details: Optional[Any] = None
    error: Optional[SyncError] = None
    duration: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


def classify_error(error: Union[BaseException, SyncError, str]) -> SyncError:
    """Map an exception (or message) onto a code/category by keyword."""
    if isinstance(error, SyncError):
        return error
    message = str(error)
    lowered = message.lower()
    for keywords, code, category, retryable in _ERROR_RULES:
        if any(keyword in lowered for keyword in keywords):
            return SyncError(code=code, category=category, message=message, retryable=retryable)
    return SyncError(code="UNKNOWN_ERROR", category="system", message=message, retryable=False)


class SyncLoggingService:
    """Bounded in-memory structured log with error and timing statistics."""

    def __init__(self, max_entries: int = MAX_LOG_ENTRIES, max_durations: int = MAX_DURATIONS_PER_OPERATION):
        self.logger = get_logger("stratix.sync")
        self._logs: Deque[SyncLogEntry] = deque(maxlen=max_entries)
        self._error_counts: Dict[str, int] = defaultdict(int)
        self._durations: Dict[str, Deque[float]] = {
            operation: deque(maxlen=max_durations) for operation in OPERATIONS
        }
        self._max_durations = max_durations
        self._lock = Lock()

    def log(
        self,
        level: str,
        operation: str,
        message: str,
        *,
        user_id: Optional[str] = None,
        company_id: Optional[str] = None,
        details: Optional[Any] = None,
        error: Optional[Union[BaseException, SyncError, str]] = None,
        duration: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SyncLogEntry:
        if level not in LEVEL_ORDER:
            raise ValueError(f"Unknown log level: {level}")

        entry = SyncLogEntry(
            id=f"log_{uuid.uuid4().hex[:12]}",
            timestamp=utcnow(),
            level=level,
            operation=operation,
            message=message,
            user_id=user_id,
            company_id=company_id,
            details=details,
            duration=duration,
            metadata=metadata or {},
        )
        if error is not None:
            entry.error = classify_error(error)

        with self._lock:
            if entry.error:
                self._error_counts[entry.error.code] += 1
            if duration is not None:
                durations = self._durations.setdefault(operation, deque(maxlen=self._max_durations))
                durations.append(duration)
            self._logs.append(entry)

        self._forward(entry)
        return entry

    def debug(self, operation: str, message: str, **options: Any) -> SyncLogEntry:
        return self.log("debug", operation, message, **options)

    def info(self, operation: str, message: str, **options: Any) -> SyncLogEntry:
        return self.log("info", operation, message, **options)

    def warn(self, operation: str, message: str, **options: Any) -> SyncLogEntry:
        return self.log("warn", operation, message, **options)

    def error(self, operation: str, message: str, **options: Any) -> SyncLogEntry:
        return self.log("error", operation, message, **options)

    def critical(self, operation: str, message: str, **options: Any) -> SyncLogEntry:
        return self.log("critical", operation, message, **options)

    def log_timing(self, operation: str, started: datetime, message: str, **options: Any) -> SyncLogEntry:
        """Log at info level with the elapsed milliseconds since ``started``."""
        duration = (utcnow() - started).total_seconds() * 1000
        return self.log("info", operation, message, duration=round(duration, 2), **options)

    def _forward(self, entry: SyncLogEntry) -> None:
        extra = {
            key: value for key, value in (
                ("user_id", entry.user_id),
                ("company_id", entry.company_id),
                ("duration_ms", entry.duration),
            ) if value is not None
        }
        line = f"[{entry.operation.upper()}] {entry.message}"
        if entry.error:
            line += f" ({entry.error.code}: {entry.error.message})"
        self.logger.log(_STDLIB_LEVELS[entry.level], line, extra={"sync": extra} if extra else None)

    def get_logs(
        self,
        level: Optional[str] = None,
        operation: Optional[str] = None,
        user_id: Optional[str] = None,
        company_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[SyncLogEntry]:
        """Filtered entries, newest first. ``level`` is a minimum level."""
        with self._lock:
            logs = list(self._logs)

        if level:
            minimum = LEVEL_ORDER[level]
            logs = [entry for entry in logs if LEVEL_ORDER[entry.level] >= minimum]
        if operation:
            logs = [entry for entry in logs if entry.operation == operation]
        if user_id:
            logs = [entry for entry in logs if entry.user_id == user_id]
        if company_id:
            logs = [entry for entry in logs if entry.company_id == company_id]
        if since:
            logs = [entry for entry in logs if entry.timestamp >= since]

        logs.sort(key=lambda entry: entry.timestamp, reverse=True)
        if limit and limit > 0:
            logs = logs[:limit]
        return logs

    def get_error_stats(self) -> Dict[str, Any]:
        by_category = {category: 0 for category in ERROR_CATEGORIES}
        with self._lock:
            error_logs = [entry for entry in self._logs if entry.error]
            by_code = dict(self._error_counts)
        for entry in error_logs:
            by_category[entry.error.category] = by_category.get(entry.error.category, 0) + 1
        return {
            "totalErrors": len(error_logs),
            "errorsByCode": by_code,
            "errorsByCategory": by_category,
        }

    def get_performance_metrics(self) -> Dict[str, Any]:
        operation_stats: Dict[str, Dict[str, float]] = {}
        with self._lock:
            durations = {operation: list(values) for operation, values in self._durations.items()}
            logs = list(self._logs)

        for operation, values in durations.items():
            if not values:
                operation_stats[operation] = {
                    "count": 0,
                    "averageDuration": 0,
                    "minDuration": 0,
                    "maxDuration": 0,
                    "p95Duration": 0,
                }
                continue
            ordered = sorted(values)
            p95_index = min(int(len(ordered) * 0.95), len(ordered) - 1)
            operation_stats[operation] = {
                "count": len(values),
                "averageDuration": round(sum(values) / len(values)),
                "minDuration": ordered[0],
                "maxDuration": ordered[-1],
                "p95Duration": ordered[p95_index],
            }

        cutoff = utcnow() - timedelta(hours=1)
        recent = [entry for entry in logs if entry.timestamp > cutoff]
        recent_errors = sum(1 for entry in recent if entry.error)
        error_rate = recent_errors / len(recent) if recent else 0.0

        overall_health = "healthy"
        if error_rate > 0.1:
            overall_health = "unhealthy"
        elif error_rate > 0.05:
            overall_health = "degraded"

        return {
            "operationStats": operation_stats,
            "overallHealth": overall_health,
            "errorRate": round(error_rate, 4),
        }

    def cleanup(self, older_than: Optional[datetime] = None, keep_last: Optional[int] = None) -> int:
        """Drop old entries; returns how many were removed."""
        with self._lock:
            initial = len(self._logs)
            logs = list(self._logs)
            if older_than:
                logs = [entry for entry in logs if entry.timestamp >= older_than]
            if keep_last and keep_last > 0:
                logs = logs[-keep_last:]
            self._logs.clear()
            self._logs.extend(logs)
            return initial - len(self._logs)

    def export_logs(self, format: str = "json") -> str:
        with self._lock:
            logs = [entry.to_dict() for entry in self._logs]

        if format == "json":
            return json.dumps(logs, indent=2, default=str)
        if format != "csv":
            raise ValueError(f"Unsupported export format: {format}")

        buffer = io.StringIO()
        columns = ["id", "timestamp", "level", "operation", "message", "user_id",
                   "company_id", "duration", "error_code", "error_category"]
        writer = csv.DictWriter(buffer, fieldnames=columns)
        writer.writeheader()
        for entry in logs:
            error = entry.get("error") or {}
            writer.writerow({
                **{column: entry.get(column) for column in columns[:8]},
                "error_code": error.get("code"),
                "error_category": error.get("category"),
            })
        return buffer.getvalue()

    def reset(self) -> None:
        with self._lock:
            self._logs.clear()
            self._error_counts.clear()
            for values in self._durations.values():
                values.clear()


# Process-wide instance shared by the admin routes
sync_logger = SyncLoggingService()
