from collections import deque
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

from stratix.core.logging import get_logger
from stratix.models import utcnow

logger = get_logger(__name__)


class AnalyticsTracker:
    """Records product analytics events.

    Events go to the log and to a bounded in-memory buffer. Tracking never
    raises into the caller.
    """

    def __init__(self, max_events: int = 1000):
        self._events: Deque[Dict[str, Any]] = deque(maxlen=max_events)
        self._lock = Lock()

    def track(self, event: str, properties: Optional[Dict[str, Any]] = None) -> None:
        try:
            record = {
                "event": event,
                "properties": dict(properties or {}),
                "timestamp": utcnow().isoformat(),
            }
            with self._lock:
                self._events.append(record)
            logger.info(f"Analytics event: {event}", extra={"analytics": record["properties"]})
        except Exception as e:
            logger.error(f"Failed to track analytics event {event}: {str(e)}")

    def events(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            events = list(self._events)
        if name:
            events = [record for record in events if record["event"] == name]
        return events

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


analytics = AnalyticsTracker()
