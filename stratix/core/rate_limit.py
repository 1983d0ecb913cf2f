"""Fixed-window rate limiting keyed by user, category and route.

Counters live in a ``limits`` storage backend chosen by
``RATE_LIMIT_STORAGE_URI`` (``memory://`` by default, ``redis://...`` to
share windows between workers). Expired windows are dropped by the storage.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter

from .config import settings
from .logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float


class RateLimiter:
    """Per-category hit limits over one shared storage backend."""

    def __init__(
        self,
        limits: Optional[Dict[str, int]] = None,
        window_seconds: Optional[int] = None,
        storage_uri: Optional[str] = None,
    ):
        self.limits = dict(limits or settings.rate_limits)
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self.storage = storage_from_string(storage_uri or settings.rate_limit_storage_uri)
        self._strategy = FixedWindowRateLimiter(self.storage)

    def _item(self, category: str) -> RateLimitItem:
        amount = self.limits.get(category, self.limits.get("standard", 50))
        return RateLimitItemPerSecond(amount, self.window_seconds, namespace="stratix")

    def hit(self, category: str, user_id: str, endpoint: str = "") -> RateLimitResult:
        item = self._item(category)
        allowed = self._strategy.hit(item, category, user_id, endpoint)
        stats = self._strategy.get_window_stats(item, category, user_id, endpoint)

        if not allowed:
            logger.warning(f"Rate limit exceeded for {user_id} on {category}:{endpoint}")
        return RateLimitResult(allowed, stats.remaining, stats.reset_time)

    def reset(self) -> None:
        self.storage.reset()


rate_limiter = RateLimiter()
