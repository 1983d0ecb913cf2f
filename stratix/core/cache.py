"""In-process TTL cache.

Used for validation results, transformation results and the per-user
onboarding status. Entries expire lazily on read; when the cache is full
the entry closest to expiry is evicted.
"""

import hashlib
import json
import time
from threading import Lock
from typing import Any, Dict, Optional

from .config import settings

DEFAULT_TTL_SECONDS = 300
MAX_ENTRIES = 1000


def compute_hash(*parts: Any) -> str:
    """Deterministic hash of JSON-serializable parts (keys sorted)."""
    payload = json.dumps(parts, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode()).hexdigest()


class TTLCache:
    """Thread-safe dict cache with per-entry expiry."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, max_entries: int = MAX_ENTRIES):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: Dict[str, tuple] = {}  # key -> (expires_at, value)
        self._lock = Lock()
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "evictions": 0}

    def get(self, key: str) -> Optional[Any]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry and entry[0] > now:
                self._stats["hits"] += 1
                return entry[1]
            if entry:
                del self._entries[key]
            self._stats["misses"] += 1
            return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        expires_at = time.monotonic() + (ttl_seconds or self.ttl_seconds)
        with self._lock:
            self._entries[key] = (expires_at, value)
            self._stats["sets"] += 1
            self._enforce_limit()

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._stats["evictions"] += len(self._entries)
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        """Return cache statistics."""
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / total * 100) if total > 0 else 0.0
        with self._lock:
            size = len(self._entries)
        return {
            **self._stats,
            "hit_rate_pct": round(hit_rate, 2),
            "entries": size,
            "ttl_seconds": self.ttl_seconds,
        }

    def _enforce_limit(self) -> None:
        # Caller holds the lock
        if len(self._entries) <= self.max_entries:
            return
        now = time.monotonic()
        expired = [k for k, (exp, _) in self._entries.items() if exp <= now]
        for key in expired:
            del self._entries[key]
        while len(self._entries) > self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[oldest]
            self._stats["evictions"] += 1


def onboarding_status_key(user_id: str) -> str:
    return f"onboarding_status_{user_id}"


# Per-user onboarding status summaries; invalidated on progress and completion
onboarding_status_cache = TTLCache(ttl_seconds=settings.status_cache_ttl_seconds)
