"""In-memory cache of expert team membership.

Positive entries use a sliding expiration: every hit pushes the expiry
forward by the configured number of days. Negative entries expire a short,
fixed time after they were written, so a newly added expert is recognised
quickly without refetching the roster on every turn.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


@dataclass
class MembershipCacheEntry:
    """Presence marker for one user."""

    is_member: bool
    last_access: float


class MembershipCache:
    """Thread-safe key/value store of membership results with on-access eviction."""

    def __init__(
        self,
        ttl_days: int = 5,
        negative_ttl_seconds: float = 300.0,
        max_size: int = 5000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the membership cache.

        Args:
            ttl_days: Sliding expiration for members, in days
            negative_ttl_seconds: Lifetime of a non-member result; 0 disables
                negative caching
            max_size: Maximum number of users kept, oldest access evicted first
            clock: Monotonic time source, replaceable in tests
        """
        if ttl_days <= 0:
            raise ValueError("ttl_days must be positive")
        self._ttl_seconds = ttl_days * SECONDS_PER_DAY
        self._negative_ttl_seconds = max(0.0, negative_ttl_seconds)
        self._max_size = max_size
        self._clock = clock

        self._entries: OrderedDict[str, MembershipCacheEntry] = OrderedDict()
        self._lock = threading.RLock()

        self._hits = 0
        self._misses = 0

        logger.info(
            f"MembershipCache initialized: ttl={ttl_days}d, "
            f"negative_ttl={self._negative_ttl_seconds}s, max_size={max_size}"
        )

    def _is_expired(self, entry: MembershipCacheEntry, now: float) -> bool:
        ttl = self._ttl_seconds if entry.is_member else self._negative_ttl_seconds
        return (now - entry.last_access) > ttl

    def get(self, user_id: str) -> Optional[bool]:
        """Return the cached membership of a user, or None on a miss."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is not None:
                if not self._is_expired(entry, now):
                    if entry.is_member:
                        # Sliding expiration
                        entry.last_access = now
                        self._entries.move_to_end(user_id)
                    self._hits += 1
                    return entry.is_member
                del self._entries[user_id]
            self._misses += 1
            return None

    def set(self, user_id: str, is_member: bool) -> None:
        """Store a lookup result; overwrites any existing entry."""
        if not is_member and self._negative_ttl_seconds == 0:
            return
        with self._lock:
            self._entries.pop(user_id, None)
            while len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)
            self._entries[user_id] = MembershipCacheEntry(
                is_member=is_member, last_access=self._clock()
            )

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def get_stats(self) -> Dict[str, float]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total else 0.0,
            }
