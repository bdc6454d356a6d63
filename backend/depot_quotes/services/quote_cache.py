"""Process-local quote cache and upstream call budget.

Both objects live as long as the hosting process. Nothing here is shared
between instances: with several workers each one has its own cache and its
own budget, so the ceilings are advisory per instance, not global.
"""
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from cachetools import LRUCache

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

MINUTE_WINDOW = timedelta(seconds=60)
RETENTION_WINDOW = timedelta(hours=24)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheState(str, Enum):
    """Governor state for one lookup key (for logging and tests)."""
    FRESH = "fresh"                              # cached, age < TTL
    STALE_WITHIN_BUDGET = "stale_within_budget"  # cached or empty, may call upstream
    STALE_OVER_BUDGET = "stale_over_budget"      # cached, budget exhausted
    EMPTY_OVER_BUDGET = "empty_over_budget"      # nothing cached, budget exhausted


@dataclass
class CacheEntry:
    """Cached quote payload and the time it was fetched upstream."""
    data: Any
    fetched_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()


class CacheStore:
    """
    In-memory quote cache keyed by resolved symbol.

    Entries are never expired by time: past the TTL they stay readable as
    stale fallback. Size is bounded by LRU eviction only.
    """

    def __init__(self, ttl_seconds: int, max_entries: int = 1000):
        self.ttl_seconds = ttl_seconds
        self._entries: LRUCache = LRUCache(maxsize=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key.upper())

    def set(self, key: str, data: Any, fetched_at: datetime) -> CacheEntry:
        entry = CacheEntry(data=data, fetched_at=fetched_at)
        self._entries[key.upper()] = entry
        return entry

    def is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
        return entry.age_seconds(now) < self.ttl_seconds

    def clear(self) -> None:
        self._entries.clear()


class RateBudget:
    """
    Upstream call accounting with two independent ceilings.

    - minute ceiling: calls within the trailing 60 seconds (sliding window)
    - day ceiling: calls within the current UTC calendar day

    Timestamps are pruned to the last 24 hours on every record().
    """

    def __init__(self, per_minute: int, per_day: int, clock: Clock = utc_now):
        self.per_minute = per_minute
        self.per_day = per_day
        self.clock = clock
        self._calls: deque[datetime] = deque()

    def _prune(self, now: datetime) -> None:
        cutoff = now - RETENTION_WINDOW
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()

    def record(self, now: datetime | None = None) -> None:
        """Count one upstream call attempt (successful or not)."""
        now = now or self.clock()
        self._calls.append(now)
        self._prune(now)

    def _minute_window(self, now: datetime) -> list[datetime]:
        start = now - MINUTE_WINDOW
        return [ts for ts in self._calls if ts > start]

    def minute_count(self, now: datetime | None = None) -> int:
        return len(self._minute_window(now or self.clock()))

    def day_count(self, now: datetime | None = None) -> int:
        today = (now or self.clock()).astimezone(timezone.utc).date()
        return sum(1 for ts in self._calls if ts.astimezone(timezone.utc).date() == today)

    def at_limit(self, now: datetime | None = None) -> bool:
        now = now or self.clock()
        return self.minute_count(now) >= self.per_minute or self.day_count(now) >= self.per_day

    def reset_time(self, now: datetime | None = None) -> datetime:
        """Estimate when the next upstream call becomes possible.

        Returns ``now`` when the budget is not exhausted.
        """
        now = now or self.clock()
        reset = now

        window = self._minute_window(now)
        if len(window) >= self.per_minute:
            # The window must shrink below the ceiling again
            index = len(window) - self.per_minute
            reset = max(reset, window[index] + MINUTE_WINDOW) if window else reset

        if self.day_count(now) >= self.per_day:
            today = now.astimezone(timezone.utc).date()
            midnight = datetime(today.year, today.month, today.day, tzinfo=timezone.utc)
            reset = max(reset, midnight + timedelta(days=1))

        return reset

    def snapshot(self, now: datetime | None = None) -> dict[str, Any]:
        now = now or self.clock()
        return {
            "minute_count": self.minute_count(now),
            "day_count": self.day_count(now),
            "minute_limit": self.per_minute,
            "day_limit": self.per_day,
            "next_reset": self.reset_time(now),
        }

    def reset(self) -> None:
        self._calls.clear()
