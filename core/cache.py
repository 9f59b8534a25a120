"""Time-boxed memoisation for analytics queries."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Hashable, Optional, TypeVar

__all__ = ["CacheKind", "AnalyticsCache"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheKind(str, Enum):
    SPENDING_TREND = "spending_trend"
    CATEGORY_BREAKDOWN = "category_breakdown"
    MONTHLY_AVERAGE = "monthly_average"
    FORECAST = "forecast"


# Kinds that only remember their most recent key.
_SINGLE_SLOT = frozenset({CacheKind.FORECAST})


class AnalyticsCache:
    """Shared TTL cache in front of the analytics engines.

    All entries share one populated-at timestamp: any store refreshes the
    window for every kind. Once the window lapses the next read drops every
    entry, so a value computed before expiry is never served again. A value
    is only stored after its computation returns.
    """

    def __init__(self, ttl: timedelta, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[CacheKind, dict[Hashable, object]] = {}
        self._populated_at: Optional[datetime] = None
        self.hits = 0
        self.misses = 0

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def populated_at(self) -> Optional[datetime]:
        return self._populated_at

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        if self._populated_at is None:
            return False
        moment = now if now is not None else self._clock()
        return moment - self._populated_at < self._ttl

    def get_or_compute(self, kind: CacheKind, key: Hashable, compute: Callable[[], T]) -> T:
        now = self._clock()
        if not self.is_valid(now) and self._entries:
            logger.debug("Analytics cache expired; dropping %d kind(s)", len(self._entries))
            self._entries.clear()

        slot = self._entries.get(kind)
        if slot is not None and key in slot:
            self.hits += 1
            logger.debug("Analytics cache hit: %s[%r]", kind.value, key)
            return slot[key]  # type: ignore[return-value]

        self.misses += 1
        logger.debug("Analytics cache miss: %s[%r]", kind.value, key)
        value = compute()
        if kind in _SINGLE_SLOT or slot is None:
            self._entries[kind] = {key: value}
        else:
            slot[key] = value
        self._populated_at = now
        return value

    def clear(self) -> None:
        """Drop every entry; call after any store mutation."""

        self._entries.clear()
        self._populated_at = None
        logger.debug("Analytics cache cleared")

    def __contains__(self, item: tuple[CacheKind, Hashable]) -> bool:
        kind, key = item
        return key in self._entries.get(kind, {})
