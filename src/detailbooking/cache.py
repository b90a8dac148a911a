"""Time-bounded cache used for registry lookups."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Generic, TypeVar

from .util import utc_now

T = TypeVar("T")

DEFAULT_TTL = timedelta(hours=24)


class TTLCache(ABC, Generic[T]):
    """Key/value cache whose entries expire after ``ttl``."""

    @property
    @abstractmethod
    def ttl(self) -> timedelta:
        """Lifetime of an entry."""

    @abstractmethod
    def get(self, key: str) -> T | None:
        """Return a live entry, or None when missing or expired."""

    @abstractmethod
    def set(self, key: str, value: T) -> None:
        """Store a value, replacing any previous entry."""


class InMemoryTTLCache(TTLCache[T]):
    """Process-local cache. Concurrent writers of one key are last-write-wins.

    Expired entries are dropped on every ``set``. With ``max_entries`` the
    oldest entries are evicted once the cache is full.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        *,
        max_entries: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive.")
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive.")
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        # Insertion order is store order; set() re-inserts overwritten keys.
        self._entries: dict[str, tuple[T, datetime]] = {}

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: T) -> None:
        now = self._clock()
        self._entries.pop(key, None)
        self._prune(now)
        if self._max_entries is not None:
            while len(self._entries) >= self._max_entries:
                del self._entries[next(iter(self._entries))]
        self._entries[key] = (value, now)

    def _prune(self, now: datetime) -> None:
        # Entries are ordered by store time, so the expired ones lead.
        while self._entries:
            oldest = next(iter(self._entries))
            if now - self._entries[oldest][1] < self._ttl:
                break
            del self._entries[oldest]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
