from datetime import UTC, datetime, timedelta

import pytest

from detailbooking.cache import InMemoryTTLCache


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2025, 3, 4, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


def test_entry_is_returned_until_ttl() -> None:
    clock = _Clock()
    cache: InMemoryTTLCache[str] = InMemoryTTLCache(clock=clock)
    cache.set("reg:AB12CDE", "value")

    clock.now += timedelta(hours=23, minutes=59)
    assert cache.get("reg:AB12CDE") == "value"

    clock.now += timedelta(minutes=1)
    assert cache.get("reg:AB12CDE") is None
    assert len(cache) == 0


def test_set_overwrites_and_restarts_ttl() -> None:
    clock = _Clock()
    cache: InMemoryTTLCache[int] = InMemoryTTLCache(timedelta(hours=1), clock=clock)
    cache.set("key", 1)
    clock.now += timedelta(minutes=50)
    cache.set("key", 2)
    clock.now += timedelta(minutes=50)
    assert cache.get("key") == 2


def test_missing_key() -> None:
    cache: InMemoryTTLCache[int] = InMemoryTTLCache()
    assert cache.get("missing") is None


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        InMemoryTTLCache(timedelta(0))


def test_set_drops_expired_entries() -> None:
    clock = _Clock()
    cache: InMemoryTTLCache[str] = InMemoryTTLCache(timedelta(hours=1), clock=clock)
    cache.set("reg:AB12CDE", "old")
    cache.set("reg:CD34EFG", "old")
    clock.now += timedelta(minutes=30)
    cache.set("reg:EF56GHI", "newer")

    clock.now += timedelta(minutes=45)
    cache.set("reg:GH78IJK", "newest")

    assert len(cache) == 2
    assert cache.get("reg:EF56GHI") == "newer"


def test_max_entries_evicts_oldest() -> None:
    clock = _Clock()
    cache: InMemoryTTLCache[int] = InMemoryTTLCache(max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 3)
    cache.set("c", 4)

    assert len(cache) == 2
    assert cache.get("b") is None
    assert cache.get("a") == 3
    assert cache.get("c") == 4


def test_max_entries_must_be_positive() -> None:
    with pytest.raises(ValueError):
        InMemoryTTLCache(max_entries=0)
