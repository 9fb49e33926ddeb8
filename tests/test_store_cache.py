"""
Tests for the count cache.
"""

from __future__ import annotations

import pytest

from store.cache import CountCache


class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_get_within_ttl_and_expiry():
    clock = Clock()
    cache = CountCache(ttl_seconds=5.0, clock=clock)
    cache.set("k", 42)
    clock.now += 4.9
    assert cache.get("k") == 42
    clock.now += 0.2
    assert cache.get("k") is None
    assert len(cache) == 0


def test_oldest_entry_is_evicted():
    cache = CountCache(ttl_seconds=60.0, max_entries=2, clock=Clock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    assert cache.get("a") is None
    assert cache.get("b") == 2 and cache.get("c") == 3


def test_set_refreshes_existing_key():
    clock = Clock()
    cache = CountCache(ttl_seconds=5.0, max_entries=2, clock=clock)
    cache.set("a", 1)
    clock.now += 4.0
    cache.set("a", 7)
    clock.now += 4.0
    assert cache.get("a") == 7


@pytest.mark.parametrize("kwargs", [{"ttl_seconds": 0}, {"max_entries": 0}])
def test_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        CountCache(**kwargs)
