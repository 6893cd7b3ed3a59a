from __future__ import annotations

from unittest.mock import Mock

import pytest

from src.domain.entities.reference import ReferenceOption
from src.infrastructure.cache.reference_cache import ReferenceCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _opts(*names):
    return [ReferenceOption(id=i, name=n) for i, n in enumerate(names, start=1)]


def test_get_or_load_caches_until_ttl():
    clock = FakeClock()
    cache = ReferenceCache(ttl_seconds=10, clock=clock)
    loader = Mock(return_value=_opts("Toyota"))

    assert cache.get_or_load(("brands", None), loader) == _opts("Toyota")
    clock.now = 9.9
    cache.get_or_load(("brands", None), loader)
    assert loader.call_count == 1

    clock.now = 10.0
    cache.get_or_load(("brands", None), loader)
    assert loader.call_count == 2


def test_parent_id_is_part_of_key():
    cache = ReferenceCache()
    cache.put(("cities", 1), _opts("Doha"))
    assert cache.get(("cities", 2)) is None
    assert cache.get(("cities", 1))[0].name == "Doha"


def test_loader_errors_are_not_cached():
    cache = ReferenceCache()
    loader = Mock(side_effect=[RuntimeError("down"), _opts("Toyota")])
    with pytest.raises(RuntimeError):
        cache.get_or_load(("brands", None), loader)
    assert cache.get_or_load(("brands", None), loader)[0].name == "Toyota"


def test_returned_lists_are_copies():
    cache = ReferenceCache()
    cache.put(("brands", None), _opts("Toyota"))
    cache.get(("brands", None)).clear()
    assert len(cache.get(("brands", None))) == 1


def test_lru_eviction():
    cache = ReferenceCache(max_size=2)
    cache.put(("models", 1), _opts("Camry"))
    cache.put(("models", 2), _opts("Patrol"))
    cache.get(("models", 1))
    cache.put(("models", 3), _opts("Civic"))
    assert cache.get(("models", 2)) is None
    assert cache.get(("models", 1)) is not None
    assert len(cache) == 2


def test_invalidate_by_kind():
    cache = ReferenceCache()
    cache.put(("models", 1), _opts("Camry"))
    cache.put(("brands", None), _opts("Toyota"))
    cache.invalidate("models")
    assert cache.get(("models", 1)) is None
    assert cache.get(("brands", None)) is not None
    cache.invalidate()
    assert len(cache) == 0
