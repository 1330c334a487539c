from __future__ import annotations

import pytest

from toolcore.analysis import AnalysisCache, content_hash


def test_get_or_compute_memoizes_by_content() -> None:
    cache = AnalysisCache()
    calls: list[str] = []

    def compute() -> str:
        calls.append("run")
        return "report"

    assert cache.get_or_compute("quality", "a.py", "x = 1\n", compute) == "report"
    assert cache.get_or_compute("quality", "a.py", "x = 1\n", compute) == "report"

    assert calls == ["run"]
    assert (cache.hits, cache.misses) == (1, 1)


def test_changed_content_misses() -> None:
    cache = AnalysisCache()

    cache.get_or_compute("quality", "a.py", "x = 1\n", lambda: 1)
    value = cache.get_or_compute("quality", "a.py", "x = 2\n", lambda: 2)

    assert value == 2
    assert cache.misses == 2


def test_kind_is_part_of_the_key() -> None:
    cache = AnalysisCache()

    cache.get_or_compute("quality", "a.py", "x", lambda: "q")

    assert cache.get_or_compute("symbols", "a.py", "x", lambda: "s") == "s"


@pytest.mark.asyncio
async def test_get_or_await_memoizes_coroutine_results() -> None:
    cache = AnalysisCache()
    calls = 0

    async def compute() -> dict[str, int]:
        nonlocal calls
        calls += 1
        return {"score": 90}

    first = await cache.get_or_await("quality", "a.py", "x", compute)
    second = await cache.get_or_await("quality", "a.py", "x", compute)

    assert first == second == {"score": 90}
    assert calls == 1
    assert (cache.hits, cache.misses) == (1, 1)


def test_invalidate_drops_only_that_path() -> None:
    cache = AnalysisCache()
    cache.get_or_compute("quality", "a.py", "x", lambda: 1)
    cache.get_or_compute("symbols", "a.py", "x", lambda: 2)
    cache.get_or_compute("quality", "b.py", "x", lambda: 3)

    assert cache.invalidate("a.py") == 2
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


def test_oldest_entry_is_evicted_at_capacity() -> None:
    cache = AnalysisCache(max_entries=2)
    for name in ("a.py", "b.py", "c.py"):
        cache.get_or_compute("quality", name, "x", lambda: name)

    assert len(cache) == 2
    assert cache.invalidate("a.py") == 0


def test_content_hash_is_stable_for_surrogates() -> None:
    assert content_hash("a\udcff") == content_hash("a\udcff")
    assert content_hash("a") != content_hash("b")
