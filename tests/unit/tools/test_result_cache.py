from __future__ import annotations

from toolcore.tools.cache import (
    ResultCache,
    argument_paths,
    cache_key,
    normalize_path,
    paths_overlap,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_cache_key_is_order_independent() -> None:
    assert cache_key("read_file", {"b": 1, "a": "x"}) == 'read_file:{"a":"x","b":1}'
    assert cache_key("read_file", {"a": "x", "b": 1}) == cache_key("read_file", {"b": 1, "a": "x"})


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = ResultCache(ttl_seconds=30, clock=clock)
    cache.put("read_file", {"filename": "a.txt"}, {"content": "x"})

    clock.now = 30.0
    fresh = cache.get("read_file", {"filename": "a.txt"})
    clock.now = 30.5
    expired = cache.get("read_file", {"filename": "a.txt"})

    assert fresh == {"content": "x"}
    assert expired is None
    assert cache.stats() == {"entries": 0, "hits": 1, "misses": 1}


def test_oldest_entry_is_evicted_first() -> None:
    cache = ResultCache(max_entries=2)

    cache.put("t", {"n": 1}, {"v": 1})
    cache.put("t", {"n": 2}, {"v": 2})
    cache.put("t", {"n": 3}, {"v": 3})

    assert len(cache) == 2
    assert cache.get("t", {"n": 1}) is None
    assert cache.get("t", {"n": 3}) == {"v": 3}


def test_invalidation_drops_overlapping_and_workspace_wide_entries() -> None:
    cache = ResultCache()
    cache.put("read_file", {"filename": "src/app.py"}, {"v": 1})
    cache.put("read_file", {"filename": "src/lib/util.py"}, {"v": 2})
    cache.put("read_file", {"filename": "docs/readme.md"}, {"v": 3})
    cache.put("get_project_structure", {}, {"v": 4})
    cache.put("search_code", {"query": "x"}, {"v": 5})

    dropped = cache.invalidate_paths(["./src/lib"])

    assert dropped == 3
    assert cache.get("read_file", {"filename": "src/app.py"}) == {"v": 1}
    assert cache.get("read_file", {"filename": "docs/readme.md"}) == {"v": 3}


def test_invalidation_without_paths_clears_everything() -> None:
    cache = ResultCache()
    cache.put("read_file", {"filename": "a"}, {"v": 1})
    cache.put("list_files", {}, {"v": 2})

    assert cache.invalidate_paths([]) == 2
    assert len(cache) == 0


def test_argument_paths_collects_every_path_argument() -> None:
    paths = argument_paths(
        {
            "filename": ".\\src\\a.py",
            "filenames": ["b.py", "", 3],
            "old_path": "c/",
            "new_path": "d",
            "edits": [{"filename": "./src/a.py"}, {"content": "x"}],
        }
    )

    assert paths == ("src/a.py", "b.py", "c", "d")


def test_path_helpers() -> None:
    assert normalize_path("././a/b/") == "a/b"
    assert paths_overlap("src", "src/a.py") is True
    assert paths_overlap("src/a.py", "src") is True
    assert paths_overlap("src", "srcs/a.py") is False
    assert paths_overlap("", "anything") is True
