import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from tabsheet.cache import Cache, CacheOptions, MemoryStore, SQLiteStore
from tabsheet.exceptions import FetchError, InvalidRootError, ParseError, StoreError


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cache(store, clock):
    return Cache(store, clock=clock)


# ---------------------------------------------------------------------------
# get / set
# ---------------------------------------------------------------------------


def test_set_then_get(cache):
    cache.set("k", {"a": 1})
    assert cache.get("k") == {"a": 1}


def test_entry_layout(cache, store, clock):
    cache.set("k", [1, 2], CacheOptions(version="3"))
    entry = json.loads(store.data["app_cache:k"])
    assert entry == {"timestamp": clock.now, "data": [1, 2], "version": "3"}


def test_missing_key(cache):
    assert cache.get("nope") is None


def test_expired_entry_is_evicted_on_read(cache, store, clock):
    cache.set("k", "v")
    clock.now += timedelta(hours=25).total_seconds()
    assert cache.get("k") is None
    assert "app_cache:k" not in store.data


def test_entry_at_exact_duration_is_still_valid(cache, clock):
    cache.set("k", "v")
    clock.now += timedelta(hours=24).total_seconds()
    assert cache.get("k") == "v"


def test_version_mismatch_is_evicted(cache, store):
    cache.set("k", "v", CacheOptions(version="1"))
    assert cache.get("k", CacheOptions(version="2")) is None
    assert store.data == {}


def test_no_version_requested_accepts_any(cache):
    cache.set("k", "v", CacheOptions(version="1"))
    assert cache.get("k") == "v"


def test_validator_rejects(cache, store):
    cache.set("k", {"ok": False})
    assert cache.get("k", CacheOptions(validator=lambda d: d["ok"])) is None
    assert store.data == {}


def test_corrupt_entry_is_evicted(cache, store):
    store.data["app_cache:k"] = "not json"
    assert cache.get("k") is None
    assert store.data == {}


def test_custom_prefix(cache, store):
    cache.set("k", 1, CacheOptions(prefix="other:"))
    assert "other:k" in store.data
    assert cache.get("k") is None


# ---------------------------------------------------------------------------
# get_or_fetch
# ---------------------------------------------------------------------------


def test_get_or_fetch_miss_fetches_and_stores(cache):
    fetcher = MagicMock(return_value="raw")
    result = cache.get_or_fetch("k", fetcher, lambda raw: {"parsed": raw})
    assert result == {"parsed": "raw"}
    assert cache.get("k") == {"parsed": "raw"}
    fetcher.assert_called_once()


def test_get_or_fetch_hit_skips_fetch(cache):
    cache.set("k", "cached")
    fetcher = MagicMock()
    assert cache.get_or_fetch("k", fetcher, str) == "cached"
    fetcher.assert_not_called()


def test_get_or_fetch_refetches_after_expiry(cache, clock):
    cache.set("k", "old")
    clock.now += timedelta(days=2).total_seconds()
    assert cache.get_or_fetch("k", lambda: "new", str) == "new"


def test_get_or_fetch_fetch_failure(cache, store):
    def fetcher():
        raise FetchError("http://x", 503)

    assert cache.get_or_fetch("k", fetcher, str) is None
    assert store.data == {}


def test_get_or_fetch_parse_failure(cache, store):
    def parser(raw):
        raise ParseError("http://x", "broken")

    assert cache.get_or_fetch("k", lambda: "raw", parser) is None
    assert store.data == {}


def test_get_or_fetch_chord_errors_propagate(cache, store):
    def parser(raw):
        raise InvalidRootError("Hx")

    with pytest.raises(InvalidRootError):
        cache.get_or_fetch("k", lambda: "raw", parser)
    assert store.data == {}


def test_get_or_fetch_parser_returning_none(cache, store):
    assert cache.get_or_fetch("k", lambda: "raw", lambda raw: None) is None
    assert store.data == {}


# ---------------------------------------------------------------------------
# clear / size / evict_expired
# ---------------------------------------------------------------------------


def test_clear_only_touches_prefix(cache, store):
    cache.set("a", 1)
    cache.set("b", 2)
    store.data["unrelated"] = "keep"
    cache.clear()
    assert store.data == {"unrelated": "keep"}


def test_size(cache, store):
    cache.set("a", 1)
    cache.set("b", 2)
    store.data["unrelated"] = "x"
    assert cache.size() == 2


def test_evict_expired(cache, clock):
    cache.set("old", 1)
    clock.now += timedelta(hours=20).total_seconds()
    cache.set("new", 2)
    clock.now += timedelta(hours=10).total_seconds()
    assert cache.evict_expired() == 1
    assert cache.get("new") == 2
    assert cache.size() == 1


# ---------------------------------------------------------------------------
# Store failures
# ---------------------------------------------------------------------------


def test_store_errors_are_swallowed(clock):
    broken = MagicMock()
    broken.read.side_effect = StoreError("disk gone")
    broken.write.side_effect = StoreError("disk gone")
    broken.list_keys.side_effect = StoreError("disk gone")
    cache = Cache(broken, clock=clock)

    assert cache.get("k") is None
    cache.set("k", 1)
    cache.clear()
    assert cache.size() == 0
    assert cache.evict_expired() == 0
    assert cache.get_or_fetch("k", lambda: "raw", str) == "raw"


# ---------------------------------------------------------------------------
# SQLiteStore
# ---------------------------------------------------------------------------


def test_sqlite_store_round_trip(tmp_path):
    store = SQLiteStore(tmp_path / "nested" / "cache.sqlite3")
    store.write("a", "1")
    store.write("a", "2")
    store.write("b", "3")
    assert store.read("a") == "2"
    assert store.read("missing") is None
    assert store.list_keys() == ["a", "b"]
    store.delete_many(["a", "b"])
    assert store.list_keys() == []


def test_sqlite_store_persists_between_instances(tmp_path, clock):
    path = tmp_path / "cache.sqlite3"
    Cache(SQLiteStore(path), clock=clock).set("k", {"x": 1})
    assert Cache(SQLiteStore(path), clock=clock).get("k") == {"x": 1}


def test_sqlite_store_unusable_path(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    store = SQLiteStore(blocker / "cache.sqlite3")
    with pytest.raises(StoreError):
        store.read("k")


# ---------------------------------------------------------------------------
# Values that are not JSON data
# ---------------------------------------------------------------------------


def test_set_skips_value_that_is_not_json(cache, store):
    cache.set("k", {1, 2})
    assert store.data == {}
    assert cache.get("k") is None


def test_get_or_fetch_returns_value_that_cannot_be_stored(cache, store):
    assert cache.get_or_fetch("k", lambda: "raw", lambda raw: {1, 2}) == {1, 2}
    assert store.data == {}
