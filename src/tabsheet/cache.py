"""Time- and version-aware cache in front of all network retrieval.

Entries are stored as JSON text under ``prefix + key``::

    {"timestamp": 1718000000.0, "data": <payload>, "version": "2"}

An entry is dropped from the store the moment a read finds it too old, of the
wrong version, or rejected by the caller's validator.

Storage errors are logged and treated as a miss; they never reach callers.
"""

import json
import logging
import sqlite3
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, TypeVar

from .exceptions import FetchError, ParseError, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DURATION = timedelta(hours=24)
DEFAULT_PREFIX = "app_cache:"


@dataclass
class CacheOptions:
    duration: timedelta = DEFAULT_DURATION
    prefix: str = DEFAULT_PREFIX
    version: str | None = None
    validator: Callable[[Any], bool] | None = None


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class KeyValueStore(ABC):
    """Persistent string-to-string store backing :class:`Cache`."""

    @abstractmethod
    def read(self, key: str) -> str | None:
        """Return the value for *key*, or None."""

    @abstractmethod
    def write(self, key: str, value: str) -> None: ...

    @abstractmethod
    def list_keys(self) -> list[str]: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.delete(key)


class MemoryStore(KeyValueStore):
    """Dict-backed store for tests and ``--no-cache`` runs."""

    def __init__(self):
        self.data: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value

    def list_keys(self) -> list[str]:
        return list(self.data)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class SQLiteStore(KeyValueStore):
    """Single-table SQLite store: ``kv(key TEXT PRIMARY KEY, value TEXT)``."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _connect(self) -> sqlite3.Connection:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.path)
            conn.execute("CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
        except (sqlite3.Error, OSError) as exc:
            raise StoreError(f"Cannot open cache database {self.path}: {exc}") from exc
        return conn

    def _run(self, sql: str, params: Iterable = ()) -> list[tuple]:
        conn = self._connect()
        try:
            with conn:
                return conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Cache database error: {exc}") from exc
        finally:
            conn.close()

    def read(self, key: str) -> str | None:
        rows = self._run("SELECT value FROM kv WHERE key = ?", (key,))
        return rows[0][0] if rows else None

    def write(self, key: str, value: str) -> None:
        self._run("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value))

    def list_keys(self) -> list[str]:
        return [row[0] for row in self._run("SELECT key FROM kv ORDER BY key")]

    def delete(self, key: str) -> None:
        self._run("DELETE FROM kv WHERE key = ?", (key,))

    def delete_many(self, keys: Iterable[str]) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.executemany("DELETE FROM kv WHERE key = ?", [(k,) for k in keys])
        except sqlite3.Error as exc:
            raise StoreError(f"Cache database error: {exc}") from exc
        finally:
            conn.close()


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class Cache:
    """TTL + version + validator cache over a :class:`KeyValueStore`."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    def get(self, key: str, options: CacheOptions | None = None) -> Any | None:
        """Return the cached payload for *key*, or None if absent or invalid."""
        opts = options or CacheOptions()
        full_key = opts.prefix + key
        try:
            raw = self.store.read(full_key)
        except StoreError as exc:
            logger.error("Cache read error for %s: %s", full_key, exc)
            return None
        if raw is None:
            return None

        entry = _decode_entry(raw)
        if entry is None or not self._is_valid(entry, opts):
            logger.debug("Evicting cache entry %s", full_key)
            self._delete([full_key])
            return None
        return entry["data"]

    def set(self, key: str, data: Any, options: CacheOptions | None = None) -> None:
        opts = options or CacheOptions()
        entry = {"timestamp": self.clock(), "data": data, "version": opts.version}
        try:
            value = json.dumps(entry)
        except (TypeError, ValueError) as exc:
            logger.error("Cannot cache %s, data is not JSON: %s", opts.prefix + key, exc)
            return
        try:
            self.store.write(opts.prefix + key, value)
        except StoreError as exc:
            logger.error("Cache write error for %s: %s", opts.prefix + key, exc)

    def evict_expired(self, options: CacheOptions | None = None) -> int:
        """Drop every invalid entry under the prefix; return how many went."""
        opts = options or CacheOptions()
        stale: list[str] = []
        try:
            for full_key in self._keys(opts):
                raw = self.store.read(full_key)
                entry = _decode_entry(raw) if raw is not None else None
                if entry is None or not self._is_valid(entry, opts):
                    stale.append(full_key)
        except StoreError as exc:
            logger.error("Cache cleanup error: %s", exc)
            return 0
        self._delete(stale)
        return len(stale)

    def get_or_fetch(
        self,
        key: str,
        fetcher: Callable[[], str],
        parser: Callable[[str], T],
        options: CacheOptions | None = None,
    ) -> T | None:
        """Return the cached value, or fetch, parse and store a fresh one.

        A failed fetch or parse gives None and stores nothing.  Chord grammar
        errors raised by *parser* are not caught.
        """
        cached = self.get(key, options)
        if cached is not None:
            logger.debug("Using cached data for %s", key)
            return cached

        try:
            raw = fetcher()
        except FetchError as exc:
            logger.error("Fetch failed for %s: %s", key, exc)
            return None
        try:
            parsed = parser(raw)
        except (ParseError, ValueError, KeyError, TypeError) as exc:
            logger.error("Could not parse data for %s: %s", key, exc)
            return None
        if parsed is None:
            return None

        self.set(key, parsed, options)
        return parsed

    def clear(self, options: CacheOptions | None = None) -> None:
        """Remove every entry under the prefix."""
        opts = options or CacheOptions()
        try:
            keys = self._keys(opts)
        except StoreError as exc:
            logger.error("Cache clear error: %s", exc)
            return
        self._delete(keys)

    def size(self, options: CacheOptions | None = None) -> int:
        opts = options or CacheOptions()
        try:
            return len(self._keys(opts))
        except StoreError as exc:
            logger.error("Cache size check error: %s", exc)
            return 0

    # -- internals ---------------------------------------------------------

    def _keys(self, opts: CacheOptions) -> list[str]:
        return [k for k in self.store.list_keys() if k.startswith(opts.prefix)]

    def _delete(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            self.store.delete_many(keys)
        except StoreError as exc:
            logger.error("Cache delete error: %s", exc)

    def _is_valid(self, entry: dict, opts: CacheOptions) -> bool:
        if self.clock() - entry["timestamp"] > opts.duration.total_seconds():
            return False
        if opts.version is not None and entry.get("version") != opts.version:
            return False
        if opts.validator is not None and not opts.validator(entry["data"]):
            return False
        return True


def _decode_entry(raw: str) -> dict | None:
    try:
        entry = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(entry, dict) or "data" not in entry:
        return None
    if not isinstance(entry.get("timestamp"), (int, float)):
        return None
    return entry
