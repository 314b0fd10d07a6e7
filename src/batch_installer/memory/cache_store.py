"""Time-boxed key/value cache used in front of every stage.

Values must be JSON-compatible so that the in-memory and file-backed stores
are interchangeable. Expired entries read as absent; physical cleanup is
best-effort.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for TTL cache backends."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_by_prefix(self, prefix: str) -> None: ...


@dataclass
class CacheEntry:
    """A cached value with its absolute expiry time."""

    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class InMemoryCacheStore:
    """Dict-backed TTL cache, safe for concurrent use."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the store.

        Args:
            clock: Time source in seconds; injectable for deterministic tests.
        """
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(key, value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def delete_by_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class JsonFileCacheStore(InMemoryCacheStore):
    """TTL cache persisted to a JSON file so entries survive restarts.

    Expiry uses wall-clock time. Every mutation rewrites the file.
    """

    def __init__(self, cache_path: Path, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store and load any existing entries.

        Args:
            cache_path: Path to JSON file for persistence.
            clock: Wall-clock time source in seconds.
        """
        super().__init__(clock=clock)
        self.cache_path = cache_path
        self._load()

    def _load(self) -> None:
        """Load non-expired entries from disk if the file exists."""
        if not self.cache_path.exists():
            return
        try:
            data = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable cache file %s: %s", self.cache_path, e)
            return

        now = self._clock()
        for key, raw in data.get("entries", {}).items():
            entry = CacheEntry(key=key, value=raw.get("value"), expires_at=float(raw.get("expires_at", 0)))
            if not entry.is_expired(now):
                self._entries[key] = entry
        logger.debug("Loaded %d cache entries from %s", len(self._entries), self.cache_path)

    def save(self) -> None:
        """Persist all entries to disk.

        The file is replaced atomically, so readers never see a partial write.
        """
        with self._lock:
            payload = {
                "entries": {
                    key: {"value": entry.value, "expires_at": entry.expires_at}
                    for key, entry in self._entries.items()
                }
            }
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.cache_path.parent, prefix=f".{self.cache_path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_name, self.cache_path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        super().set(key, value, ttl_seconds)
        self.save()

    def delete(self, key: str) -> None:
        super().delete(key)
        self.save()

    def delete_by_prefix(self, prefix: str) -> None:
        super().delete_by_prefix(prefix)
        self.save()

    def purge_expired(self) -> int:
        removed = super().purge_expired()
        if removed:
            self.save()
        return removed
