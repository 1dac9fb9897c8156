"""
Persistent price cache.

Entries are keyed by PriceQuery.cache_key(). The file cache stores one JSON
document per entry and uses the file modification time as the fetch time;
entries older than the TTL are treated as absent and removed when read.

Caching is best effort: only clear() reports failures.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import json
import logging
import os
import tempfile
import time

from filelock import FileLock, Timeout

from stackcost.core.config import config
from stackcost.domain.pricing_models import PriceQuery, PriceResult


logger = logging.getLogger(__name__)


DEFAULT_TTL_SECONDS = 7 * 24 * 3600
ENTRY_SUFFIX = ".json"
LOCK_SUFFIX = ".lock"

# Seconds to wait for an entry lock before skipping the write
FILE_LOCK_TIMEOUT = 10


class PriceCacheError(Exception):
    """Raised when the cache cannot be cleared."""
    pass


@dataclass
class CacheStats:
    """Snapshot of cache contents."""
    entries: int
    size_bytes: int
    location: str
    ttl_seconds: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": self.entries,
            "size_bytes": self.size_bytes,
            "location": self.location,
            "ttl_seconds": self.ttl_seconds,
        }


class PriceCache(ABC):
    """Key/value store of price results with expiry."""

    @abstractmethod
    def get(self, query: PriceQuery) -> Optional[PriceResult]:
        """Cached result flagged from_cache=True, or None on miss/expiry."""

    @abstractmethod
    def set(self, query: PriceQuery, result: PriceResult) -> None:
        """Store a result. Never raises."""

    @abstractmethod
    def clear(self) -> None:
        """
        Remove every entry.

        Raises:
            PriceCacheError: If the entries cannot be removed
        """

    @abstractmethod
    def clear_expired(self) -> int:
        """Remove expired entries and return how many were removed."""

    @abstractmethod
    def get_stats(self) -> CacheStats:
        pass


class FilePriceCache(PriceCache):
    """
    Price cache backed by one JSON file per entry.

    Writers hold a per-entry FileLock ({key}.json.lock); readers do not lock.
    The entry is written to a temp file and moved into place with os.replace,
    so a concurrent reader sees either the previous entry or the new one.

    If the cache directory cannot be created the cache is disabled: every
    lookup misses and every write is skipped.
    """

    def __init__(self, cache_dir: Optional[str] = None, ttl_seconds: Optional[int] = None):
        """
        Args:
            cache_dir: Cache directory, created if absent (defaults to PRICING_CACHE_DIR)
            ttl_seconds: Entry lifetime (defaults to PRICING_CACHE_TTL_SECONDS, 7 days)
        """
        self.cache_dir = Path(cache_dir or config.PRICING_CACHE_DIR).expanduser()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else config.PRICING_CACHE_TTL_SECONDS
        self.enabled = True

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            logger.warning(f"Price cache disabled, cannot create {self.cache_dir}: {error}")
            self.enabled = False

    def _entry_path(self, query: PriceQuery) -> Path:
        return self.cache_dir / f"{query.cache_key()}{ENTRY_SUFFIX}"

    def _lock_path(self, path: Path) -> Path:
        return path.with_name(f"{path.name}{LOCK_SUFFIX}")

    def _is_expired(self, modified_at: float, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) - modified_at > self.ttl_seconds

    def get(self, query: PriceQuery) -> Optional[PriceResult]:
        if not self.enabled:
            return None
        path = self._entry_path(query)

        try:
            modified_at = path.stat().st_mtime
        except FileNotFoundError:
            logger.debug(f"Price cache miss: {query.service}/{query.product_family}")
            return None
        except OSError as error:
            logger.debug(f"Price cache stat failed for {path.name}: {error}")
            return None

        if self._is_expired(modified_at):
            logger.debug(f"Price cache entry expired: {path.name}")
            self._remove_quietly(path)
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            result = PriceResult.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as error:
            logger.debug(f"Ignoring unreadable price cache entry {path.name}: {error}")
            return None

        logger.debug(f"Price cache hit: {query.service}/{query.product_family}")
        return result.as_cached()

    def set(self, query: PriceQuery, result: PriceResult) -> None:
        if not self.enabled:
            return
        path = self._entry_path(query)
        temp_name = None

        try:
            payload = result.to_json()
            # The directory may have been removed since construction
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with FileLock(str(self._lock_path(path)), timeout=FILE_LOCK_TIMEOUT):
                descriptor, temp_name = tempfile.mkstemp(
                    dir=self.cache_dir, prefix=f".{path.stem[:16]}-", suffix=".tmp"
                )
                with os.fdopen(descriptor, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(temp_name, path)
                temp_name = None
        except Timeout:
            logger.warning(f"Skipped price cache write for {path.name}: lock not acquired")
        except (OSError, TypeError, ValueError) as error:
            logger.debug(f"Failed to write price cache entry {path.name}: {error}")
        finally:
            if temp_name is not None:
                self._remove_quietly(Path(temp_name))

    def clear(self) -> None:
        if not self.enabled:
            return
        try:
            for path in self.cache_dir.iterdir():
                if path.is_file() and not path.name.endswith(LOCK_SUFFIX):
                    path.unlink()
        except FileNotFoundError:
            return
        except OSError as error:
            raise PriceCacheError(f"failed to clear price cache {self.cache_dir}: {error}") from error

    def clear_expired(self) -> int:
        removed = 0
        now = time.time()
        for path, stat in self._entries():
            if self._is_expired(stat.st_mtime, now) and self._remove_quietly(path):
                removed += 1
        if removed:
            logger.debug(f"Removed {removed} expired price cache entries")
        return removed

    def get_stats(self) -> CacheStats:
        entries = self._entries()
        return CacheStats(
            entries=len(entries),
            size_bytes=sum(stat.st_size for _path, stat in entries),
            location=str(self.cache_dir),
            ttl_seconds=self.ttl_seconds,
        )

    def _entries(self):
        """(path, stat) of every entry file; unreadable files are skipped."""
        entries = []
        try:
            paths = list(self.cache_dir.glob(f"*{ENTRY_SUFFIX}"))
        except OSError as error:
            logger.debug(f"Failed to list price cache {self.cache_dir}: {error}")
            return entries

        for path in paths:
            try:
                entries.append((path, path.stat()))
            except OSError:
                continue
        return entries

    @staticmethod
    def _remove_quietly(path: Path) -> bool:
        try:
            path.unlink()
            return True
        except OSError as error:
            logger.debug(f"Failed to remove price cache file {path.name}: {error}")
            return False


class MemoryPriceCache(PriceCache):
    """In-process price cache with the same expiry rules as FilePriceCache."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock=time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # cache key -> (result, stored at)
        self._entries: Dict[str, Tuple[PriceResult, float]] = {}

    def get(self, query: PriceQuery) -> Optional[PriceResult]:
        key = query.cache_key()
        entry = self._entries.get(key)
        if entry is None:
            return None

        result, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return result.as_cached()

    def set(self, query: PriceQuery, result: PriceResult) -> None:
        self._entries[query.cache_key()] = (result, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def clear_expired(self) -> int:
        now = self._clock()
        expired = [key for key, (_result, stored_at) in self._entries.items() if now - stored_at > self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get_stats(self) -> CacheStats:
        size = sum(len(result.to_json().encode("utf-8")) for result, _stored_at in self._entries.values())
        return CacheStats(
            entries=len(self._entries),
            size_bytes=size,
            location="memory",
            ttl_seconds=self.ttl_seconds,
        )
