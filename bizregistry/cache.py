"""In-process aggregate cache with per-entry TTL.

Keys are parameter mappings canonicalised to JSON with sorted keys, so two
mappings with the same items hit the same entry regardless of construction
order. Values are recomputable aggregates: concurrent writers race under
last-writer-wins and a cold or swept cache only costs a re-query.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 120.0


def canonical_key(params: Mapping[str, Any]) -> str:
    """Stable string form of a parameter mapping."""
    return json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)


@dataclass
class CacheEntry:
    """Cached value and its expiry bookkeeping."""

    value: Any
    written_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.written_at > self.ttl


class AggregateCache:
    """Read-through cache for expensive aggregate statistics."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize an empty cache."""
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._params: Dict[str, Dict[str, Any]] = {}

    def get(self, params: Mapping[str, Any]) -> Optional[Any]:
        """Return the cached value, or ``None`` on a miss or an expired entry."""
        key = canonical_key(params)
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Cache miss: {key}")
            return None
        if entry.is_expired(self._clock()):
            self._drop(key)
            logger.debug(f"Cache expired: {key}")
            return None
        logger.debug(f"Cache hit: {key}")
        return entry.value

    def set(
        self, params: Mapping[str, Any], value: Any, ttl: Optional[float] = None
    ) -> None:
        """Store ``value`` under ``params`` for ``ttl`` seconds."""
        key = canonical_key(params)
        self._entries[key] = CacheEntry(
            value=value,
            written_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        self._params[key] = dict(params)

    def get_or_load(
        self,
        params: Mapping[str, Any],
        loader: Callable[[], Any],
        ttl: Optional[float] = None,
    ) -> Any:
        """Return the cached value or compute, store and return it.

        Exceptions raised by ``loader`` propagate and nothing is stored.
        """
        cached = self.get(params)
        if cached is not None:
            return cached
        value = loader()
        self.set(params, value, ttl)
        return value

    def invalidate(self, pattern: Mapping[str, Any]) -> int:
        """Drop every entry whose key parameters contain all items of ``pattern``."""
        doomed = [
            key
            for key, params in list(self._params.items())
            if all(k in params and params[k] == v for k, v in pattern.items())
        ]
        for key in doomed:
            self._drop(key)
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
        self._params.clear()

    def sweep(self) -> int:
        """Evict expired entries and return how many were removed."""
        now = self._clock()
        expired = [
            key for key, entry in list(self._entries.items()) if entry.is_expired(now)
        ]
        for key in expired:
            self._drop(key)
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        """Entry count and keys, for diagnostics."""
        keys: List[str] = list(self._entries.keys())
        return {"size": len(keys), "entries": keys}

    def __len__(self) -> int:
        return len(self._entries)

    def _drop(self, key: str) -> None:
        self._entries.pop(key, None)
        self._params.pop(key, None)


async def sweep_periodically(cache: AggregateCache, interval: float) -> None:
    """Background task evicting expired entries every ``interval`` seconds."""
    while True:
        await asyncio.sleep(interval)
        removed = cache.sweep()
        if removed:
            logger.info(f"Cache sweep evicted {removed} expired entries")
