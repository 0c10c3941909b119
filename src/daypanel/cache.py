from __future__ import annotations

import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable

logger = logging.getLogger(__name__)

MISS = object()


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    stored_at: float


class TTLCache:
    """Keyed payload cache whose entries expire ``ttl_seconds`` after being stored.

    One instance per service. There is no eviction beyond expiry; stale
    entries are dropped lazily on the next ``get`` for their key.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any:
        """Return the cached payload, or ``MISS`` when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("cache miss %s", key)
                return MISS
            if self._clock() - entry.stored_at >= self.ttl_seconds:
                del self._entries[key]
                logger.debug("cache expired %s", key)
                return MISS
            logger.debug("cache hit %s", key)
            return entry.payload

    def set(self, key: Hashable, payload: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(payload=payload, stored_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def token_fingerprint(token: str) -> str:
    # Keys end up in debug logs; never keep the bearer token itself.
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


def make_key(namespace: str, *parts: Any) -> str:
    return "|".join([namespace, *("" if p is None else str(p) for p in parts)])
