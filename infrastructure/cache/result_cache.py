"""In-process cache of Turnstile validation results.

Entries expire a fixed ``ttl_seconds`` after they were written; reads never
extend an entry's life. When full, the cache evicts by policy:

  lru - least recently used (lookups refresh recency)
  lrw - least recently written (only stores refresh recency)

Ordering lives in an OrderedDict so eviction is deterministic. A single
lock guards each operation; critical sections are dict operations only.
"""

from __future__ import annotations

import hashlib
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from schemas.models.validation import ValidationResult
from shared.logging import get_logger

log = get_logger(__name__)

EvictionPolicy = Literal["lru", "lrw"]

# Longer tokens are keyed by digest to bound memory
MAX_RAW_KEY_LENGTH = 256


@dataclass(frozen=True)
class CacheEntry:
    result: ValidationResult
    inserted_at: float


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    evictions: int
    size: int


class ResultCache:
    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 1000,
        eviction_policy: EvictionPolicy = "lru",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        if eviction_policy not in ("lru", "lrw"):
            raise ValueError(f"unknown eviction policy: {eviction_policy!r}")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.eviction_policy = eviction_policy
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @staticmethod
    def _key(token: str) -> str:
        if len(token) <= MAX_RAW_KEY_LENGTH:
            return token
        return "sha256:" + hashlib.sha256(token.encode()).hexdigest()

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at >= self.ttl_seconds

    def lookup(self, token: str) -> Optional[ValidationResult]:
        key = self._key(token)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                self._misses += 1
                return None
            if self.eviction_policy == "lru":
                self._entries.move_to_end(key)
            self._hits += 1
            return entry.result

    def store(self, token: str, result: ValidationResult) -> None:
        key = self._key(token)
        with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(result=result, inserted_at=now)
            self._entries.move_to_end(key)
            if len(self._entries) > self.max_entries:
                self._purge_expired(now)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                self._evictions += 1

    def invalidate(self, token: str) -> None:
        with self._lock:
            self._entries.pop(self._key(token), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._entries),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for k in expired:
            del self._entries[k]
        if expired:
            log.debug("turnstile_cache_expired_purged", count=len(expired))
