"""
Embedding Cache
===============

In-process TTL cache for embedding vectors.

Keys are ``embedding:<sha256 of the exact text>`` so two texts share an
entry only when they are byte-identical. Expired entries are evicted lazily
on lookup; there is no background sweeper.
"""

import hashlib
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional


KEY_PREFIX = "embedding:"


def cache_key(text: str) -> str:
    """Cache key for a text."""
    return KEY_PREFIX + hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    vector: List[float]
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


class EmbeddingCache:
    """
    TTL map from text to vector.

    Example:
        cache = EmbeddingCache(ttl=3600)
        cache.put("hello", [0.1, 0.2])
        cache.get("hello")  # [0.1, 0.2]
    """

    def __init__(self, ttl: float = 3600.0, clock: Optional[Callable[[], float]] = None):
        if ttl <= 0:
            raise ValueError(f"ttl must be > 0, got {ttl}")
        self.ttl = ttl
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, text: str) -> Optional[List[float]]:
        """Cached vector, or None when missing or expired (expired entries are removed)."""
        key = cache_key(text)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.expired(self._clock()):
            del self._entries[key]
            return None

        return entry.vector

    def put(self, text: str, vector: List[float]) -> None:
        self._entries[cache_key(text)] = CacheEntry(
            vector=vector,
            created_at=self._clock(),
            ttl=self.ttl,
        )

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        """Entry count and keys (expired-but-unvisited entries included)."""
        return {"size": len(self._entries), "keys": list(self._entries)}

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["EmbeddingCache", "CacheEntry", "cache_key", "KEY_PREFIX"]
