"""
Resolution Cache module.

Time-bounded, capacity-bounded memoization of resolution results keyed by
domain. Eviction is FIFO by insertion order: a frequently read domain does
not protect itself from eviction.
"""

import threading
import time
from typing import Callable, Optional

from .models import ResolutionResult


class ResolutionCache:
    """
    In-memory cache of ResolutionResult records.

    Freshness is judged from the result's own timestamp. A single lock
    guards every operation so concurrent resolutions can share one cache.
    """

    DEFAULT_TTL_SECONDS = 300.0
    DEFAULT_CAPACITY = 100

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the cache.

        Args:
            ttl_seconds: Age after which an entry is stale (default: 5 minutes)
            capacity: Maximum number of entries kept
            clock: Source of the current time in epoch seconds
        """
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        self._ttl = ttl_seconds
        self._capacity = capacity
        self._clock = clock
        self._entries: dict[str, ResolutionResult] = {}
        self._lock = threading.Lock()

    def get(
        self,
        domain: str,
        exclude_local_domains: bool = True,
    ) -> Optional[ResolutionResult]:
        """
        Get a fresh cached result.

        A cached local-domain result is only valid while local exclusion is
        enabled; with exclusion disabled the caller must re-resolve.

        Args:
            domain: Domain exactly as it was cached
            exclude_local_domains: Current local-exclusion policy

        Returns:
            The cached result, or None if absent, stale or no longer valid
        """
        with self._lock:
            entry = self._entries.get(domain)
            if entry is None:
                return None

            if self.is_stale(entry):
                del self._entries[domain]
                return None

            if entry.is_local and not exclude_local_domains:
                return None

            return entry

    def put(self, domain: str, result: ResolutionResult) -> None:
        """
        Insert or overwrite an entry, evicting the earliest insertion on overflow.

        Overwriting keeps the key's original insertion position.
        """
        with self._lock:
            self._entries[domain] = result
            while len(self._entries) > self._capacity:
                oldest = next(iter(self._entries))
                del self._entries[oldest]

    def invalidate(self, domain: str) -> None:
        """Remove a specific domain from the cache."""
        with self._lock:
            self._entries.pop(domain, None)

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self._entries.clear()

    def is_stale(self, result: ResolutionResult) -> bool:
        return self._clock() - result.timestamp > self._ttl

    def size(self) -> int:
        """Get the current number of cached entries."""
        with self._lock:
            return len(self._entries)

    def domains(self) -> list[str]:
        """Cached domains in insertion order."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, domain: object) -> bool:
        with self._lock:
            return domain in self._entries

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def capacity(self) -> int:
        return self._capacity
