"""Concrete implementation of the in-memory response Caching Service.

Stores GitHub API responses keyed by call shape with a per-entry TTL.
Expiry is lazy: an expired entry is dropped the next time it is read.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass

# Domain Layer Imports
from shiptracker.domain.interfaces.cache import CacheService
from shiptracker.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60  # 5 minutes

@dataclass(frozen=True)
class CacheEntry:
    """Internal representation of a cache entry with expiry."""
    value: Any
    created_at: float # Unix timestamp when the entry was written
    expires_at: float # Unix timestamp when the entry expires

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at

class InMemoryCacheService(CacheService):
    """Process-wide TTL cache.

    Entries are immutable snapshots, so concurrent writers racing on the same
    key are harmless: the last write wins.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the caching service.

        Args:
            default_ttl: TTL in seconds used when ``set`` gets no ttl.
            clock: Returns the current Unix time; injectable for tests.
        """
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self.default_ttl = default_ttl
        self._clock = clock
        logger.info(f"CachingService initialized (default_ttl={default_ttl}s)")

    def __len__(self) -> int:
        return len(self._entries)

    # --- CacheService Interface Implementation ---

    async def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieves an item if present and not expired."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Cache miss for key: {key}")
            return None
        if not entry.is_valid(self._clock()):
            logger.debug(f"Cache entry expired for key: {key}")
            # Only drop it if nobody replaced it meanwhile
            if self._entries.get(key) is entry:
                del self._entries[key]
            return None
        logger.debug(f"Cache hit for key: {key}")
        return entry.value

    async def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Stores an item, replacing any previous entry for the key."""
        now = self._clock()
        effective_ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(value=value, created_at=now, expires_at=now + effective_ttl)
        logger.debug(f"Stored item in cache: key={key}, ttl={effective_ttl}s")

    async def delete(self, key: CacheKey) -> None:
        """Deletes an item from the cache."""
        if self._entries.pop(key, None) is not None:
            logger.debug(f"Deleted item from cache: key={key}")

    async def clear(self) -> None:
        """Clears all items from the cache."""
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared response cache ({count} entries).")
