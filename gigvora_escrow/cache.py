"""Per-freelancer TTL cache for escrow overviews.

An instance is owned by the aggregator that uses it; there is no module-level
cache. Entries keep the last good overview alongside the last error so a
failed refresh can still serve stale data.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, Optional

from gigvora_escrow.config import DEFAULT_OVERVIEW_TTL_SECONDS
from gigvora_escrow.models import EntityId, EscrowOverview

logger = logging.getLogger(__name__)

CACHE_PREFIX = "freelancer:escrow:overview"


def overview_cache_key(freelancer_id: EntityId, status: Optional[str] = None) -> str:
    return f"{CACHE_PREFIX}:{freelancer_id}:{status or 'all'}"


@dataclass
class CacheEntry:
    """Cached overview state for one key."""

    overview: Optional[EscrowOverview] = None
    error: Optional[BaseException] = None
    # Monotonic clock reading of the last successful store
    stored_at: Optional[float] = None
    # Wall-clock time of the last successful store
    updated_at: Optional[datetime] = None

    @property
    def has_data(self) -> bool:
        return self.overview is not None


class OverviewCache:
    """TTL cache keyed by freelancer id and status filter.

    Args:
        ttl_seconds: How long a stored overview counts as fresh.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_OVERVIEW_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> Iterator[str]:
        return iter(list(self._entries))

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def is_fresh(self, entry: Optional[CacheEntry]) -> bool:
        """True when ``entry`` holds data stored less than ``ttl_seconds`` ago."""
        if entry is None or not entry.has_data or entry.stored_at is None:
            return False
        return (self._clock() - entry.stored_at) < self.ttl_seconds

    def store(self, key: str, overview: EscrowOverview) -> CacheEntry:
        """Store a successfully fetched overview, clearing any previous error."""
        entry = CacheEntry(
            overview=overview,
            error=None,
            stored_at=self._clock(),
            updated_at=datetime.now(timezone.utc),
        )
        self._entries[key] = entry
        logger.debug("Cache SET: %s (TTL: %ss)", key, self.ttl_seconds)
        return entry

    def record_error(self, key: str, error: BaseException) -> CacheEntry:
        """Attach ``error`` to the entry, keeping any overview already stored."""
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry()
            self._entries[key] = entry
        entry.error = error
        return entry

    def clear(self) -> None:
        self._entries.clear()
