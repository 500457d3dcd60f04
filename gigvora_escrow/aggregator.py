"""Escrow overview aggregator - the read path.

Fetches a freelancer's escrow overview, caches it per freelancer for the
configured TTL and reports what the caller is looking at: fresh data, stale
data kept after a failed refresh, or a failure with nothing to show.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from gigvora_escrow.cache import CacheEntry, OverviewCache, overview_cache_key
from gigvora_escrow.client import EscrowClient
from gigvora_escrow.errors import EscrowError
from gigvora_escrow.models import EMPTY_OVERVIEW, EntityId, EscrowOverview

logger = logging.getLogger(__name__)

OverviewFilters = Union[Mapping[str, Any], str, None]


class OverviewState(str, Enum):
    """What an overview snapshot holds."""

    EMPTY = "empty"  # No freelancer context, nothing fetched
    FRESH = "fresh"  # Data from the last successful fetch
    STALE = "stale"  # Older data kept after the latest fetch failed
    FAILED = "failed"  # Fetch failed and there is no data to fall back on


@dataclass(frozen=True)
class OverviewSnapshot:
    """Result of an overview fetch.

    ``overview`` is always usable; on failure without data it is the empty
    zero-state.
    """

    overview: EscrowOverview = EMPTY_OVERVIEW
    state: OverviewState = OverviewState.EMPTY
    error: Optional[BaseException] = None
    from_cache: bool = False
    last_updated: Optional[datetime] = None

    @property
    def has_data(self) -> bool:
        return self.state in (OverviewState.FRESH, OverviewState.STALE)

    def raise_for_error(self) -> "OverviewSnapshot":
        """Raise the recorded error, if any. Returns self otherwise."""
        if self.error is not None:
            raise self.error
        return self


EMPTY_SNAPSHOT = OverviewSnapshot()


def _status_filter(filters: OverviewFilters) -> Optional[str]:
    if filters is None:
        return None
    if isinstance(filters, Mapping):
        status = filters.get("status")
    else:
        status = filters
    if isinstance(status, Enum):
        status = status.value
    return status or None


def _has_context(freelancer_id: Optional[EntityId]) -> bool:
    if freelancer_id is None:
        return False
    return str(freelancer_id).strip() != ""


class EscrowOverviewAggregator:
    """Read path over :class:`EscrowClient` with an owned TTL cache.

    Args:
        client: The escrow API client.
        cache: Cache instance to use; a new 45-second cache by default.
    """

    def __init__(self, client: EscrowClient, cache: Optional[OverviewCache] = None):
        self.client = client
        self.cache = cache if cache is not None else OverviewCache()
        self._inflight: Dict[str, asyncio.Future] = {}

    def is_loading(self, freelancer_id: Optional[EntityId], filters: OverviewFilters = None) -> bool:
        if not _has_context(freelancer_id):
            return False
        return overview_cache_key(freelancer_id, _status_filter(filters)) in self._inflight

    def peek(self, freelancer_id: Optional[EntityId], filters: OverviewFilters = None) -> OverviewSnapshot:
        """Current cached state for a freelancer, without any network call."""
        if not _has_context(freelancer_id):
            return EMPTY_SNAPSHOT
        entry = self.cache.get(overview_cache_key(freelancer_id, _status_filter(filters)))
        if entry is None:
            return EMPTY_SNAPSHOT
        return self._snapshot(entry, from_cache=True)

    async def fetch_overview(
        self,
        freelancer_id: Optional[EntityId],
        filters: OverviewFilters = None,
        *,
        force: bool = False,
    ) -> OverviewSnapshot:
        """Fetch the overview for ``freelancer_id``.

        Without a freelancer id this returns the empty snapshot and makes no
        request. Within the TTL the cached overview is returned. ``force``
        always goes to the network.

        Transport and decode failures never raise; they come back on the
        snapshot's ``error``. Cancelling the calling task abandons the
        request and leaves the cache as it was.
        """
        if not _has_context(freelancer_id):
            return EMPTY_SNAPSHOT

        status = _status_filter(filters)
        key = overview_cache_key(freelancer_id, status)

        if not force:
            entry = self.cache.get(key)
            if self.cache.is_fresh(entry):
                logger.debug("Cache HIT: %s", key)
                return self._snapshot(entry, from_cache=True)

            pending = self._inflight.get(key)
            if pending is not None:
                joined = await self._join(key, pending)
                if joined is not None:
                    return joined

        logger.debug("Cache MISS: %s (force=%s)", key, force)
        return await self._load(freelancer_id, status, key)

    async def refresh(
        self, freelancer_id: Optional[EntityId], filters: OverviewFilters = None
    ) -> OverviewSnapshot:
        """Fetch bypassing the TTL."""
        return await self.fetch_overview(freelancer_id, filters, force=True)

    async def _join(self, key: str, pending: asyncio.Future) -> Optional[OverviewSnapshot]:
        """Wait on another caller's request for the same key.

        Returns None when that request was cancelled, so the caller loads
        for itself.
        """
        try:
            await asyncio.shield(pending)
        except asyncio.CancelledError:
            if not pending.cancelled():
                raise
            return None
        entry = self.cache.get(key)
        if entry is None:
            return None
        return self._snapshot(entry, from_cache=True)

    async def _load(self, freelancer_id: EntityId, status: Optional[str], key: str) -> OverviewSnapshot:
        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            try:
                overview = await self.client.fetch_overview(freelancer_id, status=status)
            except EscrowError as e:
                entry = self.cache.record_error(key, e)
                if entry.has_data:
                    logger.warning("Escrow overview refresh failed, serving stale data: %s", e)
                else:
                    logger.warning("Escrow overview fetch failed: %s", e)
                future.set_result(None)
                return self._snapshot(entry, from_cache=entry.has_data)

            entry = self.cache.store(key, overview)
            future.set_result(None)
            return self._snapshot(entry, from_cache=False)
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]
            if not future.done():
                future.cancel()

    @staticmethod
    def _snapshot(entry: CacheEntry, *, from_cache: bool) -> OverviewSnapshot:
        if entry.error is not None:
            if entry.has_data:
                return OverviewSnapshot(
                    overview=entry.overview,
                    state=OverviewState.STALE,
                    error=entry.error,
                    from_cache=True,
                    last_updated=entry.updated_at,
                )
            return OverviewSnapshot(
                overview=EMPTY_OVERVIEW,
                state=OverviewState.FAILED,
                error=entry.error,
                from_cache=False,
                last_updated=entry.updated_at,
            )
        if not entry.has_data:
            return EMPTY_SNAPSHOT
        return OverviewSnapshot(
            overview=entry.overview,
            state=OverviewState.FRESH,
            error=None,
            from_cache=from_cache,
            last_updated=entry.updated_at,
        )
