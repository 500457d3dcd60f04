"""Escrow session: the single contract panels consume.

Binds one freelancer to an aggregator and a dispatcher, and keeps the latest
overview snapshot so every panel reads the same state.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from gigvora_escrow.aggregator import (
    EMPTY_SNAPSHOT,
    EscrowOverviewAggregator,
    OverviewFilters,
    OverviewSnapshot,
    OverviewState,
)
from gigvora_escrow.cache import OverviewCache
from gigvora_escrow.client import EscrowClient
from gigvora_escrow.dispatcher import ActionState, EscrowActionDispatcher
from gigvora_escrow.models import (
    ActivityEntry,
    EntityId,
    EscrowAccount,
    EscrowDispute,
    EscrowMetrics,
    EscrowOverview,
    EscrowTransaction,
)
from gigvora_escrow.payloads import PayloadLike

logger = logging.getLogger(__name__)


class EscrowSession:
    """Overview state plus mutations for one freelancer.

    Args:
        client: The escrow API client.
        freelancer_id: Freelancer context; ``None`` yields the empty
            overview and mutations that refuse to run.
        cache: Overview cache; pass a shared one to reuse entries across
            sessions.
        filters: Overview filters, e.g. ``{"status": "released"}``.
    """

    def __init__(
        self,
        client: EscrowClient,
        freelancer_id: Optional[EntityId] = None,
        *,
        cache: Optional[OverviewCache] = None,
        filters: OverviewFilters = None,
    ):
        self.freelancer_id = freelancer_id
        self.filters = filters
        self.aggregator = EscrowOverviewAggregator(client, cache)
        self.dispatcher = EscrowActionDispatcher(client, self.refresh, freelancer_id)
        self._snapshot = self.aggregator.peek(freelancer_id, filters)

    # === Read state ===

    @property
    def snapshot(self) -> OverviewSnapshot:
        return self._snapshot

    @property
    def overview(self) -> EscrowOverview:
        return self._snapshot.overview

    @property
    def metrics(self) -> EscrowMetrics:
        return self._snapshot.overview.metrics

    @property
    def accounts(self) -> Tuple[EscrowAccount, ...]:
        return self._snapshot.overview.accounts

    @property
    def transactions(self) -> Tuple[EscrowTransaction, ...]:
        return self._snapshot.overview.transactions

    @property
    def release_queue(self) -> Tuple[EscrowTransaction, ...]:
        return self._snapshot.overview.release_queue

    @property
    def disputes(self) -> Tuple[EscrowDispute, ...]:
        return self._snapshot.overview.disputes

    @property
    def activity_log(self) -> Tuple[ActivityEntry, ...]:
        return self._snapshot.overview.activity_log

    @property
    def loading(self) -> bool:
        return self.aggregator.is_loading(self.freelancer_id, self.filters)

    @property
    def error(self) -> Optional[BaseException]:
        return self._snapshot.error

    @property
    def from_cache(self) -> bool:
        return self._snapshot.from_cache

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._snapshot.last_updated

    @property
    def state(self) -> OverviewState:
        return self._snapshot.state

    @property
    def action_state(self) -> ActionState:
        return self.dispatcher.action_state

    # === Loading ===

    async def load(self) -> OverviewSnapshot:
        """Fetch the overview, honouring the cache TTL."""
        return await self.refresh(force=False)

    async def refresh(self, force: bool = False) -> OverviewSnapshot:
        if self.freelancer_id is None:
            self._snapshot = EMPTY_SNAPSHOT
            return self._snapshot
        self._snapshot = await self.aggregator.fetch_overview(
            self.freelancer_id, self.filters, force=force
        )
        logger.debug(
            "Escrow session for %s is %s (from_cache=%s)",
            self.freelancer_id,
            self._snapshot.state.value,
            self._snapshot.from_cache,
        )
        return self._snapshot

    # === Mutations ===

    async def create_account(self, payload: PayloadLike) -> EscrowAccount:
        return await self.dispatcher.create_account(payload)

    async def update_account(self, account_id: EntityId, payload: PayloadLike) -> EscrowAccount:
        return await self.dispatcher.update_account(account_id, payload)

    async def create_transaction(self, payload: PayloadLike) -> EscrowTransaction:
        return await self.dispatcher.create_transaction(payload)

    async def release_transaction(
        self, transaction_id: EntityId, payload: PayloadLike = None
    ) -> EscrowTransaction:
        return await self.dispatcher.release_transaction(transaction_id, payload)

    async def refund_transaction(
        self, transaction_id: EntityId, payload: PayloadLike = None
    ) -> EscrowTransaction:
        return await self.dispatcher.refund_transaction(transaction_id, payload)

    async def open_dispute(self, transaction_id: EntityId, payload: PayloadLike) -> EscrowDispute:
        return await self.dispatcher.open_dispute(transaction_id, payload)

    async def append_dispute_event(self, dispute_id: EntityId, payload: PayloadLike) -> EscrowDispute:
        return await self.dispatcher.append_dispute_event(dispute_id, payload)
