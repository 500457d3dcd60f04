"""Escrow action dispatcher - the write path.

Each mutation follows the same protocol:

1. record ``pending`` for the action
2. call the endpoint
3. on success, force an overview refresh, record ``success`` and return
   the server's result
4. on failure, record ``error`` and re-raise the same exception; a 2xx
   response that cannot be decoded still triggers the refresh first

Balances are computed by the backend of record, so nothing is patched
locally; the refresh is what brings the caller up to date.
"""

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from gigvora_escrow.client import EscrowClient
from gigvora_escrow.errors import EscrowResponseError, MissingFreelancerContextError
from gigvora_escrow.models import EntityId, EscrowAccount, EscrowDispute, EscrowTransaction
from gigvora_escrow.payloads import PayloadLike

logger = logging.getLogger(__name__)

# Called with force=True after every successful mutation
RefreshCallback = Callable[..., Awaitable[Any]]


class ActionStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class EscrowAction(str, Enum):
    """Names of the mutations the dispatcher performs."""

    CREATE_ACCOUNT = "createAccount"
    UPDATE_ACCOUNT = "updateAccount"
    CREATE_TRANSACTION = "createTransaction"
    RELEASE_TRANSACTION = "releaseTransaction"
    REFUND_TRANSACTION = "refundTransaction"
    OPEN_DISPUTE = "openDispute"
    APPEND_DISPUTE_EVENT = "appendDisputeEvent"


@dataclass(frozen=True)
class ActionState:
    """State of one dispatched action."""

    action: Optional[str] = None
    status: ActionStatus = ActionStatus.IDLE
    error: Optional[BaseException] = None
    request_id: int = 0

    @property
    def is_pending(self) -> bool:
        return self.status == ActionStatus.PENDING

    def to_dict(self) -> dict:
        return {"action": self.action, "status": self.status.value, "error": self.error}


IDLE_STATE = ActionState()


class ActionTracker:
    """Tracks action states by request id.

    ``current`` is the state of the most recently started request. A request
    that started earlier and settles later only updates its own record.
    """

    def __init__(self, history_limit: int = 50):
        self._ids = itertools.count(1)
        self._states: Dict[int, ActionState] = {}
        self._latest = 0
        self._history_limit = history_limit

    @property
    def current(self) -> ActionState:
        return self._states.get(self._latest, IDLE_STATE)

    def get(self, request_id: int) -> Optional[ActionState]:
        return self._states.get(request_id)

    def start(self, action: str) -> int:
        request_id = next(self._ids)
        self._latest = request_id
        self._states[request_id] = ActionState(action, ActionStatus.PENDING, None, request_id)
        self._trim()
        return request_id

    def succeed(self, request_id: int) -> ActionState:
        return self._settle(request_id, ActionStatus.SUCCESS, None)

    def fail(self, request_id: int, error: BaseException) -> ActionState:
        return self._settle(request_id, ActionStatus.ERROR, error)

    def _settle(self, request_id: int, status: ActionStatus, error: Optional[BaseException]) -> ActionState:
        previous = self._states.get(request_id)
        action = previous.action if previous else None
        state = ActionState(action, status, error, request_id)
        self._states[request_id] = state
        return state

    def _trim(self) -> None:
        # Keep the newest entries; the latest request is always retained
        overflow = len(self._states) - self._history_limit
        if overflow <= 0:
            return
        for request_id in sorted(self._states)[:overflow]:
            if request_id != self._latest:
                del self._states[request_id]


class EscrowActionDispatcher:
    """Runs escrow mutations for one freelancer.

    Args:
        client: The escrow API client.
        refresh: Awaitable callback invoked as ``refresh(force=True)`` after
            each successful mutation.
        freelancer_id: The freelancer context. Without one every mutation
            raises :class:`MissingFreelancerContextError`.
    """

    def __init__(
        self,
        client: EscrowClient,
        refresh: RefreshCallback,
        freelancer_id: Optional[EntityId] = None,
    ):
        self.client = client
        self.freelancer_id = freelancer_id
        self._refresh = refresh
        self.tracker = ActionTracker()

    @property
    def action_state(self) -> ActionState:
        return self.tracker.current

    def state_for(self, request_id: int) -> Optional[ActionState]:
        return self.tracker.get(request_id)

    def _require_context(self, action: EscrowAction) -> EntityId:
        freelancer_id = self.freelancer_id
        if freelancer_id is None or str(freelancer_id).strip() == "":
            raise MissingFreelancerContextError(action.value)
        return freelancer_id

    async def _run(self, action: EscrowAction, call: Callable[[], Awaitable[Any]]) -> Any:
        request_id = self.tracker.start(action.value)
        logger.info("Escrow action %s started (request %d)", action.value, request_id)
        try:
            try:
                result = await call()
            except EscrowResponseError:
                # 2xx with an unreadable body: the write went through
                await self._refresh(force=True)
                raise
            await self._refresh(force=True)
        except BaseException as e:
            # Includes cancellation, so no request is left pending
            self.tracker.fail(request_id, e)
            logger.info("Escrow action %s failed (request %d): %s", action.value, request_id, e)
            raise
        self.tracker.succeed(request_id)
        logger.info("Escrow action %s succeeded (request %d)", action.value, request_id)
        return result

    # === Accounts ===

    async def create_account(self, payload: PayloadLike) -> EscrowAccount:
        freelancer_id = self._require_context(EscrowAction.CREATE_ACCOUNT)
        return await self._run(
            EscrowAction.CREATE_ACCOUNT,
            lambda: self.client.create_account(freelancer_id, payload),
        )

    async def update_account(self, account_id: EntityId, payload: PayloadLike) -> EscrowAccount:
        freelancer_id = self._require_context(EscrowAction.UPDATE_ACCOUNT)
        return await self._run(
            EscrowAction.UPDATE_ACCOUNT,
            lambda: self.client.update_account(freelancer_id, account_id, payload),
        )

    # === Transactions ===

    async def create_transaction(self, payload: PayloadLike) -> EscrowTransaction:
        freelancer_id = self._require_context(EscrowAction.CREATE_TRANSACTION)
        return await self._run(
            EscrowAction.CREATE_TRANSACTION,
            lambda: self.client.create_transaction(freelancer_id, payload),
        )

    async def release_transaction(
        self, transaction_id: EntityId, payload: PayloadLike = None
    ) -> EscrowTransaction:
        # Eligibility is enforced by the backend; see selectors.available_actions
        freelancer_id = self._require_context(EscrowAction.RELEASE_TRANSACTION)
        return await self._run(
            EscrowAction.RELEASE_TRANSACTION,
            lambda: self.client.release_transaction(freelancer_id, transaction_id, payload),
        )

    async def refund_transaction(
        self, transaction_id: EntityId, payload: PayloadLike = None
    ) -> EscrowTransaction:
        freelancer_id = self._require_context(EscrowAction.REFUND_TRANSACTION)
        return await self._run(
            EscrowAction.REFUND_TRANSACTION,
            lambda: self.client.refund_transaction(freelancer_id, transaction_id, payload),
        )

    # === Disputes ===

    async def open_dispute(self, transaction_id: EntityId, payload: PayloadLike) -> EscrowDispute:
        freelancer_id = self._require_context(EscrowAction.OPEN_DISPUTE)
        return await self._run(
            EscrowAction.OPEN_DISPUTE,
            lambda: self.client.open_dispute(freelancer_id, transaction_id, payload),
        )

    async def append_dispute_event(self, dispute_id: EntityId, payload: PayloadLike) -> EscrowDispute:
        freelancer_id = self._require_context(EscrowAction.APPEND_DISPUTE_EVENT)
        return await self._run(
            EscrowAction.APPEND_DISPUTE_EVENT,
            lambda: self.client.append_dispute_event(freelancer_id, dispute_id, payload),
        )
