"""
Escrow wire models.

These are the shapes the Gigvora escrow API returns: accounts, transactions,
disputes, activity entries and the aggregated overview. Payloads are parsed
here, at the network boundary, so everything past the client works with
typed, immutable objects. Missing or null fields fall back to their defaults;
fields of the wrong type are rejected.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from gigvora_escrow.errors import EscrowResponseError, OverviewDecodeError

logger = logging.getLogger(__name__)


# === Enums ===


class AccountProvider(str, Enum):
    """Payment provider backing an escrow account."""

    ESCROW_COM = "escrow_com"
    STRIPE = "stripe"
    TRUSTSHARE = "trustshare"


class AccountStatus(str, Enum):
    """Escrow account status."""

    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CLOSED = "closed"


class TransactionStatus(str, Enum):
    """Escrow transaction lifecycle status."""

    INITIATED = "initiated"
    FUNDED = "funded"
    IN_ESCROW = "in_escrow"
    RELEASED = "released"
    REFUNDED = "refunded"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


# Statuses that no longer accept release or refund
TERMINAL_TRANSACTION_STATUSES = frozenset(
    {TransactionStatus.RELEASED, TransactionStatus.REFUNDED, TransactionStatus.CANCELLED}
)

# Statuses a dispute can be opened from
DISPUTABLE_TRANSACTION_STATUSES = frozenset(
    {TransactionStatus.FUNDED, TransactionStatus.IN_ESCROW, TransactionStatus.DISPUTED}
)

# Statuses still holding funds (release queue, outstanding volume)
HELD_TRANSACTION_STATUSES = frozenset({TransactionStatus.FUNDED, TransactionStatus.IN_ESCROW})


class DisputeReason(str, Enum):
    """Why a dispute was opened."""

    QUALITY_GAP = "quality_gap"
    SCOPE_MISMATCH = "scope_mismatch"
    DELAY = "delay"
    BILLING = "billing"


class DisputePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class DisputeStage(str, Enum):
    INTAKE = "intake"
    MEDIATION = "mediation"
    ARBITRATION = "arbitration"
    RESOLVED = "resolved"


class DisputeStatus(str, Enum):
    OPEN = "open"
    AWAITING_CUSTOMER = "awaiting_customer"
    UNDER_REVIEW = "under_review"
    SETTLED = "settled"
    CLOSED = "closed"


ACTIVE_DISPUTE_STATUSES = frozenset(
    {DisputeStatus.OPEN, DisputeStatus.AWAITING_CUSTOMER, DisputeStatus.UNDER_REVIEW}
)


class ActorType(str, Enum):
    """Who authored a dispute event."""

    CUSTOMER = "customer"
    PROVIDER = "provider"
    MEDIATOR = "mediator"
    ADMIN = "admin"
    SYSTEM = "system"


# === Field types ===


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]
Money = Annotated[Decimal, Field(allow_inf_nan=False)]
EntityId = Union[int, str]

# Known codes decode to the enum; codes this client does not know stay strings
ProviderCode = Annotated[Union[AccountProvider, str], Field(union_mode="left_to_right")]
ReasonCode = Annotated[Union[DisputeReason, str], Field(union_mode="left_to_right")]

ZERO = Decimal("0")


class WireModel(BaseModel):
    """Base for API shapes: camelCase on the wire, immutable once decoded."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # null on the wire means "absent": the field default applies
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None}
        return data

    def to_wire(self) -> dict:
        """Serialize back to the camelCase JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


# === Accounts ===


class AccountSettings(WireModel):
    """Per-account policy switches."""

    auto_release_on_approval: bool = False
    notify_on_dispute: bool = True
    manual_hold: bool = False


class AccountMetadata(WireModel):
    model_config = ConfigDict(extra="allow")

    account_label: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("accountLabel", "label", "account_label"),
        serialization_alias="accountLabel",
    )


class EscrowAccount(WireModel):
    """One routing target for incoming funds, owned by a freelancer."""

    id: EntityId
    provider: Optional[ProviderCode] = None
    currency_code: str = "USD"
    status: AccountStatus = AccountStatus.ACTIVE
    current_balance: Money = ZERO
    outstanding_balance: Money = ZERO
    released_volume: Money = ZERO
    refunded_volume: Money = ZERO
    open_transactions: int = 0
    disputed_transactions: int = 0
    settings: AccountSettings = Field(default_factory=AccountSettings)
    metadata: AccountMetadata = Field(default_factory=AccountMetadata)
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    @property
    def label(self) -> str:
        return self.metadata.account_label or f"Account {self.id}"


# === Disputes ===


class DisputeEvent(WireModel):
    """One entry on a dispute's timeline."""

    id: Optional[EntityId] = None
    actor_type: ActorType = ActorType.SYSTEM
    action_type: str = "comment"
    notes: Optional[str] = None
    event_at: Optional[UtcDatetime] = Field(
        default=None,
        validation_alias=AliasChoices("eventAt", "createdAt", "event_at"),
        serialization_alias="eventAt",
    )


class EscrowDispute(WireModel):
    """A dispute opened against a transaction, with an append-only timeline."""

    id: EntityId
    transaction_id: Optional[EntityId] = Field(
        default=None,
        validation_alias=AliasChoices("transactionId", "escrowTransactionId", "transaction_id"),
        serialization_alias="transactionId",
    )
    reason_code: Optional[ReasonCode] = None
    priority: DisputePriority = DisputePriority.MEDIUM
    stage: DisputeStage = DisputeStage.INTAKE
    status: DisputeStatus = DisputeStatus.OPEN
    summary: Optional[str] = None
    opened_at: Optional[UtcDatetime] = None
    resolved_at: Optional[UtcDatetime] = None
    events: Tuple[DisputeEvent, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_DISPUTE_STATUSES


# === Transactions ===


class AuditEntry(WireModel):
    model_config = ConfigDict(extra="allow")

    action: str = "update"
    occurred_at: Optional[UtcDatetime] = Field(
        default=None,
        validation_alias=AliasChoices("occurredAt", "at", "occurred_at"),
        serialization_alias="occurredAt",
    )
    actor_id: Optional[EntityId] = None
    notes: Optional[str] = None


class EscrowTransaction(WireModel):
    """One funded payment moving through the release lifecycle."""

    id: EntityId
    account_id: Optional[EntityId] = None
    reference: str = ""
    amount: Money = ZERO
    fee_amount: Money = ZERO
    net_amount: Optional[Money] = None
    currency_code: str = "USD"
    counterparty_id: Optional[EntityId] = None
    milestone_label: Optional[str] = None
    status: TransactionStatus = TransactionStatus.IN_ESCROW
    scheduled_release_at: Optional[UtcDatetime] = None
    release_eligible: bool = False
    audit_trail: Tuple[AuditEntry, ...] = ()
    disputes: Tuple[EscrowDispute, ...] = ()
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None
    released_at: Optional[UtcDatetime] = None
    refunded_at: Optional[UtcDatetime] = None

    @property
    def effective_net_amount(self) -> Decimal:
        """Net amount as reported, or amount minus fee when the server omitted it."""
        if self.net_amount is not None:
            return self.net_amount
        return self.amount - self.fee_amount

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TRANSACTION_STATUSES

    @property
    def release_at(self) -> Optional[datetime]:
        """When this transaction is due to leave escrow (scheduled, else creation)."""
        return self.scheduled_release_at or self.created_at


def release_queue_order(transactions) -> Tuple[EscrowTransaction, ...]:
    """Order transactions earliest release first.

    Falls back to ``created_at`` when no release is scheduled; undated
    entries go last. ``sorted`` is stable, so ties keep input order.
    """

    def sort_key(txn: EscrowTransaction):
        release_at = txn.release_at
        if release_at is None:
            return (1, 0.0)
        return (0, release_at.timestamp())

    return tuple(sorted(transactions, key=sort_key))


# === Activity ===


class ActivityEntry(WireModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[EntityId] = None
    transaction_id: Optional[EntityId] = None
    action: str = Field(
        default="update",
        validation_alias=AliasChoices("action", "type"),
        serialization_alias="action",
    )
    reference: Optional[str] = None
    amount: Optional[Money] = None
    currency_code: Optional[str] = None
    actor_id: Optional[EntityId] = None
    notes: Optional[str] = None
    occurred_at: Optional[UtcDatetime] = Field(
        default=None,
        validation_alias=AliasChoices("occurredAt", "at", "occurred_at"),
        serialization_alias="occurredAt",
    )


# === Overview ===


class EscrowMetrics(WireModel):
    """Summary figures computed by the backend of record."""

    total_accounts: int = 0
    gross_volume: Money = ZERO
    net_volume: Money = ZERO
    outstanding: Money = ZERO
    released: Money = ZERO
    refunded: Money = ZERO
    disputed_count: int = 0
    average_release_days: Optional[float] = None
    longest_release_days: Optional[float] = None


class EscrowOverview(WireModel):
    """Read model for one freelancer's escrow workspace."""

    metrics: EscrowMetrics = Field(default_factory=EscrowMetrics)
    accounts: Tuple[EscrowAccount, ...] = ()
    transactions: Tuple[EscrowTransaction, ...] = ()
    release_queue: Tuple[EscrowTransaction, ...] = ()
    disputes: Tuple[EscrowDispute, ...] = ()
    activity_log: Tuple[ActivityEntry, ...] = ()

    @field_validator("release_queue", mode="after")
    @classmethod
    def _order_release_queue(cls, value):
        return release_queue_order(value)

    def find_transaction(self, transaction_id: EntityId) -> Optional[EscrowTransaction]:
        wanted = str(transaction_id)
        for txn in self.transactions:
            if str(txn.id) == wanted:
                return txn
        return None

    def find_account(self, account_id: EntityId) -> Optional[EscrowAccount]:
        wanted = str(account_id)
        for account in self.accounts:
            if str(account.id) == wanted:
                return account
        return None

    def find_dispute(self, dispute_id: EntityId) -> Optional[EscrowDispute]:
        wanted = str(dispute_id)
        for dispute in self.disputes:
            if str(dispute.id) == wanted:
                return dispute
        return None


# Zero-state returned whenever there is no freelancer context
EMPTY_OVERVIEW = EscrowOverview()


# === Decoding ===

M = TypeVar("M", bound=WireModel)


def decode_overview(raw: Any) -> EscrowOverview:
    """Parse an overview payload.

    ``None`` decodes to the zero-state. Anything that is not an object, or
    an object with mistyped fields, raises :class:`OverviewDecodeError`.
    """
    if raw is None:
        return EMPTY_OVERVIEW
    if not isinstance(raw, Mapping):
        raise OverviewDecodeError(
            f"Escrow overview must be an object, got {type(raw).__name__}", payload=raw
        )
    try:
        return EscrowOverview.model_validate(raw)
    except ValidationError as exc:
        logger.debug("Rejected overview payload: %s", exc)
        raise OverviewDecodeError(
            f"Malformed escrow overview ({exc.error_count()} invalid field(s))", payload=raw
        ) from exc


def decode_entity(model: Type[M], raw: Any) -> M:
    """Parse a single entity returned by a mutation endpoint."""
    name = model.__name__
    if not isinstance(raw, Mapping):
        raise EscrowResponseError(
            f"{name} response must be an object, got {type(raw).__name__}", payload=raw
        )
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.debug("Rejected %s payload: %s", name, exc)
        raise EscrowResponseError(
            f"Malformed {name} response ({exc.error_count()} invalid field(s))", payload=raw
        ) from exc
