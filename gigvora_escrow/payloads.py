"""Request payloads for escrow mutations.

Calling layers (panels, the CLI) build these to validate user input before
handing it to the dispatcher. The dispatcher itself forwards whatever it is
given; these models are a convenience, not a gate.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from gigvora_escrow.errors import PayloadValidationError
from gigvora_escrow.models import (
    AccountProvider,
    AccountStatus,
    ActorType,
    DisputePriority,
    DisputeReason,
    DisputeStage,
    DisputeStatus,
    EntityId,
    Money,
)


class Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    @classmethod
    def build(cls, **fields: Any):
        """Validate ``fields`` and return the payload.

        Raises:
            PayloadValidationError: with the first validation message.
        """
        try:
            return cls(**fields)
        except ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            message = first.get("msg", "invalid value")
            if location:
                message = f"{location}: {message}"
            raise PayloadValidationError(message) from exc

    def to_body(self) -> dict:
        """JSON request body (camelCase, unset optional fields omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _currency_code(value: str) -> str:
    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError("currency code must be three letters")
    return code


class AccountSettingsPayload(Payload):
    auto_release_on_approval: StrictBool = False
    notify_on_dispute: StrictBool = True
    manual_hold: StrictBool = False


class AccountMetadataPayload(Payload):
    account_label: Optional[str] = None

    @field_validator("account_label")
    @classmethod
    def _strip_label(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class AccountPayload(Payload):
    """Body for create-account."""

    provider: AccountProvider
    currency_code: str = "USD"
    metadata: AccountMetadataPayload = Field(default_factory=AccountMetadataPayload)
    settings: AccountSettingsPayload = Field(default_factory=AccountSettingsPayload)

    @field_validator("currency_code")
    @classmethod
    def _currency(cls, value: str) -> str:
        return _currency_code(value)


class AccountUpdatePayload(Payload):
    """Partial body for update-account; only the fields set are sent.

    ``settings`` holds just the switches being changed, so the server keeps
    the others as they are.
    """

    provider: Optional[AccountProvider] = None
    currency_code: Optional[str] = None
    status: Optional[AccountStatus] = None
    metadata: Optional[AccountMetadataPayload] = None
    settings: Optional[Dict[str, StrictBool]] = None

    @field_validator("currency_code")
    @classmethod
    def _currency(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _currency_code(value)

    @field_validator("settings")
    @classmethod
    def _settings(cls, value: Optional[Dict[str, bool]]) -> Optional[Dict[str, bool]]:
        if value is None:
            return None
        known = set(AccountSettingsPayload.model_fields)
        changes = {}
        for key, flag in value.items():
            name = key if key in known else next(
                (field for field in known if to_camel(field) == key), None
            )
            if name is None:
                raise ValueError(f"unknown account setting: {key}")
            changes[to_camel(name)] = flag
        return changes


class TransactionPayload(Payload):
    """Body for funding a new escrow transaction."""

    account_id: EntityId
    reference: str
    amount: Money
    fee_amount: Money = Decimal("0")
    counterparty_id: Optional[EntityId] = None
    milestone_label: Optional[str] = None
    scheduled_release_at: Optional[datetime] = None

    @field_validator("reference")
    @classmethod
    def _reference(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("reference cannot be empty")
        return value

    @model_validator(mode="after")
    def _amounts(self):
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if self.fee_amount < 0:
            raise ValueError("fee amount cannot be negative")
        if self.fee_amount > self.amount:
            raise ValueError("fee amount cannot exceed the gross amount")
        return self


class SettlementPayload(Payload):
    """Optional body for release and refund."""

    notes: Optional[str] = None
    metadata: Optional[dict] = None


class DisputePayload(Payload):
    reason_code: DisputeReason
    priority: DisputePriority = DisputePriority.MEDIUM
    summary: str

    @field_validator("summary")
    @classmethod
    def _summary(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("summary cannot be empty")
        return value


class DisputeNotePayload(Payload):
    """Body for appending an event to a dispute timeline.

    ``stage`` and ``status`` move the case along; ``transaction_resolution``
    settles the underlying transaction when the case closes.
    """

    notes: str
    actor_type: ActorType = ActorType.PROVIDER
    action_type: str = "comment"
    stage: Optional[DisputeStage] = None
    status: Optional[DisputeStatus] = None
    transaction_resolution: Optional[Literal["release", "refund"]] = None

    @field_validator("notes")
    @classmethod
    def _notes(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("notes cannot be empty")
        return value


PayloadLike = Union[Payload, Mapping[str, Any], None]


def to_body(payload: PayloadLike) -> dict:
    """Turn a payload model or mapping into a request body, unchanged in content."""
    if payload is None:
        return {}
    if isinstance(payload, Payload):
        return payload.to_body()
    return dict(payload)
