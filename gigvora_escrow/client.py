"""HTTP client for the Gigvora escrow API.

Thin async transport over the freelancer escrow endpoints. Every response is
decoded into the wire models before it is returned; every failure surfaces as
an :class:`~gigvora_escrow.errors.EscrowError` subclass.
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from gigvora_escrow.config import EscrowSettings, get_settings, validate_api_base_url
from gigvora_escrow.errors import EscrowResponseError, EscrowTransportError
from gigvora_escrow.models import (
    EntityId,
    EscrowAccount,
    EscrowDispute,
    EscrowOverview,
    EscrowTransaction,
    decode_entity,
    decode_overview,
)
from gigvora_escrow.payloads import PayloadLike, to_body

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _segment(value: EntityId) -> str:
    return quote(str(value), safe="")


def _error_message(response: httpx.Response, body: Any) -> str:
    """Pull the server's own error message out of an error response."""
    if isinstance(body, dict):
        message = body.get("message")
        if not message:
            error = body.get("error")
            if isinstance(error, dict):
                message = error.get("message")
            elif isinstance(error, str):
                message = error
        if message:
            return str(message)
    text = response.text.strip() if response.content else ""
    if text and not isinstance(body, (dict, list)):
        return text
    return f"Escrow API request failed with status {response.status_code}"


class EscrowClient:
    """Async client for the freelancer escrow endpoints.

    Args:
        base_url: API root, e.g. ``https://api.gigvora.com/api``. Defaults to
            the configured ``GIGVORA_API_BASE_URL``.
        auth_token: Bearer token sent with every request.
        settings: Settings to read defaults from.
        transport: Optional httpx transport (tests, local ledger).
        timeout: Request timeout in seconds; ``None`` keeps httpx's default.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        *,
        settings: Optional[EscrowSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        settings = settings or get_settings()
        if base_url:
            self.base_url = validate_api_base_url(
                base_url, allow_insecure_http=settings.allow_insecure_http
            )
        else:
            self.base_url = settings.resolved_base_url()
        self._auth_token = auth_token if auth_token is not None else settings.auth_token
        if timeout is None:
            timeout = settings.request_timeout

        client_kwargs: Dict[str, Any] = {
            "base_url": self.base_url,
            "headers": self._headers(),
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self._http = httpx.AsyncClient(**client_kwargs)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "EscrowClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # === Transport ===

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: Optional[dict] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        content = None
        if body is not None:
            content = json.dumps(body, default=_json_default)

        try:
            response = await self._http.request(method, path, content=content, params=params)
        except httpx.HTTPError as e:
            logger.warning("Escrow API %s %s failed: %s", method, path, e)
            raise EscrowTransportError(str(e) or e.__class__.__name__) from e

        parsed: Any = None
        parse_error: Optional[ValueError] = None
        if response.content:
            try:
                parsed = response.json()
            except ValueError as e:
                parse_error = e

        if response.is_error:
            message = _error_message(response, parsed)
            logger.info(
                "Escrow API %s %s returned %s: %s", method, path, response.status_code, message
            )
            raise EscrowTransportError(message, status_code=response.status_code, payload=parsed)

        if parse_error is not None:
            raise EscrowResponseError(
                f"Escrow API returned invalid JSON for {method} {path}", payload=response.text
            ) from parse_error
        return parsed

    def _freelancer_path(self, freelancer_id: EntityId, *parts: EntityId) -> str:
        segments = ["freelancers", _segment(freelancer_id), "escrow"]
        segments.extend(_segment(part) for part in parts)
        return "/" + "/".join(segments)

    # === Read ===

    async def fetch_overview(
        self, freelancer_id: EntityId, status: Optional[str] = None
    ) -> EscrowOverview:
        """GET the escrow overview, optionally filtered by transaction status."""
        params = {"status": status} if status else None
        raw = await self._request("GET", self._freelancer_path(freelancer_id, "overview"), params=params)
        return decode_overview(raw)

    # === Accounts ===

    async def create_account(self, freelancer_id: EntityId, payload: PayloadLike) -> EscrowAccount:
        raw = await self._request(
            "POST", self._freelancer_path(freelancer_id, "accounts"), body=to_body(payload)
        )
        return decode_entity(EscrowAccount, raw)

    async def update_account(
        self, freelancer_id: EntityId, account_id: EntityId, payload: PayloadLike
    ) -> EscrowAccount:
        raw = await self._request(
            "PATCH",
            self._freelancer_path(freelancer_id, "accounts", account_id),
            body=to_body(payload),
        )
        return decode_entity(EscrowAccount, raw)

    # === Transactions ===

    async def create_transaction(
        self, freelancer_id: EntityId, payload: PayloadLike
    ) -> EscrowTransaction:
        raw = await self._request(
            "POST", self._freelancer_path(freelancer_id, "transactions"), body=to_body(payload)
        )
        return decode_entity(EscrowTransaction, raw)

    async def release_transaction(
        self, freelancer_id: EntityId, transaction_id: EntityId, payload: PayloadLike = None
    ) -> EscrowTransaction:
        raw = await self._request(
            "POST",
            self._freelancer_path(freelancer_id, "transactions", transaction_id, "release"),
            body=to_body(payload),
        )
        return decode_entity(EscrowTransaction, raw)

    async def refund_transaction(
        self, freelancer_id: EntityId, transaction_id: EntityId, payload: PayloadLike = None
    ) -> EscrowTransaction:
        raw = await self._request(
            "POST",
            self._freelancer_path(freelancer_id, "transactions", transaction_id, "refund"),
            body=to_body(payload),
        )
        return decode_entity(EscrowTransaction, raw)

    # === Disputes ===

    async def open_dispute(
        self, freelancer_id: EntityId, transaction_id: EntityId, payload: PayloadLike
    ) -> EscrowDispute:
        raw = await self._request(
            "POST",
            self._freelancer_path(freelancer_id, "transactions", transaction_id, "disputes"),
            body=to_body(payload),
        )
        return decode_entity(EscrowDispute, raw)

    async def append_dispute_event(
        self, freelancer_id: EntityId, dispute_id: EntityId, payload: PayloadLike
    ) -> EscrowDispute:
        raw = await self._request(
            "POST",
            self._freelancer_path(freelancer_id, "disputes", dispute_id, "events"),
            body=to_body(payload),
        )
        # Some backends answer with {dispute, event}
        if isinstance(raw, dict) and isinstance(raw.get("dispute"), dict):
            raw = raw["dispute"]
        return decode_entity(EscrowDispute, raw)
