"""Tests for the HTTP client: paths, headers, bodies and error mapping."""

import json
from decimal import Decimal

import httpx
import pytest

from gigvora_escrow.client import EscrowClient
from gigvora_escrow.errors import EscrowResponseError, EscrowTransportError, OverviewDecodeError
from gigvora_escrow.models import EMPTY_OVERVIEW, TransactionStatus
from gigvora_escrow.payloads import SettlementPayload, TransactionPayload

FREELANCER = "fr-42"


def _client(settings, handler):
    return EscrowClient(settings=settings, transport=httpx.MockTransport(handler))


class TestRequests:
    @pytest.mark.asyncio
    async def test_overview_path_and_auth_header(self, settings):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"transactions": []})

        client = _client(settings, handler)
        await client.fetch_overview("fr 1", status="released")

        request = seen[0]
        assert request.method == "GET"
        assert request.url.raw_path.startswith(b"/api/freelancers/fr%201/escrow/overview")
        assert request.url.params["status"] == "released"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert request.headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_no_status_param_without_filter(self, settings):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        await _client(settings, handler).fetch_overview(FREELANCER)
        assert "status" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_empty_body_decodes_to_empty_overview(self, settings):
        client = _client(settings, lambda request: httpx.Response(200))
        assert await client.fetch_overview(FREELANCER) is EMPTY_OVERVIEW

    @pytest.mark.asyncio
    async def test_payload_body_is_camel_case_with_string_amounts(self, settings):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(
                201,
                json={"id": 5, "accountId": 1, "reference": "R-1", "amount": "10.00", "status": "in_escrow"},
            )

        payload = TransactionPayload.build(account_id=1, reference="R-1", amount=Decimal("10.00"))
        txn = await _client(settings, handler).create_transaction(FREELANCER, payload)

        assert bodies[0] == {"accountId": 1, "reference": "R-1", "amount": "10.00", "feeAmount": "0"}
        assert txn.status == TransactionStatus.IN_ESCROW

    @pytest.mark.asyncio
    async def test_mapping_body_is_forwarded_unchanged(self, settings):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"id": 5, "status": "released"})

        await _client(settings, handler).release_transaction(
            FREELANCER, 5, {"notes": "ok", "amount": Decimal("1.5")}
        )
        assert bodies[0] == {"notes": "ok", "amount": "1.5"}

    @pytest.mark.asyncio
    async def test_release_without_payload_sends_empty_object(self, settings):
        bodies = []

        def handler(request):
            bodies.append(request.content)
            return httpx.Response(200, json={"id": 5, "status": "released"})

        await _client(settings, handler).release_transaction(FREELANCER, 5)
        assert json.loads(bodies[0]) == {}

    @pytest.mark.asyncio
    async def test_append_event_unwraps_dispute_envelope(self, settings):
        def handler(request):
            return httpx.Response(
                201,
                json={
                    "dispute": {"id": 3, "reasonCode": "billing", "events": [{"notes": "a"}, {"notes": "b"}]},
                    "event": {"notes": "b"},
                },
            )

        dispute = await _client(settings, handler).append_dispute_event(FREELANCER, 3, {"notes": "b"})
        assert dispute.id == 3
        assert [e.notes for e in dispute.events] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_all_endpoints_route_to_ledger(self, client, transport, seeded):
        await client.fetch_overview(FREELANCER)
        await client.update_account(FREELANCER, seeded["account"], {"status": "active"})
        await client.release_transaction(FREELANCER, seeded["build"], SettlementPayload.build())
        dispute = await client.open_dispute(
            FREELANCER, seeded["design"], {"reasonCode": "delay", "summary": "Late"}
        )
        await client.append_dispute_event(FREELANCER, dispute.id, {"notes": "Looking"})
        await client.refund_transaction(FREELANCER, seeded["design"])

        paths = [(r.method, r.url.path) for r in transport.requests]
        prefix = f"/api/freelancers/{FREELANCER}/escrow"
        assert paths == [
            ("GET", f"{prefix}/overview"),
            ("PATCH", f"{prefix}/accounts/{seeded['account']}"),
            ("POST", f"{prefix}/transactions/{seeded['build']}/release"),
            ("POST", f"{prefix}/transactions/{seeded['design']}/disputes"),
            ("POST", f"{prefix}/disputes/{dispute.id}/events"),
            ("POST", f"{prefix}/transactions/{seeded['design']}/refund"),
        ]


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_server_message_is_surfaced_verbatim(self, settings):
        def handler(request):
            return httpx.Response(422, json={"message": "Fee amount cannot exceed the gross escrow amount"})

        with pytest.raises(EscrowTransportError) as exc_info:
            await _client(settings, handler).create_transaction(FREELANCER, {"amount": 1})

        err = exc_info.value
        assert str(err) == "Fee amount cannot exceed the gross escrow amount"
        assert err.status_code == 422
        assert err.is_client_error

    @pytest.mark.asyncio
    async def test_nested_error_message(self, settings):
        def handler(request):
            return httpx.Response(409, json={"error": {"message": "Duplicate reference"}})

        with pytest.raises(EscrowTransportError, match="Duplicate reference"):
            await _client(settings, handler).create_transaction(FREELANCER, {})

    @pytest.mark.asyncio
    async def test_plain_text_error_body(self, settings):
        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        with pytest.raises(EscrowTransportError) as exc_info:
            await _client(settings, handler).fetch_overview(FREELANCER)
        assert str(exc_info.value) == "Bad gateway"
        assert not exc_info.value.is_client_error

    @pytest.mark.asyncio
    async def test_generic_message_without_body(self, settings):
        with pytest.raises(EscrowTransportError, match="status 503"):
            await _client(settings, lambda request: httpx.Response(503)).fetch_overview(FREELANCER)

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(EscrowTransportError, match="connection refused") as exc_info:
            await _client(settings, handler).fetch_overview(FREELANCER)
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_invalid_json_is_response_error(self, settings):
        def handler(request):
            return httpx.Response(200, text="<html>", headers={"Content-Type": "text/html"})

        with pytest.raises(EscrowResponseError):
            await _client(settings, handler).fetch_overview(FREELANCER)

    @pytest.mark.asyncio
    async def test_malformed_overview_is_decode_error(self, settings):
        def handler(request):
            return httpx.Response(200, json={"transactions": [{"id": 1, "amount": "many"}]})

        with pytest.raises(OverviewDecodeError):
            await _client(settings, handler).fetch_overview(FREELANCER)


class TestConstruction:
    def test_base_url_trailing_slash_is_stripped(self, settings):
        client = EscrowClient("https://api.gigvora.test/api/", settings=settings)
        assert client.base_url == "https://api.gigvora.test/api"

    def test_insecure_remote_url_is_rejected(self, settings):
        with pytest.raises(ValueError):
            EscrowClient("http://api.gigvora.test", settings=settings)

    @pytest.mark.asyncio
    async def test_context_manager_closes_http_client(self, settings):
        async with EscrowClient(settings=settings) as client:
            pass
        assert client._http.is_closed
