# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import json
import time

import httpx
import pytest

from ledgerpipe.errors import ErrorKind, RpcRequestError, RpcResponseError
from ledgerpipe.events.filters import EventFilter
from ledgerpipe.rpc.client import RpcClient
from ledgerpipe.rpc.models import ClientConfig
from ledgerpipe.rpc.rate_limit import RateLimiter
from tests.fakes import CONTRACT_A, make_raw_event

URL = "https://rpc.test"


def _ok(result):
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


class MockRpc:
    """httpx transport answering JSON-RPC calls from a list of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.sent_at = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.sent_at.append(time.monotonic())
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return httpx.Response(
            response.status_code, headers=response.headers, content=response.content
        )

    def client(self, url=URL, **config):
        http = httpx.AsyncClient(transport=httpx.MockTransport(self))
        return RpcClient(ClientConfig(base_url=url, **config), http_client=http)


class TestRpcClientRequests:
    """JSON-RPC payloads sent for each method."""

    @pytest.mark.asyncio
    async def test_get_health(self):
        rpc = MockRpc(
            _ok(
                {
                    "status": "healthy",
                    "latestLedger": 100_000,
                    "oldestLedger": 90_000,
                    "ledgerRetentionWindow": 10_000,
                }
            )
        )

        health = await rpc.client().get_health()

        assert health.is_healthy
        assert (health.oldest_ledger, health.latest_ledger) == (90_000, 100_000)
        assert rpc.requests[0]["method"] == "getHealth"
        assert rpc.requests[0]["jsonrpc"] == "2.0"

    @pytest.mark.asyncio
    async def test_get_events_by_ledger(self):
        raw = make_raw_event(95_000)
        rpc = MockRpc(
            _ok(
                {
                    "events": [raw.model_dump(by_alias=True)],
                    "latestLedger": 100_000,
                    "cursor": "abc",
                }
            )
        )
        flt = EventFilter(contract_ids=[CONTRACT_A])

        response = await rpc.client().get_events(
            start_ledger=95_000, end_ledger=95_001, filters=[flt], limit=5
        )

        assert response.events == [raw]
        assert response.cursor == "abc"
        assert rpc.requests[0]["params"] == {
            "startLedger": 95_000,
            "endLedger": 95_001,
            "filters": [{"contractIds": [CONTRACT_A]}],
            "pagination": {"limit": 5},
        }

    @pytest.mark.asyncio
    async def test_get_events_by_cursor_omits_ledgers(self):
        rpc = MockRpc(_ok({"events": [], "latestLedger": 100_000}))

        await rpc.client().get_events(start_ledger=95_000, cursor="abc", limit=5)

        params = rpc.requests[0]["params"]
        assert "startLedger" not in params
        assert params["pagination"] == {"limit": 5, "cursor": "abc"}

    @pytest.mark.asyncio
    async def test_get_ledgers(self):
        rpc = MockRpc(
            _ok(
                {
                    "ledgers": [{"sequence": 1_000, "hash": "ff", "metadataXdr": "AAAA"}],
                    "latestLedger": 100_000,
                }
            )
        )

        response = await rpc.client().get_ledgers(start_ledger=1_000, limit=1)

        assert response.ledgers[0].sequence == 1_000
        assert response.ledgers[0].metadata_xdr == "AAAA"
        assert rpc.requests[0]["params"] == {"startLedger": 1_000, "pagination": {"limit": 1}}

    @pytest.mark.asyncio
    async def test_request_ids_increase(self):
        rpc = MockRpc(_ok({"status": "healthy"}))
        client = rpc.client()

        await client.get_health()
        await client.get_health()

        assert [r["id"] for r in rpc.requests] == [1, 2]


class TestRpcClientErrors:
    """Failures are raised, never swallowed."""

    @pytest.mark.asyncio
    async def test_json_rpc_error(self):
        rpc = MockRpc(
            httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32600, "message": "bad range"}},
            )
        )

        with pytest.raises(RpcResponseError) as exc_info:
            await rpc.client().get_events(start_ledger=1)

        assert exc_info.value.data == {"method": "getEvents", "rpc_code": -32600}
        assert exc_info.value.details == "bad range"
        assert exc_info.value.kind is ErrorKind.SOURCE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_http_error_not_retried_by_default(self):
        rpc = MockRpc(httpx.Response(500, text="boom"))

        with pytest.raises(RpcRequestError) as exc_info:
            await rpc.client().get_health()

        assert exc_info.value.data["status_code"] == 500
        assert len(rpc.requests) == 1

    @pytest.mark.asyncio
    async def test_retries_when_configured(self, monkeypatch):
        monkeypatch.setattr(RpcClient, "_backoff", staticmethod(lambda attempt: 0.0))
        rpc = MockRpc(httpx.Response(503), _ok({"status": "healthy"}))

        health = await rpc.client(max_retries=2).get_health()

        assert health.is_healthy
        assert len(rpc.requests) == 2

    @pytest.mark.asyncio
    async def test_retry_waits_for_retry_after(self, monkeypatch):
        """A 429 with Retry-After holds the retry back through the rate limiter."""
        monkeypatch.setattr(RpcClient, "_backoff", staticmethod(lambda attempt: 0.0))
        rpc = MockRpc(
            httpx.Response(429, headers={"Retry-After": "1"}), _ok({"status": "healthy"})
        )
        client = rpc.client(max_retries=1, rate_limit_per_min=600)

        health = await client.get_health()

        assert health.is_healthy
        assert len(rpc.requests) == 2
        assert rpc.sent_at[1] - rpc.sent_at[0] >= 0.9

    @pytest.mark.asyncio
    async def test_transport_error(self):
        request = httpx.Request("POST", URL)
        rpc = MockRpc(httpx.ConnectError("connection refused", request=request))

        with pytest.raises(RpcRequestError) as exc_info:
            await rpc.client().get_health()

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_api_key_masked_in_errors(self):
        url = f"{URL}/?apikey=SECRETKEY123"
        request = httpx.Request("POST", url)
        rpc = MockRpc(httpx.ConnectError(f"cannot reach {url}", request=request))

        with pytest.raises(RpcRequestError) as exc_info:
            await rpc.client(url=url).get_health()

        assert "SECRETKEY123" not in str(exc_info.value)
        assert "Y123" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        rpc = MockRpc(httpx.Response(200, text="<html>"))

        with pytest.raises(RpcResponseError, match="not valid JSON"):
            await rpc.client().get_health()

    @pytest.mark.asyncio
    async def test_malformed_result(self):
        rpc = MockRpc(_ok({"events": []}))

        with pytest.raises(RpcResponseError, match="Malformed getEvents"):
            await rpc.client().get_events(start_ledger=1)

    @pytest.mark.asyncio
    async def test_missing_result(self):
        rpc = MockRpc(httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}))

        with pytest.raises(RpcResponseError, match="neither result nor error"):
            await rpc.client().get_health()


class TestRpcClientSetup:
    """Construction details."""

    @pytest.mark.fast
    def test_rate_limiter_from_config(self):
        client = RpcClient(ClientConfig(base_url=URL, rate_limit_per_min=120, burst_size=5))

        assert isinstance(client.rate_limiter, RateLimiter)
        assert client.rate_limiter.get_capacity() == 5
        assert client.rate_limiter.get_refill_rate() == 2.0

    @pytest.mark.fast
    def test_no_rate_limiter_by_default(self):
        assert RpcClient.from_url(URL).rate_limiter is None

    @pytest.mark.asyncio
    async def test_injected_http_client_left_open(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(MockRpc(_ok({}))))
        client = RpcClient(ClientConfig(base_url=URL), http_client=http)

        await client.aclose()

        assert not http.is_closed
        await http.aclose()

    @pytest.mark.asyncio
    async def test_bearer_token_header(self):
        seen = {}

        def handler(request):
            seen["authorization"] = request.headers.get("Authorization")
            return _ok({"status": "healthy"})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = RpcClient(ClientConfig(base_url=URL, api_key="tok-123"), http_client=http)

        await client.get_health()

        assert seen["authorization"] == "Bearer tok-123"
