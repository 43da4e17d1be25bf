"""
RelayClient tests.

Round trips run against a RelayerServer mounted in-process through
``httpx.ASGITransport``; error bodies and transport failures use
``httpx.MockTransport``.
"""

import json

import httpx
import pytest

from metatx_relay.clients.nonces import HttpNonceOracle
from metatx_relay.clients.relay_client import RelayClient
from metatx_relay.engine.exceptions import NetworkError, RelayRejectedError, SigningError

from relay_mocks import (
    MOCK_CHAIN_ID,
    MOCK_DEADLINE_PAST,
    MOCK_FORWARDER_ADDRESS,
    MOCK_RELAYER_ADDRESS,
    MOCK_USER_ADDRESS,
    create_request,
    create_signed_request,
)


def asgi_client(app) -> RelayClient:
    return RelayClient("http://relayer.test", transport=httpx.ASGITransport(app=app))


def mock_client(handler) -> RelayClient:
    return RelayClient("http://relayer.test", transport=httpx.MockTransport(handler))


class TestAgainstRelayer:

    @pytest.mark.asyncio
    async def test_health(self, app):
        async with asgi_client(app) as client:
            health = await client.health()

        assert health.status == "ok"
        assert health.relayer_address == MOCK_RELAYER_ADDRESS
        assert health.forwarder_address == MOCK_FORWARDER_ADDRESS
        assert health.chain_id == MOCK_CHAIN_ID

    @pytest.mark.asyncio
    async def test_submit_and_nonce(self, app, chain):
        async with asgi_client(app) as client:
            assert await client.get_nonce(MOCK_USER_ADDRESS) == 0

            submission = await client.submit(create_signed_request())

            assert submission.hash == chain.sent[0]
            assert submission.receipt.tx_hash == submission.hash
            assert submission.receipt.is_success()
            assert await client.get_nonce(MOCK_USER_ADDRESS) == 1

    @pytest.mark.asyncio
    async def test_rejection_carries_relayer_body(self, app, chain):
        async with asgi_client(app) as client:
            with pytest.raises(RelayRejectedError) as exc_info:
                await client.submit(create_signed_request(deadline=MOCK_DEADLINE_PAST))

        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "ExpiredRequestError"
        assert chain.sent == []

    @pytest.mark.asyncio
    async def test_replay_surfaces_forwarder_error(self, app):
        request = create_signed_request()
        async with asgi_client(app) as client:
            await client.submit(request)
            with pytest.raises(RelayRejectedError) as exc_info:
                await client.submit(request)

        assert exc_info.value.status_code == 500
        assert exc_info.value.specific_error == "ERC2771ForwarderInvalidSigner"
        assert exc_info.value.possible_causes

    @pytest.mark.asyncio
    async def test_unsigned_request_is_not_sent(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        async with mock_client(handler) as client:
            with pytest.raises(SigningError):
                await client.submit(create_request())
        assert calls == []

    @pytest.mark.asyncio
    async def test_http_nonce_oracle(self, app, chain):
        chain.nonces[MOCK_USER_ADDRESS] = 9
        async with asgi_client(app) as client:
            assert await HttpNonceOracle(client).fetch_nonce(MOCK_USER_ADDRESS) == 9


class TestWireFormat:

    @pytest.mark.asyncio
    async def test_integers_are_decimal_strings(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(500, json={"error": "NetworkError", "message": "stop"})

        signed = create_signed_request(value=2**70, nonce=3)
        async with mock_client(handler) as client:
            with pytest.raises(RelayRejectedError):
                await client.submit(signed)

        wire = bodies[0]["request"]
        assert wire["from"] == signed.sender
        assert wire["value"] == str(2**70)
        assert wire["gas"] == "1000000"
        assert wire["nonce"] == "3"
        assert wire["data"].startswith("0x")
        assert len(wire["signature"]) == 2 + 130


class TestFailures:

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        async with mock_client(lambda request: httpx.Response(502, text="Bad Gateway")) as client:
            with pytest.raises(RelayRejectedError) as exc_info:
                await client.submit(create_signed_request())

        assert exc_info.value.status_code == 502
        assert exc_info.value.payload == {}

    @pytest.mark.asyncio
    async def test_malformed_success_body(self):
        async with mock_client(lambda request: httpx.Response(200, json={"success": True})) as client:
            with pytest.raises(NetworkError, match="Malformed relay response"):
                await client.submit(create_signed_request())

    @pytest.mark.asyncio
    async def test_malformed_nonce(self):
        async with mock_client(lambda request: httpx.Response(200, json={"nonce": "abc"})) as client:
            with pytest.raises(NetworkError, match="Malformed nonce response"):
                await client.get_nonce(MOCK_USER_ADDRESS)

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(NetworkError, match="connection refused"):
                await client.health()

    @pytest.mark.asyncio
    async def test_nonce_oracle_maps_rejection_to_network_error(self):
        body = {"error": "ValidationError", "message": "Invalid address: 0x1"}
        async with mock_client(lambda request: httpx.Response(400, json=body)) as client:
            with pytest.raises(NetworkError, match="HTTP 400"):
                await HttpNonceOracle(client).fetch_nonce("0x1")
