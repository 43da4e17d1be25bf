"""
ForwarderGateway tests against the in-memory forwarder simulation.
"""

import asyncio

import pytest
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from metatx_relay.engine.exceptions import ExecutionRevertedError, NetworkError, ValidationError
from metatx_relay.evm.diagnostics import ForwarderErrorKind

from relay_mocks import (
    EXECUTED_TOPIC,
    MOCK_BLOCK_NUMBER,
    MOCK_FORWARDER_ADDRESS,
    MOCK_GAS_USED,
    MOCK_OTHER_ADDRESS,
    MOCK_OTHER_PRIVATE_KEY,
    MOCK_RELAYER_ADDRESS,
    MOCK_SOCIAL_CORE_ADDRESS,
    MOCK_UNTRUSTED_TARGET,
    MOCK_USER_ADDRESS,
    create_gateway,
    create_request,
    create_signed_request,
)


class TestNonceAndTrust:

    @pytest.mark.asyncio
    async def test_fresh_sender_has_nonce_zero(self, gateway):
        assert await gateway.get_nonce(MOCK_USER_ADDRESS) == 0

    @pytest.mark.asyncio
    async def test_nonce_accepts_lowercase_address(self, chain, gateway):
        chain.nonces[MOCK_USER_ADDRESS] = 4
        assert await gateway.get_nonce(MOCK_USER_ADDRESS.lower()) == 4

    @pytest.mark.asyncio
    async def test_nonce_read_failure(self, chain, gateway):
        chain.nonce_read_error = ConnectionError("rpc down")
        with pytest.raises(NetworkError, match="rpc down"):
            await gateway.get_nonce(MOCK_USER_ADDRESS)

    @pytest.mark.asyncio
    async def test_trusted_target(self, gateway):
        assert await gateway.is_trusted_forwarder(MOCK_SOCIAL_CORE_ADDRESS) is True

    @pytest.mark.asyncio
    async def test_untrusted_target(self, gateway):
        assert await gateway.is_trusted_forwarder(MOCK_UNTRUSTED_TARGET) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ContractLogicError("execution reverted"), BadFunctionCallOutput("empty")])
    async def test_target_without_erc2771_is_untrusted(self, chain, gateway, error):
        chain.trust_error = error
        assert await gateway.is_trusted_forwarder(MOCK_SOCIAL_CORE_ADDRESS) is False

    @pytest.mark.asyncio
    async def test_trust_query_transport_failure(self, chain, gateway):
        chain.trust_error = TimeoutError("read timeout")
        with pytest.raises(NetworkError):
            await gateway.is_trusted_forwarder(MOCK_SOCIAL_CORE_ADDRESS)


class TestExecute:

    @pytest.mark.asyncio
    async def test_successful_execution(self, chain, gateway):
        receipt = await gateway.execute(create_signed_request())

        assert receipt.is_success()
        assert receipt.tx_hash == chain.sent[0]
        assert receipt.block_number == MOCK_BLOCK_NUMBER + 1
        assert receipt.gas_used == MOCK_GAS_USED
        assert receipt.from_address == MOCK_RELAYER_ADDRESS
        assert receipt.to_address == MOCK_FORWARDER_ADDRESS
        assert receipt.logs[0].topics == [EXECUTED_TOPIC]

        sender, target, inner_call = chain.executed[0]
        assert sender == MOCK_USER_ADDRESS
        assert target == MOCK_SOCIAL_CORE_ADDRESS
        assert inner_call.name == "createProfile"
        assert inner_call.args == ("alice",)

    @pytest.mark.asyncio
    async def test_execution_consumes_nonce(self, gateway):
        await gateway.execute(create_signed_request(nonce=0))
        assert await gateway.get_nonce(MOCK_USER_ADDRESS) == 1

    @pytest.mark.asyncio
    async def test_value_is_forwarded(self, chain, gateway):
        receipt = await gateway.execute(create_signed_request(value=10**15))
        assert receipt.is_success()

    @pytest.mark.asyncio
    async def test_unsigned_request(self, chain, gateway):
        with pytest.raises(ValidationError):
            await gateway.execute(create_request())
        assert chain.sent == []

    @pytest.mark.asyncio
    async def test_simulation_revert_sends_nothing(self, chain, gateway):
        with pytest.raises(ExecutionRevertedError) as exc_info:
            await gateway.execute(create_signed_request(nonce=5))

        error = exc_info.value
        assert error.tx_hash is None
        assert error.diagnosis.kind is ForwarderErrorKind.INVALID_SIGNER
        assert "Transaction simulation reverted" in error.message
        assert chain.sent == []
        assert chain.relayer_tx_count == 0

    @pytest.mark.asyncio
    async def test_replayed_request_is_rejected(self, chain, gateway):
        request = create_signed_request()
        await gateway.execute(request)

        with pytest.raises(ExecutionRevertedError) as exc_info:
            await gateway.execute(request)
        assert exc_info.value.to_payload()["specificError"] == "ERC2771ForwarderInvalidSigner"
        assert len(chain.sent) == 1

    @pytest.mark.asyncio
    async def test_untrusted_target_revert(self, chain, gateway):
        with pytest.raises(ExecutionRevertedError) as exc_info:
            await gateway.execute(create_signed_request(to=MOCK_UNTRUSTED_TARGET))
        assert exc_info.value.diagnosis.kind is ForwarderErrorKind.UNTRUSTFUL_TARGET

    @pytest.mark.asyncio
    async def test_mined_revert_carries_hash(self, chain, gateway):
        chain.skip_simulation = True

        with pytest.raises(ExecutionRevertedError) as exc_info:
            await gateway.execute(create_signed_request(nonce=3))

        error = exc_info.value
        assert error.tx_hash == chain.sent[0]
        assert error.diagnosis.kind is ForwarderErrorKind.INVALID_SIGNER
        assert error.to_payload()["hash"] == chain.sent[0]
        assert chain.receipts[chain.sent[0]]["status"] == 0
        assert chain.executed == []

    @pytest.mark.asyncio
    async def test_waits_for_pending_receipt(self, chain, gateway):
        chain.pending_polls = 2
        receipt = await gateway.execute(create_signed_request())

        assert receipt.is_success()
        assert gateway.web3.eth.get_transaction_receipt.await_count == 3

    @pytest.mark.asyncio
    async def test_receipt_timeout(self, chain):
        gateway = create_gateway(chain, receipt_timeout=0)
        chain.pending_polls = 100

        with pytest.raises(NetworkError, match="Timed out"):
            await gateway.execute(create_signed_request())

    @pytest.mark.asyncio
    async def test_broadcast_failure(self, chain, gateway):
        chain.send_error = ConnectionError("connection reset")

        with pytest.raises(NetworkError, match="Failed to broadcast"):
            await gateway.execute(create_signed_request())
        assert chain.executed == []

    @pytest.mark.asyncio
    async def test_concurrent_relays_use_distinct_relayer_nonces(self, chain, gateway):
        receipts = await asyncio.gather(
            gateway.execute(create_signed_request()),
            gateway.execute(create_signed_request(MOCK_OTHER_PRIVATE_KEY)),
        )

        assert all(receipt.is_success() for receipt in receipts)
        assert len({receipt.tx_hash for receipt in receipts}) == 2
        assert chain.relayer_tx_count == 2
        assert {sender for sender, _, _ in chain.executed} == {MOCK_USER_ADDRESS, MOCK_OTHER_ADDRESS}
