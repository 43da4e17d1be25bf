"""
Schema tests: ForwardRequest validation, the POST /relay wire form and
JSON-safe receipts.
"""

import pytest
from pydantic import ValidationError as SchemaValidationError

from metatx_relay.engine.exceptions import ValidationError
from metatx_relay.schemas.bases import TransactionStatus
from metatx_relay.schemas.https import RelayErrorResponse, SerializedForwardRequest
from metatx_relay.schemas.receipts import ReceiptSummary
from metatx_relay.schemas.requests import MAX_UINT48, ForwardRequest

from relay_mocks import (
    EXECUTED_TOPIC,
    MOCK_FORWARDER_ADDRESS,
    MOCK_RELAYER_ADDRESS,
    MOCK_SOCIAL_CORE_ADDRESS,
    MOCK_USER_ADDRESS,
    create_request,
    create_signed_request,
    relay_body,
)


class TestForwardRequest:

    def test_addresses_are_checksummed(self):
        request = create_request(sender=MOCK_USER_ADDRESS.lower(), to=MOCK_SOCIAL_CORE_ADDRESS.lower())
        assert request.sender == MOCK_USER_ADDRESS
        assert request.to == MOCK_SOCIAL_CORE_ADDRESS

    def test_accepts_from_alias(self):
        request = ForwardRequest.model_validate({
            "from": MOCK_USER_ADDRESS,
            "to": MOCK_SOCIAL_CORE_ADDRESS,
            "gas": 1,
            "nonce": 0,
            "deadline": 1,
            "data": "0x",
        })
        assert request.sender == MOCK_USER_ADDRESS
        assert request.data == b""
        assert not request.is_signed

    @pytest.mark.parametrize(
        "field,value",
        [
            ("deadline", MAX_UINT48 + 1),
            ("value", -1),
            ("sender", "0x1234"),
            ("data", "not-hex"),
        ],
    )
    def test_rejects_out_of_range_fields(self, field, value):
        with pytest.raises(SchemaValidationError):
            create_request(**{field: value})

    def test_frozen(self):
        request = create_request()
        with pytest.raises(SchemaValidationError):
            request.nonce = 5

    def test_with_signature_returns_copy(self):
        request = create_request()
        signed = request.with_signature("0x" + "11" * 65)
        assert signed.signature == b"\x11" * 65
        assert request.signature is None

    def test_execute_args_omit_nonce(self):
        signed = create_signed_request(nonce=7)
        args = signed.execute_args()
        assert len(args) == 7
        assert args[:5] == (signed.sender, signed.to, signed.value, signed.gas, signed.deadline)
        assert args[6] == signed.signature

    def test_execute_args_require_signature(self):
        with pytest.raises(ValueError):
            create_request().execute_args()

    def test_canonical_json_uses_wire_names(self):
        text = create_request().to_canonical_json()
        assert '"from":' in text
        assert '"data":"0x' in text


class TestSerializedForwardRequest:

    def test_wire_conversion(self):
        signed = create_signed_request(nonce=4, value=12)
        wire = SerializedForwardRequest.model_validate(relay_body(signed)["request"])

        assert wire.value == "12"
        assert wire.nonce == "4"
        assert wire.has_payload()
        assert wire.to_forward_request().model_dump() == signed.model_dump()

    def test_integers_are_accepted_as_numbers(self):
        body = relay_body(create_signed_request())["request"]
        body["gas"] = 1_000_000
        assert SerializedForwardRequest.model_validate(body).gas == "1000000"

    @pytest.mark.parametrize("bad", ["-1", "1.5", "0x10", True])
    def test_rejects_non_decimal_integers(self, bad):
        body = relay_body(create_signed_request())["request"]
        body["gas"] = bad
        with pytest.raises(SchemaValidationError):
            SerializedForwardRequest.model_validate(body)

    @pytest.mark.parametrize("bad", ["1" * 79, "9" * 5000, 2**256, -1])
    def test_rejects_integers_wider_than_uint256(self, bad):
        body = relay_body(create_signed_request())["request"]
        body["nonce"] = bad
        with pytest.raises(SchemaValidationError, match="nonce"):
            SerializedForwardRequest.model_validate(body)

    def test_unvalidated_oversized_field_becomes_validation_error(self):
        body = relay_body(create_signed_request())["request"]
        wire = SerializedForwardRequest.model_validate(body).model_copy(update={"value": "9" * 5000})
        with pytest.raises(ValidationError, match="Invalid request fields"):
            wire.to_forward_request()

    def test_missing_signature_has_no_payload(self):
        body = relay_body(create_request())["request"]
        assert not SerializedForwardRequest.model_validate(body).has_payload()

    def test_bad_hex_becomes_validation_error(self):
        body = relay_body(create_signed_request())["request"]
        body["signature"] = "zz"
        with pytest.raises(ValidationError, match="signature"):
            SerializedForwardRequest.model_validate(body).to_forward_request()

    def test_explicit_nonce_overrides_wire_value(self):
        wire = SerializedForwardRequest.from_forward_request(create_signed_request(nonce=1))
        assert wire.to_forward_request(nonce=9).nonce == 9

    def test_to_wire_omits_missing_nonce(self):
        wire = SerializedForwardRequest.model_validate(relay_body(create_signed_request(), include_nonce=False)["request"])
        payload = wire.to_wire()
        assert "nonce" not in payload
        assert payload["from"] == MOCK_USER_ADDRESS


class TestReceiptSummary:

    RECEIPT = {
        "transactionHash": b"\xaa" * 32,
        "status": 1,
        "blockNumber": 2**40,
        "gasUsed": 82_000,
        "effectiveGasPrice": 6_000_000_000,
        "from": MOCK_RELAYER_ADDRESS,
        "to": MOCK_FORWARDER_ADDRESS,
        "logs": [{
            "address": MOCK_FORWARDER_ADDRESS,
            "topics": [bytes.fromhex(EXECUTED_TOPIC[2:])],
            "data": b"",
            "logIndex": 0,
            "blockNumber": 2**40,
        }],
    }

    def test_from_web3_receipt(self):
        summary = ReceiptSummary.from_web3_receipt(self.RECEIPT)

        assert summary.tx_hash == "0x" + "aa" * 32
        assert summary.status is TransactionStatus.SUCCESS
        assert summary.is_success()
        assert summary.logs[0].topics == [EXECUTED_TOPIC]
        assert summary.logs[0].data == "0x"

    def test_reverted_status(self):
        summary = ReceiptSummary.from_web3_receipt(dict(self.RECEIPT, status=0))
        assert summary.status is TransactionStatus.REVERTED
        assert not summary.is_success()

    def test_json_safe_integers_are_strings(self):
        payload = ReceiptSummary.from_web3_receipt(self.RECEIPT).to_json_safe()

        assert payload["blockNumber"] == str(2**40)
        assert payload["gasUsed"] == "82000"
        assert payload["cumulativeGasUsed"] is None
        assert payload["logs"][0]["logIndex"] == "0"
        assert payload["transactionHash"] == "0x" + "aa" * 32

    def test_json_safe_parses_back(self):
        summary = ReceiptSummary.from_web3_receipt(self.RECEIPT)
        assert ReceiptSummary.from_json_safe(summary.to_json_safe()).model_dump() == summary.model_dump()


class TestRelayErrorResponse:

    def test_extra_diagnostic_fields_are_kept(self):
        body = RelayErrorResponse.model_validate({
            "error": "ExecutionRevertedError",
            "message": "reverted",
            "specificError": "ERC2771ForwarderInvalidSigner",
            "revertData": "0x1234",
        })
        dumped = body.model_dump(by_alias=True, exclude_none=True)
        assert dumped["specificError"] == "ERC2771ForwarderInvalidSigner"
        assert dumped["revertData"] == "0x1234"
        assert "hash" not in dumped
