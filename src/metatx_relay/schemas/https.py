"""
HTTP Request/Response Schema Models for the relayer API

This module defines the Pydantic models exchanged between the relay client
and the relayer service:

1. ``GET /health``          -> HealthResponse
2. ``GET /nonce/{address}`` -> NonceResponse
3. ``POST /relay``          -> RelayRequestBody in, RelaySuccessResponse or
                               RelayErrorResponse out

Integers travel as decimal strings and byte strings as 0x-hex so every
value survives JSON transports without precision loss.
"""

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as SchemaValidationError, field_validator

from ..engine.exceptions import ValidationError
from .requests import MAX_UINT256, ForwardRequest

_DECIMAL = re.compile(r"^[0-9]+$")
_MAX_DECIMAL_DIGITS = len(str(MAX_UINT256))


# ============================================================================
# POST /relay request
# ============================================================================

class SerializedForwardRequest(BaseModel):
    """Wire form of a signed ForwardRequest.

    Attributes:
        sender: Signer address (``from`` on the wire).
        to: Target contract address.
        value: Native value, decimal string.
        gas: Gas limit, decimal string.
        deadline: Expiry timestamp, decimal string.
        data: ABI-encoded call data, 0x-hex.
        signature: EIP-712 signature, 0x-hex.
        nonce: Optional nonce the client signed with, decimal string. The
            forwarder does not take it; the relayer only logs it.
    """
    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(..., alias="from")
    to: str
    value: str = "0"
    gas: str
    deadline: str
    data: Optional[str] = None
    signature: Optional[str] = None
    nonce: Optional[str] = None

    @field_validator("value", "gas", "deadline", "nonce", mode="before")
    @classmethod
    def _decimal_string(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValueError("boolean is not a valid integer")
        if isinstance(value, int):
            if not 0 <= value <= MAX_UINT256:
                raise ValueError("integer is outside the uint256 range")
            return str(value)
        if not isinstance(value, str) or not _DECIMAL.match(value.strip()):
            raise ValueError("expected a non-negative decimal string")
        value = value.strip()
        if len(value) > _MAX_DECIMAL_DIGITS:
            raise ValueError(f"decimal string has {len(value)} digits, at most {_MAX_DECIMAL_DIGITS} allowed")
        return value

    @classmethod
    def from_forward_request(cls, request: ForwardRequest) -> "SerializedForwardRequest":
        dumped = request.model_dump(mode="json", by_alias=True)
        return cls(
            sender=dumped["from"],
            to=dumped["to"],
            value=str(request.value),
            gas=str(request.gas),
            deadline=str(request.deadline),
            data=dumped["data"],
            signature=dumped["signature"],
            nonce=str(request.nonce),
        )

    def has_payload(self) -> bool:
        """True when both ``data`` and ``signature`` are present and non-empty."""
        return bool(self.data) and bool(self.signature)

    def to_forward_request(self, nonce: Optional[int] = None) -> ForwardRequest:
        """
        Deserialize decimal strings and hex fields into a ForwardRequest.

        Args:
            nonce: Nonce to bind; defaults to the client-supplied value, or 0
                when absent (the forwarder enforces the real nonce on-chain).

        Raises:
            ValidationError: If a field cannot be converted.
        """
        try:
            if nonce is None:
                nonce = int(self.nonce) if self.nonce is not None else 0
            return ForwardRequest(
                sender=self.sender,
                to=self.to,
                value=int(self.value),
                gas=int(self.gas),
                nonce=nonce,
                deadline=int(self.deadline),
                data=self.data,
                signature=self.signature,
            )
        except SchemaValidationError as e:
            raise ValidationError(f"Invalid request fields: {summarize_validation_error(e)}") from e
        except ValueError as e:
            raise ValidationError(f"Invalid request fields: {e}") from e

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class RelayRequestBody(BaseModel):
    """Body of ``POST /relay``."""
    request: SerializedForwardRequest


# ============================================================================
# Responses
# ============================================================================

class RelaySuccessResponse(BaseModel):
    """Successful relay: transaction hash plus JSON-safe receipt."""
    success: bool = True
    hash: str
    receipt: Dict[str, Any]


class RelayErrorResponse(BaseModel):
    """Structured relayer error body.

    Attributes:
        error: Error code (exception class name, e.g. ``ExpiredRequestError``).
        message: Human-readable message.
        specific_error: Decoded forwarder error name, when recognised.
        explanation: What the decoded error means.
        possible_causes: Likely causes of the decoded error.
        hash: Hash of the reverted transaction, when it was mined.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    error: str
    message: str
    specific_error: Optional[str] = Field(None, alias="specificError")
    explanation: Optional[str] = None
    possible_causes: Optional[List[str]] = Field(None, alias="possibleCauses")
    hash: Optional[str] = None


class NonceResponse(BaseModel):
    """Body of ``GET /nonce/{address}``; nonce as a decimal string."""
    nonce: str


class HealthResponse(BaseModel):
    """Liveness and configuration echo."""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "ok"
    message: str = "Relayer is running"
    relayer_address: str = Field(..., alias="relayerAddress")
    forwarder_address: str = Field(..., alias="forwarderAddress")
    social_core_address: str = Field(..., alias="socialCoreAddress")
    chain_id: int = Field(..., alias="chainId")


def summarize_validation_error(error: SchemaValidationError) -> str:
    """One-line rendering of a pydantic validation error for response bodies."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "; ".join(parts)
