"""
ForwardRequest Schema

The unit of authorization for a meta-transaction: the signer (``from``),
the target contract (``to``), the native value and gas forwarded with the
inner call, the forwarder nonce, the deadline and the ABI-encoded call
data, plus the EIP-712 signature over all of it.

The model is frozen: a signed request is never mutated. Attaching a
signature produces a new instance via :meth:`ForwardRequest.with_signature`.
"""

from typing import Any, Dict, Optional, Tuple

from pydantic import ConfigDict, Field, field_serializer, field_validator

from .bases import CanonicalModel, bytes_to_hex, normalize_address, normalize_hex_bytes

#: Upper bound of the forwarder's ``uint48`` deadline field.
MAX_UINT48: int = 2**48 - 1

#: Upper bound of ``uint256`` fields.
MAX_UINT256: int = 2**256 - 1


class ForwardRequest(CanonicalModel):
    """
    EIP-2771 forward request as verified by OpenZeppelin's ``ERC2771Forwarder``.

    Attributes:
        sender: Address of the signer (serialized as ``from``).
        to: Target contract receiving the forwarded call.
        value: Native currency (wei) forwarded with the call.
        gas: Gas limit the relayer must supply to the inner call.
        nonce: Forwarder nonce of ``sender`` at signing time.
        deadline: UNIX timestamp after which the request cannot execute.
        data: ABI-encoded call (selector + arguments) for ``to``.
        signature: 65-byte ``r || s || v`` signature; None until signed.

    Example::

        request = ForwardRequest(
            sender="0xAAA...1", to="0xBBB...2", value=0, gas=3_000_000,
            nonce=0, deadline=1_900_000_000, data=b"...",
        )
        signed = request.with_signature("0x...")
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    sender: str = Field(..., alias="from", description="Signer address")
    to: str = Field(..., description="Target contract address")
    value: int = Field(0, ge=0, le=MAX_UINT256, description="Native value in wei")
    gas: int = Field(..., ge=0, le=MAX_UINT256, description="Gas limit for the inner call")
    nonce: int = Field(..., ge=0, le=MAX_UINT256, description="Forwarder nonce for sender")
    deadline: int = Field(..., ge=0, le=MAX_UINT48, description="Expiry UNIX timestamp (uint48)")
    data: bytes = Field(..., description="ABI-encoded call data")
    signature: Optional[bytes] = Field(None, description="EIP-712 signature (r || s || v)")

    @field_validator("sender", "to", mode="before")
    @classmethod
    def _checksum(cls, value: Any) -> str:
        return normalize_address(value)

    @field_validator("data", mode="before")
    @classmethod
    def _data_bytes(cls, value: Any) -> bytes:
        return normalize_hex_bytes(value)

    @field_validator("signature", mode="before")
    @classmethod
    def _signature_bytes(cls, value: Any) -> Optional[bytes]:
        if value is None:
            return None
        return normalize_hex_bytes(value)

    @field_serializer("data", "signature")
    def _hex(self, value: Optional[bytes]) -> Optional[str]:
        return None if value is None else bytes_to_hex(value)

    @property
    def is_signed(self) -> bool:
        return bool(self.signature)

    def with_signature(self, signature: Any) -> "ForwardRequest":
        """Return a copy of this request carrying ``signature``."""
        return self.model_copy(update={"signature": normalize_hex_bytes(signature)})

    def typed_message(self) -> Dict[str, Any]:
        """EIP-712 message fields (everything except the signature)."""
        return {
            "from": self.sender,
            "to": self.to,
            "value": self.value,
            "gas": self.gas,
            "nonce": self.nonce,
            "deadline": self.deadline,
            "data": self.data,
        }

    def execute_args(self) -> Tuple[str, str, int, int, int, bytes, bytes]:
        """
        Tuple for ``ERC2771Forwarder.execute(ForwardRequestData)``.

        The on-chain struct omits the nonce; the forwarder reads it from its
        own storage when verifying the signature.

        Raises:
            ValueError: If the request has not been signed.
        """
        if not self.signature:
            raise ValueError("ForwardRequest must be signed before execution")
        return (
            self.sender,
            self.to,
            self.value,
            self.gas,
            self.deadline,
            self.data,
            self.signature,
        )
