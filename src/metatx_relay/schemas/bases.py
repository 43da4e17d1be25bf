"""
Base Schema Models for the meta-transaction relay

This module defines the base model every schema inherits from, plus the
shared field normalisers used by request and receipt models.

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON serialization
    - TransactionStatus: Outcome of a mined forwarder transaction

Dependencies:
    - pydantic: For data validation and serialization
    - eth_utils: For address checksumming and hex conversion
"""

import json
from enum import Enum
from typing import Any, Dict, Union

from eth_utils import is_address, is_hex, to_bytes, to_checksum_address, to_hex
from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Keys are sorted and whitespace stripped so the same model always renders
    to the same string; used when logging requests and when comparing wire
    payloads in tests.
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string (sorted keys, no whitespace).

        ``model_dump(mode="json", by_alias=True)`` converts enums, bytes
        serializers and aliases first, so the output matches the wire form.
        """
        data = self.model_dump(mode="json", by_alias=True)
        return json.dumps(data, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


class TransactionStatus(str, Enum):
    """
    Outcome of a mined transaction, mirroring the receipt ``status`` flag.

    Attributes:
        SUCCESS: receipt status 1
        REVERTED: receipt status 0
    """
    SUCCESS = "success"
    REVERTED = "reverted"


def normalize_address(value: Any) -> str:
    """Return the EIP-55 checksum form of ``value`` or raise ``ValueError``."""
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"Invalid EVM address: {value!r}")
    return to_checksum_address(value)


def normalize_hex_bytes(value: Union[str, bytes, bytearray]) -> bytes:
    """Accept 0x-hex strings or raw bytes and return raw bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str) and value.startswith(("0x", "0X")) and is_hex(value):
        return to_bytes(hexstr=value)
    raise ValueError(f"Expected 0x-prefixed hex string, got {value!r}")


def bytes_to_hex(value: Union[bytes, str]) -> str:
    """Render bytes as a 0x-prefixed lowercase hex string."""
    if isinstance(value, str):
        return value
    return to_hex(value)


def as_hex_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert any bytes values of a flat dict to 0x-hex strings."""
    return {key: bytes_to_hex(val) if isinstance(val, (bytes, bytearray)) else val for key, val in data.items()}
