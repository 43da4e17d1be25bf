from dataclasses import dataclass, field
from typing import Any, Dict, List

from eth_utils import to_checksum_address

#: EIP-712 domain of the deployed ``SocialForwarder``.
DEFAULT_DOMAIN_NAME: str = "SocialForwarder"
DEFAULT_DOMAIN_VERSION: str = "1"

#: Somnia testnet, where the forwarder and SocialCore are deployed.
SOMNIA_TESTNET_CHAIN_ID: int = 50312


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass(frozen=True)
class EIP712Domain:
    """
    EIP-712 domain separator.
    Binds a signature to one forwarder contract on one chain.
    """
    name: str
    version: str
    chainId: int
    verifyingContract: str

    @classmethod
    def for_forwarder(
        cls,
        forwarder_address: str,
        chain_id: int = SOMNIA_TESTNET_CHAIN_ID,
        name: str = DEFAULT_DOMAIN_NAME,
        version: str = DEFAULT_DOMAIN_VERSION,
    ) -> "EIP712Domain":
        return cls(
            name=name,
            version=version,
            chainId=chain_id,
            verifyingContract=to_checksum_address(forwarder_address),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


# -----------------------------
# EIP-2771: ForwardRequest
# -----------------------------

@dataclass
class ForwardRequestMessage:
    """
    Message payload of the forwarder's ``ForwardRequest`` typed struct.

    The struct field ``from`` is a Python keyword; this class uses
    ``sender`` and maps it back to ``from`` in ``to_dict()``. The signature
    is not part of the message.

    Attributes:
        sender: Signer address (maps to ``from``).
        to: Target contract.
        value: Native value in wei (uint256).
        gas: Gas limit for the inner call (uint256).
        nonce: Forwarder nonce of ``sender`` (uint256).
        deadline: Expiry timestamp (uint48).
        data: ABI-encoded call data (bytes).
    """
    sender: str
    to: str
    value: int
    gas: int
    nonce: int
    deadline: int
    data: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.to,
            "value": self.value,
            "gas": self.gas,
            "nonce": self.nonce,
            "deadline": self.deadline,
            "data": self.data,
        }


@dataclass
class ForwardRequestTypedData:
    """
    Container for ForwardRequest typed data usable with EIP-712 signing routines.

    ``to_dict()`` produces the ``{types, primaryType, domain, message}``
    layout accepted by ``eth_account`` and ``eth_signTypedData_v4``.
    """
    domain: EIP712Domain
    message: ForwardRequestMessage

    primary_type: str = "ForwardRequest"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "ForwardRequest": [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "gas", "type": "uint256"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint48"},
                {"name": "data", "type": "bytes"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }
