"""
Nonce Oracle Clients

A nonce oracle answers one question: what is the forwarder's current nonce
for an address?  Every call is a fresh round trip; values are never cached,
since a cached nonce is exactly what makes signatures go stale.

Implementations:
    - HttpNonceOracle: asks the relayer (``GET /nonce/{address}``)
    - ChainNonceOracle: reads ``ERC2771Forwarder.nonces(address)`` directly
"""

from abc import ABC, abstractmethod

from eth_utils import to_checksum_address
from web3 import AsyncWeb3

from ..engine.exceptions import NetworkError, RelayRejectedError
from ..evm.abis import get_forwarder_abi
from .relay_client import RelayClient


class NonceOracle(ABC):
    """Source of the forwarder's current nonce for a sender."""

    @abstractmethod
    async def fetch_nonce(self, address: str) -> int:
        """
        Current forwarder nonce of ``address``.

        Raises:
            NetworkError: If the nonce cannot be read.
        """


class HttpNonceOracle(NonceOracle):
    """Reads nonces through the relayer's ``/nonce`` endpoint."""

    def __init__(self, client: RelayClient) -> None:
        self.client = client

    async def fetch_nonce(self, address: str) -> int:
        try:
            return await self.client.get_nonce(address)
        except RelayRejectedError as e:
            raise NetworkError(f"Nonce endpoint answered HTTP {e.status_code}: {e.message}") from e


class ChainNonceOracle(NonceOracle):
    """Reads nonces straight from the forwarder contract."""

    def __init__(self, web3: AsyncWeb3, forwarder_address: str) -> None:
        self.web3 = web3
        self.forwarder_address = to_checksum_address(forwarder_address)
        self.forwarder = web3.eth.contract(address=self.forwarder_address, abi=get_forwarder_abi())

    @classmethod
    def from_rpc(cls, rpc_url: str, forwarder_address: str, request_timeout: float = 30.0) -> "ChainNonceOracle":
        web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": request_timeout}
        ))
        return cls(web3, forwarder_address)

    async def fetch_nonce(self, address: str) -> int:
        try:
            return int(await self.forwarder.functions.nonces(to_checksum_address(address)).call())
        except Exception as e:
            raise NetworkError(f"Failed to read forwarder nonce for {address}: {e}") from e
