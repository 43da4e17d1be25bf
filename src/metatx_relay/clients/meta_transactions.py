"""
Meta-transaction client facade.

``MetaTransactionClient.send`` runs the whole gasless write path:
encode the call, sign a ForwardRequest for it, submit it to the relayer.
``SocialActions`` binds the social application's entry points
(``SocialCore`` and ``PostNFT``) on top of it.

Nothing here retries: a ``NonceRaceError`` or ``RelayRejectedError`` is
returned to the caller, who decides whether to run the flow again.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..evm.abis import get_post_nft_abi, get_social_core_abi
from ..evm.encoding import encode_function_call
from ..evm.standards import EIP712Domain, SOMNIA_TESTNET_CHAIN_ID
from .nonces import HttpNonceOracle, NonceOracle
from .relay_client import DEFAULT_RELAYER_URL, RelayClient, RelaySubmission
from .signer import LocalAccountAgent, MetaTransactionSigner

logger = logging.getLogger(__name__)

DEFAULT_GAS = 1_000_000

#: Gas limit the social front end attaches to every write.
SOCIAL_ACTION_GAS = 3_000_000


class MetaTransactionClient:
    """
    Encode -> sign -> submit.

    Usage:
        ```python
        async with MetaTransactionClient.from_private_key(key, forwarder_address) as client:
            submission = await client.send(social_core, get_social_core_abi(), "createProfile", ["alice"])
        ```
    """

    def __init__(self, signer: MetaTransactionSigner, relay_client: RelayClient) -> None:
        self.signer = signer
        self.relay_client = relay_client

    @classmethod
    def from_private_key(
        cls,
        private_key: str,
        forwarder_address: str,
        relayer_url: str = DEFAULT_RELAYER_URL,
        chain_id: int = SOMNIA_TESTNET_CHAIN_ID,
        nonce_oracle: Optional[NonceOracle] = None,
        **client_kwargs: Any,
    ) -> "MetaTransactionClient":
        """
        Client signing with a local key and reading nonces from the relayer.

        Args:
            private_key: User's key (signs typed data only; never pays gas).
            forwarder_address: Forwarder the signatures are bound to.
            relayer_url: Base URL of the relayer.
            chain_id: Chain of the forwarder.
            nonce_oracle: Overrides the default relayer-backed oracle.
            **client_kwargs: Passed to ``RelayClient`` (timeout, transport, ...).
        """
        relay_client = RelayClient(relayer_url, **client_kwargs)
        signer = MetaTransactionSigner(
            agent=LocalAccountAgent(private_key),
            nonce_oracle=nonce_oracle or HttpNonceOracle(relay_client),
            domain=EIP712Domain.for_forwarder(forwarder_address, chain_id=chain_id),
        )
        return cls(signer, relay_client)

    @property
    def address(self) -> str:
        return self.signer.agent.address

    async def send(
        self,
        target: str,
        abi: Sequence[Dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
        value: int = 0,
        gas: int = DEFAULT_GAS,
    ) -> RelaySubmission:
        """
        Execute ``target.function_name(*args)`` gaslessly.

        Raises:
            EncodingError: ``args`` do not match the ABI.
            NonceRaceError: Nonce moved during signing.
            SigningRejectedError: User declined.
            RelayRejectedError: Relayer refused or execution reverted.
            NetworkError: Nonce read or relay transport failed.
        """
        data = encode_function_call(abi, function_name, args)
        signed = await self.signer.sign(self.address, target, value, gas, data)
        logger.debug("Signed %s on %s with nonce %d", function_name, target, signed.request.nonce)
        return await self.relay_client.submit(signed.request)

    async def aclose(self) -> None:
        await self.relay_client.aclose()

    async def __aenter__(self) -> "MetaTransactionClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class SocialActions:
    """
    Gasless writes of the social application.

    Args:
        client: Meta-transaction client of the acting user.
        social_core_address: ``SocialCore`` deployment.
        post_nft_address: ``PostNFT`` deployment; NFT actions need it.
        gas: Gas limit attached to each request.
    """

    def __init__(
        self,
        client: MetaTransactionClient,
        social_core_address: str,
        post_nft_address: Optional[str] = None,
        gas: int = SOCIAL_ACTION_GAS,
    ) -> None:
        self.client = client
        self.social_core_address = social_core_address
        self.post_nft_address = post_nft_address
        self.gas = gas
        self._social_core_abi: List[Dict[str, Any]] = get_social_core_abi()
        self._post_nft_abi: List[Dict[str, Any]] = get_post_nft_abi()

    async def _core(self, function_name: str, *args: Any) -> RelaySubmission:
        return await self.client.send(self.social_core_address, self._social_core_abi, function_name, args, gas=self.gas)

    async def _nft(self, function_name: str, *args: Any, value: int = 0) -> RelaySubmission:
        if not self.post_nft_address:
            raise ValueError("post_nft_address is required for NFT actions")
        return await self.client.send(
            self.post_nft_address, self._post_nft_abi, function_name, args, value=value, gas=self.gas
        )

    async def create_profile(self, username: str) -> RelaySubmission:
        return await self._core("createProfile", username)

    async def create_post(self, content: str) -> RelaySubmission:
        return await self._core("createPost", content)

    async def toggle_like(self, post_id: int) -> RelaySubmission:
        return await self._core("toggleLike", post_id)

    async def create_comment(self, post_id: int, content: str) -> RelaySubmission:
        return await self._core("createComment", post_id, content)

    async def create_post_nft(self, post_id: int, list_for_sale: bool = False) -> RelaySubmission:
        return await self._nft("createPostNFT", post_id, list_for_sale)

    async def list_nft(self, token_id: int) -> RelaySubmission:
        return await self._nft("listNFT", token_id)

    async def delist_nft(self, token_id: int) -> RelaySubmission:
        return await self._nft("delistNFT", token_id)

    async def buy_nft(self, token_id: int, price: int) -> RelaySubmission:
        """Buy a listed NFT; ``price`` (wei) is forwarded from the relayer balance."""
        return await self._nft("buyNFT", token_id, value=price)
