"""
Typed-Data Signer

Produces a signed ``ForwardRequest`` for a sender:

1. fetch the forwarder nonce N1
2. ``deadline = now + window``
3. build the EIP-712 message and hand it to the signing agent
   (suspends until the user decides; unbounded)
4. fetch the nonce again, N2
5. N2 != N1 means another request from the same sender executed while the
   user was signing; the fresh signature is bound to a consumed nonce and is
   discarded
6. otherwise return the request with its signature

``MetaTransactionSigner.attempt`` returns the outcome as a value
(``Signed``, ``NonceRace`` or ``UserRejected``); ``sign`` unwraps it and
raises ``NonceRaceError`` / ``SigningRejectedError`` instead.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Union

from eth_account import Account
from eth_utils import to_checksum_address, to_hex
from pydantic import ValidationError as SchemaValidationError

from ..engine.exceptions import NonceRaceError, SigningError, SigningRejectedError
from ..evm.signatures import build_forward_request_typed_data
from ..evm.standards import EIP712Domain
from ..schemas.bases import normalize_hex_bytes
from ..schemas.https import summarize_validation_error
from ..schemas.requests import MAX_UINT48, ForwardRequest
from .nonces import NonceOracle

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_WINDOW = 3600

SIGNATURE_LENGTH = 65


# ---------------------------------------------------------------------------
# Signing agents
# ---------------------------------------------------------------------------

class TypedDataSigningAgent(ABC):
    """
    Holder of a user's key that can sign EIP-712 typed data.

    Implementations raise ``SigningRejectedError`` when the user declines.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Checksum address the agent signs for."""

    @abstractmethod
    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        """Sign a ``{types, primaryType, domain, message}`` payload; return 0x-hex."""


class LocalAccountAgent(TypedDataSigningAgent):
    """Signs in-process with an ``eth_account`` local account."""

    def __init__(self, private_key: str) -> None:
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        signed = self._account.sign_typed_data(full_message=typed_data)
        return to_hex(signed.signature)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Signed:
    """The request carries a signature valid for the nonce it was built with."""
    request: ForwardRequest

    @property
    def signature(self) -> str:
        return to_hex(self.request.signature)

    def __iter__(self) -> Iterator[Any]:
        yield self.request
        yield self.signature


@dataclass(frozen=True)
class NonceRace:
    """The nonce moved while the user was signing."""
    sender: str
    expected_nonce: int
    current_nonce: int

    def to_error(self) -> NonceRaceError:
        return NonceRaceError(self.sender, self.expected_nonce, self.current_nonce)


@dataclass(frozen=True)
class UserRejected:
    """The user declined the signature request."""
    reason: str = "User rejected the signature request"


SigningOutcome = Union[Signed, NonceRace, UserRejected]


# ---------------------------------------------------------------------------
# Signer
# ---------------------------------------------------------------------------

class MetaTransactionSigner:
    """
    Builds and signs ForwardRequests for the agent's address.

    Args:
        agent: Signing agent holding the user's key.
        nonce_oracle: Source of fresh forwarder nonces.
        domain: EIP-712 domain of the forwarder.
        deadline_window: Seconds a signed request stays valid.
        clock: Source of the current UNIX time.
    """

    def __init__(
        self,
        agent: TypedDataSigningAgent,
        nonce_oracle: NonceOracle,
        domain: EIP712Domain,
        deadline_window: int = DEFAULT_DEADLINE_WINDOW,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.agent = agent
        self.nonce_oracle = nonce_oracle
        self.domain = domain
        self.deadline_window = deadline_window
        self.clock = clock

    async def attempt(
        self,
        sender: str,
        to: str,
        value: int,
        gas: int,
        data: Union[bytes, str],
    ) -> SigningOutcome:
        """
        Run the sign flow once and report how it ended.

        Raises:
            SigningError: Sender is not the agent's address, the deadline is
                not in the future, a field is invalid, or the agent returned a
                malformed signature.
            NetworkError: A nonce read failed.
        """
        if to_checksum_address(sender) != to_checksum_address(self.agent.address):
            raise SigningError(f"Signing agent holds {self.agent.address}, cannot sign for {sender}")

        nonce_before = await self.nonce_oracle.fetch_nonce(sender)

        now = int(self.clock())
        deadline = now + self.deadline_window
        if deadline <= now or deadline > MAX_UINT48:
            raise SigningError(f"Deadline {deadline} is not a future uint48 timestamp")

        try:
            request = ForwardRequest(
                sender=sender,
                to=to,
                value=value,
                gas=gas,
                nonce=nonce_before,
                deadline=deadline,
                data=data,
            )
        except SchemaValidationError as e:
            raise SigningError(f"Invalid request fields: {summarize_validation_error(e)}") from e

        typed_data = build_forward_request_typed_data(request, self.domain).to_dict()
        try:
            signature = await self.agent.sign_typed_data(typed_data)
        except SigningRejectedError as e:
            logger.info("Signature request for %s rejected: %s", sender, e.message)
            return UserRejected(reason=e.message)

        nonce_after = await self.nonce_oracle.fetch_nonce(sender)
        if nonce_after != nonce_before:
            logger.warning("Nonce for %s moved from %d to %d during signing", sender, nonce_before, nonce_after)
            return NonceRace(sender=request.sender, expected_nonce=nonce_before, current_nonce=nonce_after)

        try:
            signature_bytes = normalize_hex_bytes(signature)
        except ValueError as e:
            raise SigningError(f"Signing agent returned a malformed signature: {e}") from e
        if len(signature_bytes) != SIGNATURE_LENGTH:
            raise SigningError(f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(signature_bytes)}")

        return Signed(request=request.with_signature(signature_bytes))

    async def sign(
        self,
        sender: str,
        to: str,
        value: int,
        gas: int,
        data: Union[bytes, str],
    ) -> Signed:
        """
        Run the sign flow and return the signed request.

        Raises:
            NonceRaceError: The nonce changed while signing; restart the flow.
            SigningRejectedError: The user declined.
            SigningError: See :meth:`attempt`.
            NetworkError: A nonce read failed.
        """
        outcome = await self.attempt(sender, to, value, gas, data)
        if isinstance(outcome, NonceRace):
            raise outcome.to_error()
        if isinstance(outcome, UserRejected):
            raise SigningRejectedError(outcome.reason)
        return outcome
