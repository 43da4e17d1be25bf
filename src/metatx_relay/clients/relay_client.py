"""
Relay Submission Client

``RelayClient`` extends ``httpx.AsyncClient`` with the relayer's API:
``submit`` posts a signed ``ForwardRequest`` to ``/relay`` and returns the
transaction hash plus receipt; ``get_nonce`` and ``health`` wrap the two read
endpoints.

Integers are serialized as decimal strings and byte strings as 0x-hex.
Non-success answers raise ``RelayRejectedError`` carrying the relayer's
diagnostic body; transport failures raise ``NetworkError``.  The client
never retries.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

import httpx
from pydantic import ValidationError as SchemaValidationError

from ..engine.exceptions import NetworkError, RelayRejectedError, SigningError
from ..schemas.https import (
    HealthResponse,
    NonceResponse,
    RelayRequestBody,
    RelaySuccessResponse,
    SerializedForwardRequest,
)
from ..schemas.receipts import ReceiptSummary
from ..schemas.requests import ForwardRequest

logger = logging.getLogger(__name__)

DEFAULT_RELAYER_URL = "http://localhost:3001"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class RelaySubmission:
    """Outcome of a successful relay: transaction hash and its receipt."""
    hash: str
    receipt: ReceiptSummary


class RelayClient(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient speaking the relayer API.

    Fully compatible with httpx.AsyncClient - supports all methods, properties,
    and can be used as an async context manager.

    Usage:
        ```python
        async with RelayClient("http://localhost:3001") as client:
            submission = await client.submit(signed_request)
            print(submission.hash, submission.receipt.block_number)
        ```
    """

    def __init__(self, relayer_url: str = DEFAULT_RELAYER_URL, **kwargs):
        """
        Args:
            relayer_url: Base URL of the relayer service
            **kwargs: All standard httpx.AsyncClient arguments (timeout, transport, etc.)
        """
        kwargs.setdefault("timeout", DEFAULT_TIMEOUT)
        super().__init__(base_url=relayer_url.rstrip("/"), **kwargs)

    async def submit(self, request: ForwardRequest) -> RelaySubmission:
        """
        Submit a signed request for execution.

        Raises:
            SigningError: If ``request`` carries no signature.
            RelayRejectedError: Non-success HTTP status from the relayer.
            NetworkError: Transport failure or malformed success body.
        """
        if not request.is_signed:
            raise SigningError("Cannot submit an unsigned ForwardRequest")

        body = RelayRequestBody(request=SerializedForwardRequest.from_forward_request(request))
        response = await self._call("POST", "/relay", json={"request": body.request.to_wire()})
        payload = self._decode(response)

        try:
            success = RelaySuccessResponse.model_validate(payload)
            receipt = ReceiptSummary.from_json_safe(success.receipt)
        except SchemaValidationError as e:
            raise NetworkError(f"Malformed relay response: {e}") from e

        logger.info("Relayed %s -> %s: %s", request.sender, request.to, success.hash)
        return RelaySubmission(hash=success.hash, receipt=receipt)

    async def get_nonce(self, address: str) -> int:
        """
        Fresh forwarder nonce of ``address`` as reported by the relayer.

        Raises:
            RelayRejectedError: Non-success HTTP status.
            NetworkError: Transport failure or malformed body.
        """
        response = await self._call("GET", f"/nonce/{address}")
        payload = self._decode(response)
        try:
            return int(NonceResponse.model_validate(payload).nonce)
        except (SchemaValidationError, ValueError) as e:
            raise NetworkError(f"Malformed nonce response: {payload!r}") from e

    async def health(self) -> HealthResponse:
        response = await self._call("GET", "/health")
        payload = self._decode(response)
        try:
            return HealthResponse.model_validate(payload)
        except SchemaValidationError as e:
            raise NetworkError(f"Malformed health response: {e}") from e

    # =========================================================================
    # Utility Methods
    # =========================================================================

    async def _call(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"Relayer request {method} {path} failed: {e}") from e

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        """Return the JSON body of a 2xx response or raise ``RelayRejectedError``."""
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {"message": str(payload)}

        if not response.is_success:
            logger.warning("Relayer answered %d: %s", response.status_code, payload.get("message"))
            raise RelayRejectedError(response.status_code, payload)
        return payload
