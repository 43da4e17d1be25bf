"""
Meta-Transaction Relayer Server - Event-driven FastAPI wrapper.

Exposes ``GET /health``, ``GET /nonce/{address}`` and ``POST /relay`` on top
of a ``ForwarderGateway``.  ``POST /relay`` runs the relay event chain and
maps its terminal event to an HTTP response; every failure is answered with
a structured ``RelayErrorResponse`` body.
"""

import logging
import time
from contextlib import aclosing
from typing import Any, Callable, Optional

from eth_utils import is_address
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaValidationError

from ..engine.events import (
    EventBus,
    RelayDependencies,
    RelayRequestedEvent,
    RelayRejectedEvent,
    RelayExecutedEvent,
    RelayFailedEvent,
)
from ..engine.exceptions import MetaTransactionError, NetworkError, ValidationError
from ..engine.executors import EventChain
from ..engine.locks import SenderLocks
from ..evm.forwarder import ForwarderGateway
from ..schemas.https import (
    HealthResponse,
    NonceResponse,
    RelayErrorResponse,
    RelayRequestBody,
    RelaySuccessResponse,
    summarize_validation_error,
)
from .config import RelayerConfig
from .flows import setup_event_bus

logger = logging.getLogger(__name__)


def error_response(error: MetaTransactionError) -> JSONResponse:
    """Render a project exception as a JSON error response with its HTTP status."""
    body = RelayErrorResponse.model_validate(error.to_payload())
    return JSONResponse(
        status_code=error.status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


class RelayerServer(FastAPI):
    """FastAPI server relaying EIP-2771 meta-transactions."""

    def __init__(
        self,
        config: RelayerConfig,
        gateway: Optional[ForwarderGateway] = None,
        clock: Callable[[], float] = time.time,
        **fastapi_kwargs
    ):
        """Initialize the relayer server.

        Args:
            config: Immutable relayer configuration
            gateway: Forwarder gateway (default: built from ``config``)
            clock: Source of the current UNIX time for expiry checks
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        self.config = config
        self.gateway = gateway or ForwarderGateway.from_rpc(
            config.rpc_url,
            config.relayer_private_key.get_secret_value(),
            config.forwarder_address,
            request_timeout=config.rpc_timeout,
            receipt_timeout=config.receipt_timeout,
        )
        self.depends = RelayDependencies(
            gateway=self.gateway,
            sender_locks=SenderLocks(enabled=config.serialize_per_sender),
            clock=clock,
        )
        self.event_bus: EventBus = setup_event_bus()

        fastapi_kwargs.setdefault("title", "Meta-Transaction Relayer")
        super().__init__(**fastapi_kwargs)

        self.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.cors_origins),
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
        )

        self._setup_health_endpoint()
        self._setup_nonce_endpoint()
        self._setup_relay_endpoint()

    def add_hook(self, event_class: type, hook: Callable) -> None:
        """Register event hook for side effects.

        Example:
            ```python
            async def notify(event, deps):
                await metrics.increment("relay.executed")

            app.add_hook(RelayExecutedEvent, notify)
            ```
        """
        self.event_bus.hook(event_class, hook)

    def hook(self, event_class: type) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @app.hook(RelayFailedEvent)
            async def on_failure(event, deps):
                await alert(event.error)
        """
        def decorator(hook_func: Callable) -> Callable:
            self.event_bus.hook(event_class, hook_func)
            return hook_func
        return decorator

    async def relay(self, payload: Any) -> JSONResponse:
        """Run the relay chain for a decoded ``POST /relay`` body."""
        try:
            body = RelayRequestBody.model_validate(payload)
        except SchemaValidationError as e:
            return error_response(ValidationError(f"Invalid relay request: {summarize_validation_error(e)}"))

        event_chain = EventChain(self.event_bus, self.depends)
        try:
            async with aclosing(event_chain.execute(RelayRequestedEvent(request=body.request))) as events:
                async for event in events:
                    if isinstance(event, (RelayRejectedEvent, RelayFailedEvent)):
                        return error_response(event.error)
                    if isinstance(event, RelayExecutedEvent):
                        response = RelaySuccessResponse(
                            hash=event.receipt.tx_hash,
                            receipt=event.receipt.to_json_safe(),
                        )
                        return JSONResponse(status_code=200, content=response.model_dump(mode="json"))
        except Exception as e:
            logger.exception("Relay pipeline crashed")
            return error_response(MetaTransactionError(f"Relay failed: {e}"))

        return error_response(MetaTransactionError("Relay pipeline produced no result"))

    def _setup_health_endpoint(self, path: str = "/health") -> None:
        @self.get(path)
        async def health():
            """Liveness probe echoing the relayer's configuration."""
            response = HealthResponse(
                relayer_address=self.gateway.relayer_address,
                forwarder_address=self.gateway.forwarder_address,
                social_core_address=self.config.social_core_address,
                chain_id=self.config.chain_id,
            )
            return JSONResponse(status_code=200, content=response.model_dump(by_alias=True))

    def _setup_nonce_endpoint(self, path: str = "/nonce/{address}") -> None:
        @self.get(path)
        async def nonce(address: str):
            """Fresh forwarder nonce of ``address``; never cached."""
            if not is_address(address):
                return error_response(ValidationError(f"Invalid address: {address}"))
            try:
                value = await self.gateway.get_nonce(address)
            except NetworkError as e:
                return error_response(e)
            return JSONResponse(status_code=200, content=NonceResponse(nonce=str(value)).model_dump())

    def _setup_relay_endpoint(self, path: str = "/relay") -> None:
        @self.post(path)
        async def relay(request: Request):
            """Relay a signed ForwardRequest through the forwarder."""
            try:
                payload = await request.json()
            except ValueError:
                return error_response(ValidationError("Request body is not valid JSON"))
            return await self.relay(payload)


def create_app(
    config: Optional[RelayerConfig] = None,
    gateway: Optional[ForwarderGateway] = None,
    **kwargs: Any,
) -> RelayerServer:
    """Build a ``RelayerServer``, loading the configuration from the environment when not given."""
    return RelayerServer(config or RelayerConfig.from_env(), gateway=gateway, **kwargs)


