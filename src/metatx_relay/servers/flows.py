"""
Built-in event handlers for the relay workflow.

Implements the relay flow: validation -> nonce diagnostic -> forwarder
trust -> expiry -> on-chain execution.  Every check that can fail before
submission runs here so no gas is spent on a request that would be refused.
"""

import logging

from ..engine.events import (
    BaseEvent,
    EventBus,
    RelayDependencies,
    RelayRequestedEvent,
    RelayApprovedEvent,
    RelayRejectedEvent,
    RelayExecutedEvent,
    RelayFailedEvent,
)
from ..engine.exceptions import (
    ExpiredRequestError,
    MetaTransactionError,
    NetworkError,
    UntrustedForwarderError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ==================== Event Handlers ====================

async def handle_relay_requested(
    event: RelayRequestedEvent,
    deps: RelayDependencies
) -> RelayApprovedEvent | RelayRejectedEvent:
    """Validate a relay request and decide whether it may be submitted."""
    wire = event.request
    if wire is None or not wire.has_payload():
        return RelayRejectedEvent(error=ValidationError("Missing request data or signature"))

    try:
        request = wire.to_forward_request()
    except ValidationError as e:
        return RelayRejectedEvent(error=e)

    # Diagnostic only; the forwarder enforces the nonce itself.
    onchain_nonce = None
    try:
        onchain_nonce = await deps.gateway.get_nonce(request.sender)
    except NetworkError as e:
        logger.warning("Could not read forwarder nonce for %s: %s", request.sender, e)
    else:
        if wire.nonce is not None and request.nonce != onchain_nonce:
            logger.warning(
                "Nonce drift for %s: signed with %s, forwarder is at %d",
                request.sender, wire.nonce, onchain_nonce,
            )
        elif wire.nonce is None:
            request = request.model_copy(update={"nonce": onchain_nonce})

    try:
        trusted = await deps.gateway.is_trusted_forwarder(request.to)
    except NetworkError as e:
        return RelayRejectedEvent(error=e)
    if not trusted:
        return RelayRejectedEvent(error=UntrustedForwarderError(request.to, deps.gateway.forwarder_address))

    now = int(deps.clock())
    if request.deadline < now:
        return RelayRejectedEvent(error=ExpiredRequestError(request.deadline, now))

    return RelayApprovedEvent(request=request, onchain_nonce=onchain_nonce)


async def handle_relay_approved(
    event: RelayApprovedEvent,
    deps: RelayDependencies
) -> RelayExecutedEvent | RelayFailedEvent | RelayRejectedEvent:
    """Submit ``execute`` and wait for the receipt."""
    request = event.request
    async with deps.sender_locks.hold(request.sender):
        # The deadline may have passed while queued behind the same sender.
        now = int(deps.clock())
        if request.deadline < now:
            return RelayRejectedEvent(error=ExpiredRequestError(request.deadline, now))
        try:
            receipt = await deps.gateway.execute(request)
        except MetaTransactionError as e:
            return RelayFailedEvent(request=request, error=e)
    return RelayExecutedEvent(request=request, receipt=receipt)


# ==================== Hooks ====================

async def log_relay_event(event: BaseEvent, deps: RelayDependencies) -> None:
    if isinstance(event, RelayRequestedEvent):
        logger.info("Relay request received: %r", event)
    elif isinstance(event, RelayApprovedEvent):
        logger.info("Relay approved: %r", event)
    elif isinstance(event, RelayRejectedEvent):
        logger.warning("Relay rejected (%d): %s", event.status_code, event.error.message)
    elif isinstance(event, RelayExecutedEvent):
        logger.info("Relay executed: %s in block %d", event.receipt.tx_hash, event.receipt.block_number)
    elif isinstance(event, RelayFailedEvent):
        logger.error("Relay failed (%d): %s", event.status_code, event.error.message)


def setup_event_bus(enable_logging: bool = True) -> EventBus:
    """Initialize event bus with built-in handlers.

    Args:
        enable_logging: If True, every relay event is logged through a hook.
    """
    event_bus = EventBus()

    event_bus.subscribe(RelayRequestedEvent, handle_relay_requested)
    event_bus.subscribe(RelayApprovedEvent, handle_relay_approved)

    if enable_logging:
        for event_class in (
            RelayRequestedEvent,
            RelayApprovedEvent,
            RelayRejectedEvent,
            RelayExecutedEvent,
            RelayFailedEvent,
        ):
            event_bus.hook(event_class, log_relay_event)

    return event_bus
