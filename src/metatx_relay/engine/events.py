"""
Event-driven relay pipeline with typed events and clear data flow.

Events carry their own data, handlers return next events, and dependencies
are injected separately from business data.

    RelayRequestedEvent
        -> RelayApprovedEvent | RelayRejectedEvent
    RelayApprovedEvent
        -> RelayExecutedEvent | RelayFailedEvent
"""

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Callable, Optional, List, Awaitable, AsyncGenerator

from pydantic import BaseModel, ConfigDict

from ..evm.forwarder import ForwarderGateway
from ..schemas.https import SerializedForwardRequest
from ..schemas.receipts import ReceiptSummary
from ..schemas.requests import ForwardRequest
from .exceptions import MetaTransactionError
from .locks import SenderLocks

logger = logging.getLogger(__name__)

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Trigger Events (External) ====================

class RelayRequestedEvent(BaseModel, BaseEvent):
    """External trigger: a signed request arrived on ``POST /relay``."""
    request: Optional[SerializedForwardRequest]

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        if self.request is None:
            return "RelayRequestedEvent(request=None)"
        return f"RelayRequestedEvent(from={self.request.sender}, to={self.request.to})"


# ==================== Result Events ====================

class RelayApprovedEvent(BaseModel, BaseEvent):
    """Result: request passed validation, trust and expiry checks."""
    request: ForwardRequest
    onchain_nonce: Optional[int] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayApprovedEvent(from={self.request.sender}, nonce={self.onchain_nonce})"


class RelayRejectedEvent(BaseModel, BaseEvent):
    """Result: request refused before any gas was spent."""
    error: MetaTransactionError

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def status_code(self) -> int:
        return self.error.status_code

    def __repr__(self) -> str:
        return f"RelayRejectedEvent(error={self.error.error_code})"


class RelayExecutedEvent(BaseModel, BaseEvent):
    """Result: ``execute`` was mined successfully."""
    request: ForwardRequest
    receipt: ReceiptSummary

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayExecutedEvent(hash={self.receipt.tx_hash})"


class RelayFailedEvent(BaseModel, BaseEvent):
    """Result: submission failed or the transaction reverted."""
    request: ForwardRequest
    error: MetaTransactionError

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def status_code(self) -> int:
        return self.error.status_code

    def __repr__(self) -> str:
        return f"RelayFailedEvent(error={self.error.error_code})"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class RelayDependencies:
    """Container for infrastructure dependencies (read-only)."""
    gateway: ForwarderGateway
    sender_locks: SenderLocks = field(default_factory=SenderLocks)
    clock: Callable[[], float] = time.time


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, RelayDependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, RelayDependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        self._subscribers: Dict[type, List[EventHandlerFunc]] = {}
        self._hooks: Dict[type, List[EventHookFunc]] = {}

    def subscribe(self, event_class: type, handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")
        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type, hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before subscribers when the event is dispatched.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")
        self._hooks.setdefault(event_class, []).append(hook_func)

    def handlers_for(self, event_class: type) -> List[EventHandlerFunc]:
        return list(self._subscribers.get(event_class, []))

    async def dispatch(self, event: BaseEvent, deps: RelayDependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.
        Hooks run first, then all subscribers run in parallel.

        Yields:
            Results from all subscribers as they complete. Yields nothing if
            no subscribers are registered.
        """
        hooks = self._hooks.get(type(event), [])
        await asyncio.gather(*(hook(event, deps) for hook in hooks))

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            logger.debug("No handlers for %r", event)
            return

        tasks = [handler(event, deps) for handler in handlers]
        for coro in asyncio.as_completed(tasks):
            result = await coro
            yield result
