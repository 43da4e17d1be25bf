"""
Event chain execution engine.

Provides workflow orchestration on top of EventBus, processing events
recursively until termination conditions are met.
"""

import asyncio
from typing import AsyncGenerator, Union

from .events import BaseEvent, EventBus, RelayDependencies


class EventChain:
    """Executes event-driven workflows by chaining event handler results."""

    def __init__(self, event_bus: EventBus, deps: RelayDependencies) -> None:
        self.event_bus = event_bus
        self.deps = deps

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Execute event chain starting from initial event.

        Yields:
            Events produced during chain execution, in the order handlers
            return them.

        Raises:
            Whatever a handler raised; the chain stops at that point.
        """
        events_queue: "asyncio.Queue[Union[BaseEvent, BaseException, None]]" = asyncio.Queue()

        async def producer() -> None:
            try:
                async for event in self._process_event(initial_event):
                    await events_queue.put(event)
            except Exception as e:
                await events_queue.put(e)
            finally:
                await events_queue.put(None)  # Sentinel to indicate completion

        task = asyncio.create_task(producer())

        try:
            while True:
                event = await events_queue.get()
                if event is None:  # Chain complete
                    break
                if isinstance(event, BaseException):
                    raise event
                yield event
        finally:
            await task

    async def _process_event(self, event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """Process single event and recursively handle results."""
        async for result in self.event_bus.dispatch(event, self.deps):
            if result is None:
                continue
            if isinstance(result, BaseEvent):
                yield result
                async for e in self._process_event(result):
                    yield e
            else:
                raise TypeError(f"Handler returned unsupported type: {type(result).__name__}")
