"""Async event bus bridging engine listeners to TUI/server consumers.

The engine notifies synchronously from its run task.  The EventBus
queues typed events for a consumer loop running on the same event loop.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from autodev.adapters.events import EngineEvent, dict_to_event

logger = logging.getLogger(__name__)


class EventBus:
    """Async queue bridging engine listeners to event consumers."""

    def __init__(self, maxsize: int = 5000) -> None:
        self._queue: asyncio.Queue[EngineEvent] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._dropped = 0

    def _listener(self, data: dict[str, Any]) -> None:
        """Listener to pass to SimulationEngine.subscribe."""
        if self._closed:
            return
        self.publish(dict_to_event(data))

    def make_listener(self) -> Callable[[dict[str, Any]], None]:
        """Return the listener for SimulationEngine.subscribe."""
        return self._listener

    def publish(self, event: EngineEvent) -> None:
        """Queue *event*; drops (and logs) when the queue is full."""
        if self._closed:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.error(
                "EventBus queue full, dropping: %s (queue size: %d, dropped: %d)",
                event.event_type,
                self._queue.qsize(),
                self._dropped,
            )

    @property
    def dropped(self) -> int:
        return self._dropped

    async def consume(self) -> AsyncIterator[EngineEvent]:
        """Yield events as they arrive. Stops on close()."""
        while not self._closed:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.5)
                yield event
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        """Stop the consumer loop permanently."""
        self._closed = True
