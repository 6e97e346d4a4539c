"""In-process notification bus for store and sync events.

Stores publish from synchronous mutation paths with ``publish_nowait``;
every handler runs as its own tracked task on the running loop, so one
slow or failing handler never holds up a store or the other handlers.
All registration happens on the loop thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Set, TypeAlias

EventPayload: TypeAlias = Dict[str, Any]
EventHandler: TypeAlias = Callable[[EventPayload], Awaitable[None]]

logger = logging.getLogger(__name__)


class EventBus:
    """Topic-keyed fan-out of store notifications to async handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._in_flight: Set[asyncio.Task] = set()

    # --- Registration ---

    def add_handler(self, topic: str, handler: EventHandler) -> None:
        """Register ``handler`` for ``topic``; registering twice is a no-op."""
        handlers = self._handlers[topic]
        if handler not in handlers:
            handlers.append(handler)

    def remove_handler(self, topic: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(topic)
        if handlers and handler in handlers:
            handlers.remove(handler)

    async def subscribe(self, topic: str, handler: EventHandler) -> None:
        self.add_handler(topic, handler)

    async def unsubscribe(self, topic: str, handler: EventHandler) -> None:
        self.remove_handler(topic, handler)

    # --- Publishing ---

    async def publish(self, topic: str, payload: EventPayload) -> None:
        self._fan_out(topic, payload)

    def publish_nowait(self, topic: str, payload: EventPayload) -> None:
        """Publish from synchronous code; dropped when no loop is running."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop; dropping event '{topic}'")
            return
        self._fan_out(topic, payload)

    def _fan_out(self, topic: str, payload: EventPayload) -> None:
        handlers = list(self._handlers.get(topic, ()))
        if not handlers:
            return
        logger.debug(f"Event '{topic}' -> {len(handlers)} handler(s)")
        for handler in handlers:
            task = asyncio.create_task(self._run_handler(topic, handler, payload))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    async def _run_handler(self, topic: str, handler: EventHandler, payload: EventPayload) -> None:
        try:
            await handler(payload)
        except Exception:
            name = getattr(handler, "__qualname__", repr(handler))
            logger.exception(f"Handler '{name}' failed on event '{topic}'")

    async def wait_until_idle(self, timeout: float = 10.0) -> bool:
        """Wait until no handler is running, including ones published meanwhile.

        Returns:
            False if handlers were still running after ``timeout`` seconds
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self._in_flight:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(f"{len(self._in_flight)} event handler(s) still running after {timeout}s")
                return False
            await asyncio.wait(list(self._in_flight), timeout=remaining)
        return True

    def clear(self) -> None:
        self._handlers.clear()
