"""Observable store base.

Every store owns one slice of state. Mutations go through ``_notify``,
which persists the store's projection, calls the synchronous view
listeners and publishes a topic on the EventBus for cross-cutting
consumers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Dict, List, Optional

import duckdb
from pydantic import ValidationError

from odyssea.shared.core import events
from odyssea.shared.core.event_bus import EventBus, EventPayload
from odyssea.shared.infrastructure.persistence.kv_storage import DuckDBKeyValueStorage

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ObservableState:
    """Base class for the stores.

    Subclasses set ``persist_namespace`` and implement ``partialize`` /
    ``rehydrate`` to take part in local persistence.
    """

    persist_namespace: Optional[str] = None

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        storage: Optional[DuckDBKeyValueStorage] = None,
    ) -> None:
        self.bus = event_bus or EventBus()
        self.storage = storage
        self._listeners: List[Listener] = []
        self._version = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def version(self) -> int:
        """Incremented on every state change; cheap change detection for views."""
        return self._version

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a view listener; returns its unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- Change propagation ---

    def _notify(self, topic: Optional[str] = None, payload: Optional[EventPayload] = None) -> None:
        self._version += 1
        self._persist()
        self._emit_listeners()
        if topic is not None:
            logger.debug(f"{type(self).__name__} -> {topic}: {events.describe(payload or {})}")
            self.bus.publish_nowait(topic, payload or {})

    def _emit_listeners(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception(f"{type(self).__name__} listener failed")

    # --- Persistence ---

    def partialize(self) -> Optional[Dict[str, Any]]:
        """Projection of the state written to local storage."""
        return None

    def rehydrate(self, data: Dict[str, Any]) -> None:
        """Restore state from a stored projection."""

    def hydrate(self) -> bool:
        """Load the cached projection, if any. Returns True when applied."""
        if self.storage is None or self.persist_namespace is None:
            return False
        try:
            data = self.storage.get(self.persist_namespace)
        except duckdb.Error as e:
            logger.warning(f"Could not read cache '{self.persist_namespace}': {e}")
            return False
        if data is None:
            return False
        try:
            self.rehydrate(data)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding incompatible cache '{self.persist_namespace}': {e}")
            return False
        self._version += 1
        self._emit_listeners()
        logger.info(f"Rehydrated {type(self).__name__} from '{self.persist_namespace}'")
        return True

    def _persist(self) -> None:
        if self.storage is None or self.persist_namespace is None:
            return
        data = self.partialize()
        if data is None:
            return
        try:
            self.storage.set(self.persist_namespace, data)
        except duckdb.Error as e:
            logger.warning(f"Could not write cache '{self.persist_namespace}': {e}")

    # --- Background work ---

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task '{task.get_name()}' failed", exc_info=exc)

    @property
    def has_pending_tasks(self) -> bool:
        return bool(self._tasks)

    async def wait_for_tasks(self) -> None:
        """Await every background task this store started (tests, shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
