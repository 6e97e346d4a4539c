"""Odyssea travel journal: reactive client state and sync layer."""

from .shared.core.event_bus import EventBus
from .app.state.store import Store

__all__ = ["Store", "EventBus"]
