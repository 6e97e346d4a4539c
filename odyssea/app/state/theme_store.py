"""Light/dark theme preference."""

from __future__ import annotations

from typing import Any, Dict, Optional

from odyssea.app.theme import Theme, ThemeMode, theme_for
from odyssea.shared.core import events
from odyssea.shared.core.event_bus import EventBus
from odyssea.shared.infrastructure.persistence.kv_storage import DuckDBKeyValueStorage

from .base import ObservableState

MODES = ("light", "dark")


class ThemeStore(ObservableState):
    """Only ``mode`` is persisted; the palette is derived from it."""

    persist_namespace = "odyssea-theme"

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        storage: Optional[DuckDBKeyValueStorage] = None,
        default_mode: ThemeMode = "light",
    ):
        super().__init__(event_bus=event_bus, storage=storage)
        self._mode: ThemeMode = default_mode
        self._theme = theme_for(default_mode)

    @property
    def mode(self) -> ThemeMode:
        return self._mode

    @property
    def theme(self) -> Theme:
        return self._theme

    def set_mode(self, mode: ThemeMode) -> None:
        if mode not in MODES:
            raise ValueError(f"Unknown theme mode: {mode}")
        if mode == self._mode:
            return
        self._mode = mode
        self._theme = theme_for(mode)
        self._notify(events.TOPIC_THEME_CHANGED, events.create_theme_changed_event(mode))

    def toggle_mode(self) -> None:
        self.set_mode("dark" if self._mode == "light" else "light")

    def partialize(self) -> Dict[str, Any]:
        return {"mode": self._mode}

    def rehydrate(self, data: Dict[str, Any]) -> None:
        mode = data.get("mode") or "light"
        if mode not in MODES:
            raise ValueError(f"Unknown theme mode: {mode}")
        self._mode = mode
        self._theme = theme_for(mode)
