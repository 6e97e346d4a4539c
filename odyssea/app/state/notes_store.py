"""Per-trip live notes and checklist."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from odyssea.shared.core import events
from odyssea.shared.core.errors import RemoteWriteError
from odyssea.shared.core.event_bus import EventBus
from odyssea.shared.domain.models import ChecklistItem, ChecklistProgress, TripNote
from odyssea.shared.domain.notes import TripNotesService, checklist_progress
from odyssea.shared.infrastructure.remote.base import Unsubscribe

from .base import ObservableState

logger = logging.getLogger(__name__)


class _JournalBinding:
    """Both subscriptions of one trip; callbacks carrying a released binding are ignored."""

    __slots__ = ("trip_id", "unsubscribers", "notes_live", "checklist_live")

    def __init__(self, trip_id: str):
        self.trip_id = trip_id
        self.unsubscribers: List[Unsubscribe] = []
        self.notes_live = False
        self.checklist_live = False

    def release(self) -> None:
        for unsubscribe in self.unsubscribers:
            unsubscribe()
        self.unsubscribers.clear()


class TripNotesStore(ObservableState):
    """Holds at most one notes and one checklist subscription per trip.

    Writes are round-trip: a new note or a toggled item shows up when the
    backend snapshot does. Not persisted.
    """

    def __init__(self, notes_service: TripNotesService, event_bus: Optional[EventBus] = None):
        super().__init__(event_bus=event_bus)
        self.notes_service = notes_service
        self._notes: Dict[str, Tuple[TripNote, ...]] = {}
        self._checklists: Dict[str, Tuple[ChecklistItem, ...]] = {}
        self._bindings: Dict[str, _JournalBinding] = {}

    @property
    def bound_trip_ids(self) -> List[str]:
        return list(self._bindings)

    def is_bound(self, trip_id: str) -> bool:
        return trip_id in self._bindings

    def has_live_data(self, trip_id: str) -> bool:
        binding = self._bindings.get(trip_id)
        return binding is not None and binding.notes_live and binding.checklist_live

    def get_notes(self, trip_id: str) -> Tuple[TripNote, ...]:
        return self._notes.get(trip_id, ())

    def get_checklist(self, trip_id: str) -> Tuple[ChecklistItem, ...]:
        return self._checklists.get(trip_id, ())

    def get_progress(self, trip_id: str) -> ChecklistProgress:
        return checklist_progress(self.get_checklist(trip_id))

    # --- Bindings ---

    def bind_trip_notes(self, trip_id: str) -> bool:
        """Open the notes and checklist subscriptions unless already bound."""
        if trip_id in self._bindings:
            return False
        binding = _JournalBinding(trip_id)
        self._bindings[trip_id] = binding
        binding.unsubscribers.append(
            self.notes_service.subscribe_notes(trip_id, lambda notes: self._on_notes(binding, notes))
        )
        binding.unsubscribers.append(
            self.notes_service.subscribe_checklist(trip_id, lambda items: self._on_checklist(binding, items))
        )
        if self._bindings.get(trip_id) is not binding:
            binding.release()
        logger.debug(f"Bound notes and checklist for trip {trip_id}")
        return True

    def _on_notes(self, binding: _JournalBinding, notes: List[TripNote]) -> None:
        if self._bindings.get(binding.trip_id) is not binding:
            return
        binding.notes_live = True
        self._notes[binding.trip_id] = tuple(notes)
        self._notify(
            events.TOPIC_NOTES_SNAPSHOT,
            events.create_notes_snapshot_event(binding.trip_id, [note.id for note in notes]),
        )

    def _on_checklist(self, binding: _JournalBinding, items: List[ChecklistItem]) -> None:
        if self._bindings.get(binding.trip_id) is not binding:
            return
        binding.checklist_live = True
        self._checklists[binding.trip_id] = tuple(items)
        progress = checklist_progress(items)
        self._notify(
            events.TOPIC_CHECKLIST_SNAPSHOT,
            events.create_checklist_snapshot_event(binding.trip_id, progress.done, progress.total),
        )

    def clear_trip_notes(self, trip_id: str) -> None:
        binding = self._bindings.pop(trip_id, None)
        had_data = self._notes.pop(trip_id, None) is not None
        had_data = self._checklists.pop(trip_id, None) is not None or had_data
        if binding is None and not had_data:
            return
        if binding is not None:
            binding.release()
        self._notify(events.TOPIC_JOURNAL_CLEARED, events.create_journal_cleared_event([trip_id]))

    def clear_all(self) -> None:
        """Release every subscription (sign-out)."""
        trip_ids = sorted(set(self._bindings) | set(self._notes) | set(self._checklists))
        bindings = list(self._bindings.values())
        self._bindings.clear()
        self._notes.clear()
        self._checklists.clear()
        for binding in bindings:
            binding.release()
        if trip_ids:
            logger.info(f"Released notes and checklist subscriptions for {len(trip_ids)} trip(s)")
        self._notify(events.TOPIC_JOURNAL_CLEARED, events.create_journal_cleared_event(trip_ids))

    # --- Writes ---

    async def add_note(self, trip_id: str, title: str, body: str) -> Optional[TripNote]:
        """Add a note; returns None without writing when title and body are empty.

        Raises:
            RemoteWriteError: If the write fails
        """
        try:
            return await self.notes_service.add_note(trip_id, title, body)
        except ValueError:
            return None
        except RemoteWriteError as e:
            logger.error(f"Failed to add note to trip {trip_id}: {e}")
            raise

    async def add_checklist_item(self, trip_id: str, text: str) -> Optional[ChecklistItem]:
        """Add an unchecked item; returns None without writing for blank text."""
        try:
            return await self.notes_service.add_checklist_item(trip_id, text)
        except ValueError:
            return None
        except RemoteWriteError as e:
            logger.error(f"Failed to add checklist item to trip {trip_id}: {e}")
            raise

    async def toggle_checklist_item(self, trip_id: str, item_id: str) -> bool:
        """Flip ``done`` of a known item. Returns False for an unknown item."""
        current = next((item for item in self.get_checklist(trip_id) if item.id == item_id), None)
        if current is None:
            logger.warning(f"toggle_checklist_item: item {item_id} not found in trip {trip_id}")
            return False
        try:
            await self.notes_service.set_item_done(trip_id, item_id, not current.done)
        except RemoteWriteError as e:
            logger.error(f"Failed to toggle checklist item {item_id}: {e}")
            raise
        return True
