"""Per-trip live place lists."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from odyssea.shared.core import events
from odyssea.shared.core.event_bus import EventBus
from odyssea.shared.domain.models import VisitedPlace
from odyssea.shared.domain.places import PlacesService
from odyssea.shared.infrastructure.remote.base import Unsubscribe

from .base import ObservableState

logger = logging.getLogger(__name__)


class _Binding:
    """One live subscription. Identity is the token: callbacks carrying a
    released binding are ignored."""

    __slots__ = ("trip_id", "unsubscribe", "live")

    def __init__(self, trip_id: str):
        self.trip_id = trip_id
        self.unsubscribe: Optional[Unsubscribe] = None
        self.live = False


class PlacesStore(ObservableState):
    """Holds at most one live subscription per trip id.

    Not persisted: place lists are always rebuilt from the backend.
    """

    def __init__(self, places_service: PlacesService, event_bus: Optional[EventBus] = None):
        super().__init__(event_bus=event_bus)
        self.places_service = places_service
        self._places: Dict[str, Tuple[VisitedPlace, ...]] = {}
        self._bindings: Dict[str, _Binding] = {}

    @property
    def places_by_trip(self) -> Dict[str, Tuple[VisitedPlace, ...]]:
        return dict(self._places)

    @property
    def bound_trip_ids(self) -> List[str]:
        return list(self._bindings)

    def is_bound(self, trip_id: str) -> bool:
        return trip_id in self._bindings

    def has_live_data(self, trip_id: str) -> bool:
        """True once the backend delivered at least one snapshot for the binding."""
        binding = self._bindings.get(trip_id)
        return binding is not None and binding.live

    def get_places_for_trip(self, trip_id: str) -> Tuple[VisitedPlace, ...]:
        return self._places.get(trip_id, ())

    def bind_trip_places(self, trip_id: str, fallback: Optional[Iterable[VisitedPlace]] = None) -> bool:
        """Start the live subscription for ``trip_id`` unless one is active.

        ``fallback`` seeds the list until the first live snapshot arrives.
        Returns True when a new subscription was opened.
        """
        if trip_id in self._bindings:
            return False

        binding = _Binding(trip_id)
        self._bindings[trip_id] = binding

        seeded = tuple(fallback or ())
        if seeded:
            self._places[trip_id] = seeded
            self._notify(
                events.TOPIC_PLACES_SNAPSHOT,
                events.create_places_snapshot_event(trip_id, [p.id for p in seeded], "fallback"),
            )

        binding.unsubscribe = self.places_service.subscribe_trip_places(
            trip_id,
            lambda places: self._on_snapshot(binding, places),
        )
        # The subscription may have been released from inside its first callback
        if self._bindings.get(trip_id) is not binding:
            binding.unsubscribe()
        logger.debug(f"Bound places for trip {trip_id}")
        return True

    def _on_snapshot(self, binding: _Binding, places: List[VisitedPlace]) -> None:
        if self._bindings.get(binding.trip_id) is not binding:
            logger.debug(f"Ignoring late places snapshot for released trip {binding.trip_id}")
            return
        binding.live = True
        self._places[binding.trip_id] = tuple(places)
        self._notify(
            events.TOPIC_PLACES_SNAPSHOT,
            events.create_places_snapshot_event(binding.trip_id, [p.id for p in places], "live"),
        )

    def clear_trip_places(self, trip_id: str) -> None:
        """Release one trip's subscription and forget its places."""
        binding = self._bindings.pop(trip_id, None)
        had_places = self._places.pop(trip_id, None) is not None
        if binding is None and not had_places:
            return
        if binding is not None and binding.unsubscribe is not None:
            binding.unsubscribe()
        self._notify(events.TOPIC_PLACES_CLEARED, events.create_places_cleared_event([trip_id]))

    def clear_all(self) -> None:
        """Release every subscription (sign-out)."""
        trip_ids = sorted(set(self._bindings) | set(self._places))
        bindings = list(self._bindings.values())
        self._bindings.clear()
        self._places.clear()
        for binding in bindings:
            if binding.unsubscribe is not None:
                binding.unsubscribe()
        if trip_ids:
            logger.info(f"Released place subscriptions for {len(trip_ids)} trip(s)")
        self._notify(events.TOPIC_PLACES_CLEARED, events.create_places_cleared_event(trip_ids))
