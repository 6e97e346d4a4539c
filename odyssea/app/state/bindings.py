"""Derived view bindings.

``resolve_*`` functions are pure: they read store selectors and never
mutate, so views may call them on every render. Side effects (opening or
releasing subscriptions) live in the ``sync`` methods of the bindings.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional, Tuple

from odyssea.app.theme import Theme, ThemeMode
from odyssea.shared.domain.models import ChecklistItem, ChecklistProgress, Trip, TripNote, VisitedPlace
from odyssea.shared.domain.statistics import TripStats, compute_trip_stats

from .notes_store import TripNotesStore
from .places_store import PlacesStore
from .theme_store import ThemeStore
from .trip_store import TripStore

logger = logging.getLogger(__name__)


class CurrentTrip(NamedTuple):
    trip_id: Optional[str]
    trip: Optional[Trip]


class TripPlaces(NamedTuple):
    trip_id: Optional[str]
    places: Tuple[VisitedPlace, ...]
    loading_from_backend: bool


class TripJournal(NamedTuple):
    trip_id: Optional[str]
    notes: Tuple[TripNote, ...]
    checklist: Tuple[ChecklistItem, ...]
    progress: ChecklistProgress
    loading_from_backend: bool


class ThemeView(NamedTuple):
    mode: ThemeMode
    theme: Theme
    is_dark: bool
    status_bar_style: str


def resolve_current_trip(trip_store: TripStore, route_trip_id: Optional[str] = None) -> CurrentTrip:
    """Route id when present and non-empty, else the store selection, else none."""
    trip_id = route_trip_id if route_trip_id else trip_store.selected_trip_id
    trip_id = trip_id or None
    return CurrentTrip(trip_id, trip_store.get_trip_by_id(trip_id))


class TripPlacesBinding:
    """Keeps the current trip's place subscription open for one view.

    Call ``sync`` after each render (effect phase), ``resolve`` during
    render and ``release`` when the view goes away.
    """

    def __init__(self, trip_store: TripStore, places_store: PlacesStore):
        self.trip_store = trip_store
        self.places_store = places_store
        self._bound_trip_id: Optional[str] = None

    @property
    def bound_trip_id(self) -> Optional[str]:
        return self._bound_trip_id

    def sync(self, route_trip_id: Optional[str] = None) -> None:
        trip_id, trip = resolve_current_trip(self.trip_store, route_trip_id)
        if trip_id != self._bound_trip_id and self._bound_trip_id is not None:
            self.places_store.clear_trip_places(self._bound_trip_id)
            self._bound_trip_id = None
        if trip_id is None:
            return
        self.places_store.bind_trip_places(trip_id, trip.places if trip else None)
        self._bound_trip_id = trip_id

    def resolve(self, route_trip_id: Optional[str] = None) -> TripPlaces:
        trip_id, trip = resolve_current_trip(self.trip_store, route_trip_id)
        if trip_id is None:
            return TripPlaces(None, (), False)
        live = self.places_store.get_places_for_trip(trip_id)
        if live:
            places = live
        elif trip is not None:
            places = trip.places
        else:
            places = ()
        loading = self.places_store.is_bound(trip_id) and not self.places_store.has_live_data(trip_id)
        return TripPlaces(trip_id, places, loading)

    def release(self) -> None:
        if self._bound_trip_id is not None:
            logger.debug(f"Releasing places binding for trip {self._bound_trip_id}")
            self.places_store.clear_trip_places(self._bound_trip_id)
            self._bound_trip_id = None


class TripJournalBinding:
    """Keeps the current trip's notes and checklist subscriptions open for one view."""

    def __init__(self, trip_store: TripStore, notes_store: TripNotesStore):
        self.trip_store = trip_store
        self.notes_store = notes_store
        self._bound_trip_id: Optional[str] = None

    @property
    def bound_trip_id(self) -> Optional[str]:
        return self._bound_trip_id

    def sync(self, route_trip_id: Optional[str] = None) -> None:
        trip_id, _ = resolve_current_trip(self.trip_store, route_trip_id)
        if trip_id != self._bound_trip_id:
            self.release()
        if trip_id is None:
            return
        self.notes_store.bind_trip_notes(trip_id)
        self._bound_trip_id = trip_id

    def resolve(self, route_trip_id: Optional[str] = None) -> TripJournal:
        trip_id, _ = resolve_current_trip(self.trip_store, route_trip_id)
        if trip_id is None:
            return TripJournal(None, (), (), ChecklistProgress(), False)
        loading = self.notes_store.is_bound(trip_id) and not self.notes_store.has_live_data(trip_id)
        return TripJournal(
            trip_id,
            self.notes_store.get_notes(trip_id),
            self.notes_store.get_checklist(trip_id),
            self.notes_store.get_progress(trip_id),
            loading,
        )

    def release(self) -> None:
        if self._bound_trip_id is not None:
            self.notes_store.clear_trip_notes(self._bound_trip_id)
            self._bound_trip_id = None


def resolve_theme(theme_store: ThemeStore) -> ThemeView:
    is_dark = theme_store.mode == "dark"
    return ThemeView(
        mode=theme_store.mode,
        theme=theme_store.theme,
        is_dark=is_dark,
        status_bar_style="light-content" if is_dark else "dark-content",
    )


def resolve_trip_stats(
    trip_store: TripStore,
    places_store: PlacesStore,
    route_trip_id: Optional[str] = None,
) -> Optional[TripStats]:
    """Statistics of the current trip over its effective place list."""
    trip_id, trip = resolve_current_trip(trip_store, route_trip_id)
    if trip is None:
        return None
    live = places_store.get_places_for_trip(trip_id)
    return compute_trip_stats(trip, live if live else None)
