"""Reactive state for the views.

Architecture:
- ObservableState: listeners, EventBus topics and cached projections
- AuthStore / UserProfileStore: session and profile
- TripStore / PlacesStore: live trip and place lists with optimistic writes
- TripNotesStore: live notes and checklist of a trip
- ThemeStore: light/dark preference
- Store: container that builds and wires all of the above
"""

from .base import ObservableState
from .auth_store import AuthStore, is_profile_complete
from .profile_store import UserProfileStore
from .trip_store import PendingMutation, PlaceMatch, TripStore
from .places_store import PlacesStore
from .notes_store import TripNotesStore
from .theme_store import ThemeStore
from .bindings import (
    CurrentTrip,
    ThemeView,
    TripJournal,
    TripJournalBinding,
    TripPlaces,
    TripPlacesBinding,
    resolve_current_trip,
    resolve_theme,
    resolve_trip_stats,
)
from .store import Store

__all__ = [
    "ObservableState",
    "AuthStore",
    "is_profile_complete",
    "UserProfileStore",
    "PendingMutation",
    "PlaceMatch",
    "TripStore",
    "PlacesStore",
    "TripNotesStore",
    "ThemeStore",
    "CurrentTrip",
    "ThemeView",
    "TripJournal",
    "TripJournalBinding",
    "TripPlaces",
    "TripPlacesBinding",
    "resolve_current_trip",
    "resolve_theme",
    "resolve_trip_stats",
    "Store",
]
