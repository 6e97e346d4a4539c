"""Canonical event definitions for Odyssea."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .event_bus import EventPayload

# Store state topics
TOPIC_TRIPS_SNAPSHOT = "trips.snapshot"
TOPIC_TRIP_SELECTED = "trips.selected"
TOPIC_TRIP_WRITE_STATE = "trip.write_state"
TOPIC_TRIP_WRITE_FAILED = "trip.write_failed"
TOPIC_PLACES_SNAPSHOT = "places.snapshot"
TOPIC_PLACES_CLEARED = "places.cleared"
TOPIC_NOTES_SNAPSHOT = "notes.snapshot"
TOPIC_CHECKLIST_SNAPSHOT = "checklist.snapshot"
TOPIC_JOURNAL_CLEARED = "journal.cleared"

# Session topics
TOPIC_AUTH_STATUS = "auth.status"
TOPIC_PROFILE_UPDATED = "profile.updated"
TOPIC_SESSION_CLEARED = "session.cleared"

# Preferences
TOPIC_THEME_CHANGED = "theme.changed"


def create_trips_snapshot_event(owner_id: Optional[str], trip_ids: List[str]) -> EventPayload:
    """Create a trips snapshot event (a full replacement of the trip list)."""
    return {
        "owner_id": owner_id,
        "trip_ids": trip_ids,
        "count": len(trip_ids),
    }


def create_trip_selected_event(trip_id: Optional[str]) -> EventPayload:
    """Create a trip selection event."""
    return {"trip_id": trip_id}


def create_trip_write_state_event(trip_id: str, state: str, reason: Optional[str] = None) -> EventPayload:
    """Create a write state transition event.

    Args:
        trip_id: Trip whose pending write changed state
        state: New state ("committed", "pending" or "failed")
        reason: Failure reason when state is "failed"
    """
    event: EventPayload = {"trip_id": trip_id, "state": state}
    if reason is not None:
        event["reason"] = reason
    return event


def create_trip_write_failed_event(
    trip_id: str,
    operation: str,
    reason: str,
    place_id: Optional[str] = None,
) -> EventPayload:
    """Create an event for an optimistic write that was reverted."""
    event: EventPayload = {
        "trip_id": trip_id,
        "operation": operation,
        "reason": reason,
    }
    if place_id is not None:
        event["place_id"] = place_id
    return event


def create_places_snapshot_event(trip_id: str, place_ids: List[str], source: str) -> EventPayload:
    """Create a places snapshot event.

    Args:
        trip_id: Trip whose place list changed
        place_ids: Ordered ids of the new list
        source: "live" for a backend snapshot, "fallback" for seeded data
    """
    return {
        "trip_id": trip_id,
        "place_ids": place_ids,
        "source": source,
    }


def create_places_cleared_event(trip_ids: List[str]) -> EventPayload:
    """Create an event for released place bindings."""
    return {"trip_ids": trip_ids}


def create_notes_snapshot_event(trip_id: str, note_ids: List[str]) -> EventPayload:
    """Create a notes snapshot event (newest note first)."""
    return {"trip_id": trip_id, "note_ids": note_ids}


def create_checklist_snapshot_event(trip_id: str, done: int, total: int) -> EventPayload:
    """Create a checklist snapshot event carrying its progress."""
    return {"trip_id": trip_id, "done": done, "total": total}


def create_journal_cleared_event(trip_ids: List[str]) -> EventPayload:
    """Create an event for released note and checklist bindings."""
    return {"trip_ids": trip_ids}


def create_auth_status_event(status: str, uid: Optional[str], error: Optional[str] = None) -> EventPayload:
    """Create an auth status transition event."""
    return {
        "status": status,
        "uid": uid,
        "error": error,
    }


def create_profile_updated_event(uid: str, fields: List[str]) -> EventPayload:
    """Create a profile updated event."""
    return {"uid": uid, "fields": fields}


def create_session_cleared_event(previous_uid: Optional[str], epoch: int) -> EventPayload:
    """Create a session cleared event."""
    return {"previous_uid": previous_uid, "epoch": epoch}


def create_theme_changed_event(mode: str) -> EventPayload:
    """Create a theme changed event."""
    return {"mode": mode}


def describe(payload: Dict[str, Any]) -> str:
    """Compact one-line description used in debug logs."""
    return ", ".join(f"{key}={value}" for key, value in sorted(payload.items()))
