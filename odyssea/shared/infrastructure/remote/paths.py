"""Centralized document and blob path helpers.

Documents:
    /trips/{trip_id}
    /trips/{trip_id}/places/{place_id}
    /trips/{trip_id}/notes/{note_id}
    /trips/{trip_id}/checklist/{item_id}
    /users/{uid}

Blobs: {kind}/{owner_or_trip_id}/{filename}
"""

from __future__ import annotations

import secrets
import time

TRIPS = "trips"
PLACES = "places"
NOTES = "notes"
CHECKLIST = "checklist"
USERS = "users"

BLOB_TRIP_COVERS = "tripCovers"
BLOB_PLACE_MEDIA = "placeMedia"
BLOB_PROFILE_PHOTOS = "profilePhotos"


def trips_col() -> str:
    return TRIPS


def trip_doc(trip_id: str) -> str:
    return f"{TRIPS}/{trip_id}"


def places_col(trip_id: str) -> str:
    return f"{trip_doc(trip_id)}/{PLACES}"


def place_doc(trip_id: str, place_id: str) -> str:
    return f"{places_col(trip_id)}/{place_id}"


def notes_col(trip_id: str) -> str:
    return f"{trip_doc(trip_id)}/{NOTES}"


def note_doc(trip_id: str, note_id: str) -> str:
    return f"{notes_col(trip_id)}/{note_id}"


def checklist_col(trip_id: str) -> str:
    return f"{trip_doc(trip_id)}/{CHECKLIST}"


def checklist_doc(trip_id: str, item_id: str) -> str:
    return f"{checklist_col(trip_id)}/{item_id}"


def user_doc(uid: str) -> str:
    return f"{USERS}/{uid}"


def blob_path(kind: str, owner_or_trip_id: str, filename: str) -> str:
    if "/" in filename:
        raise ValueError(f"Blob filename must not contain '/': {filename!r}")
    return f"{kind}/{owner_or_trip_id}/{filename}"


def unique_filename(prefix: str, extension: str = "jpg") -> str:
    """``cover-1712345678901-k3j9x2.jpg`` style names; blob paths are write-once."""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(3)}.{extension}"
