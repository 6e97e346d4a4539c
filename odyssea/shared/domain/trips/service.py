"""Trip documents: live owner query, creation, place persistence."""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Sequence

from odyssea.shared.core.errors import UploadError
from odyssea.shared.domain.mapping import trip_from_document
from odyssea.shared.domain.models import (
    DEFAULT_COVER_PHOTO_URL,
    CreateTripInput,
    Trip,
    TripStatus,
    VisitedPlace,
    new_trip_id,
    normalize_tags,
)
from odyssea.shared.infrastructure.remote import paths
from odyssea.shared.infrastructure.remote.base import (
    SERVER_TIMESTAMP,
    FieldFilter,
    OrderBy,
    RemoteCollectionClient,
    Snapshot,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

# Python field name -> document field name
EDITABLE_TRIP_FIELDS = {
    "title": "title",
    "destination": "destination",
    "start_date": "startDate",
    "end_date": "endDate",
    "cover_photo_url": "coverPhotoUrl",
    "tags": "tags",
    "status": "status",
}


class TripService:
    """Reads and writes the ``trips`` collection."""

    def __init__(self, remote: RemoteCollectionClient):
        self.remote = remote

    def subscribe_user_trips(self, owner_uid: str, on_trips: Callable[[List[Trip]], None]) -> Unsubscribe:
        """Live query of an owner's trips, ordered by start date ascending."""

        def handle(snapshot: Snapshot) -> None:
            trips = []
            for doc in snapshot:
                trip = trip_from_document(doc.id, doc.data)
                if trip is not None:
                    trips.append(trip)
            on_trips(trips)

        return self.remote.subscribe(
            paths.trips_col(),
            handle,
            filters=[FieldFilter("ownerUid", "==", owner_uid)],
            order_by=OrderBy("startDate"),
        )

    async def upload_cover(self, owner_uid: str, data: bytes) -> str:
        path = paths.blob_path(paths.BLOB_TRIP_COVERS, owner_uid, paths.unique_filename("cover"))
        return await self.remote.upload_blob(path, data)

    async def create_trip(self, data: CreateTripInput) -> Trip:
        """Write a new trip document and return the trip as the app models it.

        A failed cover upload is not fatal: the trip keeps the default cover.

        Raises:
            RemoteWriteError: If the trip document could not be written
        """
        cover_url = DEFAULT_COVER_PHOTO_URL
        if data.cover_image:
            try:
                cover_url = await self.upload_cover(data.owner_uid, data.cover_image)
            except UploadError as e:
                logger.warning(f"Cover upload failed, keeping default cover: {e}")

        trip = Trip(
            id=new_trip_id(),
            title=data.title,
            destination=data.destination,
            start_date=data.start_date,
            end_date=data.end_date,
            cover_photo_url=cover_url,
            tags=data.tags,
            status=TripStatus.UPCOMING,
            places=(),
            owner_uid=data.owner_uid,
        )
        payload = trip.to_document()
        payload.pop("id", None)
        payload["createdAt"] = SERVER_TIMESTAMP

        await self.remote.write(paths.trip_doc(trip.id), payload, merge=False)
        logger.info(f"Created trip '{trip.title}' ({trip.id}) for {data.owner_uid}")
        return trip

    async def update_trip(self, trip_id: str, changes: Dict[str, Any]) -> None:
        """Merge editable fields into the trip document.

        Raises:
            ValueError: For fields that are not editable
            RemoteWriteError: If the write fails
        """
        payload = serialize_trip_changes(changes)
        payload["updatedAt"] = SERVER_TIMESTAMP
        await self.remote.write(paths.trip_doc(trip_id), payload, merge=True)

    async def save_trip_places(self, trip_id: str, places: Sequence[VisitedPlace]) -> None:
        """Persist the full ordered place list embedded in the trip document."""
        await self.remote.write(
            paths.trip_doc(trip_id),
            {"places": [place.to_document() for place in places], "updatedAt": SERVER_TIMESTAMP},
            merge=True,
        )

    async def save_place(self, trip_id: str, place: VisitedPlace) -> None:
        """Upsert one place in the trip's ``places`` sub-collection."""
        await self.remote.write(paths.place_doc(trip_id, place.id), place.to_document(), merge=False)

    async def delete_place(self, trip_id: str, place_id: str) -> None:
        """Remove one place document; only used to roll back an unconfirmed add."""
        await self.remote.delete(paths.place_doc(trip_id, place_id))

    async def upload_place_media(self, trip_id: str, data: bytes, extension: str = "jpg") -> str:
        path = paths.blob_path(paths.BLOB_PLACE_MEDIA, trip_id, paths.unique_filename("media", extension))
        return await self.remote.upload_blob(path, data)


def serialize_trip_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for key, value in changes.items():
        if key not in EDITABLE_TRIP_FIELDS:
            raise ValueError(f"Trip field '{key}' is not editable")
        if key == "status":
            value = TripStatus(value).value
        elif key == "tags":
            value = list(normalize_tags(value))
        elif isinstance(value, date):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        payload[EDITABLE_TRIP_FIELDS[key]] = value
    return payload
