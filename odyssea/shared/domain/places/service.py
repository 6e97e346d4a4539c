"""Live place lists per trip (``trips/{trip_id}/places``)."""

from __future__ import annotations

from typing import Callable, List

from odyssea.shared.domain.mapping import place_from_document
from odyssea.shared.domain.models import VisitedPlace
from odyssea.shared.infrastructure.remote import paths
from odyssea.shared.infrastructure.remote.base import OrderBy, RemoteCollectionClient, Snapshot, Unsubscribe


class PlacesService:
    def __init__(self, remote: RemoteCollectionClient):
        self.remote = remote

    def subscribe_trip_places(
        self,
        trip_id: str,
        on_places: Callable[[List[VisitedPlace]], None],
    ) -> Unsubscribe:
        """Push the trip's places ordered by visit date/time ascending."""

        def handle(snapshot: Snapshot) -> None:
            on_places([place_from_document(doc.id, doc.data) for doc in snapshot])

        return self.remote.subscribe(paths.places_col(trip_id), handle, order_by=OrderBy("dateTime"))
