"""Trip store: the owner's live trip list plus optimistic place writes.

Snapshots replace ``trips`` wholesale. Places added or edited locally are
kept as pending mutations and re-applied on top of every snapshot until
their write commits, so a snapshot never hides them and a commit never
duplicates them. A write that keeps failing after its retries is reverted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple, Union

from pydantic import ValidationError

from odyssea.shared.core import events
from odyssea.shared.core.configuration import SyncConfig
from odyssea.shared.core.errors import RemoteWriteError, UploadError
from odyssea.shared.core.event_bus import EventBus
from odyssea.shared.domain.models import COMMITTED, CreateTripInput, Trip, VisitedPlace, WriteState
from odyssea.shared.domain.trips import TripService
from odyssea.shared.infrastructure.persistence.kv_storage import DuckDBKeyValueStorage
from odyssea.shared.infrastructure.remote.base import Unsubscribe

from .base import ObservableState

logger = logging.getLogger(__name__)


class PlaceMatch(NamedTuple):
    trip: Trip
    place: VisitedPlace


@dataclass(frozen=True)
class PendingMutation:
    """An optimistic place change not yet confirmed by the backend.

    ``previous`` is the committed version for edits, None for adds.
    """

    operation: str  # "add" | "edit"
    place: VisitedPlace
    previous: Optional[VisitedPlace] = None


def _replace_place(places: Tuple[VisitedPlace, ...], place: VisitedPlace) -> Tuple[VisitedPlace, ...]:
    return tuple(place if p.id == place.id else p for p in places)


def _remove_place(places: Tuple[VisitedPlace, ...], place_id: str) -> Tuple[VisitedPlace, ...]:
    return tuple(p for p in places if p.id != place_id)


class TripStore(ObservableState):
    persist_namespace = "odyssea-trips-v2"

    def __init__(
        self,
        trip_service: TripService,
        event_bus: Optional[EventBus] = None,
        storage: Optional[DuckDBKeyValueStorage] = None,
        sync_config: Optional[SyncConfig] = None,
    ):
        super().__init__(event_bus=event_bus, storage=storage)
        self.trip_service = trip_service
        self.sync_config = sync_config or SyncConfig()

        self._trips: Tuple[Trip, ...] = ()
        self._selected_trip_id: Optional[str] = None
        self._owner_id: Optional[str] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._is_loading = False
        # Bumped on every rebind/clear; results from older generations are dropped
        self._generation = 0

        self._pending: Dict[str, Dict[str, PendingMutation]] = {}
        self._failed: Dict[str, List[PendingMutation]] = {}
        self._write_states: Dict[str, WriteState] = {}
        self._place_index: Dict[str, str] = {}

    # --- Selectors (pure) ---

    @property
    def trips(self) -> Tuple[Trip, ...]:
        return self._trips

    @property
    def selected_trip_id(self) -> Optional[str]:
        return self._selected_trip_id

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def is_loading(self) -> bool:
        """True between binding an owner and the first snapshot."""
        return self._is_loading

    @property
    def is_bound(self) -> bool:
        return self._unsubscribe is not None

    def get_trip_by_id(self, trip_id: Optional[str]) -> Optional[Trip]:
        if not trip_id:
            return None
        for trip in self._trips:
            if trip.id == trip_id:
                return trip
        return None

    def find_trip_by_place_id(self, place_id: str) -> Optional[PlaceMatch]:
        trip = self.get_trip_by_id(self._place_index.get(place_id))
        if trip is None:
            return None
        place = trip.find_place(place_id)
        if place is None:
            return None
        return PlaceMatch(trip, place)

    def get_place_by_id(self, place_id: str) -> Optional[VisitedPlace]:
        match = self.find_trip_by_place_id(place_id)
        return match.place if match else None

    def write_state(self, trip_id: str) -> WriteState:
        return self._write_states.get(trip_id, COMMITTED)

    def pending_place_ids(self, trip_id: str) -> List[str]:
        return list(self._pending.get(trip_id, {}))

    # --- Selection ---

    def set_selected_trip(self, trip_id: Optional[str]) -> None:
        if trip_id == self._selected_trip_id:
            return
        self._selected_trip_id = trip_id
        self._notify(events.TOPIC_TRIP_SELECTED, events.create_trip_selected_event(trip_id))

    # --- Live subscription ---

    def init_user_trips(self, owner_id: str) -> None:
        """Bind the live trip query for ``owner_id``.

        Idempotent for the bound owner. Binding another owner tears the
        previous subscription down first and drops that owner's trips.
        """
        if owner_id == self._owner_id and self._unsubscribe is not None:
            logger.debug(f"Trips already bound for {owner_id}")
            return

        self._teardown()
        self._generation += 1
        generation = self._generation

        # Keep cached trips only when they belong to this owner
        cached = tuple(t for t in self._trips if t.owner_uid == owner_id)
        self._owner_id = owner_id
        self._is_loading = True
        self._set_trips(cached)
        if self._selected_trip_id and self.get_trip_by_id(self._selected_trip_id) is None:
            self._selected_trip_id = None
        self._notify()

        logger.info(f"Binding trips for {owner_id}")
        unsubscribe = self.trip_service.subscribe_user_trips(
            owner_id,
            lambda trips: self._on_snapshot(generation, trips),
        )
        if generation == self._generation:
            self._unsubscribe = unsubscribe
        else:
            unsubscribe()

    def _on_snapshot(self, generation: int, trips: List[Trip]) -> None:
        if generation != self._generation:
            logger.debug("Ignoring trips snapshot from a released subscription")
            return
        self._is_loading = False
        self._set_trips(tuple(self._apply_pending(trip) for trip in trips))
        self._notify(
            events.TOPIC_TRIPS_SNAPSHOT,
            events.create_trips_snapshot_event(self._owner_id, [t.id for t in self._trips]),
        )

    def _apply_pending(self, trip: Trip) -> Trip:
        pending = self._pending.get(trip.id)
        if not pending:
            return trip
        places = trip.places
        for mutation in pending.values():
            if trip.find_place(mutation.place.id) is None:
                places = places + (mutation.place,)
            else:
                places = _replace_place(places, mutation.place)
        return trip.model_copy(update={"places": places})

    def _set_trips(self, trips: Tuple[Trip, ...]) -> None:
        self._trips = trips
        index: Dict[str, str] = {}
        for trip in trips:
            for place in trip.places:
                index.setdefault(place.id, trip.id)
        self._place_index = index

    def _replace_trip(self, trip: Trip) -> None:
        self._set_trips(tuple(trip if t.id == trip.id else t for t in self._trips))

    def _teardown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._pending.clear()
        self._failed.clear()
        self._write_states.clear()

    def detach(self) -> None:
        """Release the subscription but keep the loaded trips (shutdown)."""
        self._teardown()
        self._generation += 1
        self._is_loading = False

    def clear(self) -> None:
        """Release the subscription and drop every trip (sign-out)."""
        previous = self._owner_id
        self._teardown()
        self._generation += 1
        self._owner_id = None
        self._is_loading = False
        self._selected_trip_id = None
        self._set_trips(())
        if previous is not None:
            logger.info(f"Cleared trips of {previous}")
        self._notify(events.TOPIC_TRIPS_SNAPSHOT, events.create_trips_snapshot_event(None, []))

    # --- Trip writes (round-trip, reflected by the next snapshot) ---

    async def add_trip(self, trip: Union[CreateTripInput, Mapping[str, Any]], owner_id: str) -> Trip:
        """Write a new trip document.

        The trip is not inserted locally; it appears with the next snapshot.

        Raises:
            ValidationError: If the form fields are invalid
            RemoteWriteError: If the trip document could not be written
        """
        if isinstance(trip, CreateTripInput):
            data = trip.model_copy(update={"owner_uid": owner_id})
        else:
            data = CreateTripInput.model_validate({**trip, "owner_uid": owner_id})
        try:
            return await self.trip_service.create_trip(data)
        except RemoteWriteError as e:
            logger.error(f"Failed to create trip '{data.title}': {e}")
            raise

    async def update_trip(self, trip_id: str, changes: Dict[str, Any]) -> None:
        """Merge editable trip fields remotely.

        Raises:
            ValueError: For fields that are not editable
            RemoteWriteError: If the write fails
        """
        try:
            await self.trip_service.update_trip(trip_id, changes)
        except RemoteWriteError as e:
            logger.error(f"Failed to update trip {trip_id}: {e}")
            raise

    async def upload_place_media(self, trip_id: str, data: bytes, extension: str = "jpg") -> str:
        """Upload a photo for a place of ``trip_id`` and return its URL.

        The URL goes into ``media_urls`` of the place passed to
        ``add_place_to_trip`` / ``update_place_in_trip``.

        Raises:
            UploadError: If the upload fails
        """
        try:
            return await self.trip_service.upload_place_media(trip_id, data, extension)
        except UploadError as e:
            logger.error(f"Failed to upload media for trip {trip_id}: {e}")
            raise

    # --- Optimistic place writes ---

    def add_place_to_trip(self, trip_id: str, place: VisitedPlace) -> Optional[asyncio.Task]:
        """Append ``place`` locally now and persist it in the background.

        Returns the persisting task, or None when the trip is not loaded.

        Raises:
            ValueError: If the trip already has a place with that id
        """
        trip = self.get_trip_by_id(trip_id)
        if trip is None:
            logger.warning(f"add_place_to_trip: trip {trip_id} is not loaded")
            return None
        if trip.find_place(place.id) is not None:
            raise ValueError(f"Trip {trip_id} already has a place with id {place.id}")

        self._replace_trip(trip.model_copy(update={"places": trip.places + (place,)}))
        self._pending.setdefault(trip_id, {})[place.id] = PendingMutation("add", place)
        return self._start_write(trip_id)

    def update_place_in_trip(self, trip_id: str, place_id: str, changes: Dict[str, Any]) -> Optional[asyncio.Task]:
        """Apply ``changes`` to one place locally and persist in the background.

        Raises:
            ValidationError: If the changed place is invalid
        """
        trip = self.get_trip_by_id(trip_id)
        current = trip.find_place(place_id) if trip else None
        if trip is None or current is None:
            logger.warning(f"update_place_in_trip: place {place_id} not found in trip {trip_id}")
            return None

        updated = VisitedPlace.model_validate({**current.model_dump(), **changes, "id": place_id})
        self._replace_trip(trip.model_copy(update={"places": _replace_place(trip.places, updated)}))

        pending = self._pending.setdefault(trip_id, {})
        earlier = pending.get(place_id)
        if earlier is None:
            pending[place_id] = PendingMutation("edit", updated, previous=current)
        else:
            # Still unconfirmed: keep the original operation and revert target
            pending[place_id] = PendingMutation(earlier.operation, updated, previous=earlier.previous)
        return self._start_write(trip_id)

    def retry_failed(self, trip_id: str) -> Optional[asyncio.Task]:
        """Re-apply and re-persist the mutations reverted by the last failure."""
        failed = self._failed.pop(trip_id, [])
        trip = self.get_trip_by_id(trip_id)
        if not failed or trip is None:
            return None

        places = trip.places
        pending = self._pending.setdefault(trip_id, {})
        for mutation in failed:
            if any(p.id == mutation.place.id for p in places):
                places = _replace_place(places, mutation.place)
            else:
                places = places + (mutation.place,)
            pending[mutation.place.id] = mutation
        self._replace_trip(trip.model_copy(update={"places": places}))
        logger.info(f"Retrying {len(failed)} failed place write(s) for trip {trip_id}")
        return self._start_write(trip_id)

    def _start_write(self, trip_id: str) -> asyncio.Task:
        self._set_write_state(trip_id, WriteState.pending())
        return self._spawn(self._persist_places(trip_id, self._generation), name=f"persist-places-{trip_id}")

    def _set_write_state(self, trip_id: str, state: WriteState) -> None:
        self._write_states[trip_id] = state
        self._notify(
            events.TOPIC_TRIP_WRITE_STATE,
            events.create_trip_write_state_event(trip_id, state.kind, state.reason),
        )

    async def _persist_places(self, trip_id: str, generation: int) -> None:
        delay = self.sync_config.write_retry_delay
        attempts = self.sync_config.write_max_retries + 1
        reason = "write failed"
        batch: Dict[str, PendingMutation] = {}
        trip_written = False

        for attempt in range(1, attempts + 1):
            if generation != self._generation:
                logger.debug(f"Dropping place write for trip {trip_id}: session changed")
                return
            trip = self.get_trip_by_id(trip_id)
            batch = dict(self._pending.get(trip_id, {}))
            if trip is None:
                logger.warning(f"Trip {trip_id} disappeared before its places were written")
                self._pending.pop(trip_id, None)
                self._write_states.pop(trip_id, None)
                return
            if not batch:
                return
            try:
                # Embedded list first: a failure here leaves the backend untouched
                await self.trip_service.save_trip_places(trip_id, trip.places)
                trip_written = True
                for mutation in batch.values():
                    await self.trip_service.save_place(trip_id, mutation.place)
            except RemoteWriteError as e:
                reason = e.reason
                logger.warning(f"Place write for trip {trip_id} failed (attempt {attempt}/{attempts}): {reason}")
                if attempt < attempts:
                    await asyncio.sleep(delay)
                    delay *= self.sync_config.retry_backoff
                continue
            self._commit(trip_id, generation, batch)
            return

        reverted = self._revert(trip_id, generation, batch, reason)
        if trip_written and reverted:
            await self._roll_back_remote(trip_id, reverted)

    def _commit(self, trip_id: str, generation: int, batch: Dict[str, PendingMutation]) -> None:
        if generation != self._generation:
            return
        pending = self._pending.get(trip_id, {})
        for place_id, mutation in batch.items():
            if pending.get(place_id) is mutation:
                del pending[place_id]
        if not pending:
            self._pending.pop(trip_id, None)
            self._set_write_state(trip_id, COMMITTED)
        logger.debug(f"Committed {len(batch)} place write(s) for trip {trip_id}")

    def _revert(
        self, trip_id: str, generation: int, batch: Dict[str, PendingMutation], reason: str
    ) -> List[PendingMutation]:
        if generation != self._generation:
            return []
        logger.error(f"Reverting {len(batch)} place write(s) for trip {trip_id}: {reason}")
        pending = self._pending.get(trip_id, {})
        reverted: List[PendingMutation] = []
        for place_id, mutation in batch.items():
            if pending.get(place_id) is not mutation:
                continue  # superseded by a newer edit, which has its own write
            del pending[place_id]
            reverted.append(mutation)
        if not pending:
            self._pending.pop(trip_id, None)

        trip = self.get_trip_by_id(trip_id)
        if trip is not None:
            places = trip.places
            for mutation in reverted:
                if mutation.previous is None:
                    places = _remove_place(places, mutation.place.id)
                else:
                    places = _replace_place(places, mutation.previous)
            self._replace_trip(trip.model_copy(update={"places": places}))

        self._failed.setdefault(trip_id, []).extend(reverted)
        self._set_write_state(trip_id, WriteState.failed(reason))
        for mutation in reverted:
            self.bus.publish_nowait(
                events.TOPIC_TRIP_WRITE_FAILED,
                events.create_trip_write_failed_event(trip_id, mutation.operation, reason, mutation.place.id),
            )
        return reverted

    async def _roll_back_remote(self, trip_id: str, reverted: List[PendingMutation]) -> None:
        """Undo a partially applied write so the backend matches the reverted trip."""
        trip = self.get_trip_by_id(trip_id)
        try:
            if trip is not None:
                await self.trip_service.save_trip_places(trip_id, trip.places)
            for mutation in reverted:
                if mutation.previous is None:
                    await self.trip_service.delete_place(trip_id, mutation.place.id)
                else:
                    await self.trip_service.save_place(trip_id, mutation.previous)
        except RemoteWriteError as e:
            logger.error(f"Could not roll back partial place write for trip {trip_id}: {e}")

    async def wait_for_pending_writes(self) -> None:
        await self.wait_for_tasks()

    # --- Persistence ---

    def partialize(self) -> Dict[str, Any]:
        return {
            "trips": [trip.to_document() for trip in self._trips],
            "selectedTripId": self._selected_trip_id,
        }

    def rehydrate(self, data: Dict[str, Any]) -> None:
        trips = []
        for raw in data.get("trips", []):
            try:
                trips.append(Trip.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping cached trip: {e.error_count()} validation error(s)")
        self._set_trips(tuple(trips))
        self._selected_trip_id = data.get("selectedTripId")
