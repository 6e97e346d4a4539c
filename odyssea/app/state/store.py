"""Store container.

Builds every store with its dependencies injected and wires the session
flow between them. There is no global instance: the application (or a
test) creates one ``Store`` and passes it to whatever needs it.

Usage:
    store = Store.from_config(load_config())
    store.start()
    ...
    await store.aclose()
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from odyssea.shared.core import events
from odyssea.shared.core.configuration import SystemConfig
from odyssea.shared.core.event_bus import EventBus, EventPayload
from odyssea.shared.core.service_registry import register_cleanup_handler, unregister_cleanup_handler
from odyssea.shared.domain.models import AuthStatus
from odyssea.shared.domain.notes import TripNotesService
from odyssea.shared.domain.places import PlacesService
from odyssea.shared.domain.profiles import UserProfileService
from odyssea.shared.domain.trips import TripService
from odyssea.shared.infrastructure.identity.base import IdentityProvider
from odyssea.shared.infrastructure.persistence.kv_storage import DuckDBKeyValueStorage
from odyssea.shared.infrastructure.remote.base import RemoteCollectionClient

from .auth_store import AuthStore
from .notes_store import TripNotesStore
from .places_store import PlacesStore
from .profile_store import UserProfileStore
from .theme_store import ThemeStore
from .trip_store import TripStore

logger = logging.getLogger(__name__)


class Store:
    """Owns the stores of one application session."""

    def __init__(
        self,
        remote: RemoteCollectionClient,
        identity: IdentityProvider,
        storage: Optional[DuckDBKeyValueStorage] = None,
        event_bus: Optional[EventBus] = None,
        config: Optional[SystemConfig] = None,
    ) -> None:
        self.config = config or SystemConfig()
        self.remote = remote
        self.identity = identity
        self.storage = storage
        self.bus = event_bus or EventBus()

        self.trip_service = TripService(remote)
        self.places_service = PlacesService(remote)
        self.profile_service = UserProfileService(remote)
        self.notes_service = TripNotesService(remote)

        self.profile = UserProfileStore(self.profile_service, self.bus, storage)
        self.auth = AuthStore(identity, self.profile, self.bus, storage)
        self.trips = TripStore(self.trip_service, self.bus, storage, self.config.sync)
        self.places = PlacesStore(self.places_service, self.bus)
        self.notes = TripNotesStore(self.notes_service, self.bus)
        self.theme = ThemeStore(self.bus, storage, default_mode=self.config.ui.theme_mode)

        self._session_uid: Optional[str] = None
        self._started = False
        self._closed = False
        self.auth.subscribe(self._on_session_changed)

    @classmethod
    def from_config(cls, config: SystemConfig, project_root: Optional[Path] = None) -> "Store":
        """Build remote, identity and local storage from configuration."""
        remote_config = config.remote
        if remote_config.backend == "firebase":
            from odyssea.shared.infrastructure.identity.rest_provider import IdentityToolkitProvider
            from odyssea.shared.infrastructure.remote.firestore_client import FirestoreRemoteClient

            remote: RemoteCollectionClient = FirestoreRemoteClient.from_config(remote_config)
            identity: IdentityProvider = IdentityToolkitProvider.from_config(remote_config)
        else:
            from odyssea.shared.infrastructure.identity.memory_provider import InMemoryIdentityProvider
            from odyssea.shared.infrastructure.remote.memory_client import InMemoryRemoteClient

            remote = InMemoryRemoteClient()
            identity = InMemoryIdentityProvider()

        storage = None
        if config.persistence.enabled:
            db_path = Path(config.persistence.db_path)
            if project_root is not None and not db_path.is_absolute():
                db_path = Path(project_root) / db_path
            storage = DuckDBKeyValueStorage(str(db_path)).open()

        logger.info(f"Store configured with '{remote_config.backend}' backend")
        return cls(remote, identity, storage=storage, config=config)

    # --- Session wiring ---

    def _on_session_changed(self) -> None:
        status = self.auth.status
        user = self.auth.user
        if status == AuthStatus.AUTHENTICATED and user is not None:
            if user.uid != self._session_uid:
                if self._session_uid is not None:
                    self._release_session()
                self._session_uid = user.uid
                self.trips.init_user_trips(user.uid)
        elif status == AuthStatus.UNAUTHENTICATED and (self._session_uid is not None or self.trips.trips):
            self._release_session()

    def _release_session(self) -> None:
        logger.info(f"Releasing session data of {self._session_uid}")
        self._session_uid = None
        self.trips.clear()
        self.places.clear_all()
        self.notes.clear_all()

    async def _on_trips_snapshot(self, payload: EventPayload) -> None:
        """Release place and journal bindings of trips that left the owner's list."""
        if self.trips.owner_id is None:
            return
        # The payload may be stale by now; the store holds the current list
        current = {trip.id for trip in self.trips.trips}
        for trip_id in self.places.bound_trip_ids:
            if trip_id not in current:
                logger.info(f"Trip {trip_id} is gone; releasing its places")
                self.places.clear_trip_places(trip_id)
        for trip_id in self.notes.bound_trip_ids:
            if trip_id not in current:
                self.notes.clear_trip_notes(trip_id)

    # --- Lifecycle ---

    def start(self) -> None:
        """Rehydrate cached state and start following the identity provider."""
        if self._started:
            return
        self._started = True
        for store in (self.theme, self.auth, self.profile, self.trips):
            store.hydrate()
        self.bus.add_handler(events.TOPIC_TRIPS_SNAPSHOT, self._on_trips_snapshot)
        self.auth.init_listener()
        register_cleanup_handler(self.close)
        logger.info("Store started")

    def close(self) -> None:
        """Release subscriptions and local resources. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        unregister_cleanup_handler(self.close)
        self.bus.remove_handler(events.TOPIC_TRIPS_SNAPSHOT, self._on_trips_snapshot)
        self.auth.dispose()
        self.trips.detach()
        self.places.clear_all()
        self.notes.clear_all()
        self.remote.close()
        if self.storage is not None:
            self.storage.close()
        logger.info("Store closed")

    async def aclose(self) -> None:
        """Close, then release the identity provider's async resources."""
        self.close()
        await self.identity.aclose()

    async def wait_until_idle(self, timeout: float = 10.0) -> bool:
        """Wait for background store tasks and event handlers to finish."""
        stores = (self.auth, self.profile, self.trips, self.places, self.notes, self.theme)
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        # A finished task may have started another in a different store
        while any(store.has_pending_tasks for store in stores):
            if loop.time() - start_time > timeout:
                logger.warning(f"Store tasks still running after {timeout}s")
                return False
            for store in stores:
                await store.wait_for_tasks()
            await asyncio.sleep(0)
        return await self.bus.wait_until_idle(timeout)
