"""Shared pytest fixtures: in-memory backend, identity, cache and factories."""

import logging

import pytest

from odyssea.shared.core.configuration import SyncConfig
from odyssea.shared.core.event_bus import EventBus
from odyssea.shared.domain.models import GeoLocation, PlaceCategory, VisitedPlace
from odyssea.shared.infrastructure.identity.memory_provider import InMemoryIdentityProvider
from odyssea.shared.infrastructure.persistence.kv_storage import DuckDBKeyValueStorage
from odyssea.shared.infrastructure.remote import paths
from odyssea.shared.infrastructure.remote.memory_client import InMemoryRemoteClient

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def remote():
    """Backend that delivers snapshots synchronously."""
    return InMemoryRemoteClient()


@pytest.fixture
def manual_remote():
    """Backend that queues snapshots until ``flush()``."""
    return InMemoryRemoteClient(delivery="manual")


@pytest.fixture
def identity():
    return InMemoryIdentityProvider()


@pytest.fixture
def storage():
    kv = DuckDBKeyValueStorage(":memory:").open()
    yield kv
    kv.close()


@pytest.fixture
def fast_sync():
    """Two retries without waiting between them."""
    return SyncConfig(write_max_retries=2, write_retry_delay=0.0, retry_backoff=1.0)


@pytest.fixture
def make_place():
    def factory(place_id="place-1", name="Tanah Lot", **overrides):
        fields = {
            "id": place_id,
            "name": name,
            "category": PlaceCategory.PASSEIO,
            "location": GeoLocation(latitude=-8.62, longitude=115.09, address="Tabanan, Bali"),
            "date_time": "2025-08-11T10:00:00Z",
            "rating": 4,
        }
        fields.update(overrides)
        return VisitedPlace(**fields)

    return factory


@pytest.fixture
def seed_trip():
    """Write a trip document straight into a remote client."""

    async def factory(client, trip_id, owner_uid, places=(), **fields):
        doc = {
            "title": "Bali",
            "destination": "Bali, ID",
            "startDate": "2025-08-10",
            "endDate": "2025-08-20",
            "tags": ["praia"],
            "status": "Upcoming",
            "ownerUid": owner_uid,
            "places": [place.to_document() for place in places],
        }
        doc.update(fields)
        await client.write(paths.trip_doc(trip_id), doc, merge=False)
        return doc

    return factory
