"""Trip store: live owner binding, round-trip trip writes, optimistic places."""

from datetime import date

import pytest

from odyssea.app.state.places_store import PlacesStore
from odyssea.app.state.trip_store import TripStore
from odyssea.shared.core import events
from odyssea.shared.core.errors import RemoteWriteError, UploadError
from odyssea.shared.domain.models import PlaceCategory, TripStatus
from odyssea.shared.domain.places import PlacesService
from odyssea.shared.domain.trips import TripService
from odyssea.shared.infrastructure.remote import paths
from odyssea.shared.infrastructure.remote.memory_client import InMemoryRemoteClient


def make_store(remote, bus=None, storage=None, sync=None):
    return TripStore(TripService(remote), event_bus=bus, storage=storage, sync_config=sync)


class RejectingRemote(InMemoryRemoteClient):
    """Rejects every write matching ``rejects(path, payload)`` once it is set."""

    rejects = None

    async def write(self, path, payload, merge=True):
        if self.rejects is not None and self.rejects(path, payload):
            raise RemoteWriteError(path, "permission-denied")
        await super().write(path, payload, merge)


@pytest.mark.asyncio
async def test_init_user_trips_binds_one_subscription(remote, seed_trip):
    await seed_trip(remote, "t-late", "u1", title="Late", startDate="2025-12-01", endDate="2025-12-05")
    await seed_trip(remote, "t-early", "u1", title="Early", startDate="2025-03-01", endDate="2025-03-05")
    await seed_trip(remote, "t-other", "u2")
    store = make_store(remote)

    store.init_user_trips("u1")
    store.init_user_trips("u1")

    assert [t.id for t in store.trips] == ["t-early", "t-late"]
    assert remote.subscribe_calls == 1
    assert remote.active_subscriptions_for(paths.trips_col()) == 1
    assert not store.is_loading


@pytest.mark.asyncio
async def test_rebinding_other_owner_tears_down_previous(remote, seed_trip):
    await seed_trip(remote, "t1", "u1")
    await seed_trip(remote, "t2", "u2")
    store = make_store(remote)

    store.init_user_trips("u1")
    store.init_user_trips("u2")

    assert [t.id for t in store.trips] == ["t2"]
    assert remote.active_subscriptions_for(paths.trips_col()) == 1

    # A change to the first owner's trips no longer reaches the store
    await remote.write(paths.trip_doc("t1"), {"title": "Changed"})
    assert [t.id for t in store.trips] == ["t2"]


@pytest.mark.asyncio
async def test_add_trip_appears_only_after_snapshot(manual_remote):
    store = make_store(manual_remote)
    store.init_user_trips("u1")
    manual_remote.flush()

    trip = await store.add_trip(
        {
            "title": "Bali",
            "destination": "Bali, ID",
            "start_date": "2025-08-10",
            "end_date": "2025-08-20",
            "tags": ["praia"],
        },
        "u1",
    )

    # Not spliced in locally
    assert store.trips == ()
    assert store.get_trip_by_id(trip.id) is None

    manual_remote.flush()

    assert len(store.trips) == 1
    loaded = store.get_trip_by_id(trip.id)
    assert loaded.title == "Bali"
    assert loaded.destination == "Bali, ID"
    assert loaded.start_date == date(2025, 8, 10)
    assert loaded.end_date == date(2025, 8, 20)
    assert loaded.tags == ("praia",)
    assert loaded.status == TripStatus.UPCOMING
    assert loaded.owner_uid == "u1"


@pytest.mark.asyncio
async def test_add_trip_rejects_invalid_dates(remote):
    store = make_store(remote)
    with pytest.raises(ValueError):
        await store.add_trip(
            {"title": "Bali", "destination": "Bali", "start_date": "2025-08-20", "end_date": "2025-08-10"},
            "u1",
        )
    assert remote.writes == []


@pytest.mark.asyncio
async def test_add_trip_write_failure_propagates(remote):
    store = make_store(remote)
    remote.fail_next_writes(1)
    with pytest.raises(RemoteWriteError):
        await store.add_trip(
            {"title": "Bali", "destination": "Bali", "start_date": "2025-08-10", "end_date": "2025-08-20"},
            "u1",
        )


@pytest.mark.asyncio
async def test_add_place_is_optimistic_and_not_duplicated(remote, seed_trip, make_place):
    await seed_trip(remote, "t1", "u1", places=[make_place("p-tanah")])
    store = make_store(remote)
    store.init_user_trips("u1")

    remote.pause_writes()
    uluwatu = make_place("p-uluwatu", "Uluwatu", category=PlaceCategory.PASSEIO, rating=5)
    task = store.add_place_to_trip("t1", uluwatu)

    # Visible before the write resolves
    assert len(store.get_trip_by_id("t1").places) == 2
    match = store.find_trip_by_place_id("p-uluwatu")
    assert match.trip.id == "t1"
    assert match.place == uluwatu
    assert store.write_state("t1").is_pending

    remote.resume_writes()
    await task

    places = store.get_trip_by_id("t1").places
    assert [p.id for p in places] == ["p-tanah", "p-uluwatu"]
    assert store.write_state("t1").kind == "committed"
    assert len(remote.documents(paths.trips_col())["t1"]["places"]) == 2
    assert "p-uluwatu" in remote.documents(paths.places_col("t1"))


@pytest.mark.asyncio
async def test_pending_place_survives_intervening_snapshot(manual_remote, seed_trip, make_place):
    await seed_trip(manual_remote, "t1", "u1", places=[make_place("p-tanah")])
    store = make_store(manual_remote)
    store.init_user_trips("u1")
    manual_remote.flush()

    # Another device renames the trip; its snapshot is queued
    await manual_remote.write(paths.trip_doc("t1"), {"title": "Bali 2025"})
    task = store.add_place_to_trip("t1", make_place("p-uluwatu", "Uluwatu"))

    manual_remote.flush()
    trip = store.get_trip_by_id("t1")
    assert trip.title == "Bali 2025"
    assert [p.id for p in trip.places] == ["p-tanah", "p-uluwatu"]

    await task
    manual_remote.flush()
    assert [p.id for p in store.get_trip_by_id("t1").places] == ["p-tanah", "p-uluwatu"]
    assert store.pending_place_ids("t1") == []


@pytest.mark.asyncio
async def test_transient_failure_is_retried(remote, seed_trip, make_place, fast_sync):
    await seed_trip(remote, "t1", "u1")
    store = make_store(remote, sync=fast_sync)
    store.init_user_trips("u1")

    remote.fail_next_writes(1)
    await store.add_place_to_trip("t1", make_place("p1"))

    assert [p.id for p in store.get_trip_by_id("t1").places] == ["p1"]
    assert store.write_state("t1").kind == "committed"


@pytest.mark.asyncio
async def test_terminal_failure_reverts_and_reports(remote, bus, seed_trip, make_place, fast_sync):
    await seed_trip(remote, "t1", "u1", places=[make_place("p-tanah")])
    store = make_store(remote, bus=bus, sync=fast_sync)
    store.init_user_trips("u1")

    failures = []

    async def on_failed(payload):
        failures.append(payload)

    await bus.subscribe(events.TOPIC_TRIP_WRITE_FAILED, on_failed)

    remote.fail_next_writes(3, "permission-denied")
    await store.add_place_to_trip("t1", make_place("p-new"))
    await bus.wait_until_idle()

    assert [p.id for p in store.get_trip_by_id("t1").places] == ["p-tanah"]
    assert store.find_trip_by_place_id("p-new") is None
    state = store.write_state("t1")
    assert state.is_failed
    assert state.reason == "permission-denied"
    assert failures == [
        {"trip_id": "t1", "operation": "add", "reason": "permission-denied", "place_id": "p-new"}
    ]

    await store.retry_failed("t1")
    assert [p.id for p in store.get_trip_by_id("t1").places] == ["p-tanah", "p-new"]
    assert store.write_state("t1").kind == "committed"


@pytest.mark.asyncio
async def test_update_place_in_trip_reverts_edit_on_failure(remote, seed_trip, make_place, fast_sync):
    await seed_trip(remote, "t1", "u1", places=[make_place("p1", rating=3)])
    store = make_store(remote, sync=fast_sync)
    store.init_user_trips("u1")

    await store.update_place_in_trip("t1", "p1", {"rating": 5, "notes": "Sunset"})
    assert store.get_place_by_id("p1").rating == 5
    assert remote.documents(paths.places_col("t1"))["p1"]["notes"] == "Sunset"

    remote.fail_next_writes(3)
    await store.update_place_in_trip("t1", "p1", {"rating": 1})
    assert store.get_place_by_id("p1").rating == 5
    assert store.write_state("t1").is_failed


@pytest.mark.asyncio
async def test_add_place_rejects_duplicates_and_unknown_trips(remote, seed_trip, make_place):
    await seed_trip(remote, "t1", "u1", places=[make_place("p1")])
    store = make_store(remote)
    store.init_user_trips("u1")

    assert store.add_place_to_trip("missing", make_place("p2")) is None
    with pytest.raises(ValueError):
        store.add_place_to_trip("t1", make_place("p1"))


@pytest.mark.asyncio
async def test_lookups_are_pure(remote, seed_trip, make_place):
    await seed_trip(remote, "t1", "u1", places=[make_place("p1")])
    store = make_store(remote)
    store.init_user_trips("u1")
    version = store.version
    trips = store.trips

    assert store.find_trip_by_place_id("nope") is None
    assert store.get_trip_by_id("nope") is None
    assert store.find_trip_by_place_id("p1").trip.id == "t1"
    assert store.version == version
    assert store.trips is trips


@pytest.mark.asyncio
async def test_clear_drops_trips_and_subscription(remote, seed_trip):
    await seed_trip(remote, "t1", "u1")
    store = make_store(remote)
    store.init_user_trips("u1")
    store.set_selected_trip("t1")

    store.clear()

    assert store.trips == ()
    assert store.selected_trip_id is None
    assert remote.active_subscription_count == 0


@pytest.mark.asyncio
async def test_write_finishing_after_clear_does_not_touch_state(remote, seed_trip, make_place, fast_sync):
    await seed_trip(remote, "t1", "u1")
    store = make_store(remote, sync=fast_sync)
    store.init_user_trips("u1")

    remote.pause_writes()
    task = store.add_place_to_trip("t1", make_place("p1"))
    store.clear()
    remote.resume_writes()
    await task

    assert store.trips == ()
    assert store.write_state("t1").kind == "committed"


@pytest.mark.asyncio
async def test_update_trip_is_reflected_by_snapshot(remote, seed_trip):
    await seed_trip(remote, "t1", "u1")
    store = make_store(remote)
    store.init_user_trips("u1")

    await store.update_trip("t1", {"status": TripStatus.COMPLETED, "tags": ["praia", " sol ", "praia"]})

    trip = store.get_trip_by_id("t1")
    assert trip.status == TripStatus.COMPLETED
    assert trip.tags == ("praia", "sol")
    with pytest.raises(ValueError):
        await store.update_trip("t1", {"owner_uid": "u2"})


@pytest.mark.asyncio
async def test_trips_and_selection_are_cached(remote, storage, seed_trip, make_place):
    await seed_trip(remote, "t1", "u1", places=[make_place("p1")])
    store = make_store(remote, storage=storage)
    store.init_user_trips("u1")
    store.set_selected_trip("t1")

    restored = make_store(remote, storage=storage)
    assert restored.hydrate()

    assert restored.selected_trip_id == "t1"
    assert restored.get_trip_by_id("t1").places[0].id == "p1"
    assert restored.find_trip_by_place_id("p1").trip.id == "t1"


@pytest.mark.asyncio
async def test_place_media_upload_then_add(remote, seed_trip, make_place):
    await seed_trip(remote, "t1", "u1")
    store = make_store(remote)
    store.init_user_trips("u1")

    url = await store.upload_place_media("t1", b"jpeg")
    assert url.startswith("memory://odyssea-local/placeMedia/t1/media-")

    await store.add_place_to_trip("t1", make_place("p1", media_urls=(url,)))
    assert store.get_place_by_id("p1").media_urls == (url,)

    remote.fail_next_uploads(1)
    with pytest.raises(UploadError):
        await store.upload_place_media("t1", b"png", extension="png")


@pytest.mark.asyncio
async def test_rejected_trip_document_leaves_no_place_document(seed_trip, make_place, fast_sync):
    remote = RejectingRemote()
    await seed_trip(remote, "t1", "u1")
    store = make_store(remote, sync=fast_sync)
    store.init_user_trips("u1")
    live = PlacesStore(PlacesService(remote))
    live.bind_trip_places("t1")

    remote.rejects = lambda path, payload: path == paths.trip_doc("t1") and "places" in payload
    await store.add_place_to_trip("t1", make_place("p-new"))

    assert store.write_state("t1").is_failed
    assert store.get_trip_by_id("t1").places == ()
    assert live.get_places_for_trip("t1") == ()
    assert remote.documents(paths.places_col("t1")) == {}


@pytest.mark.asyncio
async def test_partial_place_write_is_rolled_back(seed_trip, make_place, fast_sync):
    remote = RejectingRemote()
    await seed_trip(remote, "t1", "u1", places=[make_place("p-tanah")])
    store = make_store(remote, sync=fast_sync)
    store.init_user_trips("u1")

    # The embedded list is accepted, the sub-collection document is not
    remote.rejects = lambda path, payload: path == paths.place_doc("t1", "p-new")
    await store.add_place_to_trip("t1", make_place("p-new"))

    assert store.write_state("t1").is_failed
    assert [p.id for p in store.get_trip_by_id("t1").places] == ["p-tanah"]
    remote_places = remote.documents(paths.trips_col())["t1"]["places"]
    assert [p["id"] for p in remote_places] == ["p-tanah"]
    assert "p-new" not in remote.documents(paths.places_col("t1"))
    assert [w.kind for w in remote.writes if w.path == paths.place_doc("t1", "p-new")] == ["delete"]
