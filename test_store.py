"""Store container: session wiring between auth, trips, places and profile."""

import logging

import pytest

from odyssea import Store
from odyssea.app.main import bootstrap
from odyssea.shared.core import events
from odyssea.shared.core.configuration import ENV_MAP, PersistenceConfig, RemoteConfig, SystemConfig
from odyssea.shared.domain.models import AuthStatus
from odyssea.shared.infrastructure.identity.memory_provider import InMemoryIdentityProvider
from odyssea.shared.infrastructure.remote import paths
from odyssea.shared.infrastructure.remote.memory_client import InMemoryRemoteClient


@pytest.fixture
def app(remote, identity, storage, bus):
    store = Store(remote, identity, storage=storage, event_bus=bus)
    yield store
    store.close()


@pytest.mark.asyncio
async def test_sign_in_binds_trips_and_sign_out_releases_everything(app, remote, identity, seed_trip):
    user = identity.add_account("ana@example.com", "secret123", display_name="Ana")
    await seed_trip(remote, "t1", user.uid)
    app.start()
    assert app.auth.status == AuthStatus.UNAUTHENTICATED

    assert await app.auth.sign_in("ana@example.com", "secret123")
    assert [t.id for t in app.trips.trips] == ["t1"]
    app.places.bind_trip_places("t1")
    assert remote.active_subscription_count == 2

    await app.auth.sign_out()

    assert app.trips.trips == ()
    assert app.places.get_places_for_trip("t1") == ()
    assert app.profile.profile is None
    assert remote.active_subscription_count == 0


@pytest.mark.asyncio
async def test_sign_out_releases_journal_subscriptions(app, remote, identity, seed_trip):
    user = identity.add_account("ana@example.com", "secret123")
    await seed_trip(remote, "t1", user.uid)
    app.start()
    await app.auth.sign_in("ana@example.com", "secret123")
    app.notes.bind_trip_notes("t1")
    assert remote.active_subscriptions_for(paths.checklist_col("t1")) == 1

    await app.auth.sign_out()

    assert app.notes.bound_trip_ids == []
    assert remote.active_subscription_count == 0


@pytest.mark.asyncio
async def test_bindings_of_trips_leaving_the_list_are_released(app, remote, identity, seed_trip):
    user = identity.add_account("ana@example.com", "secret123")
    await seed_trip(remote, "t1", user.uid)
    await seed_trip(remote, "t2", user.uid)
    app.start()
    await app.auth.sign_in("ana@example.com", "secret123")
    app.places.bind_trip_places("t1")
    app.places.bind_trip_places("t2")
    app.notes.bind_trip_notes("t2")

    # Handed over to another account, so t2 drops out of the owner query
    await remote.write(paths.trip_doc("t2"), {"ownerUid": "someone-else"})
    await app.wait_until_idle()

    assert [t.id for t in app.trips.trips] == ["t1"]
    assert app.places.bound_trip_ids == ["t1"]
    assert not app.notes.is_bound("t2")
    assert remote.active_subscriptions_for(paths.places_col("t2")) == 0
    assert remote.active_subscriptions_for(paths.notes_col("t2")) == 0
    assert remote.active_subscriptions_for(paths.places_col("t1")) == 1


@pytest.mark.asyncio
async def test_switching_accounts_never_mixes_trips(app, remote, identity, seed_trip):
    ana = identity.add_account("ana@example.com", "secret123")
    bia = identity.add_account("bia@example.com", "secret456")
    await seed_trip(remote, "t-ana", ana.uid)
    await seed_trip(remote, "t-bia", bia.uid)
    app.start()

    await app.auth.sign_in("ana@example.com", "secret123")
    assert [t.id for t in app.trips.trips] == ["t-ana"]

    await app.auth.sign_in("bia@example.com", "secret456")
    assert [t.id for t in app.trips.trips] == ["t-bia"]
    assert remote.active_subscriptions_for(paths.trips_col()) == 1


@pytest.mark.asyncio
async def test_create_trip_then_add_place_end_to_end(app, identity, make_place):
    identity.add_account("ana@example.com", "secret123")
    app.start()
    await app.auth.sign_in("ana@example.com", "secret123")

    trip = await app.trips.add_trip(
        {
            "title": "Bali",
            "destination": "Bali, ID",
            "start_date": "2025-08-10",
            "end_date": "2025-08-20",
            "tags": ["praia"],
        },
        app.auth.user.uid,
    )
    assert len(app.trips.trips) == 1

    await app.trips.add_place_to_trip(trip.id, make_place("p-uluwatu", "Uluwatu", rating=5))
    await app.wait_until_idle()

    assert [p.name for p in app.trips.get_trip_by_id(trip.id).places] == ["Uluwatu"]


@pytest.mark.asyncio
async def test_session_events_are_published(app, bus, identity):
    identity.add_account("ana@example.com", "secret123")
    statuses = []
    cleared = []

    async def on_status(payload):
        statuses.append(payload["status"])

    async def on_cleared(payload):
        cleared.append(payload)

    await bus.subscribe(events.TOPIC_AUTH_STATUS, on_status)
    await bus.subscribe(events.TOPIC_SESSION_CLEARED, on_cleared)
    app.start()

    await app.auth.sign_in("ana@example.com", "secret123")
    await app.auth.sign_out()
    await app.wait_until_idle()

    assert statuses == ["checking", "unauthenticated", "checking", "authenticated", "unauthenticated"]
    assert len(cleared) == 1


@pytest.mark.asyncio
async def test_cached_state_is_rehydrated_on_start(remote, identity, storage):
    first = Store(remote, identity, storage=storage)
    first.theme.set_mode("dark")
    first.trips.set_selected_trip("t1")

    second = Store(remote, InMemoryIdentityProvider(), storage=storage)
    second.theme.hydrate()
    assert second.theme.mode == "dark"
    second.trips.hydrate()
    assert second.trips.selected_trip_id == "t1"


@pytest.mark.asyncio
async def test_close_is_idempotent(remote, identity):
    store = Store(remote, identity)
    store.start()
    store.places.bind_trip_places("t1")

    store.close()
    store.close()

    assert remote.active_subscription_count == 0


def test_from_config_builds_memory_backend(tmp_path):
    config = SystemConfig(
        remote=RemoteConfig(backend="memory"),
        persistence=PersistenceConfig(enabled=True, db_path="cache/app.duckdb"),
    )
    store = Store.from_config(config, project_root=tmp_path)
    try:
        assert isinstance(store.remote, InMemoryRemoteClient)
        assert isinstance(store.identity, InMemoryIdentityProvider)
        assert store.storage is not None
        assert (tmp_path / "cache" / "app.duckdb").exists()
    finally:
        store.close()


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_bootstrap_resolves_paths_under_project_root(tmp_path, monkeypatch, restore_root_logging):
    for key in ENV_MAP:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ODYSSEA_THEME_MODE", "dark")

    store = bootstrap(tmp_path)
    try:
        assert isinstance(store.remote, InMemoryRemoteClient)
        assert store.theme.mode == "dark"
        assert (tmp_path / "data" / "odyssea_cache.duckdb").exists()
        assert (tmp_path / "data" / "logs" / "odyssea.log").exists()
    finally:
        store.close()
