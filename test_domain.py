"""Domain layer: document mapping, statistics and the remote-backed services."""

from datetime import date, datetime, timezone

import pytest

from odyssea.shared.core.errors import ProfileLoadError, RemoteWriteError
from odyssea.shared.domain.mapping import (
    place_from_document,
    profile_from_document,
    to_millis,
    trip_from_document,
)
from odyssea.shared.domain.models import (
    DEFAULT_COVER_PHOTO_URL,
    AuthUser,
    CreateTripInput,
    PlaceCategory,
    Trip,
    TripStatus,
    parse_tags,
)
from odyssea.shared.domain.profiles import UserProfileService
from odyssea.shared.domain.statistics import compute_trip_stats, summarize_trips
from odyssea.shared.domain.statistics.service import category_breakdown, visited_days
from odyssea.shared.domain.trips import TripService
from odyssea.shared.domain.trips.service import serialize_trip_changes
from odyssea.shared.infrastructure.remote import paths


def make_trip(trip_id="t1", places=(), **fields):
    values = {
        "id": trip_id,
        "title": "Bali",
        "destination": "Bali, ID",
        "start_date": date(2025, 8, 10),
        "end_date": date(2025, 8, 20),
        "places": tuple(places),
    }
    values.update(fields)
    return Trip(**values)


# --- Models ---


def test_tags_are_trimmed_and_deduplicated():
    assert parse_tags(" praia, sol,,praia , ") == ("praia", "sol")


def test_create_trip_input_validation():
    with pytest.raises(ValueError):
        CreateTripInput(owner_uid="u1", title="  ", destination="Bali", start_date="2025-08-10", end_date="2025-08-20")
    with pytest.raises(ValueError):
        CreateTripInput(
            owner_uid="u1", title="Bali", destination="Bali", start_date="2025-08-20", end_date="2025-08-10"
        )


def test_place_serializes_camel_case(make_place):
    doc = make_place("p1", media_urls=("https://cdn.test/a.jpg",)).to_document()
    assert doc["dateTime"] == "2025-08-11T10:00:00Z"
    assert doc["mediaUrls"] == ["https://cdn.test/a.jpg"]
    assert doc["location"]["address"] == "Tabanan, Bali"


# --- Mapping ---


def test_place_mapping_is_lenient():
    place = place_from_document("p1", {
        "name": "Warung",
        "category": "Bar",
        "rating": 7.6,
        "dateTime": "yesterday",
        "mediaUrls": ["https://cdn.test/a.jpg", 42, None],
        "tags": "not-a-list",
    })

    assert place.id == "p1"
    assert place.category == PlaceCategory.OUTRO
    assert place.rating == 5
    assert place.location.latitude == 0.0
    assert place.media_urls == ("https://cdn.test/a.jpg",)
    assert place.tags == ()
    # unparseable timestamps fall back to "now"
    assert place.visited_at.tzinfo is not None


def test_place_mapping_accepts_native_timestamps():
    moment = datetime(2025, 8, 11, 10, 0, tzinfo=timezone.utc)
    place = place_from_document("p1", {"dateTime": moment, "rating": "5"})
    assert place.date_time == "2025-08-11T10:00:00Z"
    assert place.rating == 0


def test_trip_mapping_drops_documents_with_bad_dates():
    assert trip_from_document("t1", {"title": "x", "startDate": "soon", "endDate": "2025-01-01"}) is None
    assert trip_from_document("t2", {"title": "x", "endDate": "2025-01-01"}) is None


def test_trip_mapping_defaults():
    trip = trip_from_document("t1", {
        "startDate": datetime(2025, 8, 10, tzinfo=timezone.utc),
        "endDate": "2025-08-20T00:00:00Z",
        "status": "Someday",
        "places": [{"id": "p1", "name": "Uluwatu"}, {"name": "no id"}, "garbage"],
        "ownerUid": "u1",
    })

    assert trip.start_date == date(2025, 8, 10)
    assert trip.end_date == date(2025, 8, 20)
    assert trip.status == TripStatus.UPCOMING
    assert trip.cover_photo_url == DEFAULT_COVER_PHOTO_URL
    assert [p.id for p in trip.places] == ["p1"]


def test_profile_mapping_falls_back_to_identity():
    identity = AuthUser(uid="u1", email="ana@example.com", display_name="Ana")
    profile = profile_from_document("u1", {"bio": "Viajante", "createdAt": 1700000000000}, identity=identity)

    assert profile.email == "ana@example.com"
    assert profile.display_name == "Ana"
    assert profile.created_at == 1700000000000


def test_to_millis():
    moment = datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert to_millis(moment) == 1735689600000
    assert to_millis("2025-01-01T00:00:00Z") == 1735689600000
    assert to_millis(None, default=7) == 7


# --- Statistics ---


def test_trip_stats(make_place):
    places = [
        make_place("p1", category=PlaceCategory.PRAIA, rating=5, media_urls=("a", "b")),
        make_place("p2", category=PlaceCategory.PRAIA, rating=0, date_time="2025-08-13T09:00:00Z"),
        make_place("p3", category=PlaceCategory.MUSEU, rating=3, date_time="2025-08-12T09:00:00Z"),
    ]
    stats = compute_trip_stats(make_trip(places=places))

    assert stats.total_places == 3
    assert stats.days == 3
    assert stats.average_per_day == 1.0
    # unrated places do not pull the average down
    assert stats.average_rating == 4.0
    assert stats.photo_count == 2
    assert stats.top_category == PlaceCategory.PRAIA
    assert [c.count for c in stats.categories] == [2, 1]


def test_trip_stats_without_places_uses_trip_dates():
    stats = compute_trip_stats(make_trip())
    assert stats.days == 11
    assert stats.average_per_day == 0.0
    assert stats.average_rating is None
    assert stats.top_category is None


def test_visited_days_is_at_least_one(make_place):
    trip = make_trip(start_date=date(2025, 8, 10), end_date=date(2025, 8, 10))
    assert visited_days(trip, []) == 1
    assert visited_days(trip, [make_place("p1")]) == 1


def test_category_breakdown_ties_follow_enum_order(make_place):
    breakdown = category_breakdown([
        make_place("p1", category=PlaceCategory.SHOPPING),
        make_place("p2", category=PlaceCategory.PASSEIO),
    ])
    assert [c.category for c in breakdown] == [PlaceCategory.PASSEIO, PlaceCategory.SHOPPING]
    assert breakdown[0].share == 0.5


def test_summarize_trips_prefers_live_places(make_place):
    trips = [
        make_trip("t1", places=[make_place("p1", rating=2)]),
        make_trip("t2", destination="Lisboa, PT", status=TripStatus.COMPLETED),
        make_trip("t3", status=TripStatus.COMPLETED),
    ]
    live = {"t1": [make_place("p1", rating=4), make_place("p2", category=PlaceCategory.HOTEL, rating=5)]}

    summary = summarize_trips(trips, live)

    assert summary.total_trips == 3
    assert summary.total_places == 2
    assert summary.average_rating == 4.5
    assert summary.destinations == ("Bali, ID", "Lisboa, PT")
    assert summary.trips_by_status[TripStatus.COMPLETED] == 2
    assert summary.trips_by_status[TripStatus.CURRENT] == 0


# --- Trip service ---


@pytest.mark.asyncio
async def test_create_trip_writes_document(remote):
    service = TripService(remote)
    trip = await service.create_trip(CreateTripInput(
        owner_uid="u1",
        title=" Bali ",
        destination="Bali, ID",
        start_date="2025-08-10",
        end_date="2025-08-20",
        tags=["praia", "praia", " sol "],
        cover_image=b"jpeg",
    ))

    assert trip.title == "Bali"
    assert trip.tags == ("praia", "sol")
    assert trip.cover_photo_url.startswith("memory://odyssea-local/tripCovers/u1/cover-")
    doc = remote.documents(paths.TRIPS)[trip.id]
    assert "id" not in doc
    assert doc["ownerUid"] == "u1"
    assert doc["places"] == []
    assert isinstance(doc["createdAt"], datetime)


@pytest.mark.asyncio
async def test_create_trip_keeps_default_cover_when_upload_fails(remote):
    remote.fail_next_uploads(1)
    trip = await TripService(remote).create_trip(CreateTripInput(
        owner_uid="u1",
        title="Bali",
        destination="Bali, ID",
        start_date="2025-08-10",
        end_date="2025-08-20",
        cover_image=b"jpeg",
    ))
    assert trip.cover_photo_url == DEFAULT_COVER_PHOTO_URL
    assert trip.id in remote.documents(paths.TRIPS)


@pytest.mark.asyncio
async def test_create_trip_write_failure_propagates(remote):
    remote.fail_next_writes(1)
    with pytest.raises(RemoteWriteError):
        await TripService(remote).create_trip(CreateTripInput(
            owner_uid="u1", title="Bali", destination="Bali", start_date="2025-08-10", end_date="2025-08-20"
        ))


def test_serialize_trip_changes():
    payload = serialize_trip_changes({
        "start_date": date(2025, 9, 1),
        "status": "Completed",
        "tags": [" praia ", "praia"],
    })
    assert payload == {"startDate": "2025-09-01", "status": "Completed", "tags": ["praia"]}

    with pytest.raises(ValueError):
        serialize_trip_changes({"owner_uid": "u2"})


# --- Profile service ---


@pytest.mark.asyncio
async def test_get_or_create_profile(remote):
    service = UserProfileService(remote)
    user = AuthUser(uid="u1", email="ana@example.com", display_name="Ana")

    created = await service.get_or_create(user)
    assert created.display_name == "Ana"
    assert created.home_country == ""
    assert "avatarUrl" not in remote.documents(paths.USERS)["u1"]

    writes = len(remote.writes)
    again = await service.get_or_create(user)
    assert again.uid == "u1"
    assert len(remote.writes) == writes


@pytest.mark.asyncio
async def test_get_or_create_profile_read_failure(remote):
    remote.fail_next_reads(1)
    with pytest.raises(ProfileLoadError):
        await UserProfileService(remote).get_or_create(AuthUser(uid="u1"))


@pytest.mark.asyncio
async def test_profile_update_returns_server_copy(remote):
    service = UserProfileService(remote)
    await service.get_or_create(AuthUser(uid="u1", display_name="Ana"))

    profile = await service.update("u1", {"bio": "  Viajante ", "home_country": "Brasil"})
    assert profile.bio == "Viajante"
    assert profile.home_country == "Brasil"

    with pytest.raises(ValueError):
        await service.update("u1", {"uid": "u2"})
