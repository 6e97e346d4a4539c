"""Aggregated trip statistics for the stats screens."""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from odyssea.shared.domain.models import PlaceCategory, Trip, TripStatus, VisitedPlace

CATEGORY_COLORS: Dict[PlaceCategory, str] = {
    PlaceCategory.PASSEIO: "#F59E0B",
    PlaceCategory.RESTAURANTE: "#EF4444",
    PlaceCategory.PRAIA: "#E07A5F",
    PlaceCategory.HOTEL: "#6366F1",
    PlaceCategory.TRANSPORTE: "#0EA5E9",
    PlaceCategory.MIRANTE: "#22C55E",
    PlaceCategory.MUSEU: "#EC4899",
    PlaceCategory.SHOPPING: "#8B5CF6",
    PlaceCategory.OUTRO: "#6B7280",
}

SECONDS_PER_DAY = 60 * 60 * 24


class CategoryStat(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: PlaceCategory
    count: int
    color: str
    share: float


class TripStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    trip_id: str
    total_places: int
    days: int
    average_per_day: float
    average_rating: Optional[float]
    photo_count: int
    categories: Tuple[CategoryStat, ...]

    @property
    def top_category(self) -> Optional[PlaceCategory]:
        return self.categories[0].category if self.categories else None


class TripsSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_trips: int
    trips_by_status: Dict[TripStatus, int]
    total_places: int
    destinations: Tuple[str, ...]
    top_category: Optional[PlaceCategory]
    average_rating: Optional[float]


def category_breakdown(places: Sequence[VisitedPlace]) -> List[CategoryStat]:
    """Per-category counts, most visited first (ties in enum order)."""
    counts = Counter(place.category for place in places)
    total = len(places)
    order = list(PlaceCategory)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], order.index(item[0])))
    return [
        CategoryStat(
            category=category,
            count=count,
            color=CATEGORY_COLORS[category],
            share=count / total,
        )
        for category, count in ranked
    ]


def _average_rating(places: Sequence[VisitedPlace]) -> Optional[float]:
    rated = [place.rating for place in places if place.rating > 0]
    if not rated:
        return None
    return round(sum(rated) / len(rated), 2)


def visited_days(trip: Trip, places: Sequence[VisitedPlace]) -> int:
    """Days between first and last visit, inclusive, never less than one.

    Without places the trip's own start/end dates are used.
    """
    if places:
        moments = sorted(place.visited_at for place in places)
        span = (moments[-1] - moments[0]).total_seconds() / SECONDS_PER_DAY
    else:
        span = (trip.end_date - trip.start_date).days
    return max(1, round(span) + 1)


def compute_trip_stats(trip: Trip, places: Optional[Sequence[VisitedPlace]] = None) -> TripStats:
    """Statistics for one trip.

    Args:
        trip: The trip being summarized
        places: Effective place list (live data); defaults to ``trip.places``
    """
    places = list(trip.places if places is None else places)
    days = visited_days(trip, places)
    return TripStats(
        trip_id=trip.id,
        total_places=len(places),
        days=days,
        average_per_day=0.0 if not places else round(len(places) / days, 2),
        average_rating=_average_rating(places),
        photo_count=sum(len(place.media_urls) for place in places),
        categories=tuple(category_breakdown(places)),
    )


def summarize_trips(
    trips: Sequence[Trip],
    places_by_trip: Optional[Mapping[str, Sequence[VisitedPlace]]] = None,
) -> TripsSummary:
    """Profile-level summary across all of a user's trips.

    ``places_by_trip`` overrides embedded place lists where live data exists.
    """
    places_by_trip = places_by_trip or {}
    all_places: List[VisitedPlace] = []
    for trip in trips:
        live = places_by_trip.get(trip.id)
        all_places.extend(live if live else trip.places)

    by_status = {status: 0 for status in TripStatus}
    destinations: List[str] = []
    for trip in trips:
        by_status[trip.status] += 1
        if trip.destination and trip.destination not in destinations:
            destinations.append(trip.destination)

    breakdown = category_breakdown(all_places)
    return TripsSummary(
        total_trips=len(trips),
        trips_by_status=by_status,
        total_places=len(all_places),
        destinations=tuple(destinations),
        top_category=breakdown[0].category if breakdown else None,
        average_rating=_average_rating(all_places),
    )
