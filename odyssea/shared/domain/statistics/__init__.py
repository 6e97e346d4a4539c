"""Trip statistics."""

from odyssea.shared.domain.statistics.service import (
    CATEGORY_COLORS,
    CategoryStat,
    TripStats,
    TripsSummary,
    compute_trip_stats,
    summarize_trips,
)

__all__ = [
    "CATEGORY_COLORS",
    "CategoryStat",
    "TripStats",
    "TripsSummary",
    "compute_trip_stats",
    "summarize_trips",
]
