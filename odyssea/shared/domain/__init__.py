"""
Shared Domain Module
====================

Models, document mapping and the services that read and write them.
Services live in their own sub-packages (``trips``, ``places``,
``profiles``, ``statistics``).
"""

from odyssea.shared.domain.models import (
    AuthStatus,
    AuthUser,
    CreateTripInput,
    GeoLocation,
    PlaceCategory,
    Trip,
    TripStatus,
    UserProfile,
    VisitedPlace,
    WriteState,
)

__all__ = [
    "AuthStatus",
    "AuthUser",
    "CreateTripInput",
    "GeoLocation",
    "PlaceCategory",
    "Trip",
    "TripStatus",
    "UserProfile",
    "VisitedPlace",
    "WriteState",
]
