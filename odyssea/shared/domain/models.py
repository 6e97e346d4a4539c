"""Domain models shared by services and stores.

All models are frozen: a snapshot is never mutated in place, stores
replace it with a copy (``model_copy(update=...)``). Field names are
snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

import time
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Iterable, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_COVER_PHOTO_URL = (
    "https://images.unsplash.com/photo-1500530855697-b586d89ba3ee"
    "?auto=format&fit=crop&w=1200&q=80"
)
DEFAULT_NOTE_TITLE = "Anotação sem título"


class PlaceCategory(str, Enum):
    PASSEIO = "Passeio"
    RESTAURANTE = "Restaurante"
    PRAIA = "Praia"
    HOTEL = "Hotel"
    TRANSPORTE = "Transporte"
    MIRANTE = "Mirante"
    MUSEU = "Museu"
    SHOPPING = "Shopping"
    OUTRO = "Outro"


class TripStatus(str, Enum):
    UPCOMING = "Upcoming"
    CURRENT = "Current"
    COMPLETED = "Completed"


class AuthStatus(str, Enum):
    IDLE = "idle"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class _Model(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_document(self) -> dict:
        """Serialize to the camelCase JSON shape stored remotely."""
        return self.model_dump(mode="json", by_alias=True)


def normalize_tags(tags: Iterable[str]) -> Tuple[str, ...]:
    """Trim, drop empties and de-duplicate while keeping first occurrence order."""
    seen: List[str] = []
    for tag in tags:
        cleaned = str(tag).strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return tuple(seen)


def parse_tags(text: str) -> Tuple[str, ...]:
    """Parse a comma separated tag field (``"praia, sol"``)."""
    return normalize_tags(text.split(","))


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def now_millis() -> int:
    return int(time.time() * 1000)


def new_place_id() -> str:
    return f"place-{uuid.uuid4().hex[:12]}"


def new_trip_id() -> str:
    return uuid.uuid4().hex


def new_document_id() -> str:
    return uuid.uuid4().hex


class GeoLocation(_Model):
    latitude: float = 0.0
    longitude: float = 0.0
    address: str = ""


class VisitedPlace(_Model):
    """A place logged inside a trip. ``id`` is unique within its trip."""

    id: str
    name: str = ""
    category: PlaceCategory = PlaceCategory.OUTRO
    location: GeoLocation = Field(default_factory=GeoLocation)
    date_time: str = Field(default_factory=now_iso)
    rating: int = Field(default=0, ge=0, le=5)
    notes: str = ""
    media_urls: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value):
        return normalize_tags(value or ())

    @field_validator("date_time")
    @classmethod
    def _check_iso(cls, value: str) -> str:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
        return value

    @property
    def visited_at(self) -> datetime:
        return datetime.fromisoformat(self.date_time.replace("Z", "+00:00"))


class Trip(_Model):
    id: str
    title: str
    destination: str
    start_date: date
    end_date: date
    cover_photo_url: str = DEFAULT_COVER_PHOTO_URL
    tags: Tuple[str, ...] = ()
    status: TripStatus = TripStatus.UPCOMING
    places: Tuple[VisitedPlace, ...] = ()
    owner_uid: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value):
        return normalize_tags(value or ())

    def find_place(self, place_id: str) -> Optional[VisitedPlace]:
        for place in self.places:
            if place.id == place_id:
                return place
        return None

    def places_chronological(self) -> List[VisitedPlace]:
        """Places sorted by visit time; stored order is insertion order."""
        return sorted(self.places, key=lambda p: p.visited_at)


class CreateTripInput(_Model):
    """Fields collected by the create-trip form."""

    owner_uid: str
    title: str
    destination: str
    start_date: date
    end_date: date
    tags: Tuple[str, ...] = ()
    cover_image: Optional[bytes] = None

    @field_validator("title", "destination")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value):
        return normalize_tags(value or ())

    @model_validator(mode="after")
    def _check_dates(self) -> "CreateTripInput":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TripNote(_Model):
    """Free-form travel journal entry of a trip."""

    id: str
    title: str = DEFAULT_NOTE_TITLE
    body: str = ""
    created_at: str = Field(default_factory=now_iso)


class ChecklistItem(_Model):
    id: str
    text: str = ""
    done: bool = False
    created_at: str = Field(default_factory=now_iso)


class ChecklistProgress(_Model):
    done: int = 0
    total: int = 0

    @property
    def ratio(self) -> float:
        """Share of done items; 0 for an empty checklist."""
        return self.done / self.total if self.total else 0.0


class UserProfile(_Model):
    uid: str
    display_name: str = ""
    email: str = ""
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    home_country: Optional[str] = None
    created_at: int = Field(default_factory=now_millis)
    updated_at: int = Field(default_factory=now_millis)


class AuthUser(_Model):
    """Identity as reported by the identity provider."""

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoURL")


class WriteState(_Model):
    """Sync state of a trip's optimistic mutations."""

    kind: Literal["committed", "pending", "failed"] = "committed"
    reason: Optional[str] = None

    @classmethod
    def committed(cls) -> "WriteState":
        return cls(kind="committed")

    @classmethod
    def pending(cls) -> "WriteState":
        return cls(kind="pending")

    @classmethod
    def failed(cls, reason: str) -> "WriteState":
        return cls(kind="failed", reason=reason)

    @property
    def is_pending(self) -> bool:
        return self.kind == "pending"

    @property
    def is_failed(self) -> bool:
        return self.kind == "failed"


COMMITTED = WriteState.committed()
