"""Lenient conversion from remote documents to domain models.

Remote data may be incomplete or written by older clients; missing or
malformed fields fall back to defaults instead of failing the whole
snapshot. Only a document that cannot identify itself (bad trip dates)
is dropped.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from odyssea.shared.domain.models import (
    DEFAULT_COVER_PHOTO_URL,
    DEFAULT_NOTE_TITLE,
    AuthUser,
    ChecklistItem,
    GeoLocation,
    PlaceCategory,
    Trip,
    TripNote,
    TripStatus,
    UserProfile,
    VisitedPlace,
    now_iso,
    now_millis,
)

logger = logging.getLogger(__name__)


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _iso(value: Any) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
            return value
        except ValueError:
            pass
    return now_iso()


def _rating(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(0, min(5, int(round(value))))


def _category(value: Any) -> PlaceCategory:
    try:
        return PlaceCategory(value)
    except ValueError:
        return PlaceCategory.OUTRO


def to_millis(value: Any, default: Optional[int] = None) -> int:
    """Timestamp (datetime, epoch millis or ISO string) to epoch millis."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        try:
            return to_millis(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            pass
    return default if default is not None else now_millis()


def place_from_document(doc_id: str, data: Dict[str, Any]) -> VisitedPlace:
    location = data.get("location") if isinstance(data.get("location"), dict) else {}
    return VisitedPlace(
        id=doc_id,
        name=str(data.get("name") or ""),
        category=_category(data.get("category")),
        location=GeoLocation(
            latitude=_float(location.get("latitude")),
            longitude=_float(location.get("longitude")),
            address=str(location.get("address") or ""),
        ),
        date_time=_iso(data.get("dateTime")),
        rating=_rating(data.get("rating")),
        notes=str(data.get("notes") or ""),
        media_urls=tuple(_str_list(data.get("mediaUrls"))),
        tags=_str_list(data.get("tags")),
    )


def places_from_documents(rows: Iterable[Dict[str, Any]]) -> List[VisitedPlace]:
    """Embedded ``places`` arrays carry their own ``id`` field."""
    places = []
    for row in rows:
        if not isinstance(row, dict) or not row.get("id"):
            continue
        places.append(place_from_document(str(row["id"]), row))
    return places


def _date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def trip_from_document(doc_id: str, data: Dict[str, Any]) -> Optional[Trip]:
    try:
        start = _date(data.get("startDate"))
        end = _date(data.get("endDate"))
    except (TypeError, ValueError):
        logger.warning(f"Skipping trip '{doc_id}': invalid start/end date")
        return None

    try:
        status = TripStatus(data.get("status"))
    except ValueError:
        status = TripStatus.UPCOMING

    try:
        return Trip(
            id=doc_id,
            title=str(data.get("title") or ""),
            destination=str(data.get("destination") or ""),
            start_date=start,
            end_date=end,
            cover_photo_url=str(data.get("coverPhotoUrl") or DEFAULT_COVER_PHOTO_URL),
            tags=_str_list(data.get("tags")),
            status=status,
            places=tuple(places_from_documents(data.get("places") or [])),
            owner_uid=data.get("ownerUid"),
        )
    except ValidationError as e:
        logger.warning(f"Skipping trip '{doc_id}': {e}")
        return None


def profile_from_document(uid: str, data: Dict[str, Any], identity: Optional[AuthUser] = None) -> UserProfile:
    """Build a profile, falling back to identity fields for missing values."""
    return UserProfile(
        uid=uid,
        email=data.get("email") or (identity.email if identity else None) or "",
        display_name=data.get("displayName") or (identity.display_name if identity else None) or "",
        avatar_url=data.get("avatarUrl") or None,
        bio=data.get("bio") or "",
        home_country=data.get("homeCountry") or "",
        created_at=to_millis(data.get("createdAt")),
        updated_at=to_millis(data.get("updatedAt")),
    )


def note_from_document(doc_id: str, data: Dict[str, Any]) -> TripNote:
    return TripNote(
        id=doc_id,
        title=str(data.get("title") or DEFAULT_NOTE_TITLE),
        body=str(data.get("body") or ""),
        created_at=_iso(data.get("createdAt")),
    )


def checklist_item_from_document(doc_id: str, data: Dict[str, Any]) -> ChecklistItem:
    return ChecklistItem(
        id=doc_id,
        text=str(data.get("text") or ""),
        done=bool(data.get("done")),
        created_at=_iso(data.get("createdAt")),
    )


def strip_none(data: Dict[str, Any]) -> Dict[str, Any]:
    """The document store rejects undefined values; drop ``None`` fields."""
    return {key: value for key, value in data.items() if value is not None}
