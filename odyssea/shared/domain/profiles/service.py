"""User profile documents (``users/{uid}``)."""

from __future__ import annotations

import logging
from typing import Any, Dict

from odyssea.shared.core.errors import ProfileLoadError, RemoteReadError, RemoteWriteError
from odyssea.shared.domain.mapping import profile_from_document, strip_none
from odyssea.shared.domain.models import AuthUser, UserProfile, now_millis
from odyssea.shared.infrastructure.remote import paths
from odyssea.shared.infrastructure.remote.base import SERVER_TIMESTAMP, RemoteCollectionClient

logger = logging.getLogger(__name__)

EDITABLE_PROFILE_FIELDS = {
    "display_name": "displayName",
    "email": "email",
    "avatar_url": "avatarUrl",
    "bio": "bio",
    "home_country": "homeCountry",
}


class UserProfileService:
    """Get-or-create, update and avatar upload for user profiles."""

    def __init__(self, remote: RemoteCollectionClient):
        self.remote = remote

    async def get_or_create(self, user: AuthUser) -> UserProfile:
        """Fetch the profile for ``user``; create it with defaults if absent.

        Raises:
            ProfileLoadError: If the profile could not be read or created
        """
        path = paths.user_doc(user.uid)
        try:
            data = await self.remote.read_once(path)
        except RemoteReadError as e:
            raise ProfileLoadError(user.uid, e.reason) from e

        if data is not None:
            return profile_from_document(user.uid, data, identity=user)

        now = now_millis()
        profile = UserProfile(
            uid=user.uid,
            email=user.email or "",
            display_name=user.display_name or "",
            avatar_url=user.photo_url,
            bio="",
            home_country="",
            created_at=now,
            updated_at=now,
        )
        payload = strip_none(profile.to_document())
        payload["createdAt"] = SERVER_TIMESTAMP
        payload["updatedAt"] = SERVER_TIMESTAMP
        try:
            await self.remote.write(path, payload, merge=False)
        except RemoteWriteError as e:
            raise ProfileLoadError(user.uid, e.reason) from e

        logger.info(f"Created profile for {user.uid}")
        return profile

    async def update(self, uid: str, changes: Dict[str, Any]) -> UserProfile:
        """Write ``changes`` then return the server copy.

        Raises:
            ValueError: For fields that are not editable
            RemoteWriteError: If the write fails
            ProfileLoadError: If the updated profile cannot be read back
        """
        payload: Dict[str, Any] = {}
        for key, value in changes.items():
            if key not in EDITABLE_PROFILE_FIELDS:
                raise ValueError(f"Profile field '{key}' is not editable")
            payload[EDITABLE_PROFILE_FIELDS[key]] = value.strip() if isinstance(value, str) else value
        payload = strip_none(payload)
        payload["updatedAt"] = SERVER_TIMESTAMP

        path = paths.user_doc(uid)
        await self.remote.write(path, payload, merge=True)

        try:
            data = await self.remote.read_once(path)
        except RemoteReadError as e:
            raise ProfileLoadError(uid, e.reason) from e
        if data is None:
            raise ProfileLoadError(uid, "profile disappeared after update")
        return profile_from_document(uid, data)

    async def upload_avatar(self, uid: str, data: bytes) -> str:
        """Upload a new avatar and record its URL on the profile document.

        Raises:
            UploadError: If the upload fails
            RemoteWriteError: If the profile write fails
        """
        blob = paths.blob_path(paths.BLOB_PROFILE_PHOTOS, uid, paths.unique_filename("avatar"))
        url = await self.remote.upload_blob(blob, data)
        await self.remote.write(
            paths.user_doc(uid),
            {"avatarUrl": url, "updatedAt": SERVER_TIMESTAMP},
            merge=True,
        )
        return url
