"""User profile store (``users/{uid}``)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from odyssea.shared.core import events
from odyssea.shared.core.errors import ProfileLoadError, RemoteWriteError, UploadError
from odyssea.shared.core.event_bus import EventBus
from odyssea.shared.domain.models import AuthUser, UserProfile, now_millis
from odyssea.shared.domain.profiles import UserProfileService
from odyssea.shared.infrastructure.persistence.kv_storage import DuckDBKeyValueStorage

from .base import ObservableState

logger = logging.getLogger(__name__)

LOAD_ERROR = "Could not load your profile."
UPDATE_ERROR = "Could not update your profile."
AVATAR_ERROR = "Could not change your profile photo."


class UserProfileStore(ObservableState):
    """Holds the signed-in user's profile.

    Errors are recorded in ``error`` and never raised to callers. Every
    ``reset()`` starts a new epoch; results of calls started in an older
    epoch are discarded.
    """

    persist_namespace = "user-profile-store"

    def __init__(
        self,
        profile_service: UserProfileService,
        event_bus: Optional[EventBus] = None,
        storage: Optional[DuckDBKeyValueStorage] = None,
    ):
        super().__init__(event_bus=event_bus, storage=storage)
        self.profile_service = profile_service
        self._profile: Optional[UserProfile] = None
        self._is_loading = False
        self._error: Optional[str] = None
        self._epoch = 0

    @property
    def profile(self) -> Optional[UserProfile]:
        return self._profile

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    def _begin(self) -> int:
        self._is_loading = True
        self._error = None
        self._notify()
        return self._epoch

    def _fail(self, epoch: int, message: str) -> None:
        if epoch != self._epoch:
            return
        self._is_loading = False
        self._error = message
        self._notify()

    async def load_for_user(self, user: AuthUser) -> Optional[UserProfile]:
        """Get-or-create the profile for ``user``. Returns None on failure."""
        epoch = self._begin()
        try:
            profile = await self.profile_service.get_or_create(user)
        except ProfileLoadError as e:
            logger.error(f"Failed to load profile: {e}")
            self._fail(epoch, LOAD_ERROR)
            return None
        if epoch != self._epoch:
            logger.info(f"Discarding profile of {user.uid} loaded for a previous session")
            return None
        self._profile = profile
        self._is_loading = False
        self._notify(events.TOPIC_PROFILE_UPDATED, events.create_profile_updated_event(profile.uid, ["*"]))
        return profile

    async def update_profile(self, changes: Dict[str, Any]) -> Optional[UserProfile]:
        """Round-trip update; the server copy replaces the local profile."""
        current = self._profile
        if current is None:
            return None
        epoch = self._begin()
        try:
            updated = await self.profile_service.update(current.uid, changes)
        except ValueError as e:
            logger.warning(f"Rejected profile update: {e}")
            self._fail(epoch, str(e))
            return None
        except (RemoteWriteError, ProfileLoadError) as e:
            logger.error(f"Failed to update profile: {e}")
            self._fail(epoch, UPDATE_ERROR)
            return None
        if epoch != self._epoch:
            logger.info(f"Discarding profile update of {current.uid} finished after sign-out")
            return None
        self._profile = updated
        self._is_loading = False
        self._notify(events.TOPIC_PROFILE_UPDATED, events.create_profile_updated_event(updated.uid, sorted(changes)))
        return updated

    async def change_avatar(self, data: bytes) -> Optional[str]:
        """Upload a new avatar; returns its URL or None on failure."""
        current = self._profile
        if current is None:
            return None
        epoch = self._begin()
        try:
            url = await self.profile_service.upload_avatar(current.uid, data)
        except (UploadError, RemoteWriteError) as e:
            logger.error(f"Failed to change avatar: {e}")
            self._fail(epoch, AVATAR_ERROR)
            return None
        if epoch != self._epoch:
            logger.info(f"Discarding avatar of {current.uid} uploaded after sign-out")
            return None
        self._is_loading = False
        self.set_avatar_url(url)
        return url

    def set_avatar_url(self, url: str) -> None:
        if self._profile is None:
            return
        self._profile = self._profile.model_copy(update={"avatar_url": url, "updated_at": now_millis()})
        self._notify(
            events.TOPIC_PROFILE_UPDATED,
            events.create_profile_updated_event(self._profile.uid, ["avatar_url"]),
        )

    def reset(self) -> None:
        self._epoch += 1
        self._profile = None
        self._is_loading = False
        self._error = None
        self._notify()

    def partialize(self) -> Dict[str, Any]:
        return {"profile": self._profile.to_document() if self._profile else None}

    def rehydrate(self, data: Dict[str, Any]) -> None:
        raw = data.get("profile")
        self._profile = UserProfile.model_validate(raw) if raw else None
