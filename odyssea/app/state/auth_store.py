"""Authentication session store.

Status machine: ``idle -> checking -> authenticated | unauthenticated``.
``authenticated`` holds only while both the identity and its profile are
loaded. Failures are recorded in ``error``; nothing raises past this store.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from odyssea.shared.core import events
from odyssea.shared.core.errors import AuthError
from odyssea.shared.core.event_bus import EventBus
from odyssea.shared.domain.models import AuthStatus, AuthUser, UserProfile
from odyssea.shared.infrastructure.identity.base import DEFAULT_MESSAGE, IdentityProvider
from odyssea.shared.infrastructure.persistence.kv_storage import DuckDBKeyValueStorage

from .base import ObservableState
from .profile_store import LOAD_ERROR, UserProfileStore

logger = logging.getLogger(__name__)


def is_profile_complete(profile: Optional[UserProfile]) -> bool:
    """True when display name and home country are filled in."""
    if profile is None:
        return False
    return bool((profile.display_name or "").strip()) and bool((profile.home_country or "").strip())


class AuthStore(ObservableState):
    persist_namespace = "odyssea-auth"

    def __init__(
        self,
        identity: IdentityProvider,
        profile_store: UserProfileStore,
        event_bus: Optional[EventBus] = None,
        storage: Optional[DuckDBKeyValueStorage] = None,
    ):
        super().__init__(event_bus=event_bus, storage=storage)
        self.identity = identity
        self.profile_store = profile_store
        self._status = AuthStatus.IDLE
        self._user: Optional[AuthUser] = None
        self._error: Optional[str] = None
        self._is_initializing = False
        self._session_epoch = 0
        self._listening = False
        self._unsubscribe_identity: Optional[Callable[[], None]] = None
        # Explicit sign-in/sign-up flows own the transition while they run
        self._flows = 0

        # Views bound to the session also see profile edits
        self.profile_store.subscribe(self._emit_listeners)

    # --- Selectors ---

    @property
    def status(self) -> AuthStatus:
        return self._status

    @property
    def user(self) -> Optional[AuthUser]:
        return self._user

    @property
    def profile(self) -> Optional[UserProfile]:
        return self.profile_store.profile

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_initializing(self) -> bool:
        """True until the identity listener resolved its first event."""
        return self._is_initializing

    @property
    def is_authenticated(self) -> bool:
        return self._status == AuthStatus.AUTHENTICATED

    @property
    def session_epoch(self) -> int:
        return self._session_epoch

    is_profile_complete = staticmethod(is_profile_complete)

    # --- Transitions ---

    def _set_status(self, status: AuthStatus) -> None:
        self._status = status
        self._notify(
            events.TOPIC_AUTH_STATUS,
            events.create_auth_status_event(status.value, self._user.uid if self._user else None, self._error),
        )

    def _begin_checking(self) -> None:
        self._error = None
        self._set_status(AuthStatus.CHECKING)

    def _set_authenticated(self, user: AuthUser) -> None:
        self._user = user
        self._error = None
        self._is_initializing = False
        self._set_status(AuthStatus.AUTHENTICATED)
        logger.info(f"Signed in as {user.uid}")

    def _set_unauthenticated(self, error: Optional[str] = None) -> None:
        self._is_initializing = False
        if self._status == AuthStatus.UNAUTHENTICATED and self._user is None and self._error == error:
            return
        previous = self._user
        self._user = None
        self._error = error
        # Also invalidates a profile load still in flight
        self.profile_store.reset()
        self._set_status(AuthStatus.UNAUTHENTICATED)
        if previous is not None:
            self.bus.publish_nowait(
                events.TOPIC_SESSION_CLEARED,
                events.create_session_cleared_event(previous.uid, self._session_epoch),
            )

    def _next_epoch(self) -> int:
        self._session_epoch += 1
        return self._session_epoch

    async def _load_profile(self, user: AuthUser, epoch: int) -> bool:
        profile = await self.profile_store.load_for_user(user)
        if epoch != self._session_epoch:
            logger.info(f"Session for {user.uid} was superseded while loading its profile")
            return False
        if profile is None:
            self._set_unauthenticated(self.profile_store.error or LOAD_ERROR)
            return False
        self._set_authenticated(user)
        return True

    # --- Identity listener ---

    def init_listener(self) -> bool:
        """Start following the identity provider. No-op while already listening."""
        if self._listening:
            return False
        self._listening = True
        self._is_initializing = True
        self._begin_checking()
        self._unsubscribe_identity = self.identity.on_identity_changed(self._on_identity_changed)
        return True

    def _on_identity_changed(self, user: Optional[AuthUser]) -> None:
        if self._flows:
            return
        if user is None:
            self._next_epoch()
            self._set_unauthenticated()
            return
        if self._user is not None and self._user.uid == user.uid and self.is_authenticated:
            return
        epoch = self._next_epoch()
        self._begin_checking()
        self._spawn(self._load_profile(user, epoch), name=f"load-session-{user.uid}")

    def dispose(self) -> None:
        """Stop following the identity provider."""
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None
        self._listening = False

    # --- Account actions ---

    async def sign_in(self, email: str, password: str) -> bool:
        """Sign in and load the profile. Returns True when authenticated."""
        self._flows += 1
        try:
            epoch = self._next_epoch()
            self._begin_checking()
            try:
                user = await self.identity.sign_in(email.strip(), password)
            except AuthError as e:
                logger.info(f"Sign-in failed: {e.code or e.message}")
                self._set_unauthenticated(e.message)
                return False
            except Exception:
                logger.exception("Unexpected sign-in failure")
                self._set_unauthenticated(DEFAULT_MESSAGE)
                return False
            return await self._load_profile(user, epoch)
        finally:
            self._flows -= 1

    async def sign_up(self, name: str, email: str, password: str) -> bool:
        """Create the account, set its display name, then create the profile."""
        self._flows += 1
        try:
            epoch = self._next_epoch()
            self._begin_checking()
            try:
                user = await self.identity.sign_up(email.strip(), password)
            except AuthError as e:
                logger.info(f"Sign-up failed: {e.code or e.message}")
                self._set_unauthenticated(e.message)
                return False
            except Exception:
                logger.exception("Unexpected sign-up failure")
                self._set_unauthenticated(DEFAULT_MESSAGE)
                return False

            name = name.strip()
            if name:
                try:
                    user = await self.identity.update_display_name(name)
                except AuthError as e:
                    logger.warning(f"Could not set display name: {e}")
                    user = user.model_copy(update={"display_name": name})
            return await self._load_profile(user, epoch)
        finally:
            self._flows -= 1

    async def sign_out(self) -> None:
        """Best-effort sign-out; local state is cleared even if the provider fails."""
        self._next_epoch()
        try:
            await self.identity.sign_out()
        except Exception as e:
            logger.warning(f"Identity sign-out failed, clearing local session anyway: {e}")
        finally:
            self._set_unauthenticated()

    async def update_profile(self, changes: Dict[str, Any]) -> bool:
        """Round-trip profile update. No-op unless authenticated."""
        if not self.is_authenticated or self._user is None:
            return False
        epoch = self._session_epoch
        updated = await self.profile_store.update_profile(changes)
        if epoch != self._session_epoch:
            return False
        if updated is None:
            self._error = self.profile_store.error
            self._notify()
            return False
        self._error = None
        self._notify()
        return True

    async def update_avatar(self, data: bytes) -> Optional[str]:
        """Upload a new photo; updates the identity and the profile. Returns the URL."""
        if not self.is_authenticated or self._user is None:
            return None
        epoch = self._session_epoch
        url = await self.profile_store.change_avatar(data)
        if epoch != self._session_epoch:
            return None
        if url is None:
            self._error = self.profile_store.error
            self._notify()
            return None

        try:
            await self.identity.update_photo_url(url)
        except AuthError as e:
            logger.warning(f"Could not update identity photo: {e}")
        if epoch != self._session_epoch or self._user is None:
            return None
        self._user = self._user.model_copy(update={"photo_url": url})
        self._error = None
        self._notify()
        return url

    # --- Persistence ---

    def partialize(self) -> Dict[str, Any]:
        return {"user": self._user.to_document() if self._user else None}

    def rehydrate(self, data: Dict[str, Any]) -> None:
        raw = data.get("user")
        self._user = AuthUser.model_validate(raw) if raw else None
