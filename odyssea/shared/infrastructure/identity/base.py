"""Identity provider contract (email + password accounts)."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from odyssea.shared.domain.models import AuthUser

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[AuthUser]], None]

# Provider error code -> user-facing message
FRIENDLY_MESSAGES = {
    "EMAIL_NOT_FOUND": "Invalid email or password.",
    "INVALID_PASSWORD": "Invalid email or password.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "USER_DISABLED": "This account has been disabled.",
    "EMAIL_EXISTS": "An account with this email already exists.",
    "INVALID_EMAIL": "The email address is not valid.",
    "WEAK_PASSWORD": "Password must be at least 6 characters.",
    "MISSING_PASSWORD": "Password is required.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Try again later.",
    "NETWORK_ERROR": "Could not reach the server. Check your connection.",
    "NOT_SIGNED_IN": "You need to sign in first.",
}
DEFAULT_MESSAGE = "Something went wrong. Please try again."


def friendly_message(code: Optional[str]) -> str:
    """Map a provider code such as ``WEAK_PASSWORD : ...`` to display text."""
    if not code:
        return DEFAULT_MESSAGE
    key = code.split(":", 1)[0].strip()
    return FRIENDLY_MESSAGES.get(key, DEFAULT_MESSAGE)


class IdentityProvider(ABC):
    """Push-based identity source plus account actions.

    Listeners registered with ``on_identity_changed`` are called once
    immediately with the current identity, then on every change.
    """

    def __init__(self) -> None:
        self._listeners: List[IdentityListener] = []
        self._current: Optional[AuthUser] = None

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._current

    def on_identity_changed(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self._current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, user: Optional[AuthUser]) -> None:
        changed = (self._current is None) != (user is None) or (
            user is not None and self._current is not None and user.uid != self._current.uid
        )
        self._current = user
        if not changed:
            return
        logger.debug(f"Identity changed: {user.uid if user else None}")
        for listener in list(self._listeners):
            try:
                listener(user)
            except Exception:
                logger.exception("Identity listener failed")

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthUser:
        """Sign in; raises ``AuthError`` with a user-facing message."""

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> AuthUser:
        """Create an account and sign it in; raises ``AuthError``."""

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session."""

    @abstractmethod
    async def update_display_name(self, display_name: str) -> AuthUser:
        """Set the display name of the signed-in identity."""

    @abstractmethod
    async def update_photo_url(self, photo_url: str) -> AuthUser:
        """Set the photo reference of the signed-in identity."""

    async def aclose(self) -> None:
        """Release resources; default is a no-op."""
