"""In-memory identity provider for offline mode and tests."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from odyssea.shared.core.errors import AuthError
from odyssea.shared.domain.models import AuthUser
from odyssea.shared.infrastructure.identity.base import IdentityProvider, friendly_message

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


@dataclass
class _Account:
    uid: str
    email: str
    password: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    def to_user(self) -> AuthUser:
        return AuthUser(
            uid=self.uid,
            email=self.email,
            display_name=self.display_name,
            photo_url=self.photo_url,
        )


def _error(code: str) -> AuthError:
    return AuthError(friendly_message(code), code=code)


class InMemoryIdentityProvider(IdentityProvider):
    """Accounts live in a dict keyed by lower-cased email."""

    def __init__(self) -> None:
        super().__init__()
        self._accounts: Dict[str, _Account] = {}
        self.offline = False
        self.sign_out_error: Optional[Exception] = None

    def add_account(self, email: str, password: str, display_name: Optional[str] = None) -> AuthUser:
        """Seed an account without signing it in."""
        account = _Account(uid=uuid.uuid4().hex, email=email.lower(), password=password, display_name=display_name)
        self._accounts[account.email] = account
        return account.to_user()

    def _check_online(self) -> None:
        if self.offline:
            raise _error("NETWORK_ERROR")

    async def sign_in(self, email: str, password: str) -> AuthUser:
        self._check_online()
        account = self._accounts.get(email.strip().lower())
        if account is None or account.password != password:
            raise _error("INVALID_LOGIN_CREDENTIALS")
        user = account.to_user()
        self._emit(user)
        return user

    async def sign_up(self, email: str, password: str) -> AuthUser:
        self._check_online()
        email = email.strip().lower()
        if "@" not in email:
            raise _error("INVALID_EMAIL")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise _error("WEAK_PASSWORD")
        if email in self._accounts:
            raise _error("EMAIL_EXISTS")
        account = _Account(uid=uuid.uuid4().hex, email=email, password=password)
        self._accounts[email] = account
        user = account.to_user()
        self._emit(user)
        return user

    async def sign_out(self) -> None:
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self._emit(None)

    def _signed_in_account(self) -> _Account:
        if self._current is None or self._current.email is None:
            raise _error("NOT_SIGNED_IN")
        return self._accounts[self._current.email]

    async def update_display_name(self, display_name: str) -> AuthUser:
        self._check_online()
        account = self._signed_in_account()
        account.display_name = display_name
        self._current = account.to_user()
        return self._current

    async def update_photo_url(self, photo_url: str) -> AuthUser:
        self._check_online()
        account = self._signed_in_account()
        account.photo_url = photo_url
        self._current = account.to_user()
        return self._current
