"""Identity Toolkit REST provider.

Talks to the email/password endpoints of the Identity Toolkit API with
httpx. Tokens are kept in memory only; signing out drops them.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from odyssea.shared.core.configuration import RemoteConfig
from odyssea.shared.core.errors import AuthError, ConfigurationError
from odyssea.shared.domain.models import AuthUser
from odyssea.shared.infrastructure.identity.base import IdentityProvider, friendly_message

logger = logging.getLogger(__name__)


class IdentityToolkitProvider(IdentityProvider):
    """Email/password identity over the Identity Toolkit REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://identitytoolkit.googleapis.com/v1",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__()
        if not api_key:
            raise ConfigurationError("Identity Toolkit requires an API key")
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._id_token: Optional[str] = None
        self._refresh_token: Optional[str] = None

    @classmethod
    def from_config(cls, config: RemoteConfig) -> "IdentityToolkitProvider":
        return cls(
            api_key=config.api_key or "",
            base_url=config.identity_base_url,
            timeout=config.request_timeout,
        )

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.post(f"/accounts:{endpoint}", params={"key": self.api_key}, json=body)
        except httpx.HTTPError as e:
            logger.warning(f"Identity request '{endpoint}' failed: {e}")
            raise AuthError(friendly_message("NETWORK_ERROR"), code="NETWORK_ERROR") from e

        if response.status_code >= 400:
            code = None
            try:
                code = response.json().get("error", {}).get("message")
            except ValueError:
                pass
            logger.info(f"Identity request '{endpoint}' rejected: {code or response.status_code}")
            raise AuthError(friendly_message(code), code=code)

        return response.json()

    def _user_from(self, data: Dict[str, Any]) -> AuthUser:
        if data.get("idToken"):
            self._id_token = data["idToken"]
        if data.get("refreshToken"):
            self._refresh_token = data["refreshToken"]
        current = self._current
        return AuthUser(
            uid=data["localId"],
            email=data.get("email") or (current.email if current else None),
            display_name=data.get("displayName") or None,
            photo_url=data.get("photoUrl") or None,
        )

    async def sign_in(self, email: str, password: str) -> AuthUser:
        data = await self._post("signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        user = self._user_from(data)
        self._emit(user)
        return user

    async def sign_up(self, email: str, password: str) -> AuthUser:
        data = await self._post("signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        user = self._user_from(data)
        self._emit(user)
        return user

    async def sign_out(self) -> None:
        self._id_token = None
        self._refresh_token = None
        self._emit(None)

    async def _update(self, changes: Dict[str, Any]) -> AuthUser:
        if not self._id_token:
            raise AuthError(friendly_message("NOT_SIGNED_IN"), code="NOT_SIGNED_IN")
        data = await self._post("update", {"idToken": self._id_token, "returnSecureToken": True, **changes})
        self._current = self._user_from(data)
        return self._current

    async def update_display_name(self, display_name: str) -> AuthUser:
        return await self._update({"displayName": display_name})

    async def update_photo_url(self, photo_url: str) -> AuthUser:
        return await self._update({"photoUrl": photo_url})

    async def aclose(self) -> None:
        await self._client.aclose()
