"""Error taxonomy for the sync layer."""

from __future__ import annotations

from typing import Optional


class OdysseaError(Exception):
    """Base class for all Odyssea errors."""


class ConfigurationError(OdysseaError):
    """Configuration could not be loaded or validated."""


class RemoteWriteError(OdysseaError):
    """A document write was rejected (network or permission failure)."""

    def __init__(self, path: str, message: str):
        super().__init__(f"Write to '{path}' failed: {message}")
        self.path = path
        self.reason = message


class RemoteReadError(OdysseaError):
    """A one-shot document read failed."""

    def __init__(self, path: str, message: str):
        super().__init__(f"Read of '{path}' failed: {message}")
        self.path = path
        self.reason = message


class UploadError(OdysseaError):
    """A blob upload failed."""

    def __init__(self, path: str, message: str):
        super().__init__(f"Upload to '{path}' failed: {message}")
        self.path = path
        self.reason = message


class ProfileLoadError(OdysseaError):
    """The user profile could not be fetched or created."""

    def __init__(self, uid: str, message: str):
        super().__init__(f"Could not load profile for '{uid}': {message}")
        self.uid = uid
        self.reason = message


class AuthError(OdysseaError):
    """Identity provider failure.

    ``message`` is user-facing; ``code`` is the provider's machine code
    (e.g. ``INVALID_PASSWORD``) when one is available.
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
