"""Identity providers (email + password)."""

from odyssea.shared.infrastructure.identity.base import IdentityProvider, friendly_message
from odyssea.shared.infrastructure.identity.memory_provider import InMemoryIdentityProvider
from odyssea.shared.infrastructure.identity.rest_provider import IdentityToolkitProvider

__all__ = [
    "IdentityProvider",
    "friendly_message",
    "InMemoryIdentityProvider",
    "IdentityToolkitProvider",
]
