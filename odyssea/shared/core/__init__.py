"""
Shared Core Module
==================

Event system, configuration, errors and logging.
"""

# Event System
from .event_bus import EventBus, EventPayload
from . import events

# Errors
from .errors import (
    OdysseaError,
    ConfigurationError,
    RemoteWriteError,
    RemoteReadError,
    UploadError,
    ProfileLoadError,
    AuthError,
)

# Service Registry
from .service_registry import register_cleanup_handler, unregister_cleanup_handler

# Configuration
from .configuration import (
    ConfigManager,
    SystemConfig,
    load_config,
    ValidationLevel,
)
from .logging_setup import configure_logging

__all__ = [
    # Event System
    "EventBus",
    "EventPayload",
    "events",
    # Errors
    "OdysseaError",
    "ConfigurationError",
    "RemoteWriteError",
    "RemoteReadError",
    "UploadError",
    "ProfileLoadError",
    "AuthError",
    # Service Registry
    "register_cleanup_handler",
    "unregister_cleanup_handler",
    # Configuration
    "ConfigManager",
    "SystemConfig",
    "load_config",
    "ValidationLevel",
    "configure_logging",
]
