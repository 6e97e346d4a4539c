"""Exit-time cleanup registry.

Stores are injected explicitly; the only process-wide state kept here is
the list of teardown handlers (e.g. releasing live subscriptions) run at
interpreter exit.
"""

from __future__ import annotations

import atexit
import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

_cleanup_registered = False
_cleanup_handlers: List[Callable[[], None]] = []


def register_cleanup_handler(handler: Callable[[], None]) -> None:
    """Register a cleanup handler to be called on application exit."""
    global _cleanup_registered
    if handler in _cleanup_handlers:
        return
    _cleanup_handlers.append(handler)
    if not _cleanup_registered:
        atexit.register(_cleanup_all)
        _cleanup_registered = True
        logger.debug("Registered atexit cleanup handler")


def unregister_cleanup_handler(handler: Callable[[], None]) -> None:
    """Drop a handler that already ran (e.g. after an explicit close)."""
    if handler in _cleanup_handlers:
        _cleanup_handlers.remove(handler)


def run_cleanup_handlers() -> None:
    """Run and drop every registered handler."""
    _cleanup_all()


def _cleanup_all():
    """Clean up all registered handlers."""
    logger.info("Running application cleanup...")
    handlers = list(_cleanup_handlers)
    _cleanup_handlers.clear()
    for handler in handlers:
        try:
            handler()
        except Exception as e:
            logger.warning(f"Error in cleanup handler: {e}")
    logger.info("Application cleanup completed")
