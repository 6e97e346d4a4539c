"""
Odyssea Shared Kernel
=====================

Architecture:
- core: EventBus, configuration, errors, logging
- infrastructure: Technical adapters (document store, identity, local cache)
- domain: Models and the services built on the adapters
"""

__all__ = []
