"""Persistence adapters (DuckDB)."""

from odyssea.shared.infrastructure.persistence.kv_storage import DuckDBKeyValueStorage

__all__ = ["DuckDBKeyValueStorage"]
