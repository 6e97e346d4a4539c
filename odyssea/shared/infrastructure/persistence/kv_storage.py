"""DuckDB-backed key-value storage for store projections.

Each store persists a JSON projection of its state under its own
namespace. This is a cache only; remote snapshots always win once a
subscription is bound.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import duckdb

logger = logging.getLogger(__name__)


class DuckDBKeyValueStorage:
    """Namespace → JSON document table in a DuckDB file (or ``:memory:``)."""

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self.conn: Optional[duckdb.DuckDBPyConnection] = None

    def open(self) -> "DuckDBKeyValueStorage":
        """Open the connection and create the schema; safe to call twice."""
        if self.conn is not None:
            return self
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = duckdb.connect(self.db_path)
        self._create_schema()
        logger.info(f"Local cache initialized: {self.db_path}")
        return self

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                namespace VARCHAR PRIMARY KEY,
                payload_json VARCHAR NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self.conn is None:
            self.open()
        return self.conn

    def get(self, namespace: str) -> Optional[Dict[str, Any]]:
        """Load the projection stored under ``namespace``.

        Corrupt payloads are logged and treated as missing.
        """
        row = self._connection().execute(
            "SELECT payload_json FROM kv_store WHERE namespace = ?",
            (namespace,)
        ).fetchone()
        if not row:
            return None
        try:
            data = json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt cache entry '{namespace}': {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-object cache entry '{namespace}'")
            return None
        return data

    def set(self, namespace: str, data: Dict[str, Any]) -> None:
        payload = json.dumps(data, default=str)
        conn = self._connection()
        existing = conn.execute(
            "SELECT namespace FROM kv_store WHERE namespace = ?",
            (namespace,)
        ).fetchone()
        if existing:
            conn.execute("""
                UPDATE kv_store
                SET payload_json = ?, updated_at = CURRENT_TIMESTAMP
                WHERE namespace = ?
            """, (payload, namespace))
        else:
            conn.execute(
                "INSERT INTO kv_store (namespace, payload_json) VALUES (?, ?)",
                (namespace, payload)
            )

    def remove(self, namespace: str) -> None:
        self._connection().execute("DELETE FROM kv_store WHERE namespace = ?", (namespace,))

    def namespaces(self) -> List[str]:
        rows = self._connection().execute("SELECT namespace FROM kv_store ORDER BY namespace").fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
