"""In-memory remote collection client.

Backs offline mode and the test-suite. Snapshots are delivered either
immediately (synchronously, right after the change that caused them) or
queued until ``flush()`` is called, which lets tests simulate a backend
that answers late.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from odyssea.shared.core.errors import RemoteReadError, RemoteWriteError, UploadError
from odyssea.shared.infrastructure.remote.base import (
    SERVER_TIMESTAMP,
    FieldFilter,
    OrderBy,
    RemoteCollectionClient,
    RemoteDocument,
    Snapshot,
    SnapshotCallback,
    Unsubscribe,
    split_path,
)

logger = logging.getLogger(__name__)

DeliveryMode = Literal["immediate", "manual"]


@dataclass
class _Subscription:
    sub_id: int
    collection: str
    callback: SnapshotCallback
    filters: Tuple[FieldFilter, ...]
    order_by: Optional[OrderBy]
    active: bool = True
    last_snapshot: Optional[Snapshot] = None


@dataclass
class _FailurePlan:
    remaining: int = 0
    message: str = "simulated failure"

    def consume(self) -> Optional[str]:
        if self.remaining <= 0:
            return None
        self.remaining -= 1
        return self.message


@dataclass
class WriteRecord:
    path: str
    payload: Dict[str, Any]
    merge: bool
    ok: bool = True
    kind: Literal["set", "delete"] = "set"
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _matches(data: Dict[str, Any], flt: FieldFilter) -> bool:
    if flt.field not in data:
        return False
    value = data[flt.field]
    try:
        if flt.op == "==":
            return value == flt.value
        if flt.op == "!=":
            return value != flt.value
        if flt.op == "<":
            return value < flt.value
        if flt.op == "<=":
            return value <= flt.value
        if flt.op == ">":
            return value > flt.value
        if flt.op == ">=":
            return value >= flt.value
        if flt.op == "in":
            return value in flt.value
        if flt.op == "array-contains":
            return isinstance(value, (list, tuple)) and flt.value in value
    except TypeError:
        return False
    return False


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> None:
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _resolve_sentinels(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {k: _resolve_sentinels(v, now) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_resolve_sentinels(v, now) for v in value]
    return value


class InMemoryRemoteClient(RemoteCollectionClient):
    """Dictionary-backed document store and blob storage."""

    def __init__(self, bucket: str = "odyssea-local", delivery: DeliveryMode = "immediate"):
        self.bucket = bucket
        self.delivery: DeliveryMode = delivery
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._blobs: Dict[str, bytes] = {}
        self._subscriptions: Dict[int, _Subscription] = {}
        self._queue: List[Tuple[int, Snapshot]] = []
        self._ids = itertools.count(1)
        self._write_failures = _FailurePlan()
        self._read_failures = _FailurePlan()
        self._upload_failures = _FailurePlan()
        self._write_gate: Optional[asyncio.Event] = None
        self.writes: List[WriteRecord] = []
        self.subscribe_calls = 0

    # --- Introspection helpers ---

    @property
    def active_subscription_count(self) -> int:
        return sum(1 for sub in self._subscriptions.values() if sub.active)

    def active_subscriptions_for(self, collection_path: str) -> int:
        return sum(
            1 for sub in self._subscriptions.values()
            if sub.active and sub.collection == collection_path
        )

    def documents(self, collection_path: str) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._collections.get(collection_path, {}))

    def blob(self, path: str) -> Optional[bytes]:
        return self._blobs.get(path)

    @property
    def pending_deliveries(self) -> int:
        return len(self._queue)

    # --- Failure injection ---

    def fail_next_writes(self, count: int = 1, message: str = "permission-denied") -> None:
        self._write_failures = _FailurePlan(count, message)

    def fail_next_reads(self, count: int = 1, message: str = "unavailable") -> None:
        self._read_failures = _FailurePlan(count, message)

    def fail_next_uploads(self, count: int = 1, message: str = "storage/unauthorized") -> None:
        self._upload_failures = _FailurePlan(count, message)

    def pause_writes(self) -> None:
        """Hold every write until ``resume_writes()``; must run inside a loop."""
        self._write_gate = asyncio.Event()

    def resume_writes(self) -> None:
        if self._write_gate is not None:
            self._write_gate.set()
            self._write_gate = None

    # --- Contract ---

    def subscribe(
        self,
        collection_path: str,
        on_change: SnapshotCallback,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[OrderBy] = None,
    ) -> Unsubscribe:
        sub = _Subscription(
            sub_id=next(self._ids),
            collection=collection_path.strip("/"),
            callback=on_change,
            filters=tuple(filters),
            order_by=order_by,
        )
        self._subscriptions[sub.sub_id] = sub
        self.subscribe_calls += 1
        logger.debug(f"Subscribed #{sub.sub_id} to '{sub.collection}'")

        # Initial snapshot, like a real watch stream
        self._schedule(sub, force=True)

        def unsubscribe() -> None:
            if sub.active:
                sub.active = False
                self._subscriptions.pop(sub.sub_id, None)
                logger.debug(f"Unsubscribed #{sub.sub_id} from '{sub.collection}'")

        return unsubscribe

    async def write(self, path: str, payload: Dict[str, Any], merge: bool = True) -> None:
        collection, doc_id = split_path(path)
        if self._write_gate is not None:
            await self._write_gate.wait()

        failure = self._write_failures.consume()
        if failure is not None:
            self.writes.append(WriteRecord(path, copy.deepcopy(payload), merge, ok=False))
            raise RemoteWriteError(path, failure)

        data = _resolve_sentinels(copy.deepcopy(payload), datetime.now(timezone.utc))
        docs = self._collections.setdefault(collection, {})
        if merge and doc_id in docs:
            _deep_merge(docs[doc_id], data)
        else:
            docs[doc_id] = data
        self.writes.append(WriteRecord(path, copy.deepcopy(payload), merge))

        for sub in list(self._subscriptions.values()):
            if sub.active and sub.collection == collection:
                self._schedule(sub)

    async def delete(self, path: str) -> None:
        collection, doc_id = split_path(path)
        if self._write_gate is not None:
            await self._write_gate.wait()

        failure = self._write_failures.consume()
        if failure is not None:
            self.writes.append(WriteRecord(path, {}, False, ok=False, kind="delete"))
            raise RemoteWriteError(path, failure)

        self.writes.append(WriteRecord(path, {}, False, kind="delete"))
        if self._collections.get(collection, {}).pop(doc_id, None) is None:
            return
        for sub in list(self._subscriptions.values()):
            if sub.active and sub.collection == collection:
                self._schedule(sub)

    async def read_once(self, path: str) -> Optional[Dict[str, Any]]:
        collection, doc_id = split_path(path)
        failure = self._read_failures.consume()
        if failure is not None:
            raise RemoteReadError(path, failure)
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def upload_blob(self, path: str, data: bytes, content_type: str = "image/jpeg") -> str:
        failure = self._upload_failures.consume()
        if failure is not None:
            raise UploadError(path, failure)
        if path in self._blobs:
            raise UploadError(path, "blob paths are write-once")
        self._blobs[path] = bytes(data)
        return f"memory://{self.bucket}/{path}"

    def close(self) -> None:
        for sub in self._subscriptions.values():
            sub.active = False
        self._subscriptions.clear()
        self._queue.clear()

    # --- Delivery ---

    def flush(self) -> int:
        """Deliver queued snapshots in order; returns how many ran."""
        delivered = 0
        while self._queue:
            sub_id, snapshot = self._queue.pop(0)
            sub = self._subscriptions.get(sub_id)
            if sub is None or not sub.active:
                continue
            sub.callback(snapshot)
            delivered += 1
        return delivered

    def _schedule(self, sub: _Subscription, force: bool = False) -> None:
        snapshot = self._query(sub)
        if not force and snapshot == sub.last_snapshot:
            return
        sub.last_snapshot = snapshot
        if self.delivery == "manual":
            self._queue.append((sub.sub_id, snapshot))
        else:
            sub.callback(snapshot)

    def _query(self, sub: _Subscription) -> Snapshot:
        docs = self._collections.get(sub.collection, {})
        rows = [
            (doc_id, data) for doc_id, data in docs.items()
            if all(_matches(data, flt) for flt in sub.filters)
        ]
        if sub.order_by is not None:
            key = sub.order_by.field
            # Firestore excludes documents missing the order field
            rows = [row for row in rows if key in row[1]]
            rows.sort(key=lambda row: (row[1][key], row[0]), reverse=sub.order_by.descending)
        else:
            rows.sort(key=lambda row: row[0])
        return tuple(RemoteDocument(doc_id, copy.deepcopy(data)) for doc_id, data in rows)
