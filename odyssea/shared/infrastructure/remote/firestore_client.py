"""Firestore + Cloud Storage implementation of the remote collection client.

Watch callbacks from ``on_snapshot`` arrive on a background thread owned
by the SDK; they are handed to the asyncio loop with
``call_soon_threadsafe`` so stores only ever mutate state on the loop
thread. Blocking SDK calls run in the default executor.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, Optional, Sequence, Tuple

import firebase_admin
from firebase_admin import credentials, firestore, storage
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter as FirestoreFieldFilter

from odyssea.shared.core.configuration import RemoteConfig
from odyssea.shared.core.errors import ConfigurationError, RemoteReadError, RemoteWriteError, UploadError
from odyssea.shared.infrastructure.remote.base import (
    SERVER_TIMESTAMP,
    FieldFilter,
    OrderBy,
    RemoteCollectionClient,
    RemoteDocument,
    SnapshotCallback,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

_OPERATOR_MAP = {"array-contains": "array_contains"}


def initialize_firebase_app(config: RemoteConfig) -> firebase_admin.App:
    """Return the default Firebase app, initializing it on first use."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    options: Dict[str, Any] = {}
    if config.storage_bucket:
        options["storageBucket"] = config.storage_bucket
    if config.project_id:
        options["projectId"] = config.project_id

    if config.credentials_path:
        cred = credentials.Certificate(config.credentials_path)
        logger.info("Firebase initialized using service account file.")
    else:
        cred = credentials.ApplicationDefault()
        logger.info("Firebase initialized using application default credentials.")

    try:
        return firebase_admin.initialize_app(cred, options or None)
    except (ValueError, OSError) as e:
        raise ConfigurationError(f"Could not initialize Firebase: {e}") from e


def _to_firestore(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return firestore.SERVER_TIMESTAMP
    if isinstance(value, dict):
        return {k: _to_firestore(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_firestore(v) for v in value]
    return value


class FirestoreRemoteClient(RemoteCollectionClient):
    """Remote client backed by firebase-admin."""

    def __init__(self, db, bucket=None):
        self.db = db
        self.bucket = bucket
        # watch id -> (SDK watch, delivery flag checked on the loop thread)
        self._watches: Dict[int, Tuple[Any, Dict[str, bool]]] = {}
        self._lock = threading.Lock()
        self._next_id = 0

    @classmethod
    def from_config(cls, config: RemoteConfig) -> "FirestoreRemoteClient":
        app = initialize_firebase_app(config)
        db = firestore.client(app=app)
        bucket = storage.bucket(app=app) if config.storage_bucket else None
        return cls(db, bucket)

    def subscribe(
        self,
        collection_path: str,
        on_change: SnapshotCallback,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[OrderBy] = None,
    ) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        query = self.db.collection(collection_path)
        for flt in filters:
            op = _OPERATOR_MAP.get(flt.op, flt.op)
            query = query.where(filter=FirestoreFieldFilter(flt.field, op, flt.value))
        if order_by is not None:
            direction = firestore.Query.DESCENDING if order_by.descending else firestore.Query.ASCENDING
            query = query.order_by(order_by.field, direction=direction)

        state = {"active": True}

        def deliver(snapshot) -> None:
            # Runs on the loop thread; a late delivery after unsubscribe is dropped
            if state["active"]:
                on_change(snapshot)

        def on_snapshot(docs, changes, read_time) -> None:
            snapshot = tuple(RemoteDocument(doc.id, doc.to_dict() or {}) for doc in docs)
            try:
                loop.call_soon_threadsafe(deliver, snapshot)
            except RuntimeError:
                logger.debug(f"Event loop closed; dropping snapshot for '{collection_path}'")

        watch = query.on_snapshot(on_snapshot)
        with self._lock:
            self._next_id += 1
            watch_id = self._next_id
            self._watches[watch_id] = (watch, state)
        logger.debug(f"Watching '{collection_path}' (watch #{watch_id})")

        def unsubscribe() -> None:
            if not state["active"]:
                return
            state["active"] = False
            with self._lock:
                current = self._watches.pop(watch_id, None)
            if current is not None:
                current[0].unsubscribe()
                logger.debug(f"Stopped watch #{watch_id} on '{collection_path}'")

        return unsubscribe

    async def write(self, path: str, payload: Dict[str, Any], merge: bool = True) -> None:
        loop = asyncio.get_running_loop()
        doc_ref = self.db.document(path)
        data = _to_firestore(payload)
        try:
            await loop.run_in_executor(None, lambda: doc_ref.set(data, merge=merge))
        except (google_exceptions.GoogleAPIError, OSError) as e:
            logger.error(f"Firestore write to {path} failed: {e}")
            raise RemoteWriteError(path, str(e)) from e

    async def delete(self, path: str) -> None:
        loop = asyncio.get_running_loop()
        doc_ref = self.db.document(path)
        try:
            await loop.run_in_executor(None, doc_ref.delete)
        except (google_exceptions.GoogleAPIError, OSError) as e:
            logger.error(f"Firestore delete of {path} failed: {e}")
            raise RemoteWriteError(path, str(e)) from e

    async def read_once(self, path: str) -> Optional[Dict[str, Any]]:
        loop = asyncio.get_running_loop()
        doc_ref = self.db.document(path)
        try:
            snap = await loop.run_in_executor(None, doc_ref.get)
        except (google_exceptions.GoogleAPIError, OSError) as e:
            logger.error(f"Firestore read of {path} failed: {e}")
            raise RemoteReadError(path, str(e)) from e
        if not snap.exists:
            return None
        return snap.to_dict() or {}

    async def upload_blob(self, path: str, data: bytes, content_type: str = "image/jpeg") -> str:
        if self.bucket is None:
            raise UploadError(path, "no storage bucket configured")
        loop = asyncio.get_running_loop()
        blob = self.bucket.blob(path)

        def _upload() -> str:
            # if_generation_match=0 makes the path write-once
            blob.upload_from_string(data, content_type=content_type, if_generation_match=0)
            blob.make_public()
            return blob.public_url

        try:
            return await loop.run_in_executor(None, _upload)
        except google_exceptions.PreconditionFailed as e:
            raise UploadError(path, "blob already exists") from e
        except (google_exceptions.GoogleAPIError, OSError) as e:
            logger.error(f"Upload to {path} failed: {e}")
            raise UploadError(path, str(e)) from e

    def close(self) -> None:
        with self._lock:
            watches = list(self._watches.values())
            self._watches.clear()
        for watch, state in watches:
            # Snapshots already queued on the loop are dropped too
            state["active"] = False
            try:
                watch.unsubscribe()
            except Exception as e:
                logger.warning(f"Error stopping Firestore watch: {e}")
