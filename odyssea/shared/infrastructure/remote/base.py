"""Remote collection client contract.

The stores only talk to the backend through this interface:
subscribe to a query, write a document, read one document, upload a blob.
Subscriptions always push the full current result set.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

SUPPORTED_OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in", "array-contains")


class _ServerTimestamp:
    """Sentinel replaced with the backend clock when a write is applied."""

    _instance: Optional["_ServerTimestamp"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in SUPPORTED_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class RemoteDocument:
    """One document of a snapshot: its id (last path segment) and data."""

    id: str
    data: Dict[str, Any] = field(default_factory=dict)


Snapshot = Tuple[RemoteDocument, ...]
SnapshotCallback = Callable[[Snapshot], None]
Unsubscribe = Callable[[], None]


class RemoteCollectionClient(ABC):
    """Contract consumed by the stores."""

    @abstractmethod
    def subscribe(
        self,
        collection_path: str,
        on_change: SnapshotCallback,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[OrderBy] = None,
    ) -> Unsubscribe:
        """Start a live query.

        ``on_change`` receives the full ordered snapshot on every change and
        always runs on the event loop thread. The returned callable is
        idempotent; once it returns, ``on_change`` is never invoked again.
        """

    @abstractmethod
    async def write(self, path: str, payload: Dict[str, Any], merge: bool = True) -> None:
        """Upsert the document at ``path``.

        Raises:
            RemoteWriteError: On network or permission failure
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the document at ``path``; deleting a missing document is a no-op.

        Raises:
            RemoteWriteError: On network or permission failure
        """

    @abstractmethod
    async def read_once(self, path: str) -> Optional[Dict[str, Any]]:
        """Read one document; ``None`` when it does not exist."""

    @abstractmethod
    async def upload_blob(self, path: str, data: bytes, content_type: str = "image/jpeg") -> str:
        """Upload content and return a stable retrieval URL.

        Raises:
            UploadError: When the upload fails
        """

    def close(self) -> None:
        """Release client resources. Default is a no-op."""


def split_path(path: str) -> Tuple[str, str]:
    """Split ``trips/abc`` into (``trips``, ``abc``)."""
    parts = [p for p in path.strip("/").split("/") if p]
    if len(parts) < 2 or len(parts) % 2 != 0:
        raise ValueError(f"Not a document path: {path!r}")
    return "/".join(parts[:-1]), parts[-1]
