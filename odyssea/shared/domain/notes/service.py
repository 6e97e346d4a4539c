"""Notes and checklist sub-collections of a trip.

    /trips/{trip_id}/notes/{note_id}      newest first
    /trips/{trip_id}/checklist/{item_id}  oldest first
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List

from odyssea.shared.domain.mapping import checklist_item_from_document, note_from_document
from odyssea.shared.domain.models import (
    DEFAULT_NOTE_TITLE,
    ChecklistItem,
    ChecklistProgress,
    TripNote,
    new_document_id,
)
from odyssea.shared.infrastructure.remote import paths
from odyssea.shared.infrastructure.remote.base import OrderBy, RemoteCollectionClient, Snapshot, Unsubscribe

logger = logging.getLogger(__name__)


def checklist_progress(items: Iterable[ChecklistItem]) -> ChecklistProgress:
    items = list(items)
    return ChecklistProgress(done=sum(1 for item in items if item.done), total=len(items))


class TripNotesService:
    def __init__(self, remote: RemoteCollectionClient):
        self.remote = remote

    def subscribe_notes(self, trip_id: str, on_notes: Callable[[List[TripNote]], None]) -> Unsubscribe:
        def handle(snapshot: Snapshot) -> None:
            on_notes([note_from_document(doc.id, doc.data) for doc in snapshot])

        return self.remote.subscribe(paths.notes_col(trip_id), handle, order_by=OrderBy("createdAt", descending=True))

    def subscribe_checklist(self, trip_id: str, on_items: Callable[[List[ChecklistItem]], None]) -> Unsubscribe:
        def handle(snapshot: Snapshot) -> None:
            on_items([checklist_item_from_document(doc.id, doc.data) for doc in snapshot])

        return self.remote.subscribe(paths.checklist_col(trip_id), handle, order_by=OrderBy("createdAt"))

    async def add_note(self, trip_id: str, title: str, body: str) -> TripNote:
        """Write a new note; a missing title gets the default one.

        Raises:
            ValueError: If both title and body are empty
            RemoteWriteError: If the write fails
        """
        title = title.strip()
        body = body.strip()
        if not title and not body:
            raise ValueError("A note needs a title or a body")

        note = TripNote(id=new_document_id(), title=title or DEFAULT_NOTE_TITLE, body=body)
        payload = note.to_document()
        payload.pop("id")
        await self.remote.write(paths.note_doc(trip_id, note.id), payload, merge=False)
        logger.debug(f"Added note {note.id} to trip {trip_id}")
        return note

    async def add_checklist_item(self, trip_id: str, text: str) -> ChecklistItem:
        """Raises ValueError for blank text, RemoteWriteError if the write fails."""
        text = text.strip()
        if not text:
            raise ValueError("A checklist item needs text")

        item = ChecklistItem(id=new_document_id(), text=text)
        payload = item.to_document()
        payload.pop("id")
        await self.remote.write(paths.checklist_doc(trip_id, item.id), payload, merge=False)
        return item

    async def set_item_done(self, trip_id: str, item_id: str, done: bool) -> None:
        await self.remote.write(paths.checklist_doc(trip_id, item_id), {"done": done}, merge=True)
