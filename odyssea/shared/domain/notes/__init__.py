"""Trip journal: notes and packing/todo checklist."""

from odyssea.shared.domain.notes.service import TripNotesService, checklist_progress

__all__ = ["TripNotesService", "checklist_progress"]
