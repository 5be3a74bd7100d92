"""Repository for the in-memory note collection with write-through persistence."""

import logging
import threading
from typing import Dict, List, Optional

from shareable_notes.exceptions import StorageWriteError
from shareable_notes.models.schema import Note
from shareable_notes.storage.note_store import NoteStore

logger = logging.getLogger(__name__)


class NoteRepository:
    """CRUD and query operations over the note collection.

    The collection is held in memory keyed by note ID and re-persisted as
    a whole on every mutation. If a save fails the in-memory collection is
    restored to the last persisted state before the error propagates, so
    memory and storage never silently diverge.

    Notes handed out are deep copies; the only way to change stored state
    is through upsert() and remove().
    """

    def __init__(self, store: NoteStore):
        self.store = store
        self._lock = threading.RLock()
        self._notes: Dict[str, Note] = {}
        self.reload()

    def reload(self) -> int:
        """Replace the in-memory collection with the persisted one.

        Returns:
            Number of notes loaded.
        """
        notes: Dict[str, Note] = {}
        for note in self.store.load():
            if note.id in notes:
                logger.warning(f"Duplicate note ID '{note.id}' in storage, keeping last")
            notes[note.id] = note
        with self._lock:
            self._notes = notes
        logger.info(f"Loaded {len(notes)} notes")
        return len(notes)

    def _ensure_writable(self, operation: str) -> None:
        """Refuse writes while the persisted collection is unread.

        After a failed load the in-memory collection is empty, and saving
        it would replace notes that are still on disk.
        """
        if self.store.read_failed:
            raise StorageWriteError(
                "Stored notes could not be read; reload before making changes",
                key=self.store.key,
                operation=operation,
            )

    def _persist(self, previous: Dict[str, Note]) -> None:
        """Save the current collection, restoring ``previous`` on failure."""
        try:
            self.store.save(list(self._notes.values()))
        except StorageWriteError:
            self._notes = previous
            logger.error("Save failed; rolled back in-memory collection")
            raise

    # =========================================================================
    # Reads
    # =========================================================================

    def get_all(self) -> List[Note]:
        """Get every note, in insertion order."""
        with self._lock:
            return [note.model_copy(deep=True) for note in self._notes.values()]

    def get_by_id(self, note_id: str) -> Optional[Note]:
        """Get a note by ID, or None if absent."""
        with self._lock:
            note = self._notes.get(note_id)
            return note.model_copy(deep=True) if note is not None else None

    def exists(self, note_id: str) -> bool:
        with self._lock:
            return note_id in self._notes

    def count(self) -> int:
        with self._lock:
            return len(self._notes)

    def filter_by_pinned(self, pinned: bool) -> List[Note]:
        """Get notes whose pinned flag equals ``pinned``."""
        with self._lock:
            return [
                note.model_copy(deep=True)
                for note in self._notes.values()
                if note.pinned == pinned
            ]

    def search(self, query: str) -> List[Note]:
        """Case-insensitive substring search over title, content and tags.

        Encrypted notes never match, whatever their title or tags contain:
        an encrypted note is opaque to search as a whole.
        """
        needle = query.lower()
        with self._lock:
            return [
                note.model_copy(deep=True)
                for note in self._notes.values()
                if not note.encrypted and self._matches(note, needle)
            ]

    @staticmethod
    def _matches(note: Note, needle: str) -> bool:
        return (
            needle in note.title.lower()
            or needle in note.content.lower()
            or any(needle in tag.lower() for tag in note.tags)
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def upsert(self, note: Note) -> Note:
        """Insert or replace a note, then persist the full collection.

        Raises:
            StorageWriteError: If the save fails (memory is rolled back).
        """
        with self._lock:
            self._ensure_writable("upsert")
            previous = dict(self._notes)
            self._notes[note.id] = note.model_copy(deep=True)
            self._persist(previous)
            logger.debug(f"Upserted note {note.id}")
            return note.model_copy(deep=True)

    def remove(self, note_id: str) -> bool:
        """Remove a note and persist the full collection.

        Returns:
            False without writing if the note was already absent.

        Raises:
            StorageWriteError: If the save fails (memory is rolled back).
        """
        with self._lock:
            if note_id not in self._notes:
                return False
            self._ensure_writable("remove")
            previous = dict(self._notes)
            del self._notes[note_id]
            self._persist(previous)
            logger.debug(f"Removed note {note_id}")
            return True

    def clear(self) -> int:
        """Delete every note and the persisted collection."""
        with self._lock:
            removed = len(self._notes)
            self.store.clear()
            self._notes = {}
            logger.info(f"Cleared {removed} notes")
            return removed
