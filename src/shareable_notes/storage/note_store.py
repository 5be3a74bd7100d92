"""Collection-level persistence: one note collection under one key."""

import logging
from typing import List, Optional

from shareable_notes.config import DEFAULT_STORAGE_KEY
from shareable_notes.exceptions import (
    ErrorCode,
    StorageError,
    StorageReadError,
    StorageWriteError,
)
from shareable_notes.models.schema import DEFAULT_TITLE, Note
from shareable_notes.storage.base import StorageBackend
from shareable_notes.storage.codec import decode_collection, encode_collection

logger = logging.getLogger(__name__)

# Read errors meaning the stored bytes themselves are bad, not the medium
_CORRUPTION_CODES = (ErrorCode.STORAGE_CORRUPTED, ErrorCode.UNSUPPORTED_SCHEMA_VERSION)


class NoteStore:
    """Loads and saves the whole note collection through a backend.

    Reads fail soft: a missing, unreadable or undecodable collection loads
    as empty, since "no notes yet" is always a valid state. Two cases are
    kept apart:

    - Corrupt data is quarantined first, so the next save cannot
      overwrite it.
    - A failure of the medium itself (I/O error, locked database) sets
      ``read_failed``. The stored blob may be perfectly good, so the
      repository refuses to write until a later load succeeds.

    Writes fail hard with StorageWriteError.
    """

    def __init__(
        self,
        backend: StorageBackend,
        key: str = DEFAULT_STORAGE_KEY,
        default_title: str = DEFAULT_TITLE,
    ):
        self.backend = backend
        self.key = key
        self.default_title = default_title
        self.last_quarantine: Optional[str] = None
        self.read_failed = False

    def load(self) -> List[Note]:
        """Load the collection, returning [] on absence or any read error."""
        try:
            blob = self.backend.load(self.key)
            notes = [] if blob is None else decode_collection(blob, self.default_title)
        except StorageReadError as e:
            if e.code in _CORRUPTION_CODES:
                logger.error(f"Stored note collection is unreadable: {e}")
                # Until the bad blob is moved aside, a save would destroy it
                self.read_failed = not self._quarantine()
            else:
                logger.error(f"Error reading note collection: {e}")
                self.read_failed = True
            return []

        self.read_failed = False
        logger.debug(f"Loaded {len(notes)} notes from '{self.key}'")
        return notes

    def _quarantine(self) -> bool:
        try:
            self.last_quarantine = self.backend.quarantine(self.key)
        except StorageError as e:
            logger.error(f"Failed to quarantine unreadable collection: {e}")
            return False
        return True

    def save(self, notes: List[Note]) -> None:
        """Overwrite the persisted collection.

        Raises:
            StorageWriteError: If serialization or the write fails.
        """
        try:
            blob = encode_collection(notes)
        except (TypeError, ValueError) as e:
            raise StorageWriteError(
                "Failed to serialize note collection", key=self.key, original_error=e
            ) from e
        self.backend.save(self.key, blob)
        logger.debug(f"Saved {len(notes)} notes to '{self.key}'")

    def clear(self) -> bool:
        """Delete the persisted collection entirely."""
        removed = self.backend.remove(self.key)
        self.read_failed = False
        return removed
