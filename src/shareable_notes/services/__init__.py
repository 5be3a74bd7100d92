"""Service layer for Shareable Notes."""

from shareable_notes.services.crypto_service import ConfidentialityEngine
from shareable_notes.services.note_service import NoteService

__all__ = [
    "ConfidentialityEngine",
    "NoteService",
]
