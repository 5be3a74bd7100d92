"""Storage layer for Shareable Notes."""

from shareable_notes.storage.base import StorageBackend
from shareable_notes.storage.file_backend import FileStorageBackend
from shareable_notes.storage.note_repository import NoteRepository
from shareable_notes.storage.note_store import NoteStore
from shareable_notes.storage.sqlite_backend import SqliteStorageBackend

__all__ = [
    "StorageBackend",
    "FileStorageBackend",
    "SqliteStorageBackend",
    "NoteStore",
    "NoteRepository",
]
