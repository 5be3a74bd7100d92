"""Service layer for note lifecycle operations."""

import datetime
import html
import logging
import re
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from shareable_notes.exceptions import (
    ErrorCode,
    NotFoundError,
    NoteValidationError,
)
from shareable_notes.models.schema import DEFAULT_TITLE, Note, NoteUpdate, utc_now
from shareable_notes.observability import MetricsCollector, metrics as default_metrics, traced
from shareable_notes.services.crypto_service import ConfidentialityEngine
from shareable_notes.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)

ENCRYPTED_PREVIEW = "Encrypted content"

_MARKUP_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")


class NoteService:
    """Creates, edits, protects and queries notes.

    This is the only place the cross-field invariants are applied: every
    mutation refreshes ``updated_at``, partial updates are limited to the
    NoteUpdate whitelist, and encryption state (content, flag and hash)
    always changes in a single persisted write.

    Decryption policy: ``decrypt()`` removes protection and persists the
    note as plaintext; ``unlock()`` returns readable content for viewing
    and never writes.
    """

    def __init__(
        self,
        repository: NoteRepository,
        engine: Optional[ConfidentialityEngine] = None,
        default_title: str = DEFAULT_TITLE,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Initialize the service.

        Args:
            repository: Note repository to read from and write through.
            engine: Confidentiality engine. A default-configured one is
                created if None.
            default_title: Title given to notes created or renamed without one.
            metrics: Collector for operation metrics (module-wide by default).
        """
        self.repository = repository
        self.engine = engine if engine is not None else ConfidentialityEngine()
        self.default_title = default_title
        self.metrics = metrics or default_metrics

    def _require(self, note_id: str) -> Note:
        note = self.repository.get_by_id(note_id)
        if note is None:
            raise NotFoundError(note_id)
        return note

    @staticmethod
    def _touch(note: Note) -> None:
        """Refresh updated_at, keeping it strictly increasing per note."""
        now = utc_now()
        if now <= note.updated_at:
            now = note.updated_at + datetime.timedelta(microseconds=1)
        note.updated_at = now

    def _title_or_default(self, title: Optional[str]) -> str:
        if title is None or not title.strip():
            return self.default_title
        return title

    @staticmethod
    def _require_password(password: str, note_id: str) -> None:
        if not password or not password.strip():
            raise NoteValidationError(
                "Password is required",
                field="password",
                note_id=note_id,
                code=ErrorCode.PASSWORD_REQUIRED,
            )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @traced("create")
    def create(
        self,
        title: Optional[str] = None,
        content: str = "",
        tags: Optional[List[str]] = None,
        pinned: bool = False,
    ) -> Note:
        """Create and persist a new plaintext note.

        Args:
            title: Note title; empty or missing becomes the default title.
            content: Markup content.
            tags: Tag names, kept in order.
            pinned: Initial pinned state.

        Returns:
            The created Note.
        """
        now = utc_now()
        try:
            note = Note(
                title=self._title_or_default(title),
                content=content,
                tags=list(tags or []),
                pinned=pinned,
                created_at=now,
                updated_at=now,
            )
        except ValidationError as e:
            raise NoteValidationError(f"Invalid note: {e.errors()[0]['msg']}") from e

        created = self.repository.upsert(note)
        logger.info(f"Created note {created.id}")
        return created

    @traced("update")
    def update(
        self,
        note_id: str,
        changes: Optional[Union[NoteUpdate, Dict[str, Any]]] = None,
        **fields: Any,
    ) -> Note:
        """Apply a partial update to a note.

        Only title, content, tags and pinned may change. Content of an
        encrypted note cannot be replaced, since it must remain ciphertext.
        An update with no changes returns the note without writing.

        Args:
            note_id: ID of the note to update.
            changes: A NoteUpdate or a dict of field values.
            **fields: Field values, merged over ``changes``.

        Returns:
            The updated Note.

        Raises:
            NotFoundError: If the note does not exist.
            NoteValidationError: If a field is not updatable or invalid.
        """
        if isinstance(changes, NoteUpdate):
            values = {**changes.model_dump(exclude_unset=True), **fields}
        else:
            values = {**(changes or {}), **fields}
        try:
            update = NoteUpdate.model_validate(values)
        except ValidationError as e:
            error = e.errors()[0]
            field = str(error["loc"][0]) if error["loc"] else None
            code = (
                ErrorCode.IMMUTABLE_FIELD
                if error["type"] == "extra_forbidden"
                else ErrorCode.NOTE_VALIDATION_FAILED
            )
            raise NoteValidationError(
                f"Cannot update field '{field}': {error['msg']}",
                field=field,
                note_id=note_id,
                code=code,
            ) from e

        note = self._require(note_id)
        applied = update.changes()
        if not applied:
            return note

        if "content" in applied and note.encrypted:
            raise NoteValidationError(
                "Cannot edit the content of an encrypted note; decrypt it first",
                field="content",
                note_id=note_id,
                code=ErrorCode.NOTE_ENCRYPTED,
            )
        if "title" in applied:
            applied["title"] = self._title_or_default(applied["title"])

        for name, value in applied.items():
            setattr(note, name, value)
        self._touch(note)
        return self.repository.upsert(note)

    @traced("delete")
    def delete(self, note_id: str) -> bool:
        """Delete a note. Deleting an absent note is a no-op.

        Returns:
            True if a note was removed.
        """
        removed = self.repository.remove(note_id)
        if removed:
            logger.info(f"Deleted note {note_id}")
        return removed

    @traced("toggle_pin")
    def toggle_pin(self, note_id: str) -> Note:
        """Flip a note's pinned flag."""
        note = self._require(note_id)
        return self.update(note_id, pinned=not note.pinned)

    @traced("add_tag")
    def add_tag(self, note_id: str, tag: str) -> Note:
        """Append a tag (duplicates are kept)."""
        tag = tag.strip()
        if not tag:
            raise NoteValidationError("Tag cannot be empty", field="tags", note_id=note_id)
        note = self._require(note_id)
        return self.update(note_id, tags=[*note.tags, tag])

    @traced("remove_tag")
    def remove_tag(self, note_id: str, tag: str) -> Note:
        """Remove every occurrence of a tag. Absent tags leave the note untouched."""
        note = self._require(note_id)
        remaining = [t for t in note.tags if t != tag]
        if len(remaining) == len(note.tags):
            return note
        return self.update(note_id, tags=remaining)

    # =========================================================================
    # Confidentiality
    # =========================================================================

    @traced("encrypt")
    def encrypt(self, note_id: str, password: str) -> Note:
        """Password-protect a note and persist the ciphertext.

        Raises:
            NotFoundError: If the note does not exist.
            NoteValidationError: If the password is empty or blank.
            EncryptionError: If the note is already encrypted or encryption fails.
        """
        self._require_password(password, note_id)
        note = self._require(note_id)
        protected = self.engine.encrypt_note(note, password)
        self._touch(protected)
        saved = self.repository.upsert(protected)
        logger.info(f"Encrypted note {note_id}")
        return saved

    @traced("decrypt")
    def decrypt(self, note_id: str, password: str) -> Note:
        """Remove a note's protection and persist it as plaintext.

        A note that is not encrypted is returned unchanged.

        Raises:
            NotFoundError: If the note does not exist.
            InvalidPasswordError: If the password does not match the stored hash.
            DecryptionError: If the content cannot be decrypted.
        """
        note = self._require(note_id)
        if not note.encrypted:
            return note
        plain = self.engine.to_plaintext(note, password)
        self._touch(plain)
        saved = self.repository.upsert(plain)
        logger.info(f"Decrypted note {note_id}")
        return saved

    @traced("unlock")
    def unlock(self, note_id: str, password: str) -> Note:
        """Return a readable copy of a note without changing what is stored.

        The copy still reports ``encrypted=True``; saving it is not supported.
        """
        return self.engine.decrypt_note(self._require(note_id), password)

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, note_id: str) -> Optional[Note]:
        """Retrieve a note by ID."""
        return self.repository.get_by_id(note_id)

    def get_all(self) -> List[Note]:
        return self.repository.get_all()

    def count(self) -> int:
        return self.repository.count()

    def filter_by_pinned(self, pinned: bool) -> List[Note]:
        return self.repository.filter_by_pinned(pinned)

    def pinned(self) -> List[Note]:
        return self.repository.filter_by_pinned(True)

    def unpinned(self) -> List[Note]:
        return self.repository.filter_by_pinned(False)

    @traced("search")
    def search(self, query: str) -> List[Note]:
        """Search notes; a blank query returns the whole collection.

        Encrypted notes are excluded from non-blank searches.
        """
        if not query or not query.strip():
            return self.repository.get_all()
        return self.repository.search(query)

    def preview(self, note: Note, max_length: int = 80) -> str:
        """Plain-text preview for list views.

        Markup is stripped and whitespace collapsed. Encrypted notes get a
        fixed placeholder so ciphertext is never displayed.
        """
        if note.encrypted:
            return ENCRYPTED_PREVIEW
        text = html.unescape(_MARKUP_PATTERN.sub(" ", note.content))
        text = _WHITESPACE_PATTERN.sub(" ", text).strip()
        if len(text) <= max_length:
            return text
        return text[:max_length] + "..."
