"""Data models for Shareable Notes."""

import datetime
import os
import threading
from dataclasses import dataclass
from datetime import timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Placeholder title for notes created or renamed without one
DEFAULT_TITLE = "Untitled Note"


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    Collections written by older clients may carry naive ISO strings;
    those are assumed to be UTC.
    """
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


# Thread-safe counter for uniqueness (seeded from PID for cross-process safety)
_id_lock = threading.Lock()
_last_timestamp = 0
_counter = (os.getpid() * 7) % 1_000_000


def generate_id() -> str:
    """Generate a timestamp-based note ID with guaranteed uniqueness.

    Returns:
        A string in format "YYYYMMDDTHHMMSSsssssscccccc" where:
        - YYYYMMDD is the date
        - T is the ISO 8601 date/time separator
        - HHMMSS is the time (hours, minutes, seconds)
        - ssssss is the 6-digit microsecond component
        - cccccc is a 6-digit counter for same-microsecond uniqueness
    """
    global _last_timestamp, _counter

    with _id_lock:
        now = utc_now()
        current_timestamp = int(now.timestamp() * 1_000_000)

        # If multiple IDs generated in same microsecond, increment counter
        if current_timestamp == _last_timestamp:
            _counter += 1
        else:
            _last_timestamp = current_timestamp
            _counter = (os.getpid() * 7) % 1_000_000

        _counter %= 1_000_000

        date_time = now.strftime("%Y%m%dT%H%M%S")
        return f"{date_time}{now.microsecond:06d}{_counter:06d}"


@dataclass(frozen=True)
class PlainContent:
    """Note content that is readable markup."""

    text: str


@dataclass(frozen=True)
class EncryptedContent:
    """Note content that is ciphertext, with the hash of its password.

    password_hash is None only for notes written by clients that did not
    store one; decryption then proceeds without pre-validation.
    """

    ciphertext: str
    password_hash: Optional[str]


NoteBody = Union[PlainContent, EncryptedContent]


class Note(BaseModel):
    """A single note.

    Serialized with camelCase field names (createdAt, passwordHash, ...)
    so persisted collections stay readable by other clients.
    """

    id: str = Field(default_factory=generate_id, description="Unique ID of the note")
    title: str = Field(default=DEFAULT_TITLE, description="Title of the note")
    content: str = Field(
        default="", description="Markup, or ciphertext when the note is encrypted"
    )
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was last updated (UTC)"
    )
    pinned: bool = Field(default=False, description="Whether the note is pinned")
    tags: List[str] = Field(
        default_factory=list, description="Tags in insertion order, duplicates allowed"
    )
    encrypted: bool = Field(
        default=False, description="Whether content holds ciphertext"
    )
    password_hash: Optional[str] = Field(
        default=None, description="One-way hash of the note password"
    )

    model_config = {
        "validate_assignment": True,
        "extra": "forbid",
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate that the ID is not blank."""
        if not v or not v.strip():
            raise ValueError("Note ID cannot be empty")
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Replace an empty title with the placeholder.

        Stored collections are decoded with the configured default title
        filled in first, so this fallback only applies to notes built
        directly in code.
        """
        if not v or not v.strip():
            return DEFAULT_TITLE
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def validate_timestamps(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_timezone_aware(v)

    @model_validator(mode="after")
    def validate_encryption_state(self) -> "Note":
        """A plaintext note never carries a password hash."""
        if not self.encrypted and self.password_hash is not None:
            raise ValueError("passwordHash must be null when the note is not encrypted")
        return self

    @property
    def body(self) -> NoteBody:
        """The content as a tagged variant of plaintext or ciphertext."""
        if self.encrypted:
            return EncryptedContent(self.content, self.password_hash)
        return PlainContent(self.content)

    def with_body(self, body: NoteBody) -> "Note":
        """Return a copy whose content, flag and hash all follow ``body``."""
        if isinstance(body, EncryptedContent):
            update = {
                "content": body.ciphertext,
                "encrypted": True,
                "password_hash": body.password_hash,
            }
        else:
            update = {"content": body.text, "encrypted": False, "password_hash": None}
        return self.model_copy(update=update, deep=True)

    def to_record(self) -> Dict[str, Any]:
        """Convert to the JSON-ready record stored in the collection blob."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Note":
        """Build a note from a stored record (camelCase or snake_case keys)."""
        return cls.model_validate(record)


class NoteUpdate(BaseModel):
    """Whitelist of fields a partial update may change.

    Identity, timestamps and encryption state are deliberately absent;
    passing any of them is a validation error.
    """

    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    pinned: Optional[bool] = None

    model_config = {"extra": "forbid"}

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly provided by the caller."""
        return {
            name: value
            for name, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }
