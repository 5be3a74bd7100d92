"""Serialization of a note collection to a single JSON blob."""

import json
from typing import Any, Iterable, List

from pydantic import ValidationError

from shareable_notes.exceptions import ErrorCode, StorageReadError
from shareable_notes.models.schema import DEFAULT_TITLE, Note

# Version written into every blob; bare arrays are read as version 0
SCHEMA_VERSION = 1


def encode_collection(notes: Iterable[Note]) -> str:
    """Serialize notes to the versioned envelope."""
    return json.dumps(
        {
            "schemaVersion": SCHEMA_VERSION,
            "notes": [note.to_record() for note in notes],
        },
        ensure_ascii=False,
    )


def decode_collection(blob: str, default_title: str = DEFAULT_TITLE) -> List[Note]:
    """Parse a blob written by encode_collection() or by a legacy client.

    Accepts either the versioned envelope or a bare JSON array of note
    records. Records with a missing or blank title get ``default_title``.

    Raises:
        StorageReadError: If the blob is not valid JSON, has an unknown
            layout or a newer schema version, or any record is invalid.
    """
    try:
        data = json.loads(blob)
    except (json.JSONDecodeError, TypeError) as e:
        raise StorageReadError(
            "Stored collection is not valid JSON",
            code=ErrorCode.STORAGE_CORRUPTED,
            original_error=e,
        ) from e

    if isinstance(data, list):
        records = data
    elif isinstance(data, dict):
        version = data.get("schemaVersion")
        if not isinstance(version, int) or isinstance(version, bool):
            raise StorageReadError(
                "Stored collection has no valid schemaVersion",
                code=ErrorCode.STORAGE_CORRUPTED,
            )
        if version > SCHEMA_VERSION:
            raise StorageReadError(
                f"Stored collection uses schema version {version}, "
                f"newest supported is {SCHEMA_VERSION}",
                code=ErrorCode.UNSUPPORTED_SCHEMA_VERSION,
            )
        records = data.get("notes")
        if not isinstance(records, list):
            raise StorageReadError(
                "Stored collection has no notes list",
                code=ErrorCode.STORAGE_CORRUPTED,
            )
    else:
        raise StorageReadError(
            "Stored collection has an unknown layout",
            code=ErrorCode.STORAGE_CORRUPTED,
        )

    try:
        return [Note.from_record(_with_title(record, default_title)) for record in records]
    except (ValidationError, TypeError) as e:
        raise StorageReadError(
            "Stored collection contains an invalid note",
            code=ErrorCode.STORAGE_CORRUPTED,
            original_error=e,
        ) from e


def _with_title(record: Any, default_title: str) -> Any:
    if not isinstance(record, dict):
        return record
    title = record.get("title")
    if title is None or (isinstance(title, str) and not title.strip()):
        return {**record, "title": default_title}
    return record
