"""JSON file storage: one file per key, replaced atomically."""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from shareable_notes.exceptions import ErrorCode, StorageReadError, StorageWriteError
from shareable_notes.models.schema import utc_now
from shareable_notes.storage.base import StorageBackend

logger = logging.getLogger(__name__)

_SAFE_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_\-.]+$")
_SUFFIX = ".json"


def is_valid_key(key: str) -> bool:
    """Check that a key is usable as a file name inside the data directory."""
    return bool(key) and ".." not in key and _SAFE_KEY_PATTERN.match(key) is not None


class FileStorageBackend(StorageBackend):
    """Stores each key as ``<directory>/<key>.json``.

    Writes go to a temporary file in the same directory which is fsynced
    and then renamed over the target, so readers only ever see the old or
    the new blob.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        if not is_valid_key(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}{_SUFFIX}"

    def load(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise StorageReadError(
                f"{path.name} is not valid UTF-8",
                key=key,
                code=ErrorCode.STORAGE_CORRUPTED,
                original_error=e,
            ) from e
        except OSError as e:
            raise StorageReadError(
                f"Failed to read {path.name}", key=key, original_error=e
            ) from e

    def save(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{key}.", suffix=".tmp", dir=self.directory
            )
        except OSError as e:
            logger.error(f"Failed to write {path.name}: {e}")
            raise StorageWriteError(
                f"Failed to write {path.name}", key=key, original_error=e
            ) from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_name, path)
        except OSError as e:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass
            logger.error(f"Failed to write {path.name}: {e}")
            raise StorageWriteError(
                f"Failed to write {path.name}", key=key, original_error=e
            ) from e

    def remove(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageWriteError(
                f"Failed to delete {path.name}",
                key=key,
                operation="remove",
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=e,
            ) from e
        return True

    def keys(self) -> List[str]:
        return sorted(p.name[: -len(_SUFFIX)] for p in self.directory.glob(f"*{_SUFFIX}"))

    def quarantine(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        target = f"{key}.corrupt-{utc_now().strftime('%Y%m%dT%H%M%S%f')}"
        try:
            os.replace(path, self._path_for(target))
        except OSError as e:
            raise StorageWriteError(
                f"Failed to quarantine {path.name}",
                key=key,
                operation="quarantine",
                original_error=e,
            ) from e
        logger.warning(f"Moved unreadable blob '{key}' to '{target}'")
        return target
