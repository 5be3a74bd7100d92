"""Base key/value storage interface."""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from shareable_notes.models.schema import utc_now

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Durable key/value medium holding one serialized blob per key.

    Implementations must make ``save`` atomic from the caller's point of
    view: after it returns the new blob is stored, and after it raises the
    previous blob is still intact.
    """

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Return the blob stored under ``key``, or None if absent.

        Raises:
            StorageReadError: If the medium cannot be read.
        """
        pass

    @abstractmethod
    def save(self, key: str, value: str) -> None:
        """Overwrite the blob stored under ``key``.

        Raises:
            StorageWriteError: If the write did not complete.
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Delete ``key``. Returns False if it was absent."""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """List every key currently stored."""
        pass

    def clear(self, keys: Optional[List[str]] = None) -> int:
        """Remove the given keys (all keys when None). Returns the count removed."""
        targets = self.keys() if keys is None else keys
        return sum(1 for key in targets if self.remove(key))

    def quarantine(self, key: str) -> Optional[str]:
        """Move an unreadable blob aside so a later save cannot destroy it.

        Returns:
            The key the blob now lives under, or None if nothing was stored.
        """
        value = self.load(key)
        if value is None:
            return None
        target = f"{key}.corrupt-{utc_now().strftime('%Y%m%dT%H%M%S%f')}"
        self.save(target, value)
        self.remove(key)
        logger.warning(f"Moved unreadable blob '{key}' to '{target}'")
        return target
