"""In-memory storage backends for testing.

These keep blobs in a plain dict so repository and service tests run
without touching disk, and let tests inject read and write failures at
exact points.

Design principles:
- Use the real FileStorageBackend / SqliteStorageBackend in backend tests
- Fakes implement the full StorageBackend interface, nothing more
- Inspectable: tests can read the raw stored blob and count writes
"""
from typing import Dict, List, Optional

from shareable_notes.exceptions import StorageReadError, StorageWriteError
from shareable_notes.storage.base import StorageBackend


class MemoryStorageBackend(StorageBackend):
    """Dict-backed key/value storage."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.blobs: Dict[str, str] = dict(initial or {})
        self.save_count = 0

    def load(self, key: str) -> Optional[str]:
        return self.blobs.get(key)

    def save(self, key: str, value: str) -> None:
        self.save_count += 1
        self.blobs[key] = value

    def remove(self, key: str) -> bool:
        return self.blobs.pop(key, None) is not None

    def keys(self) -> List[str]:
        return sorted(self.blobs)


class FailingStorageBackend(MemoryStorageBackend):
    """Memory backend whose writes or reads can be switched to fail.

    ``fail_writes`` makes every save raise StorageWriteError (like a full
    disk); ``fail_reads`` makes every load raise StorageReadError.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        super().__init__(initial)
        self.fail_writes = False
        self.fail_reads = False

    def load(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise StorageReadError("Simulated read failure", key=key)
        return super().load(key)

    def save(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageWriteError("Simulated quota exceeded", key=key)
        super().save(key, value)
