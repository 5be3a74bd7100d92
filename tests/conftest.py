"""Common test fixtures for Shareable Notes."""

import tempfile
from pathlib import Path

import pytest

from shareable_notes.config import config
from shareable_notes.observability import MetricsCollector
from shareable_notes.services.crypto_service import ConfidentialityEngine
from shareable_notes.services.note_service import NoteService
from shareable_notes.storage.note_repository import NoteRepository
from shareable_notes.storage.note_store import NoteStore
from tests.fakes import FailingStorageBackend, MemoryStorageBackend

# Key derivation is deliberately slow; tests use the configured minimum
TEST_KDF_ITERATIONS = 1_000


@pytest.fixture
def temp_dir():
    """Create a temporary data directory."""
    with tempfile.TemporaryDirectory() as data_dir:
        yield Path(data_dir)


@pytest.fixture
def test_config(temp_dir, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    monkeypatch.setattr(config, "base_dir", temp_dir)
    monkeypatch.setattr(config, "data_dir", Path("data"))
    monkeypatch.setattr(config, "log_dir", temp_dir / "logs")
    monkeypatch.setattr(config, "kdf_iterations", TEST_KDF_ITERATIONS)
    yield config


@pytest.fixture
def engine():
    """Confidentiality engine with a cheap key derivation."""
    return ConfidentialityEngine(kdf_iterations=TEST_KDF_ITERATIONS)


@pytest.fixture
def memory_backend():
    return MemoryStorageBackend()


@pytest.fixture
def failing_backend():
    return FailingStorageBackend()


@pytest.fixture
def note_repository(memory_backend):
    """Create a repository over an empty in-memory backend."""
    return NoteRepository(NoteStore(memory_backend))


@pytest.fixture
def note_service(note_repository, engine):
    """Create a NoteService with its own metrics collector."""
    return NoteService(note_repository, engine=engine, metrics=MetricsCollector())
