"""Configuration module for Shareable Notes."""

import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from shareable_notes.models.schema import DEFAULT_TITLE

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config lives alongside the default data directory
_USER_ENV = Path.home() / ".shareable_notes" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

# Logical key the note collection is stored under
DEFAULT_STORAGE_KEY = "shareable_notes_app_notes"

# PBKDF2 iteration count used when deriving per-note encryption keys
DEFAULT_KDF_ITERATIONS = 480_000
_MIN_KDF_ITERATIONS = 1_000


class NotesConfig(BaseModel):
    """Configuration for the note store."""

    # Base directory for relative paths
    base_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("SHAREABLE_NOTES_BASE_DIR", str(Path.home() / ".shareable_notes"))
        )
    )
    # Directory holding JSON blobs or the SQLite database
    data_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("SHAREABLE_NOTES_DATA_DIR", "data"))
    )
    # Which key/value medium backs the collection
    storage_backend: Literal["json", "sqlite"] = Field(
        default_factory=lambda: os.getenv("SHAREABLE_NOTES_STORAGE_BACKEND", "json").lower(),
        validate_default=True,
    )
    storage_key: str = Field(
        default_factory=lambda: os.getenv("SHAREABLE_NOTES_STORAGE_KEY", DEFAULT_STORAGE_KEY)
    )
    database_name: str = Field(
        default_factory=lambda: os.getenv("SHAREABLE_NOTES_DATABASE_NAME", "notes.db")
    )
    kdf_iterations: int = Field(
        default_factory=lambda: int(
            os.getenv("SHAREABLE_NOTES_KDF_ITERATIONS", str(DEFAULT_KDF_ITERATIONS))
        )
    )
    # Placeholder used when a note is created or renamed with an empty title
    default_title: str = Field(
        default_factory=lambda: os.getenv("SHAREABLE_NOTES_DEFAULT_TITLE", DEFAULT_TITLE)
    )
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("SHAREABLE_NOTES_LOG_DIR"))
            if os.getenv("SHAREABLE_NOTES_LOG_DIR")
            else None
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("SHAREABLE_NOTES_LOG_LEVEL", "INFO").upper()
    )

    model_config = {"validate_assignment": True}

    @model_validator(mode="after")
    def _validate_settings(self) -> "NotesConfig":
        """Validate numeric ranges and warn about weak key derivation."""
        if self.kdf_iterations < _MIN_KDF_ITERATIONS:
            raise ValueError(f"kdf_iterations must be >= {_MIN_KDF_ITERATIONS}")
        if not self.storage_key.strip():
            raise ValueError("storage_key cannot be empty")
        if not self.default_title.strip():
            raise ValueError("default_title cannot be empty")
        if self.kdf_iterations < 100_000:
            logger.warning(
                "kdf_iterations=%d is low; encrypted notes are cheaper to brute-force.",
                self.kdf_iterations,
            )
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_data_dir(self) -> Path:
        """Get the absolute data directory, creating it if needed."""
        data_dir = self.get_absolute_path(self.data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def get_database_path(self) -> Path:
        """Get the absolute path to the SQLite key/value database."""
        return self.get_data_dir() / self.database_name

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        return f"sqlite:///{self.get_database_path()}"

    def get_log_dir(self) -> Path:
        """Get the log directory (defaults to <base_dir>/logs)."""
        if self.log_dir is None:
            return self.base_dir / "logs"
        return self.get_absolute_path(self.log_dir)


# Create a global config instance
config = NotesConfig()
