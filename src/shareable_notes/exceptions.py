"""Custom exceptions for Shareable Notes.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_VALIDATION_FAILED = 1002
    NOTE_ENCRYPTED = 1003

    # Confidentiality errors (3xxx)
    ENCRYPTION_FAILED = 3001
    DECRYPTION_FAILED = 3002
    INVALID_PASSWORD = 3003
    PASSWORD_REQUIRED = 3004
    ALREADY_ENCRYPTED = 3005

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003
    STORAGE_CORRUPTED = 4004
    UNSUPPORTED_SCHEMA_VERSION = 4005

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    IMMUTABLE_FIELD = 7002


class NotesError(Exception):
    """Base exception for all Shareable Notes errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NotFoundError(NotesError):
    """Raised when a note cannot be found."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID '{note_id}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id}
        )
        self.note_id = note_id


class NoteValidationError(NotesError):
    """Raised when note data or a requested change fails validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        note_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOTE_VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if note_id:
            details["note_id"] = note_id

        super().__init__(message, code=code, details=details)
        self.field = field
        self.note_id = note_id


class StorageError(NotesError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        key: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.key = key
        self.original_error = original_error


class StorageReadError(StorageError):
    """Raised when a persisted collection cannot be read or decoded.

    Collection loads absorb this error and fall back to an empty collection.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message,
            operation="load",
            key=key,
            code=code,
            original_error=original_error
        )


class StorageWriteError(StorageError):
    """Raised when persisting the collection fails.

    Never absorbed: callers must learn that their data was not saved.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        operation: str = "save",
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message,
            operation=operation,
            key=key,
            code=code,
            original_error=original_error
        )


class ConfidentialityError(NotesError):
    """Base class for encryption, decryption and password errors."""

    def __init__(
        self,
        message: str,
        note_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.ENCRYPTION_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if note_id:
            details["note_id"] = note_id
        if original_error:
            details["original_error"] = type(original_error).__name__

        super().__init__(message, code=code, details=details)
        self.note_id = note_id
        self.original_error = original_error


class EncryptionError(ConfidentialityError):
    """Raised when the encryption primitive fails or a note is already encrypted."""

    def __init__(
        self,
        message: str = "Failed to encrypt note",
        note_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.ENCRYPTION_FAILED,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, note_id=note_id, code=code, original_error=original_error)


class DecryptionError(ConfidentialityError):
    """Raised when ciphertext is malformed, tampered with, or the password is wrong."""

    def __init__(
        self,
        message: str = "Invalid password or corrupted data",
        note_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.DECRYPTION_FAILED,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, note_id=note_id, code=code, original_error=original_error)


class InvalidPasswordError(ConfidentialityError):
    """Raised when a password does not match the stored password hash."""

    def __init__(self, note_id: Optional[str] = None, message: str = "Invalid password"):
        super().__init__(message, note_id=note_id, code=ErrorCode.INVALID_PASSWORD)


class ConfigurationError(NotesError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key
