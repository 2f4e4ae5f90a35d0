"""Custom exceptions for Sapphire Notes.

Provides a structured exception hierarchy with error codes and
machine-readable error information, so the presentation layer can turn
every failure into a message for the user.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_NAME_REQUIRED = 1002
    NOTE_NAME_INVALID = 1003
    NOTE_ALREADY_EXISTS = 1004

    # Metadata errors (2xxx)
    METADATA_NOT_FOUND = 2001
    METADATA_ALREADY_EXISTS = 2002

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003
    STORAGE_MOVE_FAILED = 4004
    DATABASE_FAILED = 4005

    # Bulk move errors (45xx)
    MOVE_CONFLICT = 4501
    MOVE_ARCHIVE_CONFLICT = 4502

    # Configuration / preferences errors (6xxx)
    CONFIG_INVALID = 6001
    CONFIG_MISSING = 6002
    PREFERENCES_CORRUPTED = 6003

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001


class NotesError(Exception):
    """Base exception for all notes engine errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
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
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class ValidationError(NotesError):
    """Raised for general validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class NoteValidationError(ValidationError):
    """Raised when a note name fails validation.

    Always raised before either store is touched, so the caller can simply
    re-prompt.
    """

    def __init__(
        self,
        message: str,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.NOTE_NAME_INVALID,
    ):
        super().__init__(message, field="name", value=value, code=code)


class StorageError(NotesError):
    """Raised when a file or database operation fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = path.replace("\\", "/").split("/")[-1]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class MoveConflictError(NotesError):
    """Raised by a bulk move when a destination file already exists.

    Raised during pre-validation, so no file has been moved.

    Attributes:
        conflicts: File names that already exist in the destination
        destination: The directory that was checked
    """

    def __init__(
        self,
        message: str,
        conflicts: Optional[List[str]] = None,
        destination: Optional[str] = None,
        code: ErrorCode = ErrorCode.MOVE_CONFLICT,
    ):
        details: Dict[str, Any] = {}
        if conflicts:
            details["conflicts"] = conflicts[:10]  # Truncate for safety
        if destination:
            details["destination"] = destination

        super().__init__(message, code=code, details=details)
        self.conflicts: List[str] = list(conflicts) if conflicts else []
        self.destination = destination


class MetadataNotFoundError(NotesError):
    """Raised when the metadata store has no entry for a key."""

    def __init__(self, key: str, message: Optional[str] = None):
        super().__init__(
            message or f"No metadata stored for '{key}'",
            code=ErrorCode.METADATA_NOT_FOUND,
            details={"key": key},
        )
        self.key = key


class PreferencesError(NotesError):
    """Raised when the preferences file cannot be decoded or encoded."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.PREFERENCES_CORRUPTED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if path:
            details["path_hint"] = path.replace("\\", "/").split("/")[-1]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.path = path
        self.original_error = original_error


class ConfigurationError(NotesError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key
