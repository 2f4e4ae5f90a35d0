"""Data models for Sapphire Notes."""

import datetime
from datetime import timezone
from typing import Optional

from pydantic import BaseModel, Field

from sapphire_notes.exceptions import ErrorCode, NoteValidationError

# Characters that cannot appear in a note name (the name is a file name)
FORBIDDEN_NAME_CHARS = ("/", "\\", "<", ">", ":", '"', "|", "?", "*")

INT16_MAX = 2**15 - 1
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(
    dt_value: Optional[datetime.datetime],
) -> Optional[datetime.datetime]:
    """Treat naive datetimes as UTC; None passes through.

    SQLite hands back naive datetimes, everything above the storage layer
    works with aware ones.
    """
    if dt_value is None:
        return None
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def validate_note_name(name: str) -> str:
    """Normalize and validate a user-supplied note name.

    Args:
        name: The raw name as typed by the user

    Returns:
        The name with surrounding whitespace removed

    Raises:
        NoteValidationError: If the name is empty after trimming or contains
            a forbidden character
    """
    trimmed = (name or "").strip()
    if not trimmed:
        raise NoteValidationError(
            "Name is required.", value=name, code=ErrorCode.NOTE_NAME_REQUIRED
        )

    if any(char in trimmed for char in FORBIDDEN_NAME_CHARS):
        raise NoteValidationError(
            "Name cannot contain any of the following characters: "
            + ", ".join(FORBIDDEN_NAME_CHARS),
            value=trimmed,
        )

    return trimmed


class NoteMetadata(BaseModel):
    """Note attributes that are not stored in the note's text file."""

    font_family: str = Field(..., min_length=1, description="Font family name")
    font_size: int = Field(..., gt=0, description="Font size in points")
    caret_position: int = Field(default=0, ge=0, description="Caret offset")
    quick_note: bool = Field(
        default=False, description="Whether the note was created as a quick note"
    )
    archived: Optional[datetime.datetime] = Field(
        default=None, description="When the note was archived; unset while active"
    )

    @property
    def is_archived(self) -> bool:
        """Archived state is signalled solely by the archived timestamp."""
        return self.archived is not None


class Note(BaseModel):
    """A logical note backed by one text file."""

    name: str = Field(..., description="Note name, the file name minus extension")
    content: str = Field(default="", description="Full text body")
    last_write_time: datetime.datetime = Field(
        default_factory=utc_now,
        description="File modification time, or creation time for new notes",
    )
    metadata: Optional[NoteMetadata] = None
    is_dirty: bool = Field(
        default=False, description="In-memory content differs from the file"
    )

    def __str__(self) -> str:
        return self.name


class WindowPreferences(BaseModel):
    """Main window geometry."""

    width: int = Field(..., ge=INT32_MIN, le=INT32_MAX)
    height: int = Field(..., ge=INT32_MIN, le=INT32_MAX)
    position_x: int = Field(..., ge=INT32_MIN, le=INT32_MAX)
    position_y: int = Field(..., ge=INT32_MIN, le=INT32_MAX)


class Preferences(BaseModel):
    """The single global settings record."""

    notes_directory: str = Field(
        default="", description="Root of the notes directory; empty when unset"
    )
    auto_save_interval: int = Field(
        ..., ge=0, le=INT16_MAX, description="Autosave interval in seconds"
    )
    window: WindowPreferences

    @property
    def is_configured(self) -> bool:
        """Whether a notes directory has been chosen."""
        return self.notes_directory != ""
