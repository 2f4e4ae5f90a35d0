"""Configuration module for Sapphire Notes."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config: survives reinstalls, lives alongside the app data
_USER_ENV = Path.home() / ".sapphire-notes" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class NotesConfig(BaseModel):
    """Configuration for the notes engine."""

    # Application data directory (preferences file, metadata database)
    app_data_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv(
                "SAPPHIRE_NOTES_APP_DATA_DIR",
                str(Path.home() / ".sapphire-notes"),
            )
        )
    )
    # Metadata store location, relative paths resolve against app_data_dir
    metadata_db_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("SAPPHIRE_NOTES_METADATA_DB", "metadata.db")
        )
    )
    preferences_file_name: str = Field(
        default_factory=lambda: os.getenv(
            "SAPPHIRE_NOTES_PREFERENCES_FILE", "preferences.bin"
        )
    )
    # Notes directory layout
    note_extension: str = Field(
        default_factory=lambda: os.getenv("SAPPHIRE_NOTES_EXTENSION", ".txt")
    )
    # Name of the archive subdirectory; doubles as the metadata key prefix
    archive_dir_name: str = Field(
        default_factory=lambda: os.getenv("SAPPHIRE_NOTES_ARCHIVE_DIR", "archive")
    )
    quick_note_name: str = Field(
        default_factory=lambda: os.getenv(
            "SAPPHIRE_NOTES_QUICK_NOTE_NAME", "Quick note"
        )
    )
    # Note defaults
    default_font_family: str = Field(
        default_factory=lambda: os.getenv(
            "SAPPHIRE_NOTES_DEFAULT_FONT", "Open Sans"
        )
    )
    default_font_size: int = Field(
        default_factory=lambda: _env_int("SAPPHIRE_NOTES_DEFAULT_FONT_SIZE", 15)
    )
    # Preferences defaults (used when no preferences file exists yet)
    default_auto_save_interval: int = Field(
        default_factory=lambda: _env_int("SAPPHIRE_NOTES_AUTOSAVE_INTERVAL", 30)
    )
    default_window_width: int = Field(
        default_factory=lambda: _env_int("SAPPHIRE_NOTES_WINDOW_WIDTH", 800)
    )
    default_window_height: int = Field(
        default_factory=lambda: _env_int("SAPPHIRE_NOTES_WINDOW_HEIGHT", 600)
    )
    default_window_position_x: int = Field(
        default_factory=lambda: _env_int("SAPPHIRE_NOTES_WINDOW_X", 0)
    )
    default_window_position_y: int = Field(
        default_factory=lambda: _env_int("SAPPHIRE_NOTES_WINDOW_Y", 0)
    )
    # Logging
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("SAPPHIRE_NOTES_LOG_DIR"))
            if os.getenv("SAPPHIRE_NOTES_LOG_DIR")
            else None
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("SAPPHIRE_NOTES_LOG_LEVEL", "INFO")
    )

    @model_validator(mode="after")
    def _validate_layout(self) -> "NotesConfig":
        """Reject settings that would produce an unusable notes layout."""
        if self.default_font_size < 1:
            raise ValueError("default_font_size must be >= 1")
        if not self.note_extension.startswith(".") or len(self.note_extension) < 2:
            raise ValueError("note_extension must look like '.txt'")
        if not self.archive_dir_name or any(
            sep in self.archive_dir_name for sep in ("/", "\\")
        ):
            raise ValueError("archive_dir_name must be a single directory name")
        if not self.quick_note_name.strip():
            raise ValueError("quick_note_name cannot be empty")
        # Stored as int16 in the preferences file
        if not 0 <= self.default_auto_save_interval <= 2**15 - 1:
            raise ValueError("default_auto_save_interval must fit in 0..32767")
        if self.default_auto_save_interval == 0:
            logger.warning("Auto-save interval of 0 configured, autosave is disabled")
        return self

    @property
    def archive_prefix(self) -> str:
        """Prefix used for metadata keys of archived notes."""
        return self.archive_dir_name + "/"

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on app_data_dir."""
        if path.is_absolute():
            return path
        return self.app_data_dir / path

    def get_metadata_db_url(self) -> str:
        """Get the database URL for the SQLite metadata store."""
        db_path = self.get_absolute_path(self.metadata_db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"

    def get_preferences_path(self) -> Path:
        """Get the absolute path of the binary preferences file."""
        return self.get_absolute_path(Path(self.preferences_file_name))

    def get_log_dir(self) -> Path:
        """Get the log directory, defaulting to <app_data_dir>/logs."""
        if self.log_dir is None:
            return self.app_data_dir / "logs"
        return self.get_absolute_path(self.log_dir)


# Create a global config instance
config = NotesConfig()
