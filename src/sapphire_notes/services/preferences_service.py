"""Service owning the application preferences record."""

import logging
from pathlib import Path
from typing import Optional

from sapphire_notes.config import config
from sapphire_notes.exceptions import ConfigurationError, ErrorCode, ValidationError
from sapphire_notes.models.schema import INT16_MAX, Preferences, WindowPreferences
from sapphire_notes.storage.preferences_file import read_preferences, write_preferences

logger = logging.getLogger(__name__)


def default_preferences() -> Preferences:
    """Preferences used when no preferences file exists yet."""
    return Preferences(
        notes_directory="",
        auto_save_interval=config.default_auto_save_interval,
        window=WindowPreferences(
            width=config.default_window_width,
            height=config.default_window_height,
            position_x=config.default_window_position_x,
            position_y=config.default_window_position_y,
        ),
    )


class PreferencesService:
    """Loads, holds and saves the single preferences record."""

    def __init__(self, preferences_path: Optional[Path] = None):
        """Initialize the service.

        Args:
            preferences_path: Location of the binary preferences file.
                If None, uses the configured application data directory.
        """
        self.preferences_path = (
            Path(preferences_path) if preferences_path else config.get_preferences_path()
        )
        self._preferences: Optional[Preferences] = None

    @property
    def preferences(self) -> Preferences:
        if self._preferences is None:
            raise ConfigurationError(
                "Preferences have not been loaded",
                config_key="preferences",
                code=ErrorCode.CONFIG_MISSING,
            )
        return self._preferences

    def load(self) -> bool:
        """Load preferences, creating the file with defaults if missing.

        Returns:
            True if a notes directory is configured.
        """
        if self.preferences_path.exists():
            self._preferences = read_preferences(self.preferences_path)
            logger.info(
                f"Loaded preferences from {self.preferences_path} "
                f"(notes_directory configured: {self._preferences.is_configured})"
            )
            return self._preferences.is_configured

        logger.info(f"No preferences file at {self.preferences_path}, using defaults")
        self._preferences = default_preferences()
        self.save_preferences()
        return False

    def save_preferences(self) -> None:
        write_preferences(self.preferences_path, self.preferences)
        logger.debug(f"Saved preferences to {self.preferences_path}")

    def save_window_preferences(
        self, width: int, height: int, position_x: int, position_y: int
    ) -> None:
        """Remember the main window geometry and save."""
        self.preferences.window = WindowPreferences(
            width=width,
            height=height,
            position_x=position_x,
            position_y=position_y,
        )
        self.save_preferences()

    def set_notes_directory(self, notes_directory: str) -> None:
        """Point the application at another notes directory and save."""
        self.preferences.notes_directory = str(notes_directory)
        self.save_preferences()
        logger.info(f"Notes directory set to {notes_directory}")

    def set_auto_save_interval(self, seconds: int) -> None:
        """Change the autosave interval and save."""
        if not 0 <= seconds <= INT16_MAX:
            raise ValidationError(
                f"Autosave interval must be between 0 and {INT16_MAX} seconds",
                field="auto_save_interval",
                value=seconds,
            )
        self.preferences.auto_save_interval = seconds
        self.save_preferences()
