"""Wiring of the stores and services into a ready-to-use application."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from sapphire_notes.config import config
from sapphire_notes.models.db_models import init_db
from sapphire_notes.observability import configure_logging
from sapphire_notes.services.notes_service import NotesService
from sapphire_notes.services.preferences_service import PreferencesService
from sapphire_notes.storage.metadata_repository import NotesMetadataRepository
from sapphire_notes.storage.note_repository import FileSystemNoteRepository

logger = logging.getLogger(__name__)


@dataclass
class NotesApplication:
    """The long-lived objects of one running application."""

    preferences_service: PreferencesService
    note_repository: FileSystemNoteRepository
    metadata_repository: NotesMetadataRepository
    notes_service: NotesService
    engine: object

    @property
    def is_configured(self) -> bool:
        """Whether a notes directory has been chosen."""
        return self.preferences_service.preferences.is_configured

    def close(self) -> None:
        """Release the metadata database connections."""
        self.engine.dispose()


def create_application(
    app_data_dir: Optional[Union[str, Path]] = None,
    configure_logs: bool = False,
) -> NotesApplication:
    """Build and wire every store and service.

    Preferences are loaded (and created with defaults if missing). Notes are
    not loaded; call ``notes_service.load()`` once a notes directory is set.

    Args:
        app_data_dir: Directory holding preferences and metadata. Defaults
            to the configured application data directory.
        configure_logs: Also install the rotating file log handler.
    """
    data_dir = Path(app_data_dir) if app_data_dir else config.app_data_dir
    data_dir.mkdir(parents=True, exist_ok=True)

    if configure_logs:
        level = getattr(logging, config.log_level.upper(), logging.INFO)
        log_dir = config.get_log_dir() if app_data_dir is None else data_dir / "logs"
        log_file = configure_logging(log_dir, level=level)
        logger.info(f"Persistent logging enabled: {log_file}")

    preferences_service = PreferencesService(data_dir / config.preferences_file_name)
    preferences_service.load()

    metadata_path = config.metadata_db_path
    if not metadata_path.is_absolute():
        metadata_path = data_dir / metadata_path
    logger.info(f"Using metadata database: {metadata_path}")
    engine = init_db(f"sqlite:///{metadata_path}")

    note_repository = FileSystemNoteRepository(preferences_service)
    metadata_repository = NotesMetadataRepository(
        engine=engine, archive_prefix=note_repository.archive_prefix
    )
    notes_service = NotesService(note_repository, metadata_repository)

    return NotesApplication(
        preferences_service=preferences_service,
        note_repository=note_repository,
        metadata_repository=metadata_repository,
        notes_service=notes_service,
        engine=engine,
    )


def relocate_notes(app: NotesApplication, new_directory: Union[str, Path]) -> int:
    """Move all notes to ``new_directory`` and make it the notes directory.

    The preference is only changed once every file has been moved. With no
    notes directory configured yet, the directory is simply adopted.

    Returns:
        Number of files moved.
    """
    if not app.is_configured:
        app.preferences_service.set_notes_directory(str(new_directory))
        return 0

    moved = app.notes_service.move_all(str(new_directory))
    app.preferences_service.set_notes_directory(str(new_directory))
    logger.info(f"Notes directory relocated to {new_directory} ({moved} files)")
    return moved
