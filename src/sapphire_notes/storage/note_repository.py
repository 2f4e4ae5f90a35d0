"""Filesystem repository for note files."""

import codecs
import datetime
import logging
import os
import shutil
from datetime import timezone
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

from sapphire_notes.config import config
from sapphire_notes.exceptions import (
    ConfigurationError,
    ErrorCode,
    MoveConflictError,
    StorageError,
)
from sapphire_notes.models.schema import Note
from sapphire_notes.storage.base import BulkRelocatable, NotesRepository
from sapphire_notes.utils import archive_key, next_available_file_name

if TYPE_CHECKING:
    from sapphire_notes.services.preferences_service import PreferencesService

logger = logging.getLogger(__name__)


class FileSystemNoteRepository(NotesRepository, BulkRelocatable):
    """Repository storing each note as ``<name><extension>`` in a directory.

    Layout:
    1. Active notes live directly in the notes directory
    2. Archived notes live in the archive subdirectory, same naming scheme

    The notes directory is read from the preferences on every call, so a
    changed directory takes effect without rebuilding the repository.
    This class never touches note metadata.
    """

    def __init__(
        self,
        preferences_service: "PreferencesService",
        extension: Optional[str] = None,
        archive_dir_name: Optional[str] = None,
        quick_note_name: Optional[str] = None,
    ):
        """Initialize the repository.

        Args:
            preferences_service: Source of the notes directory setting.
            extension: File extension of note files. Defaults to config.
            archive_dir_name: Name of the archive subdirectory. Defaults to config.
            quick_note_name: Base name for quick notes. Defaults to config.
        """
        self._preferences_service = preferences_service
        self.extension = extension or config.note_extension
        self.archive_dir_name = archive_dir_name or config.archive_dir_name
        self.quick_note_name = quick_note_name or config.quick_note_name

        logger.info(
            f"FileSystemNoteRepository initialized: extension={self.extension}, "
            f"archive_dir={self.archive_dir_name}"
        )

    # =========================================================================
    # Paths
    # =========================================================================

    @property
    def archive_prefix(self) -> str:
        """Prefix for names of archived notes in get_all() results."""
        return self.archive_dir_name + "/"

    @property
    def notes_dir(self) -> Path:
        """The configured notes directory.

        Raises:
            ConfigurationError: If no notes directory has been chosen yet
        """
        directory = self._preferences_service.preferences.notes_directory
        if not directory:
            raise ConfigurationError(
                "Notes directory is not configured",
                config_key="notes_directory",
                code=ErrorCode.CONFIG_MISSING,
            )
        return Path(directory)

    @property
    def archive_dir(self) -> Path:
        return self.notes_dir / self.archive_dir_name

    def _is_configured(self) -> bool:
        return self._preferences_service.preferences.is_configured

    def _note_path(self, name: str) -> Path:
        return self.notes_dir / f"{name}{self.extension}"

    def _archived_path(self, name: str) -> Path:
        return self.archive_dir / f"{name}{self.extension}"

    def _name_of(self, path: Path) -> str:
        return path.name[: -len(self.extension)]

    def _list_note_files(self, directory: Path) -> List[Path]:
        """Note files directly inside ``directory``, sorted by file name."""
        if not directory.is_dir():
            return []
        return sorted(
            p for p in directory.glob(f"*{self.extension}") if p.is_file()
        )

    # =========================================================================
    # File primitives
    # =========================================================================

    def _write(self, path: Path, content: str, mode: str, operation: str) -> None:
        try:
            with open(path, mode, encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as e:
            raise StorageError(
                f"Failed to write note file {path.name}",
                operation=operation,
                path=str(path),
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

    @staticmethod
    def _decode(data: bytes, file_name: str) -> str:
        """Decode note bytes, honouring a UTF-8 or UTF-16 byte order mark.

        Bytes that are not valid in the detected encoding become U+FFFD so
        one foreign-encoded file never blocks loading the others. Note files
        are always written back as UTF-8 without a BOM.
        """
        if data.startswith(codecs.BOM_UTF8):
            return data[len(codecs.BOM_UTF8):].decode("utf-8", errors="replace")
        if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
            return data.decode("utf-16", errors="replace")
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(
                f"Note file {file_name} is not valid UTF-8 ({e.reason} at byte "
                f"{e.start}), undecodable bytes were replaced"
            )
            return data.decode("utf-8", errors="replace")

    def _read_note(self, path: Path) -> Note:
        try:
            data = path.read_bytes()
            mtime = path.stat().st_mtime
        except OSError as e:
            raise StorageError(
                f"Failed to read note file {path.name}",
                operation="read",
                path=str(path),
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e

        return Note(
            name=self._name_of(path),
            content=self._decode(data, path.name),
            last_write_time=datetime.datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    def _move(self, source: Path, target: Path, operation: str) -> None:
        try:
            shutil.move(str(source), str(target))
        except FileNotFoundError as e:
            raise StorageError(
                f"Note file {source.name} does not exist",
                operation=operation,
                path=str(source),
                code=ErrorCode.NOTE_NOT_FOUND,
                original_error=e,
            ) from e
        except OSError as e:
            raise StorageError(
                f"Failed to move note file {source.name}",
                operation=operation,
                path=str(source),
                code=ErrorCode.STORAGE_MOVE_FAILED,
                original_error=e,
            ) from e

    def _unlink(self, path: Path, operation: str) -> None:
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise StorageError(
                f"Note file {path.name} does not exist",
                operation=operation,
                path=str(path),
                code=ErrorCode.NOTE_NOT_FOUND,
                original_error=e,
            ) from e
        except OSError as e:
            raise StorageError(
                f"Failed to delete note file {path.name}",
                operation=operation,
                path=str(path),
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=e,
            ) from e

    # =========================================================================
    # NotesRepository
    # =========================================================================

    def create(self, name: str) -> None:
        """Create an empty note file.

        The caller is expected to have checked that the name is free; an
        existing file is never truncated.
        """
        path = self._note_path(name)
        self._write(path, "", "x", "create")
        logger.debug(f"Created note file {path.name}")

    def create_with_content(self, content: str, name: Optional[str] = None) -> str:
        """Create a note under the next free variant of ``name``.

        Args:
            content: Initial content of the note.
            name: Preferred base name, defaults to the quick note name.

        Returns:
            The base name actually used (``Quick note``, ``Quick note 1``, ...).
        """
        path = next_available_file_name(self._note_path(name or self.quick_note_name))
        self._write(path, content, "x", "create")
        logger.debug(f"Created note file {path.name} ({len(content)} chars)")
        return self._name_of(path)

    def update(self, old_name: str, new_name: str) -> None:
        """Rename a note file; never overwrites another note."""
        source = self._note_path(old_name)
        target = self._note_path(new_name)

        if not source.is_file():
            raise StorageError(
                f"Note '{old_name}' does not exist",
                operation="rename",
                path=str(source),
                code=ErrorCode.NOTE_NOT_FOUND,
            )
        # A case-only rename on a case-insensitive filesystem sees the
        # source itself as the "existing" target.
        if target.exists() and not self._is_same_file(source, target):
            raise StorageError(
                f"A note named '{new_name}' already exists",
                operation="rename",
                path=str(target),
                code=ErrorCode.NOTE_ALREADY_EXISTS,
            )

        try:
            os.rename(source, target)
        except OSError as e:
            raise StorageError(
                f"Failed to rename note '{old_name}'",
                operation="rename",
                path=str(source),
                code=ErrorCode.STORAGE_MOVE_FAILED,
                original_error=e,
            ) from e
        logger.debug(f"Renamed note file {source.name} -> {target.name}")

    @staticmethod
    def _is_same_file(first: Path, second: Path) -> bool:
        try:
            return os.path.samefile(first, second)
        except OSError:
            return False

    def delete(self, name: str) -> None:
        """Delete an active note file."""
        self._unlink(self._note_path(name), "delete")
        logger.debug(f"Deleted note '{name}'")

    def delete_archived(self, name: str) -> None:
        """Delete a note file from the archive directory."""
        self._unlink(self._archived_path(name), "delete_archived")
        logger.debug(f"Deleted archived note '{name}'")

    def save(self, name: str, content: str) -> None:
        """Overwrite the content of an active note file."""
        self._write(self._note_path(name), content, "w", "save")

    def exists(self, name: str) -> bool:
        """Check for an active note with this name, ignoring case.

        Archived notes are not visible to this check.
        """
        if not self._is_configured():
            return False
        if self._note_path(name).is_file():
            return True

        folded = name.casefold()
        return any(
            self._name_of(path).casefold() == folded
            for path in self._list_note_files(self.notes_dir)
        )

    def archive(self, name: str) -> str:
        """Move a note into the archive directory.

        Creates the archive directory on first use. A name already taken in
        the archive gets the next free numeric suffix.

        Returns:
            The note's base name inside the archive.
        """
        archive_dir = self.archive_dir
        try:
            archive_dir.mkdir(exist_ok=True)
        except OSError as e:
            raise StorageError(
                "Failed to create the archive directory",
                operation="archive",
                path=str(archive_dir),
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

        source = self._note_path(name)
        target = next_available_file_name(archive_dir / source.name)
        self._move(source, target, "archive")

        archived_name = self._name_of(target)
        logger.info(f"Archived note '{name}' as '{archived_name}'")
        return archived_name

    def restore(self, name: str) -> str:
        """Move a note from the archive back to the notes directory.

        Returns:
            The note's base name after restoring, suffixed if the original
            name has been taken in the meantime.
        """
        source = self._archived_path(name)
        target = next_available_file_name(self.notes_dir / source.name)
        self._move(source, target, "restore")

        restored_name = self._name_of(target)
        logger.info(f"Restored note '{name}' as '{restored_name}'")
        return restored_name

    def get_all(self) -> List[Note]:
        """Load every active note plus a stub for every archived one.

        Archived notes are returned with an archive-prefixed name and no
        content so that callers can reconcile metadata for them cheaply.
        """
        if not self._is_configured() or not self.notes_dir.is_dir():
            return []

        notes = [self._read_note(path) for path in self._list_note_files(self.notes_dir)]
        notes.extend(
            Note(name=archive_key(self._name_of(path), self.archive_prefix))
            for path in self._list_note_files(self.archive_dir)
        )
        return notes

    def get_all_archived(self) -> List[Note]:
        """Load every archived note with its content."""
        if not self._is_configured():
            return []
        return [self._read_note(path) for path in self._list_note_files(self.archive_dir)]

    # =========================================================================
    # BulkRelocatable
    # =========================================================================

    def move_all(self, new_directory: str) -> int:
        """Move every note and archived note to ``new_directory``.

        Every destination is checked before the first file is moved, so a
        name clash leaves the current directory untouched. The old archive
        directory is removed afterwards if nothing else is left in it.

        Args:
            new_directory: Existing directory to move the notes into.

        Returns:
            Number of files moved.

        Raises:
            MoveConflictError: A destination file already exists; nothing moved.
            StorageError: The target is not a directory, or a move failed.
        """
        target_root = Path(new_directory)
        if not target_root.is_dir():
            raise StorageError(
                "The chosen notes directory does not exist",
                operation="move_all",
                path=str(target_root),
                code=ErrorCode.STORAGE_MOVE_FAILED,
            )

        source_root = self.notes_dir
        if source_root.is_dir() and source_root.resolve() == target_root.resolve():
            logger.info(f"Notes already live in {target_root}, nothing to move")
            return 0

        note_files = self._list_note_files(source_root)
        conflicts = [p.name for p in note_files if (target_root / p.name).exists()]
        if conflicts:
            raise MoveConflictError(
                "Couldn't move the notes. Make sure there aren't any existing "
                "notes with identical names in the chosen directory.",
                conflicts=conflicts,
                destination=str(target_root),
            )
        moves: List[Tuple[Path, Path]] = [(p, target_root / p.name) for p in note_files]

        source_archive = self.archive_dir
        archive_existed = source_archive.is_dir()
        archived_files = self._list_note_files(source_archive)
        target_archive = target_root / self.archive_dir_name
        if archived_files:
            conflicts = [
                p.name for p in archived_files if (target_archive / p.name).exists()
            ]
            if conflicts:
                raise MoveConflictError(
                    "Couldn't move the archived notes. Make sure there aren't any "
                    "existing notes with identical names in the chosen directory's "
                    f"'{self.archive_dir_name}' folder.",
                    conflicts=conflicts,
                    destination=str(target_archive),
                    code=ErrorCode.MOVE_ARCHIVE_CONFLICT,
                )
            moves.extend((p, target_archive / p.name) for p in archived_files)

            try:
                target_archive.mkdir(exist_ok=True)
            except OSError as e:
                raise StorageError(
                    "Failed to create the archive directory in the new location",
                    operation="move_all",
                    path=str(target_archive),
                    code=ErrorCode.STORAGE_WRITE_FAILED,
                    original_error=e,
                ) from e

        for index, (source, target) in enumerate(moves):
            try:
                self._move(source, target, "move_all")
            except StorageError:
                logger.error(
                    f"move_all stopped after {index} of {len(moves)} files, "
                    f"failed on {source.name}"
                )
                raise

        if archive_existed:
            if any(source_archive.iterdir()):
                logger.warning(
                    f"Old archive directory {source_archive} still contains "
                    "other files and was left in place"
                )
            else:
                try:
                    source_archive.rmdir()
                except OSError as e:
                    raise StorageError(
                        "Notes were moved but the old archive directory "
                        "could not be removed",
                        operation="move_all",
                        path=str(source_archive),
                        code=ErrorCode.STORAGE_DELETE_FAILED,
                        original_error=e,
                    ) from e

        logger.info(f"Moved {len(moves)} note files from {source_root} to {target_root}")
        return len(moves)
