"""Service layer for the note lifecycle."""

import logging
from typing import Iterable, List, Optional

from sapphire_notes.config import config
from sapphire_notes.exceptions import (
    ConfigurationError,
    ErrorCode,
    MetadataNotFoundError,
    NoteValidationError,
    StorageError,
)
from sapphire_notes.models.schema import (
    Note,
    NoteMetadata,
    utc_now,
    validate_note_name,
)
from sapphire_notes.observability import traced
from sapphire_notes.services.events import (
    EventHook,
    NoteArchived,
    NoteCreated,
    NoteDeleted,
    NoteRestored,
    NoteUpdated,
)
from sapphire_notes.storage.base import BulkRelocatable, NotesRepository
from sapphire_notes.storage.metadata_repository import NotesMetadataRepository
from sapphire_notes.utils import archive_key, is_archive_key

logger = logging.getLogger(__name__)


class NotesService:
    """Keeps note files and note metadata consistent across the lifecycle.

    A note is active, archived or deleted. Every operation validates first,
    then changes the file, then the metadata, then persists the metadata and
    finally notifies subscribers. Nothing is rolled back: if persisting the
    metadata fails after the file has changed, the error propagates and the
    two stores may disagree until the next ``load()`` reconciles them.
    """

    def __init__(
        self,
        repository: NotesRepository,
        metadata_repository: NotesMetadataRepository,
        default_font_family: Optional[str] = None,
        default_font_size: Optional[int] = None,
        archive_prefix: Optional[str] = None,
    ):
        """Initialize the service.

        Args:
            repository: Note file storage.
            metadata_repository: Note metadata storage.
            default_font_family: Reported when there are no notes at all.
            default_font_size: Reported when there are no notes at all.
            archive_prefix: Metadata key prefix of archived notes. Defaults
                to the repository's prefix, then to config.

        Raises:
            ConfigurationError: The metadata store uses a different archive
                prefix than the note repository.
        """
        self.repository = repository
        self.metadata = metadata_repository
        self.default_font_family = default_font_family or config.default_font_family
        self.default_font_size = default_font_size or config.default_font_size
        self.archive_prefix = (
            archive_prefix
            or getattr(repository, "archive_prefix", None)
            or config.archive_prefix
        )
        if metadata_repository.archive_prefix != self.archive_prefix:
            raise ConfigurationError(
                f"Archive prefix mismatch: notes use '{self.archive_prefix}', "
                f"metadata uses '{metadata_repository.archive_prefix}'",
                config_key="archive_prefix",
            )

        self.created: EventHook[NoteCreated] = EventHook("created")
        self.updated: EventHook[NoteUpdated] = EventHook("updated")
        self.archived: EventHook[NoteArchived] = EventHook("archived")
        self.deleted: EventHook[NoteDeleted] = EventHook("deleted")
        self.restored: EventHook[NoteRestored] = EventHook("restored")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _archive_key(self, name: str) -> str:
        return archive_key(name, self.archive_prefix)

    def _ensure_name_available(
        self, name: str, current_name: Optional[str] = None
    ) -> None:
        """Reject a name used by another active note, ignoring case.

        Renaming a note to a different casing of its own name is allowed.
        """
        if current_name is not None and current_name.casefold() == name.casefold():
            return
        if self.repository.exists(name):
            raise NoteValidationError(
                "A note with the same name already exists.",
                value=name,
                code=ErrorCode.NOTE_ALREADY_EXISTS,
            )

    def _resolve_metadata(self, note: Note, key: str) -> NoteMetadata:
        """Metadata for a note: the stored entry, else what the note carries."""
        if self.metadata.contains(key):
            return self.metadata.get(key)
        if note.metadata is not None:
            return note.metadata
        raise MetadataNotFoundError(key)

    def _metadata_for_delete(self, name: str) -> NoteMetadata:
        keys = [
            key
            for key in (name, self._archive_key(name))
            if self.metadata.contains(key)
        ]
        if not keys:
            raise MetadataNotFoundError(name)
        if len(keys) > 1:
            raise MetadataNotFoundError(
                name,
                message=(
                    f"'{name}' exists both as an active and an archived note; "
                    "pass the note with its metadata to delete it"
                ),
            )
        return self.metadata.get(keys[0])

    def _persist_metadata(self, operation: str) -> None:
        try:
            self.metadata.save()
        except StorageError:
            logger.error(
                f"{operation}: note file was changed but metadata could not be "
                "persisted; files and metadata may disagree until the next load"
            )
            raise

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @traced("create_note")
    def create(self, name: str, font_family: str, font_size: int) -> Note:
        """Create an empty note.

        Args:
            name: Note name as typed by the user (trimmed before use).
            font_family: Font family for the note.
            font_size: Font size for the note.

        Returns:
            The created note.

        Raises:
            NoteValidationError: Empty name, forbidden character or name taken.
        """
        name = validate_note_name(name)
        self._ensure_name_available(name)
        metadata = NoteMetadata(font_family=font_family, font_size=font_size)

        self.repository.create(name)

        note = Note(name=name, content="", metadata=metadata)
        # A leftover entry for a file that no longer exists is stale
        self.metadata.add_or_update(name, metadata)
        self._persist_metadata("create_note")

        logger.info(f"Created note '{name}'")
        self.created.emit(NoteCreated(note=note))
        return note

    @traced("create_quick_note")
    def create_quick(self, content: str, font_family: str, font_size: int) -> Note:
        """Create a note with an automatically chosen name.

        The name is the quick note name, suffixed with the lowest free number
        if needed. The caret is placed at the end of the content.
        """
        metadata = NoteMetadata(
            font_family=font_family,
            font_size=font_size,
            caret_position=len(content),
            quick_note=True,
        )

        name = self.repository.create_with_content(content)

        note = Note(name=name, content=content, metadata=metadata)
        self.metadata.add_or_update(name, metadata)
        self._persist_metadata("create_quick_note")

        logger.info(f"Created quick note '{name}'")
        self.created.emit(NoteCreated(note=note))
        return note

    @traced("rename_note")
    def update(self, note: Note, new_name: str) -> Note:
        """Rename an active note in place.

        Raises:
            NoteValidationError: Empty name, forbidden character, or the name
                belongs to a different note.
        """
        original_name = note.name
        new_name = validate_note_name(new_name)
        if new_name == original_name:
            logger.debug(f"Rename of '{original_name}' to the same name ignored")
            return note

        self._ensure_name_available(new_name, current_name=original_name)
        metadata = self._resolve_metadata(note, original_name)

        self.repository.update(original_name, new_name)

        self.metadata.remove(original_name)
        self.metadata.add_or_update(new_name, metadata)
        self._persist_metadata("rename_note")

        note.name = new_name
        note.metadata = metadata

        logger.info(f"Renamed note '{original_name}' to '{new_name}'")
        self.updated.emit(NoteUpdated(note=note, original_name=original_name))
        return note

    @traced("archive_note")
    def archive(self, note: Note) -> Note:
        """Archive an active note.

        The note's current content is written first so the archived file
        holds the latest edits. The note is renamed in place if its name was
        already taken in the archive.
        """
        original_name = note.name
        metadata = self._resolve_metadata(note, original_name)

        self.repository.save(original_name, note.content)
        note.is_dirty = False
        archived_name = self.repository.archive(original_name)

        metadata.archived = utc_now()
        self.metadata.remove(original_name)
        self.metadata.add_or_update(self._archive_key(archived_name), metadata)
        self._persist_metadata("archive_note")

        note.name = archived_name
        note.metadata = metadata

        logger.info(f"Archived note '{original_name}'")
        self.archived.emit(NoteArchived(note=note))
        return note

    @traced("restore_note")
    def restore(self, note: Note) -> Note:
        """Move an archived note back to the active notes."""
        key = self._archive_key(note.name)
        metadata = self._resolve_metadata(note, key)

        restored_name = self.repository.restore(note.name)

        metadata.archived = None
        self.metadata.remove(key)
        self.metadata.add_or_update(restored_name, metadata)
        self._persist_metadata("restore_note")

        note.name = restored_name
        note.metadata = metadata

        logger.info(f"Restored note '{restored_name}'")
        self.restored.emit(NoteRestored(note=note))
        return note

    @traced("delete_note")
    def delete(self, note: Note) -> None:
        """Delete an active or archived note for good.

        Whether the note is archived is decided by its metadata's archived
        timestamp. A note without metadata is looked up under both its
        active and its archive key.

        Raises:
            MetadataNotFoundError: The note has no metadata and the store has
                none, or has entries under both keys.
        """
        metadata = note.metadata
        if metadata is None:
            metadata = self._metadata_for_delete(note.name)

        if metadata.is_archived:
            self.repository.delete_archived(note.name)
            key = self._archive_key(note.name)
        else:
            self.repository.delete(note.name)
            key = note.name

        self.metadata.remove(key)
        self._persist_metadata("delete_note")

        logger.info(f"Deleted note '{note.name}'")
        self.deleted.emit(NoteDeleted(note=note))

    # =========================================================================
    # Bulk operations
    # =========================================================================

    @traced("save_all_notes")
    def save_all(self, notes: Iterable[Note]) -> int:
        """Write the content of every note. Returns the number written."""
        count = 0
        for note in notes:
            self.repository.save(note.name, note.content)
            note.is_dirty = False
            count += 1
        return count

    @traced("save_all_notes_with_metadata")
    def save_all_with_metadata(self, notes: Iterable[Note]) -> int:
        """Write dirty notes and every note's metadata.

        Metadata is persisted once, after all notes have been processed.

        Returns:
            Number of note files written.
        """
        written = 0
        for note in notes:
            if note.is_dirty:
                self.repository.save(note.name, note.content)
                note.is_dirty = False
                written += 1
            if note.metadata is not None:
                self.metadata.add_or_update(note.name, note.metadata)

        self._persist_metadata("save_all_notes_with_metadata")
        return written

    @traced("load_notes")
    def load(self) -> List[Note]:
        """Load active notes with metadata, oldest write first.

        Reconciles the metadata store with every note found on disk,
        archived ones included, and persists it if anything changed.
        """
        notes = self.repository.get_all()
        if self.metadata.initialize(note.name for note in notes):
            self._persist_metadata("load_notes")

        active = [n for n in notes if not is_archive_key(n.name, self.archive_prefix)]
        for note in active:
            note.metadata = self.metadata.get(note.name)

        return sorted(active, key=lambda n: n.last_write_time)

    @traced("load_archived_notes")
    def load_archived(self) -> List[Note]:
        """Load archived notes with metadata, most recently archived first."""
        notes = self.repository.get_all_archived()

        added = False
        for note in notes:
            key = self._archive_key(note.name)
            if not self.metadata.contains(key):
                self.metadata.add(
                    key, self.metadata.default_metadata(archived=note.last_write_time)
                )
                added = True
            note.metadata = self.metadata.get(key)

        if added:
            self._persist_metadata("load_archived_notes")

        return sorted(
            notes,
            key=lambda n: n.metadata.archived or n.last_write_time,
            reverse=True,
        )

    @traced("move_all_notes")
    def move_all(self, new_directory: str) -> int:
        """Move every note file to another directory.

        Metadata is keyed by name, not path, so it is left untouched.

        Raises:
            ConfigurationError: The repository cannot relocate notes.
            MoveConflictError: A note name is taken in the target; nothing moved.
        """
        if not isinstance(self.repository, BulkRelocatable):
            raise ConfigurationError(
                f"{type(self.repository).__name__} does not support moving notes",
                config_key="repository",
            )
        return self.repository.move_all(new_directory)

    # =========================================================================
    # Fonts
    # =========================================================================

    def get_font_that_all_notes_use(self) -> Optional[str]:
        """The font shared by every note, the default if there are no notes,
        or None if notes use different fonts."""
        fonts = self.metadata.get_distinct_fonts()
        if not fonts:
            return self.default_font_family
        if len(fonts) == 1:
            return fonts[0]
        return None

    def get_font_size_that_all_notes_use(self) -> Optional[int]:
        sizes = self.metadata.get_distinct_font_sizes()
        if not sizes:
            return self.default_font_size
        if len(sizes) == 1:
            return sizes[0]
        return None

    @traced("set_font_for_all")
    def set_font_for_all(self, font: str) -> None:
        self.metadata.set_font_for_all(font)
        self._persist_metadata("set_font_for_all")

    @traced("set_font_size_for_all")
    def set_font_size_for_all(self, font_size: int) -> None:
        self.metadata.set_font_size_for_all(font_size)
        self._persist_metadata("set_font_size_for_all")
