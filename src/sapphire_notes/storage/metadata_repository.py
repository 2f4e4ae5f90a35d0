"""Repository for note metadata (fonts, caret position, archive stamps)."""

import logging
from datetime import timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from sapphire_notes.config import config
from sapphire_notes.exceptions import (
    ErrorCode,
    MetadataNotFoundError,
    StorageError,
    ValidationError,
)
from sapphire_notes.models.db_models import DBNoteMetadata, get_session_factory, init_db
from sapphire_notes.models.schema import NoteMetadata, ensure_timezone_aware, utc_now
from sapphire_notes.utils import is_archive_key

logger = logging.getLogger(__name__)


class NotesMetadataRepository:
    """Name-to-metadata mapping persisted as a single SQLite file.

    The whole mapping is read into memory on first use and written back as
    one unit by ``save()`` (a single transaction that replaces every row),
    so a failed save never leaves a half-written mapping behind. Nothing is
    persisted implicitly: callers decide when to ``save()``.

    Keys are note names for active notes and ``archive/<name>`` for archived
    ones. ``get()`` on a missing key raises ``MetadataNotFoundError``.
    """

    def __init__(
        self,
        engine=None,
        default_font_family: Optional[str] = None,
        default_font_size: Optional[int] = None,
        archive_prefix: Optional[str] = None,
    ):
        """Initialize the repository.

        Args:
            engine: Pre-configured SQLAlchemy engine. Created from the
                configured metadata database path if None.
            default_font_family: Font for notes without metadata.
            default_font_size: Font size for notes without metadata.
            archive_prefix: Key prefix of archived notes, e.g. ``archive/``.
        """
        self.engine = engine if engine is not None else init_db()
        self.session_factory = get_session_factory(self.engine)
        self.default_font_family = default_font_family or config.default_font_family
        self.default_font_size = default_font_size or config.default_font_size
        self.archive_prefix = archive_prefix or config.archive_prefix

        self._entries: Dict[str, NoteMetadata] = {}
        self._loaded = False

    # =========================================================================
    # Persistence
    # =========================================================================

    @staticmethod
    def _row_to_model(row: DBNoteMetadata) -> NoteMetadata:
        return NoteMetadata(
            font_family=row.font_family,
            font_size=row.font_size,
            caret_position=row.caret_position or 0,
            quick_note=bool(row.quick_note),
            archived=ensure_timezone_aware(row.archived),
        )

    @staticmethod
    def _model_to_row(key: str, metadata: NoteMetadata) -> DBNoteMetadata:
        archived = metadata.archived
        if archived is not None:
            archived = ensure_timezone_aware(archived).astimezone(timezone.utc)
            archived = archived.replace(tzinfo=None)
        return DBNoteMetadata(
            key=key,
            font_family=metadata.font_family,
            font_size=metadata.font_size,
            caret_position=metadata.caret_position,
            quick_note=metadata.quick_note,
            archived=archived,
        )

    def load(self) -> int:
        """(Re)load the mapping from disk, discarding unsaved changes.

        Returns:
            Number of entries loaded.
        """
        try:
            with self.session_factory() as session:
                rows = session.scalars(select(DBNoteMetadata)).all()
                entries = {row.key: self._row_to_model(row) for row in rows}
        except SQLAlchemyError as e:
            raise StorageError(
                "Failed to load note metadata",
                operation="load_metadata",
                code=ErrorCode.DATABASE_FAILED,
                original_error=e,
            ) from e

        self._entries = entries
        self._loaded = True
        logger.info(f"Loaded metadata for {len(entries)} notes")
        return len(entries)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def save(self) -> None:
        """Persist the entire mapping, replacing what was stored before."""
        self._ensure_loaded()
        try:
            with self.session_factory() as session:
                session.execute(delete(DBNoteMetadata))
                session.add_all(
                    [self._model_to_row(key, m) for key, m in self._entries.items()]
                )
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save note metadata: {e}")
            raise StorageError(
                "Failed to save note metadata",
                operation="save_metadata",
                code=ErrorCode.DATABASE_FAILED,
                original_error=e,
            ) from e
        logger.debug(f"Saved metadata for {len(self._entries)} notes")

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def default_metadata(self, archived=None) -> NoteMetadata:
        """Metadata for a note that has none yet."""
        return NoteMetadata(
            font_family=self.default_font_family,
            font_size=self.default_font_size,
            archived=archived,
        )

    def initialize(self, names: Iterable[str]) -> bool:
        """Reconcile the mapping with the names found on disk.

        Entries whose note no longer exists are purged. Names without an
        entry get default metadata; archive-prefixed names are stamped as
        archived now. Nothing is persisted.

        Args:
            names: Every known note name, archived ones archive-prefixed.

        Returns:
            True if the mapping changed and should be saved.
        """
        self._ensure_loaded()
        known = set(names)

        stale = [key for key in self._entries if key not in known]
        for key in stale:
            del self._entries[key]

        missing = [name for name in known if name not in self._entries]
        for name in missing:
            archived = utc_now() if is_archive_key(name, self.archive_prefix) else None
            self._entries[name] = self.default_metadata(archived=archived)

        if stale or missing:
            logger.info(
                f"Metadata reconciled: purged {len(stale)} stale entries, "
                f"added defaults for {len(missing)} notes"
            )
        return bool(stale or missing)

    # =========================================================================
    # Mapping operations
    # =========================================================================

    def add(self, name: str, metadata: NoteMetadata) -> None:
        """Add metadata for a name that has none yet."""
        self._ensure_loaded()
        if name in self._entries:
            raise ValidationError(
                f"Metadata for '{name}' already exists",
                field="name",
                value=name,
                code=ErrorCode.METADATA_ALREADY_EXISTS,
            )
        self._entries[name] = metadata

    def remove(self, name: str) -> bool:
        """Remove an entry. Returns False if there was none."""
        self._ensure_loaded()
        return self._entries.pop(name, None) is not None

    def add_or_update(self, name: str, metadata: NoteMetadata) -> None:
        self._ensure_loaded()
        self._entries[name] = metadata

    def get(self, name: str) -> NoteMetadata:
        """Get the metadata stored for a name.

        Raises:
            MetadataNotFoundError: If there is no entry for the name
        """
        self._ensure_loaded()
        try:
            return self._entries[name]
        except KeyError:
            raise MetadataNotFoundError(name) from None

    def contains(self, name: str) -> bool:
        self._ensure_loaded()
        return name in self._entries

    def keys(self) -> List[str]:
        self._ensure_loaded()
        return list(self._entries)

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._entries)

    # =========================================================================
    # Fonts
    # =========================================================================

    def get_distinct_fonts(self) -> List[str]:
        """Distinct font families across all entries, in first-seen order."""
        self._ensure_loaded()
        return list(dict.fromkeys(m.font_family for m in self._entries.values()))

    def get_distinct_font_sizes(self) -> List[int]:
        """Distinct font sizes across all entries, in first-seen order."""
        self._ensure_loaded()
        return list(dict.fromkeys(m.font_size for m in self._entries.values()))

    def set_font_for_all(self, font: str) -> None:
        if not font or not font.strip():
            raise ValidationError("Font family is required", field="font_family")
        self._ensure_loaded()
        for metadata in self._entries.values():
            metadata.font_family = font

    def set_font_size_for_all(self, font_size: int) -> None:
        if font_size < 1:
            raise ValidationError(
                "Font size must be positive", field="font_size", value=font_size
            )
        self._ensure_loaded()
        for metadata in self._entries.values():
            metadata.font_size = font_size
