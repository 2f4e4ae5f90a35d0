"""Storage layer for Sapphire Notes."""

from sapphire_notes.storage.base import BulkRelocatable, NotesRepository
from sapphire_notes.storage.metadata_repository import NotesMetadataRepository
from sapphire_notes.storage.note_repository import FileSystemNoteRepository

__all__ = [
    "NotesRepository",
    "BulkRelocatable",
    "FileSystemNoteRepository",
    "NotesMetadataRepository",
]
