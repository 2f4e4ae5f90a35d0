"""Repository interfaces for note storage.

``NotesRepository`` is the capability set the note lifecycle needs.
``BulkRelocatable`` is an optional extra capability for stores that can move
their whole collection somewhere else; the service checks for it at runtime.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from sapphire_notes.models.schema import Note


class NotesRepository(ABC):
    """Physical note operations, keyed by note name."""

    @abstractmethod
    def create(self, name: str) -> None:
        """Create an empty note."""
        pass

    @abstractmethod
    def create_with_content(self, content: str, name: Optional[str] = None) -> str:
        """Create a note under the next free name and return that name."""
        pass

    @abstractmethod
    def update(self, old_name: str, new_name: str) -> None:
        """Rename a note without overwriting an existing one."""
        pass

    @abstractmethod
    def delete(self, name: str) -> None:
        """Delete an active note."""
        pass

    @abstractmethod
    def delete_archived(self, name: str) -> None:
        """Delete an archived note."""
        pass

    @abstractmethod
    def save(self, name: str, content: str) -> None:
        """Overwrite the content of an active note."""
        pass

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Check whether an active note with this name exists."""
        pass

    @abstractmethod
    def archive(self, name: str) -> str:
        """Move a note to the archive and return its archived name."""
        pass

    @abstractmethod
    def restore(self, name: str) -> str:
        """Move a note out of the archive and return its active name."""
        pass

    @abstractmethod
    def get_all(self) -> List[Note]:
        """Active notes with content plus archive-prefixed name stubs."""
        pass

    @abstractmethod
    def get_all_archived(self) -> List[Note]:
        """Archived notes with content."""
        pass


class BulkRelocatable(ABC):
    """Capability of moving every note to another location at once."""

    @abstractmethod
    def move_all(self, new_directory: str) -> int:
        """Move all notes, all-or-nothing in intent. Returns files moved."""
        pass
