"""Lifecycle notifications emitted by the notes service."""

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, TypeVar

from sapphire_notes.models.schema import Note

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoteCreated:
    note: Note


@dataclass(frozen=True)
class NoteUpdated:
    note: Note
    original_name: str


@dataclass(frozen=True)
class NoteArchived:
    note: Note


@dataclass(frozen=True)
class NoteDeleted:
    note: Note


@dataclass(frozen=True)
class NoteRestored:
    note: Note


E = TypeVar("E")


class EventHook(Generic[E]):
    """Subscription point for one kind of event.

    Handlers are called synchronously, in subscription order. An exception
    raised by a handler propagates to whoever emitted the event and the
    remaining handlers are not called.
    """

    def __init__(self, name: str):
        self.name = name
        self._handlers: List[Callable[[E], None]] = []

    def subscribe(self, handler: Callable[[E], None]) -> Callable[[], None]:
        """Attach a handler.

        Returns:
            A callable that detaches the handler again.
        """
        self._handlers.append(handler)
        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: Callable[[E], None]) -> None:
        """Detach a handler; unknown handlers are ignored."""
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, event: E) -> None:
        logger.debug(f"Emitting {self.name} to {len(self._handlers)} handlers")
        # Copy so handlers may unsubscribe while being notified
        for handler in list(self._handlers):
            handler(event)

    def __len__(self) -> int:
        return len(self._handlers)
