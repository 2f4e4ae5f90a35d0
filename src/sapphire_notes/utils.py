"""Utility functions for Sapphire Notes."""

from pathlib import Path
from typing import Set


def _taken_names(directory: Path) -> Set[str]:
    """Casefolded names of every entry in ``directory``."""
    if not directory.is_dir():
        return set()
    return {entry.name.casefold() for entry in directory.iterdir()}


def next_available_file_name(path: Path) -> Path:
    """Return ``path`` or the first free sibling with a numeric suffix.

    The suffix is the lowest unused positive integer, separated from the
    base name by a space, so ``Quick note.txt`` is followed by
    ``Quick note 1.txt``, ``Quick note 2.txt`` and so on. A name is taken
    if a sibling has it in any casing, on every filesystem.

    Examples:
        "notes/Todo.txt" (free)          -> "notes/Todo.txt"
        "notes/Todo.txt" (taken)         -> "notes/Todo 1.txt"
        "notes/Todo.txt" ("todo.txt")    -> "notes/Todo 1.txt"
        "notes/Todo.txt", "Todo 1.txt"   -> "notes/Todo 2.txt"

    Args:
        path: The preferred file path.

    Returns:
        A path in the same directory that does not exist yet.
    """
    taken = _taken_names(path.parent)
    if path.name.casefold() not in taken:
        return path

    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem} {counter}{path.suffix}")
        if candidate.name.casefold() not in taken:
            return candidate
        counter += 1


def archive_key(name: str, prefix: str) -> str:
    """Build the metadata key of an archived note.

    Example:
        >>> archive_key("Groceries", "archive/")
        'archive/Groceries'
    """
    return f"{prefix}{name}"


def is_archive_key(key: str, prefix: str) -> bool:
    """Check whether a metadata key belongs to an archived note."""
    return key.startswith(prefix)
