"""
Sapphire Notes - note persistence and lifecycle engine.
This package maps notes onto a directory of plain text files, keeps a
metadata store (fonts, caret position, archive timestamps) in sync with
those files, and implements the note lifecycle on top of both.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sapphire-notes")
except PackageNotFoundError:
    __version__ = "0.3.0"
