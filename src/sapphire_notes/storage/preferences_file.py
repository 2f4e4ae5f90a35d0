"""Binary codec for the preferences file.

Layout (little-endian, fields in this exact order, no version field):

    string   notes directory  (7-bit encoded byte length + UTF-8 bytes)
    int16    auto-save interval in seconds
    int32    window width
    int32    window height
    int32    window position X
    int32    window position Y
"""

import logging
import os
import struct
from pathlib import Path
from typing import Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from sapphire_notes.exceptions import ErrorCode, PreferencesError
from sapphire_notes.models.schema import Preferences, WindowPreferences

logger = logging.getLogger(__name__)

_NUMBERS = struct.Struct("<hiiii")

# A 32-bit length never needs more than five 7-bit groups
_MAX_LENGTH_BYTES = 5


def _encode_length(value: int) -> bytes:
    """Encode a non-negative int as 7-bit groups, low group first."""
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _decode_length(data: bytes, offset: int) -> Tuple[int, int]:
    """Decode a 7-bit encoded int starting at ``offset``.

    Returns:
        (value, offset just past the encoded int)
    """
    result = 0
    for group in range(_MAX_LENGTH_BYTES):
        if offset >= len(data):
            raise PreferencesError("Preferences file is truncated (string length)")
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << (7 * group)
        if not byte & 0x80:
            return result, offset
    raise PreferencesError("Preferences file has a malformed string length")


def encode_preferences(preferences: Preferences) -> bytes:
    """Serialize preferences into the fixed binary layout."""
    directory = preferences.notes_directory.encode("utf-8")
    window = preferences.window
    try:
        numbers = _NUMBERS.pack(
            preferences.auto_save_interval,
            window.width,
            window.height,
            window.position_x,
            window.position_y,
        )
    except struct.error as e:
        raise PreferencesError(
            "Preferences values are out of range for the file format",
            code=ErrorCode.CONFIG_INVALID,
            original_error=e,
        ) from e
    return _encode_length(len(directory)) + directory + numbers


def decode_preferences(data: bytes) -> Preferences:
    """Parse preferences from the fixed binary layout.

    Raises:
        PreferencesError: If the data is truncated or holds invalid values
    """
    length, offset = _decode_length(data, 0)
    end = offset + length
    if end > len(data):
        raise PreferencesError("Preferences file is truncated (notes directory)")

    try:
        notes_directory = data[offset:end].decode("utf-8")
    except UnicodeDecodeError as e:
        raise PreferencesError(
            "Preferences file has an undecodable notes directory", original_error=e
        ) from e

    if len(data) - end < _NUMBERS.size:
        raise PreferencesError("Preferences file is truncated (numeric fields)")
    interval, width, height, position_x, position_y = _NUMBERS.unpack_from(data, end)

    trailing = len(data) - end - _NUMBERS.size
    if trailing:
        logger.debug(f"Ignoring {trailing} trailing bytes in preferences file")

    try:
        return Preferences(
            notes_directory=notes_directory,
            auto_save_interval=interval,
            window=WindowPreferences(
                width=width,
                height=height,
                position_x=position_x,
                position_y=position_y,
            ),
        )
    except PydanticValidationError as e:
        raise PreferencesError(
            "Preferences file holds invalid values", original_error=e
        ) from e


def read_preferences(path: Union[str, Path]) -> Preferences:
    """Read and decode a preferences file."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise PreferencesError(
            "Failed to read preferences file",
            path=str(path),
            code=ErrorCode.CONFIG_MISSING,
            original_error=e,
        ) from e

    try:
        return decode_preferences(data)
    except PreferencesError as e:
        e.path = str(path)
        e.details["path_hint"] = path.name
        raise


def write_preferences(path: Union[str, Path], preferences: Preferences) -> None:
    """Encode and write a preferences file atomically (temp file + rename)."""
    path = Path(path)
    data = encode_preferences(preferences)
    temp_file = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_file.write_bytes(data)
        os.replace(temp_file, path)
    except OSError as e:
        raise PreferencesError(
            "Failed to write preferences file",
            path=str(path),
            code=ErrorCode.STORAGE_WRITE_FAILED,
            original_error=e,
        ) from e
