"""Format classification for incoming files."""

from enum import Enum
from pathlib import Path

from imgconv.config.constants import (
    ALLOWED_EXTENSIONS,
    HEIC_EXTENSIONS,
    RAW_EXTENSIONS,
    SVG_EXTENSIONS,
)


class FormatClass(str, Enum):
    """Decode path a file is routed to."""

    RAW = "raw"
    HEIC = "heic"
    SVG = "svg"
    STANDARD = "standard"


def _extension(filename: str | Path) -> str:
    return Path(str(filename)).suffix.lower()


def classify(filename: str | Path) -> FormatClass:
    """Classify a file by its extension (case-insensitive).

    Anything that is not RAW, HEIC or SVG is STANDARD; unreadable standard
    files fail later, at decode time.

    Examples:
        >>> classify("IMG_0001.CR2")
        <FormatClass.RAW: 'raw'>
        >>> classify("photo.HEIF")
        <FormatClass.HEIC: 'heic'>
    """
    ext = _extension(filename)
    if ext in RAW_EXTENSIONS:
        return FormatClass.RAW
    if ext in HEIC_EXTENSIONS:
        return FormatClass.HEIC
    if ext in SVG_EXTENSIONS:
        return FormatClass.SVG
    return FormatClass.STANDARD


def is_raw(filename: str | Path) -> bool:
    return _extension(filename) in RAW_EXTENSIONS


def is_allowed(filename: str | Path) -> bool:
    """Whether the extension is on the upload allow-list."""
    return _extension(filename) in ALLOWED_EXTENSIONS
