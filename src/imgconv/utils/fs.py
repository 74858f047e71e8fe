"""File system utilities for imgconv.

Provides atomic writes, safe output names and job directory helpers.
"""

import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from imgconv.utils.logging import get_logger

log = get_logger(__name__)


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(filename: str, max_length: int = 255) -> str:
    """Create a safe filename by removing/replacing problematic characters.

    Args:
        filename: Original filename
        max_length: Maximum filename length

    Returns:
        Safe filename
    """
    replacements = {
        "/": "_",
        "\\": "_",
        ":": "_",
        "*": "_",
        "?": "_",
        '"': "_",
        "<": "_",
        ">": "_",
        "|": "_",
        "\0": "",
    }

    result = filename
    for old, new in replacements.items():
        result = result.replace(old, new)

    result = result.strip(". ")

    if len(result) > max_length:
        stem = Path(result).stem
        suffix = Path(result).suffix
        result = stem[: max_length - len(suffix)] + suffix

    return result or "image"


def output_name(original_name: str, extension: str) -> str:
    """Build the output file name ``<original stem>.<extension>``.

    Only the base name of ``original_name`` is used, so client-supplied
    directory components never reach the archive.

    Examples:
        >>> output_name("photos/IMG_0001.CR2", "jpg")
        'IMG_0001.jpg'
    """
    base = original_name.replace("\\", "/").rsplit("/", 1)[-1]
    stem = Path(base).stem or base
    return safe_filename(f"{stem}.{extension}")


@contextmanager
def atomic_write(
    file_path: Path,
    mode: str = "w",
    encoding: str | None = "utf-8",
    create_parents: bool = True,
) -> Iterator[IO[Any]]:
    """Context manager for atomic file writes.

    Writes to a temp file first, then atomically moves to target.

    Args:
        file_path: Target file path
        mode: File mode ('w' or 'wb')
        encoding: File encoding (ignored for binary mode)
        create_parents: Create missing parent directories; otherwise a
            missing parent raises FileNotFoundError

    Yields:
        File handle
    """
    if create_parents:
        file_path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory, so the final rename stays on one filesystem
    temp_fd, temp_name = tempfile.mkstemp(
        dir=file_path.parent,
        prefix=f".{file_path.name}.",
    )
    temp_path = Path(temp_name)

    try:
        os.close(temp_fd)

        if "b" in mode:
            with open(temp_path, mode) as f:
                yield f
        else:
            with open(temp_path, mode, encoding=encoding) as f:
                yield f

        temp_path.replace(file_path)

    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


@contextmanager
def temporary_directory(parent: Path | None = None, prefix: str = "tmp-") -> Iterator[Path]:
    """Context manager for a temporary directory, removed on exit.

    Args:
        parent: Directory to create it in (system temp dir if omitted)
        prefix: Directory name prefix

    Yields:
        Path to temporary directory
    """
    temp_path = Path(tempfile.mkdtemp(prefix=prefix, dir=parent))

    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


def remove_tree(path: Path) -> bool:
    """Remove a directory tree, logging instead of raising on failure.

    Returns:
        True if the directory no longer exists
    """
    if not path.exists():
        return True
    try:
        shutil.rmtree(path)
    except OSError as e:
        log.warning("Failed to remove directory", path=str(path), error=str(e))
        return False
    return True


def unlink_quietly(path: Path) -> None:
    """Delete a file if it exists, logging any failure."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        log.warning("Failed to delete file", path=str(path), error=str(e))


def format_size(size: int | float) -> str:
    """Format byte size as human-readable string.

    Args:
        size: Size in bytes

    Returns:
        Human-readable size string
    """
    size_f = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_f < 1024:
            return f"{size_f:.1f} {unit}"
        size_f /= 1024
    return f"{size_f:.1f} PB"
