"""ZIP archive assembly for converted files."""

import zipfile
from pathlib import Path

from imgconv.exceptions import ArchiveError
from imgconv.utils.fs import format_size, unlink_quietly
from imgconv.utils.logging import get_logger

log = get_logger(__name__)

COMPRESS_LEVEL = 9


def build_archive(files: list[Path], archive_path: Path) -> Path:
    """Stream ``files`` into a deflate-compressed ZIP with flat entry names.

    Args:
        files: Files to add, in order; entries are named by base name
        archive_path: Destination archive

    Returns:
        The archive path

    Raises:
        ArchiveError: A file is missing, names collide, or writing failed
    """
    names = [f.name for f in files]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ArchiveError(f"Duplicate archive entries: {', '.join(duplicates)}")

    try:
        with zipfile.ZipFile(
            archive_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL
        ) as zf:
            for file_path in files:
                zf.write(file_path, arcname=file_path.name)
    except (OSError, zipfile.LargeZipFile) as e:
        unlink_quietly(archive_path)
        raise ArchiveError(f"Failed to build archive {archive_path.name}: {e}") from e

    log.info(
        "Archive created",
        archive=str(archive_path),
        entries=len(files),
        size=format_size(archive_path.stat().st_size),
    )
    return archive_path
