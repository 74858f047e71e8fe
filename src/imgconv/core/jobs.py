"""Job work directories: creation and retention sweeps."""

import time
from pathlib import Path

from imgconv.config.constants import DEFAULT_JOB_MAX_AGE
from imgconv.utils.fs import ensure_directory, remove_tree
from imgconv.utils.logging import generate_job_id, get_logger

log = get_logger(__name__)


def create_job_dir(work_root: Path, job_id: str | None = None) -> tuple[str, Path]:
    """Create a fresh work directory for a job.

    Returns:
        Tuple of (job_id, work_dir)
    """
    job_id = job_id or generate_job_id()
    work_dir = work_root / job_id
    if work_dir.exists():
        raise FileExistsError(f"Work directory already exists: {work_dir}")
    ensure_directory(work_dir)
    return job_id, work_dir


def sweep_expired(
    base_dir: Path,
    max_age: float = DEFAULT_JOB_MAX_AGE,
    now: float | None = None,
) -> list[Path]:
    """Remove job directories not modified for ``max_age`` seconds.

    Only direct subdirectories of ``base_dir`` are considered; files next to
    them are left alone.

    Returns:
        Directories that were removed
    """
    if not base_dir.is_dir():
        return []

    now = time.time() if now is None else now
    removed: list[Path] = []
    for entry in sorted(base_dir.iterdir()):
        if not entry.is_dir() or entry.is_symlink():
            continue
        try:
            age = now - entry.stat().st_mtime
        except OSError:
            continue
        if age > max_age and remove_tree(entry):
            removed.append(entry)

    if removed:
        log.info("Expired job directories removed", count=len(removed), base_dir=str(base_dir))
    return removed
