"""Durable progress record for a conversion job."""

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from imgconv.exceptions import ProgressError
from imgconv.utils.fs import atomic_write
from imgconv.utils.logging import get_logger

log = get_logger(__name__)


JobStatus = Literal["queued", "processing", "done"]

_STATUSES = ("queued", "processing", "done")


def _now() -> str:
    return datetime.now().isoformat()


@dataclass
class ProgressRecord:
    """Progress of one job: ``done`` of ``total`` files finished."""

    job_id: str
    total: int
    done: int = 0
    status: JobStatus = "queued"
    updated_at: str = field(default_factory=_now)

    @property
    def percent(self) -> int:
        """Completion percentage, rounded to the nearest integer."""
        if self.total <= 0:
            return 100 if self.status == "done" else 0
        return round(self.done / self.total * 100)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        return {
            "jobId": self.job_id,
            "total": self.total,
            "done": self.done,
            "status": self.status,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProgressRecord":
        """Create from the wire representation."""
        status = data.get("status", "queued")
        if status not in _STATUSES:
            raise ProgressError(f"Unknown progress status: {status!r}")
        return cls(
            job_id=str(data.get("jobId", "")),
            total=int(data["total"]),
            done=int(data.get("done", 0)),
            status=status,
            updated_at=data.get("updatedAt") or _now(),
        )


class ProgressStore:
    """Persists a job's ProgressRecord as JSON inside its work dir.

    Updates are serialised with a lock and written atomically, so a reader
    polling the file never sees a partial document. ``done`` only moves
    forward and is clamped to ``total``.
    """

    def __init__(self, progress_file: Path | str) -> None:
        """Initialize the progress store.

        Args:
            progress_file: Path of the JSON progress file
        """
        self.progress_file = Path(progress_file)
        self._lock = threading.Lock()
        self._record: ProgressRecord | None = None

    @property
    def record(self) -> ProgressRecord | None:
        return self._record

    def create(self, job_id: str, total: int, status: JobStatus = "processing") -> ProgressRecord:
        """Start a fresh record for ``total`` files."""
        with self._lock:
            self._record = ProgressRecord(job_id=job_id, total=total, status=status)
            self._save(create_parents=True)
        log.debug("Progress record created", total=total, status=status)
        return self._record

    def increment(self) -> ProgressRecord:
        """Count one more finished file."""
        with self._lock:
            record = self._require()
            if record.done >= record.total:
                log.warning("Progress already complete", done=record.done, total=record.total)
            else:
                record.done += 1
            record.updated_at = _now()
            self._save()
            return record

    def set_status(self, status: JobStatus) -> ProgressRecord:
        """Change the job status."""
        if status not in _STATUSES:
            raise ProgressError(f"Unknown progress status: {status!r}")
        with self._lock:
            record = self._require()
            record.status = status
            record.updated_at = _now()
            self._save()
            return record

    def load(self) -> ProgressRecord:
        """Read the record from disk.

        Raises:
            ProgressError: File is missing or malformed
        """
        record = self.read(self.progress_file)
        with self._lock:
            self._record = record
        return record

    @staticmethod
    def read(progress_file: Path | str) -> ProgressRecord:
        """Read a progress file without keeping a store around.

        Raises:
            ProgressError: File is missing or malformed
        """
        path = Path(progress_file)
        if not path.exists():
            raise ProgressError(f"No progress record at {path}")
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return ProgressRecord.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ProgressError(f"Invalid progress record: {e}") from e

    def _require(self) -> ProgressRecord:
        if self._record is None:
            raise ProgressError("No progress record initialised")
        return self._record

    def _save(self, create_parents: bool = False) -> None:
        # Only create() may create the job directory
        if self._record is None:
            return
        with atomic_write(self.progress_file, create_parents=create_parents) as f:
            json.dump(self._record.to_dict(), f, indent=2)
