"""Child process execution with timeouts and batch-wide cancellation."""

import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path

from imgconv.exceptions import ProcessCancelledError
from imgconv.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class ProcessResult:
    """Outcome of one external command."""

    args: list[str]
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_text(self, limit: int = 300) -> str:
        """Decoded, trimmed stderr for error messages."""
        text = self.stderr.decode("utf-8", errors="replace").strip()
        return text[-limit:] if len(text) > limit else text


@dataclass
class ProcessRunner:
    """Runs external tools and keeps track of the ones still running.

    One runner is shared by every file task of a batch. When the batch is
    cancelled, :meth:`terminate_all` kills whatever is still running and
    makes later :meth:`run` calls fail with :class:`ProcessCancelledError`,
    so worker threads that outlive the cancelled batch cannot start new
    tools.
    """

    _active: set[subprocess.Popen] = field(default_factory=set, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _closed: bool = field(default=False, init=False)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def run(
        self,
        args: list[str],
        timeout: float | None = None,
        cwd: Path | None = None,
    ) -> ProcessResult:
        """Run a command to completion.

        Args:
            args: Command and arguments
            timeout: Seconds before the child is killed
            cwd: Working directory for the child

        Returns:
            ProcessResult (a non-zero exit is not an exception)

        Raises:
            OSError: The executable could not be spawned
            subprocess.TimeoutExpired: The child was killed after ``timeout``
            ProcessCancelledError: The runner was terminated
        """
        with self._lock:
            if self._closed:
                raise ProcessCancelledError(f"Refusing to start {args[0]}: batch cancelled")
            proc = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
            )
            self._active.add(proc)

        log.debug("Spawned process", cmd=" ".join(args), pid=proc.pid)
        try:
            try:
                stdout, stderr = proc.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.communicate()
                log.warning("Process timed out", cmd=args[0], timeout=timeout)
                raise
        finally:
            with self._lock:
                self._active.discard(proc)

        if self._closed:
            raise ProcessCancelledError(f"{args[0]} was terminated: batch cancelled")

        return ProcessResult(
            args=list(args), returncode=proc.returncode, stdout=stdout, stderr=stderr
        )

    def terminate_all(self) -> int:
        """Kill every running child and refuse new ones.

        Returns:
            Number of processes that were killed
        """
        with self._lock:
            self._closed = True
            active = list(self._active)

        for proc in active:
            try:
                proc.kill()
            except OSError as e:
                log.debug("Kill failed", pid=proc.pid, error=str(e))

        if active:
            log.warning("Terminated running processes", count=len(active))
        return len(active)
