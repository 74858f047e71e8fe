"""Decode outcomes and the strategy interface shared by every decoder."""

import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from imgconv.core.models import TargetFormat
from imgconv.exceptions import (
    ProcessCancelledError,
    ToolExecutionError,
    ToolTimeoutError,
)
from imgconv.tools.availability import ToolAvailability
from imgconv.utils.logging import get_logger
from imgconv.utils.process import ProcessResult, ProcessRunner

log = get_logger(__name__)


@dataclass(frozen=True)
class DecodedBuffer:
    """Decoded image held in memory.

    ``encoded`` means ``data`` is already in ``container`` and matches the
    requested target, so it can be written as-is.
    """

    data: bytes
    strategy: str
    container: str
    encoded: bool = False

    def read_bytes(self) -> bytes:
        return self.data


@dataclass(frozen=True)
class DecodedFile:
    """Decoded image written to an intermediate file."""

    path: Path
    strategy: str
    container: str
    encoded: bool = False

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


@dataclass(frozen=True)
class DecodeFailure:
    """Every strategy failed; carries the evidence for the placeholder."""

    error: Exception
    errors: list[Exception] = field(default_factory=list)
    availability: ToolAvailability | None = None


DecodeOutcome = DecodedBuffer | DecodedFile | DecodeFailure
Decoded = DecodedBuffer | DecodedFile


@dataclass
class DecodeRequest:
    """Inputs of one strategy attempt."""

    input_path: Path
    target: TargetFormat
    temp_dir: Path
    availability: ToolAvailability
    runner: ProcessRunner
    timeout: float


class DecodeStrategy(ABC):
    """One way of turning a RAW file into something Pillow can read.

    ``tool`` is the ToolAvailability key the strategy depends on; the chain
    skips the strategy without spawning anything when it is absent.
    """

    name: str = "strategy"
    tool: str = ""

    @abstractmethod
    def run(self, request: DecodeRequest) -> DecodedFile:
        """Run the strategy.

        Raises:
            StrategyError: The attempt failed
            ProcessCancelledError: The batch was cancelled
        """

    def execute(
        self,
        request: DecodeRequest,
        args: list[str],
        cwd: Path | None = None,
    ) -> ProcessResult:
        """Run an external command, mapping failures to StrategyErrors."""
        try:
            result = request.runner.run(args, timeout=request.timeout, cwd=cwd)
        except subprocess.TimeoutExpired as e:
            raise ToolTimeoutError(request.input_path, self.name, request.timeout) from e
        except ProcessCancelledError:
            raise
        except OSError as e:
            raise ToolExecutionError(
                request.input_path, self.name, f"could not start {args[0]}: {e}", cause=e
            ) from e

        if not result.ok:
            detail = result.stderr_text()
            message = f"{args[0]} exited with code {result.returncode}"
            raise ToolExecutionError(
                request.input_path, self.name, f"{message}: {detail}" if detail else message
            )
        return result

    def require_output(self, request: DecodeRequest, candidates: list[Path]) -> Path:
        """Return the first non-empty candidate output file.

        Raises:
            ToolExecutionError: None of the candidates was produced
        """
        for candidate in candidates:
            if candidate.is_file() and candidate.stat().st_size > 0:
                return candidate
        names = ", ".join(c.name for c in candidates)
        raise ToolExecutionError(request.input_path, self.name, f"produced no output ({names})")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, tool={self.tool!r})"