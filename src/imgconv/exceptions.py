"""Custom exceptions for imgconv."""

from pathlib import Path


class ImgconvError(Exception):
    """Base exception class for imgconv."""

    pass


class InputError(ImgconvError):
    """Invalid job descriptor or missing input at job start."""

    pass


class ConversionError(ImgconvError):
    """Error while converting a single file."""

    def __init__(self, file_path: Path, message: str, cause: Exception | None = None) -> None:
        self.file_path = file_path
        self.cause = cause
        self.message = message
        super().__init__(f"Conversion failed for {Path(file_path).name}: {message}")


class StrategyError(ConversionError):
    """A single decode strategy attempt failed."""

    def __init__(
        self,
        file_path: Path,
        strategy: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        self.strategy = strategy
        super().__init__(file_path, f"[{strategy}] {message}", cause=cause)


class ToolUnavailableError(StrategyError):
    """The external tool behind a strategy is not installed."""

    def __init__(self, file_path: Path, strategy: str, tool: str) -> None:
        self.tool = tool
        super().__init__(file_path, strategy, f"{tool} not available")


class ToolExecutionError(StrategyError):
    """An external tool exited non-zero or produced no output."""

    pass


class ToolTimeoutError(StrategyError):
    """An external tool exceeded its call timeout."""

    def __init__(self, file_path: Path, strategy: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(file_path, strategy, f"timed out after {timeout:g}s")


class FallbackExhaustedError(ConversionError):
    """All decode strategies in a chain failed."""

    def __init__(self, file_path: Path, errors: list[Exception]) -> None:
        messages = [str(e) for e in errors]
        super().__init__(file_path, f"All conversion attempts failed: {messages}")
        self.errors = errors


class EncodeError(ConversionError):
    """Encoding a decoded image into the target format failed."""

    pass


class PsdExportError(EncodeError):
    """The external toolkit could not produce a PSD file."""

    pass


class ArchiveError(ImgconvError):
    """Error while assembling the output archive."""

    pass


class BatchTimeoutError(ImgconvError):
    """The whole batch exceeded its time budget."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Batch timed out after {timeout:g}s")


class ProcessCancelledError(ImgconvError):
    """A child process was refused or killed because the batch was cancelled."""

    pass


class ProgressError(ImgconvError):
    """Progress record error."""

    pass


class ConfigurationError(ImgconvError):
    """Configuration error."""

    pass
