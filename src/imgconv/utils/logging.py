"""Logging configuration using structlog."""

import logging
import re
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from structlog.typing import EventDict, WrappedLogger

BoundLogger = structlog.stdlib.BoundLogger


# =============================================================================
# Job Context
# =============================================================================

# Per-task context (contextvars are copied into worker threads by anyio)
_job_id_var: ContextVar[str | None] = ContextVar("job_id", default=None)
_file_var: ContextVar[str | None] = ContextVar("file", default=None)
_strategy_var: ContextVar[str | None] = ContextVar("strategy", default=None)

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    "job_id": _job_id_var,
    "file": _file_var,
    "strategy": _strategy_var,
}


def generate_job_id() -> str:
    """Generate a short random job identifier (8 hex characters)."""
    return uuid.uuid4().hex[:8]


@contextmanager
def job_context(
    job_id: str | None = None,
    file: str | None = None,
    strategy: str | None = None,
) -> Generator[str | None, None, None]:
    """Bind job, file and strategy names to every log record in this block.

    Values left as ``None`` keep whatever the enclosing context set, so the
    orchestrator can bind ``job_id`` once and the processor and decode chain
    can layer ``file`` and ``strategy`` on top.

    Yields:
        The job ID in effect inside the block.

    Example:
        >>> with job_context(job_id="a1b2c3d4"):
        ...     with job_context(file="IMG_0001.CR2"):
        ...         log.info("Decoding")  # job_id=a1b2c3d4 file=IMG_0001.CR2
    """
    values = {"job_id": job_id, "file": file, "strategy": strategy}
    tokens = [
        (var, var.set(values[key])) for key, var in _CONTEXT_VARS.items() if values[key] is not None
    ]
    try:
        yield _job_id_var.get()
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def _inject_job_context(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Add job_id, file and strategy from the context unless already present."""
    for key, var in _CONTEXT_VARS.items():
        value = var.get()
        if value and key not in event_dict:
            event_dict[key] = value
    return event_dict


# =============================================================================
# Logging Configuration
# =============================================================================


class SafeStreamHandler(logging.StreamHandler):
    """A StreamHandler that replaces characters the console cannot encode."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            stream = self.stream
            try:
                stream.write(msg + self.terminator)
            except UnicodeEncodeError:
                encoding = stream.encoding or "utf-8"
                stream.write(
                    msg.encode(encoding, errors="replace").decode(encoding) + self.terminator
                )
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


_console: Console | None = None
_log_output: TextIO = sys.stderr

# Embedded rasters (SVG wrapper, data URIs) end up in error text now and then
_BASE64_PATTERN = re.compile(
    r"(data:image/[^;]+;base64,)[A-Za-z0-9+/=]{100,}|"  # data URI
    r"[A-Za-z0-9+/=]{500,}"  # plain base64 (long strings)
)

_NOISY_LOGGERS = ["PIL", "asyncio", "cairosvg"]

# Keys that are handled specially by ConsoleRenderer (not user context)
_INTERNAL_KEYS = {"event", "level", "timestamp", "_record", "_from_structlog"}

_MAX_VALUE_LENGTH = 500


def get_console() -> Console:
    """Get the global Rich console for coordinated output."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def _truncate_base64(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Replace long base64 runs with a length marker."""
    for key, value in list(event_dict.items()):
        if isinstance(value, str) and len(value) > 200 and _BASE64_PATTERN.search(value):
            event_dict[key] = _BASE64_PATTERN.sub(
                lambda m: f"{m.group(1) or ''}[BASE64:{len(m.group(0))} chars]",
                value,
            )
    return event_dict


def _filter_event_dict(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Clip long strings and hide binary payloads such as tool stderr."""
    for key, value in list(event_dict.items()):
        if isinstance(value, str) and len(value) > _MAX_VALUE_LENGTH:
            event_dict[key] = value[:_MAX_VALUE_LENGTH] + f"... [{len(value)} chars total]"
        elif isinstance(value, (bytes, bytearray)) and len(value) > _MAX_VALUE_LENGTH:
            event_dict[key] = f"[BINARY DATA: {len(value)} bytes]"
    return event_dict


def _add_separator(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Add a visual separator between event message and context variables."""
    if "event" in event_dict and any(k not in _INTERNAL_KEYS for k in event_dict):
        event_dict["event"] = f"{event_dict['event']} |"
    return event_dict


def _console_renderer(colors: bool) -> structlog.dev.ConsoleRenderer:
    return structlog.dev.ConsoleRenderer(
        colors=colors,
        exception_formatter=structlog.dev.plain_traceback,
        pad_event_to=0,
        pad_level=False,
        sort_keys=False,
    )


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_format: bool = False,
    console: Console | None = None,
    console_level: str | None = None,
    file_level: str | None = None,
) -> None:
    """Configure structlog for the application.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file, rotated daily with 7 days retention
        json_format: If True, render JSON lines instead of console format
        console: Optional Rich Console for coordinated output with Progress
        console_level: Optional override for console handler level
        file_level: Optional override for file handler level
    """
    global _console

    log_level = getattr(logging, level.upper(), logging.INFO)

    if console is not None:
        _console = console

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _inject_job_context,
        _truncate_base64,
        _filter_event_dict,
        _add_separator,
    ]

    def make_formatter(renderer: structlog.types.Processor) -> logging.Formatter:
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )

    if json_format:
        console_renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = _console_renderer(colors=True)

    console_handler = SafeStreamHandler(_log_output)
    console_handler.setLevel(
        getattr(logging, console_level.upper(), log_level) if console_level else log_level
    )
    console_handler.setFormatter(make_formatter(console_renderer))
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

        if json_format:
            file_renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        else:
            file_renderer = _console_renderer(colors=False)

        file_handler = TimedRotatingFileHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        file_handler.setLevel(
            getattr(logging, file_level.upper(), log_level) if file_level else log_level
        )
        file_handler.setFormatter(make_formatter(file_renderer))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog bound logger."""
    return structlog.get_logger(name)


def create_task_log_path(log_dir: str | Path, prefix: str = "task") -> tuple[str, Path]:
    """Create a unique log file path for one CLI task.

    Returns:
        Tuple of (task_id, log_file_path), e.g.
        ``.logs/convert_20260109_143052_a1b2c3d4.log``.
    """
    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)

    task_id = generate_job_id()
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return task_id, log_dir_path / f"{prefix}_{timestamp}_{task_id}.log"


def setup_task_logging(
    log_dir: str | Path,
    prefix: str = "task",
    verbose: bool = False,
) -> tuple[str, Path]:
    """Setup logging for a CLI task.

    The console shows WARNING and above unless ``verbose`` is set, leaving
    room for the progress display. The task log file always records DEBUG.

    Returns:
        Tuple of (task_id, log_file_path)
    """
    task_id, log_path = create_task_log_path(log_dir, prefix)

    setup_logging(
        level="DEBUG",
        log_file=str(log_path),
        console_level="DEBUG" if verbose else "WARNING",
        file_level="DEBUG",
    )

    return task_id, log_path
