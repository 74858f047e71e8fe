"""Availability probing for the external RAW decoding tools.

Each engine is asked for its version (or help) under a short timeout. A zero
exit code marks it present. A non-zero exit or a timeout on the first probe
argument falls through to a second argument. dcraw and LibRaw's emulator
reject every option they do not know, so a binary that starts but rejects
all probe arguments is confirmed with a PATH lookup instead. A binary that
cannot be spawned is absent, and its remaining probe arguments are skipped.
"""

import shutil
import subprocess
import threading
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum

from imgconv.config.constants import DEFAULT_PROBE_TIMEOUT, DEFAULT_TOOL_CACHE_TTL
from imgconv.utils.logging import get_logger
from imgconv.utils.process import ProcessRunner

log = get_logger(__name__)


@dataclass(frozen=True)
class ToolSpec:
    """How to find and probe one engine."""

    key: str
    commands: tuple[str, ...]
    probe_args: tuple[tuple[str, ...], ...]


# Command names are tried in order; the first that answers is used
TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec("dcraw_emu", ("dcraw_emu", "libraw_dcraw_emu"), (("-V",), ("-h",))),
    ToolSpec("dcraw", ("dcraw",), (("-V",), ("-h",))),
    ToolSpec("vips", ("vips",), (("--version",), ("-v",))),
    ToolSpec("magick", ("magick", "convert"), (("-version",), ("--version",))),
)


@dataclass(frozen=True)
class ToolAvailability:
    """Snapshot of which external engines can be used for one job."""

    dcraw_emu: bool = False
    dcraw: bool = False
    vips: bool = False
    magick: bool = False
    libraw_command: str | None = None
    magick_command: str | None = None
    checked_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def none(cls) -> "ToolAvailability":
        """Snapshot with every tool absent."""
        return cls()

    def has(self, tool: str) -> bool:
        return bool(getattr(self, tool, False))

    def command(self, tool: str) -> str:
        """Resolved executable name for a tool key."""
        if tool == "dcraw_emu":
            return self.libraw_command or "dcraw_emu"
        if tool == "magick":
            return self.magick_command or "magick"
        return tool

    def to_dict(self) -> dict:
        return asdict(self)

    def summary(self) -> str:
        """Short text such as ``dcraw_emu=no dcraw=yes vips=no magick=yes``."""
        flags = ("dcraw_emu", "dcraw", "vips", "magick")
        return " ".join(f"{name}={'yes' if self.has(name) else 'no'}" for name in flags)


class ProbeStatus(Enum):
    ANSWERED = "answered"
    REJECTED = "rejected"
    MISSING = "missing"


class ToolProber:
    """Runs the availability probes."""

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        runner: ProcessRunner | None = None,
        specs: tuple[ToolSpec, ...] = TOOL_SPECS,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        self.timeout = timeout
        self.runner = runner or ProcessRunner()
        self.specs = specs
        self.which = which

    def _answers(self, command: str, args: tuple[str, ...]) -> ProbeStatus:
        try:
            result = self.runner.run([command, *args], timeout=self.timeout)
        except OSError:
            return ProbeStatus.MISSING
        except subprocess.TimeoutExpired:
            return ProbeStatus.REJECTED
        return ProbeStatus.ANSWERED if result.ok else ProbeStatus.REJECTED

    def find_command(self, spec: ToolSpec) -> str | None:
        """Return the first command name of ``spec`` that is usable.

        A command counts when it answers a probe argument, or when it starts
        but rejects all of them and is still found on PATH.
        """
        for command in spec.commands:
            statuses = []
            for args in spec.probe_args:
                status = self._answers(command, args)
                if status is ProbeStatus.ANSWERED:
                    return command
                statuses.append(status)
                if status is ProbeStatus.MISSING:
                    break
            if ProbeStatus.MISSING not in statuses and self.which(command):
                log.debug("Probe arguments rejected, found on PATH", command=command)
                return command
        return None

    def probe(self) -> ToolAvailability:
        """Probe every tool. Never raises; all tools absent on error."""
        try:
            found = {spec.key: self.find_command(spec) for spec in self.specs}
        except Exception as e:
            log.error("Tool probing failed", error=str(e))
            availability = ToolAvailability.none()
        else:
            availability = ToolAvailability(
                dcraw_emu=found.get("dcraw_emu") is not None,
                dcraw=found.get("dcraw") is not None,
                vips=found.get("vips") is not None,
                magick=found.get("magick") is not None,
                libraw_command=found.get("dcraw_emu"),
                magick_command=found.get("magick"),
            )

        log.info(
            "RAW tools probed",
            dcraw_emu=availability.dcraw_emu,
            dcraw=availability.dcraw,
            vips=availability.vips,
            magick=availability.magick,
            libraw_command=availability.libraw_command,
            magick_command=availability.magick_command,
        )
        return availability


# Process-wide cache: (monotonic timestamp, snapshot)
_cache: tuple[float, ToolAvailability] | None = None
_cache_lock = threading.Lock()


def probe(
    refresh: bool = False,
    ttl: float = DEFAULT_TOOL_CACHE_TTL,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
) -> ToolAvailability:
    """Get the tool availability snapshot, probing at most once per ``ttl``.

    Args:
        refresh: Ignore any cached snapshot
        ttl: Seconds a snapshot stays valid
        timeout: Per-probe timeout

    Returns:
        ToolAvailability snapshot
    """
    global _cache

    with _cache_lock:
        now = time.monotonic()
        if not refresh and _cache is not None and now - _cache[0] < ttl:
            return _cache[1]

        availability = ToolProber(timeout=timeout).probe()
        _cache = (time.monotonic(), availability)
        return availability


def clear_probe_cache() -> None:
    """Drop the cached snapshot."""
    global _cache
    with _cache_lock:
        _cache = None
