"""Pytest configuration and fixtures."""

import io
import re
import subprocess
import time
from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

from imgconv.config.settings import get_settings
from imgconv.core.models import InputFile, JobDescriptor, TargetFormat
from imgconv.exceptions import ProcessCancelledError
from imgconv.tools.availability import ToolAvailability, clear_probe_cache
from imgconv.utils.process import ProcessResult, ProcessRunner

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

SAMPLE_SVG = """<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" width="120" height="80" viewBox="0 0 120 80">
  <rect width="120" height="80" fill="#2563eb"/>
  <circle cx="60" cy="40" r="25" fill="#f59e0b"/>
</svg>
"""

ToolHandler = Callable[[list[str]], ProcessResult]


def make_image(size: tuple[int, int] = (64, 48), mode: str = "RGB", noisy: bool = False):
    """Create a test image; ``noisy`` images compress badly and stay large."""
    if noisy:
        img = Image.effect_noise(size, 80).convert("RGB")
    else:
        img = Image.linear_gradient("L").resize(size).convert("RGB")
    if mode == "RGBA":
        img = img.convert("RGBA")
        img.putalpha(128)
    return img


def image_bytes(img: Image.Image, pil_format: str, **params) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format=pil_format, **params)
    return buffer.getvalue()


class FakeRunner(ProcessRunner):
    """ProcessRunner that simulates external tools instead of spawning them.

    ``tools`` maps an executable name to a handler receiving the argument
    list. Unknown executables behave like a missing binary.
    """

    def __init__(self, tools: dict[str, ToolHandler] | None = None) -> None:
        super().__init__()
        self.tools = dict(tools or {})
        self.calls: list[list[str]] = []

    def run(self, args, timeout=None, cwd=None) -> ProcessResult:
        if self.closed:
            raise ProcessCancelledError(f"Refusing to start {args[0]}: batch cancelled")
        self.calls.append(list(args))
        handler = self.tools.get(args[0])
        if handler is None:
            raise FileNotFoundError(2, "No such file or directory", args[0])
        result = handler(list(args))
        if self.closed:
            raise ProcessCancelledError(f"{args[0]} was terminated: batch cancelled")
        return result

    def called(self, executable: str) -> list[list[str]]:
        return [call for call in self.calls if call[0] == executable]


def ok(args: list[str]) -> ProcessResult:
    return ProcessResult(args=args, returncode=0)


def dcraw_tool(size: tuple[int, int] = (64, 48), noisy: bool = False) -> ToolHandler:
    """dcraw / dcraw_emu: write ``<input stem>.tiff`` next to the input."""

    def handler(args: list[str]) -> ProcessResult:
        staged = Path(args[-1])
        make_image(size, noisy=noisy).save(staged.with_suffix(".tiff"), format="TIFF")
        return ok(args)

    return handler


def vips_tool(size: tuple[int, int] = (64, 48), noisy: bool = False) -> ToolHandler:
    """``vips copy <in> <out>[options]``: write the destination by extension."""

    def handler(args: list[str]) -> ProcessResult:
        destination = Path(re.sub(r"\[.*\]$", "", args[3]))
        pil_format = "JPEG" if destination.suffix == ".jpg" else "PNG"
        make_image(size, noisy=noisy).save(destination, format=pil_format)
        return ok(args)

    return handler


def magick_tool(size: tuple[int, int] = (64, 48)) -> ToolHandler:
    """ImageMagick: TIFF from RAW, or a stub PSD."""

    def handler(args: list[str]) -> ProcessResult:
        if args[1] in ("-version", "--version"):
            return ok(args)
        destination = Path(args[-1])
        if destination.suffix == ".psd":
            destination.write_bytes(b"8BPS" + b"\x00" * 64)
        else:
            make_image(size).save(destination, format="TIFF", compression="jpeg")
        return ok(args)

    return handler


def failing_tool(returncode: int = 1, stderr: bytes = b"decode error") -> ToolHandler:
    def handler(args: list[str]) -> ProcessResult:
        return ProcessResult(args=args, returncode=returncode, stderr=stderr)

    return handler


def timeout_tool(args: list[str]) -> ProcessResult:
    raise subprocess.TimeoutExpired(args, 1)


def slow_tool(seconds: float) -> ToolHandler:
    def handler(args: list[str]) -> ProcessResult:
        time.sleep(seconds)
        return ok(args)

    return handler


@pytest.fixture(autouse=True)
def reset_caches():
    """Drop cached settings and tool snapshots between tests."""
    get_settings.cache_clear()
    clear_probe_cache()
    yield
    get_settings.cache_clear()
    clear_probe_cache()


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def no_tools() -> ToolAvailability:
    return ToolAvailability.none()


@pytest.fixture
def all_tools() -> ToolAvailability:
    return ToolAvailability(
        dcraw_emu=True,
        dcraw=True,
        vips=True,
        magick=True,
        libraw_command="dcraw_emu",
        magick_command="magick",
    )


@pytest.fixture
def png_file(temp_dir: Path) -> Path:
    """A small RGBA PNG."""
    path = temp_dir / "a.png"
    make_image(mode="RGBA").save(path, format="PNG")
    return path


@pytest.fixture
def jpeg_file(temp_dir: Path) -> Path:
    path = temp_dir / "photo.jpg"
    make_image().save(path, format="JPEG", quality=90)
    return path


@pytest.fixture
def svg_file(temp_dir: Path) -> Path:
    path = temp_dir / "c.svg"
    path.write_text(SAMPLE_SVG, encoding="utf-8")
    return path


@pytest.fixture
def raw_file(temp_dir: Path) -> Path:
    """A stand-in camera RAW file; the simulated tools never read it."""
    path = temp_dir / "IMG_0001.CR2"
    path.write_bytes(b"II*\x00fake raw payload" * 64)
    return path


@pytest.fixture
def heic_file(temp_dir: Path) -> Path:
    """A real HEIC file written by pillow-heif."""
    pillow_heif = pytest.importorskip("pillow_heif")
    pillow_heif.register_heif_opener()
    path = temp_dir / "b.heic"
    try:
        make_image().save(path, format="HEIF", quality=90)
    except (KeyError, OSError, ValueError) as e:
        pytest.skip(f"HEIF encoding not available: {e}")
    return path


@pytest.fixture
def make_job(temp_dir: Path):
    """Build a JobDescriptor whose inputs are copies inside a fresh work dir."""

    def factory(
        sources: list[Path], target: TargetFormat | str, job_id: str = "job12345"
    ) -> JobDescriptor:
        work_dir = temp_dir / "jobs" / job_id
        input_dir = work_dir / "input"
        input_dir.mkdir(parents=True)
        files = []
        for index, source in enumerate(sources):
            dest = input_dir / f"{index:04d}-{source.name}"
            dest.write_bytes(source.read_bytes())
            files.append(
                InputFile(original_name=source.name, path=dest, size_bytes=dest.stat().st_size)
            )
        return JobDescriptor(
            job_id=job_id, work_dir=work_dir, files=tuple(files), output_format=target
        )

    return factory
