"""RAW decode strategies backed by external tools.

dcraw and the LibRaw emulator write their TIFF next to the input file, so the
input is first linked into the attempt's scratch directory. Anything a tool
leaves behind is then removed together with that directory.
"""

import os
import shutil
from pathlib import Path

from imgconv.decoders.base import DecodedFile, DecodeRequest, DecodeStrategy
from imgconv.exceptions import ToolExecutionError


def stage_input(request: DecodeRequest, name: str) -> Path:
    """Make the input visible inside ``request.temp_dir``.

    Uses a symlink where the platform allows it and a copy otherwise.
    """
    staged = request.temp_dir / f"{name}{request.input_path.suffix.lower()}"
    if staged.exists():
        staged.unlink()
    try:
        os.symlink(request.input_path.resolve(), staged)
    except OSError:
        try:
            shutil.copy2(request.input_path, staged)
        except OSError as e:
            raise ToolExecutionError(
                request.input_path, name, f"cannot stage input: {e}", cause=e
            ) from e
    return staged


def tiff_candidates(staged: Path) -> list[Path]:
    """Output names used by dcraw builds: ``x.tiff``, ``x.tif`` or ``x.cr2.tiff``."""
    return [
        staged.with_suffix(".tiff"),
        staged.with_suffix(".tif"),
        staged.with_name(staged.name + ".tiff"),
        staged.with_name(staged.name + ".tif"),
    ]


class LibRawStrategy(DecodeStrategy):
    """LibRaw's dcraw emulator: ``dcraw_emu -w -T <input>``."""

    name = "libraw"
    tool = "dcraw_emu"

    def run(self, request: DecodeRequest) -> DecodedFile:
        staged = stage_input(request, self.name)
        command = request.availability.command(self.tool)
        self.execute(request, [command, "-w", "-T", str(staged)], cwd=request.temp_dir)
        output = self.require_output(request, tiff_candidates(staged))
        return DecodedFile(path=output, strategy=self.name, container="tiff")


class DcrawStrategy(DecodeStrategy):
    """Classic dcraw: ``dcraw -v -w -T <input>``."""

    name = "dcraw"
    tool = "dcraw"

    def run(self, request: DecodeRequest) -> DecodedFile:
        staged = stage_input(request, self.name)
        self.execute(request, ["dcraw", "-v", "-w", "-T", str(staged)], cwd=request.temp_dir)
        output = self.require_output(request, tiff_candidates(staged))
        return DecodedFile(path=output, strategy=self.name, container="tiff")


class VipsStrategy(DecodeStrategy):
    """libvips: ``vips copy <input> <output>``.

    Writes PNG by default. With ``jpeg_quality`` set it writes a JPEG at that
    quality instead, which is already a finished JPEG for JPEG targets.
    """

    name = "vips"
    tool = "vips"

    def __init__(self, jpeg_quality: int | None = None) -> None:
        self.jpeg_quality = jpeg_quality

    def run(self, request: DecodeRequest) -> DecodedFile:
        if self.jpeg_quality is not None:
            output = request.temp_dir / "vips_output.jpg"
            destination = f"{output}[Q={self.jpeg_quality}]"
            container = "jpeg"
        else:
            output = request.temp_dir / "vips_output.png"
            destination = str(output)
            container = "png"

        self.execute(request, ["vips", "copy", str(request.input_path), destination])
        output = self.require_output(request, [output])
        return DecodedFile(
            path=output,
            strategy=self.name,
            container=container,
            encoded=container == "jpeg" and request.target.is_jpeg,
        )


class MagickTiffStrategy(DecodeStrategy):
    """ImageMagick straight to an 8-bit JPEG-compressed TIFF."""

    name = "magick"
    tool = "magick"

    def __init__(self, quality: int = 92) -> None:
        self.quality = quality

    def run(self, request: DecodeRequest) -> DecodedFile:
        output = request.temp_dir / "magick_output.tiff"
        command = request.availability.command(self.tool)
        args = [
            command,
            str(request.input_path),
            "-alpha",
            "off",
            "-depth",
            "8",
            "-compress",
            "JPEG",
            "-quality",
            str(self.quality),
            str(output),
        ]
        self.execute(request, args)
        output = self.require_output(request, [output])
        return DecodedFile(path=output, strategy=self.name, container="tiff", encoded=True)


ENGINE_STRATEGIES: dict[str, type[DecodeStrategy]] = {
    "libraw": LibRawStrategy,
    "dcraw": DcrawStrategy,
    "vips": VipsStrategy,
}
