"""Encoding of decoded images into the requested output format."""

import base64
import io
import subprocess
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from imgconv.config.settings import EncodingConfig
from imgconv.core.models import TargetFormat
from imgconv.decoders.base import Decoded, DecodedBuffer, DecodedFile
from imgconv.exceptions import EncodeError, InputError, ProcessCancelledError, PsdExportError
from imgconv.tools.availability import ToolAvailability
from imgconv.utils.fs import temporary_directory
from imgconv.utils.logging import get_logger
from imgconv.utils.process import ProcessRunner

log = get_logger(__name__)

# Containers ImageMagick reads directly as a PSD source
_PSD_SOURCE_CONTAINERS = {"tiff", "jpeg", "png"}

_SVG_TEMPLATE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
    'viewBox="0 0 {width} {height}">'
    '<image href="data:image/png;base64,{data}" width="{width}" height="{height}" '
    'preserveAspectRatio="xMidYMid meet"/></svg>'
)


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)


def flatten(img: Image.Image, background: tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """Return an RGB image with any transparency composited onto ``background``."""
    if _has_alpha(img):
        rgba = img.convert("RGBA")
        flat = Image.new("RGB", rgba.size, background)
        flat.paste(rgba, mask=rgba.split()[3])
        return flat
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def open_image(source: Decoded | bytes | Path) -> Image.Image:
    """Open and fully load an image from bytes, a path or a decode outcome.

    Raises:
        EncodeError: Pillow cannot read the data
    """
    match source:
        case DecodedBuffer(data=data):
            stream: io.BytesIO | Path = io.BytesIO(data)
            label = Path(f"<{source.strategy}>")
        case DecodedFile(path=path):
            stream, label = path, path
        case bytes():
            stream, label = io.BytesIO(source), Path("<buffer>")
        case _:
            stream, label = Path(source), Path(source)

    try:
        img = Image.open(stream)
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise EncodeError(label, f"cannot read decoded image: {e}", cause=e) from e
    return img


class ImageEncoder:
    """Pillow based encoder.

    Raster targets are written by Pillow; PSD goes through ImageMagick
    because Pillow cannot write it. The encoder never substitutes a
    placeholder: every failure raises an :class:`EncodeError`.
    """

    def __init__(
        self,
        config: EncodingConfig | None = None,
        runner: ProcessRunner | None = None,
        call_timeout: float = 120,
    ) -> None:
        self.config = config or EncodingConfig()
        self.runner = runner or ProcessRunner()
        self.call_timeout = call_timeout

    def encode(
        self,
        decoded: Decoded | Image.Image,
        target: TargetFormat | str,
        *,
        raw_source: bool = False,
        availability: ToolAvailability | None = None,
        temp_dir: Path | None = None,
    ) -> bytes:
        """Encode ``decoded`` into ``target``.

        Args:
            decoded: Decode outcome or an already opened image
            target: Output format; unknown formats produce JPEG
            raw_source: Image came from a RAW decoder (TIFF uses JPEG-in-TIFF)
            availability: Tool snapshot, needed for PSD
            temp_dir: Where PSD intermediates are written

        Returns:
            Encoded bytes

        Raises:
            EncodeError: Encoding failed
            PsdExportError: PSD could not be produced
        """
        fmt = self._resolve(target)

        if isinstance(decoded, (DecodedBuffer, DecodedFile)):
            if decoded.encoded and fmt is not None and decoded.container == fmt.container:
                return decoded.read_bytes()
            if fmt is TargetFormat.PSD:
                return self.to_psd(decoded, availability, temp_dir)
            img = open_image(decoded)
        else:
            img = decoded
            if fmt is TargetFormat.PSD:
                return self.to_psd(img, availability, temp_dir)

        try:
            match fmt:
                case TargetFormat.PNG:
                    return self._save(
                        img, "PNG", compress_level=self.config.png_compress_level, optimize=True
                    )
                case TargetFormat.WEBP:
                    return self._save(
                        img,
                        "WEBP",
                        quality=self.config.webp_quality,
                        method=self.config.webp_method,
                    )
                case TargetFormat.TIFF:
                    return self._encode_tiff(img, raw_source)
                case TargetFormat.SVG:
                    return self._encode_svg(img)
                case _:
                    return self.encode_jpeg(img)
        except EncodeError:
            raise
        except (OSError, ValueError, KeyError) as e:
            raise EncodeError(Path("<image>"), f"{target} encoding failed: {e}", cause=e) from e

    def encode_jpeg(self, img: Image.Image, quality: int | None = None) -> bytes:
        """Progressive JPEG with transparency flattened onto white."""
        return self._save(
            flatten(img),
            "JPEG",
            quality=quality or self.config.jpeg_quality,
            progressive=True,
            optimize=True,
        )

    def to_psd(
        self,
        source: Decoded | Image.Image,
        availability: ToolAvailability | None,
        temp_dir: Path | None = None,
    ) -> bytes:
        """Write an 8-bit flattened PSD through ImageMagick.

        Raises:
            PsdExportError: Toolkit absent, non-zero exit or no output
        """
        label = source.path if isinstance(source, DecodedFile) else Path("<image>")
        if availability is None or not availability.magick:
            raise PsdExportError(label, "ImageMagick not available")

        magick = availability.command("magick")
        with temporary_directory(parent=temp_dir, prefix=".psd-") as tmp:
            if isinstance(source, DecodedFile) and source.container in _PSD_SOURCE_CONTAINERS:
                intermediate = source.path
            else:
                img = source if isinstance(source, Image.Image) else open_image(source)
                intermediate = tmp / "intermediate.tiff"
                try:
                    flatten(img).save(intermediate, format="TIFF", compression="tiff_lzw")
                except (OSError, ValueError) as e:
                    raise PsdExportError(
                        label, f"cannot write PSD intermediate: {e}", cause=e
                    ) from e

            output = tmp / "output.psd"
            args = [
                magick,
                str(intermediate),
                "-alpha",
                "off",
                "-depth",
                "8",
                "-compress",
                "Zip",
                "-strip",
                "-flatten",
                str(output),
            ]
            try:
                result = self.runner.run(args, timeout=self.call_timeout)
            except subprocess.TimeoutExpired as e:
                raise PsdExportError(label, f"{magick} timed out", cause=e) from e
            except ProcessCancelledError:
                raise
            except OSError as e:
                raise PsdExportError(label, f"could not start {magick}: {e}", cause=e) from e

            if not result.ok:
                raise PsdExportError(
                    label, f"{magick} exited with code {result.returncode}: {result.stderr_text()}"
                )
            if not output.is_file() or output.stat().st_size == 0:
                raise PsdExportError(label, f"{magick} did not create a PSD")
            return output.read_bytes()

    def _encode_tiff(self, img: Image.Image, raw_source: bool) -> bytes:
        if raw_source:
            # Decoded RAW: JPEG-in-TIFF without alpha
            return self._save(
                flatten(img), "TIFF", compression="jpeg", quality=self.config.raw_tiff_quality
            )
        if self.config.tiff_compression == "jpeg":
            return self._save(
                flatten(img), "TIFF", compression="jpeg", quality=self.config.jpeg_quality
            )
        if img.mode not in ("1", "L", "LA", "RGB", "RGBA", "P"):
            img = img.convert("RGBA" if _has_alpha(img) else "RGB")
        return self._save(img, "TIFF", compression="tiff_lzw")

    def _encode_svg(self, img: Image.Image) -> bytes:
        """Embed a PNG rendition in a minimal SVG document."""
        if img.mode not in ("1", "L", "LA", "RGB", "RGBA", "P"):
            img = img.convert("RGBA" if _has_alpha(img) else "RGB")
        png = self._save(img, "PNG", compress_level=self.config.png_compress_level)
        width, height = img.size
        svg = _SVG_TEMPLATE.format(
            width=width, height=height, data=base64.b64encode(png).decode("ascii")
        )
        return svg.encode("utf-8")

    @staticmethod
    def _save(img: Image.Image, pil_format: str, **params) -> bytes:
        if pil_format in ("PNG", "WEBP") and img.mode not in ("1", "L", "LA", "RGB", "RGBA", "P"):
            img = img.convert("RGBA" if _has_alpha(img) else "RGB")
        buffer = io.BytesIO()
        img.save(buffer, format=pil_format, **params)
        data = buffer.getvalue()
        if not data:
            raise EncodeError(Path("<image>"), f"{pil_format} encoder produced no data")
        return data

    @staticmethod
    def _resolve(target: TargetFormat | str) -> TargetFormat | None:
        if isinstance(target, TargetFormat):
            return target
        try:
            return TargetFormat.parse(target)
        except InputError:
            log.debug("Unknown target format, using JPEG", target=target)
            return None
