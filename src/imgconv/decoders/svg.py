"""SVG handling: passthrough for SVG targets, cairosvg rasterisation otherwise."""

from pathlib import Path

from imgconv.core.models import TargetFormat
from imgconv.decoders.base import DecodedBuffer
from imgconv.exceptions import ConversionError
from imgconv.utils.logging import get_logger

log = get_logger(__name__)


class SvgDecoder:
    name = "svg"

    def decode(self, input_path: Path, target: TargetFormat) -> DecodedBuffer:
        """Return the SVG bytes unchanged, or a PNG rendering of them.

        Raises:
            ConversionError: The file cannot be read or rendered
        """
        try:
            source = input_path.read_bytes()
        except OSError as e:
            raise ConversionError(input_path, f"cannot read SVG: {e}", cause=e) from e

        if target is TargetFormat.SVG:
            return DecodedBuffer(data=source, strategy=self.name, container="svg", encoded=True)

        try:
            # Imported here: cairocffi loads libcairo at import time
            import cairosvg

            png = cairosvg.svg2png(bytestring=source)
        except Exception as e:
            # cairosvg surfaces loader, parser and cairo errors under many types
            raise ConversionError(input_path, f"SVG rasterisation failed: {e}", cause=e) from e
        if not png:
            raise ConversionError(input_path, "SVG rasterisation produced no data")

        log.debug("SVG rasterised", size=len(png))
        return DecodedBuffer(
            data=png,
            strategy=self.name,
            container="png",
            encoded=target is TargetFormat.PNG,
        )
