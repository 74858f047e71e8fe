"""Diagnostic images written in place of files that failed to convert."""

import html
import re
import textwrap

from PIL import Image, ImageDraw, ImageFont

from imgconv.config.settings import PlaceholderConfig
from imgconv.core.models import TargetFormat
from imgconv.exceptions import InputError
from imgconv.image.encoder import ImageEncoder
from imgconv.utils.logging import get_logger

log = get_logger(__name__)

BACKGROUND = "#111827"
TITLE_COLOR = "#ef4444"
NAME_COLOR = "#e5e7eb"
MESSAGE_COLOR = "#9ca3af"
TITLE = "Conversion failed"

_SVG_CANVAS = """<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}">
  <rect width="100%" height="100%" fill="{background}"/>
  <text x="50%" y="40%" dominant-baseline="middle" text-anchor="middle" fill="{title_color}" font-family="Arial" font-size="42">{title}</text>
  <text x="50%" y="55%" dominant-baseline="middle" text-anchor="middle" fill="{name_color}" font-family="Arial" font-size="24">{name}</text>
  <text x="50%" y="65%" dominant-baseline="middle" text-anchor="middle" fill="{message_color}" font-family="Arial" font-size="20">{message}</text>
</svg>
"""

_WHITESPACE = re.compile(r"\s+")


def _font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


class PlaceholderGenerator:
    """Builds the "Conversion failed" canvas for any target format.

    SVG targets get the canvas document itself. Raster targets get the same
    layout drawn with Pillow. PSD targets get a PNG so the caller can run it
    through the PSD writer.
    """

    def __init__(
        self,
        config: PlaceholderConfig | None = None,
        encoder: ImageEncoder | None = None,
    ) -> None:
        self.config = config or PlaceholderConfig()
        self.encoder = encoder or ImageEncoder()

    def clean_message(self, message: str) -> str:
        """Single-line message clipped to ``max_message_length``."""
        text = _WHITESPACE.sub(" ", str(message)).strip() or "Unknown error"
        limit = self.config.max_message_length
        if len(text) > limit:
            text = text[: limit - 3].rstrip() + "..."
        return text

    def svg(self, original_name: str, message: str) -> str:
        """The canvas as an SVG document with escaped text."""
        return _SVG_CANVAS.format(
            width=self.config.width,
            height=self.config.height,
            background=BACKGROUND,
            title_color=TITLE_COLOR,
            name_color=NAME_COLOR,
            message_color=MESSAGE_COLOR,
            title=TITLE,
            name=html.escape(original_name, quote=True),
            message=html.escape(self.clean_message(message), quote=True),
        )

    def render(self, original_name: str, message: str) -> Image.Image:
        """Draw the canvas layout as an RGB image."""
        width, height = self.config.width, self.config.height
        img = Image.new("RGB", (width, height), BACKGROUND)
        draw = ImageDraw.Draw(img)

        self._centered(draw, TITLE, 0.40, _font(42), TITLE_COLOR)
        self._centered(draw, original_name, 0.55, _font(24), NAME_COLOR)

        # Long messages wrap onto extra lines below the 65% mark
        message_font = _font(20)
        line_height = 26
        for index, line in enumerate(textwrap.wrap(self.clean_message(message), width=90)):
            self._centered(
                draw, line, 0.65, message_font, MESSAGE_COLOR, offset=index * line_height
            )
        return img

    def _centered(
        self,
        draw: ImageDraw.ImageDraw,
        text: str,
        y_ratio: float,
        font: ImageFont.FreeTypeFont | ImageFont.ImageFont,
        fill: str,
        offset: int = 0,
    ) -> None:
        width, height = self.config.width, self.config.height
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        x = (width - (right - left)) / 2 - left
        y = height * y_ratio - (bottom - top) / 2 - top + offset
        draw.text((x, y), text, font=font, fill=fill)

    def make(self, target: TargetFormat | str, original_name: str, message: str) -> bytes:
        """Encode the placeholder for ``target``. Never returns empty bytes."""
        fmt = target if isinstance(target, TargetFormat) else self._parse(target)
        log.debug("Rendering placeholder", target=str(target), file=original_name)

        if fmt is TargetFormat.SVG:
            return self.svg(original_name, message).encode("utf-8")

        img = self.render(original_name, message)
        if fmt is not None and fmt.is_jpeg:
            return self.encoder.encode_jpeg(img, quality=self.config.jpeg_quality)
        if fmt in (TargetFormat.TIFF, TargetFormat.WEBP):
            return self.encoder.encode(img, fmt)
        # PNG, PSD (PNG handed to the PSD writer) and anything unknown
        return self.encoder.encode(img, TargetFormat.PNG)

    @staticmethod
    def _parse(target: str) -> TargetFormat | None:
        try:
            return TargetFormat.parse(target)
        except InputError:
            return None
