"""HEIC/HEIF decoding through pillow-heif."""

import io
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from imgconv.config.constants import DEFAULT_HEIC_QUALITY
from imgconv.core.models import TargetFormat
from imgconv.decoders.base import DecodedBuffer
from imgconv.exceptions import ConversionError
from imgconv.image.encoder import flatten
from imgconv.utils.logging import get_logger

register_heif_opener()

log = get_logger(__name__)


class HeicDecoder:
    """Decodes HEIC to one of two intermediates: JPEG (lossy) or PNG (lossless).

    PNG is used only when PNG is the target; every other target gets the
    JPEG intermediate and is re-encoded by the encoder.
    """

    name = "heic"

    def __init__(self, quality: int = DEFAULT_HEIC_QUALITY) -> None:
        self.quality = quality

    def decode(self, input_path: Path, target: TargetFormat) -> DecodedBuffer:
        """Decode ``input_path``.

        Raises:
            ConversionError: The file is not a readable HEIC image
        """
        try:
            with Image.open(input_path) as img:
                img.load()
                buffer = io.BytesIO()
                if target is TargetFormat.PNG:
                    container = "png"
                    img.save(buffer, format="PNG")
                else:
                    container = "jpeg"
                    flatten(img).save(buffer, format="JPEG", quality=self.quality)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ConversionError(input_path, f"HEIC decode failed: {e}", cause=e) from e

        data = buffer.getvalue()
        log.debug("HEIC decoded", container=container, size=len(data))
        return DecodedBuffer(
            data=data,
            strategy=self.name,
            container=container,
            encoded=container == target.container,
        )
