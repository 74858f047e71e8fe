"""Image encoding and placeholder rendering for imgconv."""

from imgconv.image.encoder import ImageEncoder, flatten, open_image
from imgconv.image.placeholder import PlaceholderGenerator

__all__ = ["ImageEncoder", "PlaceholderGenerator", "flatten", "open_image"]
