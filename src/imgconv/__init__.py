"""imgconv - batch image conversion with RAW, HEIC and SVG support."""

__version__ = "0.3.0"
