"""Decoders for RAW, HEIC and SVG inputs."""

from imgconv.decoders.base import (
    DecodedBuffer,
    DecodedFile,
    DecodeFailure,
    DecodeOutcome,
    DecodeRequest,
    DecodeStrategy,
)

__all__ = [
    "DecodedBuffer",
    "DecodedFile",
    "DecodeFailure",
    "DecodeOutcome",
    "DecodeRequest",
    "DecodeStrategy",
]
