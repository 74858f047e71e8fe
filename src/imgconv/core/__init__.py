"""Core conversion pipeline for imgconv."""

from imgconv.core.models import (
    ConversionResult,
    InputFile,
    JobDescriptor,
    JobResult,
    TargetFormat,
)
from imgconv.core.router import FormatClass, classify, is_allowed, is_raw
from imgconv.core.state import ProgressRecord, ProgressStore

__all__ = [
    # Models
    "ConversionResult",
    "InputFile",
    "JobDescriptor",
    "JobResult",
    "TargetFormat",
    # Router
    "FormatClass",
    "classify",
    "is_allowed",
    "is_raw",
    # State
    "ProgressRecord",
    "ProgressStore",
]
