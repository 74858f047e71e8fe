"""Job descriptors and result types exchanged with the dispatcher."""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from imgconv.exceptions import InputError


class TargetFormat(str, Enum):
    """Requested output format.

    ``jpg`` and ``jpeg`` are kept apart so the user's spelling becomes the
    output extension.
    """

    JPG = "jpg"
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    TIFF = "tiff"
    SVG = "svg"
    PSD = "psd"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def is_jpeg(self) -> bool:
        return self in (TargetFormat.JPG, TargetFormat.JPEG)

    @property
    def container(self) -> str:
        """File container name, shared by both JPEG spellings."""
        return "jpeg" if self.is_jpeg else self.value

    @classmethod
    def parse(cls, value: "str | TargetFormat") -> "TargetFormat":
        """Parse ``"JPG"``, ``".png"`` and the like.

        Raises:
            InputError: Unsupported format
        """
        if isinstance(value, TargetFormat):
            return value
        normalized = str(value).strip().lower().lstrip(".")
        if normalized == "tif":
            normalized = "tiff"
        try:
            return cls(normalized)
        except ValueError:
            supported = ", ".join(f.value for f in cls)
            raise InputError(
                f"Unsupported output format: {value!r} (supported: {supported})"
            ) from None


class InputFile(BaseModel):
    """One uploaded file handed to the converter."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    original_name: str = Field(alias="originalName", min_length=1)
    path: Path
    size_bytes: int = Field(default=0, alias="sizeBytes", ge=0)


class JobDescriptor(BaseModel):
    """Everything the orchestrator needs to run one batch."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    job_id: str = Field(alias="jobId", min_length=1)
    work_dir: Path = Field(alias="workDir")
    files: tuple[InputFile, ...]
    output_format: TargetFormat = Field(alias="outputFormat")

    @field_validator("output_format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().lower().lstrip(".")
            return "tiff" if normalized == "tif" else normalized
        return value

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobDescriptor":
        """Validate a descriptor dict (wire or Python field names).

        Raises:
            InputError: The descriptor is invalid
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InputError(f"Invalid job descriptor: {e}") from e

    @classmethod
    def from_json_file(cls, path: Path) -> "JobDescriptor":
        """Load a descriptor from a JSON file.

        Raises:
            InputError: The file is unreadable or the descriptor is invalid
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise InputError(f"Cannot read job descriptor {path}: {e}") from e
        if not isinstance(data, dict):
            raise InputError(f"Job descriptor {path} must be a JSON object")
        return cls.from_dict(data)


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of converting one input file."""

    filename: str
    size: int
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"filename": self.filename, "size": self.size}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class JobResult:
    """Result descriptor returned to the dispatcher."""

    success: bool
    converted_files: list[ConversionResult] = field(default_factory=list)
    archive_path: Path | None = None
    error: str | None = None

    @classmethod
    def ok(cls, converted_files: list[ConversionResult], archive_path: Path) -> "JobResult":
        return cls(success=True, converted_files=converted_files, archive_path=archive_path)

    @classmethod
    def failed(cls, error: str) -> "JobResult":
        return cls(success=False, error=error)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.converted_files if not r.success)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "convertedFiles": [
                {"filename": r.filename, "size": r.size} for r in self.converted_files
            ],
            "archivePath": str(self.archive_path) if self.archive_path else None,
        }
