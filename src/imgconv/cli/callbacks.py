"""CLI callback functions."""

from pathlib import Path

import typer

from imgconv.core.models import TargetFormat
from imgconv.exceptions import InputError


def validate_output_dir(value: Path | None) -> Path | None:
    """Validate the output directory if given."""
    if value is None:
        return None

    if value.exists() and not value.is_dir():
        raise typer.BadParameter(f"Output path exists but is not a directory: {value}")

    return value


def validate_input_file(value: Path) -> Path:
    """Validate input file exists and is readable."""
    if not value.exists():
        raise typer.BadParameter(f"File not found: {value}")

    if not value.is_file():
        raise typer.BadParameter(f"Path is not a file: {value}")

    return value


def validate_input_files(value: list[Path]) -> list[Path]:
    """Validate every input file."""
    for path in value:
        validate_input_file(path)

    return value


def validate_target_format(value: str) -> str:
    """Validate the output format option and normalise its spelling."""
    try:
        return TargetFormat.parse(value).value
    except InputError as e:
        raise typer.BadParameter(str(e)) from e


def validate_work_dir(value: Path) -> Path:
    """Validate a job work directory exists."""
    if not value.is_dir():
        raise typer.BadParameter(f"Not a directory: {value}")

    return value
