"""Config command for configuration management."""

from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.table import Table

from imgconv.config import get_settings
from imgconv.config import constants
from imgconv.config.constants import DEFAULT_CONFIG_FILE
from imgconv.utils.fs import format_size
from imgconv.utils.logging import get_console

# Create config sub-app
config_app = typer.Typer(help="Configuration management.")
console = get_console()


# Default configuration template - kept in sync with imgconv.example.yaml
DEFAULT_CONFIG_TEMPLATE = """# imgconv Configuration
# Every key can also be set with an IMGCONV_ environment variable,
# e.g. IMGCONV_BATCH__MODE=parallel

log_level: "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
log_dir: ".logs"

encoding:
  jpeg_quality: 90  # 1-100
  png_compress_level: 9  # 0-9
  webp_quality: 90
  webp_method: 6  # 0-6, higher = slower and smaller
  tiff_compression: "tiff_lzw"  # tiff_lzw, jpeg
  raw_tiff_quality: 92  # JPEG-in-TIFF quality for RAW inputs
  heic_quality: 90

tools:
  probe_timeout: 5  # Seconds per availability probe
  call_timeout: 120  # Seconds per external tool call
  cache_ttl: 60  # Seconds a probe result is reused

decode:
  raw_engine_order: ["libraw", "dcraw", "vips"]
  small_result_threshold: 16384  # Bytes; smaller RAW JPEGs are retried with vips

batch:
  mode: "sequential"  # sequential, parallel
  file_workers: 4  # Concurrent files in parallel mode
  timeout: 300  # Seconds for the whole batch
  archive_name: "converted_images.zip"
  progress_file: "progress.json"
  work_root: ".imgconv/jobs"

limits:
  raw_max_files: 10
  raw_max_file_size: 524288000  # 500 MiB
  max_file_size: 104857600  # 100 MiB

placeholder:
  width: 1200
  height: 800
  max_message_length: 160
  jpeg_quality: 85

retention:
  max_age: 900  # Seconds before a job directory is swept
"""


# Command order: init -> test -> list -> locations


@config_app.command("init")
def init(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Path to create config file.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing config file.",
        ),
    ] = False,
) -> None:
    """Initialize a configuration file."""
    config_path = path or Path.cwd() / DEFAULT_CONFIG_FILE

    if config_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists at {config_path}")
        console.print("Use --force to overwrite.")
        raise typer.Exit(1)

    config_path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    console.print(f"[green]Created config file at:[/green] {config_path}")


@config_app.command("test")
def test_config() -> None:
    """Test current configuration."""
    try:
        get_settings.cache_clear()
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print("\n[bold blue]Configuration Validation[/bold blue]\n")
    console.print(f"RAW engine order: {', '.join(settings.decode.raw_engine_order)}")
    console.print(f"Batch mode: {settings.batch.mode} ({settings.batch.file_workers} workers)")
    console.print()
    console.print("[green]Configuration is valid![/green]")


@config_app.command("list")
def list_config() -> None:
    """List current configuration."""
    settings = get_settings()

    console.print("\n[bold blue]Current Configuration[/bold blue]\n")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    # Global settings
    table.add_row("Log Level", settings.log_level)
    table.add_row("Log Directory", settings.log_dir)
    table.add_row("Work Root", settings.batch.work_root)

    # Encoding settings
    table.add_row("JPEG Quality", str(settings.encoding.jpeg_quality))
    table.add_row("WebP Quality", str(settings.encoding.webp_quality))
    table.add_row("TIFF Compression", settings.encoding.tiff_compression)
    table.add_row("RAW TIFF Quality", str(settings.encoding.raw_tiff_quality))

    # Decode settings
    table.add_row("RAW Engine Order", ", ".join(settings.decode.raw_engine_order))
    table.add_row("Small Result Threshold", format_size(settings.decode.small_result_threshold))

    # Batch settings
    table.add_row("Batch Mode", settings.batch.mode)
    table.add_row("File Workers", str(settings.batch.file_workers))
    table.add_row("Batch Timeout", f"{settings.batch.timeout:g}s")
    table.add_row("Tool Call Timeout", f"{settings.tools.call_timeout:g}s")

    # Limits
    table.add_row("RAW Files per Batch", str(settings.limits.raw_max_files))
    table.add_row("RAW File Size Limit", format_size(settings.limits.raw_max_file_size))
    table.add_row("File Size Limit", format_size(settings.limits.max_file_size))

    table.add_row("Job Retention", f"{settings.retention.max_age:g}s")

    console.print(table)
    console.print()


@config_app.command("locations")
def locations() -> None:
    """Show configuration file search locations."""
    console.print("\n[bold blue]Configuration File Locations[/bold blue]\n")
    console.print("imgconv searches for configuration files in the following order:\n")

    for i, loc in enumerate(constants.CONFIG_LOCATIONS, 1):
        exists = "[green]exists[/green]" if loc.exists() else "[dim]not found[/dim]"
        console.print(f"  {i}. {loc} ({exists})")

    console.print()
    console.print("[dim]Environment variables with IMGCONV_ prefix are also supported.[/dim]")
    console.print()
