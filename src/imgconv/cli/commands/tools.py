"""Tools command: show the external RAW tool availability snapshot."""

from typing import Annotated

import typer
from rich.table import Table

from imgconv.config import get_settings
from imgconv.tools.availability import probe
from imgconv.utils.logging import get_console

console = get_console()

_DESCRIPTIONS = {
    "dcraw_emu": "LibRaw emulator (RAW, first choice)",
    "dcraw": "dcraw (RAW fallback)",
    "vips": "libvips (RAW fallback, JPEG intermediate)",
    "magick": "ImageMagick (RAW to TIFF, PSD export)",
}


def tools(
    refresh: Annotated[
        bool,
        typer.Option(
            "--refresh",
            "-r",
            help="Probe again instead of using the cached snapshot.",
        ),
    ] = False,
) -> None:
    """Show which external tools imgconv can use."""
    settings = get_settings()
    availability = probe(
        refresh=refresh,
        ttl=settings.tools.cache_ttl,
        timeout=settings.tools.probe_timeout,
    )

    table = Table(title="External Tools", show_header=True, header_style="bold")
    table.add_column("Tool", style="cyan")
    table.add_column("Command")
    table.add_column("Status")
    table.add_column("Used for", style="dim")

    for key, description in _DESCRIPTIONS.items():
        present = availability.has(key)
        status = "[green]available[/green]" if present else "[red]missing[/red]"
        command = availability.command(key) if present else "-"
        table.add_row(key, command, status, description)

    console.print(table)
    console.print(f"[dim]Checked at {availability.checked_at}[/dim]")

    if not any(availability.has(key) for key in ("dcraw_emu", "dcraw", "vips", "magick")):
        console.print()
        console.print(
            "[yellow]No RAW tools found. RAW files will be replaced by placeholders.[/yellow]"
        )
