"""Cleanup command: sweep expired job directories."""

from pathlib import Path
from typing import Annotated

import typer

from imgconv.config import get_settings
from imgconv.core.jobs import sweep_expired
from imgconv.utils.logging import get_console

console = get_console()


def cleanup(
    base_dir: Annotated[
        Path | None,
        typer.Argument(
            help="Directory holding job directories (default: configured work root).",
        ),
    ] = None,
    max_age: Annotated[
        float | None,
        typer.Option(
            "--max-age",
            help="Remove job directories older than this many seconds.",
            min=0,
        ),
    ] = None,
) -> None:
    """Remove job directories that have not been touched for a while."""
    settings = get_settings()
    base_dir = base_dir or settings.get_work_root()
    age = settings.retention.max_age if max_age is None else max_age

    if not base_dir.is_dir():
        console.print(f"[dim]Nothing to clean: {base_dir} does not exist[/dim]")
        return

    removed = sweep_expired(base_dir, max_age=age)

    if not removed:
        console.print(f"[dim]No job directories older than {age:g}s in {base_dir}[/dim]")
        return

    for path in removed:
        console.print(f"  [dim]-[/dim] {path.name}")
    console.print(f"[green]Removed {len(removed)} job director(ies)[/green]")
