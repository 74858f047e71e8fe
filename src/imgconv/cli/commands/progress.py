"""Progress command: read a job's progress record."""

import json
from pathlib import Path
from typing import Annotated

import typer

from imgconv.cli.callbacks import validate_work_dir
from imgconv.config import get_settings
from imgconv.core.state import ProgressStore
from imgconv.exceptions import ProgressError
from imgconv.utils.logging import get_console

console = get_console()


def progress(
    work_dir: Annotated[
        Path,
        typer.Argument(
            help="Job work directory.",
            callback=validate_work_dir,
        ),
    ],
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Print the raw record as JSON.",
        ),
    ] = False,
) -> None:
    """Show how many files of a job are done."""
    progress_file = work_dir / get_settings().batch.progress_file

    try:
        record = ProgressStore.read(progress_file)
    except ProgressError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if as_json:
        typer.echo(json.dumps({**record.to_dict(), "percent": record.percent}))
        return

    color = "green" if record.status == "done" else "yellow"
    console.print(f"[bold]Job[/bold] {record.job_id}: [{color}]{record.status}[/{color}]")
    console.print(f"  {record.done}/{record.total} files ({record.percent}%)")
    console.print(f"  [dim]Updated {record.updated_at}[/dim]")
