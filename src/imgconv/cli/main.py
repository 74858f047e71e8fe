"""Main CLI application using Typer."""

from typing import Annotated

import typer
from dotenv import load_dotenv

from imgconv import __version__
from imgconv.cli.commands.cleanup import cleanup
from imgconv.cli.commands.config import config_app
from imgconv.cli.commands.convert import convert
from imgconv.cli.commands.progress import progress
from imgconv.cli.commands.run_job import run_job
from imgconv.cli.commands.tools import tools
from imgconv.utils.logging import get_console

# Load environment variables from .env file
load_dotenv()

# Create main Typer app
app = typer.Typer(
    name="imgconv",
    help="Batch image conversion with RAW, HEIC and SVG support.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = get_console()

# Register commands
app.command(name="convert", help="Convert images and package them into a ZIP archive.")(convert)
app.command(name="run-job", help="Run a job described by a JSON descriptor.")(run_job)
app.command(name="tools", help="Show which external RAW tools are available.")(tools)
app.command(name="progress", help="Show the progress record of a job.")(progress)
app.command(name="cleanup", help="Remove expired job directories.")(cleanup)
app.add_typer(config_app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]imgconv[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """imgconv - convert images between formats.

    Standard rasters, HEIC/HEIF, SVG and camera RAW files are converted to
    JPEG, PNG, WebP, TIFF, SVG or PSD. Files that cannot be converted are
    replaced by a placeholder image describing the failure.
    """
    pass


if __name__ == "__main__":
    app()
