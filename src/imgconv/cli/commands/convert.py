"""Convert command: the interactive front end for one conversion job."""

import shutil
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from imgconv.cli.callbacks import (
    validate_input_files,
    validate_output_dir,
    validate_target_format,
)
from imgconv.config import get_settings
from imgconv.config.settings import ImgconvSettings
from imgconv.core.jobs import create_job_dir
from imgconv.core.models import ConversionResult, InputFile, JobDescriptor, JobResult, TargetFormat
from imgconv.core.pipeline import BatchOrchestrator
from imgconv.core.router import is_allowed
from imgconv.utils.fs import ensure_directory, format_size, remove_tree, safe_filename
from imgconv.utils.logging import get_console, get_logger, setup_task_logging

console = get_console()
log = get_logger(__name__)

INPUT_SUBDIR = "input"


def convert(
    files: Annotated[
        list[Path],
        typer.Argument(
            help="Images to convert.",
            callback=validate_input_files,
        ),
    ],
    to: Annotated[
        str,
        typer.Option(
            "--to",
            "-t",
            help="Output format: jpg, jpeg, png, webp, tiff, svg or psd.",
            callback=validate_target_format,
        ),
    ],
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Directory in which the job directory is created.",
            callback=validate_output_dir,
        ),
    ] = None,
    parallel: Annotated[
        bool,
        typer.Option(
            "--parallel",
            "-p",
            help="Convert files concurrently.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
) -> None:
    """Convert images and package the results into a ZIP archive.

    Examples:
        imgconv convert photo.cr2 scan.heic --to jpg
        imgconv convert *.png --to webp -o ./out --parallel
    """
    settings = get_settings()
    if parallel:
        settings = with_mode(settings, "parallel")

    task_id, log_path = setup_task_logging(settings.log_dir, "convert", verbose)
    log.debug("Convert task started", task_id=task_id, log_file=str(log_path))

    accepted = [f for f in files if is_allowed(f.name)]
    for skipped in sorted(set(files) - set(accepted)):
        console.print(f"[yellow]Skipping unsupported file:[/yellow] {skipped.name}")
    if not accepted:
        console.print("[red]Error:[/red] No supported images to convert")
        raise typer.Exit(1)

    work_root = output or settings.get_work_root()
    try:
        job_id, work_dir = create_job_dir(ensure_directory(work_root))
        job = JobDescriptor(
            job_id=job_id,
            work_dir=work_dir,
            files=stage_inputs(accepted, work_dir / INPUT_SUBDIR),
            output_format=TargetFormat.parse(to),
        )
    except OSError as e:
        console.print(f"[red]Error:[/red] Cannot prepare job directory: {e}")
        raise typer.Exit(1) from e

    console.print(
        f"[bold]Converting[/bold] {len(job.files)} file(s) to "
        f"[cyan]{job.output_format.value}[/cyan] ({settings.batch.mode})"
    )

    try:
        result = _run_with_progress(job, settings)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130) from None

    if not result.success:
        console.print(f"[red]Error:[/red] {result.error}")
        console.print(f"[dim]Log file: {log_path}[/dim]")
        raise typer.Exit(1)

    remove_tree(work_dir / INPUT_SUBDIR)
    _display_summary(result)
    console.print(f"\n[green]Archive:[/green] {result.archive_path}")


def with_mode(settings: ImgconvSettings, mode: str) -> ImgconvSettings:
    """Copy of ``settings`` with a different batch mode."""
    batch = settings.batch.model_copy(update={"mode": mode})
    return settings.model_copy(update={"batch": batch})


def stage_inputs(files: list[Path], input_dir: Path) -> tuple[InputFile, ...]:
    """Copy the user's files into the job, since processing deletes its inputs.

    Copies are prefixed with their position so two inputs with the same name
    from different directories do not overwrite each other.
    """
    ensure_directory(input_dir)
    staged: list[InputFile] = []
    for index, source in enumerate(files):
        dest = input_dir / f"{index:04d}-{safe_filename(source.name)}"
        shutil.copy2(source, dest)
        staged.append(
            InputFile(original_name=source.name, path=dest, size_bytes=dest.stat().st_size)
        )
    return tuple(staged)


def _run_with_progress(job: JobDescriptor, settings: ImgconvSettings) -> JobResult:
    """Run the job with a Rich progress bar."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("({task.completed}/{task.total})"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    ) as progress:
        task_id = progress.add_task("[cyan]Converting files...", total=len(job.files))

        def on_progress(result: ConversionResult) -> None:
            progress.advance(task_id)
            if result.error:
                progress.console.print(f"  [red]x[/red] {result.filename}")
                progress.console.print(f"    [dim]{result.error}[/dim]")

        orchestrator = BatchOrchestrator(settings, on_progress=on_progress)
        return orchestrator.run_sync(job)


def _display_summary(result: JobResult) -> None:
    """Display the converted files and totals."""
    console.print()

    table = Table(title="Conversion Summary")
    table.add_column("Output", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Status")

    for converted in result.converted_files:
        status = "[green]converted[/green]" if converted.success else "[red]placeholder[/red]"
        table.add_row(converted.filename, format_size(converted.size), status)

    console.print(table)

    total = len(result.converted_files)
    failed = result.failed_count
    console.print(
        f"Total: {total}  Converted: [green]{total - failed}[/green]  Failed: [red]{failed}[/red]"
    )
