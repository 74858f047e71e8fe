"""Run-job command: execute a job descriptor handed over by a dispatcher."""

import json
from pathlib import Path
from typing import Annotated

import typer

from imgconv.cli.callbacks import validate_input_file
from imgconv.core.models import JobDescriptor
from imgconv.core.pipeline import BatchOrchestrator
from imgconv.exceptions import InputError
from imgconv.utils.logging import get_console, get_logger, setup_logging

console = get_console()
log = get_logger(__name__)


def run_job(
    descriptor: Annotated[
        Path,
        typer.Argument(
            help="JSON job descriptor: {jobId, workDir, files, outputFormat}.",
            callback=validate_input_file,
        ),
    ],
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            help="Log level for stderr output.",
        ),
    ] = "WARNING",
    json_logs: Annotated[
        bool,
        typer.Option(
            "--json-logs",
            help="Write logs to stderr as JSON lines.",
        ),
    ] = False,
) -> None:
    """Run one job and print its result descriptor as JSON on stdout.

    The exit code is 1 when the batch failed; individual files that could
    not be converted still count as a successful batch.
    """
    setup_logging(level=log_level, json_format=json_logs)

    try:
        job = JobDescriptor.from_json_file(descriptor)
    except InputError as e:
        typer.echo(json.dumps({"success": False, "error": str(e)}))
        raise typer.Exit(1) from e

    result = BatchOrchestrator().run_sync(job)
    typer.echo(json.dumps(result.to_dict(), ensure_ascii=False))

    if not result.success:
        raise typer.Exit(1)
