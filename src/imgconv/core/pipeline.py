"""Batch orchestration.

This module provides the BatchOrchestrator that runs one conversion job:
validate the descriptor, convert every file (sequentially or with a bounded
parallel map), assemble the archive and report a JobResult. Batch-level
failures remove the work directory and are reported as ``success: false``.
"""

from collections.abc import Callable
from functools import partial
from pathlib import Path

import anyio

from imgconv.config.settings import ImgconvSettings, get_settings
from imgconv.core.archive import build_archive
from imgconv.core.models import (
    ConversionResult,
    InputFile,
    JobDescriptor,
    JobResult,
    TargetFormat,
)
from imgconv.core.processor import FileProcessor
from imgconv.core.router import is_raw
from imgconv.core.state import ProgressStore
from imgconv.exceptions import BatchTimeoutError, ImgconvError, InputError
from imgconv.tools.availability import ToolAvailability, probe
from imgconv.utils.concurrency import ConcurrencyManager
from imgconv.utils.fs import ensure_directory, format_size, output_name, remove_tree
from imgconv.utils.logging import get_logger, job_context
from imgconv.utils.process import ProcessRunner

log = get_logger(__name__)

ProgressCallback = Callable[[ConversionResult], None]


def assign_output_names(
    files: tuple[InputFile, ...] | list[InputFile], target: TargetFormat
) -> list[str]:
    """Output file names in input order, made unique with a counter suffix.

    Examples:
        ``a.png, a.heic -> a.webp, a_1.webp``
    """
    taken: set[str] = set()
    names: list[str] = []
    for input_file in files:
        name = output_name(input_file.original_name, target.extension)
        stem, _, ext = name.rpartition(".")
        counter = 1
        while name.lower() in taken:
            name = f"{stem}_{counter}.{ext}"
            counter += 1
        taken.add(name.lower())
        names.append(name)
    return names


class BatchOrchestrator:
    """Runs conversion jobs.

    Blocking per-file work runs in worker threads. The whole batch shares
    one ProcessRunner, so a batch timeout can kill every external tool that
    is still running.
    """

    def __init__(
        self,
        settings: ImgconvSettings | None = None,
        availability: ToolAvailability | None = None,
        on_progress: ProgressCallback | None = None,
        runner_factory: Callable[[], ProcessRunner] = ProcessRunner,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            settings: Settings (global settings if omitted)
            availability: Fixed tool snapshot; probed per job if omitted
            on_progress: Called on the event loop after each file
            runner_factory: Builds the per-job ProcessRunner
        """
        self.settings = settings or get_settings()
        self.availability = availability
        self.on_progress = on_progress
        self.runner_factory = runner_factory

    def run_sync(self, job: JobDescriptor) -> JobResult:
        """Run a job from synchronous code."""
        return anyio.run(self.run, job)

    async def run(self, job: JobDescriptor) -> JobResult:
        """Run a job to completion.

        Never raises for batch-level failures; they are returned as a failed
        JobResult after the work directory has been removed.
        """
        runner = self.runner_factory()
        timeout = self.settings.batch.timeout

        with job_context(job_id=job.job_id):
            log.info(
                "Job started",
                files=len(job.files),
                target=job.output_format.value,
                mode=self.settings.batch.mode,
            )
            try:
                with anyio.fail_after(timeout):
                    result = await self._run(job, runner)
            except TimeoutError:
                killed = runner.terminate_all()
                error = BatchTimeoutError(timeout)
                log.error("Job timed out", timeout=timeout, killed=killed)
                return self._fail(job, str(error))
            except (ImgconvError, OSError) as e:
                runner.terminate_all()
                log.error("Job failed", error=str(e), error_type=type(e).__name__)
                return self._fail(job, str(e))

            log.info(
                "Job completed",
                converted=len(result.converted_files),
                failed=result.failed_count,
                archive=str(result.archive_path),
            )
            return result

    async def _run(self, job: JobDescriptor, runner: ProcessRunner) -> JobResult:
        work_dir = job.work_dir
        self.validate(job)

        progress = ProgressStore(work_dir / self.settings.batch.progress_file)
        progress.create(job.job_id, total=len(job.files), status="processing")

        availability = self.availability or await anyio.to_thread.run_sync(
            partial(
                probe,
                ttl=self.settings.tools.cache_ttl,
                timeout=self.settings.tools.probe_timeout,
            )
        )

        processor = FileProcessor(self.settings, runner=runner, progress=progress)
        names = assign_output_names(job.files, job.output_format)
        results: list[ConversionResult | None] = [None] * len(job.files)

        async def convert(index: int) -> ConversionResult:
            task = partial(
                processor.process,
                job.files[index],
                job.output_format,
                work_dir,
                availability,
                names[index],
            )
            result = await anyio.to_thread.run_sync(task, abandon_on_cancel=True)
            results[index] = result
            if self.on_progress:
                self.on_progress(result)
            return result

        if self.settings.batch.mode == "parallel":
            manager = ConcurrencyManager(file_workers=self.settings.batch.file_workers)
            task_results = await manager.map_file_tasks(list(range(len(job.files))), convert)
            failures = [r for r in task_results if not r.success]
            if failures:
                raise ImgconvError(f"File task crashed: {failures[0].error}")
        else:
            for index in range(len(job.files)):
                await convert(index)

        converted = [r for r in results if r is not None]
        outputs = [work_dir / r.filename for r in converted if (work_dir / r.filename).exists()]
        archive_path = await anyio.to_thread.run_sync(
            build_archive, outputs, work_dir / self.settings.batch.archive_name
        )

        progress.set_status("done")
        return JobResult.ok(converted, archive_path)

    def validate(self, job: JobDescriptor) -> None:
        """Check the descriptor before any work starts.

        Raises:
            InputError: Missing inputs, limits exceeded, or unusable work dir
        """
        if not job.files:
            raise InputError("No files to convert")

        try:
            ensure_directory(job.work_dir)
        except OSError as e:
            raise InputError(f"Cannot create work directory {job.work_dir}: {e}") from e

        limits = self.settings.limits
        raw_count = 0
        for input_file in job.files:
            path = Path(input_file.path)
            if not path.is_file():
                raise InputError(f"Input file missing: {input_file.original_name}")
            size = path.stat().st_size
            if is_raw(input_file.original_name):
                raw_count += 1
                if size > limits.raw_max_file_size:
                    raise InputError(
                        f"RAW file too large: {input_file.original_name} ({format_size(size)}, "
                        f"limit {format_size(limits.raw_max_file_size)})"
                    )
            elif size > limits.max_file_size:
                raise InputError(
                    f"File too large: {input_file.original_name} ({format_size(size)}, "
                    f"limit {format_size(limits.max_file_size)})"
                )

        if raw_count > limits.raw_max_files:
            raise InputError(
                f"Too many RAW files: {raw_count} (limit {limits.raw_max_files} per batch)"
            )

    def _fail(self, job: JobDescriptor, error: str) -> JobResult:
        remove_tree(job.work_dir)
        return JobResult.failed(error)
