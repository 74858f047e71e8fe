"""Per-file conversion: classify, decode, encode, write.

Every input yields exactly one output file. When anything goes wrong the
output is a placeholder image describing the failure, so the archive always
has one entry per input.
"""

from enum import Enum
from pathlib import Path

from imgconv.config.settings import ImgconvSettings, get_settings
from imgconv.core.models import ConversionResult, InputFile, TargetFormat
from imgconv.core.router import FormatClass, classify
from imgconv.core.state import ProgressStore
from imgconv.decoders.base import Decoded, DecodedBuffer, DecodedFile, DecodeFailure
from imgconv.decoders.chain import RawDecodeChain
from imgconv.decoders.heic import HeicDecoder
from imgconv.decoders.svg import SvgDecoder
from imgconv.exceptions import (
    ConversionError,
    EncodeError,
    FallbackExhaustedError,
    ProcessCancelledError,
    PsdExportError,
    ToolUnavailableError,
)
from imgconv.image.encoder import ImageEncoder
from imgconv.image.placeholder import PlaceholderGenerator
from imgconv.tools.availability import ToolAvailability
from imgconv.utils.fs import atomic_write, output_name, unlink_quietly
from imgconv.utils.logging import get_logger, job_context
from imgconv.utils.process import ProcessRunner

log = get_logger(__name__)

PSD_FAILED_MESSAGE = "PSD export failed"


class FileState(str, Enum):
    PENDING = "pending"
    CLASSIFYING = "classifying"
    DECODING = "decoding"
    ENCODING = "encoding"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


def failure_message(error: Exception, availability: ToolAvailability | None = None) -> str:
    """Short human-readable reason used as placeholder text."""
    if isinstance(error, FallbackExhaustedError):
        errors = error.errors
        if errors and all(isinstance(e, ToolUnavailableError) for e in errors):
            summary = availability.summary() if availability else "none"
            return f"RAW tools unavailable: {summary}"
        last = errors[-1] if errors else error
        message = last.message if isinstance(last, ConversionError) else str(last)
        if availability is not None:
            return f"{message} (tools: {availability.summary()})"
        return message
    if isinstance(error, ConversionError):
        return error.message
    return f"{type(error).__name__}: {error}"


class FileProcessor:
    """Converts one input file and records its progress.

    Safe to call from several worker threads at once: shared collaborators
    are stateless apart from the ProgressStore, which locks internally.
    """

    def __init__(
        self,
        settings: ImgconvSettings | None = None,
        runner: ProcessRunner | None = None,
        progress: ProgressStore | None = None,
        encoder: ImageEncoder | None = None,
        placeholder: PlaceholderGenerator | None = None,
        raw_chain: RawDecodeChain | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.runner = runner or ProcessRunner()
        self.progress = progress
        self.encoder = encoder or ImageEncoder(
            self.settings.encoding, self.runner, call_timeout=self.settings.tools.call_timeout
        )
        self.placeholder = placeholder or PlaceholderGenerator(
            self.settings.placeholder, self.encoder
        )
        self.raw_chain = raw_chain or RawDecodeChain(
            self.encoder,
            self.runner,
            engine_order=self.settings.decode.raw_engine_order,
            small_result_threshold=self.settings.decode.small_result_threshold,
            call_timeout=self.settings.tools.call_timeout,
            raw_tiff_quality=self.settings.encoding.raw_tiff_quality,
        )
        self.heic = HeicDecoder(quality=self.settings.encoding.heic_quality)
        self.svg = SvgDecoder()

    def process(
        self,
        input_file: InputFile,
        target: TargetFormat,
        work_dir: Path,
        availability: ToolAvailability,
        filename: str | None = None,
    ) -> ConversionResult:
        """Convert ``input_file`` into ``work_dir/<stem>.<target>``.

        Args:
            input_file: File to convert (deleted afterwards)
            target: Output format
            work_dir: Job work directory
            availability: Tool snapshot for this job
            filename: Output file name, if the caller already assigned one

        Returns:
            ConversionResult; ``error`` is set when a placeholder was written

        Raises:
            ProcessCancelledError: The batch was cancelled
        """
        filename = filename or output_name(input_file.original_name, target.extension)
        output_path = work_dir / filename
        state = FileState.PENDING
        error: str | None = None
        cancelled = False

        def advance(new_state: FileState) -> None:
            nonlocal state
            log.debug("File state", transition=f"{state.value} -> {new_state.value}")
            state = new_state

        with job_context(file=input_file.original_name):
            try:
                try:
                    self._check_cancelled()
                    data = self._convert(input_file, target, work_dir, availability, advance)
                    self._check_cancelled()
                    advance(FileState.WRITING)
                    self._write(output_path, data)
                    advance(FileState.DONE)
                except ProcessCancelledError:
                    raise
                except PsdExportError as e:
                    error = f"{PSD_FAILED_MESSAGE}: {e.message}"
                    log.error(
                        "PSD export failed",
                        error=e.message,
                        availability=availability.summary(),
                    )
                    self._write_placeholder(
                        output_path, TargetFormat.JPG, input_file.original_name, PSD_FAILED_MESSAGE
                    )
                    advance(FileState.FAILED)
                except Exception as e:
                    error = failure_message(e, availability)
                    log.error(
                        "Conversion failed, writing placeholder",
                        state=state.value,
                        error=error,
                        availability=availability.summary(),
                    )
                    self._placeholder_for(
                        output_path,
                        target,
                        input_file.original_name,
                        error,
                        availability,
                        work_dir,
                    )
                    advance(FileState.FAILED)
            except ProcessCancelledError:
                cancelled = True
                log.warning("File abandoned, batch cancelled", state=state.value)
                raise
            finally:
                unlink_quietly(input_file.path)
                if self.progress is not None and not (cancelled or self.runner.closed):
                    self.progress.increment()

            size = output_path.stat().st_size if output_path.exists() else 0
            if size == 0:
                log.critical("Output file is empty", output=filename)
            else:
                event = "File converted" if error is None else "Placeholder written"
                log.info(event, output=filename, size=size)

        return ConversionResult(filename=filename, size=size, error=error)

    def _convert(
        self,
        input_file: InputFile,
        target: TargetFormat,
        work_dir: Path,
        availability: ToolAvailability,
        advance,
    ) -> bytes:
        advance(FileState.CLASSIFYING)
        format_class = classify(input_file.original_name)
        path = input_file.path
        if not path.is_file():
            raise ConversionError(path, "input file is missing")

        advance(FileState.DECODING)
        log.debug("Decoding", format=format_class.value, target=target.value)

        if format_class is FormatClass.RAW:
            with self.raw_chain.decode(path, target, availability, work_dir) as outcome:
                match outcome:
                    case DecodeFailure(error=failure):
                        raise failure
                    case DecodedBuffer() | DecodedFile():
                        advance(FileState.ENCODING)
                        return self._encode(
                            outcome, target, availability, work_dir, raw_source=True
                        )

        if format_class is FormatClass.HEIC:
            decoded: Decoded = self.heic.decode(path, target)
        elif format_class is FormatClass.SVG:
            decoded = self.svg.decode(path, target)
        else:
            # Standard raster: Pillow identifies the file itself
            decoded = DecodedFile(path=path, strategy="pillow", container="source")

        advance(FileState.ENCODING)
        return self._encode(decoded, target, availability, work_dir)

    def _encode(
        self,
        decoded: Decoded,
        target: TargetFormat,
        availability: ToolAvailability,
        work_dir: Path,
        raw_source: bool = False,
    ) -> bytes:
        return self.encoder.encode(
            decoded, target, raw_source=raw_source, availability=availability, temp_dir=work_dir
        )

    def _check_cancelled(self) -> None:
        # The work dir may already be gone; writing would recreate it
        if self.runner.closed:
            raise ProcessCancelledError("Batch cancelled")

    def _write(self, output_path: Path, data: bytes) -> None:
        with atomic_write(output_path, "wb", create_parents=False) as f:
            f.write(data)

    def _write_placeholder(
        self, output_path: Path, target: TargetFormat, original_name: str, message: str
    ) -> None:
        try:
            data = self.placeholder.make(target, original_name, message)
            self._check_cancelled()
            self._write(output_path, data)
        except (OSError, EncodeError) as e:
            log.error("Cannot write placeholder", output=output_path.name, error=str(e))

    def _placeholder_for(
        self,
        output_path: Path,
        target: TargetFormat,
        original_name: str,
        message: str,
        availability: ToolAvailability,
        work_dir: Path,
    ) -> None:
        if target is not TargetFormat.PSD:
            self._write_placeholder(output_path, target, original_name, message)
            return

        # PSD placeholders go through the PSD writer like any other image
        png = self.placeholder.make(TargetFormat.PSD, original_name, message)
        try:
            psd = self.encoder.encode(
                DecodedBuffer(data=png, strategy="placeholder", container="png"),
                TargetFormat.PSD,
                availability=availability,
                temp_dir=work_dir,
            )
        except PsdExportError as e:
            log.warning("PSD placeholder export failed", error=e.message)
            self._write_placeholder(
                output_path, TargetFormat.JPG, original_name, PSD_FAILED_MESSAGE
            )
            return
        self._check_cancelled()
        try:
            self._write(output_path, psd)
        except OSError as e:
            log.error("Cannot write placeholder", output=output_path.name, error=str(e))
