"""Ordered fallback chain over the RAW decode strategies."""

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from imgconv.config.constants import (
    DEFAULT_CALL_TIMEOUT,
    DEFAULT_RAW_TIFF_QUALITY,
    DEFAULT_SMALL_RESULT_THRESHOLD,
    RAW_ENGINES,
)
from imgconv.core.models import TargetFormat
from imgconv.decoders.base import (
    Decoded,
    DecodedBuffer,
    DecodedFile,
    DecodeFailure,
    DecodeOutcome,
    DecodeRequest,
    DecodeStrategy,
)
from imgconv.decoders.raw import ENGINE_STRATEGIES, MagickTiffStrategy, VipsStrategy
from imgconv.exceptions import (
    ConfigurationError,
    EncodeError,
    FallbackExhaustedError,
    StrategyError,
    ToolUnavailableError,
)
from imgconv.image.encoder import ImageEncoder
from imgconv.tools.availability import ToolAvailability
from imgconv.utils.fs import temporary_directory
from imgconv.utils.logging import get_logger, job_context
from imgconv.utils.process import ProcessRunner

log = get_logger(__name__)

Finisher = Callable[[Decoded, DecodeStrategy], Decoded]


class RawDecodeChain:
    """Tries RAW decoders in order until one produces an image.

    The order depends on the target:

    - TIFF: engine order, then ImageMagick straight to TIFF
    - PSD: same as TIFF, then a quality 92 JPEG from libvips
    - JPEG: engine order, each result encoded to JPEG at once; a suspiciously
      small JPEG gets one more try with libvips and the larger one is kept
    - everything else: engine order, re-encoded later by the encoder
    """

    def __init__(
        self,
        encoder: ImageEncoder,
        runner: ProcessRunner,
        engine_order: Sequence[str] = RAW_ENGINES,
        small_result_threshold: int = DEFAULT_SMALL_RESULT_THRESHOLD,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        raw_tiff_quality: int = DEFAULT_RAW_TIFF_QUALITY,
    ) -> None:
        unknown = [name for name in engine_order if name not in ENGINE_STRATEGIES]
        if unknown:
            raise ConfigurationError(f"Unknown RAW engines: {unknown}")
        self.encoder = encoder
        self.runner = runner
        self.engine_order = list(engine_order)
        self.small_result_threshold = small_result_threshold
        self.call_timeout = call_timeout
        self.raw_tiff_quality = raw_tiff_quality

    def _engine(self, name: str, target: TargetFormat) -> DecodeStrategy:
        if name == "vips" and target.is_jpeg:
            return VipsStrategy(jpeg_quality=self.encoder.config.jpeg_quality)
        return ENGINE_STRATEGIES[name]()

    def strategies_for(self, target: TargetFormat) -> list[DecodeStrategy]:
        """Strategies tried for ``target``, in order (PSD fallback excluded)."""
        strategies = [self._engine(name, target) for name in self.engine_order]
        if target in (TargetFormat.TIFF, TargetFormat.PSD):
            strategies.append(MagickTiffStrategy(quality=self.raw_tiff_quality))
        return strategies

    @contextmanager
    def decode(
        self,
        input_path: Path,
        target: TargetFormat,
        availability: ToolAvailability,
        work_dir: Path,
    ) -> Iterator[DecodeOutcome]:
        """Decode a RAW file.

        Intermediate files live in a scratch directory under ``work_dir``
        that is removed when the block exits, so a DecodedFile outcome must
        be consumed inside it.

        Yields:
            DecodedBuffer, DecodedFile or DecodeFailure
        """
        with temporary_directory(parent=work_dir, prefix=".decode-") as temp_dir:
            yield self._decode(input_path, target, availability, temp_dir)

    def _decode(
        self,
        input_path: Path,
        target: TargetFormat,
        availability: ToolAvailability,
        temp_dir: Path,
    ) -> DecodeOutcome:
        errors: list[Exception] = []
        finish = self._jpeg_finisher(target) if target.is_jpeg else None

        outcome = self._first_success(
            self.strategies_for(target), input_path, target, availability, temp_dir, errors, finish
        )

        if outcome is None and target is TargetFormat.PSD:
            log.info("TIFF chain failed for PSD, trying JPEG intermediate")
            outcome = self._first_success(
                [VipsStrategy(jpeg_quality=self.raw_tiff_quality)],
                input_path,
                target,
                availability,
                temp_dir,
                errors,
            )

        if (
            isinstance(outcome, DecodedBuffer)
            and target.is_jpeg
            and len(outcome.data) < self.small_result_threshold
        ):
            outcome = self._retry_small(outcome, input_path, target, availability, temp_dir, errors)

        if outcome is None:
            error = FallbackExhaustedError(input_path, errors)
            log.error(
                "All RAW decoders failed",
                target=target.value,
                attempts=len(errors),
                availability=availability.summary(),
            )
            return DecodeFailure(error=error, errors=errors, availability=availability)

        log.info("RAW decoded", strategy=outcome.strategy, container=outcome.container)
        return outcome

    def _first_success(
        self,
        strategies: Sequence[DecodeStrategy],
        input_path: Path,
        target: TargetFormat,
        availability: ToolAvailability,
        temp_dir: Path,
        errors: list[Exception],
        finish: Finisher | None = None,
    ) -> Decoded | None:
        """Run strategies in order and return the first result.

        Absent tools are skipped without spawning. Every failure is appended
        to ``errors``. Cancellation is not a strategy failure and propagates.
        """
        for strategy in strategies:
            with job_context(strategy=strategy.name):
                if not availability.has(strategy.tool):
                    errors.append(ToolUnavailableError(input_path, strategy.name, strategy.tool))
                    log.debug("Skipping strategy, tool not available", tool=strategy.tool)
                    continue

                attempt_dir = temp_dir / f"{len(errors):02d}-{strategy.name}"
                attempt_dir.mkdir(exist_ok=True)
                request = DecodeRequest(
                    input_path=input_path,
                    target=target,
                    temp_dir=attempt_dir,
                    availability=availability,
                    runner=self.runner,
                    timeout=self.call_timeout,
                )
                try:
                    decoded: Decoded = strategy.run(request)
                    if finish is not None:
                        decoded = finish(decoded, strategy)
                except StrategyError as e:
                    errors.append(e)
                    log.warning("Decode strategy failed", error=e.message)
                    continue

                log.debug("Decode strategy succeeded", container=decoded.container)
                return decoded
        return None

    def _jpeg_finisher(self, target: TargetFormat) -> Finisher:
        def finish(decoded: Decoded, strategy: DecodeStrategy) -> Decoded:
            if decoded.encoded:
                data = decoded.read_bytes()
            else:
                try:
                    data = self.encoder.encode(decoded, target, raw_source=True)
                except EncodeError as e:
                    raise StrategyError(
                        decoded.path if isinstance(decoded, DecodedFile) else Path(strategy.name),
                        strategy.name,
                        f"JPEG encoding failed: {e.message}",
                        cause=e,
                    ) from e
            return DecodedBuffer(data=data, strategy=strategy.name, container="jpeg", encoded=True)

        return finish

    def _retry_small(
        self,
        outcome: DecodedBuffer,
        input_path: Path,
        target: TargetFormat,
        availability: ToolAvailability,
        temp_dir: Path,
        errors: list[Exception],
    ) -> DecodedBuffer:
        """Second opinion from libvips for a JPEG below the size threshold."""
        if outcome.strategy == "vips" or not availability.vips:
            log.warning(
                "Small JPEG result kept",
                strategy=outcome.strategy,
                size=len(outcome.data),
                threshold=self.small_result_threshold,
            )
            return outcome

        log.info(
            "Small JPEG result, retrying with vips",
            strategy=outcome.strategy,
            size=len(outcome.data),
        )
        retry_errors: list[Exception] = []
        alternative = self._first_success(
            [VipsStrategy(jpeg_quality=self.encoder.config.jpeg_quality)],
            input_path,
            target,
            availability,
            temp_dir,
            retry_errors,
            self._jpeg_finisher(target),
        )
        errors.extend(retry_errors)
        if isinstance(alternative, DecodedBuffer) and len(alternative.data) > len(outcome.data):
            return alternative
        return outcome
