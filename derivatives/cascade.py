"""
Progressive resize cascade.

Each target is resized from the previous target's output rather than
from the source image, so every pass works on a smaller image. Callers must
order targets from largest to smallest: a later, larger target is
upscaled from the smaller intermediate and comes out softer than a
resize from the source would.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from derivatives.buffer import PixelBuffer
from derivatives.encoder import ImageEncoder
from derivatives.errors import EncodeError, InvalidTargetError, ResizeError
from derivatives.fingerprint import Digest
from derivatives.resize import ResizeMode, resize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThumbTarget:
    """One derivative to produce: destination plus bounding box."""
    destination_path: Path
    width: int
    height: int
    crop_to_exact_ratio: bool = False

    def __post_init__(self):
        object.__setattr__(self, "destination_path", Path(self.destination_path))

    @property
    def mode(self) -> ResizeMode:
        if self.crop_to_exact_ratio:
            return ResizeMode.CROP_TO_EXACT_BOX
        return ResizeMode.FIT_WITHIN_BOUNDS

    def validate(self) -> None:
        """Raise InvalidTargetError if the box is empty."""
        if self.width <= 0 or self.height <= 0:
            raise InvalidTargetError(
                f"Invalid target size {self.width}x{self.height} "
                f"for {self.destination_path}"
            )


@dataclass(frozen=True)
class TargetFailure:
    """A target that was not written, and why."""
    target: ThumbTarget
    cause: Exception


@dataclass
class ProcessResult:
    """Outcome of fingerprinting and thumbnailing one source image."""
    fingerprint: Digest | None = None
    thumbs_written: bool = False
    written: list[ThumbTarget] = field(default_factory=list)
    failures: list[TargetFailure] = field(default_factory=list)
    processing_time: float = 0.0

    @property
    def fingerprint_hex(self) -> str | None:
        return self.fingerprint.hex() if self.fingerprint else None

    def record_success(self, target: ThumbTarget) -> None:
        self.written.append(target)
        self.thumbs_written = True

    def record_failure(self, target: ThumbTarget, cause: Exception) -> None:
        self.failures.append(TargetFailure(target=target, cause=cause))


class ResizeCascade:
    """
    Runs an ordered list of targets against one shared buffer.

    Targets are not re-sorted.
    """

    def __init__(self, encoder: ImageEncoder | None = None):
        self.encoder = encoder or ImageEncoder()

    def run(
        self,
        buffer: PixelBuffer,
        targets: Sequence[ThumbTarget],
        result: ProcessResult | None = None
    ) -> ProcessResult:
        """
        Resize and write each target in order, overwriting the buffer each time.

        Args:
            buffer: Oriented source pixels; left holding the last output.
            targets: Targets ordered largest to smallest.
            result: Result to record into; a new one is created if omitted.

        Returns:
            ProcessResult with per-target successes and failures.
        """
        result = result or ProcessResult()

        for index, target in enumerate(targets):
            try:
                target.validate()
            except InvalidTargetError as e:
                logger.warning(f"Skipping target: {e}")
                result.record_failure(target, e)
                continue

            logger.debug(
                f"Generating thumbnail {target.destination_path.name}: "
                f"{target.width}x{target.height} ({target.mode.value})"
            )

            try:
                resize(buffer, target.width, target.height, target.mode)
            except (OSError, ValueError, MemoryError) as e:
                # The shared buffer is unusable; nothing after this can be produced
                error = ResizeError(
                    f"Resize to {target.width}x{target.height} failed: {e}"
                )
                error.__cause__ = e
                logger.error(f"{error}; abandoning {len(targets) - index} remaining target(s)")
                for remaining in targets[index:]:
                    result.record_failure(remaining, error)
                break

            try:
                self.encoder.save(buffer, target.destination_path)
            except EncodeError as e:
                logger.warning(f"Failed to write thumbnail: {e}")
                result.record_failure(target, e)
                continue

            result.record_success(target)

        return result
