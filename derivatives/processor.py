"""
Image derivative processor.

Entry points used by the rest of the application:
1. generate_fingerprint_and_thumbnails: decode, orient, hash, run the cascade
2. render_download_transform: bounded resize plus optional watermark
3. process_batch: run many images on a worker pool

Each invocation owns its pixel buffer and shares nothing mutable with
other invocations except the read-only font registry.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Sequence

from derivatives.cascade import ProcessResult, ResizeCascade, ThumbTarget
from derivatives.config import Settings
from derivatives.decoder import SUPPORTED_EXTENSIONS, decode
from derivatives.encoder import ImageEncoder
from derivatives.errors import DerivativeError, FontMissingError
from derivatives.fingerprint import compute_fingerprint, new_hash
from derivatives.fonts import FontRegistry, SharedFontRegistry
from derivatives.orientation import normalize_orientation
from derivatives.resize import ResizeMode, resize
from derivatives.watermark import WatermarkCompositor, WatermarkSpec

logger = logging.getLogger(__name__)


@dataclass
class BatchItemResult:
    """Result of one image in a batch."""
    source_path: Path
    success: bool
    result: ProcessResult | None = None
    error: str | None = None


@dataclass
class BatchStats:
    """Statistics for a batch run."""
    total: int = 0
    processed: int = 0
    failed: int = 0
    hash_failures: int = 0
    target_failures: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    results: list[BatchItemResult] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Get total duration in seconds."""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    def add(self, item: BatchItemResult) -> None:
        self.results.append(item)
        if not item.success:
            self.failed += 1
            return
        self.processed += 1
        if item.result.fingerprint is None:
            self.hash_failures += 1
        self.target_failures += len(item.result.failures)

    def summary(self) -> str:
        """Generate summary string."""
        lines = [
            "=" * 50,
            "Derivative Processing Complete",
            "=" * 50,
            f"Total images: {self.total}",
            f"Successfully processed: {self.processed}",
            f"Failed: {self.failed}",
            f"Missing fingerprints: {self.hash_failures}",
            f"Failed thumbnails: {self.target_failures}",
            f"Duration: {self.duration_seconds:.1f} seconds",
        ]

        if self.failed > 0:
            lines.append("")
            lines.append("Failed images:")
            for r in self.results:
                if not r.success:
                    lines.append(f"  - {r.source_path.name}: {r.error}")

        return "\n".join(lines)


class ImageProcessor:
    """
    Produces fingerprints, thumbnails and download renditions for images.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        font_registry: FontRegistry | SharedFontRegistry | None = None
    ):
        """
        Initialize the processor.

        Args:
            settings: Pipeline settings; defaults if omitted.
            font_registry: Registry for watermarks. If omitted and a font
                          directory is configured, it is loaded lazily on
                          the first watermark request.
        """
        self.settings = settings or Settings()
        # Reject a too-short algorithm at construction time
        new_hash(self.settings.fingerprint_algorithm)

        self.encoder = ImageEncoder(quality=self.settings.jpeg_quality)
        self.cascade = ResizeCascade(encoder=self.encoder)

        if font_registry is None and self.settings.font_dir is not None:
            font_registry = SharedFontRegistry.for_directory(
                self.settings.font_dir,
                family=self.settings.font_family,
                filename=self.settings.font_file,
            )
        self.font_registry = font_registry

    @property
    def supported_extensions(self) -> frozenset[str]:
        """File extensions the decoder accepts."""
        return SUPPORTED_EXTENSIONS

    def install_font(self, directory: str | Path) -> bool:
        """
        Load the watermark font from a directory.

        Args:
            directory: Folder containing the configured font file.

        Returns:
            True if the font was installed, False otherwise.
        """
        try:
            self.font_registry = FontRegistry.from_directory(
                directory,
                family=self.settings.font_family,
                filename=self.settings.font_file,
            )
            return True
        except FontMissingError as e:
            logger.error(f"Exception installing watermark font: {e}")
            return False

    def _resolve_registry(self) -> FontRegistry:
        registry = self.font_registry
        if registry is None:
            raise FontMissingError(
                f"No fonts installed; cannot draw with {self.settings.font_family!r}"
            )
        if isinstance(registry, SharedFontRegistry):
            return registry.get()
        return registry

    def generate_fingerprint_and_thumbnails(
        self,
        source_path: str | Path,
        targets: Sequence[ThumbTarget]
    ) -> ProcessResult:
        """
        Fingerprint an image and write its thumbnail cascade.

        Targets are processed in the given order, each resized from the
        previous output. Pass them largest first.

        Args:
            source_path: Path to the source image.
            targets: Thumbnail targets, largest to smallest.

        Returns:
            ProcessResult with the fingerprint (or None) and per-target outcomes.

        Raises:
            DecodeError: If the source can't be decoded; no target is attempted.
        """
        start_time = time.time()
        source_path = Path(source_path)

        with decode(source_path) as decoded:
            buffer = decoded.buffer
            normalize_orientation(buffer, decoded.orientation)

            fingerprint = compute_fingerprint(
                buffer,
                algorithm=self.settings.fingerprint_algorithm,
                rows_per_chunk=self.settings.hash_rows_per_chunk,
            )
            result = ProcessResult(fingerprint=fingerprint.digest)

            self.cascade.run(buffer, targets, result)

        result.processing_time = time.time() - start_time

        logger.info(
            f"Processed: {source_path.name} ({len(result.written)}/{len(targets)} thumbs, "
            f"hash {result.fingerprint_hex or 'unavailable'}, {result.processing_time:.2f}s)"
        )
        return result

    def render_download_transform(
        self,
        source_path: str | Path,
        output: BinaryIO,
        watermark_text: str | None = None,
        watermark: WatermarkSpec | None = None
    ) -> None:
        """
        Write a size-capped, optionally watermarked copy of an image.

        The output uses the source's container format. Nothing is written
        if the watermark font is missing.

        Args:
            source_path: Path to the source image.
            output: Writable binary stream.
            watermark_text: Text to overlay; None or empty for no watermark.
            watermark: Full watermark spec; overrides watermark_text.

        Raises:
            DecodeError: If the source can't be decoded.
            FontMissingError: If a watermark is requested without its font.
            EncodeError: If the output can't be written.
        """
        source_path = Path(source_path)
        spec = watermark or WatermarkSpec(text=watermark_text)
        logger.info(f"Running image transform for {source_path.name}, watermark: {spec.text}")

        with decode(source_path) as decoded:
            buffer = decoded.buffer
            normalize_orientation(buffer, decoded.orientation)

            max_edge = self.settings.download_max_edge
            resize(
                buffer,
                max_edge,
                max_edge,
                ResizeMode.FIT_WITHIN_BOUNDS,
                allow_upscale=False,
            )

            if spec.text:
                compositor = WatermarkCompositor(
                    self._resolve_registry(),
                    family=self.settings.font_family,
                    reference_size=self.settings.reference_font_size,
                )
                compositor.apply(buffer, spec)

            self.encoder.write(
                buffer, output, decoded.format or "PNG", mode=decoded.output_mode
            )

    def process_batch(
        self,
        jobs: Iterable[tuple[str | Path, Sequence[ThumbTarget]]],
        max_workers: int | None = None,
        progress_callback: Callable[[int, int, str], None] | None = None
    ) -> BatchStats:
        """
        Fingerprint and thumbnail many images concurrently.

        A fatal error for one image is logged and counted; it never stops
        the rest of the batch.

        Args:
            jobs: (source_path, targets) pairs.
            max_workers: Worker threads; defaults to the configured value.
            progress_callback: Callback(current, total, filename) per finished image.

        Returns:
            BatchStats in job order.
        """
        jobs = [(Path(path), list(targets)) for path, targets in jobs]
        stats = BatchStats(total=len(jobs))

        if not jobs:
            stats.end_time = datetime.now()
            return stats

        workers = max_workers or self.settings.max_workers
        logger.info(f"Processing {len(jobs)} image(s) with {workers} worker(s)")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self._process_one, path, targets)
                for path, targets in jobs
            ]
            for i, future in enumerate(futures, 1):
                item = future.result()
                stats.add(item)
                if progress_callback:
                    progress_callback(i, len(futures), item.source_path.name)

        stats.end_time = datetime.now()
        logger.info(stats.summary())
        return stats

    def _process_one(
        self,
        source_path: Path,
        targets: Sequence[ThumbTarget]
    ) -> BatchItemResult:
        try:
            result = self.generate_fingerprint_and_thumbnails(source_path, targets)
        except DerivativeError as e:
            logger.error(f"Failed to process {source_path.name}: {e}")
            return BatchItemResult(source_path=source_path, success=False, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error processing {source_path.name}: {e}")
            return BatchItemResult(
                source_path=source_path,
                success=False,
                error=f"{type(e).__name__}: {e}"
            )
        return BatchItemResult(source_path=source_path, success=True, result=result)
