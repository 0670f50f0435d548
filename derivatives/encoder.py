"""
Encodes pixel buffers to image files or streams.
"""

import logging
from pathlib import Path
from typing import BinaryIO

from PIL import Image

from derivatives.buffer import PixelBuffer
from derivatives.errors import EncodeError

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 90

# Formats that take a quality setting
LOSSY_FORMATS = {"JPEG", "MPO", "WEBP"}

# Formats that cannot store an alpha channel
OPAQUE_FORMATS = {"JPEG", "MPO", "BMP"}


def format_for_path(path: str | Path) -> str:
    """
    Determine the output format from a file extension.

    Raises:
        EncodeError: If Pillow has no writer for the extension.
    """
    suffix = Path(path).suffix.lower()
    fmt = Image.registered_extensions().get(suffix)
    if fmt is None or fmt not in Image.SAVE:
        raise EncodeError(f"No encoder for extension: {suffix or '(none)'}")
    return fmt


class ImageEncoder:
    """
    Writes buffers with a fixed quality setting for lossy formats.
    """

    def __init__(self, quality: int = DEFAULT_QUALITY):
        """
        Initialize encoder.

        Args:
            quality: Quality for JPEG/WebP output (1-100).
        """
        self.quality = quality

    def _save_options(self, fmt: str) -> dict:
        if fmt in LOSSY_FORMATS:
            return {"quality": self.quality}
        return {}

    def _prepare(self, buffer: PixelBuffer, fmt: str, mode: str | None = None) -> Image.Image:
        image = buffer.image
        mode = mode or image.mode
        if fmt in OPAQUE_FORMATS and mode == "RGBA":
            mode = "RGB"
        if mode != image.mode:
            return image.convert(mode)
        return image

    def save(self, buffer: PixelBuffer, destination: str | Path) -> Path:
        """
        Encode the buffer and write it to a file, overwriting it if present.

        Args:
            buffer: Pixels to write.
            destination: Output path; the format follows its extension.

        Returns:
            The destination path.

        Raises:
            EncodeError: If the format is unknown or the write fails.
        """
        destination = Path(destination)
        fmt = format_for_path(destination)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            image = self._prepare(buffer, fmt)
            image.save(destination, format=fmt, **self._save_options(fmt))
        except (OSError, ValueError) as e:
            raise EncodeError(f"Failed to write {destination}: {e}") from e

        logger.debug(f"Wrote {destination} ({buffer.width}x{buffer.height} {fmt})")
        return destination

    def write(
        self,
        buffer: PixelBuffer,
        sink: BinaryIO,
        fmt: str,
        mode: str | None = None
    ) -> None:
        """
        Encode the buffer into an open binary stream.

        Args:
            buffer: Pixels to write.
            sink: Writable binary stream.
            fmt: Pillow format name.
            mode: Image mode to encode in, e.g. the source's; defaults to the buffer's.

        Raises:
            EncodeError: If the format is unknown or the write fails.
        """
        fmt = fmt.upper()
        Image.init()
        if fmt not in Image.SAVE:
            raise EncodeError(f"No encoder for format: {fmt}")

        try:
            image = self._prepare(buffer, fmt, mode)
            image.save(sink, format=fmt, **self._save_options(fmt))
        except (OSError, ValueError) as e:
            raise EncodeError(f"Failed to encode {fmt} output: {e}") from e
