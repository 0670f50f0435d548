"""
Decoder: source file -> owned RGBA pixel buffer plus format metadata.

Reads the container format and the EXIF orientation tag; nothing else
from the metadata is used here.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import piexif
from PIL import Image, UnidentifiedImageError

from derivatives.buffer import PixelBuffer
from derivatives.errors import DecodeError

logger = logging.getLogger(__name__)

# Source extensions the decoder accepts
SUPPORTED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})

DEFAULT_ORIENTATION = 1

ALPHA_MODES = {"RGBA", "RGBa", "LA", "La", "PA"}
GRAYSCALE_MODES = {"1", "L"}


@dataclass
class DecodedImage:
    """Decoded pixels plus the metadata the pipeline needs."""
    buffer: PixelBuffer
    orientation: int
    format: str | None
    output_mode: str = "RGBA"

    def __enter__(self) -> "DecodedImage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.buffer.release()


def is_supported(path: str | Path) -> bool:
    """Check if the file extension is one the decoder accepts."""
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def read_orientation(exif_bytes: bytes | None) -> int:
    """
    Read the EXIF orientation tag.

    Args:
        exif_bytes: Raw EXIF block from the image info, if any.

    Returns:
        Orientation value, or 1 if absent or unreadable.
    """
    if not exif_bytes:
        return DEFAULT_ORIENTATION

    try:
        exif_dict = piexif.load(exif_bytes)
    except Exception as e:
        logger.debug(f"Could not parse EXIF block: {e}")
        return DEFAULT_ORIENTATION

    value = exif_dict.get("0th", {}).get(piexif.ImageIFD.Orientation)
    if isinstance(value, int):
        return value
    return DEFAULT_ORIENTATION


def output_mode_for(img: Image.Image) -> str:
    """
    Mode to encode derivatives in so they carry the same channels as the source.

    Alpha is kept only if the source has it; grayscale stays grayscale.
    """
    if img.mode in ALPHA_MODES or "transparency" in img.info:
        return "RGBA"
    if img.mode in GRAYSCALE_MODES:
        return "L"
    return "RGB"


def decode(source_path: str | Path) -> DecodedImage:
    """
    Decode an image file into an owned pixel buffer.

    Args:
        source_path: Path to the source image.

    Returns:
        DecodedImage with buffer, orientation tag and container format.

    Raises:
        DecodeError: If the file can't be opened or isn't a supported image.
    """
    source_path = Path(source_path)

    if not is_supported(source_path):
        raise DecodeError(f"Unsupported file extension: {source_path.suffix or '(none)'}")

    try:
        with Image.open(source_path) as img:
            img.load()
            fmt = img.format
            orientation = read_orientation(img.info.get("exif"))
            mode = output_mode_for(img)
            buffer = PixelBuffer(img.convert("RGBA"))
    except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Failed to decode {source_path}: {e}") from e

    logger.debug(
        f"Decoded {source_path.name}: {buffer.width}x{buffer.height} "
        f"{fmt}, orientation {orientation}"
    )
    return DecodedImage(
        buffer=buffer, orientation=orientation, format=fmt, output_mode=mode
    )
