"""
Orientation normalization.

Bakes the EXIF orientation into the pixel data so the buffer is upright
and the tag never needs reapplying downstream.
"""

import logging

from PIL import Image

from derivatives.buffer import PixelBuffer

logger = logging.getLogger(__name__)

IDENTITY = 1

# EXIF orientation value -> transform that makes the image upright
ORIENTATION_TRANSFORMS: dict[int, Image.Transpose] = {
    2: Image.Transpose.FLIP_LEFT_RIGHT,
    3: Image.Transpose.ROTATE_180,
    4: Image.Transpose.FLIP_TOP_BOTTOM,
    5: Image.Transpose.TRANSPOSE,
    6: Image.Transpose.ROTATE_270,
    7: Image.Transpose.TRANSVERSE,
    8: Image.Transpose.ROTATE_90,
}


def normalize_orientation(buffer: PixelBuffer, orientation: int) -> int:
    """
    Rotate/flip the buffer upright according to its orientation tag.

    Unknown values are treated as the identity.

    Args:
        buffer: Buffer to transform in place.
        orientation: EXIF orientation value (1-8).

    Returns:
        The orientation now describing the buffer, always 1.
    """
    transform = ORIENTATION_TRANSFORMS.get(orientation)
    if transform is None:
        if orientation != IDENTITY:
            logger.debug(f"Ignoring unsupported orientation value: {orientation}")
        return IDENTITY

    buffer.replace(buffer.image.transpose(transform))
    logger.debug(f"Applied orientation {orientation} ({transform.name})")
    return IDENTITY
