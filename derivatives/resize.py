"""
Resize geometry and the two resize modes used for derivatives.
"""

from enum import Enum

from PIL import Image, ImageOps

from derivatives.buffer import PixelBuffer

RESAMPLE = Image.Resampling.LANCZOS


class ResizeMode(Enum):
    """How a buffer is fitted to a target box."""
    FIT_WITHIN_BOUNDS = "fit"   # keep aspect ratio, no larger than the box
    CROP_TO_EXACT_BOX = "crop"  # fill the box, crop the overflow


def fit_size(
    width: int,
    height: int,
    max_width: int,
    max_height: int,
    allow_upscale: bool = True
) -> tuple[int, int]:
    """
    Largest size with the source aspect ratio that fits in the box.

    Args:
        width: Current width.
        height: Current height.
        max_width: Box width.
        max_height: Box height.
        allow_upscale: Scale small images up to the box; otherwise cap at 1.0.

    Returns:
        (width, height), each at least 1 pixel.
    """
    scale = min(max_width / width, max_height / height)
    if not allow_upscale:
        scale = min(scale, 1.0)
    return (
        max(1, min(max_width, int(width * scale + 0.5))),
        max(1, min(max_height, int(height * scale + 0.5))),
    )


def resize(
    buffer: PixelBuffer,
    width: int,
    height: int,
    mode: ResizeMode = ResizeMode.FIT_WITHIN_BOUNDS,
    allow_upscale: bool = True
) -> tuple[int, int]:
    """
    Resize the buffer in place.

    Args:
        buffer: Buffer to overwrite with the resized result.
        width: Target box width.
        height: Target box height.
        mode: Fit inside the box, or fill and crop to it exactly.
        allow_upscale: Only applies to FIT_WITHIN_BOUNDS.

    Returns:
        The new buffer size.
    """
    image = buffer.image

    if mode == ResizeMode.CROP_TO_EXACT_BOX:
        resized = ImageOps.fit(image, (width, height), method=RESAMPLE)
    else:
        new_size = fit_size(image.width, image.height, width, height, allow_upscale)
        if new_size == image.size:
            return new_size
        resized = image.resize(new_size, RESAMPLE)

    buffer.replace(resized)
    return buffer.size
