"""
Owned pixel buffer passed between pipeline steps.

Each step (orient, resize, draw) takes the buffer and swaps in its
result, so a single handle is threaded through one invocation and
released when the invocation ends.
"""

import logging
from typing import Iterator

from PIL import Image

logger = logging.getLogger(__name__)

PIXEL_MODE = "RGBA"


class PixelBuffer:
    """
    Row-major RGBA pixel data (4 channels, 8 bits each).

    Use as a context manager to guarantee the pixel memory is released
    on every exit path.
    """

    def __init__(self, image: Image.Image):
        if image.mode != PIXEL_MODE:
            image = image.convert(PIXEL_MODE)
        self._image: Image.Image | None = image

    @property
    def image(self) -> Image.Image:
        if self._image is None:
            raise ValueError("Pixel buffer has been released")
        return self._image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    @property
    def released(self) -> bool:
        return self._image is None

    def replace(self, image: Image.Image) -> None:
        """Swap in the output of a transform step, closing the previous data."""
        if image.mode != PIXEL_MODE:
            image = image.convert(PIXEL_MODE)
        previous = self.image
        self._image = image
        if previous is not image:
            previous.close()

    def iter_rows(self, rows_per_chunk: int = 1) -> Iterator[bytes]:
        """
        Yield raw channel bytes top to bottom, a band of rows at a time.

        Only one band is materialized at once.
        """
        image = self.image
        width, height = image.size
        for top in range(0, height, rows_per_chunk):
            bottom = min(top + rows_per_chunk, height)
            with image.crop((0, top, width, bottom)) as band:
                yield band.tobytes()

    def release(self) -> None:
        if self._image is not None:
            self._image.close()
            self._image = None

    def __enter__(self) -> "PixelBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        if self._image is None:
            return "PixelBuffer(released)"
        return f"PixelBuffer({self.width}x{self.height})"
