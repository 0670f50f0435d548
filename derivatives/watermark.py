"""
Watermark compositor.

Scales the watermark text to a fixed fraction of the image width and
draws it right/bottom-aligned just inside the bottom-right corner.
"""

import logging
from dataclasses import dataclass

from PIL import ImageDraw

from derivatives.buffer import PixelBuffer
from derivatives.fonts import DEFAULT_FAMILY, FontRegistry

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255, 255)

LANDSCAPE_FRACTION = 1 / 6
PORTRAIT_FRACTION = 1 / 4

REFERENCE_FONT_SIZE = 100

# Anchor: right edge, descender line of the text
TEXT_ANCHOR = "rd"


@dataclass(frozen=True)
class WatermarkSpec:
    """Text to overlay and the colour to draw it in."""
    text: str | None = None
    color: tuple[int, int, int, int] = WHITE


@dataclass(frozen=True)
class WatermarkLayout:
    """Computed placement for a watermark on a specific canvas."""
    font_size: float
    margin: float
    anchor: tuple[float, float]
    target_width: float


def width_fraction(width: int, height: int) -> float:
    """Fraction of the image width the text should span."""
    if width >= height:
        return LANDSCAPE_FRACTION
    return PORTRAIT_FRACTION


class WatermarkCompositor:
    """
    Draws watermark text sized relative to the canvas.

    Args:
        registry: Fonts available for drawing.
        family: Family to draw with; never substituted.
        reference_size: Size the text is measured at before scaling.
    """

    def __init__(
        self,
        registry: FontRegistry,
        family: str = DEFAULT_FAMILY,
        reference_size: float = REFERENCE_FONT_SIZE
    ):
        self.registry = registry
        self.family = family
        self.reference_size = reference_size

    def layout(self, text: str, width: int, height: int) -> WatermarkLayout:
        """
        Work out font size and anchor point for text on a width x height canvas.

        Raises:
            FontMissingError: If the family isn't registered.
        """
        target_width = width * width_fraction(width, height)

        reference_font = self.registry.get_font(self.family, self.reference_size)
        measured = reference_font.getlength(text)
        if measured <= 0:
            raise ValueError(f"Watermark text {text!r} has no rendered width")

        scale = target_width / measured
        margin = target_width / 20

        return WatermarkLayout(
            font_size=self.reference_size * scale,
            margin=margin,
            anchor=(width - margin, height - margin),
            target_width=target_width,
        )

    def apply(self, buffer: PixelBuffer, spec: WatermarkSpec) -> WatermarkLayout | None:
        """
        Draw the watermark onto the buffer.

        Args:
            buffer: Already size-bounded pixels to draw on.
            spec: Text and colour; empty or missing text is a no-op.

        Returns:
            The layout used, or None if nothing was drawn.

        Raises:
            FontMissingError: If the family isn't registered.
        """
        if not spec.text:
            return None

        placement = self.layout(spec.text, buffer.width, buffer.height)
        font = self.registry.get_font(self.family, placement.font_size)

        draw = ImageDraw.Draw(buffer.image)
        draw.text(
            placement.anchor,
            spec.text,
            fill=spec.color,
            font=font,
            anchor=TEXT_ANCHOR,
        )

        logger.debug(
            f"Watermarked {buffer.width}x{buffer.height} with {spec.text!r} "
            f"at size {placement.font_size:.1f}"
        )
        return placement
