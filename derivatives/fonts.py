"""
Font registry for watermark rendering.

A FontRegistry is built once from font files and is read-only after
that, so it can be shared freely across worker threads.
"""

import logging
import threading
from io import BytesIO
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping

from PIL import ImageFont

from derivatives.errors import FontMissingError

logger = logging.getLogger(__name__)

DEFAULT_FAMILY = "Arial"
DEFAULT_FONT_FILE = "arial.ttf"


class FontRegistry:
    """
    Immutable mapping from family name to TrueType font data.
    """

    def __init__(self, fonts: Mapping[str, bytes]):
        self._fonts = MappingProxyType(dict(fonts))

    @classmethod
    def from_directory(
        cls,
        directory: str | Path,
        family: str = DEFAULT_FAMILY,
        filename: str = DEFAULT_FONT_FILE
    ) -> "FontRegistry":
        """
        Load one font file from a directory under a well-known family name.

        Args:
            directory: Folder containing the font file.
            family: Family name to register the font under.
            filename: Font file name inside the directory.

        Returns:
            A populated registry.

        Raises:
            FontMissingError: If the file is missing or not a usable font.
        """
        font_path = Path(directory) / filename
        try:
            data = font_path.read_bytes()
            # Fail now rather than on the first watermark
            ImageFont.truetype(BytesIO(data), 10)
        except OSError as e:
            raise FontMissingError(f"Could not load font {font_path}: {e}") from e

        logger.info(f"Watermark font installed: {font_path} as {family}")
        return cls({family: data})

    @property
    def families(self) -> frozenset[str]:
        return frozenset(self._fonts)

    def __contains__(self, family: object) -> bool:
        return family in self._fonts

    def __len__(self) -> int:
        return len(self._fonts)

    def get_font(self, family: str, size: float) -> ImageFont.FreeTypeFont:
        """
        Create a font of the given family at a (possibly fractional) size.

        Raises:
            FontMissingError: If the family was never registered.
        """
        data = self._fonts.get(family)
        if data is None:
            raise FontMissingError(
                f"Font family {family!r} is not registered "
                f"(available: {', '.join(sorted(self._fonts)) or 'none'})"
            )
        return ImageFont.truetype(BytesIO(data), size)


class SharedFontRegistry:
    """
    Lazily populated, process-wide registry.

    The first caller of get() runs the loader while holding a lock;
    concurrent callers wait for it and then all see the same registry.
    """

    def __init__(self, loader: Callable[[], FontRegistry]):
        self._loader = loader
        self._registry: FontRegistry | None = None
        self._lock = threading.Lock()

    @classmethod
    def for_directory(
        cls,
        directory: str | Path,
        family: str = DEFAULT_FAMILY,
        filename: str = DEFAULT_FONT_FILE
    ) -> "SharedFontRegistry":
        return cls(lambda: FontRegistry.from_directory(directory, family, filename))

    @property
    def populated(self) -> bool:
        return self._registry is not None

    def get(self) -> FontRegistry:
        registry = self._registry
        if registry is not None:
            return registry

        with self._lock:
            if self._registry is None:
                self._registry = self._loader()
            return self._registry
