"""
Configuration for the derivative pipeline.

Values come from DERIVATIVES_* environment variables, optionally loaded
from a .env file.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "DERIVATIVES_"


def _get_int(name: str, default: int, minimum: int = 1) -> int:
    """Read a positive integer environment variable."""
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Pipeline settings. Build once and pass to the processor."""
    jpeg_quality: int = 90
    download_max_edge: int = 1600
    fingerprint_algorithm: str = "sha1"
    hash_rows_per_chunk: int = 16
    font_dir: Path | None = None
    font_file: str = "arial.ttf"
    font_family: str = "Arial"
    reference_font_size: int = 100
    max_workers: int = 4

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """
        Build settings from the environment.

        Args:
            dotenv: Load a .env file from the working directory first.

        Returns:
            Settings with defaults for anything unset.

        Raises:
            ValueError: If a numeric variable is malformed.
        """
        if dotenv:
            load_dotenv()

        font_dir = os.getenv(ENV_PREFIX + "FONT_DIR")

        settings = cls(
            jpeg_quality=_get_int("JPEG_QUALITY", cls.jpeg_quality),
            download_max_edge=_get_int("DOWNLOAD_MAX_EDGE", cls.download_max_edge),
            fingerprint_algorithm=os.getenv(
                ENV_PREFIX + "FINGERPRINT_ALGORITHM", cls.fingerprint_algorithm
            ),
            hash_rows_per_chunk=_get_int("HASH_ROWS_PER_CHUNK", cls.hash_rows_per_chunk),
            font_dir=Path(font_dir) if font_dir else None,
            font_file=os.getenv(ENV_PREFIX + "FONT_FILE", cls.font_file),
            font_family=os.getenv(ENV_PREFIX + "FONT_FAMILY", cls.font_family),
            reference_font_size=_get_int("REFERENCE_FONT_SIZE", cls.reference_font_size),
            max_workers=_get_int("MAX_WORKERS", cls.max_workers),
        )

        if not 1 <= settings.jpeg_quality <= 100:
            raise ValueError(
                f"{ENV_PREFIX}JPEG_QUALITY must be between 1 and 100, "
                f"got {settings.jpeg_quality}"
            )

        logger.debug(f"Loaded settings: {settings}")
        return settings
