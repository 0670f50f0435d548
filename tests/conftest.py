from __future__ import annotations

import random
from pathlib import Path

import pytest
from PIL import Image, ImageFont

from derivatives.fonts import FontRegistry

FONT_FAMILY = "Arial"
FONT_FILE = "arial.ttf"


def make_noise_image(size: tuple[int, int], seed: int = 1234) -> Image.Image:
    """Deterministic RGB noise; every pixel differs from its neighbours."""
    width, height = size
    data = random.Random(seed).randbytes(width * height * 3)
    return Image.frombytes("RGB", size, data)


def save_image(
    path: Path,
    image: Image.Image,
    orientation: int | None = None,
    description: str | None = None,
) -> Path:
    exif = Image.Exif()
    if orientation is not None:
        exif[274] = orientation
    if description is not None:
        exif[270] = description
    kwargs = {"exif": exif.tobytes()} if len(exif) else {}
    image.save(path, **kwargs)
    return path


@pytest.fixture
def font_dir(tmp_path: Path) -> Path:
    """Directory holding Pillow's embedded default TrueType font as arial.ttf."""
    font = ImageFont.load_default(size=10)
    data = getattr(font, "font_bytes", None)
    if not isinstance(font, ImageFont.FreeTypeFont) or not data:
        pytest.skip("Pillow built without FreeType support")
    directory = tmp_path / "fonts"
    directory.mkdir()
    (directory / FONT_FILE).write_bytes(data)
    return directory


@pytest.fixture
def font_registry(font_dir: Path) -> FontRegistry:
    return FontRegistry.from_directory(font_dir, family=FONT_FAMILY, filename=FONT_FILE)


@pytest.fixture
def landscape_source(tmp_path: Path) -> Path:
    return save_image(tmp_path / "landscape.png", make_noise_image((1600, 1200)))
