from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image, ImageFilter, ImageStat

from conftest import make_noise_image
from derivatives import resize as resize_module
from derivatives.buffer import PixelBuffer
from derivatives.cascade import ResizeCascade, ThumbTarget
from derivatives.errors import EncodeError, InvalidTargetError, ResizeError
from derivatives.resize import ResizeMode, fit_size, resize


def _sharpness(path: Path) -> float:
    with Image.open(path) as image:
        edges = image.convert("L").filter(ImageFilter.FIND_EDGES)
        return ImageStat.Stat(edges).mean[0]


def _size(path: Path) -> tuple[int, int]:
    with Image.open(path) as image:
        return image.size


def _noise_buffer(size: tuple[int, int] = (1600, 1200)) -> PixelBuffer:
    return PixelBuffer(make_noise_image(size))


def test_fit_size_preserves_aspect_ratio() -> None:
    assert fit_size(1600, 1200, 800, 800) == (800, 600)
    assert fit_size(1200, 1600, 400, 400) == (300, 400)
    assert fit_size(100, 50, 400, 400) == (400, 200)
    assert fit_size(100, 50, 400, 400, allow_upscale=False) == (100, 50)
    assert fit_size(5000, 1, 100, 100) == (100, 1)


def test_crop_mode_hits_box_exactly() -> None:
    with _noise_buffer() as buffer:
        assert resize(buffer, 150, 100, ResizeMode.CROP_TO_EXACT_BOX) == (150, 100)


def test_cascade_sizes(tmp_path: Path) -> None:
    targets = [
        ThumbTarget(tmp_path / "large.jpg", 800, 800),
        ThumbTarget(tmp_path / "medium.jpg", 400, 400),
        ThumbTarget(tmp_path / "small.jpg", 150, 150, crop_to_exact_ratio=True),
    ]

    with _noise_buffer() as buffer:
        result = ResizeCascade().run(buffer, targets)
        assert buffer.size == (150, 150)

    assert result.thumbs_written
    assert result.written == targets
    assert result.failures == []
    assert _size(tmp_path / "large.jpg") == (800, 600)
    assert _size(tmp_path / "medium.jpg") == (400, 300)
    assert _size(tmp_path / "small.jpg") == (150, 150)


def test_crop_target_on_landscape_source(tmp_path: Path) -> None:
    target = ThumbTarget(tmp_path / "crop.jpg", 150, 100, crop_to_exact_ratio=True)

    with _noise_buffer() as buffer:
        result = ResizeCascade().run(buffer, [target])

    assert result.written == [target]
    assert _size(target.destination_path) == (150, 100)


def test_cascade_is_deterministic(tmp_path: Path) -> None:
    outputs = []
    for run in ("first", "second"):
        targets = [
            ThumbTarget(tmp_path / run / "800.jpg", 800, 800),
            ThumbTarget(tmp_path / run / "400.jpg", 400, 400),
            ThumbTarget(tmp_path / run / "150.jpg", 150, 150, crop_to_exact_ratio=True),
        ]
        with _noise_buffer() as buffer:
            ResizeCascade().run(buffer, targets)
        outputs.append([t.destination_path.read_bytes() for t in targets])

    assert outputs[0] == outputs[1]


def test_ascending_targets_upscale_from_intermediate(tmp_path: Path) -> None:
    ascending = [
        ThumbTarget(tmp_path / "asc_150.png", 150, 150),
        ThumbTarget(tmp_path / "asc_800.png", 800, 800),
    ]
    independent = ThumbTarget(tmp_path / "direct_800.png", 800, 800)

    with _noise_buffer() as buffer:
        ResizeCascade().run(buffer, ascending)
    with _noise_buffer() as buffer:
        ResizeCascade().run(buffer, [independent])

    # Same box, but rebuilt from the 150px intermediate
    assert _size(ascending[1].destination_path)[0] == 800
    assert _sharpness(ascending[1].destination_path) < 0.5 * _sharpness(independent.destination_path)


def test_invalid_target_skipped(tmp_path: Path) -> None:
    targets = [
        ThumbTarget(tmp_path / "zero.jpg", 0, 100),
        ThumbTarget(tmp_path / "negative.jpg", 100, -1),
        ThumbTarget(tmp_path / "ok.jpg", 100, 100),
    ]

    with _noise_buffer((200, 100)) as buffer:
        result = ResizeCascade().run(buffer, targets)

    assert result.written == [targets[2]]
    assert [f.target for f in result.failures] == targets[:2]
    assert all(isinstance(f.cause, InvalidTargetError) for f in result.failures)
    assert not (tmp_path / "zero.jpg").exists()


def test_unwritable_target_does_not_stop_cascade(tmp_path: Path) -> None:
    blocked = tmp_path / "blocked.jpg"
    blocked.mkdir()
    targets = [
        ThumbTarget(tmp_path / "first.jpg", 800, 800),
        ThumbTarget(blocked, 400, 400),
        ThumbTarget(tmp_path / "third.jpg", 150, 150, crop_to_exact_ratio=True),
    ]

    with _noise_buffer() as buffer:
        result = ResizeCascade().run(buffer, targets)

    assert result.written == [targets[0], targets[2]]
    assert len(result.failures) == 1
    assert result.failures[0].target == targets[1]
    assert isinstance(result.failures[0].cause, EncodeError)
    assert _size(tmp_path / "third.jpg") == (150, 150)


def test_unknown_extension_is_encode_failure(tmp_path: Path) -> None:
    target = ThumbTarget(tmp_path / "thumb.unknownext", 100, 100)

    with _noise_buffer((200, 200)) as buffer:
        result = ResizeCascade().run(buffer, [target])

    assert not result.thumbs_written
    assert isinstance(result.failures[0].cause, EncodeError)


def test_resize_failure_abandons_remaining_targets(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls = []

    def flaky_resize(buffer, width, height, mode=ResizeMode.FIT_WITHIN_BOUNDS, allow_upscale=True):
        calls.append((width, height))
        if len(calls) == 2:
            raise MemoryError("out of memory")
        return resize_module.resize(buffer, width, height, mode, allow_upscale)

    monkeypatch.setattr("derivatives.cascade.resize", flaky_resize)
    targets = [
        ThumbTarget(tmp_path / "a.jpg", 400, 400),
        ThumbTarget(tmp_path / "b.jpg", 200, 200),
        ThumbTarget(tmp_path / "c.jpg", 100, 100),
    ]

    with _noise_buffer((800, 600)) as buffer:
        result = ResizeCascade().run(buffer, targets)

    assert len(calls) == 2
    assert result.written == [targets[0]]
    assert [f.target for f in result.failures] == targets[1:]
    assert all(isinstance(f.cause, ResizeError) for f in result.failures)
    assert not (tmp_path / "c.jpg").exists()


def test_target_mode_selection(tmp_path: Path) -> None:
    assert ThumbTarget(tmp_path / "a.jpg", 1, 1).mode == ResizeMode.FIT_WITHIN_BOUNDS
    assert ThumbTarget(str(tmp_path / "b.jpg"), 1, 1, True).mode == ResizeMode.CROP_TO_EXACT_BOX
    assert isinstance(ThumbTarget(str(tmp_path / "b.jpg"), 1, 1).destination_path, Path)
