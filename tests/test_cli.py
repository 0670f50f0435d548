from __future__ import annotations

import argparse
import sys
from pathlib import Path

import pytest
from PIL import Image

import run_derivatives
from conftest import make_noise_image, save_image


def test_parse_size() -> None:
    assert run_derivatives.parse_size("800x600") == (800, 600, False)
    assert run_derivatives.parse_size("150X150:crop") == (150, 150, True)
    with pytest.raises(argparse.ArgumentTypeError):
        run_derivatives.parse_size("150:square")
    with pytest.raises(argparse.ArgumentTypeError):
        run_derivatives.parse_size("wide")


def test_build_targets_keeps_order(tmp_path: Path) -> None:
    targets = run_derivatives.build_targets(
        Path("photo.jpg"), tmp_path, [(800, 800, False), (150, 150, True)]
    )

    assert [t.destination_path.name for t in targets] == ["photo_800x800.jpg", "photo_150x150.jpg"]
    assert targets[1].crop_to_exact_ratio


def test_thumbs_command(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    source = save_image(tmp_path / "photo.png", make_noise_image((320, 240)))
    out_dir = tmp_path / "out"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        sys, "argv",
        ["run_derivatives.py", "thumbs", str(source), "--out-dir", str(out_dir),
         "--size", "160x160", "--size", "50x50:crop"],
    )

    assert run_derivatives.main() == 0

    with Image.open(out_dir / "photo_160x160.jpg") as thumb:
        assert thumb.size == (160, 120)
    with Image.open(out_dir / "photo_50x50.jpg") as thumb:
        assert thumb.size == (50, 50)
    assert "Successfully processed: 1" in capsys.readouterr().out


def test_download_command(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = save_image(tmp_path / "photo.jpg", make_noise_image((2000, 1000)))
    output = tmp_path / "download" / "photo.jpg"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "argv", ["run_derivatives.py", "download", str(source), str(output)])

    assert run_derivatives.main() == 0

    with Image.open(output) as image:
        assert image.size == (1600, 800)


@pytest.mark.parametrize(
    "extra_args",
    [["--watermark", "hi"], []],
    ids=["missing-font", "undecodable-source"],
)
def test_failed_download_leaves_output_untouched(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, extra_args: list[str]
) -> None:
    if extra_args:
        source = save_image(tmp_path / "photo.png", make_noise_image((40, 30)))
    else:
        source = tmp_path / "broken.png"
        source.write_bytes(b"not a png")
    output = tmp_path / "out.png"
    output.write_bytes(b"previous content")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DERIVATIVES_FONT_DIR", raising=False)
    monkeypatch.setattr(
        sys, "argv",
        ["run_derivatives.py", "download", str(source), str(output), *extra_args],
    )

    assert run_derivatives.main() == 1
    assert output.read_bytes() == b"previous content"
