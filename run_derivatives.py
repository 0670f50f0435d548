#!/usr/bin/env python3
"""
CLI entry point for the image derivative pipeline.

Commands:
    thumbs:   Fingerprint images and write a thumbnail cascade for each
    download: Write a size-capped, optionally watermarked copy of one image

Usage:
    python run_derivatives.py thumbs photo.jpg --out-dir thumbs
    python run_derivatives.py thumbs *.jpg --size 1600x1600 --size 800x800 --size 150x150:crop
    python run_derivatives.py download photo.jpg out.jpg --watermark "(c) Studio" --font-dir fonts
"""

import argparse
import logging
import sys
from io import BytesIO
from pathlib import Path

from derivatives.cascade import ThumbTarget
from derivatives.config import Settings
from derivatives.errors import DerivativeError
from derivatives.processor import ImageProcessor

DEFAULT_SIZES = ["1600x1600", "800x800", "400x400", "150x150:crop"]


def setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    """Configure logging for the run."""
    level = logging.DEBUG if verbose else logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers
    )


def parse_size(value: str) -> tuple[int, int, bool]:
    """Parse WIDTHxHEIGHT[:crop] into (width, height, crop)."""
    size, _, flag = value.partition(":")
    if flag not in ("", "crop"):
        raise argparse.ArgumentTypeError(f"Unknown size flag: {flag!r}")
    try:
        width, height = (int(v) for v in size.lower().split("x"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {value!r}") from None
    return width, height, flag == "crop"


def build_targets(
    source: Path,
    out_dir: Path,
    sizes: list[tuple[int, int, bool]]
) -> list[ThumbTarget]:
    """Targets for one source, named <stem>_<w>x<h>.jpg, in the given order."""
    return [
        ThumbTarget(
            destination_path=out_dir / f"{source.stem}_{w}x{h}.jpg",
            width=w,
            height=h,
            crop_to_exact_ratio=crop,
        )
        for w, h, crop in sizes
    ]


def print_progress(current: int, total: int, filename: str) -> None:
    """Print progress to console."""
    pct = (current / total) * 100 if total > 0 else 0
    print(f"[{current:4d}/{total:4d}] ({pct:5.1f}%) {filename}")


def run_thumbs(args: argparse.Namespace, processor: ImageProcessor) -> int:
    """Fingerprint and thumbnail every source."""
    sizes = args.size or [parse_size(s) for s in DEFAULT_SIZES]
    out_dir = Path(args.out_dir)

    jobs = []
    for source in args.sources:
        source = Path(source)
        if source.suffix.lower() not in processor.supported_extensions:
            print(f"Skipping unsupported file: {source}")
            continue
        jobs.append((source, build_targets(source, out_dir, sizes)))

    stats = processor.process_batch(
        jobs,
        max_workers=args.workers,
        progress_callback=print_progress if args.verbose else None
    )

    for item in stats.results:
        if item.success:
            print(f"{item.result.fingerprint_hex or '-':40s}  {item.source_path}")

    print("\n" + stats.summary())
    return 0 if stats.failed == 0 and stats.target_failures == 0 else 1


def run_download(args: argparse.Namespace, processor: ImageProcessor) -> int:
    """Write a download rendition of one source."""
    if args.font_dir and not processor.install_font(args.font_dir):
        print(f"ERROR: Could not install watermark font from {args.font_dir}")
        return 1

    # Output file is only written once rendering has succeeded
    rendered = BytesIO()
    processor.render_download_transform(args.source, rendered, args.watermark)

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(rendered.getvalue())

    print(f"Wrote {output}")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate fingerprints, thumbnails and download renditions for images.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Thumbnail sizes are processed in the order given, each resized from the
previous output. List them from largest to smallest; a larger size after
a smaller one is upscaled from the smaller result and loses sharpness.

Settings are read from DERIVATIVES_* environment variables or a .env file.
        """
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show detailed progress output"
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    thumbs = subparsers.add_parser("thumbs", help="Fingerprint and thumbnail images")
    thumbs.add_argument("sources", nargs="+", help="Source image files")
    thumbs.add_argument(
        "--out-dir",
        default="thumbnails",
        help="Directory for thumbnails (default: thumbnails)"
    )
    thumbs.add_argument(
        "--size",
        action="append",
        type=parse_size,
        metavar="WxH[:crop]",
        help=f"Thumbnail box, repeatable (default: {' '.join(DEFAULT_SIZES)})"
    )
    thumbs.add_argument(
        "--workers",
        type=int,
        help="Worker threads (default: DERIVATIVES_MAX_WORKERS)"
    )

    download = subparsers.add_parser("download", help="Render a download copy")
    download.add_argument("source", help="Source image file")
    download.add_argument("output", help="Output file")
    download.add_argument("--watermark", help="Watermark text")
    download.add_argument(
        "--font-dir",
        help="Directory containing the watermark font (default: DERIVATIVES_FONT_DIR)"
    )

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_file)

    try:
        processor = ImageProcessor(settings=Settings.from_env())
        if args.command == "thumbs":
            return run_thumbs(args, processor)
        return run_download(args, processor)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
        return 130
    except (DerivativeError, ValueError, OSError) as e:
        print(f"\nERROR: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
