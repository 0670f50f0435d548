"""
Image derivative pipeline.

This package provides:
- Decoding with EXIF orientation normalization
- Content fingerprints computed from pixel data only
- Progressive thumbnail cascades
- Size-capped, watermarked download renditions
"""

from derivatives.cascade import ProcessResult, ResizeCascade, TargetFailure, ThumbTarget
from derivatives.config import Settings
from derivatives.decoder import SUPPORTED_EXTENSIONS, decode
from derivatives.errors import (
    DecodeError,
    DerivativeError,
    EncodeError,
    FontMissingError,
    HashError,
    InvalidTargetError,
    ResizeError,
)
from derivatives.fingerprint import Digest, FingerprintResult, compute_fingerprint
from derivatives.fonts import FontRegistry, SharedFontRegistry
from derivatives.processor import BatchStats, ImageProcessor
from derivatives.watermark import WatermarkCompositor, WatermarkSpec

__all__ = [
    "BatchStats",
    "DecodeError",
    "DerivativeError",
    "Digest",
    "EncodeError",
    "FingerprintResult",
    "FontMissingError",
    "FontRegistry",
    "HashError",
    "ImageProcessor",
    "InvalidTargetError",
    "ProcessResult",
    "ResizeCascade",
    "ResizeError",
    "SUPPORTED_EXTENSIONS",
    "Settings",
    "SharedFontRegistry",
    "TargetFailure",
    "ThumbTarget",
    "WatermarkCompositor",
    "WatermarkSpec",
    "compute_fingerprint",
    "decode",
]
