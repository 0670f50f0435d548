"""
Error taxonomy for the derivative pipeline.

Fatal errors abort the remaining work for an image; per-target errors
are recorded on the result and the cascade moves on.
"""


class DerivativeError(Exception):
    """Base class for all derivative pipeline errors."""


class DecodeError(DerivativeError):
    """Source file could not be opened or is not a supported image."""


class InvalidTargetError(DerivativeError):
    """Thumbnail target has a non-positive width or height."""


class ResizeError(DerivativeError):
    """Resizing the shared buffer failed; the buffer is no longer usable."""


class EncodeError(DerivativeError):
    """Encoding or writing a derivative to its destination failed."""


class HashError(DerivativeError):
    """Reading pixel rows for the content fingerprint failed."""


class FontMissingError(DerivativeError):
    """Watermark requested with a font family that is not registered."""
