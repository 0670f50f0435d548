"""
Content fingerprinting from raw pixel data.

The digest covers only the oriented pixels, so two files that differ in
metadata alone (tags, timestamps, embedded text) hash the same.
"""

import hashlib
import logging
import time
from dataclasses import dataclass

from derivatives.buffer import PixelBuffer
from derivatives.errors import HashError

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "sha1"
MIN_DIGEST_BITS = 160


@dataclass(frozen=True)
class Digest:
    """Fixed-length content digest; compares byte-wise."""
    value: bytes

    def hex(self) -> str:
        return self.value.hex()

    def __str__(self) -> str:
        return self.hex()

    @classmethod
    def from_hex(cls, text: str) -> "Digest":
        return cls(bytes.fromhex(text))


@dataclass(frozen=True)
class FingerprintResult:
    """Either a digest or the reason hashing failed."""
    digest: Digest | None = None
    error: HashError | None = None

    @property
    def ok(self) -> bool:
        return self.digest is not None


def new_hash(algorithm: str = DEFAULT_ALGORITHM):
    """Create an incremental hash state, rejecting digests shorter than 160 bits."""
    state = hashlib.new(algorithm)
    if state.digest_size * 8 < MIN_DIGEST_BITS:
        raise ValueError(
            f"Fingerprint algorithm {algorithm} produces {state.digest_size * 8} bits, "
            f"need at least {MIN_DIGEST_BITS}"
        )
    return state


def compute_fingerprint(
    buffer: PixelBuffer,
    algorithm: str = DEFAULT_ALGORITHM,
    rows_per_chunk: int = 16
) -> FingerprintResult:
    """
    Hash the buffer's channel bytes row by row, top to bottom.

    Args:
        buffer: Oriented, not yet resized, pixel buffer.
        algorithm: hashlib algorithm name.
        rows_per_chunk: Rows fed to the hash per update.

    Returns:
        FingerprintResult holding the digest, or a HashError on failure.
    """
    hash_state = new_hash(algorithm)
    start_time = time.time()

    try:
        for chunk in buffer.iter_rows(rows_per_chunk):
            hash_state.update(chunk)
    except (OSError, ValueError, MemoryError) as e:
        logger.warning(f"Failed to hash image data: {e}")
        error = HashError(f"Failed to read pixel rows: {e}")
        error.__cause__ = e
        return FingerprintResult(error=error)

    digest = Digest(hash_state.digest())
    logger.debug(f"Hashed image ({digest}) in {time.time() - start_time:.3f}s")
    return FingerprintResult(digest=digest)
