"""
Utility helpers for the pipeline.

Re-exports:
- bytes: hex helpers
- hash: BLAKE2b-256 and TwoX storage-key hashing
- scale: mortal era window arithmetic
"""

from .bytes import ensure_bytes, from_hex, normalize_hex, to_hex
from .hash import blake2_256, blake2_256_hex, storage_key, twox128
from .scale import Era

__all__ = [
    # bytes
    "to_hex",
    "from_hex",
    "ensure_bytes",
    "normalize_hex",
    # hash
    "blake2_256",
    "blake2_256_hex",
    "twox128",
    "storage_key",
    # scale
    "Era",
]
