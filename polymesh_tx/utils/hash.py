from __future__ import annotations

import hashlib

import xxhash

from .bytes import BytesLike, ensure_bytes, to_hex


# --- BLAKE2b-256 --------------------------------------------------------------
# Substrate hashes extrinsics, block headers and oversized signing payloads
# with 32-byte BLAKE2b. hashlib ships it natively.

def blake2_256(data: BytesLike) -> bytes:
    """Return the 32-byte BLAKE2b digest of *data*."""
    return hashlib.blake2b(ensure_bytes(data), digest_size=32).digest()


def blake2_256_hex(data: BytesLike) -> str:
    return to_hex(blake2_256(data))


# --- TwoX (xxHash64) ----------------------------------------------------------
# Storage keys for plain storage items are twox128(pallet) ++ twox128(item).

def twox128(data: BytesLike) -> bytes:
    """Two xxHash64 rounds (seeds 0 and 1), each little-endian, concatenated."""
    raw = ensure_bytes(data)
    out = b""
    for seed in (0, 1):
        out += xxhash.xxh64(raw, seed=seed).intdigest().to_bytes(8, "little")
    return out


def storage_key(pallet: str, item: str) -> str:
    """Hex storage key of a plain (unkeyed) storage item, e.g. System.Events."""
    return to_hex(twox128(pallet.encode("utf-8")) + twox128(item.encode("utf-8")))


__all__ = [
    "blake2_256",
    "blake2_256_hex",
    "twox128",
    "storage_key",
]
