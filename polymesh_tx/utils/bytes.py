"""
Hex and byte helpers.

Substrate nodes speak lowercase 0x-prefixed hex for hashes, keys and
extrinsics, while callers hand us seeds and keys as either raw bytes or hex.
Everything funnels through `ensure_bytes` on the way in and `to_hex` on the
way out, so hashes from different sources compare equal after
`normalize_hex`.
"""

from __future__ import annotations

from typing import Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]
HexOrBytes = Union[BytesLike, str]


def from_hex(s: str) -> bytes:
    if not isinstance(s, str):
        raise TypeError(f"expected a hex string, got {type(s).__name__}")
    body = s[2:] if s[:2] in ("0x", "0X") else s
    if len(body) % 2:
        raise ValueError(f"odd-length hex: {s!r}")
    try:
        return bytes.fromhex(body)
    except ValueError as e:
        raise ValueError(f"not hex: {s!r}") from e


def ensure_bytes(value: HexOrBytes, length: Optional[int] = None, *, what: str = "value") -> bytes:
    """Coerce bytes-like or hex input to bytes, optionally requiring an exact width."""
    if isinstance(value, str):
        out = from_hex(value)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        out = bytes(value)
    else:
        raise TypeError(f"{what} must be bytes or hex, got {type(value).__name__}")
    if length is not None and len(out) != length:
        raise ValueError(f"{what} must be {length} bytes, got {len(out)}")
    return out


def to_hex(b: BytesLike) -> str:
    return "0x" + bytes(b).hex()


def normalize_hex(value: HexOrBytes, length: Optional[int] = None) -> str:
    """Lowercase 0x form, for comparing block and extrinsic hashes."""
    return to_hex(ensure_bytes(value, length, what="hash"))


__all__ = ["BytesLike", "HexOrBytes", "ensure_bytes", "from_hex", "normalize_hex", "to_hex"]
