"""
Minimal BCS helpers for pure transaction arguments.

Only the pieces pure inputs and return values need: ULEB128 length prefixes
and fixed-width little-endian unsigned integers.
"""

from __future__ import annotations

from typing import Tuple


def uleb128_encode(n: int) -> bytes:
    if n < 0:
        raise ValueError("ULEB128 cannot encode negative values")
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def uleb128_decode(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Return ``(value, next_offset)``."""
    value = 0
    shift = 0
    pos = offset
    while True:
        if pos >= len(data):
            raise ValueError("truncated ULEB128 length prefix")
        byte = data[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, pos
        shift += 7
        if shift > 63:
            raise ValueError("ULEB128 length prefix too long")


def encode_uint(value: int, width: int) -> bytes:
    return int(value).to_bytes(width, "little", signed=False)


def decode_uint(data: bytes) -> int:
    # Arbitrary precision accumulation, u256 fits without loss.
    return int.from_bytes(data, "little", signed=False)


def encode_bytes(data: bytes) -> bytes:
    return uleb128_encode(len(data)) + data


__all__ = ["uleb128_encode", "uleb128_decode", "encode_uint", "decode_uint", "encode_bytes"]
