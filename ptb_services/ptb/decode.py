"""
Decoding simulated return values.

Each value comes back from the node as ``(bytes, type_string)``. Decoding
never raises: a value that cannot be interpreted is reported with
``raw=True`` and, for fixed-width types of the wrong length, an ``error``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .bcs import decode_uint, uleb128_decode
from .types import Address, Bool, ObjectId, String, UInt, Vector, parse_move_type

ByteLike = Union[bytes, bytearray, Sequence[int]]


@dataclass(frozen=True)
class DecodedValue:
    type: str
    value: Any
    raw: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        value = list(self.value) if isinstance(self.value, (bytes, bytearray)) else self.value
        # u128/u256 overflow JSON number precision in most clients.
        if isinstance(value, int) and not isinstance(value, bool) and value > 2**53 - 1:
            value = str(value)
        out: Dict[str, Any] = {"type": self.type, "value": value, "raw": self.raw}
        if self.error:
            out["error"] = self.error
        return out


def _fixed_width(t) -> Optional[int]:
    if isinstance(t, UInt):
        return t.byte_width
    if isinstance(t, Bool):
        return 1
    if isinstance(t, (Address, ObjectId)):
        return 32
    return None


def decode_value(data: ByteLike, type_str: str) -> DecodedValue:
    raw = bytes(data)
    try:
        t = parse_move_type(type_str)
    except ValueError:
        return DecodedValue(type_str, raw, raw=True)

    width = _fixed_width(t)
    if width is not None:
        if len(raw) != width:
            return DecodedValue(
                type_str,
                raw,
                raw=True,
                error=f"expected {width} byte(s) for {t}, got {len(raw)}",
            )
        if isinstance(t, UInt):
            return DecodedValue(type_str, decode_uint(raw))
        if isinstance(t, Bool):
            return DecodedValue(type_str, raw[0] == 1)
        return DecodedValue(type_str, "0x" + raw.hex())

    if isinstance(t, String):
        try:
            n, pos = uleb128_decode(raw)
            if pos + n != len(raw):
                raise ValueError("length prefix does not match payload")
            return DecodedValue(type_str, raw[pos:].decode("utf-8"))
        except ValueError:
            return DecodedValue(type_str, raw, raw=True)

    if isinstance(t, Vector) and isinstance(t.element, UInt) and t.element.bits == 8:
        try:
            n, pos = uleb128_decode(raw)
            if pos + n != len(raw):
                raise ValueError("length prefix does not match payload")
            return DecodedValue(type_str, "0x" + raw[pos:].hex())
        except ValueError:
            return DecodedValue(type_str, raw, raw=True)

    return DecodedValue(type_str, raw, raw=True)


def decode(pairs: Iterable[Tuple[ByteLike, str]]) -> List[DecodedValue]:
    """Decode every ``(bytes, type)`` pair; one bad element never affects the others."""
    return [decode_value(data, type_str) for data, type_str in pairs]


__all__ = ["DecodedValue", "decode", "decode_value"]
