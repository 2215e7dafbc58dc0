"""Type inference for untyped (bare string) MoveCall arguments."""

from __future__ import annotations

import re
from typing import Union

from .types import Address, Bool, Literal, ObjectRef, String, UInt, is_hex64

_DECIMAL_RE = re.compile(r"^[0-9]+$")
_SHORT_HEX_RE = re.compile(r"^0x[0-9a-fA-F]{1,63}$")


def coerce_legacy(raw: str) -> Union[Literal, ObjectRef]:
    """
    Guess a Move type for ``raw``.

    decimal -> u64, true/false (any case) -> bool, 66-char hex id -> object,
    shorter 0x hex -> address (left-padded to 32 bytes), anything else -> string.
    """
    s = raw.strip()
    if _DECIMAL_RE.match(s):
        return Literal(s, UInt(64))
    if s.lower() in ("true", "false"):
        return Literal(s.lower(), Bool())
    if is_hex64(s):
        return ObjectRef(s.lower())
    if _SHORT_HEX_RE.match(s):
        return Literal("0x" + s[2:].lower().rjust(64, "0"), Address())
    return Literal(raw, String())


__all__ = ["coerce_legacy"]
