from __future__ import annotations

"""
Common API model types.

- Hex64:    0x + 64 hex chars (an address or object id), normalized to lowercase.
- Network:  one of the configured ledger networks.

Validation here is shallow: argument values inside commands are
checked by ``ptb_services.ptb.validate`` so their errors carry command and
argument positions.
"""

from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict

from ..ptb.types import is_hex64


def _validate_hex64(v: str) -> str:
    if not isinstance(v, str):
        raise TypeError("value must be a string")
    s = v.strip()
    if not is_hex64(s):
        raise ValueError("must be 0x followed by 64 hex characters")
    return s.lower()


Hex64 = Annotated[str, AfterValidator(_validate_hex64)]
Network = Literal["testnet", "mainnet"]


class ApiModel(BaseModel):
    """Base for request/response bodies: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", str_strip_whitespace=False)


__all__ = ["Hex64", "Network", "ApiModel"]
