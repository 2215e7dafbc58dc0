"""
Version helpers for PTB Services.

- ``__version__`` is the semantic version for packaging.
- ``build_meta()`` adds the commit the process was built from, when CI
  exposes it through ``GIT_COMMIT`` or ``BUILD_SHA``.
"""

from __future__ import annotations

import os
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

__version__ = "0.1.0"

_STARTED_AT = int(time.time())


@dataclass(frozen=True)
class BuildMeta:
    version: str
    commit: Optional[str]
    started_at: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _commit() -> Optional[str]:
    sha = os.getenv("GIT_COMMIT") or os.getenv("BUILD_SHA")
    return sha[:12] if sha else None


def build_version(base: str = __version__) -> str:
    """PEP 440 version with the short commit attached when known, e.g. ``0.1.0+gabc1234``."""
    commit = _commit()
    return f"{base}+g{commit}" if commit else base


def build_meta() -> BuildMeta:
    return BuildMeta(version=build_version(), commit=_commit(), started_at=_STARTED_AT)


__all__ = ["__version__", "BuildMeta", "build_version", "build_meta"]
