"""
Ledger & signer capabilities
============================

The execution engine depends only on the two protocols below, never on a
concrete transport. ``NodeRpc`` implements ``LedgerClient`` over JSON-RPC;
``Ed25519Signer`` implements ``Signer``. Tests swap in in-memory doubles.

Outcomes are plain frozen dataclasses. A ledger-level failure (the node
answered, but the simulation or transaction failed) is reported as an outcome
with ``status == "failure"``; only transport problems raise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

from ..ptb.builder import Instructions

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"


@dataclass(frozen=True)
class ObjectInfo:
    object_id: str
    exists: bool
    owner: Optional[str] = None
    # AddressOwner | ObjectOwner | Shared | Immutable
    owner_kind: Optional[str] = None
    version: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class SimulationOutcome:
    status: str
    return_values: Tuple[Tuple[bytes, str], ...] = ()
    gas_used: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS


@dataclass(frozen=True)
class SubmissionOutcome:
    status: str
    digest: Optional[str] = None
    gas_used: Optional[int] = None
    object_changes: Tuple[Dict[str, Any], ...] = ()
    events: Tuple[Dict[str, Any], ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS


@runtime_checkable
class LedgerClient(Protocol):
    async def resolve_object(self, object_id: str) -> ObjectInfo:
        ...

    async def build_transaction(self, instructions: Instructions, *, sender: str, gas_budget: int) -> bytes:
        ...

    async def simulate(self, tx_bytes: bytes, *, sender: str) -> SimulationOutcome:
        ...

    async def submit(self, tx_bytes: bytes, signature: str) -> SubmissionOutcome:
        ...


@runtime_checkable
class Signer(Protocol):
    @property
    def address(self) -> str:
        ...

    def sign(self, tx_bytes: bytes) -> str:
        """Serialized signature ready for ``LedgerClient.submit``."""
        ...


__all__ = [
    "STATUS_SUCCESS",
    "STATUS_FAILURE",
    "ObjectInfo",
    "SimulationOutcome",
    "SubmissionOutcome",
    "LedgerClient",
    "Signer",
]
