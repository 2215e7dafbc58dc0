"""Adapters to the outside world: the ledger node (JSON-RPC) and the default signer."""

from .interfaces import LedgerClient, ObjectInfo, Signer, SimulationOutcome, SubmissionOutcome

__all__ = ["LedgerClient", "ObjectInfo", "Signer", "SimulationOutcome", "SubmissionOutcome"]
