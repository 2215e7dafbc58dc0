r"""
Execution engine: one attempt = one frozen command list taken through

    Idle -> Validating -> Building -> Simulating -> Decoded -> Completed
                                   \             \-> Submitting -> Completed
                                    \-> Submitting -> Completed
    (any state) -> Failed

No state is entered twice. Every transition is logged with the attempt id.

Modes
-----
``simulate``  simulate only; never submit. A successful simulation without
              return values is still reported (empty ``return_values``).
``auto``      simulate first. Decodable return values make it a view call;
              anything else is submitted. Deserialization, missing-function
              and invalid-argument failures are terminal.
``execute``   skip simulation and submit.

Sender for simulation: the explicit sender, else the address owning the first
object argument, else the default signer, else the system address. A
deserialization failure with an inferred owner sender is retried exactly once
with the default signer.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..adapters.interfaces import LedgerClient, Signer, SimulationOutcome
from ..errors import (
    ApiError,
    AttemptCancelled,
    SignerUnavailable,
    SimulationError,
    SimulationErrorKind,
    SubmissionError,
)
from ..ptb.builder import build
from ..ptb.decode import DecodedValue, decode
from ..ptb.types import Command
from ..ptb.validate import validate_block
from .preflight import first_address_owner, prevalidate_objects

log = logging.getLogger(__name__)

NO_TRANSACTION_DIGEST = "view-function"
SYSTEM_SENDER = "0x" + "0" * 63 + "6"
DEFAULT_GAS_BUDGET = 50_000_000


class AttemptState(str, Enum):
    IDLE = "Idle"
    VALIDATING = "Validating"
    BUILDING = "Building"
    SIMULATING = "Simulating"
    DECODED = "Decoded"
    SUBMITTING = "Submitting"
    COMPLETED = "Completed"
    FAILED = "Failed"


class ExecutionMode(str, Enum):
    SIMULATE = "simulate"
    AUTO = "auto"
    EXECUTE = "execute"


class SenderSource(str, Enum):
    EXPLICIT = "explicit"
    OBJECT_OWNER = "object_owner"
    SIGNER = "signer"
    SYSTEM = "system"


_DESERIALIZATION_RE = re.compile(r"deserializ|invalid value", re.IGNORECASE)
_NOT_FOUND_RE = re.compile(
    r"not found|does not exist|notexists|function_not_found|functionnotfound|modulenotfound|linker_error",
    re.IGNORECASE,
)
_INVALID_ARGUMENT_RE = re.compile(
    r"invalid argument|invalidargument|type mismatch|typemismatch|arity|commandargumenterror|invalidusageofpurearg",
    re.IGNORECASE,
)


def classify_simulation_error(message: Optional[str]) -> SimulationErrorKind:
    m = message or ""
    if _DESERIALIZATION_RE.search(m):
        return SimulationErrorKind.DESERIALIZATION
    if _NOT_FOUND_RE.search(m):
        return SimulationErrorKind.NOT_FOUND
    if _INVALID_ARGUMENT_RE.search(m):
        return SimulationErrorKind.INVALID_ARGUMENT
    return SimulationErrorKind.OTHER


# Failures that say the call itself is wrong, not that it needs a real transaction.
TERMINAL_SIMULATION_KINDS = frozenset(
    {
        SimulationErrorKind.DESERIALIZATION,
        SimulationErrorKind.NOT_FOUND,
        SimulationErrorKind.INVALID_ARGUMENT,
    }
)


@dataclass(frozen=True)
class ExecutionResult:
    status: str
    state: AttemptState
    states: Tuple[AttemptState, ...]
    mode: ExecutionMode
    transaction_digest: Optional[str] = None
    gas_used: Optional[int] = None
    return_values: Tuple[DecodedValue, ...] = ()
    object_changes: Tuple[Dict[str, Any], ...] = ()
    events: Tuple[Dict[str, Any], ...] = ()
    sender: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None
    status_code: int = 200
    attempt_id: str = ""

    @property
    def success(self) -> bool:
        return self.status == "Success"

    @property
    def is_view(self) -> bool:
        return self.transaction_digest == NO_TRANSACTION_DIGEST


class CancelToken:
    """Cooperative cancellation, honoured at every state boundary before Submitting."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


# Entering any of these first checks the cancel token; nothing after Submitting does.
CANCELLABLE_STATES = frozenset(
    {
        AttemptState.VALIDATING,
        AttemptState.BUILDING,
        AttemptState.SIMULATING,
        AttemptState.SUBMITTING,
    }
)


@dataclass
class _Attempt:
    attempt_id: str
    mode: ExecutionMode
    cancel: Optional[CancelToken]
    states: List[AttemptState] = field(default_factory=lambda: [AttemptState.IDLE])

    @property
    def state(self) -> AttemptState:
        return self.states[-1]

    def to(self, new: AttemptState) -> None:
        if new in self.states:
            raise RuntimeError(f"attempt {self.attempt_id} cannot re-enter {new.value}")
        if new in CANCELLABLE_STATES and self.cancel is not None and self.cancel.cancelled:
            raise AttemptCancelled(new.value)
        log.info("attempt %s: %s -> %s", self.attempt_id, self.state.value, new.value)
        self.states.append(new)


class ExecutionEngine:
    def __init__(
        self,
        ledger: LedgerClient,
        signer: Optional[Signer] = None,
        *,
        network: str = "testnet",
        gas_budget: int = DEFAULT_GAS_BUDGET,
        metrics=None,
    ):
        self.ledger = ledger
        self.signer = signer
        self.network = network
        self.gas_budget = gas_budget
        self.metrics = metrics

    # ---------- public ----------

    async def run(
        self,
        commands: Sequence[Command],
        *,
        mode: ExecutionMode | str = ExecutionMode.AUTO,
        sender: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
    ) -> ExecutionResult:
        # Commands are frozen dataclasses; the tuple is this attempt's snapshot.
        snapshot: Tuple[Command, ...] = tuple(commands)
        att = _Attempt(uuid.uuid4().hex[:12], ExecutionMode(mode), cancel)
        log.info(
            "attempt %s: mode=%s network=%s commands=%d",
            att.attempt_id,
            att.mode.value,
            self.network,
            len(snapshot),
        )
        try:
            result = await self._run(att, snapshot, sender)
        except ApiError as exc:
            result = self._failed(att, exc)
        self._record(att.mode, "success" if result.success else "failure")
        return result

    # ---------- stages ----------

    async def _run(self, att: _Attempt, snapshot: Tuple[Command, ...], sender: Optional[str]) -> ExecutionResult:
        att.to(AttemptState.VALIDATING)
        errors = validate_block(snapshot)
        if errors:
            raise aggregate_errors(errors)
        objects = await prevalidate_objects(snapshot, self.ledger, network=self.network, metrics=self.metrics)

        att.to(AttemptState.BUILDING)
        instructions = build(snapshot)
        sim_sender, source = self._resolve_sender(sender, snapshot, objects)
        build_sender = self.signer.address if self.signer is not None else sim_sender
        tx_bytes = await self.ledger.build_transaction(
            instructions, sender=build_sender, gas_budget=self.gas_budget
        )

        if att.mode is ExecutionMode.EXECUTE:
            return await self._submit(att, tx_bytes)

        att.to(AttemptState.SIMULATING)
        outcome, sim_sender = await self._simulate(att, tx_bytes, sim_sender, source)

        if outcome.ok:
            values = tuple(decode(outcome.return_values))
            # A view call needs at least one value that decoded; raw fallbacks do not count.
            if att.mode is ExecutionMode.SIMULATE or any(not v.raw for v in values):
                att.to(AttemptState.DECODED)
                att.to(AttemptState.COMPLETED)
                return ExecutionResult(
                    status="Success",
                    state=att.state,
                    states=tuple(att.states),
                    mode=att.mode,
                    transaction_digest=NO_TRANSACTION_DIGEST,
                    gas_used=outcome.gas_used,
                    return_values=values,
                    sender=sim_sender,
                    attempt_id=att.attempt_id,
                )
            return await self._submit(att, tx_bytes)

        kind = classify_simulation_error(outcome.error)
        if att.mode is ExecutionMode.SIMULATE or kind in TERMINAL_SIMULATION_KINDS:
            raise SimulationError(kind, outcome.error or "simulation failed", sender=sim_sender)
        log.info(
            "attempt %s: simulation failed (%s), treating as state-changing and submitting",
            att.attempt_id,
            kind.value,
        )
        return await self._submit(att, tx_bytes)

    def _resolve_sender(self, explicit, snapshot, objects) -> Tuple[str, SenderSource]:
        if explicit:
            return explicit, SenderSource.EXPLICIT
        owner = first_address_owner(snapshot, objects)
        if owner:
            return owner, SenderSource.OBJECT_OWNER
        if self.signer is not None:
            return self.signer.address, SenderSource.SIGNER
        return SYSTEM_SENDER, SenderSource.SYSTEM

    async def _simulate(
        self, att: _Attempt, tx_bytes: bytes, sender: str, source: SenderSource
    ) -> Tuple[SimulationOutcome, str]:
        outcome = await self.ledger.simulate(tx_bytes, sender=sender)
        if outcome.ok:
            return outcome, sender
        if (
            classify_simulation_error(outcome.error) is SimulationErrorKind.DESERIALIZATION
            and source is SenderSource.OBJECT_OWNER
            and self.signer is not None
            and self.signer.address != sender
        ):
            log.info(
                "attempt %s: deserialization failure as %s; retrying once as default signer",
                att.attempt_id,
                sender,
            )
            if self.metrics is not None:
                self.metrics.record_retry()
            sender = self.signer.address
            outcome = await self.ledger.simulate(tx_bytes, sender=sender)
        return outcome, sender

    async def _submit(self, att: _Attempt, tx_bytes: bytes) -> ExecutionResult:
        if self.signer is None:
            raise SignerUnavailable()
        att.to(AttemptState.SUBMITTING)
        signature = self.signer.sign(tx_bytes)
        outcome = await self.ledger.submit(tx_bytes, signature)
        if not outcome.ok:
            raise SubmissionError(outcome.error or "transaction failed", digest=outcome.digest)
        att.to(AttemptState.COMPLETED)
        log.info("attempt %s: submitted digest=%s", att.attempt_id, outcome.digest)
        return ExecutionResult(
            status="Success",
            state=att.state,
            states=tuple(att.states),
            mode=att.mode,
            transaction_digest=outcome.digest,
            gas_used=outcome.gas_used,
            object_changes=outcome.object_changes,
            events=outcome.events,
            sender=self.signer.address,
            attempt_id=att.attempt_id,
        )

    # ---------- helpers ----------

    def _failed(self, att: _Attempt, exc: ApiError) -> ExecutionResult:
        failed_in = att.state
        att.to(AttemptState.FAILED)
        log.warning("attempt %s failed in %s: %s", att.attempt_id, failed_in.value, exc.message)
        details = dict(exc.details or {})
        details.setdefault("state", failed_in.value)
        return ExecutionResult(
            status="Failure",
            state=att.state,
            states=tuple(att.states),
            mode=att.mode,
            error=exc.message,
            error_code=exc.code,
            error_details=details,
            status_code=exc.status_code,
            sender=getattr(exc, "sender", None),
            attempt_id=att.attempt_id,
        )

    def _record(self, mode: ExecutionMode, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_execution(mode.value, outcome)


def aggregate_errors(errors: List[ApiError]) -> ApiError:
    """The first error, carrying the full list when there is more than one."""
    first = errors[0]
    if len(errors) > 1:
        details = dict(first.details or {})
        details["errors"] = [e.to_problem() for e in errors]
        first.details = details
    return first


__all__ = [
    "AttemptState",
    "ExecutionMode",
    "ExecutionResult",
    "ExecutionEngine",
    "CancelToken",
    "NO_TRANSACTION_DIGEST",
    "SYSTEM_SENDER",
    "classify_simulation_error",
    "TERMINAL_SIMULATION_KINDS",
    "aggregate_errors",
]
