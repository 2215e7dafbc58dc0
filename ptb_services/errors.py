from __future__ import annotations

"""
Error hierarchy and helpers for PTB Services.

Every failure the transaction-block pipeline can produce is an ``ApiError``
subclass, so the same exception serves three audiences:

- the core (validator / resolver / builder / engine) raises it,
- the execution engine folds it into a ``Failed`` result,
- the HTTP middleware renders it as RFC 7807 "problem+json".

Taxonomy
--------
- ``ArgumentValidationError`` : local, pre-network; always carries the
  offending command id and argument index once located.
- ``ObjectLookupError``       : pre-flight object existence checks, aggregated.
- ``BuildError``              : lowering the block into instructions.
- ``SimulationError``         : side-effect-free execution on the node.
- ``SubmissionError``         : real signed execution; terminal.
- ``RpcError``                : upstream transport failure.

Usage
-----
    from ptb_services.errors import BuildError, BuildErrorKind

    raise BuildError(BuildErrorKind.ARITY_MISMATCH, "expected 2 arguments, got 1")
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence


DEFAULT_ERROR_DOCS_BASE = "https://docs.ptb-services.dev/errors"


@dataclass
class ApiError(Exception):
    message: str
    status_code: int = 400
    code: str = "bad_request"
    details: Optional[Mapping[str, Any]] = None
    type_uri_base: str = DEFAULT_ERROR_DOCS_BASE

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    # --- RFC 7807 helpers -------------------------------------------------- #

    def type_uri(self) -> str:
        return f"{self.type_uri_base}#{self.code}"

    def title(self) -> str:
        return {
            "bad_request": "Bad Request",
            "validation_error": "Argument Validation Failed",
            "object_lookup_failed": "Object Lookup Failed",
            "build_error": "Transaction Build Failed",
            "simulation_failed": "Simulation Failed",
            "submission_failed": "Submission Failed",
            "signer_unavailable": "Signer Unavailable",
            "cancelled": "Execution Cancelled",
            "not_found": "Not Found",
            "rpc_error": "Upstream RPC Error",
        }.get(self.code, self.message or "Error")

    def to_problem(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "type": self.type_uri(),
            "title": self.title(),
            "status": self.status_code,
            "code": self.code,
            "detail": self.message,
        }
        if self.details:
            body["details"] = dict(self.details)
        return body


# ------------------------------ Generic types -------------------------------- #


class BadRequest(ApiError):
    def __init__(self, message: str = "Bad request", *, details: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, status_code=400, code="bad_request", details=details)


class NotFound(ApiError):
    def __init__(self, what: str = "Resource", *, details: Optional[Mapping[str, Any]] = None):
        super().__init__(message=f"{what} not found", status_code=404, code="not_found", details=details)


class RpcError(ApiError):
    def __init__(self, message: str = "Upstream RPC error", *, details: Optional[Mapping[str, Any]] = None, status: int = 502):
        super().__init__(message=message, status_code=status, code="rpc_error", details=details)


class SignerUnavailable(ApiError):
    def __init__(self, message: str = "No default signer is configured (set DEFAULT_SIGNER_KEY)"):
        super().__init__(message=message, status_code=503, code="signer_unavailable")


class AttemptCancelled(ApiError):
    def __init__(self, state: str):
        super().__init__(
            message=f"Execution attempt cancelled before {state}",
            status_code=409,
            code="cancelled",
            details={"state": state},
        )


# --------------------------- Argument validation ----------------------------- #


class ValidationKind(str, Enum):
    NOT_A_NUMBER = "NotANumber"
    OUT_OF_RANGE = "OutOfRange"
    INVALID_BOOLEAN = "InvalidBoolean"
    INVALID_ADDRESS_FORMAT = "InvalidAddressFormat"
    INVALID_VECTOR = "InvalidVector"
    MISSING_VALUE = "MissingValue"
    MISSING_REFERENCE = "MissingReference"


class ArgumentValidationError(ApiError):
    """
    A literal or reference failed local validation.

    ``path`` holds element indices for vector values (outermost first), so a
    failure in ``[[1, 2], [3, 999]]`` as ``vector<vector<u8>>`` has path (1, 1).
    """

    def __init__(
        self,
        kind: ValidationKind,
        message: str,
        *,
        value: Optional[str] = None,
        type_name: Optional[str] = None,
        command_id: Optional[str] = None,
        command_index: Optional[int] = None,
        argument_index: Optional[int] = None,
        path: Sequence[int] = (),
    ):
        self.kind = ValidationKind(kind)
        self.value = value
        self.type_name = type_name
        self.command_id = command_id
        self.command_index = command_index
        self.argument_index = argument_index
        self.path = tuple(path)
        details: Dict[str, Any] = {"kind": self.kind.value}
        if type_name is not None:
            details["type"] = type_name
        if value is not None:
            details["value"] = value
        if command_id is not None:
            details["commandId"] = command_id
        if command_index is not None:
            details["commandIndex"] = command_index
        if argument_index is not None:
            details["argumentIndex"] = argument_index
        if self.path:
            details["path"] = list(self.path)
        super().__init__(message=message, status_code=400, code="validation_error", details=details)

    def at_element(self, index: int) -> "ArgumentValidationError":
        """Prefix a vector element index onto the error path."""
        return ArgumentValidationError(
            self.kind,
            f"element {index}: {self.message}",
            value=self.value,
            type_name=self.type_name,
            path=(index, *self.path),
        )

    def located(
        self,
        *,
        command_id: Optional[str],
        command_index: Optional[int],
        argument_index: Optional[int],
    ) -> "ArgumentValidationError":
        where = f"command {command_id or command_index}, argument {argument_index}"
        return ArgumentValidationError(
            self.kind,
            f"{where}: {self.message}",
            value=self.value,
            type_name=self.type_name,
            command_id=command_id,
            command_index=command_index,
            argument_index=argument_index,
            path=self.path,
        )


# ------------------------------ Object lookups ------------------------------- #


class LookupKind(str, Enum):
    OBJECT_NOT_FOUND = "ObjectNotFound"
    LOOKUP_FAILED = "LookupFailed"


@dataclass(frozen=True)
class LookupFailure:
    object_id: str
    kind: LookupKind
    network: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "objectId": self.object_id,
            "kind": self.kind.value,
            "network": self.network,
            "message": self.message,
        }


class ObjectLookupError(ApiError):
    """One report for every object that failed its existence lookup."""

    def __init__(self, failures: Sequence[LookupFailure]):
        self.failures: List[LookupFailure] = list(failures)
        summary = "; ".join(f.message for f in self.failures)
        super().__init__(
            message=f"{len(self.failures)} object lookup(s) failed: {summary}",
            status_code=400,
            code="object_lookup_failed",
            details={"failures": [f.to_dict() for f in self.failures]},
        )


# --------------------------------- Building ---------------------------------- #


class BuildErrorKind(str, Enum):
    ARITY_MISMATCH = "ArityMismatch"
    DANGLING_REFERENCE = "DanglingReference"
    FORWARD_REFERENCE = "ForwardReference"
    INVALID_COMMAND = "InvalidCommand"


class BuildError(ApiError):
    def __init__(
        self,
        kind: BuildErrorKind,
        message: str,
        *,
        command_id: Optional[str] = None,
        command_index: Optional[int] = None,
        argument_index: Optional[int] = None,
    ):
        self.kind = BuildErrorKind(kind)
        self.command_id = command_id
        self.command_index = command_index
        self.argument_index = argument_index
        details: Dict[str, Any] = {"kind": self.kind.value}
        if command_id is not None:
            details["commandId"] = command_id
        if command_index is not None:
            details["commandIndex"] = command_index
        if argument_index is not None:
            details["argumentIndex"] = argument_index
        super().__init__(message=message, status_code=400, code="build_error", details=details)


# ------------------------------ Ledger execution ----------------------------- #


class SimulationErrorKind(str, Enum):
    DESERIALIZATION = "DeserializationError"
    NOT_FOUND = "NotFound"
    INVALID_ARGUMENT = "InvalidArgument"
    OTHER = "Other"


class SimulationError(ApiError):
    def __init__(self, kind: SimulationErrorKind, message: str, *, sender: Optional[str] = None):
        self.kind = SimulationErrorKind(kind)
        self.sender = sender
        details: Dict[str, Any] = {"kind": self.kind.value}
        if sender:
            details["sender"] = sender
        super().__init__(message=message, status_code=502, code="simulation_failed", details=details)


class SubmissionErrorKind(str, Enum):
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    PACKAGE_NOT_FOUND = "PackageNotFound"
    FUNCTION_NOT_FOUND = "FunctionNotFound"
    REJECTED = "Rejected"


SUBMISSION_HINTS: Dict[SubmissionErrorKind, str] = {
    SubmissionErrorKind.INSUFFICIENT_FUNDS: "Fund the signer account with enough gas coins and retry.",
    SubmissionErrorKind.PACKAGE_NOT_FOUND: "Make sure the package is published on the selected network.",
    SubmissionErrorKind.FUNCTION_NOT_FOUND: "Check the module and function names in the call target.",
}


def classify_submission_error(message: str) -> SubmissionErrorKind:
    m = message.lower()
    if "insufficient" in m and ("fund" in m or "gas" in m or "balance" in m):
        return SubmissionErrorKind.INSUFFICIENT_FUNDS
    if "package" in m and ("not found" in m or "does not exist" in m):
        return SubmissionErrorKind.PACKAGE_NOT_FOUND
    if "function" in m and ("not found" in m or "does not exist" in m):
        return SubmissionErrorKind.FUNCTION_NOT_FOUND
    return SubmissionErrorKind.REJECTED


class SubmissionError(ApiError):
    """The ledger rejected a signed transaction. Message is the ledger text plus a hint."""

    def __init__(self, ledger_message: str, *, digest: Optional[str] = None):
        self.kind = classify_submission_error(ledger_message)
        self.ledger_message = ledger_message
        self.digest = digest
        hint = SUBMISSION_HINTS.get(self.kind)
        message = f"{ledger_message} ({hint})" if hint else ledger_message
        details: Dict[str, Any] = {"kind": self.kind.value}
        if digest:
            details["digest"] = digest
        super().__init__(message=message, status_code=502, code="submission_failed", details=details)


__all__ = [
    "ApiError",
    "BadRequest",
    "NotFound",
    "RpcError",
    "SignerUnavailable",
    "AttemptCancelled",
    "ValidationKind",
    "ArgumentValidationError",
    "LookupKind",
    "LookupFailure",
    "ObjectLookupError",
    "BuildErrorKind",
    "BuildError",
    "SimulationErrorKind",
    "SimulationError",
    "SubmissionErrorKind",
    "SubmissionError",
    "SUBMISSION_HINTS",
    "classify_submission_error",
]
