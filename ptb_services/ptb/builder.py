"""
Lowering a command list into transaction instructions.

The builder walks commands in order, keeping a table of the result handles
each command produced, and emits one instruction per command. Inputs are
collected on the side: pure values as BCS bytes, objects by id (each id at
most once). Any problem aborts the whole build with ``BuildError``; a
partially lowered block is never returned.

Wire form (``Instructions.to_wire()``)::

    {
      "inputs":   [{"kind": "pure", "type": "u64", "bytes": "<base64>"},
                   {"kind": "object", "objectId": "0x..."}],
      "commands": [{"SplitCoins": [{"GasCoin": true}, [{"Input": 0}]]},
                   {"TransferObjects": [[{"NestedResult": [0, 0]}], {"Input": 1}]}]
    }
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..errors import ArgumentValidationError, BuildError, BuildErrorKind
from .types import (
    Argument,
    Command,
    CommandKind,
    Gas,
    Literal,
    MergeCoins,
    MoveCall,
    MoveType,
    ObjectRef,
    ResultRef,
    SplitCoins,
    TransferObjects,
    Unset,
    requires_object_id,
    user_parameters,
)
from .validate import command_shape_problem, effective_type, validate

log = logging.getLogger(__name__)


# ----------------------------- Handles --------------------------------------


@dataclass(frozen=True)
class GasCoinHandle:
    def to_wire(self) -> Dict[str, Any]:
        return {"GasCoin": True}


@dataclass(frozen=True)
class InputHandle:
    index: int

    def to_wire(self) -> Dict[str, Any]:
        return {"Input": self.index}


@dataclass(frozen=True)
class ResultHandle:
    index: int

    def to_wire(self) -> Dict[str, Any]:
        return {"Result": self.index}


@dataclass(frozen=True)
class NestedResultHandle:
    index: int
    result: int

    def to_wire(self) -> Dict[str, Any]:
        return {"NestedResult": [self.index, self.result]}


Handle = Union[GasCoinHandle, InputHandle, ResultHandle, NestedResultHandle]
GAS_COIN = GasCoinHandle()


# ----------------------------- Inputs ---------------------------------------


@dataclass(frozen=True)
class PureInput:
    data: bytes
    type_name: str

    def to_wire(self) -> Dict[str, Any]:
        return {"kind": "pure", "type": self.type_name, "bytes": base64.b64encode(self.data).decode("ascii")}


@dataclass(frozen=True)
class ObjectInput:
    object_id: str

    def to_wire(self) -> Dict[str, Any]:
        return {"kind": "object", "objectId": self.object_id}


Input = Union[PureInput, ObjectInput]


# ----------------------------- Instructions ---------------------------------


@dataclass(frozen=True)
class Instruction:
    """
    One lowered command. ``primary`` is the coin (SplitCoins), destination
    (MergeCoins) or recipient (TransferObjects); ``arguments`` holds the rest.
    """

    kind: CommandKind
    arguments: Tuple[Handle, ...]
    primary: Optional[Handle] = None
    target: Optional[str] = None
    type_arguments: Tuple[str, ...] = ()

    def to_wire(self) -> Dict[str, Any]:
        args = [h.to_wire() for h in self.arguments]
        if self.kind is CommandKind.MOVE_CALL:
            package, module, function = (self.target or "").split("::")
            return {
                "MoveCall": {
                    "package": package,
                    "module": module,
                    "function": function,
                    "typeArguments": list(self.type_arguments),
                    "arguments": args,
                }
            }
        assert self.primary is not None
        if self.kind is CommandKind.TRANSFER_OBJECTS:
            return {"TransferObjects": [args, self.primary.to_wire()]}
        return {self.kind.value: [self.primary.to_wire(), args]}


@dataclass(frozen=True)
class Instructions:
    inputs: Tuple[Input, ...]
    commands: Tuple[Instruction, ...]

    @property
    def object_ids(self) -> Tuple[str, ...]:
        return tuple(i.object_id for i in self.inputs if isinstance(i, ObjectInput))

    def to_wire(self) -> Dict[str, Any]:
        return {
            "inputs": [i.to_wire() for i in self.inputs],
            "commands": [c.to_wire() for c in self.commands],
        }


# ----------------------------- Builder --------------------------------------


class TransactionBuilder:
    def __init__(self, gas_handle: Handle = GAS_COIN):
        self._gas = gas_handle
        self._inputs: List[Input] = []
        self._objects: Dict[str, int] = {}
        self._results: Dict[int, List[Handle]] = {}

    def _object(self, object_id: str) -> InputHandle:
        key = object_id.lower()
        if key not in self._objects:
            self._objects[key] = len(self._inputs)
            self._inputs.append(ObjectInput(key))
        return InputHandle(self._objects[key])

    def _pure(self, data: bytes, type_name: str) -> InputHandle:
        self._inputs.append(PureInput(data, type_name))
        return InputHandle(len(self._inputs) - 1)

    def _lower(
        self,
        arg: Argument,
        slot: Optional[MoveType],
        cmd: Command,
        ci: int,
        ai: int,
    ) -> Handle:
        where = dict(command_id=cmd.id, command_index=ci, argument_index=ai)
        if isinstance(arg, Gas):
            return self._gas
        if isinstance(arg, ObjectRef):
            try:
                validate(arg.object_id, "objectRef")
            except ArgumentValidationError as e:
                raise e.located(**where) from None
            return self._object(arg.object_id)
        if isinstance(arg, Literal):
            t = effective_type(arg, slot)
            try:
                typed = validate(arg.value, t)
            except ArgumentValidationError as e:
                raise e.located(**where) from None
            if requires_object_id(t):
                return self._object(typed.value)
            return self._pure(typed.to_bcs(), str(t))
        if isinstance(arg, Unset):
            raise BuildError(
                BuildErrorKind.DANGLING_REFERENCE,
                f"command {cmd.id}, argument {ai} has no value ({arg.reason})",
                **where,
            )
        if isinstance(arg, ResultRef):
            src = arg.from_command_index
            if src >= ci:
                raise BuildError(
                    BuildErrorKind.FORWARD_REFERENCE,
                    f"command {cmd.id}, argument {ai}: {arg} does not point at an earlier command",
                    **where,
                )
            produced = self._results.get(src)
            idx = arg.result_index or 0
            if not produced or not 0 <= idx < len(produced):
                raise BuildError(
                    BuildErrorKind.DANGLING_REFERENCE,
                    f"command {cmd.id}, argument {ai}: {arg} does not name an existing result",
                    **where,
                )
            return produced[idx]
        raise BuildError(BuildErrorKind.INVALID_COMMAND, f"unsupported argument {arg!r}", **where)

    def _check_arity(self, cmd: MoveCall, ci: int) -> None:
        if cmd.parameters is None:
            return
        expected = len(user_parameters(cmd.parameters))
        if len(cmd.arguments) != expected:
            raise BuildError(
                BuildErrorKind.ARITY_MISMATCH,
                f"command {cmd.id}: {cmd.target} takes {expected} argument(s), got {len(cmd.arguments)}",
                command_id=cmd.id,
                command_index=ci,
            )

    def build(self, commands: Sequence[Command]) -> Instructions:
        if not commands:
            raise BuildError(BuildErrorKind.INVALID_COMMAND, "a transaction block needs at least one command")

        lowered: List[Instruction] = []
        for ci, cmd in enumerate(commands):
            shape = command_shape_problem(cmd)
            if shape is not None:
                raise BuildError(
                    BuildErrorKind.INVALID_COMMAND,
                    f"command {cmd.id} ({cmd.kind.value}): {shape}",
                    command_id=cmd.id,
                    command_index=ci,
                )
            if isinstance(cmd, MoveCall):
                self._check_arity(cmd, ci)

            slots = cmd.slot_types()
            handles = [self._lower(a, slots[ai], cmd, ci, ai) for ai, a in enumerate(cmd.arguments_flat())]

            if isinstance(cmd, MoveCall):
                lowered.append(
                    Instruction(cmd.kind, tuple(handles), target=cmd.target, type_arguments=cmd.type_arguments)
                )
                self._results[ci] = [ResultHandle(ci)]
            elif isinstance(cmd, TransferObjects):
                lowered.append(Instruction(cmd.kind, tuple(handles[:-1]), primary=handles[-1]))
                self._results[ci] = []
            elif isinstance(cmd, SplitCoins):
                lowered.append(Instruction(cmd.kind, tuple(handles[1:]), primary=handles[0]))
                self._results[ci] = [NestedResultHandle(ci, j) for j in range(len(cmd.amounts))]
            elif isinstance(cmd, MergeCoins):
                lowered.append(Instruction(cmd.kind, tuple(handles[1:]), primary=handles[0]))
                self._results[ci] = []

        log.debug("built %d instruction(s) with %d input(s)", len(lowered), len(self._inputs))
        return Instructions(inputs=tuple(self._inputs), commands=tuple(lowered))


def build(commands: Sequence[Command], gas_handle: Handle = GAS_COIN) -> Instructions:
    return TransactionBuilder(gas_handle).build(commands)


__all__ = [
    "GasCoinHandle",
    "InputHandle",
    "ResultHandle",
    "NestedResultHandle",
    "Handle",
    "GAS_COIN",
    "PureInput",
    "ObjectInput",
    "Input",
    "Instruction",
    "Instructions",
    "TransactionBuilder",
    "build",
]
