from __future__ import annotations

"""
Wire models for transaction blocks.

Arguments and commands are discriminated unions keyed by ``type``:

    {"type": "gas"}
    {"type": "object", "objectId": "0x…"}
    {"type": "input", "value": "42", "moveType": "u64"}
    {"type": "result", "resultFrom": 0, "resultIndex": 1}
    {"type": "unset"}

    {"type": "MoveCall", "target": "0x2::coin::value", "arguments": [...], "parameters": ["&Coin<T>"]}
    {"type": "TransferObjects", "objects": [...], "recipient": {...}}
    {"type": "SplitCoins", "coin": {...}, "amounts": [...]}
    {"type": "MergeCoins", "destination": {...}, "sources": [...]}

MoveCall arguments may also be bare strings; their type is inferred by
``coerce_legacy``. Values are kept as text: the core validator reports bad
values with command and argument positions, which a 422 from pydantic cannot.
"""

import json
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BeforeValidator, Field

from ..errors import BadRequest
from ..ptb import types as t
from ..ptb.decode import DecodedValue
from ..ptb.legacy import coerce_legacy
from ..ptb.resolver import BlockReport, CommandBlock, ResultRefCandidate, available_references
from ..services.execute import ExecutionMode, ExecutionResult
from .common import ApiModel, Hex64, Network


def _as_text(v: Any) -> Any:
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int):
        return str(v)
    if isinstance(v, (list, tuple)):
        return json.dumps(list(v))
    return v


InputValue = Annotated[str, BeforeValidator(_as_text)]


def _parse_type(text: str, where: str) -> t.MoveType:
    try:
        return t.parse_move_type(text)
    except ValueError as e:
        raise BadRequest(f"{where}: {e}") from e


# ------------------------------- Arguments ---------------------------------- #


class GasArgument(ApiModel):
    type: Literal["gas"] = "gas"

    def to_argument(self, slot: Optional[t.MoveType] = None) -> t.Argument:
        return t.GAS


class ObjectArgument(ApiModel):
    type: Literal["object"] = "object"
    object_id: str = Field(..., alias="objectId", description="0x-prefixed 32-byte object id")

    def to_argument(self, slot: Optional[t.MoveType] = None) -> t.Argument:
        return t.ObjectRef(self.object_id)


class InputArgument(ApiModel):
    type: Literal["input"] = "input"
    value: InputValue = Field(..., description="Literal value as text; vectors as a JSON array")
    move_type: Optional[str] = Field(
        default=None,
        alias="moveType",
        description="Declared Move type; defaults to the slot type, else inferred",
    )

    def to_argument(self, slot: Optional[t.MoveType] = None) -> t.Argument:
        if self.move_type:
            return t.Literal(self.value, _parse_type(self.move_type, "moveType"))
        if slot is not None:
            return t.Literal(self.value, slot)
        return coerce_legacy(self.value)


class ResultArgument(ApiModel):
    type: Literal["result"] = "result"
    result_from: int = Field(..., alias="resultFrom", ge=0, description="Index of the producing command")
    result_index: Optional[int] = Field(default=None, alias="resultIndex", ge=0)

    def to_argument(self, slot: Optional[t.MoveType] = None) -> t.Argument:
        return t.ResultRef(self.result_from, self.result_index)


class UnsetArgument(ApiModel):
    type: Literal["unset"] = "unset"
    reason: Optional[str] = None

    def to_argument(self, slot: Optional[t.MoveType] = None) -> t.Argument:
        return t.Unset(self.reason or "needs input")


ArgumentModel = Annotated[
    Union[GasArgument, ObjectArgument, InputArgument, ResultArgument, UnsetArgument],
    Field(discriminator="type"),
]
MoveCallArgument = Union[ArgumentModel, str]


def argument_to_model(arg: t.Argument) -> ArgumentModel:
    if isinstance(arg, t.Gas):
        return GasArgument()
    if isinstance(arg, t.ObjectRef):
        return ObjectArgument(objectId=arg.object_id)
    if isinstance(arg, t.Literal):
        return InputArgument(value=arg.value, moveType=str(arg.declared_type))
    if isinstance(arg, t.ResultRef):
        return ResultArgument(resultFrom=arg.from_command_index, resultIndex=arg.result_index)
    return UnsetArgument(reason=arg.reason)


def _convert(model: Union[ArgumentModel, str], slot: Optional[t.MoveType]) -> t.Argument:
    if isinstance(model, str):
        if slot is not None:
            return t.Literal(model, slot)
        return coerce_legacy(model)
    return model.to_argument(slot)


# -------------------------------- Commands ---------------------------------- #


class MoveCallModel(ApiModel):
    type: Literal["MoveCall"] = "MoveCall"
    id: Optional[str] = None
    target: str = Field(..., description="package::module::function")
    arguments: List[MoveCallArgument] = Field(default_factory=list)
    type_arguments: List[str] = Field(default_factory=list, alias="typeArguments")
    parameters: Optional[List[str]] = Field(
        default=None,
        description="Declared parameter types; without them arguments are typed by inference",
    )
    description: Optional[str] = None

    def to_command(self, index: int) -> t.MoveCall:
        cid = self.id or f"cmd-{index + 1}"
        params = None
        if self.parameters is not None:
            params = tuple(_parse_type(p, f"command {cid} parameter {i}") for i, p in enumerate(self.parameters))
        slots = t.user_parameters(params) if params is not None else ()
        args = tuple(
            _convert(a, slots[i] if i < len(slots) else None) for i, a in enumerate(self.arguments)
        )
        return t.MoveCall(
            id=cid,
            target=self.target.strip(),
            arguments=args,
            type_arguments=tuple(self.type_arguments),
            parameters=params,
            description=self.description,
        )


class TransferObjectsModel(ApiModel):
    type: Literal["TransferObjects"] = "TransferObjects"
    id: Optional[str] = None
    objects: List[ArgumentModel]
    recipient: ArgumentModel
    description: Optional[str] = None

    def to_command(self, index: int) -> t.TransferObjects:
        return t.TransferObjects(
            id=self.id or f"cmd-{index + 1}",
            objects=tuple(o.to_argument() for o in self.objects),
            recipient=self.recipient.to_argument(t.Address()),
            description=self.description,
        )


class SplitCoinsModel(ApiModel):
    type: Literal["SplitCoins"] = "SplitCoins"
    id: Optional[str] = None
    coin: ArgumentModel
    amounts: List[ArgumentModel]
    description: Optional[str] = None

    def to_command(self, index: int) -> t.SplitCoins:
        return t.SplitCoins(
            id=self.id or f"cmd-{index + 1}",
            coin=self.coin.to_argument(),
            amounts=tuple(a.to_argument(t.UInt(64)) for a in self.amounts),
            description=self.description,
        )


class MergeCoinsModel(ApiModel):
    type: Literal["MergeCoins"] = "MergeCoins"
    id: Optional[str] = None
    destination: ArgumentModel
    sources: List[ArgumentModel]
    description: Optional[str] = None

    def to_command(self, index: int) -> t.MergeCoins:
        return t.MergeCoins(
            id=self.id or f"cmd-{index + 1}",
            destination=self.destination.to_argument(),
            sources=tuple(s.to_argument() for s in self.sources),
            description=self.description,
        )


CommandModel = Annotated[
    Union[MoveCallModel, TransferObjectsModel, SplitCoinsModel, MergeCoinsModel],
    Field(discriminator="type"),
]


def to_commands(models: Sequence[CommandModel]) -> List[t.Command]:
    return [m.to_command(i) for i, m in enumerate(models)]


def command_to_model(cmd: t.Command) -> CommandModel:
    if isinstance(cmd, t.MoveCall):
        return MoveCallModel(
            id=cmd.id,
            target=cmd.target,
            arguments=[argument_to_model(a) for a in cmd.arguments],
            typeArguments=list(cmd.type_arguments),
            parameters=None if cmd.parameters is None else [str(p) for p in cmd.parameters],
            description=cmd.description,
        )
    if isinstance(cmd, t.TransferObjects):
        return TransferObjectsModel(
            id=cmd.id,
            objects=[argument_to_model(a) for a in cmd.objects],
            recipient=argument_to_model(cmd.recipient),
            description=cmd.description,
        )
    if isinstance(cmd, t.SplitCoins):
        return SplitCoinsModel(
            id=cmd.id,
            coin=argument_to_model(cmd.coin),
            amounts=[argument_to_model(a) for a in cmd.amounts],
            description=cmd.description,
        )
    return MergeCoinsModel(
        id=cmd.id,
        destination=argument_to_model(cmd.destination),
        sources=[argument_to_model(a) for a in cmd.sources],
        description=cmd.description,
    )


# -------------------------------- Requests ---------------------------------- #


class BlockRequest(ApiModel):
    commands: List[CommandModel] = Field(..., description="Commands in execution order")

    def to_commands(self) -> List[t.Command]:
        return to_commands(self.commands)


class ExecuteRequest(BlockRequest):
    network: Optional[Network] = Field(default=None, description="Defaults to the service's network")
    mode: ExecutionMode = Field(default=ExecutionMode.AUTO, description="simulate | auto | execute")
    sender: Optional[Hex64] = Field(default=None, description="Sender used for simulation")


class TypedViewArgument(ApiModel):
    value: InputValue
    type: str = Field(..., description="Move type of the value")


class ViewRequest(ApiModel):
    """Single read-only function call, simulated and decoded."""

    function_target: str = Field(..., alias="functionTarget", description="package::module::function")
    function_args: List[Union[TypedViewArgument, str]] = Field(default_factory=list, alias="functionArgs")
    type_arguments: List[str] = Field(default_factory=list, alias="typeArguments")
    network: Optional[Network] = None
    sender: Optional[Hex64] = None

    def to_commands(self) -> List[t.Command]:
        args: List[t.Argument] = []
        for i, a in enumerate(self.function_args):
            if isinstance(a, str):
                args.append(coerce_legacy(a))
            else:
                args.append(t.Literal(a.value, _parse_type(a.type, f"functionArgs[{i}]")))
        return [
            t.MoveCall(
                id="cmd-1",
                target=self.function_target.strip(),
                arguments=tuple(args),
                type_arguments=tuple(self.type_arguments),
            )
        ]


# -------------------------------- Responses --------------------------------- #


class DecodedValueModel(ApiModel):
    type: str
    value: Any = None
    raw: bool = False
    error: Optional[str] = None

    @classmethod
    def from_decoded(cls, v: DecodedValue) -> "DecodedValueModel":
        return cls(**v.to_dict())


class ExecuteResponse(ApiModel):
    success: bool
    state: str
    states: List[str] = Field(default_factory=list)
    mode: str
    transaction_digest: Optional[str] = Field(default=None, alias="transactionDigest")
    gas_used: Optional[int] = Field(default=None, alias="gasUsed")
    return_values: List[DecodedValueModel] = Field(default_factory=list, alias="returnValues")
    object_changes: List[Dict[str, Any]] = Field(default_factory=list, alias="objectChanges")
    events: List[Dict[str, Any]] = Field(default_factory=list)
    sender: Optional[str] = None
    attempt_id: str = Field(..., alias="attemptId")

    @classmethod
    def from_result(cls, res: ExecutionResult) -> "ExecuteResponse":
        return cls(
            success=res.success,
            state=res.state.value,
            states=[s.value for s in res.states],
            mode=res.mode.value,
            transactionDigest=res.transaction_digest,
            gasUsed=res.gas_used,
            returnValues=[DecodedValueModel.from_decoded(v) for v in res.return_values],
            objectChanges=list(res.object_changes),
            events=list(res.events),
            sender=res.sender,
            attemptId=res.attempt_id,
        )


class ReferenceCandidateModel(ApiModel):
    label: str
    result_from: int = Field(..., alias="resultFrom")
    result_index: Optional[int] = Field(default=None, alias="resultIndex")
    command_id: str = Field(..., alias="commandId")
    kind: str

    @classmethod
    def from_candidate(cls, c: ResultRefCandidate) -> "ReferenceCandidateModel":
        return cls(
            label=c.label,
            resultFrom=c.from_command_index,
            resultIndex=c.result_index,
            commandId=c.command_id,
            kind=c.kind.value,
        )


class ValidateResponse(ApiModel):
    valid: bool
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    available_references: List[List[ReferenceCandidateModel]] = Field(
        default_factory=list,
        alias="availableReferences",
        description="Per position: results a command placed there may consume",
    )

    @classmethod
    def from_report(cls, report: BlockReport, commands: Sequence[t.Command]) -> "ValidateResponse":
        return cls(
            valid=report.is_valid,
            errors=[e.to_problem() for e in report.errors],
            warnings=list(report.warnings),
            availableReferences=[
                [ReferenceCandidateModel.from_candidate(c) for c in available_references(commands[:i])]
                for i in range(len(commands))
            ],
        )


class BuildResponse(ApiModel):
    inputs: List[Dict[str, Any]]
    commands: List[Dict[str, Any]]


class BlockTemplate(ApiModel):
    id: str
    name: str
    description: str
    commands: List[CommandModel]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")

    @classmethod
    def from_block(cls, block: CommandBlock, *, id: str, name: str, description: str) -> "BlockTemplate":
        return cls(
            id=id,
            name=name,
            description=description,
            commands=[command_to_model(c) for c in block.commands],
        )

    def to_block(self) -> CommandBlock:
        return CommandBlock(to_commands(self.commands))


__all__ = [
    "ArgumentModel",
    "GasArgument",
    "ObjectArgument",
    "InputArgument",
    "ResultArgument",
    "UnsetArgument",
    "CommandModel",
    "MoveCallModel",
    "TransferObjectsModel",
    "SplitCoinsModel",
    "MergeCoinsModel",
    "BlockRequest",
    "ExecuteRequest",
    "ViewRequest",
    "TypedViewArgument",
    "DecodedValueModel",
    "ExecuteResponse",
    "ReferenceCandidateModel",
    "ValidateResponse",
    "BuildResponse",
    "BlockTemplate",
    "argument_to_model",
    "command_to_model",
    "to_commands",
]
