"""
ptb_services.ptb.types
======================

Value & type model for programmable transaction blocks.

Move types
----------
``parse_move_type`` turns the type strings found in module ABIs and user
input into a small closed set of frozen dataclasses::

    UInt(bits)  Bool  Address  ObjectId  String  Vector(element)
    Reference(inner, mutable)  Struct(name)  TxContext

Arguments
---------
Every command input is one of ``Gas | ObjectRef | Literal | ResultRef | Unset``.
``Unset`` is the explicit "needs input" placeholder; a block holding one can
be edited and validated but never built.

Commands
--------
``MoveCall``, ``TransferObjects``, ``SplitCoins`` and ``MergeCoins`` are frozen
dataclasses. All of them expose ``arguments_flat()`` / ``with_arguments_flat()``
so resolver and builder code can walk argument slots uniformly, and
``result_count()`` for the number of outputs later commands may reference.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import ClassVar, Optional, Sequence, Tuple, Union

HEX64_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
TARGET_RE = re.compile(r"^[^:\s]+::[^:\s]+::[^:\s]+$")

UINT_WIDTHS: Tuple[int, ...] = (8, 16, 32, 64, 128, 256)


def is_hex64(value: str) -> bool:
    return isinstance(value, str) and HEX64_RE.fullmatch(value) is not None


# -----------------------------------------------------------------------------
# Move types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class UInt:
    bits: int

    def __post_init__(self) -> None:
        if self.bits not in UINT_WIDTHS:
            raise ValueError(f"unsupported unsigned width: u{self.bits}")

    @property
    def max_value(self) -> int:
        return (1 << self.bits) - 1

    @property
    def byte_width(self) -> int:
        return self.bits // 8

    def __str__(self) -> str:
        return f"u{self.bits}"


@dataclass(frozen=True)
class Bool:
    def __str__(self) -> str:
        return "bool"


@dataclass(frozen=True)
class Address:
    def __str__(self) -> str:
        return "address"


@dataclass(frozen=True)
class ObjectId:
    def __str__(self) -> str:
        return "objectRef"


@dataclass(frozen=True)
class String:
    def __str__(self) -> str:
        return "string"


@dataclass(frozen=True)
class Vector:
    element: "MoveType"

    def __str__(self) -> str:
        return f"vector<{self.element}>"


@dataclass(frozen=True)
class Reference:
    inner: "MoveType"
    mutable: bool = False

    def __str__(self) -> str:
        return f"&mut {self.inner}" if self.mutable else f"&{self.inner}"


@dataclass(frozen=True)
class Struct:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class TxContext:
    def __str__(self) -> str:
        return "TxContext"


MoveType = Union[UInt, Bool, Address, ObjectId, String, Vector, Reference, Struct, TxContext]

_STRING_NAMES = frozenset(
    {
        "string",
        "string::string",
        "0x1::string::string",
        "std::string::string",
        "ascii::string",
        "0x1::ascii::string",
        "std::ascii::string",
    }
)
_OBJECT_ID_NAMES = frozenset({"objectref", "id", "object::id", "0x2::object::id", "iota::object::id"})
_REF_RE = re.compile(r"^&\s*(mut\s+)?(?P<inner>.+)$", re.DOTALL)


def _strip_generics(name: str) -> str:
    return name.split("<", 1)[0]


def parse_move_type(text: Union[str, MoveType]) -> MoveType:
    """
    Parse a Move type string. Unknown module-defined types become ``Struct``.

    >>> parse_move_type("vector<u64>")
    Vector(element=UInt(bits=64))
    >>> parse_move_type("&mut 0x2::coin::Coin<0x2::iota::IOTA>")
    Reference(inner=Struct(name='0x2::coin::Coin<0x2::iota::IOTA>'), mutable=True)
    """
    if not isinstance(text, str):
        return text
    s = text.strip()
    if not s:
        raise ValueError("empty Move type")

    m = _REF_RE.match(s)
    if m:
        inner = parse_move_type(m.group("inner"))
        if isinstance(inner, TxContext):
            return inner
        return Reference(inner=inner, mutable=bool(m.group(1)))

    compact = re.sub(r"\s+", "", s)
    lower = compact.lower()

    if lower.startswith("u") and lower[1:].isdigit() and int(lower[1:]) in UINT_WIDTHS:
        return UInt(int(lower[1:]))
    if lower == "bool":
        return Bool()
    if lower == "address":
        return Address()
    if lower.startswith("vector<") and lower.endswith(">"):
        return Vector(parse_move_type(compact[len("vector<"):-1]))
    if lower in _STRING_NAMES:
        return String()
    if lower in _OBJECT_ID_NAMES or "object<" in lower:
        return ObjectId()
    if _strip_generics(lower).rsplit("::", 1)[-1] == "txcontext":
        return TxContext()
    return Struct(compact)


def requires_object_id(t: MoveType) -> bool:
    """True for types whose value must be a 0x-prefixed 32-byte object id."""
    return isinstance(t, (Reference, ObjectId))


def is_context_param(t: MoveType) -> bool:
    return isinstance(t, TxContext)


def user_parameters(params: Sequence[MoveType]) -> Tuple[MoveType, ...]:
    """Drop a trailing TxContext, which the runtime supplies implicitly."""
    out = tuple(params)
    if out and is_context_param(out[-1]):
        out = out[:-1]
    return out


# -----------------------------------------------------------------------------
# Arguments
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Gas:
    """The transaction's gas coin."""

    def __str__(self) -> str:
        return "Gas"


@dataclass(frozen=True)
class ObjectRef:
    object_id: str

    def __str__(self) -> str:
        return f"Object({self.object_id})"


@dataclass(frozen=True)
class Literal:
    value: str
    declared_type: MoveType = String()

    def __str__(self) -> str:
        return f"{self.value!r}: {self.declared_type}"


@dataclass(frozen=True)
class ResultRef:
    from_command_index: int
    result_index: Optional[int] = None

    def __str__(self) -> str:
        if self.result_index is None:
            return f"Result({self.from_command_index})"
        return f"NestedResult({self.from_command_index}, {self.result_index})"


@dataclass(frozen=True)
class Unset:
    reason: str = "needs input"

    def __str__(self) -> str:
        return "Unset"


GAS = Gas()
Argument = Union[Gas, ObjectRef, Literal, ResultRef, Unset]


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------


class CommandKind(str, Enum):
    MOVE_CALL = "MoveCall"
    TRANSFER_OBJECTS = "TransferObjects"
    SPLIT_COINS = "SplitCoins"
    MERGE_COINS = "MergeCoins"


@dataclass(frozen=True)
class MoveCall:
    id: str
    target: str
    arguments: Tuple[Argument, ...] = ()
    type_arguments: Tuple[str, ...] = ()
    # Declared parameter types of the target, when the caller knows its ABI.
    parameters: Optional[Tuple[MoveType, ...]] = None
    description: Optional[str] = None

    kind: ClassVar[CommandKind] = CommandKind.MOVE_CALL

    def arguments_flat(self) -> Tuple[Argument, ...]:
        return tuple(self.arguments)

    def with_arguments_flat(self, args: Sequence[Argument]) -> "MoveCall":
        return replace(self, arguments=tuple(args))

    def slot_types(self) -> Tuple[Optional[MoveType], ...]:
        if self.parameters is None:
            return tuple(None for _ in self.arguments)
        params = user_parameters(self.parameters)
        return tuple(params[i] if i < len(params) else None for i in range(len(self.arguments)))

    def result_count(self) -> int:
        return 1


@dataclass(frozen=True)
class TransferObjects:
    id: str
    objects: Tuple[Argument, ...]
    recipient: Argument
    description: Optional[str] = None

    kind: ClassVar[CommandKind] = CommandKind.TRANSFER_OBJECTS

    def arguments_flat(self) -> Tuple[Argument, ...]:
        return (*self.objects, self.recipient)

    def with_arguments_flat(self, args: Sequence[Argument]) -> "TransferObjects":
        args = tuple(args)
        return replace(self, objects=args[:-1], recipient=args[-1])

    def slot_types(self) -> Tuple[Optional[MoveType], ...]:
        return (*(None for _ in self.objects), Address())

    def result_count(self) -> int:
        return 0


@dataclass(frozen=True)
class SplitCoins:
    id: str
    coin: Argument
    amounts: Tuple[Argument, ...]
    description: Optional[str] = None

    kind: ClassVar[CommandKind] = CommandKind.SPLIT_COINS

    def arguments_flat(self) -> Tuple[Argument, ...]:
        return (self.coin, *self.amounts)

    def with_arguments_flat(self, args: Sequence[Argument]) -> "SplitCoins":
        args = tuple(args)
        return replace(self, coin=args[0], amounts=args[1:])

    def slot_types(self) -> Tuple[Optional[MoveType], ...]:
        return (None, *(UInt(64) for _ in self.amounts))

    def result_count(self) -> int:
        return len(self.amounts)


@dataclass(frozen=True)
class MergeCoins:
    id: str
    destination: Argument
    sources: Tuple[Argument, ...]
    description: Optional[str] = None

    kind: ClassVar[CommandKind] = CommandKind.MERGE_COINS

    def arguments_flat(self) -> Tuple[Argument, ...]:
        return (self.destination, *self.sources)

    def with_arguments_flat(self, args: Sequence[Argument]) -> "MergeCoins":
        args = tuple(args)
        return replace(self, destination=args[0], sources=args[1:])

    def slot_types(self) -> Tuple[Optional[MoveType], ...]:
        return tuple(None for _ in range(1 + len(self.sources)))

    def result_count(self) -> int:
        return 0


Command = Union[MoveCall, TransferObjects, SplitCoins, MergeCoins]


def is_object_typed(arg: Argument) -> bool:
    """Explicit object references and reference-typed literals."""
    if isinstance(arg, ObjectRef):
        return True
    return isinstance(arg, Literal) and requires_object_id(arg.declared_type)


def object_id_of(arg: Argument) -> Optional[str]:
    if isinstance(arg, ObjectRef):
        return arg.object_id
    if isinstance(arg, Literal) and requires_object_id(arg.declared_type):
        return arg.value
    return None


__all__ = [
    "HEX64_RE",
    "TARGET_RE",
    "UINT_WIDTHS",
    "is_hex64",
    "UInt",
    "Bool",
    "Address",
    "ObjectId",
    "String",
    "Vector",
    "Reference",
    "Struct",
    "TxContext",
    "MoveType",
    "parse_move_type",
    "requires_object_id",
    "is_context_param",
    "user_parameters",
    "Gas",
    "GAS",
    "ObjectRef",
    "Literal",
    "ResultRef",
    "Unset",
    "Argument",
    "CommandKind",
    "MoveCall",
    "TransferObjects",
    "SplitCoins",
    "MergeCoins",
    "Command",
    "is_object_typed",
    "object_id_of",
]
