"""
Argument validation & coercion.

``validate(value, type)`` turns the raw string a user typed into a
``TypedValue`` or raises ``ArgumentValidationError``. It is pure: no network,
no global state. ``validate_block`` runs it over every literal of a command
list and also checks references, collecting every error instead of stopping
at the first one.

Rules
-----
- integers: optional surrounding whitespace, optional leading ``-`` (which is
  always out of range), decimal digits only. Precision is unbounded.
- ``bool``: exactly ``true`` or ``false``, no padding.
- ``address`` / ``objectRef`` / ``&T`` / ``&mut T``: ``0x`` + 64 hex digits,
  no padding.
- ``vector<T>``: a JSON array, each element validated against ``T``.
- ``string`` and module-defined structs: accepted as-is.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

from ..errors import (
    ApiError,
    ArgumentValidationError,
    BuildError,
    BuildErrorKind,
    ValidationKind,
)
from .bcs import encode_bytes, encode_uint, uleb128_encode
from .types import (
    Address,
    Bool,
    TARGET_RE,
    Command,
    Literal,
    MergeCoins,
    MoveCall,
    MoveType,
    ObjectId,
    ObjectRef,
    Reference,
    ResultRef,
    SplitCoins,
    String,
    TransferObjects,
    UInt,
    Unset,
    Vector,
    is_hex64,
    parse_move_type,
    requires_object_id,
)

_INT_RE = re.compile(r"^-?[0-9]+$")
# len(str(2**256 - 1)) == 78
_MAX_DECIMAL_DIGITS = 78


@dataclass(frozen=True)
class TypedValue:
    """A validated value. ``value`` is int, bool, str or a tuple of TypedValue."""

    type: MoveType
    value: Any

    def to_python(self) -> Any:
        if isinstance(self.value, tuple):
            return [v.to_python() for v in self.value]
        return self.value

    def to_bcs(self) -> bytes:
        t = self.type
        if isinstance(t, UInt):
            return encode_uint(self.value, t.byte_width)
        if isinstance(t, Bool):
            return b"\x01" if self.value else b"\x00"
        if isinstance(t, (Address, ObjectId, Reference)):
            return bytes.fromhex(self.value[2:])
        if isinstance(t, Vector):
            return uleb128_encode(len(self.value)) + b"".join(v.to_bcs() for v in self.value)
        return encode_bytes(str(self.value).encode("utf-8"))


def _fail(kind: ValidationKind, message: str, raw: Any, t: MoveType) -> ArgumentValidationError:
    return ArgumentValidationError(kind, message, value=None if raw is None else str(raw), type_name=str(t))


def _validate_uint(raw: str, t: UInt) -> TypedValue:
    s = raw.strip()
    if not _INT_RE.match(s):
        raise _fail(ValidationKind.NOT_A_NUMBER, f"{raw!r} is not a valid integer for {t}", raw, t)
    if s.startswith("-"):
        if s[1:].lstrip("0"):
            raise _fail(ValidationKind.OUT_OF_RANGE, f"{raw!r} is negative; {t} is unsigned", raw, t)
        return TypedValue(t, 0)
    digits = s.lstrip("0") or "0"
    if len(digits) > _MAX_DECIMAL_DIGITS:
        raise _fail(ValidationKind.OUT_OF_RANGE, f"{raw!r} exceeds the maximum {t} value {t.max_value}", raw, t)
    n = int(digits)
    if n > t.max_value:
        raise _fail(ValidationKind.OUT_OF_RANGE, f"{raw!r} exceeds the maximum {t} value {t.max_value}", raw, t)
    return TypedValue(t, n)


def _validate_bool(raw: str, t: Bool) -> TypedValue:
    if raw == "true":
        return TypedValue(t, True)
    if raw == "false":
        return TypedValue(t, False)
    raise _fail(ValidationKind.INVALID_BOOLEAN, f"{raw!r} is not a boolean; use 'true' or 'false'", raw, t)


def _validate_hex64(raw: str, t: MoveType) -> TypedValue:
    if not is_hex64(raw):
        raise _fail(
            ValidationKind.INVALID_ADDRESS_FORMAT,
            f"{raw!r} must be 0x followed by 64 hex characters (66 total, got {len(raw)})",
            raw,
            t,
        )
    return TypedValue(t, raw.lower())


def _element_text(item: Any) -> Any:
    # JSON scalars are validated through their string form; nested arrays stay lists.
    if isinstance(item, bool):
        return "true" if item else "false"
    if item is None:
        return ""
    if isinstance(item, (list, str)):
        return item
    return json.dumps(item)


def _validate_vector(raw: Union[str, list], t: Vector) -> TypedValue:
    if isinstance(raw, str):
        try:
            items = json.loads(raw)
        except ValueError:
            raise _fail(ValidationKind.INVALID_VECTOR, f"{raw!r} is not a JSON array for {t}", raw, t) from None
    else:
        items = raw
    if not isinstance(items, list):
        raise _fail(ValidationKind.INVALID_VECTOR, f"{raw!r} is not a JSON array for {t}", raw, t)

    out: List[TypedValue] = []
    for i, item in enumerate(items):
        try:
            out.append(_coerce(_element_text(item), t.element))
        except ArgumentValidationError as e:
            raise e.at_element(i) from None
    return TypedValue(t, tuple(out))


def _coerce(raw: Union[str, list], t: MoveType) -> TypedValue:
    if isinstance(t, Vector):
        return _validate_vector(raw, t)
    if isinstance(raw, list):
        raise _fail(ValidationKind.INVALID_VECTOR, f"unexpected array for {t}", json.dumps(raw), t)
    if isinstance(t, String):
        return TypedValue(t, raw)
    if raw == "":
        raise _fail(ValidationKind.MISSING_VALUE, f"a value is required for {t}", raw, t)
    if isinstance(t, UInt):
        return _validate_uint(raw, t)
    if isinstance(t, Bool):
        return _validate_bool(raw, t)
    if isinstance(t, Address) or requires_object_id(t):
        return _validate_hex64(raw, t)
    return TypedValue(t, raw)


def validate(value: str, type_: Union[str, MoveType]) -> TypedValue:
    """
    Coerce ``value`` to ``type_``.

    >>> validate("255", "u8").value
    255
    >>> validate("256", "u8")
    Traceback (most recent call last):
    ...
    ptb_services.errors.ArgumentValidationError: '256' exceeds the maximum u8 value 255
    """
    if not isinstance(value, str):
        raise TypeError(f"value must be a string, got {type(value).__name__}")
    return _coerce(value, parse_move_type(type_))


def effective_type(arg: Literal, slot: Optional[MoveType]) -> MoveType:
    """
    The type a literal is checked and lowered as.

    Primitive slots (split amounts, transfer recipients, known ``u*``/``bool``/
    ``address`` parameters) always win. Reference-typed slots override a
    literal that does not already declare an object type.
    """
    if slot is None:
        return arg.declared_type
    if isinstance(slot, (UInt, Bool, Address)):
        return slot
    if requires_object_id(slot) and not requires_object_id(arg.declared_type):
        return slot
    return arg.declared_type


def check_reference(
    ref: ResultRef,
    position: int,
    commands: Sequence[Command],
) -> Optional[Tuple[BuildErrorKind, str]]:
    """Return ``(kind, message)`` when ``ref`` at ``position`` is not usable."""
    src = ref.from_command_index
    if src < 0:
        return BuildErrorKind.DANGLING_REFERENCE, f"{ref} points at a negative command index"
    if src >= position:
        return BuildErrorKind.FORWARD_REFERENCE, f"{ref} must point at an earlier command than {position}"
    if src >= len(commands):
        return BuildErrorKind.DANGLING_REFERENCE, f"{ref} points at a missing command"
    count = commands[src].result_count()
    if count == 0:
        return BuildErrorKind.DANGLING_REFERENCE, f"{ref}: command {src} ({commands[src].kind.value}) produces no results"
    idx = ref.result_index or 0
    if idx < 0 or idx >= count:
        return (
            BuildErrorKind.DANGLING_REFERENCE,
            f"{ref}: command {src} produces {count} result(s), index {idx} is out of range",
        )
    return None


def command_shape_problem(cmd: Command) -> Optional[str]:
    """Structural defects that make a command unbuildable regardless of its arguments."""
    if isinstance(cmd, MoveCall):
        if not TARGET_RE.match(cmd.target or ""):
            return f"invalid target {cmd.target!r}; expected package::module::function"
    elif isinstance(cmd, TransferObjects):
        if not cmd.objects:
            return "must transfer at least one object"
    elif isinstance(cmd, SplitCoins):
        if not cmd.amounts:
            return "must specify at least one split amount"
    elif isinstance(cmd, MergeCoins):
        if not cmd.sources:
            return "must specify at least one source coin"
    return None


def validate_block(commands: Sequence[Command]) -> List[ApiError]:
    """Validate every argument of every command. Returns all errors found."""
    errors: List[ApiError] = []
    for ci, cmd in enumerate(commands):
        shape = command_shape_problem(cmd)
        if shape is not None:
            errors.append(
                BuildError(
                    BuildErrorKind.INVALID_COMMAND,
                    f"command {cmd.id} ({cmd.kind.value}): {shape}",
                    command_id=cmd.id,
                    command_index=ci,
                )
            )
        slots = cmd.slot_types()
        for ai, arg in enumerate(cmd.arguments_flat()):
            where = dict(command_id=cmd.id, command_index=ci, argument_index=ai)
            slot = slots[ai] if ai < len(slots) else None
            if isinstance(arg, Literal):
                try:
                    validate(arg.value, effective_type(arg, slot))
                except ArgumentValidationError as e:
                    errors.append(e.located(**where))
            elif isinstance(arg, ObjectRef):
                if not is_hex64(arg.object_id):
                    errors.append(
                        ArgumentValidationError(
                            ValidationKind.INVALID_ADDRESS_FORMAT,
                            f"object id {arg.object_id!r} must be 0x followed by 64 hex characters",
                            value=arg.object_id,
                            type_name="objectRef",
                        ).located(**where)
                    )
            elif isinstance(arg, Unset):
                errors.append(
                    ArgumentValidationError(
                        ValidationKind.MISSING_REFERENCE,
                        f"argument needs input ({arg.reason})",
                    ).located(**where)
                )
            elif isinstance(arg, ResultRef):
                problem = check_reference(arg, ci, commands)
                if problem is not None:
                    kind, message = problem
                    errors.append(
                        BuildError(
                            kind,
                            f"command {cmd.id}, argument {ai}: {message}",
                            **where,
                        )
                    )
    return errors


__all__ = [
    "TypedValue",
    "validate",
    "validate_block",
    "effective_type",
    "check_reference",
    "command_shape_problem",
]
