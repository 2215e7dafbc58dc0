"""
Reference resolution and the editable command block.

A ``ResultRef`` always names an earlier position in the block. Every
structural edit goes through ``CommandBlock`` so that invariant survives:

- ``add_*`` / ``update`` reject forward, self and out-of-range references.
- ``remove`` turns references to the removed command into ``Unset`` (never
  rewired to something else) and shifts references past it down by one.
- ``move`` remaps references to the new order, or refuses the move and leaves
  the block as it was.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..errors import (
    ApiError,
    ArgumentValidationError,
    BuildError,
    BuildErrorKind,
    NotFound,
    ValidationKind,
)
from .types import (
    GAS,
    Address,
    Argument,
    Command,
    CommandKind,
    Literal,
    MergeCoins,
    MoveCall,
    MoveType,
    ObjectRef,
    ResultRef,
    SplitCoins,
    String,
    TransferObjects,
    UInt,
    Unset,
    requires_object_id,
)
from .validate import check_reference, validate_block

log = logging.getLogger(__name__)

_ID_RE = re.compile(r"^cmd-(\d+)$")


# -----------------------------------------------------------------------------
# Candidates
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ResultRefCandidate:
    from_command_index: int
    result_index: Optional[int]
    command_id: str
    kind: CommandKind

    def as_argument(self) -> ResultRef:
        return ResultRef(self.from_command_index, self.result_index)

    @property
    def label(self) -> str:
        return str(self.as_argument())


def available_references(prior_commands: Sequence[Command]) -> List[ResultRefCandidate]:
    """
    Every output a command placed after ``prior_commands`` may consume.

    MoveCall yields one candidate, SplitCoins one per amount; transfers and
    merges yield nothing. The gas coin is always available and is not listed.
    """
    out: List[ResultRefCandidate] = []
    for i, cmd in enumerate(prior_commands):
        if isinstance(cmd, MoveCall):
            out.append(ResultRefCandidate(i, None, cmd.id, cmd.kind))
        elif isinstance(cmd, SplitCoins):
            for j in range(len(cmd.amounts)):
                out.append(ResultRefCandidate(i, j, cmd.id, cmd.kind))
    return out


def generate_auto_references(new_command: Command, prior_commands: Sequence[Command]) -> Command:
    """Fill reference-typed ``Unset`` slots with the most recent result, if any."""
    candidates = available_references(prior_commands)
    if not candidates:
        return new_command
    latest = candidates[-1].as_argument()
    slots = new_command.slot_types()
    args = list(new_command.arguments_flat())
    changed = False
    for i, arg in enumerate(args):
        slot = slots[i] if i < len(slots) else None
        if isinstance(arg, Unset) and slot is not None and requires_object_id(slot):
            args[i] = latest
            changed = True
    return new_command.with_arguments_flat(args) if changed else new_command


# -----------------------------------------------------------------------------
# Block
# -----------------------------------------------------------------------------


@dataclass
class BlockReport:
    errors: List[ApiError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _remap(cmd: Command, fn) -> Tuple[Command, List[int]]:
    """Apply ``fn`` to every ResultRef; returns the new command and the slots fn unset."""
    args = list(cmd.arguments_flat())
    unset: List[int] = []
    changed = False
    for i, arg in enumerate(args):
        if isinstance(arg, ResultRef):
            new = fn(arg)
            if new != arg:
                args[i] = new
                changed = True
                if isinstance(new, Unset):
                    unset.append(i)
    return (cmd.with_arguments_flat(args) if changed else cmd), unset


class CommandBlock:
    """An ordered, editable list of commands."""

    def __init__(self, commands: Iterable[Command] = ()):
        self._commands: List[Command] = []
        self._next_id = 1
        for cmd in commands:
            self._check_references(cmd, len(self._commands), self._commands)
            self._commands.append(cmd)
            m = _ID_RE.match(cmd.id)
            if m:
                self._next_id = max(self._next_id, int(m.group(1)) + 1)
        self._next_id = max(self._next_id, len(self._commands) + 1)

    # ---------- read access ----------

    @property
    def commands(self) -> Tuple[Command, ...]:
        return tuple(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __iter__(self) -> Iterator[Command]:
        return iter(tuple(self._commands))

    def get(self, command_id: str) -> Optional[Command]:
        for cmd in self._commands:
            if cmd.id == command_id:
                return cmd
        return None

    def index_of(self, command_id: str) -> int:
        for i, cmd in enumerate(self._commands):
            if cmd.id == command_id:
                return i
        return -1

    def available_references(self, position: Optional[int] = None) -> List[ResultRefCandidate]:
        end = len(self._commands) if position is None else position
        return available_references(self._commands[:end])

    # ---------- edits ----------

    def _new_id(self) -> str:
        cid = f"cmd-{self._next_id}"
        self._next_id += 1
        return cid

    @staticmethod
    def _check_references(cmd: Command, position: int, commands: Sequence[Command]) -> None:
        for ai, arg in enumerate(cmd.arguments_flat()):
            if isinstance(arg, ResultRef):
                problem = check_reference(arg, position, commands)
                if problem is not None:
                    kind, message = problem
                    raise BuildError(
                        kind,
                        f"command {cmd.id}, argument {ai}: {message}",
                        command_id=cmd.id,
                        command_index=position,
                        argument_index=ai,
                    )

    def _append(self, cmd: Command, *, auto_reference: bool) -> Command:
        if auto_reference:
            cmd = generate_auto_references(cmd, self._commands)
        self._check_references(cmd, len(self._commands), self._commands)
        self._commands.append(cmd)
        log.debug("command added id=%s kind=%s", cmd.id, cmd.kind.value)
        return cmd

    def add_move_call(
        self,
        target: str,
        arguments: Sequence[Argument] = (),
        type_arguments: Sequence[str] = (),
        *,
        parameters: Optional[Sequence[MoveType]] = None,
        description: Optional[str] = None,
        auto_reference: bool = True,
    ) -> MoveCall:
        cmd = MoveCall(
            id=self._new_id(),
            target=target,
            arguments=tuple(arguments),
            type_arguments=tuple(type_arguments),
            parameters=None if parameters is None else tuple(parameters),
            description=description,
        )
        return self._append(cmd, auto_reference=auto_reference)

    def add_transfer_objects(
        self,
        objects: Sequence[Argument],
        recipient: Argument,
        *,
        description: Optional[str] = None,
    ) -> TransferObjects:
        cmd = TransferObjects(self._new_id(), tuple(objects), recipient, description)
        return self._append(cmd, auto_reference=False)

    def add_split_coins(
        self,
        coin: Argument,
        amounts: Sequence[Argument],
        *,
        description: Optional[str] = None,
    ) -> SplitCoins:
        cmd = SplitCoins(self._new_id(), coin, tuple(amounts), description)
        return self._append(cmd, auto_reference=False)

    def add_merge_coins(
        self,
        destination: Argument,
        sources: Sequence[Argument],
        *,
        description: Optional[str] = None,
    ) -> MergeCoins:
        cmd = MergeCoins(self._new_id(), destination, tuple(sources), description)
        return self._append(cmd, auto_reference=False)

    def update(self, command_id: str, **changes) -> Command:
        """
        Replace fields of a command in place. The id and position never change.

        Raises ``BuildError`` and changes nothing if the edit leaves any
        reference in the block invalid, including later commands that consume
        results the updated command no longer produces.
        """
        index = self.index_of(command_id)
        if index < 0:
            raise NotFound(f"Command {command_id}")
        changes.pop("id", None)
        for key in ("arguments", "objects", "amounts", "sources", "type_arguments", "parameters"):
            if changes.get(key) is not None:
                changes[key] = tuple(changes[key])
        updated = replace(self._commands[index], **changes)
        candidate = list(self._commands)
        candidate[index] = updated
        for pos in range(index, len(candidate)):
            self._check_references(candidate[pos], pos, candidate)
        self._commands = candidate
        return updated

    def remove(self, command_id: str) -> List[ArgumentValidationError]:
        """
        Delete a command. Returns one ``MissingReference`` error per argument
        that pointed at it; those arguments are now ``Unset``.
        """
        k = self.index_of(command_id)
        if k < 0:
            raise NotFound(f"Command {command_id}")

        def shift(ref: ResultRef):
            if ref.from_command_index == k:
                return Unset(f"referenced command {command_id} was removed")
            if ref.from_command_index > k:
                return ResultRef(ref.from_command_index - 1, ref.result_index)
            return ref

        remaining = self._commands[:k] + self._commands[k + 1:]
        errors: List[ArgumentValidationError] = []
        for pos in range(k, len(remaining)):
            remaining[pos], unset = _remap(remaining[pos], shift)
            for ai in unset:
                errors.append(
                    ArgumentValidationError(
                        ValidationKind.MISSING_REFERENCE,
                        f"referenced command {command_id} was removed",
                    ).located(command_id=remaining[pos].id, command_index=pos, argument_index=ai)
                )
        self._commands = remaining
        if errors:
            log.info("removed %s; %d argument(s) now need input", command_id, len(errors))
        return errors

    def move(self, from_index: int, to_index: int) -> None:
        """Reorder one command. Raises ``BuildError`` and changes nothing if any reference would point forward."""
        n = len(self._commands)
        if not (0 <= from_index < n and 0 <= to_index < n):
            raise IndexError(f"move({from_index}, {to_index}) outside block of {n} commands")
        if from_index == to_index:
            return

        order = list(range(n))
        order.insert(to_index, order.pop(from_index))
        new_pos: Dict[int, int] = {old: new for new, old in enumerate(order)}

        def relocate(ref: ResultRef):
            src = ref.from_command_index
            return ResultRef(new_pos.get(src, src), ref.result_index)

        reordered = [_remap(self._commands[old], relocate)[0] for old in order]
        for pos, cmd in enumerate(reordered):
            for ai, arg in enumerate(cmd.arguments_flat()):
                if isinstance(arg, ResultRef) and arg.from_command_index >= pos:
                    raise BuildError(
                        BuildErrorKind.FORWARD_REFERENCE,
                        f"moving command {from_index} to {to_index} would make command {cmd.id} "
                        f"argument {ai} reference a later command",
                        command_id=cmd.id,
                        command_index=pos,
                        argument_index=ai,
                    )
        self._commands = reordered

    def clear(self) -> None:
        self._commands = []
        self._next_id = 1

    # ---------- checks ----------

    def validate(self) -> BlockReport:
        report = BlockReport(errors=validate_block(self._commands))

        used = set()
        for cmd in self._commands:
            for arg in cmd.arguments_flat():
                if isinstance(arg, ResultRef):
                    used.add(arg.from_command_index)

        last = len(self._commands) - 1
        for i, cmd in enumerate(self._commands):
            where = f"Command {i + 1} ({cmd.kind.value})"
            if isinstance(cmd, MoveCall) and not cmd.arguments:
                report.warnings.append(
                    f"{where}: no arguments provided; make sure the function takes no parameters"
                )
            if cmd.result_count() and i < last and i not in used:
                report.warnings.append(f"{where}: result not used by any later command")
            for arg in cmd.arguments_flat():
                if isinstance(arg, ObjectRef) and arg.object_id.startswith("0x") and len(arg.object_id) != 66:
                    report.warnings.append(f"{where}: object id should be 66 characters long (including 0x)")
        return report


# -----------------------------------------------------------------------------
# Templates
# -----------------------------------------------------------------------------


def simple_transfer(recipient: Optional[str] = None, amount: str = "1000000") -> CommandBlock:
    """Split ``amount`` off the gas coin and transfer it to ``recipient``."""
    block = CommandBlock()
    block.add_split_coins(GAS, [Literal(amount, UInt(64))], description="Split from gas coin")
    to: Argument = Literal(recipient, Address()) if recipient else Unset("recipient address")
    block.add_transfer_objects([ResultRef(0, 0)], to, description="Transfer the new coin")
    return block


def module_call(target: str = "package::module::function", args: Sequence[str] = ("example_arg",)) -> CommandBlock:
    block = CommandBlock()
    block.add_move_call(target, [Literal(a, String()) for a in args])
    return block


TEMPLATES = {
    "simple_transfer": ("Simple Transfer", "Transfer coins split from gas to another address", simple_transfer),
    "module_call": ("Module Function Call", "Call a function from a deployed Move module", module_call),
}


__all__ = [
    "ResultRefCandidate",
    "available_references",
    "generate_auto_references",
    "BlockReport",
    "CommandBlock",
    "simple_transfer",
    "module_call",
    "TEMPLATES",
]
