from __future__ import annotations

import pytest

from ptb_services.errors import BuildError, BuildErrorKind, NotFound, ValidationKind
from ptb_services.ptb.resolver import (
    CommandBlock,
    available_references,
    generate_auto_references,
    module_call,
    simple_transfer,
)
from ptb_services.ptb.types import (
    GAS,
    Address,
    CommandKind,
    Literal,
    MoveCall,
    ObjectRef,
    Reference,
    ResultRef,
    SplitCoins,
    String,
    Struct,
    UInt,
    Unset,
)

RECIPIENT = "0x" + "c" * 64
COIN = "0x" + "a" * 64


def _u64(v: str) -> Literal:
    return Literal(v, UInt(64))


def _split_then_transfer() -> CommandBlock:
    block = CommandBlock()
    block.add_split_coins(GAS, [_u64("100"), _u64("200")])
    block.add_transfer_objects([ResultRef(0, 0)], Literal(RECIPIENT, Address()))
    return block


# ----------------------------- candidates -----------------------------


def test_available_references_per_command_kind():
    prior = [
        MoveCall("cmd-1", "0x2::m::f", ()),
        SplitCoins("cmd-2", GAS, (_u64("1"), _u64("2"), _u64("3"))),
    ]
    labels = [c.label for c in available_references(prior)]
    assert labels == ["Result(0)", "NestedResult(1, 0)", "NestedResult(1, 1)", "NestedResult(1, 2)"]

    block = _split_then_transfer()
    # the transfer produces nothing
    assert [c.label for c in block.available_references()] == ["NestedResult(0, 0)", "NestedResult(0, 1)"]
    assert block.available_references(0) == []


def test_auto_reference_fills_reference_slots_only():
    prior = [SplitCoins("cmd-1", GAS, (_u64("1"), _u64("2")))]
    cmd = MoveCall(
        "cmd-2",
        "0x2::coin::join",
        (Unset(), Unset(), Literal("x", String())),
        parameters=(Reference(Struct("Coin"), mutable=True), UInt(64), String()),
    )
    filled = generate_auto_references(cmd, prior)
    assert filled.arguments == (ResultRef(0, 1), Unset(), Literal("x", String()))


def test_auto_reference_never_overrides_explicit_choices():
    prior = [MoveCall("cmd-1", "0x2::m::f", ())]
    cmd = MoveCall(
        "cmd-2",
        "0x2::m::g",
        (ObjectRef(COIN),),
        parameters=(Reference(Struct("Coin")),),
    )
    assert generate_auto_references(cmd, prior) is cmd


def test_add_move_call_auto_references_by_default():
    block = CommandBlock()
    block.add_move_call("0x2::pool::new", [])
    cmd = block.add_move_call(
        "0x2::pool::deposit",
        [Unset()],
        parameters=[Reference(Struct("Pool"), mutable=True)],
    )
    assert cmd.arguments == (ResultRef(0),)
    raw = block.add_move_call(
        "0x2::pool::deposit",
        [Unset()],
        parameters=[Reference(Struct("Pool"), mutable=True)],
        auto_reference=False,
    )
    assert raw.arguments == (Unset(),)


# ----------------------------- edit-time checks -----------------------------


def test_ids_are_sequential():
    block = _split_then_transfer()
    assert [c.id for c in block] == ["cmd-1", "cmd-2"]
    assert block.index_of("cmd-2") == 1
    assert block.index_of("cmd-9") == -1
    assert block.get("cmd-1").kind is CommandKind.SPLIT_COINS


def test_forward_and_self_references_are_rejected_at_edit_time():
    block = CommandBlock()
    with pytest.raises(BuildError) as ei:
        block.add_transfer_objects([ResultRef(0)], Literal(RECIPIENT, Address()))
    assert ei.value.kind is BuildErrorKind.FORWARD_REFERENCE
    assert len(block) == 0

    with pytest.raises(BuildError):
        CommandBlock([MoveCall("cmd-1", "0x2::m::f", (ResultRef(0),))])


def test_result_index_outside_split_is_rejected():
    block = CommandBlock()
    block.add_split_coins(GAS, [_u64("100"), _u64("200")])
    with pytest.raises(BuildError) as ei:
        block.add_transfer_objects([ResultRef(0, 2)], Literal(RECIPIENT, Address()))
    assert ei.value.kind is BuildErrorKind.DANGLING_REFERENCE
    block.add_transfer_objects([ResultRef(0, 1)], Literal(RECIPIENT, Address()))


def test_reference_to_command_without_results_is_rejected():
    block = _split_then_transfer()
    with pytest.raises(BuildError) as ei:
        block.add_merge_coins(GAS, [ResultRef(1)])
    assert ei.value.kind is BuildErrorKind.DANGLING_REFERENCE


def test_update_keeps_id_and_checks_references():
    block = _split_then_transfer()
    updated = block.update("cmd-1", amounts=[_u64("5")], id="cmd-99")
    assert updated.id == "cmd-1"
    assert updated.amounts == (_u64("5"),)

    with pytest.raises(BuildError):
        block.update("cmd-2", objects=[ResultRef(1)])
    assert block.get("cmd-2").objects == (ResultRef(0, 0),)

    with pytest.raises(NotFound):
        block.update("cmd-42", description="nope")


def test_update_rejects_shrinking_results_a_later_command_uses():
    block = CommandBlock()
    split = block.add_split_coins(GAS, [_u64("100"), _u64("200")])
    block.add_transfer_objects([ResultRef(0, 1)], Literal(RECIPIENT, Address()))

    with pytest.raises(BuildError) as ei:
        block.update(split.id, amounts=[_u64("100")])

    assert ei.value.kind is BuildErrorKind.DANGLING_REFERENCE
    assert ei.value.details["commandId"] == "cmd-2"
    assert block.get(split.id).amounts == (_u64("100"), _u64("200"))
    assert block.validate().is_valid


# ----------------------------- remove / move -----------------------------


def test_remove_marks_dependents_instead_of_rewiring():
    block = CommandBlock()
    block.add_split_coins(GAS, [_u64("1")])
    block.add_split_coins(GAS, [_u64("2")])
    block.add_merge_coins(ResultRef(0, 0), [ResultRef(1, 0)])

    errors = block.remove("cmd-1")
    assert len(block) == 2
    merge = block.commands[1]
    assert isinstance(merge.destination, Unset)
    # the other reference shifted down and still names the same command
    assert merge.sources == (ResultRef(0, 0),)
    assert block.commands[0].id == "cmd-2"

    assert len(errors) == 1
    err = errors[0]
    assert err.kind is ValidationKind.MISSING_REFERENCE
    assert err.command_id == "cmd-3"
    assert err.command_index == 1
    assert err.argument_index == 0

    report = block.validate()
    assert not report.is_valid


def test_remove_unknown_command():
    with pytest.raises(NotFound):
        CommandBlock().remove("cmd-1")


def test_move_remaps_references():
    block = CommandBlock()
    block.add_split_coins(GAS, [_u64("1")])  # cmd-1
    block.add_move_call("0x2::m::noop", [Literal("a", String())])  # cmd-2
    block.add_transfer_objects([ResultRef(0, 0)], Literal(RECIPIENT, Address()))  # cmd-3

    block.move(1, 0)
    assert [c.id for c in block] == ["cmd-2", "cmd-1", "cmd-3"]
    assert block.get("cmd-3").objects == (ResultRef(1, 0),)


def test_move_refuses_forward_references_and_leaves_block_untouched():
    block = _split_then_transfer()
    before = block.commands
    with pytest.raises(BuildError) as ei:
        block.move(0, 1)
    assert ei.value.kind is BuildErrorKind.FORWARD_REFERENCE
    assert block.commands == before

    with pytest.raises(IndexError):
        block.move(0, 5)


def test_clear_resets_ids():
    block = _split_then_transfer()
    block.clear()
    assert len(block) == 0
    assert block.add_split_coins(GAS, [_u64("1")]).id == "cmd-1"


def test_loaded_block_continues_id_sequence():
    block = CommandBlock([MoveCall("cmd-7", "0x2::m::f", ())])
    assert block.add_move_call("0x2::m::g").id == "cmd-8"


# ----------------------------- report & templates -----------------------------


def test_validate_warnings():
    block = CommandBlock()
    block.add_move_call("0x2::m::no_args")
    block.add_split_coins(GAS, [_u64("1")])
    block.add_merge_coins(GAS, [ObjectRef("0x1234")])
    report = block.validate()
    text = "\n".join(report.warnings)
    assert "Command 1 (MoveCall): no arguments provided" in text
    assert "Command 1 (MoveCall): result not used" in text
    assert "Command 2 (SplitCoins): result not used" in text
    assert "66 characters" in text
    # the short id is also an error
    assert not report.is_valid


def test_simple_transfer_template():
    block = simple_transfer()
    split, transfer = block.commands
    assert isinstance(split, SplitCoins) and split.coin == GAS
    assert transfer.objects == (ResultRef(0, 0),)
    assert isinstance(transfer.recipient, Unset)
    assert not block.validate().is_valid

    ready = simple_transfer(RECIPIENT, amount="5")
    assert ready.validate().is_valid
    assert ready.commands[0].amounts == (_u64("5"),)


def test_module_call_template():
    block = module_call()
    (cmd,) = block.commands
    assert cmd.target == "package::module::function"
    assert cmd.arguments == (Literal("example_arg", String()),)
