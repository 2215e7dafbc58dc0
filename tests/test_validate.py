from __future__ import annotations

import pytest

from ptb_services.errors import ArgumentValidationError, BuildError, BuildErrorKind, ValidationKind
from ptb_services.ptb.types import (
    GAS,
    Address,
    Bool,
    Literal,
    MoveCall,
    ObjectRef,
    Reference,
    ResultRef,
    SplitCoins,
    String,
    Struct,
    TransferObjects,
    UInt,
    Unset,
)
from ptb_services.ptb.validate import validate, validate_block

WIDTHS = (8, 16, 32, 64, 128, 256)


def _kind(value, type_):
    with pytest.raises(ArgumentValidationError) as ei:
        validate(value, type_)
    return ei.value.kind


# ----------------------------- integers -----------------------------


@pytest.mark.parametrize("bits", WIDTHS)
def test_uint_accepts_full_range(bits):
    top = 2**bits - 1
    assert validate("0", f"u{bits}").value == 0
    assert validate(str(top), f"u{bits}").value == top


@pytest.mark.parametrize("bits", WIDTHS)
def test_uint_rejects_just_outside_range(bits):
    assert _kind(str(2**bits), f"u{bits}") is ValidationKind.OUT_OF_RANGE
    assert _kind("-1", f"u{bits}") is ValidationKind.OUT_OF_RANGE


def test_uint_huge_values_are_out_of_range_not_lossy():
    assert _kind("9" * 200, "u256") is ValidationKind.OUT_OF_RANGE
    # 2**64 + 1 would round to 2**64 in a float; must still be rejected exactly
    assert _kind(str(2**64 + 1), "u64") is ValidationKind.OUT_OF_RANGE


@pytest.mark.parametrize("raw", ["+5", "1.5", "1e3", "0x10", "   ", "abc", "12abc", "--1"])
def test_uint_not_a_number(raw):
    assert _kind(raw, "u64") is ValidationKind.NOT_A_NUMBER


def test_uint_trims_whitespace_and_leading_zeros():
    assert validate("  42 ", "u8").value == 42
    assert validate("000255", "u8").value == 255
    assert validate("-0", "u8").value == 0


def test_empty_value_is_missing_except_for_strings():
    assert _kind("", "u64") is ValidationKind.MISSING_VALUE
    assert _kind("", "address") is ValidationKind.MISSING_VALUE
    assert validate("", "0x1::string::String").value == ""


# ----------------------------- bool / address -----------------------------


def test_bool_is_strict():
    assert validate("true", "bool").value is True
    assert validate("false", "bool").value is False
    for raw in ("True", "1", "yes", "FALSE", " true", "false "):
        assert _kind(raw, "bool") is ValidationKind.INVALID_BOOLEAN


def test_address_requires_exactly_64_hex_digits():
    ok = "0x" + "Ab" * 32
    assert validate(ok, "address").value == ok.lower()
    assert _kind("0x" + "a" * 63, "address") is ValidationKind.INVALID_ADDRESS_FORMAT  # 65 chars
    assert _kind("0x" + "a" * 65, "address") is ValidationKind.INVALID_ADDRESS_FORMAT  # 67 chars
    assert _kind("a" * 64, "address") is ValidationKind.INVALID_ADDRESS_FORMAT
    assert _kind("0x" + "g" * 64, "address") is ValidationKind.INVALID_ADDRESS_FORMAT
    assert _kind(" " + ok, "address") is ValidationKind.INVALID_ADDRESS_FORMAT
    assert _kind(ok + "\n", "address") is ValidationKind.INVALID_ADDRESS_FORMAT
    assert _kind(" " + ok, "objectRef") is ValidationKind.INVALID_ADDRESS_FORMAT


def test_reference_types_demand_object_ids():
    assert _kind("counter", "&mut 0x2::counter::Counter") is ValidationKind.INVALID_ADDRESS_FORMAT
    oid = "0x" + "1" * 64
    assert validate(oid, "&0x2::counter::Counter").value == oid
    assert validate(oid, "objectRef").value == oid


def test_strings_and_structs_pass_through():
    assert validate("héllo", "string").value == "héllo"
    assert validate("anything", "0xabc::pool::Config").value == "anything"


# ----------------------------- vectors -----------------------------


def test_vector_of_ints():
    tv = validate("[1, 2, 3]", "vector<u8>")
    assert tv.to_python() == [1, 2, 3]


def test_vector_element_error_carries_index():
    with pytest.raises(ArgumentValidationError) as ei:
        validate("[1, 256]", "vector<u8>")
    err = ei.value
    assert err.kind is ValidationKind.OUT_OF_RANGE
    assert err.path == (1,)
    assert "element 1" in err.message
    assert err.details["path"] == [1]


def test_nested_vector_error_path():
    with pytest.raises(ArgumentValidationError) as ei:
        validate("[[1, 2], [3, 999]]", "vector<vector<u8>>")
    assert ei.value.path == (1, 1)


def test_vector_of_bools_and_addresses():
    assert validate("[true, false]", "vector<bool>").to_python() == [True, False]
    addr = "0x" + "e" * 64
    assert validate(f'["{addr}"]', "vector<address>").to_python() == [addr]


@pytest.mark.parametrize("raw", ["1,2", '{"a": 1}', "[1, 2", "42"])
def test_vector_requires_json_array(raw):
    assert _kind(raw, "vector<u64>") is ValidationKind.INVALID_VECTOR


def test_non_string_input_is_a_type_error():
    with pytest.raises(TypeError):
        validate(42, "u64")  # type: ignore[arg-type]


# ----------------------------- BCS -----------------------------


def test_typed_values_serialize_to_bcs():
    assert validate("1", "u16").to_bcs() == b"\x01\x00"
    assert validate("65535", "u16").to_bcs() == b"\xff\xff"
    assert validate("true", "bool").to_bcs() == b"\x01"
    assert validate("[1, 2]", "vector<u8>").to_bcs() == b"\x02\x01\x02"
    assert validate("hi", "string").to_bcs() == b"\x02hi"
    addr = "0x" + "0f" * 32
    assert validate(addr, "address").to_bcs() == bytes([0x0F] * 32)


# ----------------------------- whole blocks -----------------------------


def test_validate_block_collects_every_error_with_location():
    commands = [
        MoveCall(
            "cmd-1",
            "0x2::demo::set",
            (Literal("300", UInt(8)), Literal("yes", Bool())),
            parameters=(UInt(8), Bool()),
        ),
        TransferObjects("cmd-2", (ResultRef(0),), Literal("0x123", Address())),
    ]
    errors = validate_block(commands)
    kinds = [(e.details["commandIndex"], e.details["argumentIndex"], e.details["kind"]) for e in errors]
    assert kinds == [
        (0, 0, "OutOfRange"),
        (0, 1, "InvalidBoolean"),
        (1, 1, "InvalidAddressFormat"),
    ]
    assert errors[0].details["commandId"] == "cmd-1"


def test_validate_block_reference_slot_overrides_literal_type():
    cmd = MoveCall(
        "cmd-1",
        "0x2::counter::increment",
        (Literal("my counter", String()),),
        parameters=(Reference(Struct("Counter"), mutable=True),),
    )
    (err,) = validate_block([cmd])
    assert err.kind is ValidationKind.INVALID_ADDRESS_FORMAT


def test_validate_block_reports_structure_and_references():
    commands = [
        MoveCall("cmd-1", "not-a-target", ()),
        SplitCoins("cmd-2", GAS, ()),
        TransferObjects("cmd-3", (ResultRef(3),), Unset("recipient")),
        TransferObjects("cmd-4", (ObjectRef("0x12"),), Literal("0x" + "c" * 64, Address())),
    ]
    errors = validate_block(commands)
    build_kinds = [e.kind for e in errors if isinstance(e, BuildError)]
    assert build_kinds == [
        BuildErrorKind.INVALID_COMMAND,
        BuildErrorKind.INVALID_COMMAND,
        BuildErrorKind.FORWARD_REFERENCE,
    ]
    arg_kinds = [e.kind for e in errors if isinstance(e, ArgumentValidationError)]
    assert arg_kinds == [ValidationKind.MISSING_REFERENCE, ValidationKind.INVALID_ADDRESS_FORMAT]


def test_validate_block_accepts_a_good_block():
    commands = [
        SplitCoins("cmd-1", GAS, (Literal("100", UInt(64)), Literal("200", UInt(64)))),
        TransferObjects("cmd-2", (ResultRef(0, 1),), Literal("0x" + "c" * 64, Address())),
    ]
    assert validate_block(commands) == []


def test_validate_block_enforces_fixed_slot_types():
    commands = [
        SplitCoins("cmd-1", GAS, (Literal("abc"), Literal("5", String()))),
        TransferObjects("cmd-2", (ResultRef(0, 0),), Literal("not-an-address")),
    ]
    errors = validate_block(commands)
    located = [(e.details["commandIndex"], e.details["argumentIndex"], e.kind) for e in errors]
    assert located == [
        (0, 1, ValidationKind.NOT_A_NUMBER),
        (1, 1, ValidationKind.INVALID_ADDRESS_FORMAT),
    ]
    assert errors[0].details["type"] == "u64"
    assert errors[1].details["type"] == "address"


def test_primitive_parameter_overrides_declared_literal_type():
    cmd = MoveCall(
        "cmd-1",
        "0x2::demo::set",
        (Literal("300", String()), Literal("maybe", String())),
        parameters=(UInt(8), Bool()),
    )
    assert [e.kind for e in validate_block([cmd])] == [
        ValidationKind.OUT_OF_RANGE,
        ValidationKind.INVALID_BOOLEAN,
    ]
