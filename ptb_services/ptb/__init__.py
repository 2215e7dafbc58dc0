"""
Programmable transaction blocks: types, validation, reference resolution,
lowering and return-value decoding. Nothing in this package touches the
network.
"""

from .builder import Instructions, TransactionBuilder, build
from .decode import DecodedValue, decode, decode_value
from .legacy import coerce_legacy
from .resolver import CommandBlock, available_references, generate_auto_references
from .types import (
    GAS,
    Command,
    Gas,
    Literal,
    MergeCoins,
    MoveCall,
    ObjectRef,
    ResultRef,
    SplitCoins,
    TransferObjects,
    Unset,
    parse_move_type,
)
from .validate import TypedValue, validate, validate_block

__all__ = [
    "GAS",
    "Command",
    "CommandBlock",
    "DecodedValue",
    "Gas",
    "Instructions",
    "Literal",
    "MergeCoins",
    "MoveCall",
    "ObjectRef",
    "ResultRef",
    "SplitCoins",
    "TransactionBuilder",
    "TransferObjects",
    "TypedValue",
    "Unset",
    "available_references",
    "build",
    "coerce_legacy",
    "decode",
    "decode_value",
    "generate_auto_references",
    "parse_move_type",
    "validate",
    "validate_block",
]
