"""Request/response models (pydantic v2)."""

from .common import ApiModel, Hex64, Network
from .ptb import (
    BlockRequest,
    BlockTemplate,
    BuildResponse,
    CommandModel,
    ExecuteRequest,
    ExecuteResponse,
    ValidateResponse,
    ViewRequest,
)

__all__ = [
    "ApiModel",
    "Hex64",
    "Network",
    "BlockRequest",
    "BlockTemplate",
    "BuildResponse",
    "CommandModel",
    "ExecuteRequest",
    "ExecuteResponse",
    "ValidateResponse",
    "ViewRequest",
]
