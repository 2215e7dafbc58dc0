"""Network-facing services: pre-flight object checks and the execution engine."""

from .execute import CancelToken, ExecutionEngine, ExecutionMode, ExecutionResult
from .preflight import prevalidate_objects

__all__ = ["CancelToken", "ExecutionEngine", "ExecutionMode", "ExecutionResult", "prevalidate_objects"]
