"""HTTP middleware: problem+json error handlers and request/trace ids."""

from .errors import PROBLEM_CT, install_error_handlers
from .request_id import RequestIdMiddleware, install_request_id_middleware

__all__ = [
    "PROBLEM_CT",
    "install_error_handlers",
    "RequestIdMiddleware",
    "install_request_id_middleware",
]
