from __future__ import annotations

"""
Structured logging setup for PTB Services.

Configures **structlog** + the stdlib ``logging`` package so that:
- All logs (including Uvicorn / FastAPI / httpx) are emitted as structured JSON
  by default, or through the console renderer in dev.
- Context variables (request id, trace id, execution attempt) are merged into
  each event.
- Secrets (signer keys, signatures, auth headers) are redacted.

Quick start
-----------
    from ptb_services.logging import setup_logging, get_logger

    setup_logging(service_name="ptb-services")  # once per process
    log = get_logger(__name__)
    log.info("server_started", port=8080)

Environment
-----------
- LOG_LEVEL: one of DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: "json" (default) or "console"
- LOG_INCLUDE_STACKTRACE: "1" to include stack traces (default: 1 for json, 0 for console)
"""

import logging
import os
from typing import Any, Dict, Iterable, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.processors import JSONRenderer

REDACT_KEYS = {
    "authorization",
    "token",
    "password",
    "secret",
    "api_key",
    "signer_key",
    "default_signer_key",
    "seed",
    "signature",
}


def _redact_secrets(_: logging.Logger, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for k in list(event_dict.keys()):
        if k.lower() in REDACT_KEYS and event_dict[k] is not None:
            event_dict[k] = "***"
    return event_dict


def _base_processors(service_name: str, include_stacktrace: bool) -> Iterable:
    yield structlog.stdlib.add_log_level
    yield structlog.processors.TimeStamper(fmt="iso", utc=True)
    yield merge_contextvars
    yield structlog.processors.StackInfoRenderer()
    if include_stacktrace:
        yield structlog.processors.format_exc_info
    yield _redact_secrets
    yield structlog.processors.UnicodeDecoder()

    def _ensure_service(_: logging.Logger, __: str, ev: Dict[str, Any]) -> Dict[str, Any]:
        ev.setdefault("service", service_name)
        return ev

    yield _ensure_service


def setup_logging(
    *,
    service_name: str = "ptb-services",
    level: Optional[str | int] = None,
    log_format: Optional[str] = None,
    include_stacktrace: Optional[bool] = None,
) -> None:
    """
    Configure structlog + stdlib logging. Safe to call more than once; the
    root handler is replaced each time.
    """
    env_level = os.getenv("LOG_LEVEL", "").upper() or None
    env_format = os.getenv("LOG_FORMAT", "").lower() or None
    env_stack = os.getenv("LOG_INCLUDE_STACKTRACE")

    level = level or env_level or "INFO"
    if isinstance(level, str):
        level = level.upper()
    log_format = (log_format or env_format or "json").lower()
    if include_stacktrace is None:
        if env_stack is not None:
            include_stacktrace = env_stack.strip() in ("1", "true", "yes", "on")
        else:
            include_stacktrace = log_format == "json"

    processors = list(_base_processors(service_name, include_stacktrace))

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=True, sort_keys=False)
    else:
        renderer = JSONRenderer(sort_keys=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            *processors,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # stdlib records go through the same processors and renderer.
    shared_handler = logging.StreamHandler()
    shared_handler.setLevel(logging.DEBUG)
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            *processors,
        ],
    )
    shared_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(shared_handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers = [shared_handler]
        lg.propagate = False
        lg.setLevel(level)

    logging.getLogger("asyncio").setLevel(os.getenv("LOG_LEVEL_ASYNCIO", "WARNING"))
    logging.getLogger("httpcore").setLevel(os.getenv("LOG_LEVEL_HTTPCORE", "WARNING"))
    logging.getLogger("httpx").setLevel(os.getenv("LOG_LEVEL_HTTPX", "WARNING"))


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    log = structlog.get_logger()
    if name:
        return log.bind(logger=name)
    return log


__all__ = [
    "setup_logging",
    "get_logger",
]
