from __future__ import annotations

"""
Exception -> RFC 7807 "problem+json" mappers for FastAPI.

- Produces `application/problem+json` for:
    * ApiError subclasses (validation, lookup, build, simulation, submission)
    * Starlette/FastAPI HTTPException
    * RequestValidationError (malformed request bodies)
    * Unhandled exceptions (500)
- Attaches `request_id` / `trace_id` from request.state.
- Never leaks stack traces in responses; logs them instead.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ptb_services.errors import ApiError

PROBLEM_CT = "application/problem+json"

log = structlog.get_logger(__name__)

_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


def _state_ids(request: Request) -> Dict[str, str]:
    rid = getattr(request.state, "request_id", "") or ""
    tid = getattr(request.state, "trace_id", "") or ""
    return {"request_id": rid, "trace_id": tid}


def _base_problem(
    request: Request,
    *,
    status: int,
    title: str,
    detail: Optional[str] = None,
    type_uri: str = "about:blank",
    extras: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    prob: Dict[str, Any] = {
        "type": type_uri,
        "title": title,
        "status": status,
        "detail": detail or "",
        "instance": str(request.url.path),
        **_state_ids(request),
    }
    if extras:
        for k, v in extras.items():
            if k not in prob:
                prob[k] = v
    return prob


def problem_response(request: Request, exc: ApiError) -> JSONResponse:
    """Render an ApiError; shared with routers that turn Failed results into responses."""
    body = {**exc.to_problem(), "instance": str(request.url.path), **_state_ids(request)}
    if exc.status_code >= 500:
        log.error("api_error", **body)
    else:
        log.warning("api_error", **body)
    return JSONResponse(status_code=exc.status_code, content=body, media_type=PROBLEM_CT)


async def _handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return problem_response(request, exc)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status = int(exc.status_code)
    detail = str(exc.detail) if getattr(exc, "detail", None) else ""
    body = _base_problem(request, status=status, title=_TITLES.get(status, "Error"), detail=detail)
    (log.warning if 400 <= status < 500 else log.error)("http_exception", **body)
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_CT)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = _base_problem(
        request,
        status=422,
        title=_TITLES[422],
        detail="Request validation failed.",
        extras={"errors": jsonable_encoder(exc.errors())},
    )
    log.warning("request_validation_error", **body)
    return JSONResponse(status_code=422, content=body, media_type=PROBLEM_CT)


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    body = _base_problem(
        request,
        status=500,
        title=_TITLES[500],
        detail="An unexpected error occurred. Please retry or contact support with the request_id.",
    )
    log.exception("unhandled_exception", **body)
    return JSONResponse(status_code=500, content=body, media_type=PROBLEM_CT)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _handle_api_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _handle_unexpected_error)


__all__ = ["install_error_handlers", "problem_response", "PROBLEM_CT"]
