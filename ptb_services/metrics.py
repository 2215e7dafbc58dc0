from __future__ import annotations

"""
Prometheus metrics for PTB Services.

HTTP metrics (ASGI middleware):
    - http_requests_total{method,path,status}
    - http_request_duration_seconds{method,path,status}
    - http_inprogress_requests{method,path}

Domain metrics (incremented by the execution engine and pre-flight checks):
    - ptb_executions_total{mode,outcome}
    - ptb_simulation_retries_total
    - ptb_object_lookups_total{result}

Each ``Metrics`` instance owns its own ``CollectorRegistry`` so several apps
(e.g. one per test) can coexist in one process.
"""

import os
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI
from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, Histogram, Info, generate_latest)
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Receive, Scope, Send


class Metrics:
    """Registry plus metric objects. Exposed via ``app.state.metrics``."""

    def __init__(self, service_name: str = "ptb-services", service_version: Optional[str] = None) -> None:
        self.registry = CollectorRegistry()

        self.http_inprogress = Gauge(
            "http_inprogress_requests",
            "In-progress HTTP requests",
            ["method", "path"],
            registry=self.registry,
        )
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
            registry=self.registry,
        )
        self.http_request_duration_seconds = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "path", "status"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self.registry,
        )

        self.executions_total = Counter(
            "ptb_executions_total",
            "Transaction block execution attempts by mode and final outcome",
            ["mode", "outcome"],
            registry=self.registry,
        )
        self.simulation_retries_total = Counter(
            "ptb_simulation_retries_total",
            "Simulations retried with the default signer as sender",
            registry=self.registry,
        )
        self.object_lookups_total = Counter(
            "ptb_object_lookups_total",
            "Pre-flight object lookups by result",
            ["result"],
            registry=self.registry,
        )

        self.service_info = Info("service", "Service metadata", registry=self.registry)
        payload = {"name": service_name}
        if service_version:
            payload["version"] = service_version
        self.service_info.info(payload)

    # Domain helpers ------------------------------------------------------- #

    def record_execution(self, mode: str, outcome: str) -> None:
        self.executions_total.labels(mode, outcome).inc()

    def record_retry(self) -> None:
        self.simulation_retries_total.inc()

    def record_lookup(self, result: str) -> None:
        self.object_lookups_total.labels(result).inc()

    def render_latest(self) -> bytes:
        return generate_latest(self.registry)


# ------------------------------ Middleware -----------------------------------


def _extract_path_template(scope: Scope) -> str:
    """Low-cardinality route template, falling back to the raw path."""
    route = scope.get("route")
    for attr in ("path_format", "path"):
        if route is not None and hasattr(route, attr):
            val = getattr(route, attr, None)
            if isinstance(val, str) and val:
                return val
    return scope.get("path") or (scope.get("raw_path") or b"").decode("latin-1", "ignore")


class PrometheusMiddleware:
    def __init__(self, app: ASGIApp, metrics: Metrics):
        self.app = app
        self.metrics = metrics

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        path_tmpl = _extract_path_template(scope)
        start = time.perf_counter()
        status_code = 500

        self.metrics.http_inprogress.labels(method, path_tmpl).inc()

        async def send_wrapped(message: Dict[str, Any]) -> None:
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapped)
        finally:
            duration = time.perf_counter() - start
            labels = (method, path_tmpl, str(status_code))
            try:
                self.metrics.http_requests_total.labels(*labels).inc()
                self.metrics.http_request_duration_seconds.labels(*labels).observe(duration)
            finally:
                self.metrics.http_inprogress.labels(method, path_tmpl).dec()


# ------------------------------ Router ---------------------------------------


def create_metrics_router(metrics: Metrics, path: str = "/metrics") -> APIRouter:
    router = APIRouter()

    @router.get(path, include_in_schema=False)
    async def metrics_endpoint() -> Response:
        try:
            return Response(content=metrics.render_latest(), media_type=CONTENT_TYPE_LATEST)
        except Exception as e:
            # Exporters must never take the service down.
            return PlainTextResponse(f"metrics error: {e}", status_code=500)

    return router


def setup_metrics(
    app: FastAPI,
    *,
    service_name: str = "ptb-services",
    service_version: Optional[str] = None,
    path: Optional[str] = None,
) -> Metrics:
    """
    Create the registry, add the HTTP middleware, mount the exporter and store
    the ``Metrics`` instance on ``app.state.metrics``.
    """
    metrics = Metrics(service_name=service_name, service_version=service_version)
    app.add_middleware(PrometheusMiddleware, metrics=metrics)
    app.include_router(create_metrics_router(metrics, path or os.getenv("METRICS_PATH") or "/metrics"))
    app.state.metrics = metrics
    return metrics


__all__ = [
    "Metrics",
    "PrometheusMiddleware",
    "create_metrics_router",
    "setup_metrics",
]
