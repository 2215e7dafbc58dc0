from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from .adapters.signer import load_signer
from .config import Config, load_config
from .logging import get_logger, setup_logging
from .metrics import setup_metrics
from .middleware.errors import install_error_handlers
from .middleware.request_id import install_request_id_middleware
from .routers import build_router
from .version import __version__, build_version

log = get_logger(__name__)

_UNSET = object()


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    cfg: Config = app.state.settings
    signer = app.state.signer
    log.info(
        "ptb-services starting",
        version=build_version(),
        network=cfg.default_network,
        signer=getattr(signer, "address", None),
    )
    try:
        yield
    finally:
        log.info("ptb-services stopped")


def create_app(config: Optional[Config] = None, *, signer: Any = _UNSET) -> FastAPI:
    """
    FastAPI factory. Mounts routers, middleware and metrics.

    ``signer`` overrides the default signer derived from ``DEFAULT_SIGNER_KEY``;
    pass ``None`` to run without one.
    """
    cfg = config or load_config()
    setup_logging(level=cfg.log_level, log_format=cfg.log_format)

    app = FastAPI(
        title="PTB Services",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.settings = cfg
    app.state.signer = load_signer(cfg) if signer is _UNSET else signer

    install_request_id_middleware(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins(),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id", "traceparent"],
        expose_headers=["X-Request-Id", "traceparent"],
        allow_credentials=False,
        max_age=600,
    )

    # Error -> problem+json mapping
    install_error_handlers(app)

    # Metrics (/metrics)
    setup_metrics(app, service_version=build_version())

    app.include_router(build_router())
    return app


# Convenience entrypoint for `uvicorn ptb_services.app:app`
app = create_app()
