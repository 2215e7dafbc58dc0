"""
Routers package: every HTTP route the service exposes.

Usage (from app factory):
    from ptb_services.routers import build_router
    app.include_router(build_router())
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter

from . import health, ptb

log = logging.getLogger(__name__)

# Order controls route declaration order and OpenAPI grouping.
ROUTERS = (health.router, ptb.router)


def collect_routers() -> List[APIRouter]:
    return list(ROUTERS)


def build_router() -> APIRouter:
    """A single top-level APIRouter that includes all sub-routers."""
    root = APIRouter()
    for r in collect_routers():
        root.include_router(r)
        log.debug("mounted router prefix=%s tags=%s", r.prefix, r.tags)
    return root


__all__ = ["ROUTERS", "build_router", "collect_routers"]
