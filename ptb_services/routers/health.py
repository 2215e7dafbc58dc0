from __future__ import annotations

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from fastapi import APIRouter, Request, Response, status

from .. import version as svc_version
from ..adapters import node_rpc
from ..errors import RpcError

log = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

_PROCESS_START = time.time()


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uptime_seconds() -> float:
    return max(0.0, time.time() - _PROCESS_START)


async def _check_rpc(settings: Any) -> Tuple[bool, Dict[str, Any]]:
    """
    RPC readiness: one tiny call to the default network's node to confirm
    connectivity and basic JSON-RPC viability.
    """
    info: Dict[str, Any] = {"network": settings.default_network}
    try:
        info["url"] = settings.rpc_url()
        async with node_rpc.from_settings(settings) as client:
            info["chainId"] = await client.chain_identifier()
        return True, info
    except (RpcError, ValueError) as e:
        info.update(error=str(e))
        return False, info


def _version_blob() -> Dict[str, Any]:
    meta = svc_version.build_meta().to_dict()
    return {
        "service": "ptb-services",
        **meta,
        "python": {
            "version": "{}.{}.{}".format(*sys.version_info[:3]),
            "impl": sys.implementation.name,
        },
        "now": _utcnow_iso(),
        "uptime_seconds": round(_uptime_seconds(), 3),
    }


@router.get("/healthz", summary="Liveness probe", response_model=None)
def healthz() -> Dict[str, Any]:
    """
    Simple liveness probe: always returns 200 if the process is serving requests.
    """
    return {"status": "ok", **_version_blob()}


@router.get("/version", summary="Service version", response_model=None)
def version(request: Request) -> Dict[str, Any]:
    meta = _version_blob()
    settings = request.app.state.settings
    meta["defaultNetwork"] = settings.default_network
    meta["signer"] = getattr(request.app.state.signer, "address", None)
    return meta


@router.get("/readyz", summary="Readiness probe", response_model=None)
async def readyz(request: Request, response: Response) -> Dict[str, Any]:
    """
    Readiness probe: verifies the default network's node answers.
    Returns 200 when all checks pass; 503 otherwise. A missing signer is
    reported but does not make the service unready.
    """
    settings = request.app.state.settings
    checks: Dict[str, Dict[str, Any]] = {}

    ok, info = await _check_rpc(settings)
    checks["rpc"] = {"ok": ok, **info}
    signer = request.app.state.signer
    checks["signer"] = {"ok": True, "configured": signer is not None}

    ok_all = all(c["ok"] for c in checks.values())
    if not ok_all:
        log.warning("readiness check failed: %s", checks)
    response.status_code = status.HTTP_200_OK if ok_all else status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "ok" if ok_all else "degraded",
        "now": _utcnow_iso(),
        "uptime_seconds": round(_uptime_seconds(), 3),
        "checks": checks,
    }


__all__ = ["router"]
