"""
JSON-RPC client for Move ledger full nodes.

Implements the ``LedgerClient`` capability:
  * iota_getChainIdentifier           -> chain_identifier (readiness)
  * iota_getObject                    -> resolve_object
  * ptb_buildTransaction              -> build_transaction
  * iota_devInspectTransactionBlock   -> simulate
  * iota_executeTransactionBlock      -> submit

Notes
-----
* Transaction bytes travel base64-encoded, as the node expects.
* Transport failures and HTTP 502/503/504 are retried with exponential
  backoff; JSON-RPC error objects are never retried.
* Every public method raises only ``ptb_services.errors.RpcError``. A node
  that answers but reports a failed simulation or transaction yields an
  outcome with ``status == "failure"``.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..errors import RpcError
from ..ptb.builder import Instructions
from .interfaces import (
    STATUS_FAILURE,
    STATUS_SUCCESS,
    ObjectInfo,
    SimulationOutcome,
    SubmissionOutcome,
)

log = logging.getLogger(__name__)

RETRY_STATUSES = (502, 503, 504)


# ----------------------------- Errors ---------------------------------------


class NodeRpcError(Exception):
    """Base class for all node RPC errors."""


class RpcTransportError(NodeRpcError):
    """Network/HTTP transport-level error."""


class RpcResponseError(NodeRpcError):
    """JSON-RPC error object returned from the node."""

    def __init__(self, code: int, message: str, data: Any | None = None):
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


# ----------------------------- Helpers --------------------------------------


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _build_headers(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    hdrs = {
        "content-type": "application/json",
        "accept": "application/json",
    }
    if extra:
        hdrs.update(extra)
    return hdrs


def _gas_used(effects: Optional[Dict[str, Any]]) -> Optional[int]:
    cost = ((effects or {}).get("gasUsed") or {}).get("computationCost")
    try:
        return int(cost) if cost is not None else None
    except (TypeError, ValueError):
        return None


def _status(effects: Optional[Dict[str, Any]]) -> Tuple[str, Optional[str]]:
    st = (effects or {}).get("status") or {}
    status = STATUS_SUCCESS if st.get("status") == STATUS_SUCCESS else STATUS_FAILURE
    return status, st.get("error")


def _parse_owner(owner: Any) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(owner_address, owner_kind)`` from the node's owner field."""
    if isinstance(owner, str):
        return None, owner
    if isinstance(owner, dict) and owner:
        kind, value = next(iter(owner.items()))
        if isinstance(value, str):
            return value, kind
        return None, kind
    return None, None


# ----------------------------- Client ---------------------------------------


@dataclass
class NodeRpcConfig:
    url: str
    path: str = "/"
    timeout_s: float = 10.0
    max_retries: int = 3
    backoff_base_s: float = 0.25  # exponential backoff starting delay
    headers: Optional[Dict[str, str]] = None
    network: str = "testnet"


class NodeRpc:
    """Async JSON-RPC ledger client for one network."""

    def __init__(self, config: NodeRpcConfig):
        self._cfg = config
        self._id = 0
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def network(self) -> str:
        return self._cfg.network

    # ---------- lifecycle ----------

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._cfg.url,
                timeout=self._cfg.timeout_s,
                headers=_build_headers(self._cfg.headers),
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "NodeRpc":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ---------- core transport ----------

    async def _call(self, method: str, params: Any | None = None) -> Any:
        """Perform a single JSON-RPC call with retries on transient transport failures."""
        if self._client is None:
            await self.start()
        assert self._client is not None

        self._id += 1
        payload = {"jsonrpc": "2.0", "id": self._id, "method": method, "params": params or []}

        attempt = 0
        while True:
            attempt += 1
            try:
                resp = await self._client.post(self._cfg.path, json=payload)
                status = resp.status_code
                if status == 200:
                    data = json.loads(resp.content)
                    if data.get("error") is not None:
                        err = data["error"]
                        raise RpcResponseError(
                            err.get("code", -32000), err.get("message", "Unknown error"), err.get("data")
                        )
                    return data.get("result")
                if status not in RETRY_STATUSES:
                    raise RpcTransportError(f"HTTP {status}: {resp.content[:256]!r}")
                raise httpx.TransportError(f"HTTP {status}")
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                if attempt > self._cfg.max_retries:
                    raise RpcTransportError(f"{method} failed after {attempt} attempts: {exc}") from exc
                delay = self._cfg.backoff_base_s * (2 ** (attempt - 1))
                log.debug("rpc %s attempt %d failed (%s); retrying in %.2fs", method, attempt, exc, delay)
                await asyncio.sleep(delay)
            except ValueError as exc:
                raise RpcTransportError(f"{method}: invalid JSON from node: {exc}") from exc

    async def _request(self, method: str, params: Any | None = None) -> Any:
        """``_call`` with transport failures mapped to the service's RpcError."""
        try:
            return await self._call(method, params)
        except RpcTransportError as exc:
            raise RpcError(str(exc), details={"method": method, "network": self.network}) from exc

    async def chain_identifier(self) -> str:
        """Cheap liveness call used by the readiness probe."""
        try:
            return str(await self._request("iota_getChainIdentifier"))
        except RpcResponseError as exc:
            raise RpcError(exc.message, details={"method": "iota_getChainIdentifier", "code": exc.code}) from exc

    # ---------- ledger capability ----------

    async def resolve_object(self, object_id: str) -> ObjectInfo:
        try:
            result = await self._request("iota_getObject", [object_id, {"showOwner": True}])
        except RpcResponseError as exc:
            raise RpcError(exc.message, details={"method": "iota_getObject", "code": exc.code}) from exc

        result = result or {}
        data = result.get("data")
        if not data:
            err = result.get("error") or {}
            return ObjectInfo(object_id=object_id, exists=False, error=str(err.get("code") or "notExists"))
        owner, owner_kind = _parse_owner(data.get("owner"))
        version = data.get("version")
        return ObjectInfo(
            object_id=data.get("objectId", object_id),
            exists=True,
            owner=owner,
            owner_kind=owner_kind,
            version=None if version is None else str(version),
        )

    async def build_transaction(self, instructions: Instructions, *, sender: str, gas_budget: int) -> bytes:
        try:
            result = await self._request(
                "ptb_buildTransaction", [instructions.to_wire(), sender, str(gas_budget)]
            )
        except RpcResponseError as exc:
            raise RpcError(
                f"node rejected the transaction block: {exc.message}",
                details={"method": "ptb_buildTransaction", "code": exc.code},
            ) from exc
        tx_b64 = (result or {}).get("txBytes")
        if not tx_b64:
            raise RpcError("node returned no transaction bytes", details={"method": "ptb_buildTransaction"})
        return base64.b64decode(tx_b64)

    async def simulate(self, tx_bytes: bytes, *, sender: str) -> SimulationOutcome:
        try:
            result = await self._request("iota_devInspectTransactionBlock", [sender, _b64(tx_bytes)])
        except RpcResponseError as exc:
            return SimulationOutcome(status=STATUS_FAILURE, error=exc.message)

        result = result or {}
        effects = result.get("effects")
        status, error = _status(effects)
        error = error or result.get("error")
        if error and status == STATUS_SUCCESS:
            status = STATUS_FAILURE

        values: List[Tuple[bytes, str]] = []
        for entry in result.get("results") or []:
            for data, type_str in entry.get("returnValues") or []:
                values.append((bytes(data), str(type_str)))

        return SimulationOutcome(
            status=status,
            return_values=tuple(values),
            gas_used=_gas_used(effects),
            error=error,
        )

    async def submit(self, tx_bytes: bytes, signature: str) -> SubmissionOutcome:
        options = {"showEffects": True, "showObjectChanges": True, "showEvents": True}
        try:
            result = await self._request(
                "iota_executeTransactionBlock",
                [_b64(tx_bytes), [signature], options, "WaitForLocalExecution"],
            )
        except RpcResponseError as exc:
            return SubmissionOutcome(status=STATUS_FAILURE, error=exc.message)

        result = result or {}
        effects = result.get("effects")
        status, error = _status(effects)
        return SubmissionOutcome(
            status=status,
            digest=result.get("digest"),
            gas_used=_gas_used(effects),
            object_changes=tuple(result.get("objectChanges") or ()),
            events=tuple(result.get("events") or ()),
            error=error,
        )


# ----------------------------- Factory --------------------------------------


def from_settings(settings, network: Optional[str] = None) -> NodeRpc:
    """Build a client for ``network`` (default: settings.default_network)."""
    net = (network or settings.default_network).lower()
    return NodeRpc(
        NodeRpcConfig(
            url=settings.rpc_url(net),
            timeout_s=settings.rpc_timeout_s,
            max_retries=settings.rpc_max_retries,
            backoff_base_s=settings.rpc_backoff_base_s,
            network=net,
        )
    )


__all__ = [
    "NodeRpc",
    "NodeRpcConfig",
    "NodeRpcError",
    "RpcTransportError",
    "RpcResponseError",
    "RETRY_STATUSES",
    "from_settings",
]
