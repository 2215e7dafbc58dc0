from __future__ import annotations

from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Tuple

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from ptb_services.adapters import node_rpc
from ptb_services.adapters.interfaces import ObjectInfo, SimulationOutcome, SubmissionOutcome
from ptb_services.adapters.signer import Ed25519Signer
from ptb_services.app import create_app
from ptb_services.config import Config

NODE_URL = "http://node.test"

OBJ_A = "0x" + "a" * 64
OBJ_B = "0x" + "b" * 64
RECIPIENT = "0x" + "c" * 64
OWNER = "0x" + "d" * 64


class FakeLedger:
    """
    In-memory ledger double. Objects must be registered to exist; simulation
    outcomes are consumed in order (success without values once exhausted).
    """

    def __init__(self) -> None:
        self.objects: Dict[str, ObjectInfo] = {}
        self.lookup_errors: Dict[str, Exception] = {}
        self.simulations: List[SimulationOutcome] = []
        self.submission = SubmissionOutcome(
            status="success",
            digest="9xJfWmSh1Digest",
            gas_used=1_234,
            object_changes=({"type": "created", "objectId": OBJ_B},),
            events=({"type": "0x2::coin::Split"},),
        )
        self.calls: List[Tuple[str, Any]] = []
        self.built = None

    def add_object(self, object_id: str, owner: Optional[str] = OWNER, owner_kind: str = "AddressOwner") -> None:
        self.objects[object_id] = ObjectInfo(object_id, exists=True, owner=owner, owner_kind=owner_kind, version="7")

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.calls if m == method)

    def senders(self) -> List[str]:
        return [arg for m, arg in self.calls if m == "simulate"]

    async def __aenter__(self) -> "FakeLedger":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def chain_identifier(self) -> str:
        return "4c78adac"

    async def resolve_object(self, object_id: str) -> ObjectInfo:
        self.calls.append(("resolve_object", object_id))
        if object_id in self.lookup_errors:
            raise self.lookup_errors[object_id]
        return self.objects.get(object_id, ObjectInfo(object_id, exists=False))

    async def build_transaction(self, instructions, *, sender: str, gas_budget: int) -> bytes:
        self.calls.append(("build_transaction", sender))
        self.built = instructions
        return b"tx-bytes"

    async def simulate(self, tx_bytes: bytes, *, sender: str) -> SimulationOutcome:
        self.calls.append(("simulate", sender))
        if self.simulations:
            return self.simulations.pop(0)
        return SimulationOutcome(status="success", gas_used=500)

    async def submit(self, tx_bytes: bytes, signature: str) -> SubmissionOutcome:
        self.calls.append(("submit", signature))
        return self.submission


@pytest.fixture
def settings() -> Config:
    return Config(
        testnet_rpc_url=NODE_URL,
        mainnet_rpc_url="http://mainnet.node.test",
        default_network="testnet",
        rpc_max_retries=0,
        rpc_backoff_base_s=0.0,
        default_signer_key=None,
        log_format="console",
    )


@pytest.fixture
def signer() -> Ed25519Signer:
    return Ed25519Signer.from_seed(bytes(range(32)))


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def app(settings: Config, signer: Ed25519Signer, ledger: FakeLedger, monkeypatch: pytest.MonkeyPatch) -> FastAPI:
    """App wired to the in-memory ledger for every network."""
    monkeypatch.setattr(node_rpc, "from_settings", lambda _settings, network=None: ledger)
    return create_app(settings, signer=signer)


@pytest_asyncio.fixture
async def aclient(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c
