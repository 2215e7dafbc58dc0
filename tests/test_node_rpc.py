from __future__ import annotations

import base64
import json

import httpx
import pytest
import respx

from ptb_services.adapters.node_rpc import NodeRpc, NodeRpcConfig, from_settings
from ptb_services.errors import RpcError
from ptb_services.ptb.builder import build
from ptb_services.ptb.types import GAS, Address, Literal, ResultRef, SplitCoins, TransferObjects, UInt
from tests.conftest import NODE_URL, OBJ_A, OWNER, RECIPIENT

RPC = NODE_URL + "/"


def _ok(result):
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


def _rpc_error(code: int, message: str):
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}})


def _body(route, n: int = -1):
    return json.loads(route.calls[n].request.content)


def _client(**kw) -> NodeRpc:
    return NodeRpc(NodeRpcConfig(url=NODE_URL, max_retries=kw.pop("max_retries", 0), backoff_base_s=0.0, **kw))


@pytest.mark.asyncio
@respx.mock
async def test_resolve_existing_object():
    route = respx.post(RPC).mock(
        return_value=_ok({"data": {"objectId": OBJ_A, "version": 12, "owner": {"AddressOwner": OWNER}}})
    )
    async with _client() as rpc:
        info = await rpc.resolve_object(OBJ_A)

    assert info.exists
    assert info.owner == OWNER
    assert info.owner_kind == "AddressOwner"
    assert info.version == "12"
    body = _body(route)
    assert body["method"] == "iota_getObject"
    assert body["params"][0] == OBJ_A


@pytest.mark.asyncio
@respx.mock
async def test_resolve_shared_and_missing_objects():
    respx.post(RPC).mock(
        side_effect=[
            _ok({"data": {"objectId": OBJ_A, "owner": {"Shared": {"initial_shared_version": 3}}}}),
            _ok({"error": {"code": "notExists", "object_id": OBJ_A}}),
        ]
    )
    async with _client() as rpc:
        shared = await rpc.resolve_object(OBJ_A)
        missing = await rpc.resolve_object(OBJ_A)

    assert shared.exists and shared.owner is None and shared.owner_kind == "Shared"
    assert not missing.exists
    assert missing.error == "notExists"


@pytest.mark.asyncio
@respx.mock
async def test_build_transaction_sends_instructions():
    route = respx.post(RPC).mock(return_value=_ok({"txBytes": base64.b64encode(b"tx").decode()}))
    instructions = build(
        [
            SplitCoins("cmd-1", GAS, (Literal("5", UInt(64)),)),
            TransferObjects("cmd-2", (ResultRef(0, 0),), Literal(RECIPIENT, Address())),
        ]
    )
    async with _client() as rpc:
        tx = await rpc.build_transaction(instructions, sender=OWNER, gas_budget=1000)

    assert tx == b"tx"
    body = _body(route)
    assert body["method"] == "ptb_buildTransaction"
    assert body["params"][0] == instructions.to_wire()
    assert body["params"][1:] == [OWNER, "1000"]


@pytest.mark.asyncio
@respx.mock
async def test_build_rejection_is_an_rpc_error():
    respx.post(RPC).mock(return_value=_rpc_error(-32602, "unknown command"))
    async with _client() as rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.build_transaction(
                build([SplitCoins("cmd-1", GAS, (Literal("5", UInt(64)),))]), sender=OWNER, gas_budget=1
            )
    assert "unknown command" in ei.value.message
    assert ei.value.details["code"] == -32602


@pytest.mark.asyncio
@respx.mock
async def test_simulate_collects_return_values():
    route = respx.post(RPC).mock(
        return_value=_ok(
            {
                "effects": {"status": {"status": "success"}, "gasUsed": {"computationCost": "1000"}},
                "results": [{"returnValues": [[[7, 0, 0, 0, 0, 0, 0, 0], "u64"]]}, {}],
            }
        )
    )
    async with _client() as rpc:
        outcome = await rpc.simulate(b"tx", sender=OWNER)

    assert outcome.ok
    assert outcome.gas_used == 1000
    assert outcome.return_values == ((b"\x07" + b"\x00" * 7, "u64"),)
    body = _body(route)
    assert body["method"] == "iota_devInspectTransactionBlock"
    assert body["params"] == [OWNER, base64.b64encode(b"tx").decode()]


@pytest.mark.asyncio
@respx.mock
async def test_simulate_failures_are_outcomes():
    respx.post(RPC).mock(
        side_effect=[
            _ok({"effects": {"status": {"status": "failure", "error": "MoveAbort(7)"}}}),
            _ok({"effects": {"status": {"status": "success"}}, "error": "Error deserializing"}),
            _rpc_error(-32000, "invalid value"),
        ]
    )
    async with _client() as rpc:
        aborted = await rpc.simulate(b"tx", sender=OWNER)
        deser = await rpc.simulate(b"tx", sender=OWNER)
        rejected = await rpc.simulate(b"tx", sender=OWNER)

    assert (aborted.ok, aborted.error) == (False, "MoveAbort(7)")
    assert (deser.ok, deser.error) == (False, "Error deserializing")
    assert (rejected.ok, rejected.error) == (False, "invalid value")


@pytest.mark.asyncio
@respx.mock
async def test_submit_reports_digest_and_changes():
    route = respx.post(RPC).mock(
        return_value=_ok(
            {
                "digest": "Dig3st",
                "effects": {"status": {"status": "success"}, "gasUsed": {"computationCost": 42}},
                "objectChanges": [{"type": "mutated", "objectId": OBJ_A}],
                "events": [],
            }
        )
    )
    async with _client() as rpc:
        outcome = await rpc.submit(b"tx", "sig")

    assert outcome.ok
    assert outcome.digest == "Dig3st"
    assert outcome.gas_used == 42
    assert outcome.object_changes == ({"type": "mutated", "objectId": OBJ_A},)
    params = _body(route)["params"]
    assert params[1] == ["sig"]
    assert params[2]["showEffects"] is True


@pytest.mark.asyncio
@respx.mock
async def test_transient_http_errors_are_retried():
    route = respx.post(RPC).mock(side_effect=[httpx.Response(503), _ok("4c78adac")])
    async with _client(max_retries=2) as rpc:
        assert await rpc.chain_identifier() == "4c78adac"
    assert route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_exhausted_retries_raise_rpc_error():
    route = respx.post(RPC).mock(side_effect=httpx.ConnectError("refused"))
    async with _client(max_retries=1) as rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.resolve_object(OBJ_A)
    assert route.call_count == 2
    assert ei.value.status_code == 502
    assert ei.value.details["method"] == "iota_getObject"


@pytest.mark.asyncio
@respx.mock
async def test_non_retryable_http_status_fails_fast():
    route = respx.post(RPC).mock(return_value=httpx.Response(404, text="nope"))
    async with _client(max_retries=3) as rpc:
        with pytest.raises(RpcError):
            await rpc.chain_identifier()
    assert route.call_count == 1


def test_from_settings_picks_network_url(settings):
    assert from_settings(settings).network == "testnet"
    assert from_settings(settings, "MAINNET").network == "mainnet"
