from __future__ import annotations

import base64
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ptb_services import cli
from ptb_services.adapters import node_rpc
from ptb_services.adapters.interfaces import SimulationOutcome
from ptb_services.adapters.signer import Ed25519Signer
from tests.conftest import RECIPIENT, FakeLedger

runner = CliRunner()

BLOCK = {
    "commands": [
        {"type": "SplitCoins", "coin": {"type": "gas"}, "amounts": [{"type": "input", "value": "1000"}]},
        {
            "type": "TransferObjects",
            "objects": [{"type": "result", "resultFrom": 0, "resultIndex": 0}],
            "recipient": {"type": "input", "value": RECIPIENT},
        },
    ]
}


def write_block(tmp_path: Path, block=BLOCK) -> str:
    path = tmp_path / "block.json"
    path.write_text(json.dumps(block))
    return str(path)


@pytest.fixture
def wired(settings, signer: Ed25519Signer, ledger: FakeLedger, monkeypatch: pytest.MonkeyPatch) -> FakeLedger:
    monkeypatch.setattr(cli, "load_config", lambda: settings)
    monkeypatch.setattr(cli, "load_signer", lambda _cfg: signer)
    monkeypatch.setattr(node_rpc, "from_settings", lambda _settings, network=None: ledger)
    return ledger


def test_validate_valid_file(tmp_path: Path):
    result = runner.invoke(cli.app, ["validate", write_block(tmp_path)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["valid"] is True


def test_validate_invalid_file_exits_1(tmp_path: Path):
    block = json.loads(json.dumps(BLOCK))
    block["commands"][0]["amounts"][0]["value"] = "lots"
    result = runner.invoke(cli.app, ["validate", write_block(tmp_path, block)])
    assert result.exit_code == 1
    body = json.loads(result.stdout)
    assert body["errors"][0]["details"]["kind"] == "NotANumber"


def test_validate_reads_stdin():
    result = runner.invoke(cli.app, ["validate", "-"], input=json.dumps(BLOCK))
    assert result.exit_code == 0, result.output


def test_unreadable_or_malformed_file_exits_2(tmp_path: Path):
    assert runner.invoke(cli.app, ["validate", str(tmp_path / "missing.json")]).exit_code == 2
    bad = tmp_path / "bad.json"
    bad.write_text('{"commands": [{"type": "Publish"}]}')
    assert runner.invoke(cli.app, ["build", str(bad)]).exit_code == 2


def test_build_prints_instructions(tmp_path: Path):
    result = runner.invoke(cli.app, ["build", write_block(tmp_path)])
    assert result.exit_code == 0, result.output
    wire = json.loads(result.stdout)
    assert len(wire["inputs"]) == 2
    assert list(wire["commands"][1]) == ["TransferObjects"]


def test_execute_against_node(tmp_path: Path, wired: FakeLedger):
    result = runner.invoke(cli.app, ["execute", write_block(tmp_path), "--mode", "execute"])
    assert result.exit_code == 0, result.output
    body = json.loads(result.stdout)
    assert body["transactionDigest"] == "9xJfWmSh1Digest"
    assert wired.count("simulate") == 0


def test_execute_failure_prints_problem(tmp_path: Path, wired: FakeLedger):
    wired.simulations = [SimulationOutcome("failure", error="Error deserializing arg 0")]
    result = runner.invoke(cli.app, ["--log-level", "ERROR", "execute", write_block(tmp_path)])
    assert result.exit_code == 1
    body = json.loads(result.stdout)
    assert body["code"] == "simulation_failed"
    assert body["details"]["states"][-1] == "Failed"


def test_view_decodes_values(wired: FakeLedger):
    wired.simulations = [SimulationOutcome("success", ((b"\x05" + b"\x00" * 7, "u64"),))]
    result = runner.invoke(cli.app, ["view", "0x2::math::double", "2", "true"])
    assert result.exit_code == 0, result.output
    body = json.loads(result.stdout)
    assert body["returnValues"][0]["value"] == 5
    assert [i.type_name for i in wired.built.inputs] == ["u64", "bool"]
    assert wired.count("submit") == 0


def test_templates():
    listed = runner.invoke(cli.app, ["templates"])
    assert [t["id"] for t in json.loads(listed.stdout)] == ["simple_transfer", "module_call"]

    one = runner.invoke(cli.app, ["templates", "module_call"])
    assert json.loads(one.stdout)["commands"][0]["type"] == "MoveCall"

    assert runner.invoke(cli.app, ["templates", "nope"]).exit_code == 2


def test_new_key_round_trips():
    result = runner.invoke(cli.app, ["new-key"])
    assert result.exit_code == 0, result.output
    body = json.loads(result.stdout)
    seed = base64.b64decode(body["seed"])
    assert Ed25519Signer.from_seed(seed).address == body["address"]
