"""
Command-line tools for PTB Services.

Utilities:
  - validate   : offline checks for a block file; exit 1 when invalid
  - build      : print the node instructions for a block file
  - execute    : run a block against a node (simulate | auto | execute)
  - view       : call a read-only function and print decoded return values
  - templates  : print starter blocks
  - new-key    : generate an Ed25519 seed for DEFAULT_SIGNER_KEY

Block files hold ``{"commands": [...]}`` in the HTTP API's JSON shape; pass
``-`` to read from stdin.

Usage:
  python -m ptb_services.cli <command> [options]
"""

from __future__ import annotations

import asyncio
import base64
import json
import sys
from typing import Any, List, Optional

import typer
from pydantic import ValidationError

from .adapters import node_rpc
from .adapters.signer import Ed25519Signer, load_signer
from .config import load_config
from .errors import ApiError, BuildError
from .logging import get_logger, setup_logging
from .models.ptb import (
    BlockRequest,
    BlockTemplate,
    ExecuteResponse,
    ValidateResponse,
    ViewRequest,
)
from .ptb.builder import build as build_instructions
from .ptb.resolver import TEMPLATES, BlockReport, CommandBlock
from .ptb.validate import validate_block
from .services.execute import ExecutionEngine, ExecutionMode, ExecutionResult, aggregate_errors

app = typer.Typer(add_completion=False, help="PTB Services: build, validate and execute transaction blocks")
log = get_logger(__name__)


def _emit(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, sort_keys=False, default=str))


def _fail(err: ApiError, code: int = 1) -> None:
    _emit(err.to_problem())
    raise typer.Exit(code=code)


def _read_block(path: str) -> BlockRequest:
    if path == "-":
        text = sys.stdin.read()
    else:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                text = fh.read()
        except OSError as e:
            typer.echo(f"cannot read {path}: {e}", err=True)
            raise typer.Exit(code=2)
    try:
        return BlockRequest.model_validate_json(text)
    except ValidationError as e:
        typer.echo(f"invalid block file: {e}", err=True)
        raise typer.Exit(code=2)


def _print_result(result: ExecutionResult) -> None:
    if result.success:
        _emit(ExecuteResponse.from_result(result).model_dump(by_alias=True, mode="json"))
        return
    details = dict(result.error_details or {})
    details["states"] = [s.value for s in result.states]
    _fail(
        ApiError(
            message=result.error or "execution failed",
            status_code=result.status_code,
            code=result.error_code or "bad_request",
            details=details,
        )
    )


async def _run(commands, *, network: Optional[str], mode: ExecutionMode, sender: Optional[str]) -> ExecutionResult:
    cfg = load_config()
    net = network or cfg.default_network
    async with node_rpc.from_settings(cfg, net) as client:
        engine = ExecutionEngine(client, load_signer(cfg), network=net, gas_budget=cfg.gas_budget)
        return await engine.run(commands, mode=mode, sender=sender)


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level for diagnostics on stderr"),
):
    """
    Shared options for all subcommands.
    """
    setup_logging(level=log_level, log_format="console")


@app.command("validate")
def validate_cmd(path: str = typer.Argument(..., help="Block file, or - for stdin")):
    """
    Check a block offline: argument values, references and command shapes.
    """
    req = _read_block(path)
    try:
        commands = req.to_commands()
    except ApiError as e:
        _fail(e)
    try:
        report = CommandBlock(commands).validate()
    except BuildError:
        report = BlockReport(errors=validate_block(commands))
    _emit(ValidateResponse.from_report(report, commands).model_dump(by_alias=True, mode="json"))
    if not report.is_valid:
        raise typer.Exit(code=1)


@app.command("build")
def build_cmd(path: str = typer.Argument(..., help="Block file, or - for stdin")):
    """
    Print the instruction list (inputs + commands) a node accepts for the block.
    """
    req = _read_block(path)
    try:
        commands = req.to_commands()
        errors = validate_block(commands)
        if errors:
            raise aggregate_errors(errors)
        _emit(build_instructions(commands).to_wire())
    except ApiError as e:
        _fail(e)


@app.command("execute")
def execute_cmd(
    path: str = typer.Argument(..., help="Block file, or - for stdin"),
    mode: ExecutionMode = typer.Option(ExecutionMode.AUTO, "--mode", "-m", help="simulate | auto | execute"),
    network: Optional[str] = typer.Option(None, "--network", "-n", help="testnet | mainnet"),
    sender: Optional[str] = typer.Option(None, "--sender", help="Sender address for simulation"),
):
    """
    Run one execution attempt against the configured node.
    """
    req = _read_block(path)
    try:
        commands = req.to_commands()
    except ApiError as e:
        _fail(e)
    log.info("executing block", commands=len(commands), mode=mode.value)
    _print_result(asyncio.run(_run(commands, network=network, mode=mode, sender=sender)))


@app.command("view")
def view_cmd(
    target: str = typer.Argument(..., help="package::module::function"),
    args: Optional[List[str]] = typer.Argument(None, help="Arguments; types are inferred"),
    network: Optional[str] = typer.Option(None, "--network", "-n", help="testnet | mainnet"),
    sender: Optional[str] = typer.Option(None, "--sender", help="Sender address for simulation"),
):
    """
    Call a read-only function and print its decoded return values.
    """
    try:
        req = ViewRequest(functionTarget=target, functionArgs=list(args or []), sender=sender)
        commands = req.to_commands()
    except ValidationError as e:
        typer.echo(f"invalid arguments: {e}", err=True)
        raise typer.Exit(code=2)
    except ApiError as e:
        _fail(e)
    _print_result(asyncio.run(_run(commands, network=network, mode=ExecutionMode.SIMULATE, sender=req.sender)))


@app.command("templates")
def templates_cmd(name: Optional[str] = typer.Argument(None, help="Template id; omit to list all")):
    """
    Print starter blocks in block-file form.
    """
    names = [name] if name else list(TEMPLATES)
    out = []
    for n in names:
        if n not in TEMPLATES:
            typer.echo(f"unknown template {n!r}; expected one of {', '.join(TEMPLATES)}", err=True)
            raise typer.Exit(code=2)
        title, desc, factory = TEMPLATES[n]
        tpl = BlockTemplate.from_block(factory(), id=n, name=title, description=desc)
        out.append(tpl.model_dump(by_alias=True, mode="json", exclude_none=True))
    _emit(out[0] if name else out)


@app.command("new-key")
def new_key():
    """
    Generate a fresh Ed25519 seed; prints the address and the base64 seed.
    """
    signer = Ed25519Signer.generate()
    _emit({"address": signer.address, "seed": base64.b64encode(signer.seed()).decode("ascii")})


if __name__ == "__main__":
    app()
