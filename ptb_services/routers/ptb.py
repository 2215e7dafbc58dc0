from __future__ import annotations

"""
PTB Router

Endpoints:
  - POST /ptb/validate  : offline checks; errors, warnings and the results each
                          position may reference. Never touches the network.
  - POST /ptb/build     : lower a block to the instruction list a node accepts.
  - POST /ptb/execute   : validate, pre-flight, build, simulate and/or submit.
  - POST /ptb/view      : one read-only function call, simulated and decoded.
  - GET  /ptb/templates : starter blocks.

Failed attempts come back as problem+json with the attempt's states in
``details``; the HTTP status follows the failure kind.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Request

from ..adapters import node_rpc
from ..errors import ApiError, BuildError, NotFound
from ..middleware.errors import problem_response
from ..models.ptb import (
    BlockRequest,
    BlockTemplate,
    BuildResponse,
    ExecuteRequest,
    ExecuteResponse,
    ValidateResponse,
    ViewRequest,
)
from ..ptb import types as t
from ..ptb.builder import build
from ..ptb.resolver import TEMPLATES, BlockReport, CommandBlock
from ..ptb.validate import validate_block
from ..services.execute import ExecutionEngine, ExecutionMode, ExecutionResult, aggregate_errors

log = logging.getLogger(__name__)

router = APIRouter(prefix="/ptb", tags=["ptb"])

_PROBLEM_RESPONSES = {
    400: {"description": "Invalid block (problem+json)"},
    409: {"description": "Attempt cancelled"},
    502: {"description": "Node RPC failure or failed submission"},
    503: {"description": "No default signer configured"},
}


async def _run(
    request: Request,
    commands: List[t.Command],
    *,
    network: Optional[str],
    mode: ExecutionMode,
    sender: Optional[str],
) -> ExecutionResult:
    settings = request.app.state.settings
    net = network or settings.default_network
    async with node_rpc.from_settings(settings, net) as client:
        engine = ExecutionEngine(
            client,
            request.app.state.signer,
            network=net,
            gas_budget=settings.gas_budget,
            metrics=getattr(request.app.state, "metrics", None),
        )
        return await engine.run(commands, mode=mode, sender=sender)


def _respond(request: Request, result: ExecutionResult):
    if result.success:
        return ExecuteResponse.from_result(result)
    details = dict(result.error_details or {})
    details["attemptId"] = result.attempt_id
    details["states"] = [s.value for s in result.states]
    if result.sender:
        details.setdefault("sender", result.sender)
    err = ApiError(
        message=result.error or "execution failed",
        status_code=result.status_code,
        code=result.error_code or "bad_request",
        details=details,
    )
    return problem_response(request, err)


@router.post(
    "/validate",
    summary="Check a block without touching the network",
    response_model=ValidateResponse,
)
def post_validate(req: BlockRequest) -> ValidateResponse:
    commands = req.to_commands()
    try:
        report = CommandBlock(commands).validate()
    except BuildError:
        # Bad references keep the block from loading; report every problem instead.
        report = BlockReport(errors=validate_block(commands))
    log.debug("POST /ptb/validate commands=%d errors=%d", len(commands), len(report.errors))
    return ValidateResponse.from_report(report, commands)


@router.post(
    "/build",
    summary="Lower a block to node instructions",
    response_model=BuildResponse,
    responses={400: _PROBLEM_RESPONSES[400]},
)
def post_build(req: BlockRequest) -> BuildResponse:
    commands = req.to_commands()
    errors = validate_block(commands)
    if errors:
        raise aggregate_errors(errors)
    wire = build(commands).to_wire()
    return BuildResponse(inputs=wire["inputs"], commands=wire["commands"])


@router.post(
    "/execute",
    summary="Validate, simulate and/or submit a block",
    response_model=ExecuteResponse,
    responses=_PROBLEM_RESPONSES,
)
async def post_execute(req: ExecuteRequest, request: Request):
    """
    Run one execution attempt.

      • ``simulate``: dev-inspect only; decoded return values, nothing signed.
      • ``auto``: simulate first; view calls stop there (digest ``view-function``),
        everything else is signed with the default signer and submitted.
      • ``execute``: sign and submit without simulating.
    """
    commands = req.to_commands()
    log.debug("POST /ptb/execute mode=%s commands=%d", req.mode.value, len(commands))
    result = await _run(request, commands, network=req.network, mode=req.mode, sender=req.sender)
    return _respond(request, result)


@router.post(
    "/view",
    summary="Call a read-only function and decode its return values",
    response_model=ExecuteResponse,
    responses=_PROBLEM_RESPONSES,
)
async def post_view(req: ViewRequest, request: Request):
    commands = req.to_commands()
    result = await _run(
        request,
        commands,
        network=req.network,
        mode=ExecutionMode.SIMULATE,
        sender=req.sender,
    )
    return _respond(request, result)


@router.get("/templates", summary="Starter blocks", response_model=List[BlockTemplate])
def list_templates() -> List[BlockTemplate]:
    return [
        BlockTemplate.from_block(factory(), id=name, name=title, description=desc)
        for name, (title, desc, factory) in TEMPLATES.items()
    ]


@router.get("/templates/{name}", summary="One starter block", response_model=BlockTemplate)
def get_template(name: str) -> BlockTemplate:
    entry = TEMPLATES.get(name)
    if entry is None:
        raise NotFound(f"Template {name}")
    title, desc, factory = entry
    return BlockTemplate.from_block(factory(), id=name, name=title, description=desc)


__all__ = ["router"]
