"""
Pre-flight object validation: look up every object a block touches, all at
once, before anything is built or simulated.

Every failing id is reported together in one ``ObjectLookupError`` so the
caller can fix the whole block in one pass.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from ..adapters.interfaces import LedgerClient, ObjectInfo
from ..errors import LookupFailure, LookupKind, ObjectLookupError
from ..ptb.types import Command, Literal, object_id_of, requires_object_id
from ..ptb.validate import effective_type

log = logging.getLogger(__name__)


def collect_object_ids(commands: Sequence[Command]) -> List[str]:
    """Explicit object refs and reference-typed literals, first-seen order, no duplicates."""
    seen: Dict[str, None] = {}
    for cmd in commands:
        slots = cmd.slot_types()
        for ai, arg in enumerate(cmd.arguments_flat()):
            slot = slots[ai] if ai < len(slots) else None
            if isinstance(arg, Literal):
                oid = arg.value if requires_object_id(effective_type(arg, slot)) else None
            else:
                oid = object_id_of(arg)
            if oid:
                seen.setdefault(oid.lower(), None)
    return list(seen)


async def prevalidate_objects(
    commands: Sequence[Command],
    ledger: LedgerClient,
    *,
    network: str,
    metrics=None,
) -> Dict[str, ObjectInfo]:
    """
    Resolve all referenced objects concurrently and wait for every lookup.

    Returns ``{object_id: ObjectInfo}``; raises ``ObjectLookupError`` listing
    each missing object and each failed lookup.
    """
    ids = collect_object_ids(commands)
    if not ids:
        return {}

    results = await asyncio.gather(*(ledger.resolve_object(oid) for oid in ids), return_exceptions=True)

    found: Dict[str, ObjectInfo] = {}
    failures: List[LookupFailure] = []
    for oid, res in zip(ids, results):
        if isinstance(res, asyncio.CancelledError):
            raise res
        if isinstance(res, BaseException):
            failures.append(
                LookupFailure(oid, LookupKind.LOOKUP_FAILED, network, f"lookup of {oid} on {network} failed: {res}")
            )
            _count(metrics, "failed")
        elif not res.exists:
            failures.append(
                LookupFailure(oid, LookupKind.OBJECT_NOT_FOUND, network, f"object {oid} does not exist on {network}")
            )
            _count(metrics, "not_found")
        else:
            found[oid] = res
            _count(metrics, "found")

    if failures:
        log.info("pre-flight failed for %d of %d object(s) on %s", len(failures), len(ids), network)
        raise ObjectLookupError(failures)
    return found


def _count(metrics, result: str) -> None:
    if metrics is not None:
        metrics.record_lookup(result)


def first_address_owner(commands: Sequence[Command], objects: Dict[str, ObjectInfo]) -> Optional[str]:
    """Owner of the first object-typed argument, when that owner is an address."""
    ids = collect_object_ids(commands)
    if not ids:
        return None
    info = objects.get(ids[0])
    if info is not None and info.owner_kind == "AddressOwner" and info.owner:
        return info.owner
    return None


__all__ = ["collect_object_ids", "prevalidate_objects", "first_address_owner"]
