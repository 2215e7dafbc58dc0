"""
PTB Services
============

Builds, validates and executes programmable transaction blocks (PTBs)
against Move ledger nodes, behind a small FastAPI service.

This package exposes:

- ``__version__``: semantic version string
- ``build_app()``: convenience creator for a configured FastAPI app

The transaction-block core lives in ``ptb_services.ptb`` and has no network
or framework dependencies.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__", "build_app"]


def build_app():
    """Create and return a configured FastAPI application."""
    from .app import create_app

    return create_app()
