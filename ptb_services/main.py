"""
Uvicorn launcher for PTB Services.

Usage:
  python -m ptb_services.main [--host 0.0.0.0] [--port 8080]
                              [--workers 1] [--reload]
                              [--log-level info]

Environment overrides (if flags not provided):
  HOST / BIND, PORT, WORKERS, RELOAD, LOG_LEVEL
"""

from __future__ import annotations

import argparse
import os
from typing import Optional

import uvicorn


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "y", "on")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run PTB Services (uvicorn)")
    parser.add_argument("--host", default=os.getenv("HOST") or os.getenv("BIND") or "0.0.0.0", help="Bind address (default: %(default)s)")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT") or 8080), help="Port (default: %(default)s)")
    parser.add_argument("--workers", type=int, default=int(os.getenv("WORKERS") or 1), help="Number of workers (default: %(default)s)")
    parser.add_argument("--reload", action="store_true", default=_env_bool("RELOAD", False), help="Enable autoreload (dev only)")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "info").lower(), help="Log level for uvicorn (default: %(default)s)")
    parser.add_argument("--proxy-headers", action="store_true", default=True, help="Use X-Forwarded-* headers (default: on)")
    parser.add_argument("--forwarded-allow-ips", default="*", help="Comma list of trusted proxies (default: *)")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    # reload and workers>1 are mutually exclusive; prefer reload for dev if both set.
    if args.reload and args.workers != 1:
        print("[ptb-services] --reload implies --workers=1; overriding.")
        args.workers = 1

    # Factory import string so each worker builds its own app and settings.
    uvicorn.run(
        "ptb_services.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        proxy_headers=args.proxy_headers,
        forwarded_allow_ips=args.forwarded_allow_ips,
        reload=args.reload,
        workers=args.workers,
    )


if __name__ == "__main__":
    main()
