from __future__ import annotations

"""
Configuration loader for PTB Services.

- Reads environment variables (optionally from `.env`) via pydantic-settings.
- Exposes the cached `load_config()` accessor.

Environment variables:
    LOG_LEVEL             (str, default "INFO")
    LOG_FORMAT            (str, default "json")      - "json" or "console"

Ledger:
    TESTNET_RPC_URL       (str)                      - testnet full-node JSON-RPC endpoint
    MAINNET_RPC_URL       (str)                      - mainnet full-node JSON-RPC endpoint
    DEFAULT_NETWORK       (str, default "testnet")
    GAS_BUDGET            (int, default 50_000_000)
    RPC_TIMEOUT_S         (float, default 10.0)
    RPC_MAX_RETRIES       (int, default 3)
    RPC_BACKOFF_BASE_S    (float, default 0.25)

Signer:
    DEFAULT_SIGNER_KEY    (base64 or 0x-hex 32-byte Ed25519 seed, optional)

CORS:
    CORS_ALLOW_ORIGINS    (csv|json list)

Notes
-----
- Lists accept comma-separated strings or JSON arrays.
- Without DEFAULT_SIGNER_KEY the service can validate, build and simulate,
  but not submit.
"""

import json
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NETWORKS = ("testnet", "mainnet")
DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def _parse_list(val: Optional[str | List[str]], *, default: List[str]) -> List[str]:
    if val is None:
        return list(default)
    if isinstance(val, list):
        return val
    s = val.strip()
    if not s:
        return []
    if s.startswith("[") and s.endswith("]"):
        try:
            return [str(x) for x in json.loads(s)]
        except ValueError:
            pass
    return [x.strip() for x in s.split(",") if x.strip()]


class Config(BaseSettings):
    log_level: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field("json", description="json or console")

    testnet_rpc_url: str = Field("https://api.testnet.iota.cafe", description="Testnet JSON-RPC endpoint")
    mainnet_rpc_url: str = Field("https://api.mainnet.iota.cafe", description="Mainnet JSON-RPC endpoint")
    default_network: str = Field("testnet", description="Network used when a request names none")
    gas_budget: int = Field(50_000_000, ge=1, description="Gas budget attached to built transactions")

    rpc_timeout_s: float = Field(10.0, gt=0)
    rpc_max_retries: int = Field(3, ge=0)
    rpc_backoff_base_s: float = Field(0.25, ge=0)

    default_signer_key: Optional[str] = Field(default=None, description="Ed25519 seed for the default signer")

    # csv or JSON list; read through cors_origins()
    cors_allow_origins: Optional[str | List[str]] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", case_sensitive=False, extra="ignore"
    )

    @field_validator("default_network")
    @classmethod
    def _known_network(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in NETWORKS:
            raise ValueError(f"DEFAULT_NETWORK must be one of {', '.join(NETWORKS)}")
        return v

    @field_validator("default_signer_key")
    @classmethod
    def _blank_key_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() or None if v is not None else None

    def cors_origins(self) -> List[str]:
        return _parse_list(self.cors_allow_origins, default=DEFAULT_CORS_ORIGINS)

    def rpc_urls(self) -> Dict[str, str]:
        return {"testnet": self.testnet_rpc_url, "mainnet": self.mainnet_rpc_url}

    def rpc_url(self, network: Optional[str] = None) -> str:
        net = (network or self.default_network).lower()
        urls = self.rpc_urls()
        if net not in urls:
            raise ValueError(f"unknown network {network!r}; expected one of {', '.join(NETWORKS)}")
        return urls[net]


@lru_cache(maxsize=1)
def load_config() -> Config:
    """Entrypoint used by the app factory and the CLI."""
    return Config()  # type: ignore[call-arg]


__all__ = ["NETWORKS", "Config", "load_config"]
