# swapcheck/config.py
# NOTE:
# The pricing-service API key is never stored here. Provide it via env var
# (SWAPNET_API_KEY) and keep it out of git.

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from swapcheck.errors import ConfigError

# Pricing service
SWAPNET_BASE_URL = "https://app.swap-net.xyz"
SWAPNET_API_VERSION = "v1.0"
HTTP_TIMEOUT_S = 10.0

# Primary RPC (env RPC_URL wins)
RPC_URL = ""

# RPC timeouts (seconds). Every attempt is clamped to this range.
RPC_TIMEOUT_MIN_S = 2.0
RPC_TIMEOUT_MAX_S = 30.0
RPC_DEFAULT_TIMEOUT_S = 10.0

# Transport retries for simulation calls. Reverts are never retried.
RPC_RETRY_COUNT = 3
RPC_BACKOFF_BASE_S = 0.35
RPC_RATE_LIMIT_BACKOFF_S = 0.35

# Max simulations in flight against one endpoint.
SIM_CONCURRENCY = 4

# Blast mainnet
CHAIN_ID = 81457
CHAIN_NAME = "Blast Mainnet"
UNIVERSAL_ROUTER = "0xAA539Bcf648C0b4F8984FcDEb5228827e7AAC3AE"
PERMIT2 = "0x000000000022d473030f116ddee9f6b43ac78ba3"
SIM_SENDER = "0x3B2Be8413F34fc6491506B18c530A264c0f7adAE"

# Runtime bytecode of simulation/contracts/SwapSimulator.sol, installed at the
# sender via state override. Either the hex itself or a compiler artifact path.
SIMULATOR_CODE = ""
SIMULATOR_ARTIFACT = ""


@dataclass(frozen=True)
class Settings:
    api_key: str
    base_url: str
    api_version: str
    rpc_url: str
    chain_id: int
    router_address: str
    token_proxy_address: str
    sender_address: str
    simulator_code: str
    simulator_artifact: str
    sim_concurrency: int
    rpc_retry_count: int


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _env_str(name: str, default: Optional[str]) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return str(default or "")
    return raw.strip()


def load_settings() -> Settings:
    """Module defaults overridden by environment variables."""
    concurrency = _env_int("SIM_CONCURRENCY", SIM_CONCURRENCY)
    if concurrency < 1:
        raise ConfigError(f"SIM_CONCURRENCY must be >= 1, got {concurrency}")
    retries = _env_int("RPC_RETRY_COUNT", RPC_RETRY_COUNT)
    if retries < 0:
        raise ConfigError(f"RPC_RETRY_COUNT must be >= 0, got {retries}")
    return Settings(
        api_key=_env_str("SWAPNET_API_KEY", ""),
        base_url=_env_str("SWAPNET_BASE_URL", SWAPNET_BASE_URL).rstrip("/"),
        api_version=_env_str("SWAPNET_API_VERSION", SWAPNET_API_VERSION),
        rpc_url=_env_str("RPC_URL", RPC_URL),
        chain_id=_env_int("CHAIN_ID", CHAIN_ID),
        router_address=_env_str("UNIVERSAL_ROUTER", UNIVERSAL_ROUTER),
        token_proxy_address=_env_str("PERMIT2", PERMIT2),
        sender_address=_env_str("SIM_SENDER", SIM_SENDER),
        simulator_code=_env_str("SIMULATOR_CODE", SIMULATOR_CODE),
        simulator_artifact=_env_str("SIMULATOR_ARTIFACT", SIMULATOR_ARTIFACT),
        sim_concurrency=concurrency,
        rpc_retry_count=retries,
    )
