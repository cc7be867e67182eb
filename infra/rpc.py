# infra/rpc.py

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Dict, Optional

import aiohttp

from swapcheck import config
from infra.metrics import METRICS

logger = logging.getLogger(__name__)

# JSON-RPC error code geth/erigon/anvil use for execution reverts.
EXECUTION_REVERTED_CODE = 3

RETRYABLE_HTTP_STATUSES = (429, 500, 502, 503, 504)


class RPCError(Exception):
    """Transport-level failure: timeout, HTTP error, or a non-revert JSON-RPC error."""


class ExecutionReverted(Exception):
    """eth_call reverted. `data` is the raw revert payload (0x-hex) when the node returns one."""

    def __init__(self, message: str, data: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.data = data


def _normalize_url(url: str) -> str:
    u = str(url).strip()
    if u and "://" not in u:
        u = "https://" + u
    return u


def _url_host(url: str) -> str:
    u = _normalize_url(url).lower()
    if "://" in u:
        u = u.split("://", 1)[1]
    return u.split("/", 1)[0]


def _normalize_rpc_error(msg: Optional[str]) -> str:
    text = str(msg or "").lower()
    if "timeout" in text:
        return "timeout"
    if "http_429" in text or "rate limit" in text:
        return "rate_limited"
    if "http_5" in text:
        return "http_5xx"
    if "http_" in text:
        return "http_error"
    if "rpc_error" in text:
        return "rpc_error"
    return "connection_error"


def _extract_revert_hex(ed: Any) -> Optional[str]:
    if isinstance(ed, str):
        return ed if ed.startswith("0x") else "0x" + ed
    if isinstance(ed, dict):
        for key in ("data", "result", "return"):
            if isinstance(ed.get(key), str):
                return _extract_revert_hex(ed[key])
    return None


def _as_revert(err: Any) -> Optional[ExecutionReverted]:
    if not isinstance(err, dict):
        return None
    message = str(err.get("message") or "")
    if err.get("code") != EXECUTION_REVERTED_CODE and "revert" not in message.lower():
        return None
    return ExecutionReverted(message or "execution reverted", _extract_revert_hex(err.get("data")))


class AsyncRPC:
    """Async JSON-RPC client with:
    - persistent aiohttp session
    - per-attempt timeouts
    - retries + exponential backoff for transport errors and rate limits
    - reverts raised immediately as ExecutionReverted, never retried
    """

    def __init__(
        self,
        url: str,
        *,
        default_timeout_s: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base_s: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.url = _normalize_url(url)
        if default_timeout_s is None:
            default_timeout_s = float(getattr(config, "RPC_DEFAULT_TIMEOUT_S", 10.0))
        if max_retries is None:
            max_retries = int(getattr(config, "RPC_RETRY_COUNT", 3))
        if backoff_base_s is None:
            backoff_base_s = float(getattr(config, "RPC_BACKOFF_BASE_S", 0.35))
        self.default_timeout_s = float(default_timeout_s)
        self.max_retries = int(max_retries)
        self.backoff_base_s = float(backoff_base_s)
        self._id = 0
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            # Limit total sockets to avoid hammering a public RPC.
            self._session = aiohttp.ClientSession(connector=aiohttp.TCPConnector(limit=50, ttl_dns_cache=300))
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    def _clamp_timeout(self, timeout_s: Optional[float]) -> float:
        to_s = float(timeout_s) if timeout_s is not None else self.default_timeout_s
        min_t = float(getattr(config, "RPC_TIMEOUT_MIN_S", 2.0))
        max_t = float(getattr(config, "RPC_TIMEOUT_MAX_S", 30.0))
        if max_t < min_t:
            max_t = min_t
        return max(min_t, min(max_t, to_s))

    async def call(self, method: str, params: list, *, timeout_s: Optional[float] = None) -> Any:
        """Perform a JSON-RPC call.

        Raises ExecutionReverted for reverts and RPCError once retries are exhausted.
        CancelledError propagates untouched.
        """
        self._id += 1
        payload: Dict[str, Any] = {"jsonrpc": "2.0", "id": self._id, "method": method, "params": params}
        session = await self._get_session()
        to_s = self._clamp_timeout(timeout_s)
        host = _url_host(self.url)
        last_err: Optional[str] = None

        for attempt in range(self.max_retries + 1):
            t0 = time.perf_counter()
            METRICS.inc("rpc_requests_total", 1)

            async def _do():
                async with session.post(self.url, json=payload) as resp:
                    if resp.status >= 400:
                        text = await resp.text()
                        raise aiohttp.ClientResponseError(
                            request_info=resp.request_info,
                            history=resp.history,
                            status=resp.status,
                            message=text,
                        )
                    return await resp.json(content_type=None)

            try:
                data = await asyncio.wait_for(_do(), timeout=to_s)
                METRICS.observe_ms(f"rpc_latency_ms:{host}", (time.perf_counter() - t0) * 1000.0)
                if isinstance(data, dict) and data.get("error") is not None:
                    revert = _as_revert(data["error"])
                    if revert is not None:
                        METRICS.inc("rpc_reverts_total", 1)
                        raise revert
                    last_err = f"rpc_error:{data['error']}"
                elif not isinstance(data, dict) or "result" not in data:
                    last_err = "rpc_error:malformed_response"
                else:
                    return data["result"]
            except asyncio.TimeoutError:
                last_err = f"timeout({to_s}s)"
            except aiohttp.ClientResponseError as e:
                last_err = f"http_{e.status}"
                if e.status not in RETRYABLE_HTTP_STATUSES:
                    break
            except (aiohttp.ClientError, ValueError) as e:
                last_err = f"{type(e).__name__}: {e}"

            if attempt < self.max_retries:
                sleep_s = (self.backoff_base_s * (2 ** attempt)) + random.random() * 0.25
                if "http_429" in last_err:
                    sleep_s += float(getattr(config, "RPC_RATE_LIMIT_BACKOFF_S", 0.35))
                logger.debug("rpc %s attempt %d failed (%s), retrying in %.2fs", method, attempt + 1, last_err, sleep_s)
                await asyncio.sleep(sleep_s)

        METRICS.inc_reason("rpc_fail_by_reason", _normalize_rpc_error(last_err), 1)
        raise RPCError(f"RPC call {method} failed after retries: {last_err}")

