"""Async client for the Swapnet pricing service.

Every public method returns a `Result`: `Ok(payload)` on status 200, otherwise
`Err` with the reason classified from the status code. Only caller misuse
(`ConfigError`) and a 200 body of the wrong shape (`ParseError`) raise.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import aiohttp

from swapcheck import config
from swapcheck.errors import ConfigError, ParseError
from swapcheck.result import KIND_SERVICE, KIND_TRANSPORT, Err, Ok, Result
from swapcheck.types import SwapQuote, TokenOperation, TokenPrice, TokenStaticInfo
from infra.metrics import METRICS

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Statuses whose body carries {"error": "..."} from the service.
STRUCTURED_ERROR_STATUSES = (400, 409, 500)


async def _read_json(resp: Any) -> Any:
    return await resp.json(content_type=None)


async def resolve_error(resp: Any) -> Optional[Err]:
    """Classify a response. None means status 200."""
    status = int(resp.status)
    if status == 200:
        return None
    if status in STRUCTURED_ERROR_STATUSES:
        try:
            body = await _read_json(resp)
        except (aiohttp.ContentTypeError, ValueError):
            body = None
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, str):
            return Err(error=error, kind=KIND_SERVICE, status=status)
    if status >= 500:
        error = f"Unknown server error with code {status}."
    elif status >= 400:
        error = f"Unknown client error with code {status}."
    else:
        error = f"Unknown status code {status}."
    return Err(error=error, kind=KIND_TRANSPORT, status=status)


def _status_class(status: int) -> str:
    return f"{status // 100}xx" if status else "network"


class SwapnetClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = config.SWAPNET_BASE_URL,
        api_version: str = config.SWAPNET_API_VERSION,
        *,
        timeout_s: float = config.HTTP_TIMEOUT_S,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._api_key = str(api_key)
        self._base_url = str(base_url).rstrip("/")
        self._api_version = str(api_version)
        self.timeout_s = float(timeout_s)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    async def __aenter__(self) -> "SwapnetClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _url(self, endpoint: str) -> str:
        return f"{self._base_url}/api/{self._api_version}/{endpoint}"

    async def _get(
        self,
        endpoint: str,
        params: Dict[str, str],
        shape: Callable[[Any], T],
    ) -> Result[T]:
        query = {"apiKey": self._api_key}
        query.update(params)
        session = await self._get_session()
        METRICS.inc("swapnet_requests_total", 1)

        async def _do() -> Result[T]:
            async with session.get(self._url(endpoint), params=query) as resp:
                err = await resolve_error(resp)
                if err is not None:
                    return err
                try:
                    body = await _read_json(resp)
                except (aiohttp.ContentTypeError, ValueError) as exc:
                    raise ParseError(f"{endpoint}: response body is not JSON") from exc
                return Ok(shape(body))

        with METRICS.timed(f"swapnet_latency_ms:{endpoint}"):
            try:
                result = await asyncio.wait_for(_do(), timeout=self.timeout_s)
            except asyncio.TimeoutError:
                result = Err(error=f"Network error: timeout after {self.timeout_s}s.", kind=KIND_TRANSPORT)
            except aiohttp.ClientError as exc:
                result = Err(error=f"Network error: {type(exc).__name__}: {exc}", kind=KIND_TRANSPORT)

        if isinstance(result, Err):
            METRICS.inc_reason("swapnet_fail_by_status", _status_class(result.status), 1)
            logger.warning("swapnet %s failed (%s): %s", endpoint, result.kind, result.error)
        return result

    async def get_supported_tokens(self, chain_id: int) -> Result[List[TokenStaticInfo]]:
        def _shape(body: Any) -> List[TokenStaticInfo]:
            if not isinstance(body, list):
                raise ParseError("tokens response is not a list")
            return [TokenStaticInfo.from_dict(t, chain_id=int(chain_id)) for t in body]

        return await self._get("tokens", {"chainId": str(int(chain_id))}, _shape)

    async def swap(
        self,
        chain_id: int,
        sell_token: str,
        buy_token: str,
        sell_amount: Optional[int] = None,
        buy_amount: Optional[int] = None,
        user_address: Optional[str] = None,
    ) -> Result[SwapQuote]:
        if sell_amount is None and buy_amount is None:
            raise ConfigError("Both sellAmount and buyAmount are missing!")
        if sell_amount is not None and buy_amount is not None:
            raise ConfigError("Both sellAmount and buyAmount are specified!")
        for name, amount in (("sellAmount", sell_amount), ("buyAmount", buy_amount)):
            if amount is None:
                continue
            if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
                raise ConfigError(f"{name} must be a non-negative integer, got {amount!r}")

        params = {
            "chainId": str(int(chain_id)),
            "sellToken": str(sell_token),
            "buyToken": str(buy_token),
        }
        if sell_amount is not None:
            params["sellAmount"] = str(int(sell_amount))
        if buy_amount is not None:
            params["buyAmount"] = str(int(buy_amount))
        if user_address is not None:
            params["userAddress"] = str(user_address)

        return await self._get("swap", params, SwapQuote.from_dict)

    async def get_token_prices(
        self,
        chain_id: int,
        token_ops: Sequence[TokenOperation],
    ) -> Result[List[TokenPrice]]:
        def _shape(body: Any) -> List[TokenPrice]:
            if not isinstance(body, list):
                raise ParseError("prices response is not a list")
            return [TokenPrice.from_dict(p) for p in body]

        tokens = ",".join(op.token.address for op in token_ops)
        return await self._get("prices", {"chainId": str(int(chain_id)), "tokens": tokens}, _shape)
