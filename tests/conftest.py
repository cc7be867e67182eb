from typing import Any, Dict, List, Optional

import pytest

from infra.metrics import METRICS
from swapcheck.types import SwapQuote

CHAIN_ID = 81457
ROUTER = "0xAA539Bcf648C0b4F8984FcDEb5228827e7AAC3AE"
PERMIT2 = "0x000000000022d473030f116ddee9f6b43ac78ba3"
SENDER = "0x3B2Be8413F34fc6491506B18c530A264c0f7adAE"

TOKEN_A = "0x" + "1" * 40
TOKEN_B = "0x" + "2" * 40
TOKEN_C = "0x" + "3" * 40
TOKEN_D = "0x" + "4" * 40


def _step(protocol: str, token_in: str, token_out: str, amount_in: int, amount_out: int, fee: Optional[int] = 3000) -> Dict[str, Any]:
    step: Dict[str, Any] = {
        "protocol": protocol,
        "tokenIn": token_in,
        "tokenOut": token_out,
        "amountIn": str(amount_in),
        "amountOut": str(amount_out),
    }
    if fee is not None:
        step["fee"] = fee
    return step


def swap_response(
    amount_in: int = 10_000,
    amount_out: int = 10_556,
    routes: Optional[List[Dict[str, Any]]] = None,
    sell: str = TOKEN_A,
    buy: str = TOKEN_B,
) -> Dict[str, Any]:
    if routes is None:
        routes = [_step("uniswap_v3", sell, buy, amount_in, amount_out)]
    return {
        "chainId": CHAIN_ID,
        "sellToken": {"address": sell, "chainId": CHAIN_ID, "decimals": 18, "symbol": "A"},
        "buyToken": {"address": buy, "chainId": CHAIN_ID, "decimals": 18, "symbol": "B"},
        "sellAmount": str(amount_in),
        "buyAmount": str(amount_out),
        "routes": routes,
    }


@pytest.fixture
def step():
    return _step


@pytest.fixture
def make_quote():
    def _make(**kwargs: Any) -> SwapQuote:
        return SwapQuote.from_dict(swap_response(**kwargs))

    return _make


@pytest.fixture(autouse=True)
def _reset_metrics():
    METRICS.reset()
    yield
    METRICS.reset()
