from __future__ import annotations

from typing import Any, Dict, Optional

from swapcheck.errors import ParseError
from swapcheck.types import RouteStep, RoutingPlan, SwapQuote, normalize_address, parse_amount
from routers.utils import normalize_protocol


def _parse_fee(raw: Any) -> Optional[int]:
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ParseError(f"fee is not an integer: {raw!r}")
    try:
        fee = int(raw)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"fee is not an integer: {raw!r}") from exc
    if fee < 0 or fee >= 1 << 24:
        raise ParseError(f"fee out of uint24 range: {fee}")
    return fee


def _parse_step(idx: int, raw: Dict[str, Any]) -> RouteStep:
    if not isinstance(raw, dict):
        raise ParseError(f"route step {idx} is not an object")
    protocol = normalize_protocol(raw.get("protocol") or "")
    if not protocol:
        raise ParseError(f"route step {idx} has no protocol")
    pool = raw.get("pool")
    return RouteStep(
        protocol=protocol,
        token_in=normalize_address(raw.get("tokenIn")),
        token_out=normalize_address(raw.get("tokenOut")),
        amount_in=parse_amount(raw.get("amountIn"), f"steps[{idx}].amountIn"),
        amount_out=parse_amount(raw.get("amountOut"), f"steps[{idx}].amountOut"),
        fee=_parse_fee(raw.get("fee")),
        pool=normalize_address(pool) if pool else None,
    )


def parse(quote: SwapQuote) -> RoutingPlan:
    """Validate a quote's route and return it as a RoutingPlan.

    The route must be a connected chain from `from_token` to `to_token`, and
    every hop's output amount must be the next hop's input amount.
    """
    from_token = normalize_address(quote.from_token)
    to_token = normalize_address(quote.to_token)
    if from_token == to_token:
        raise ParseError(f"quote sells and buys the same token {from_token}")
    if not quote.steps:
        raise ParseError("quote has no route steps")

    steps = tuple(_parse_step(i, s) for i, s in enumerate(quote.steps))

    if steps[0].token_in != from_token:
        raise ParseError(f"first step starts at {steps[0].token_in}, quote sells {from_token}")
    if steps[-1].token_out != to_token:
        raise ParseError(f"last step ends at {steps[-1].token_out}, quote buys {to_token}")
    for i in range(len(steps) - 1):
        if steps[i].token_out != steps[i + 1].token_in:
            raise ParseError(f"route broken between step {i} and {i + 1}")
        if steps[i].amount_out != steps[i + 1].amount_in:
            raise ParseError(
                f"step {i} outputs {steps[i].amount_out} but step {i + 1} consumes {steps[i + 1].amount_in}"
            )
    if steps[0].amount_in != int(quote.amount_in):
        raise ParseError(f"route consumes {steps[0].amount_in}, quote sells {quote.amount_in}")
    if steps[-1].amount_out != int(quote.amount_out):
        raise ParseError(f"route produces {steps[-1].amount_out}, quote buys {quote.amount_out}")

    return RoutingPlan(
        chain_id=int(quote.chain_id),
        from_token=from_token,
        to_token=to_token,
        amount_in=int(quote.amount_in),
        amount_out=int(quote.amount_out),
        steps=steps,
    )
