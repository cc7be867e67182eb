from __future__ import annotations

from fractions import Fraction

from swapcheck.errors import ConfigError
from swapcheck.types import EncodedInstruction, EncodeOptions, ResolvedBounds, RoutingPlan, to_fraction
from routers.utils import checksum


def amount_out_minimum(quoted_out: int, tolerance: Fraction) -> int:
    """floor(quoted_out * (1 - tolerance)), exact."""
    scaled = Fraction(int(quoted_out)) * (1 - tolerance)
    return scaled.numerator // scaled.denominator


def resolve_encode_options(plan: RoutingPlan, options: EncodeOptions) -> ResolvedBounds:
    """Recompute the execution bounds for `plan` from the caller's options alone."""
    tolerance = to_fraction(options.slippage_tolerance)
    if tolerance < 0 or tolerance >= 1:
        raise ConfigError(f"slippage tolerance must be in [0, 1), got {options.slippage_tolerance!r}")
    if options.deadline is not None and int(options.deadline) < 0:
        raise ConfigError(f"deadline must be non-negative, got {options.deadline}")
    recipient = None
    if options.recipient:
        try:
            recipient = checksum(options.recipient)
        except ValueError as exc:
            raise ConfigError(f"malformed recipient: {options.recipient!r}") from exc
    return ResolvedBounds(
        amount_out_minimum=amount_out_minimum(plan.amount_out, tolerance),
        deadline=int(options.deadline) if options.deadline is not None else None,
        recipient=recipient,
    )


class RouterBase:
    """Turns a RoutingPlan into calldata for one router contract."""

    def __init__(self, chain_id: int, router_address: str, token_proxy_address: str):
        self.chain_id = int(chain_id)
        self.router_address = checksum(router_address)
        self.token_proxy_address = checksum(token_proxy_address)

    def encode(self, plan: RoutingPlan, options: EncodeOptions) -> EncodedInstruction:
        raise NotImplementedError
