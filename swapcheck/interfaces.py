from __future__ import annotations

from typing import Awaitable, Protocol

from swapcheck.types import BlockRef, EncodedInstruction, EncodeOptions, RoutingPlan, SimulationResult, SwapQuote


class RoutingPlanParser(Protocol):
    def __call__(self, quote: SwapQuote) -> RoutingPlan:
        """Validate a quote and return its routing plan, or raise ParseError."""
        raise NotImplementedError


class InstructionEncoder(Protocol):
    router_address: str
    token_proxy_address: str

    def encode(self, plan: RoutingPlan, options: EncodeOptions) -> EncodedInstruction:
        """Return calldata for `router_address`, or raise EncodingError."""
        raise NotImplementedError


class SenderScoped(Protocol):
    def execute(
        self,
        router_address: str,
        token_proxy_address: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        payload: bytes,
    ) -> Awaitable[SimulationResult]:
        raise NotImplementedError


class BlockScoped(Protocol):
    def with_sender(self, sender: str) -> SenderScoped:
        raise NotImplementedError


class SimulationEngine(Protocol):
    def run_at(self, block_ref: BlockRef) -> BlockScoped:
        raise NotImplementedError
