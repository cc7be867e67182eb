from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from swapcheck import config
from swapcheck.errors import EncodingError, RevertError, SlippageViolation
from swapcheck.interfaces import InstructionEncoder, RoutingPlanParser, SimulationEngine
from swapcheck.parser import parse
from swapcheck.types import BlockRef, EncodeOptions, RoutingPlan, SimulationResult, SwapQuote
from routers.base import resolve_encode_options
from infra.metrics import METRICS, VERDICT_GROUP

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationCase:
    case: str
    quote: SwapQuote
    options: EncodeOptions
    block_ref: BlockRef = "latest"


@dataclass(frozen=True)
class VerificationVerdict:
    case: str
    passed: bool
    amount_out: int
    amount_out_minimum: int
    quoted_amount_out: int
    revert_reason: Optional[str] = None
    gas_used: int = 0
    block_tag: Optional[str] = None

    @property
    def reverted(self) -> bool:
        return self.revert_reason is not None

    @property
    def shortfall(self) -> int:
        return max(0, self.amount_out_minimum - self.amount_out)

    def raise_for_failure(self) -> None:
        details = {"case": self.case, "block_tag": self.block_tag}
        if self.reverted:
            raise RevertError(f"Case '{self.case}' reverted: {self.revert_reason}", self.revert_reason, details)
        if not self.passed:
            raise SlippageViolation(
                f"Case '{self.case}' failed as simulated amountOut {self.amount_out} "
                f"is less than amountOutMinimum {self.amount_out_minimum}.",
                self.amount_out,
                self.amount_out_minimum,
                details,
            )


def judge(case: str, plan: RoutingPlan, result: SimulationResult, amount_out_minimum: int) -> VerificationVerdict:
    passed = not result.reverted and int(result.amount_out) >= int(amount_out_minimum)
    return VerificationVerdict(
        case=case,
        passed=passed,
        amount_out=int(result.amount_out),
        amount_out_minimum=int(amount_out_minimum),
        quoted_amount_out=int(plan.amount_out),
        revert_reason=result.revert_reason,
        gas_used=int(result.gas_used),
        block_tag=result.block_tag,
    )


class SwapVerifier:
    """Quote -> plan -> calldata -> simulated fill -> verdict.

    Collaborators are described in swapcheck.interfaces.
    Parse and encoding errors propagate; SimulationError propagates once the
    RPC layer has exhausted its retries. Reverts and shortfalls are verdicts.
    """

    def __init__(
        self,
        router: InstructionEncoder,
        simulation: SimulationEngine,
        sender_address: str,
        *,
        parser: RoutingPlanParser = parse,
        max_concurrency: int = config.SIM_CONCURRENCY,
        timeout_s: Optional[float] = None,
    ):
        self.router = router
        self.simulation = simulation
        self.sender_address = sender_address
        self.parser = parser
        self.max_concurrency = max(1, int(max_concurrency))
        self.timeout_s = timeout_s

    async def _verify(self, case: str, quote: SwapQuote, options: EncodeOptions, block_ref: BlockRef) -> VerificationVerdict:
        plan = self.parser(quote)
        instruction = self.router.encode(plan, options)

        result = await (
            self.simulation
            .run_at(block_ref)
            .with_sender(self.sender_address)
            .execute(
                self.router.router_address,
                self.router.token_proxy_address,
                plan.from_token,
                plan.to_token,
                plan.amount_in,
                instruction.payload,
            )
        )

        bounds = resolve_encode_options(plan, options)
        if bounds.amount_out_minimum != instruction.amount_out_minimum:
            raise EncodingError(
                f"encoder bound {instruction.amount_out_minimum} disagrees with resolved bound {bounds.amount_out_minimum}",
                {"case": case},
            )

        verdict = judge(case, plan, result, bounds.amount_out_minimum)
        METRICS.inc("verdicts_total", 1)
        if verdict.passed:
            METRICS.inc_reason(VERDICT_GROUP, "passed", 1)
            logger.info("Case '%s' passed simulation! amountOut=%d min=%d", case, verdict.amount_out, verdict.amount_out_minimum)
        elif verdict.reverted:
            METRICS.inc_reason(VERDICT_GROUP, "reverted", 1)
            logger.warning("Case '%s' reverted at %s: %s", case, verdict.block_tag, verdict.revert_reason)
        else:
            METRICS.inc_reason(VERDICT_GROUP, "slippage", 1)
            logger.warning(
                "Case '%s' failed: amountOut %d < amountOutMinimum %d",
                case,
                verdict.amount_out,
                verdict.amount_out_minimum,
            )
        return verdict

    async def verify(
        self,
        case: str,
        quote: SwapQuote,
        options: EncodeOptions,
        block_ref: BlockRef = "latest",
    ) -> VerificationVerdict:
        if self.timeout_s is None:
            return await self._verify(case, quote, options, block_ref)
        return await asyncio.wait_for(self._verify(case, quote, options, block_ref), timeout=self.timeout_s)

    async def verify_many(
        self,
        cases: Sequence[VerificationCase],
        *,
        return_exceptions: bool = False,
    ) -> List[Union[VerificationVerdict, BaseException]]:
        """Run independent cases concurrently; results follow input order.

        By default the first error cancels every case still running and is
        re-raised. With `return_exceptions=True` all cases run to completion and
        a failed case yields its exception in place of a verdict.
        """
        sem = asyncio.Semaphore(self.max_concurrency)

        async def _one(c: VerificationCase) -> VerificationVerdict:
            async with sem:
                return await self.verify(c.case, c.quote, c.options, c.block_ref)

        tasks = [asyncio.ensure_future(_one(c)) for c in cases]
        try:
            return list(await asyncio.gather(*tasks, return_exceptions=return_exceptions))
        finally:
            pending = [t for t in tasks if not t.done()]
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
