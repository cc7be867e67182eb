from __future__ import annotations

from typing import Any, List, Tuple

from eth_abi import encode

from swapcheck.errors import EncodingError
from swapcheck.types import EncodedInstruction, EncodeOptions, RouteStep, RoutingPlan
from routers.base import RouterBase, resolve_encode_options
from routers.utils import PROTOCOL_UNISWAP_V2, PROTOCOL_UNISWAP_V3, checksum, encode_v3_path, selector


SIG_EXECUTE = "execute(bytes,bytes[],uint256)"
SIG_EXECUTE_NO_DEADLINE = "execute(bytes,bytes[])"

CMD_V3_SWAP_EXACT_IN = 0x00
CMD_V2_SWAP_EXACT_IN = 0x08

# Universal Router recipient / amount sentinels.
MSG_SENDER = "0x0000000000000000000000000000000000000001"
ADDRESS_THIS = "0x0000000000000000000000000000000000000002"
CONTRACT_BALANCE = 1 << 255

V2_SWAP_INPUT_TYPES = ["address", "uint256", "uint256", "address[]", "bool"]
V3_SWAP_INPUT_TYPES = ["address", "uint256", "uint256", "bytes", "bool"]


def _segments(steps: Tuple[RouteStep, ...]) -> List[List[RouteStep]]:
    """Group consecutive steps on the same protocol; each group is one swap command."""
    out: List[List[RouteStep]] = []
    for step in steps:
        if out and out[-1][0].protocol == step.protocol:
            out[-1].append(step)
        else:
            out.append([step])
    return out


def _v3_path(segment: List[RouteStep]) -> bytes:
    fees = []
    for step in segment:
        if step.fee is None:
            raise EncodingError(f"uniswap_v3 step {step.token_in}->{step.token_out} has no fee tier")
        fees.append(int(step.fee))
    tokens = [segment[0].token_in] + [s.token_out for s in segment]
    return encode_v3_path(tokens, fees)


class UniversalRouter(RouterBase):
    """Encodes exact-input routing plans as Uniswap Universal Router `execute` calls."""

    def _swap_command(
        self,
        segment: List[RouteStep],
        *,
        recipient: str,
        amount_in: int,
        min_out: int,
        payer_is_user: bool,
    ) -> Tuple[int, bytes]:
        protocol = segment[0].protocol
        if protocol == PROTOCOL_UNISWAP_V3:
            data = encode(
                V3_SWAP_INPUT_TYPES,
                [checksum(recipient), int(amount_in), int(min_out), _v3_path(segment), bool(payer_is_user)],
            )
            return CMD_V3_SWAP_EXACT_IN, data
        if protocol == PROTOCOL_UNISWAP_V2:
            path = [checksum(segment[0].token_in)] + [checksum(s.token_out) for s in segment]
            data = encode(
                V2_SWAP_INPUT_TYPES,
                [checksum(recipient), int(amount_in), int(min_out), path, bool(payer_is_user)],
            )
            return CMD_V2_SWAP_EXACT_IN, data
        raise EncodingError(f"unsupported route step protocol: {protocol!r}")

    def encode(self, plan: RoutingPlan, options: EncodeOptions) -> EncodedInstruction:
        if int(plan.chain_id) != self.chain_id:
            raise EncodingError(f"plan is for chain {plan.chain_id}, router is on chain {self.chain_id}")
        if not plan.steps:
            raise EncodingError("routing plan has no steps")

        bounds = resolve_encode_options(plan, options)
        final_recipient = bounds.recipient or MSG_SENDER

        segments = _segments(plan.steps)
        commands = bytearray()
        inputs: List[bytes] = []
        for idx, segment in enumerate(segments):
            is_first = idx == 0
            is_last = idx == len(segments) - 1
            cmd, data = self._swap_command(
                segment,
                recipient=final_recipient if is_last else ADDRESS_THIS,
                amount_in=plan.amount_in if is_first else CONTRACT_BALANCE,
                min_out=bounds.amount_out_minimum if is_last else 0,
                payer_is_user=is_first,
            )
            commands.append(cmd)
            inputs.append(data)

        args: List[Any] = [bytes(commands), inputs]
        if bounds.deadline is not None:
            payload = selector(SIG_EXECUTE) + encode(["bytes", "bytes[]", "uint256"], args + [bounds.deadline])
        else:
            payload = selector(SIG_EXECUTE_NO_DEADLINE) + encode(["bytes", "bytes[]"], args)

        return EncodedInstruction(
            payload=payload,
            amount_out_minimum=bounds.amount_out_minimum,
            to=self.router_address,
        )
