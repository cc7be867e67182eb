"""Replay a router instruction against a point-in-time chain snapshot.

The sender account is temporarily given the runtime code of
contracts/SwapSimulator.sol through an `eth_call` state override. The simulator
approves the token proxy, calls the router with the instruction, and returns
`(amountOut, gasUsed)` measured as the sender's balance delta of the output
token. Nothing is ever broadcast.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from eth_abi import decode as abi_decode, encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, is_hex, to_checksum_address

from swapcheck import config
from swapcheck.config import Settings
from swapcheck.errors import ConfigError, SimulationError
from swapcheck.types import BlockRef, SimulationResult
from infra.rpc import ExecutionReverted, RPCError
from simulation.contract import MISSING_CODE_HELP, load_simulator_code
from simulation.revert import decode_revert_reason, is_error_payload

logger = logging.getLogger(__name__)

SIG_SIMULATE_SWAP = "simulateSwap(address,address,address,address,uint256,bytes)"

BLOCK_TAGS = ("latest", "pending", "safe", "finalized", "earliest")


def _encode_call(signature: str, types: list, values: list) -> bytes:
    return bytes(function_signature_to_4byte_selector(signature)) + abi_encode(types, values)


def normalize_block_ref(block_ref: BlockRef) -> str:
    """JSON-RPC block parameter for a block number or a symbolic tag."""
    if isinstance(block_ref, bool):
        raise ConfigError(f"invalid block reference: {block_ref!r}")
    if isinstance(block_ref, int):
        if block_ref < 0:
            raise ConfigError(f"block number must be non-negative, got {block_ref}")
        return hex(block_ref)
    ref = str(block_ref).strip().lower()
    if ref in BLOCK_TAGS:
        return ref
    if ref.startswith("0x") and is_hex(ref) and len(ref) > 2:
        return hex(int(ref, 16))
    if ref.isdigit():
        return hex(int(ref))
    raise ConfigError(f"invalid block reference: {block_ref!r}")


@dataclass(frozen=True)
class SwapSimulation:
    """Immutable builder: `SwapSimulation(rpc, code).run_at(block).with_sender(addr).execute(...)`."""

    rpc: Any
    simulator_code: str = config.SIMULATOR_CODE
    block_ref: str = "latest"
    sender: Optional[str] = None
    timeout_s: Optional[float] = None

    @classmethod
    def from_block(cls, block_ref: BlockRef, rpc: Any = None, simulator_code: str = config.SIMULATOR_CODE) -> "SwapSimulation":
        return cls(rpc=rpc, simulator_code=simulator_code, block_ref=normalize_block_ref(block_ref))

    @classmethod
    def from_settings(cls, settings: Settings, rpc: Any) -> "SwapSimulation":
        """Bytecode resolved via load_simulator_code, sender from settings."""
        code = load_simulator_code(settings.simulator_code, settings.simulator_artifact)
        return cls(rpc=rpc, simulator_code=code).with_sender(settings.sender_address)

    def connect(self, rpc: Any) -> "SwapSimulation":
        return replace(self, rpc=rpc)

    def run_at(self, block_ref: BlockRef) -> "SwapSimulation":
        return replace(self, block_ref=normalize_block_ref(block_ref))

    def with_sender(self, sender: str) -> "SwapSimulation":
        try:
            return replace(self, sender=to_checksum_address(sender))
        except ValueError as exc:
            raise ConfigError(f"malformed sender address: {sender!r}") from exc

    def _call_params(self, data: bytes) -> list:
        tx: Dict[str, Any] = {
            "from": self.sender,
            "to": self.sender,
            "data": "0x" + data.hex(),
        }
        override = {self.sender: {"code": self.simulator_code}}
        return [tx, self.block_ref, override]

    async def execute(
        self,
        router_address: str,
        token_proxy_address: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        payload: bytes,
    ) -> SimulationResult:
        if self.rpc is None:
            raise ConfigError("simulation has no RPC connection")
        if not self.sender:
            raise ConfigError("simulation has no sender")
        if not self.simulator_code or not is_hex(self.simulator_code):
            raise ConfigError(MISSING_CODE_HELP)

        data = _encode_call(
            SIG_SIMULATE_SWAP,
            ["address", "address", "address", "address", "uint256", "bytes"],
            [
                to_checksum_address(router_address),
                to_checksum_address(token_proxy_address),
                to_checksum_address(token_in),
                to_checksum_address(token_out),
                int(amount_in),
                bytes(payload),
            ],
        )

        try:
            res = await self.rpc.call("eth_call", self._call_params(data), timeout_s=self.timeout_s)
        except ExecutionReverted as exc:
            reason = decode_revert_reason(exc.data) or f"revert:{exc.message}"
            logger.info("simulation at %s reverted: %s", self.block_ref, reason)
            return SimulationResult(amount_out=0, revert_reason=reason, block_tag=self.block_ref)
        except RPCError as exc:
            raise SimulationError(str(exc), {"block_tag": self.block_ref}) from exc

        if isinstance(res, str) and is_error_payload(res):
            return SimulationResult(amount_out=0, revert_reason=decode_revert_reason(res), block_tag=self.block_ref)
        if not isinstance(res, str) or not is_hex(res):
            raise SimulationError(f"unexpected eth_call result: {str(res)[:80]}", {"block_tag": self.block_ref})

        raw = bytes.fromhex(res[2:] if res.startswith("0x") else res)
        if len(raw) < 64:
            raise SimulationError(f"short simulation result ({len(raw)} bytes)", {"block_tag": self.block_ref})
        try:
            amount_out, gas_used = abi_decode(["uint256", "uint256"], raw[:64])
        except DecodingError as exc:
            raise SimulationError(f"decode_error:{exc}", {"block_tag": self.block_ref}) from exc
        return SimulationResult(amount_out=int(amount_out), gas_used=int(gas_used), block_tag=self.block_ref)
