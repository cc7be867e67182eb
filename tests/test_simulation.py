import pytest
from eth_abi import decode, encode as abi_encode
from eth_utils import function_signature_to_4byte_selector

from conftest import PERMIT2, ROUTER, SENDER, TOKEN_A, TOKEN_B
from infra.rpc import ExecutionReverted, RPCError
from simulation.engine import SIG_SIMULATE_SWAP, SwapSimulation, normalize_block_ref
from simulation.revert import decode_revert_reason
from swapcheck.errors import ConfigError, SimulationError

SIM_CODE = "0x6080604052"


def _error_data(msg: str) -> str:
    return "0x08c379a0" + abi_encode(["string"], [msg]).hex()


class FakeRPC:
    def __init__(self, result=None, exc=None):
        self._result = result
        self._exc = exc
        self.calls = []

    async def call(self, method, params, timeout_s=None):
        self.calls.append((method, params))
        if self._exc is not None:
            raise self._exc
        return self._result


def _sim(rpc) -> SwapSimulation:
    return SwapSimulation(rpc, SIM_CODE).run_at(5358636).with_sender(SENDER)


async def _execute(sim: SwapSimulation):
    return await sim.execute(ROUTER, PERMIT2, TOKEN_A, TOKEN_B, 10_000, b"\x12\x34")


def test_decode_revert_reason_error() -> None:
    assert decode_revert_reason(_error_data("boom")) == "revert:boom"


def test_decode_revert_reason_panic() -> None:
    data = "0x4e487b71" + abi_encode(["uint256"], [0x11]).hex()
    assert decode_revert_reason(data) == "panic:0x11"


def test_decode_revert_reason_custom_and_empty() -> None:
    assert decode_revert_reason("0x39d35496") == "custom:0x39d35496"
    assert decode_revert_reason("0x") is None
    assert decode_revert_reason(None) is None


@pytest.mark.parametrize(
    "ref,expected",
    [
        (5358636, hex(5358636)),
        ("latest", "latest"),
        ("PENDING", "pending"),
        ("0x10", "0x10"),
        ("255", "0xff"),
    ],
)
def test_normalize_block_ref(ref, expected) -> None:
    assert normalize_block_ref(ref) == expected


@pytest.mark.parametrize("ref", [-1, "yesterday", "0x", True])
def test_normalize_block_ref_rejects(ref) -> None:
    with pytest.raises(ConfigError):
        normalize_block_ref(ref)


@pytest.mark.asyncio
async def test_execute_builds_state_override_call() -> None:
    rpc = FakeRPC("0x" + abi_encode(["uint256", "uint256"], [9_800, 151_000]).hex())
    res = await _execute(_sim(rpc))
    assert res.amount_out == 9_800
    assert res.gas_used == 151_000
    assert not res.reverted
    assert res.block_tag == hex(5358636)

    method, params = rpc.calls[0]
    assert method == "eth_call"
    tx, block_tag, override = params
    assert block_tag == hex(5358636)
    assert tx["from"] == tx["to"]
    assert tx["from"].lower() == SENDER.lower()
    assert override == {tx["from"]: {"code": SIM_CODE}}

    data = bytes.fromhex(tx["data"][2:])
    assert data[:4] == function_signature_to_4byte_selector(SIG_SIMULATE_SWAP)
    router, proxy, token_in, token_out, amount_in, payload = decode(
        ["address", "address", "address", "address", "uint256", "bytes"], data[4:]
    )
    assert router.lower() == ROUTER.lower()
    assert proxy.lower() == PERMIT2.lower()
    assert (token_in.lower(), token_out.lower()) == (TOKEN_A, TOKEN_B)
    assert amount_in == 10_000
    assert payload == b"\x12\x34"


def test_builder_returns_new_instances() -> None:
    base = SwapSimulation(FakeRPC(), SIM_CODE)
    pinned = base.run_at(100)
    assert base.block_ref == "latest"
    assert pinned.block_ref == "0x64"
    other = FakeRPC()
    assert pinned.connect(other).rpc is other
    assert SwapSimulation.from_block("safe", rpc=other, simulator_code=SIM_CODE).block_ref == "safe"


@pytest.mark.asyncio
async def test_revert_with_reason_is_a_result() -> None:
    rpc = FakeRPC(exc=ExecutionReverted("execution reverted: Too little received", _error_data("Too little received")))
    res = await _execute(_sim(rpc))
    assert res.reverted
    assert res.amount_out == 0
    assert res.revert_reason == "revert:Too little received"


@pytest.mark.asyncio
async def test_revert_without_data_uses_message() -> None:
    rpc = FakeRPC(exc=ExecutionReverted("execution reverted"))
    res = await _execute(_sim(rpc))
    assert res.revert_reason == "revert:execution reverted"


@pytest.mark.asyncio
async def test_error_payload_in_result_is_a_revert() -> None:
    rpc = FakeRPC(_error_data("TRANSFER_FROM_FAILED"))
    res = await _execute(_sim(rpc))
    assert res.revert_reason == "revert:TRANSFER_FROM_FAILED"


@pytest.mark.asyncio
async def test_transport_failure_becomes_simulation_error() -> None:
    rpc = FakeRPC(exc=RPCError("RPC call eth_call failed after retries: timeout(10.0s)"))
    with pytest.raises(SimulationError):
        await _execute(_sim(rpc))


@pytest.mark.asyncio
async def test_short_result_is_simulation_error() -> None:
    with pytest.raises(SimulationError):
        await _execute(_sim(FakeRPC("0x" + "00" * 32)))


@pytest.mark.asyncio
async def test_missing_code_or_sender() -> None:
    with pytest.raises(ConfigError, match="SwapSimulator.sol"):
        await _execute(SwapSimulation(FakeRPC(), "").with_sender(SENDER))
    with pytest.raises(ConfigError):
        await _execute(SwapSimulation(FakeRPC(), SIM_CODE))
    with pytest.raises(ConfigError):
        SwapSimulation(FakeRPC(), SIM_CODE).with_sender("0xnope")
