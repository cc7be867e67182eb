import asyncio

import pytest

from infra import rpc as rpc_mod
from infra.metrics import METRICS
from infra.rpc import AsyncRPC, ExecutionReverted, RPCError
from swapcheck import config


class FakeResponse:
    def __init__(self, status=200, body=None, delay_s=0.0):
        self.status = status
        self._body = body
        self._delay_s = delay_s
        self.request_info = None
        self.history = ()

    async def text(self):
        return str(self._body)

    async def json(self, content_type=None):
        return self._body

    async def __aenter__(self):
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.payloads = []
        self.closed = False

    def post(self, url, json=None):
        self.payloads.append(json)
        return self._responses.pop(0)


@pytest.fixture(autouse=True)
def _fast_backoff(monkeypatch):
    monkeypatch.setattr(rpc_mod.random, "random", lambda: 0.0)
    monkeypatch.setattr(config, "RPC_TIMEOUT_MIN_S", 0.01)
    monkeypatch.setattr(config, "RPC_RATE_LIMIT_BACKOFF_S", 0.0)


def _rpc(session, retries=2):
    return AsyncRPC("https://rpc.example", max_retries=retries, backoff_base_s=0.0, session=session)


@pytest.mark.asyncio
async def test_result_returned() -> None:
    session = FakeSession([FakeResponse(body={"jsonrpc": "2.0", "id": 1, "result": "0x10"})])
    assert await _rpc(session).call("eth_blockNumber", []) == "0x10"
    assert session.payloads[0]["method"] == "eth_blockNumber"


@pytest.mark.asyncio
async def test_transient_http_errors_are_retried() -> None:
    session = FakeSession(
        [
            FakeResponse(status=503, body="unavailable"),
            FakeResponse(status=429, body="slow down"),
            FakeResponse(body={"jsonrpc": "2.0", "id": 1, "result": "0xabc"}),
        ]
    )
    assert await _rpc(session).call("eth_call", [{}, "latest"]) == "0xabc"
    assert len(session.payloads) == 3


@pytest.mark.asyncio
async def test_retries_are_bounded() -> None:
    session = FakeSession([FakeResponse(status=502, body="bad gateway") for _ in range(3)])
    with pytest.raises(RPCError, match="http_502"):
        await _rpc(session, retries=2).call("eth_call", [{}, "latest"])
    assert len(session.payloads) == 3
    assert METRICS.reason("rpc_fail_by_reason", "http_5xx") == 1


@pytest.mark.asyncio
async def test_client_http_error_is_not_retried() -> None:
    session = FakeSession([FakeResponse(status=401, body="unauthorized")])
    with pytest.raises(RPCError):
        await _rpc(session).call("eth_call", [{}, "latest"])
    assert len(session.payloads) == 1


@pytest.mark.asyncio
async def test_revert_is_raised_without_retry() -> None:
    err = {"code": 3, "message": "execution reverted: Too little received", "data": "0x08c379a0"}
    session = FakeSession([FakeResponse(body={"jsonrpc": "2.0", "id": 1, "error": err})])
    with pytest.raises(ExecutionReverted) as info:
        await _rpc(session).call("eth_call", [{}, "latest"])
    assert info.value.data == "0x08c379a0"
    assert len(session.payloads) == 1


@pytest.mark.asyncio
async def test_revert_detected_from_message() -> None:
    err = {"code": -32000, "message": "execution reverted"}
    session = FakeSession([FakeResponse(body={"jsonrpc": "2.0", "id": 1, "error": err})])
    with pytest.raises(ExecutionReverted) as info:
        await _rpc(session).call("eth_call", [{}, "latest"])
    assert info.value.data is None


@pytest.mark.asyncio
async def test_other_rpc_errors_are_transport_failures() -> None:
    err = {"code": -32005, "message": "limit exceeded"}
    session = FakeSession([FakeResponse(body={"jsonrpc": "2.0", "id": 1, "error": err}) for _ in range(2)])
    with pytest.raises(RPCError):
        await _rpc(session, retries=1).call("eth_call", [{}, "latest"])
    assert len(session.payloads) == 2


@pytest.mark.asyncio
async def test_timeout_is_retried_then_raised() -> None:
    session = FakeSession([FakeResponse(body={"result": "0x1"}, delay_s=1.0) for _ in range(2)])
    with pytest.raises(RPCError, match="timeout"):
        await _rpc(session, retries=1).call("eth_blockNumber", [], timeout_s=0.05)
    assert len(session.payloads) == 2

