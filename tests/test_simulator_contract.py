import json

import pytest

from simulation import contract
from simulation.contract import SIMULATOR_SOURCE, load_simulator_code, runtime_code_from_artifact
from simulation.engine import SwapSimulation
from swapcheck import config
from swapcheck.errors import ConfigError

RUNTIME = "0x6080604052348015600f57600080fd5b50"


@pytest.fixture(autouse=True)
def _no_configured_code(monkeypatch):
    monkeypatch.setattr(config, "SIMULATOR_CODE", "")
    monkeypatch.setattr(config, "SIMULATOR_ARTIFACT", "")


def test_source_ships_with_matching_entry_point() -> None:
    text = SIMULATOR_SOURCE.read_text(encoding="utf-8")
    assert "contract SwapSimulator" in text
    assert "function simulateSwap(" in text
    assert "returns (uint256 amountOut, uint256 gasUsed)" in text


def test_explicit_code_wins(tmp_path) -> None:
    assert load_simulator_code(RUNTIME[2:], search_root=tmp_path) == RUNTIME


def test_hardhat_artifact_is_found(tmp_path) -> None:
    path = tmp_path / "artifacts" / "contracts" / "SwapSimulator.sol" / "SwapSimulator.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"deployedBytecode": RUNTIME}), encoding="utf-8")
    assert load_simulator_code(search_root=tmp_path, allow_compile=False) == RUNTIME


def test_foundry_artifact_object(tmp_path) -> None:
    path = tmp_path / "SwapSimulator.json"
    path.write_text(json.dumps({"deployedBytecode": {"object": RUNTIME}}), encoding="utf-8")
    assert load_simulator_code(artifact_path=str(path)) == RUNTIME


def test_bin_runtime_file(tmp_path) -> None:
    path = tmp_path / "SwapSimulator.bin-runtime"
    path.write_text(RUNTIME[2:] + "\n", encoding="utf-8")
    assert runtime_code_from_artifact(path) == RUNTIME


def test_artifact_without_bytecode(tmp_path) -> None:
    path = tmp_path / "SwapSimulator.json"
    path.write_text(json.dumps({"abi": []}), encoding="utf-8")
    with pytest.raises(ConfigError):
        runtime_code_from_artifact(path)


def test_missing_code_explains_how_to_build(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(contract.shutil, "which", lambda name: None)
    with pytest.raises(ConfigError, match="SwapSimulator.sol"):
        load_simulator_code(search_root=tmp_path)
    with pytest.raises(ConfigError, match="SIMULATOR_CODE"):
        load_simulator_code(search_root=tmp_path, allow_compile=False)


def test_compiles_with_solc_when_available(tmp_path, monkeypatch) -> None:
    seen = []

    def fake_check_output(cmd, cwd=None):
        seen.append(cmd)
        out = {"contracts": {f"{SIMULATOR_SOURCE}:SwapSimulator": {"bin-runtime": RUNTIME[2:]}}}
        return json.dumps(out).encode("utf-8")

    monkeypatch.setattr(contract.shutil, "which", lambda name: "/usr/bin/solc")
    monkeypatch.setattr(contract.subprocess, "check_output", fake_check_output)
    assert load_simulator_code(search_root=tmp_path) == RUNTIME
    assert seen[0][:4] == ["/usr/bin/solc", "--optimize", "--combined-json", "bin-runtime"]


def test_simulation_from_settings(monkeypatch) -> None:
    monkeypatch.setenv("SIMULATOR_CODE", RUNTIME)
    monkeypatch.delenv("SIMULATOR_ARTIFACT", raising=False)
    monkeypatch.delenv("SIM_SENDER", raising=False)
    rpc = object()
    sim = SwapSimulation.from_settings(config.load_settings(), rpc)
    assert sim.simulator_code == RUNTIME
    assert sim.sender.lower() == config.SIM_SENDER.lower()
    assert sim.rpc is rpc
    assert sim.block_ref == "latest"
