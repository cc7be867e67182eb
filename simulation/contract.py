"""Locate the runtime bytecode of contracts/SwapSimulator.sol.

Lookup order: explicit hex, a compiler artifact (foundry `out/`, hardhat
`artifacts/`, or a `.bin-runtime` file), then `solc` on PATH.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any, Optional, Sequence

from eth_utils import is_hex

from swapcheck import config
from swapcheck.errors import ConfigError

logger = logging.getLogger(__name__)

CONTRACT_NAME = "SwapSimulator"
SIMULATOR_SOURCE = Path(__file__).resolve().parent / "contracts" / f"{CONTRACT_NAME}.sol"

MISSING_CODE_HELP = (
    f"no runtime bytecode for {CONTRACT_NAME}: compile {SIMULATOR_SOURCE} "
    f"(`solc --optimize --bin-runtime` or `forge build`) and set SIMULATOR_CODE to the hex, "
    f"or SIMULATOR_ARTIFACT to the artifact path"
)


def artifact_candidates(root: Optional[Path] = None) -> Sequence[Path]:
    base = Path(root) if root is not None else Path.cwd()
    return (
        base / "out" / f"{CONTRACT_NAME}.sol" / f"{CONTRACT_NAME}.json",
        base / "artifacts" / "contracts" / f"{CONTRACT_NAME}.sol" / f"{CONTRACT_NAME}.json",
        SIMULATOR_SOURCE.with_suffix(".bin-runtime"),
    )


def _as_code(raw: Any, source: str) -> str:
    code = str(raw or "").strip()
    if code and not code.startswith("0x"):
        code = "0x" + code
    if len(code) <= 2 or not is_hex(code):
        raise ConfigError(f"{source} does not hold runtime bytecode")
    return code


def runtime_code_from_artifact(path: Path) -> str:
    """Foundry/hardhat JSON (`deployedBytecode`) or a bare hex `.bin-runtime` file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read simulator artifact {path}: {exc}") from exc
    if path.suffix != ".json":
        return _as_code(text, str(path))
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ConfigError(f"simulator artifact {path} is not JSON") from exc
    deployed = data.get("deployedBytecode") if isinstance(data, dict) else None
    if isinstance(deployed, dict):  # foundry
        deployed = deployed.get("object")
    return _as_code(deployed, str(path))


def compile_simulator(source: Path = SIMULATOR_SOURCE) -> str:
    solc = shutil.which("solc")
    if not solc:
        raise ConfigError(MISSING_CODE_HELP)
    cmd = [solc, "--optimize", "--combined-json", "bin-runtime", str(source)]
    try:
        out = subprocess.check_output(cmd, cwd=str(Path(source).parent))
    except (OSError, subprocess.CalledProcessError) as exc:
        raise ConfigError(f"solc failed on {source}: {exc}") from exc
    contracts = json.loads(out.decode("utf-8")).get("contracts", {})
    for key, entry in contracts.items():
        if key.endswith(f":{CONTRACT_NAME}"):
            return _as_code(entry.get("bin-runtime"), f"solc output for {key}")
    raise ConfigError(f"{CONTRACT_NAME} not found in solc output")


def load_simulator_code(
    code: Optional[str] = None,
    artifact_path: Optional[str] = None,
    *,
    search_root: Optional[Path] = None,
    allow_compile: bool = True,
) -> str:
    """Runtime bytecode for the simulator, or ConfigError explaining how to build it."""
    code = code if code is not None else config.SIMULATOR_CODE
    if code:
        return _as_code(code, "SIMULATOR_CODE")
    artifact_path = artifact_path if artifact_path is not None else config.SIMULATOR_ARTIFACT
    if artifact_path:
        return runtime_code_from_artifact(Path(artifact_path))
    for candidate in artifact_candidates(search_root):
        if candidate.exists():
            logger.debug("simulator code from %s", candidate)
            return runtime_code_from_artifact(candidate)
    if not allow_compile:
        raise ConfigError(MISSING_CODE_HELP)
    logger.info("compiling %s with solc", SIMULATOR_SOURCE)
    return compile_simulator()
