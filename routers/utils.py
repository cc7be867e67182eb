from __future__ import annotations

from typing import List, Sequence, Tuple

from eth_utils import function_signature_to_4byte_selector, to_bytes, to_checksum_address


PROTOCOL_UNISWAP_V2 = "uniswap_v2"
PROTOCOL_UNISWAP_V3 = "uniswap_v3"

_PROTOCOL_ALIASES = {
    "univ2": PROTOCOL_UNISWAP_V2,
    "uniswapv2": PROTOCOL_UNISWAP_V2,
    "uniswap_v2": PROTOCOL_UNISWAP_V2,
    "univ3": PROTOCOL_UNISWAP_V3,
    "uniswapv3": PROTOCOL_UNISWAP_V3,
    "uniswap_v3": PROTOCOL_UNISWAP_V3,
}


def normalize_protocol(name: str) -> str:
    """Canonical protocol id for known aliases; unknown names are lower-cased and kept."""
    p = str(name or "").strip().lower().replace("-", "_")
    return _PROTOCOL_ALIASES.get(p, p)


def selector(signature: str) -> bytes:
    return bytes(function_signature_to_4byte_selector(signature))


def checksum(addr: str) -> str:
    return to_checksum_address(addr)


def encode_v3_path(tokens: Sequence[str], fees: Sequence[int]) -> bytes:
    """Packed Uniswap V3 path: token(20) | fee(3) | token(20) ..."""
    if len(tokens) != len(fees) + 1:
        raise ValueError(f"v3 path needs len(tokens) == len(fees) + 1, got {len(tokens)}/{len(fees)}")
    out = bytearray(to_bytes(hexstr=tokens[0]))
    for fee, token in zip(fees, tokens[1:]):
        out += int(fee).to_bytes(3, "big")
        out += to_bytes(hexstr=token)
    return bytes(out)


def decode_v3_path(path_bytes: bytes) -> Tuple[List[str], List[int]]:
    tokens: List[str] = []
    fees: List[int] = []
    i = 0
    data = bytes(path_bytes)
    while i + 20 <= len(data):
        tokens.append("0x" + data[i : i + 20].hex())
        i += 20
        if i + 3 > len(data):
            break
        fees.append(int.from_bytes(data[i : i + 3], "big"))
        i += 3
    return tokens, fees
