from __future__ import annotations

from typing import Optional

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError


_SELECTOR_ERROR = b"\x08\xc3\x79\xa0"
_SELECTOR_PANIC = b"\x4e\x48\x7b\x71"


def is_error_payload(data_hex: Optional[str]) -> bool:
    """True for Error(string) / Panic(uint256) return data."""
    hx = str(data_hex or "").lower()
    return hx.startswith("0x08c379a0") or hx.startswith("0x4e487b71")


def decode_revert_reason(data_hex: Optional[str]) -> Optional[str]:
    if not data_hex or data_hex == "0x":
        return None
    hx = data_hex[2:] if data_hex.startswith("0x") else data_hex
    try:
        raw = bytes.fromhex(hx)
    except ValueError:
        return "revert:undecodable"
    if raw.startswith(_SELECTOR_ERROR):
        try:
            reason = abi_decode(["string"], raw[4:])[0]
            return f"revert:{reason}"
        except (DecodingError, UnicodeDecodeError):
            return "revert:error"
    if raw.startswith(_SELECTOR_PANIC):
        try:
            code = abi_decode(["uint256"], raw[4:])[0]
            return f"panic:0x{int(code):x}"
        except DecodingError:
            return "panic"
    if len(raw) >= 4:
        return f"custom:0x{raw[:4].hex()}"
    return "revert:undecodable"
