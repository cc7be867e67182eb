from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import Any, Dict, Optional, Tuple, Union

from eth_utils import is_hex_address

from swapcheck.errors import ConfigError, ParseError


SIDE_INPUT = "input"
SIDE_OUTPUT = "output"

Tolerance = Union[Fraction, Decimal, int, float, str]

# Block number, or a tag such as "latest" / "safe", or a hex block number.
BlockRef = Union[int, str]


def normalize_address(value: Any) -> str:
    """Lower-case 0x address, or ParseError if it is not 20 bytes of hex."""
    addr = str(value or "").strip()
    if not is_hex_address(addr):
        raise ParseError(f"malformed address: {value!r}")
    return addr.lower()


def parse_amount(value: Any, name: str = "amount") -> int:
    """Integer amount from an int or a decimal-integer string. Floats are rejected."""
    if isinstance(value, bool) or value is None:
        raise ParseError(f"{name} is missing or not an integer: {value!r}")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and value.strip().isdigit():
        amount = int(value.strip())
    else:
        raise ParseError(f"{name} is not an integer amount: {value!r}")
    if amount < 0:
        raise ParseError(f"{name} must be non-negative: {amount}")
    return amount


def to_fraction(value: Tolerance) -> Fraction:
    """Exact rational form of a tolerance; floats go through their decimal repr."""
    if isinstance(value, bool):
        raise ConfigError(f"invalid slippage tolerance: {value!r}")
    if isinstance(value, Fraction):
        return value
    try:
        return Fraction(Decimal(str(value)))
    except (InvalidOperation, ValueError, OverflowError) as exc:
        raise ConfigError(f"invalid slippage tolerance: {value!r}") from exc


@dataclass(frozen=True)
class TokenStaticInfo:
    address: str
    chain_id: int
    decimals: int
    symbol: str
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], chain_id: Optional[int] = None) -> "TokenStaticInfo":
        if not isinstance(raw, dict):
            raise ParseError(f"token record is not an object: {raw!r}")
        try:
            decimals = int(raw.get("decimals"))
            cid = int(raw.get("chainId", chain_id))
        except (TypeError, ValueError) as exc:
            raise ParseError(f"malformed token record: {raw!r}") from exc
        if decimals < 0:
            raise ParseError(f"negative decimals in token record: {raw!r}")
        return cls(
            address=normalize_address(raw.get("address")),
            chain_id=cid,
            decimals=decimals,
            symbol=str(raw.get("symbol") or ""),
            name=raw.get("name"),
        )


@dataclass(frozen=True)
class TokenOperation:
    token: TokenStaticInfo
    amount: Optional[int] = None
    side: str = SIDE_INPUT

    def __post_init__(self) -> None:
        if self.amount is not None and int(self.amount) < 0:
            raise ConfigError(f"token operation amount must be non-negative: {self.amount}")
        if self.side not in (SIDE_INPUT, SIDE_OUTPUT):
            raise ConfigError(f"unknown token operation side: {self.side}")


@dataclass(frozen=True)
class TokenPrice:
    address: str
    price: Decimal

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TokenPrice":
        if not isinstance(raw, dict):
            raise ParseError(f"price record is not an object: {raw!r}")
        try:
            price = Decimal(str(raw.get("price")))
        except (InvalidOperation, ValueError) as exc:
            raise ParseError(f"malformed price record: {raw!r}") from exc
        if not price.is_finite() or price < 0:
            raise ParseError(f"invalid price in record: {raw!r}")
        return cls(address=normalize_address(raw.get("address")), price=price)


def _token_address(raw: Any) -> str:
    if isinstance(raw, dict):
        return normalize_address(raw.get("address"))
    return normalize_address(raw)


@dataclass(frozen=True)
class SwapQuote:
    """Priced swap returned by the pricing service; `steps` are the raw route descriptors."""

    chain_id: int
    from_token: str
    to_token: str
    amount_in: int
    amount_out: int
    steps: Tuple[Dict[str, Any], ...]
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SwapQuote":
        if not isinstance(raw, dict):
            raise ParseError("swap response is not an object")
        try:
            chain_id = int(raw.get("chainId"))
        except (TypeError, ValueError) as exc:
            raise ParseError(f"swap response has no chainId: {raw.get('chainId')!r}") from exc
        routes = raw.get("routes")
        if not isinstance(routes, list):
            raise ParseError("swap response has no routes list")
        return cls(
            chain_id=chain_id,
            from_token=_token_address(raw.get("sellToken")),
            to_token=_token_address(raw.get("buyToken")),
            amount_in=parse_amount(raw.get("sellAmount"), "sellAmount"),
            amount_out=parse_amount(raw.get("buyAmount"), "buyAmount"),
            steps=tuple(dict(r) if isinstance(r, dict) else r for r in routes),
            raw=dict(raw),
        )


@dataclass(frozen=True)
class RouteStep:
    protocol: str
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    fee: Optional[int] = None
    pool: Optional[str] = None


@dataclass(frozen=True)
class RoutingPlan:
    chain_id: int
    from_token: str
    to_token: str
    amount_in: int
    amount_out: int
    steps: Tuple[RouteStep, ...]


@dataclass(frozen=True)
class EncodeOptions:
    slippage_tolerance: Tolerance = Fraction(0)
    deadline: Optional[int] = None
    recipient: Optional[str] = None


@dataclass(frozen=True)
class ResolvedBounds:
    amount_out_minimum: int
    deadline: Optional[int]
    recipient: Optional[str]


@dataclass(frozen=True)
class EncodedInstruction:
    payload: bytes
    amount_out_minimum: int
    to: str


@dataclass(frozen=True)
class SimulationResult:
    amount_out: int
    gas_used: int = 0
    revert_reason: Optional[str] = None
    block_tag: Optional[str] = None

    @property
    def reverted(self) -> bool:
        return self.revert_reason is not None
