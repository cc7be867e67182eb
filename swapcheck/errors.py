"""
Typed errors for the quote verification pipeline.

Callers branch on the class: configuration and contract mismatches are fatal,
transport failures may be retried, reverts and slippage shortfalls are terminal
verdicts.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SwapCheckError(Exception):
    """Base exception for the pipeline."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(SwapCheckError, ValueError):
    """Caller misuse, detected before any network I/O."""


class ServiceError(SwapCheckError):
    """Pricing service reported a business error (400/409/500 with a body)."""


class TransportError(SwapCheckError):
    """Unclassified status, network failure or timeout."""


class ParseError(SwapCheckError):
    """Quote payload failed structural validation."""


class EncodingError(SwapCheckError):
    """Routing plan cannot be turned into an instruction."""


class SimulationError(TransportError):
    """RPC failure while simulating, after retries were exhausted."""


class RevertError(SwapCheckError):
    """Simulated execution reverted."""

    def __init__(self, message: str, reason: Optional[str], details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.reason = reason


class SlippageViolation(SwapCheckError):
    """Simulation succeeded but produced less than the guaranteed minimum."""

    def __init__(self, message: str, amount_out: int, amount_out_minimum: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.amount_out = int(amount_out)
        self.amount_out_minimum = int(amount_out_minimum)
