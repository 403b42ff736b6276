"""
errors.py - Engine error taxonomy

Invocation-level failures (CompileError, InitError) abort a whole run.
Trade-level failures (TradeError and subclasses) carry a typed FailureReason
set by the venue that raised them, so callers never parse message text.

Insufficient balance is NOT an error: the BalanceGate skips the trade.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class FailureReason(Enum):
    """Typed reason code attached to every TradeError."""
    NO_TOKEN = "no_token"
    NO_ROUTE = "no_route"
    POOL_NOT_FOUND = "pool_not_found"
    BUILD_FAILED = "build_failed"
    AMOUNT_TOO_LOW = "amount_too_low"
    SIGN_FAILED = "sign_failed"
    SEND_FAILED = "send_failed"
    SIMULATION_FAILED = "simulation_failed"
    BLOCKHASH_EXPIRED = "blockhash_expired"
    CONFIRM_FAILED = "confirm_failed"


class EngineError(Exception):
    """Base class for all engine errors."""


class CompileError(EngineError):
    """Strategy source failed to compile or violated the sandbox policy."""


class InitError(EngineError):
    """Strategy module body raised while populating its exports."""


class StrategyRuntimeError(EngineError):
    """A strategy call raised. Wraps the original exception."""

    def __init__(self, message: str, wallet: Optional[str] = None):
        super().__init__(message)
        self.wallet = wallet


class StrategyTimeoutError(StrategyRuntimeError):
    """A strategy call ran past its wall-clock limit."""


class WalletLoadError(EngineError):
    """Raw key material could not be turned into a wallet handle."""


class InvalidAmountError(EngineError, ValueError):
    """Requested amount is not positive once converted to base units."""


class TradeError(EngineError):
    """
    Venue-level trade failure.

    `reason` is set by the venue executor itself. The RetryController
    keys its amount-halving decision off `reason`, never off the message.
    """

    default_reason: FailureReason = FailureReason.BUILD_FAILED

    def __init__(
        self,
        message: str,
        reason: Optional[FailureReason] = None,
        venue: Optional[str] = None,
    ):
        super().__init__(message)
        self.reason = reason or self.default_reason
        self.venue = venue

    def __str__(self) -> str:
        base = super().__str__()
        if self.venue:
            return f"{self.venue}: {base}"
        return base


class RouteError(TradeError):
    """No quote, route or pool exists for the requested pair/amount."""
    default_reason = FailureReason.NO_ROUTE


class BuildError(TradeError):
    """The venue did not return a transaction to sign."""
    default_reason = FailureReason.BUILD_FAILED


class SubmitError(TradeError):
    """Send or confirmation of a signed transaction failed."""
    default_reason = FailureReason.SEND_FAILED


class AmountTooLowError(TradeError):
    """The trade amount is too small to produce any output."""
    default_reason = FailureReason.AMOUNT_TOO_LOW


def is_amount_too_low(exc: BaseException) -> bool:
    """True if `exc` is a trade failure the venue classified as amount-too-low."""
    return isinstance(exc, TradeError) and exc.reason is FailureReason.AMOUNT_TOO_LOW
