"""
Solana token constants and base-unit arithmetic.

Amounts coming from strategies are human-readable decimals; venues want
integer base units. All conversion goes through Decimal so 0.1 * 10**6 is
exactly 100000, not 100000.00000000001.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from sniper_engine.errors import InvalidAmountError


@dataclass(frozen=True)
class SolanaToken:
    symbol: str
    mint: str
    decimals: int


# Wrapped SOL; every buy spends it and every sell receives it.
SOL = SolanaToken(symbol="SOL", mint="So11111111111111111111111111111111111111112", decimals=9)
NATIVE_MINT = SOL.mint

# Devnet pools below this size are treated as unusable.
MIN_TRADE_FALLBACK_SOL = 0.01
# Constant-product pools keep 0.3% of input as fee.
POOL_FEE_MULTIPLIER = 0.997


def to_base_units(amount: Union[int, float, Decimal, str], decimals: int) -> int:
    """
    Convert a human amount to integer base units, rounding half-up.

    Raises InvalidAmountError if the result is not at least one base unit.
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite():
        raise InvalidAmountError(f"Invalid amount: {amount!r}")

    scaled = (value * (Decimal(10) ** int(decimals))).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    units = int(scaled)
    if units < 1:
        raise InvalidAmountError(
            f"Amount {amount} is below one base unit at {decimals} decimals"
        )
    return units


def from_base_units(units: int, decimals: int) -> float:
    return float(Decimal(int(units)) / (Decimal(10) ** int(decimals)))


def min_trade_amount(sol_reserve: float, token_reserve: float, token_decimals: int = 9) -> float:
    """
    Smallest SOL input that buys one base unit of token from a constant-product pool.

    Falls back to MIN_TRADE_FALLBACK_SOL when reserves are empty or the
    result is not a positive finite number.
    """
    if token_reserve <= 0 or sol_reserve <= 0:
        return MIN_TRADE_FALLBACK_SOL

    one_token = 1 / (10 ** token_decimals)
    denominator = POOL_FEE_MULTIPLIER * (token_reserve - one_token)
    if denominator <= 0:
        return MIN_TRADE_FALLBACK_SOL

    raw_amount = (one_token * sol_reserve) / denominator
    if not math.isfinite(raw_amount) or raw_amount <= 0:
        return MIN_TRADE_FALLBACK_SOL

    return round(max(raw_amount, MIN_TRADE_FALLBACK_SOL), 6)


__all__ = [
    "SolanaToken",
    "SOL",
    "NATIVE_MINT",
    "MIN_TRADE_FALLBACK_SOL",
    "to_base_units",
    "from_base_units",
    "min_trade_amount",
]
