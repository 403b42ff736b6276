"""
settings.py - Engine settings (SINGLE SOURCE OF TRUTH)

Policy:
- Built once at boot by load_settings()
- Frozen after initialization (no runtime modifications)
- load_settings() is the only place that reads the environment
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "SNIPER_"


@dataclass(frozen=True)
class EngineSettings:
    """Immutable engine configuration."""

    # Venue A (mainnet)
    jupiter_base_url: str = "https://quote-api.jup.ag/v6"
    # Venue B (test/dev networks)
    raydium_api_url: str = "https://api-v3-devnet.raydium.io"
    raydium_swap_url: str = "https://transaction-v1-devnet.raydium.io"
    raydium_tx_version: str = "V0"
    http_timeout_seconds: float = 30.0

    # Transport-level send retries handed to the RPC node
    send_max_retries: int = 5

    # Retry controller
    max_attempts: int = 3
    devnet_backoff_seconds: float = 2.0
    mainnet_backoff_seconds: float = 0.5
    backoff_factor: float = 2.0

    # Balance gate: SOL kept back for fees on every buy
    fee_reserve_sol: float = 0.01

    # Trade defaults when the strategy passes no options
    default_slippage_bps: int = 50
    default_priority_fee_micro_lamports: int = 1000

    # Wall-clock limit for the module body and for each strategy call
    strategy_timeout_seconds: Optional[float] = 30.0

    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.devnet_backoff_seconds < 0 or self.mainnet_backoff_seconds < 0:
            raise ValueError("backoff seconds cannot be negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        if self.fee_reserve_sol < 0:
            raise ValueError("fee_reserve_sol cannot be negative")
        if not 0 < self.default_slippage_bps <= 10_000:
            raise ValueError("default_slippage_bps must be in (0, 10000]")
        if self.send_max_retries < 0:
            raise ValueError("send_max_retries cannot be negative")
        if self.strategy_timeout_seconds is not None and self.strategy_timeout_seconds <= 0:
            raise ValueError("strategy_timeout_seconds must be positive")


def _env(name: str) -> Optional[str]:
    value = os.getenv(f"{ENV_PREFIX}{name}", "").strip()
    return value or None


def load_settings(env_file: Optional[str] = None) -> EngineSettings:
    """
    THE ONLY FUNCTION THAT READS THE ENVIRONMENT.

    Loads .env once (or `env_file`), then overlays SNIPER_* variables on the
    EngineSettings defaults. Invalid values raise ValueError.
    """
    load_dotenv(env_file)

    overrides = {}
    str_fields = {
        "JUPITER_BASE_URL": "jupiter_base_url",
        "RAYDIUM_API_URL": "raydium_api_url",
        "RAYDIUM_SWAP_URL": "raydium_swap_url",
        "RAYDIUM_TX_VERSION": "raydium_tx_version",
        "LOG_LEVEL": "log_level",
        "LOG_FILE": "log_file",
    }
    int_fields = {
        "SEND_MAX_RETRIES": "send_max_retries",
        "MAX_ATTEMPTS": "max_attempts",
        "DEFAULT_SLIPPAGE_BPS": "default_slippage_bps",
        "DEFAULT_PRIORITY_FEE": "default_priority_fee_micro_lamports",
    }
    float_fields = {
        "HTTP_TIMEOUT_SECONDS": "http_timeout_seconds",
        "DEVNET_BACKOFF_SECONDS": "devnet_backoff_seconds",
        "MAINNET_BACKOFF_SECONDS": "mainnet_backoff_seconds",
        "BACKOFF_FACTOR": "backoff_factor",
        "FEE_RESERVE_SOL": "fee_reserve_sol",
        "STRATEGY_TIMEOUT_SECONDS": "strategy_timeout_seconds",
    }

    for env_name, attr in str_fields.items():
        value = _env(env_name)
        if value is not None:
            overrides[attr] = value
    for env_name, attr in int_fields.items():
        value = _env(env_name)
        if value is not None:
            try:
                overrides[attr] = int(value)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}{env_name} must be an integer, got {value!r}") from None
    for env_name, attr in float_fields.items():
        value = _env(env_name)
        if value is not None:
            try:
                overrides[attr] = float(value)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}{env_name} must be a number, got {value!r}") from None

    return EngineSettings(**overrides)
