from .base import SwapRequest, SwapVenue
from .jupiter_adapter import JupiterAdapter, JupiterConfig
from .raydium_adapter import (
    BuiltSwap,
    RaydiumAdapter,
    RaydiumConfig,
    RaydiumTradeApiBuilder,
    SwapBuilder,
    SwapParams,
)

__all__ = [
    "SwapRequest",
    "SwapVenue",
    "JupiterAdapter",
    "JupiterConfig",
    "RaydiumAdapter",
    "RaydiumConfig",
    "RaydiumTradeApiBuilder",
    "SwapBuilder",
    "SwapParams",
    "BuiltSwap",
]
