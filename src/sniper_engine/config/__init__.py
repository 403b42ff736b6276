from .settings import EngineSettings, load_settings
from .solana_tokens import NATIVE_MINT, SOL, from_base_units, min_trade_amount, to_base_units

__all__ = [
    "EngineSettings",
    "load_settings",
    "NATIVE_MINT",
    "SOL",
    "to_base_units",
    "from_base_units",
    "min_trade_amount",
]
