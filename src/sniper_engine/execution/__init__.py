from .balance_gate import BalanceGate
from .retry import RetryController, RetryOutcome, RetryPolicy
from .router import TradeRouter, is_mainnet
from .trade_api import TradeApi
from .wallets import (
    ExternalSigner,
    ExternalSignerHandle,
    LocalKeypairHandle,
    WalletHandle,
    build_wallet_handle,
    load_wallet_handles,
)

__all__ = [
    "BalanceGate",
    "RetryController",
    "RetryOutcome",
    "RetryPolicy",
    "TradeRouter",
    "is_mainnet",
    "TradeApi",
    "ExternalSigner",
    "ExternalSignerHandle",
    "LocalKeypairHandle",
    "WalletHandle",
    "build_wallet_handle",
    "load_wallet_handles",
]
