"""Context objects handed to strategy code."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from solders.pubkey import Pubkey

from sniper_engine.config.solana_tokens import min_trade_amount
from sniper_engine.execution.wallets import WalletHandle
from sniper_engine.models import MarketSnapshot, TradeContext

TradeFn = Callable[..., Awaitable[Optional[str]]]


class StrategyContext:
    """
    Per-invocation view of the host context.

    Known fields are attributes; any other key the host sent (e.g.
    `minTradeAmount`, `poolReserves`) is readable by its original name.
    """

    def __init__(self, trade_context: TradeContext, connection: Any = None):
        self.trade_context = trade_context
        self.connection = connection
        self.rpc_url = trade_context.rpc_url
        self.network = trade_context.network
        self.token = trade_context.token
        self.market = trade_context.market
        self.wallet_balances = trade_context.wallet_balances
        self.pool_id = trade_context.pool_id
        self.is_advanced_mode = trade_context.is_advanced_mode
        self.system_state = trade_context.system_state

    def __getattr__(self, name: str) -> Any:
        trade_context = self.__dict__.get("trade_context")
        if trade_context is not None and name in trade_context.extra:
            return trade_context.extra[name]
        raise AttributeError(f"context has no attribute {name!r}")

    @property
    def is_mainnet(self) -> bool:
        return self.trade_context.is_mainnet

    @property
    def min_trade_amount(self) -> Optional[float]:
        """Host-supplied minimum, else derived from pool reserves when present."""
        extra = self.trade_context.extra
        if extra.get("minTradeAmount") is not None:
            return float(extra["minTradeAmount"])
        reserves = extra.get("poolReserves")
        if not reserves:
            return None
        decimals = self.token.decimals if self.token else 9
        return min_trade_amount(
            float(reserves.get("sol") or 0),
            float(reserves.get("token") or 0),
            decimals,
        )


class BotContext(StrategyContext):
    """Per-bot context: the shared view plus this wallet's buy/sell."""

    def __init__(self, trade_context: TradeContext, buy: TradeFn, sell: TradeFn, connection: Any = None):
        super().__init__(trade_context, connection)
        self.buy = buy
        self.sell = sell


@dataclass(frozen=True)
class BotSlot:
    wallet: WalletHandle
    public_key: Pubkey
    market: MarketSnapshot
    buy: TradeFn
    sell: TradeFn
    log: Callable[[str], None]


class GroupContext(StrategyContext):
    def __init__(self, trade_context: TradeContext, bots: List[BotSlot], connection: Any = None):
        super().__init__(trade_context, connection)
        self.bots = bots
