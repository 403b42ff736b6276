"""
models.py - Domain types for one engine invocation

Everything here is built once per inbound message and only read afterwards.
Host messages arrive camelCase; the from_* constructors translate them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from sniper_engine.config.solana_tokens import to_base_units

Amount = Union[int, float, Decimal, str]

DEFAULT_SLIPPAGE_BPS = 50
DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS = 1000


class Side(Enum):
    BUY = "buy"
    SELL = "sell"


class ExecutionMode(Enum):
    PER_BOT = "per-bot"
    GROUP = "group"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "ExecutionMode":
        if not raw:
            return cls.PER_BOT
        try:
            return cls(raw)
        except ValueError:
            raise ValueError(f"Unknown execution mode: {raw!r}") from None


def detect_network(rpc_url: str) -> str:
    """Fallback when the host omits `network`: derive it from the RPC URL."""
    return "mainnet-beta" if "mainnet" in (rpc_url or "") else "devnet"


@dataclass(frozen=True)
class TokenDescriptor:
    address: str
    decimals: int = 0

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> Optional["TokenDescriptor"]:
        if not raw or not raw.get("address"):
            return None
        return cls(address=str(raw["address"]), decimals=int(raw.get("decimals") or 0))


@dataclass(frozen=True)
class MarketSnapshot:
    last_price: Optional[float] = None
    current_market_cap: Optional[float] = None
    current_lp_value: Optional[float] = None
    external_price: Optional[float] = None

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "MarketSnapshot":
        raw = raw or {}
        external = raw.get("externalPrice", raw.get("solUsdPrice"))
        return cls(
            last_price=raw.get("lastPrice"),
            current_market_cap=raw.get("currentMarketCap"),
            current_lp_value=raw.get("currentLpValue"),
            external_price=external,
        )


@dataclass(frozen=True)
class WalletBalance:
    """Cached balance in human units (SOL, token)."""
    sol: float = 0.0
    token: float = 0.0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "WalletBalance":
        return cls(sol=float(raw.get("sol") or 0.0), token=float(raw.get("token") or 0.0))


@dataclass(frozen=True)
class TradeOptions:
    slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    priority_fee_micro_lamports: int = DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS
    pool_id: Optional[str] = None

    @classmethod
    def from_mapping(
        cls,
        raw: Optional[Mapping[str, Any]],
        defaults: Optional["TradeOptions"] = None,
    ) -> "TradeOptions":
        """Accepts camelCase (as strategies written for the host use) or snake_case keys."""
        defaults = defaults or cls()
        raw = raw or {}

        def pick(*keys: str) -> Any:
            for key in keys:
                if raw.get(key) is not None:
                    return raw[key]
            return None

        slippage = pick("slippageBps", "slippage_bps")
        fee = pick("priorityFeeMicroLamports", "priority_fee_micro_lamports", "priorityFee")
        pool_id = pick("poolId", "pool_id")
        return cls(
            slippage_bps=int(slippage) if slippage else defaults.slippage_bps,
            priority_fee_micro_lamports=int(fee) if fee else defaults.priority_fee_micro_lamports,
            pool_id=str(pool_id) if pool_id else defaults.pool_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slippageBps": self.slippage_bps,
            "priorityFeeMicroLamports": self.priority_fee_micro_lamports,
            "poolId": self.pool_id,
        }


@dataclass(frozen=True)
class TradeRequest:
    side: Side
    amount: Amount
    options: TradeOptions = field(default_factory=TradeOptions)

    def base_units(self, decimals: int) -> int:
        return to_base_units(self.amount, decimals)


@dataclass(frozen=True)
class TradeContext:
    """Immutable per-invocation snapshot handed over by the host."""
    rpc_url: str
    network: str
    token: Optional[TokenDescriptor] = None
    market: MarketSnapshot = field(default_factory=MarketSnapshot)
    wallet_balances: Mapping[str, WalletBalance] = field(default_factory=dict)
    pool_id: Optional[str] = None
    is_advanced_mode: bool = False
    system_state: Optional[Any] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_mainnet(self) -> bool:
        return self.network.startswith("main")

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "TradeContext":
        raw = dict(raw or {})
        rpc_url = str(raw.pop("rpcUrl", "") or "")
        network = raw.pop("network", None) or detect_network(rpc_url)
        balances = {
            str(addr): WalletBalance.from_dict(bal or {})
            for addr, bal in (raw.pop("walletBalances", None) or {}).items()
        }
        return cls(
            rpc_url=rpc_url,
            network=str(network),
            token=TokenDescriptor.from_dict(raw.pop("token", None)),
            market=MarketSnapshot.from_dict(raw.pop("market", None)),
            wallet_balances=MappingProxyType(balances),
            pool_id=raw.pop("poolId", None),
            is_advanced_mode=bool(raw.pop("isAdvancedMode", False)),
            system_state=raw.pop("systemState", None),
            extra=MappingProxyType(raw),
        )


@dataclass(frozen=True)
class Invocation:
    """One parsed inbound message."""
    code: str
    bots: List[Any]
    context: TradeContext
    mode: ExecutionMode = ExecutionMode.PER_BOT

    @classmethod
    def from_message(cls, message: Optional[Mapping[str, Any]]) -> "Invocation":
        message = message or {}
        return cls(
            code=str(message.get("code") or ""),
            bots=list(message.get("bots") or []),
            context=TradeContext.from_dict(message.get("context")),
            mode=ExecutionMode.parse(message.get("mode")),
        )
