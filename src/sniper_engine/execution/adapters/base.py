from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from sniper_engine.execution.wallets import WalletHandle


@dataclass(frozen=True)
class SwapRequest:
    """Everything a venue needs to execute one swap. `amount` is in base units."""
    wallet: WalletHandle
    connection: Any  # solana.rpc.async_api.AsyncClient
    input_mint: str
    output_mint: str
    amount: int
    slippage_bps: int
    priority_fee_micro_lamports: Optional[int] = None
    pool_id: Optional[str] = None

    def __post_init__(self):
        if self.amount < 1:
            raise ValueError("swap amount must be at least one base unit")


class SwapVenue(ABC):
    """Trade-execution backend. Returns a confirmed signature or raises TradeError."""

    name: str = "venue"

    @abstractmethod
    async def execute(self, swap: SwapRequest) -> str:
        ...

    async def close(self) -> None:
        return None
