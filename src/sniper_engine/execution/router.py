from __future__ import annotations

from sniper_engine.execution.adapters.base import SwapVenue


def is_mainnet(network: str) -> bool:
    return (network or "").startswith("main")


class TradeRouter:
    """Picks the venue for a network: Jupiter on mainnet, Raydium elsewhere."""

    def __init__(self, mainnet_venue: SwapVenue, devnet_venue: SwapVenue):
        self.mainnet_venue = mainnet_venue
        self.devnet_venue = devnet_venue

    def route(self, network: str) -> SwapVenue:
        return self.mainnet_venue if is_mainnet(network) else self.devnet_venue

    async def close(self) -> None:
        await self.mainnet_venue.close()
        await self.devnet_venue.close()
