"""
worker.py - Top-level message handler

A StrategyWorker owns everything that outlives one invocation: the venue
HTTP clients (through the router) and the BalanceGate pause flags. Messages
are handled one at a time; handle_message() never raises.
"""

from __future__ import annotations

import asyncio
import traceback
from typing import Any, Awaitable, Callable, Mapping, Optional

from loguru import logger

from sniper_engine.config.settings import EngineSettings
from sniper_engine.engine.orchestrator import (
    ConnectionFactory,
    Orchestrator,
    default_connection_factory,
    describe,
)
from sniper_engine.events import ErrorEvent, EventSink, LogEvent
from sniper_engine.execution.adapters.jupiter_adapter import JupiterAdapter, JupiterConfig
from sniper_engine.execution.adapters.raydium_adapter import RaydiumAdapter, RaydiumConfig
from sniper_engine.execution.balance_gate import BalanceGate
from sniper_engine.execution.router import TradeRouter
from sniper_engine.models import Invocation
from sniper_engine.utils.shutdown import stop_requested

INBOX_POLL_SECONDS = 0.5


def build_router(settings: EngineSettings) -> TradeRouter:
    jupiter = JupiterAdapter(
        JupiterConfig(
            base_url=settings.jupiter_base_url,
            http_timeout=settings.http_timeout_seconds,
            send_max_retries=settings.send_max_retries,
        )
    )
    raydium = RaydiumAdapter(
        RaydiumConfig(
            api_url=settings.raydium_api_url,
            swap_url=settings.raydium_swap_url,
            http_timeout=settings.http_timeout_seconds,
            tx_version=settings.raydium_tx_version,
            compute_unit_price_micro_lamports=settings.default_priority_fee_micro_lamports,
            send_max_retries=settings.send_max_retries,
        )
    )
    return TradeRouter(mainnet_venue=jupiter, devnet_venue=raydium)


class StrategyWorker:
    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        router: Optional[TradeRouter] = None,
        gate: Optional[BalanceGate] = None,
        connection_factory: ConnectionFactory = default_connection_factory,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or EngineSettings()
        self.router = router or build_router(self.settings)
        self.gate = gate or BalanceGate(self.settings.fee_reserve_sol)
        self.orchestrator = Orchestrator(
            self.router,
            self.gate,
            settings=self.settings,
            connection_factory=connection_factory,
            sleep=sleep,
        )
        self.handled = 0

    async def handle_message(self, message: Optional[Mapping[str, Any]], emit: EventSink) -> None:
        try:
            message = message or {}
            bots = message.get("bots") or []
            emit(LogEvent(f"[worker] Received message: mode={message.get('mode') or 'per-bot'}, bots={len(bots)}"))

            invocation = Invocation.from_message(message)
            await self.orchestrator.run(invocation, emit)
        except Exception as e:
            msg = describe(e)
            logger.exception(f"WORKER | unhandled | {msg}")
            emit(LogEvent(f"[worker] Unhandled error: {msg}"))
            emit(LogEvent(traceback.format_exc()))
            emit(ErrorEvent(msg))
        finally:
            self.handled += 1

    async def serve(self, inbox: "asyncio.Queue[Optional[Mapping[str, Any]]]", emit: EventSink) -> None:
        """
        Handle messages from `inbox` in order until a None sentinel arrives
        or a stop is requested. A stop never interrupts a running invocation.
        """
        logger.info("WORKER | serving")
        while not stop_requested():
            try:
                message = await asyncio.wait_for(inbox.get(), timeout=INBOX_POLL_SECONDS)
            except asyncio.TimeoutError:
                continue
            try:
                if message is None:
                    break
                await self.handle_message(message, emit)
            finally:
                inbox.task_done()
        logger.info(f"WORKER | stopped | handled={self.handled}")

    async def close(self) -> None:
        """Drop pause flags and close venue HTTP clients. In-flight trades are abandoned."""
        self.gate.reset()
        await self.router.close()
        logger.info("WORKER | closed")
