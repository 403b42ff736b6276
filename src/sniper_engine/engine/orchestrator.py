"""
orchestrator.py - Runs one invocation of a strategy against a set of wallets

Order of work:
1. Build wallet handles (bad entries are logged and skipped)
2. Open the RPC connection and load the balance snapshot into the gate
3. Compile the strategy, run its module body, find exports.strategy
4. per-bot: call strategy(wallet, log, context) for each wallet in turn,
   isolating failures per wallet
   group: call strategy(log, context) once with one slot per wallet

Compile and init failures end the invocation with an ErrorEvent. A missing
strategy function or an empty wallet list is logged and is not an error.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from loguru import logger
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed

from sniper_engine.config.settings import EngineSettings
from sniper_engine.errors import CompileError, InitError
from sniper_engine.events import ErrorEvent, EventSink, LogEvent
from sniper_engine.execution.balance_gate import BalanceGate
from sniper_engine.execution.router import TradeRouter
from sniper_engine.execution.trade_api import TradeApi
from sniper_engine.execution.wallets import WalletHandle, load_wallet_handles
from sniper_engine.engine.contexts import BotContext, BotSlot, GroupContext, StrategyContext
from sniper_engine.models import ExecutionMode, Invocation
from sniper_engine.strategy.sandbox import StrategySandbox

ConnectionFactory = Callable[[str], Any]


def default_connection_factory(rpc_url: str) -> AsyncClient:
    return AsyncClient(rpc_url, commitment=Confirmed)


def describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class Orchestrator:
    def __init__(
        self,
        router: TradeRouter,
        gate: BalanceGate,
        settings: Optional[EngineSettings] = None,
        sandbox: Optional[StrategySandbox] = None,
        connection_factory: ConnectionFactory = default_connection_factory,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.router = router
        self.gate = gate
        self.settings = settings or EngineSettings()
        self.sandbox = sandbox or StrategySandbox(timeout=self.settings.strategy_timeout_seconds)
        self.connection_factory = connection_factory
        self.sleep = sleep

    async def run(self, invocation: Invocation, emit: EventSink) -> None:
        def log(text: str) -> None:
            logger.debug(f"STRATEGY_LOG | {text}")
            emit(LogEvent(text))

        context = invocation.context
        if context.token is None:
            log("[worker] Warning: no token configured in context")

        wallets = load_wallet_handles(invocation.bots, log=log)
        connection = self.connection_factory(context.rpc_url)
        try:
            await self._run(invocation, wallets, connection, log, emit)
        finally:
            close = getattr(connection, "close", None)
            if close is not None:
                await close()

    async def _run(
        self,
        invocation: Invocation,
        wallets: List[WalletHandle],
        connection: Any,
        log: Callable[[str], None],
        emit: EventSink,
    ) -> None:
        context = invocation.context
        mode = invocation.mode
        self.gate.load_snapshot(context.wallet_balances)

        trade_apis = [
            TradeApi(
                wallet,
                context,
                connection,
                self.router,
                self.gate,
                settings=self.settings,
                log=log,
                emit=emit,
                sleep=self.sleep,
            )
            for wallet in wallets
        ]

        try:
            compiled = self.sandbox.compile(invocation.code)
        except CompileError as e:
            log(f"[worker] Failed to compile strategy: {e}")
            emit(ErrorEvent(str(e)))
            return

        try:
            exports = compiled.run(StrategyContext(context, connection))
        except InitError as e:
            log(f"[worker] Error during strategy initialization: {e}")
            emit(ErrorEvent(str(e)))
            return

        log(f"[worker] Preparing to run strategy ({mode.value}), bots={len(wallets)}")

        strategy = exports.strategy_fn
        if strategy is None:
            log("[worker] No strategy function exported")
            return

        if not wallets:
            log("[worker] No bots provided – nothing to do.")
            return

        logger.info(
            f"ORCHESTRATOR | run | mode={mode.value} | bots={len(wallets)} | network={context.network}"
        )

        if mode is ExecutionMode.GROUP:
            await self._run_group(strategy, context, wallets, trade_apis, connection, log, emit)
        else:
            await self._run_per_bot(strategy, context, wallets, trade_apis, connection, log)

    async def _run_per_bot(self, strategy, context, wallets, trade_apis, connection, log) -> None:
        for wallet, api in zip(wallets, trade_apis):
            log(f"[worker] Running per-bot strategy for bot {wallet.address}")
            bot_context = BotContext(context, buy=api.buy, sell=api.sell, connection=connection)
            try:
                await self.sandbox.invoke(strategy, wallet, log, bot_context)
            except Exception as e:
                log(f"[worker] Error in bot {wallet.address}: {describe(e)}")
                logger.warning(f"ORCHESTRATOR | bot_error | wallet={wallet.address[:8]}... | {describe(e)}")

    async def _run_group(self, strategy, context, wallets, trade_apis, connection, log, emit) -> None:
        log("[worker] Running group mode strategy")

        def prefixed(address: str) -> Callable[[str], None]:
            return lambda text: log(f"[{address}] {text}")

        slots = [
            BotSlot(
                wallet=wallet,
                public_key=wallet.public_key,
                market=context.market,
                buy=api.buy,
                sell=api.sell,
                log=prefixed(wallet.address),
            )
            for wallet, api in zip(wallets, trade_apis)
        ]
        group_context = GroupContext(context, slots, connection=connection)
        try:
            await self.sandbox.invoke(strategy, log, group_context)
        except Exception as e:
            log(f"[worker] Error in group strategy: {describe(e)}")
            logger.warning(f"ORCHESTRATOR | group_error | {describe(e)}")
            emit(ErrorEvent(describe(e)))
            return
        log("[worker] Group strategy complete")
