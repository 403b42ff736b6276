"""
trade_api.py - Per-wallet buy/sell capability handed to strategies

One TradeApi per wallet per invocation. A call:
1. Logs the attempt, checks a token is configured
2. Merges options with engine defaults (pool id falls back to the context)
3. Converts to base units using the token's decimals
4. Asks the BalanceGate; a skip returns None without touching a venue
5. Routes by network and runs the venue call under the RetryController
6. On success records the trade with the gate and emits a balance update

At most one trade is in flight per wallet; concurrent calls queue on a lock.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Mapping, Optional

from loguru import logger

from sniper_engine.config.settings import EngineSettings
from sniper_engine.config.solana_tokens import NATIVE_MINT, from_base_units
from sniper_engine.errors import FailureReason, TradeError
from sniper_engine.events import EventSink
from sniper_engine.execution.adapters.base import SwapRequest
from sniper_engine.execution.balance_gate import BalanceGate
from sniper_engine.execution.retry import RetryController, RetryPolicy
from sniper_engine.execution.router import TradeRouter, is_mainnet
from sniper_engine.execution.wallets import WalletHandle
from sniper_engine.models import Amount, Side, TradeContext, TradeOptions, TradeRequest

HELPER_NAMES = {"jupiter": "Jupiter", "raydium": "Raydium"}


class TradeApi:
    def __init__(
        self,
        wallet: WalletHandle,
        context: TradeContext,
        connection: Any,
        router: TradeRouter,
        gate: BalanceGate,
        settings: Optional[EngineSettings] = None,
        log: Optional[Callable[[str], None]] = None,
        emit: Optional[EventSink] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.wallet = wallet
        self.context = context
        self.connection = connection
        self.router = router
        self.gate = gate
        self.settings = settings or EngineSettings()
        self.log = log or (lambda _msg: None)
        self.emit = emit
        self.retry = RetryController(
            RetryPolicy(
                max_attempts=self.settings.max_attempts,
                devnet_initial_delay=self.settings.devnet_backoff_seconds,
                mainnet_initial_delay=self.settings.mainnet_backoff_seconds,
                backoff_factor=self.settings.backoff_factor,
            ),
            log=self.log,
            sleep=sleep,
        )
        self._defaults = TradeOptions(
            slippage_bps=self.settings.default_slippage_bps,
            priority_fee_micro_lamports=self.settings.default_priority_fee_micro_lamports,
            pool_id=context.pool_id,
        )
        self._lock = asyncio.Lock()

    async def buy(self, amount: Amount, options: Optional[Mapping[str, Any]] = None) -> Optional[str]:
        return await self.execute(Side.BUY, amount, options)

    async def sell(self, amount: Amount, options: Optional[Mapping[str, Any]] = None) -> Optional[str]:
        return await self.execute(Side.SELL, amount, options)

    async def execute(
        self,
        side: Side,
        amount: Amount,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Optional[str]:
        """
        Run one trade for this wallet.

        Returns:
            Confirmed signature, or None if the BalanceGate skipped the trade

        Raises:
            TradeError: no token, route/build failure, or retries exhausted
            InvalidAmountError: amount rounds to less than one base unit
        """
        label = side.value.capitalize()
        async with self._lock:
            self.log(
                f"[trade] Attempting {side.value}: amount={amount}, "
                f"opts={json.dumps(dict(options or {}), default=str)}"
            )
            try:
                signature = await self._execute(side, amount, options)
            except Exception as e:
                self.log(f"[trade] {label} failed: {e}")
                logger.error(f"TRADE | failed | wallet={self.wallet.address[:8]}... | side={side.value} | {e}")
                raise

            if signature is not None:
                self.log(f"[trade] {label} succeeded, result={json.dumps(signature)}")
            return signature

    async def _execute(
        self,
        side: Side,
        amount: Amount,
        options: Optional[Mapping[str, Any]],
    ) -> Optional[str]:
        token = self.context.token
        if token is None:
            raise TradeError("No token configured in context", reason=FailureReason.NO_TOKEN)

        request = TradeRequest(
            side=side,
            amount=amount,
            options=TradeOptions.from_mapping(options, defaults=self._defaults),
        )

        units = request.base_units(token.decimals)

        if not self.gate.allow(self.wallet.address, side, float(amount), log=self.log):
            logger.info(f"TRADE | skipped | wallet={self.wallet.address[:8]}... | side={side.value}")
            return None

        venue = self.router.route(self.context.network)
        self.log(f"Using {HELPER_NAMES.get(venue.name, venue.name)} helper for {side.value}")

        if side is Side.BUY:
            input_mint, output_mint = NATIVE_MINT, token.address
        else:
            input_mint, output_mint = token.address, NATIVE_MINT

        async def attempt(current: int) -> str:
            return await venue.execute(
                SwapRequest(
                    wallet=self.wallet,
                    connection=self.connection,
                    input_mint=input_mint,
                    output_mint=output_mint,
                    amount=current,
                    slippage_bps=request.options.slippage_bps,
                    priority_fee_micro_lamports=request.options.priority_fee_micro_lamports,
                    pool_id=request.options.pool_id,
                )
            )

        outcome = await self.retry.run(attempt, units, is_mainnet=is_mainnet(self.context.network))

        traded = from_base_units(outcome.amount, token.decimals)
        update = self.gate.record_success(self.wallet.address, side, traded)
        if self.emit is not None:
            self.emit(update)

        logger.info(
            f"TRADE | success | wallet={self.wallet.address[:8]}... | side={side.value} | "
            f"venue={venue.name} | units={outcome.amount} | attempts={outcome.attempts} | sig={outcome.value}"
        )
        return outcome.value

