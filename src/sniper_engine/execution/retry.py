"""
retry.py - Retry controller for one trade request

State machine per request (never shared between requests):

    IDLE -> ATTEMPTING -> SUCCESS
                       -> FAILED

On each failed attempt:
1. attempt += 1, log "swap attempt N failed: <err>"
2. AMOUNT_TOO_LOW: halve the amount (floor) if that still leaves >= 1 unit,
   otherwise fail immediately
3. Sleep the current delay, then multiply it by the backoff factor
4. attempt >= max_attempts -> FAILED, re-raise the last error
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from loguru import logger

from sniper_engine.errors import is_amount_too_low

T = TypeVar("T")

LogFn = Callable[[str], None]
SleepFn = Callable[[float], Awaitable[Any]]


class RetryPhase(Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    devnet_initial_delay: float = 2.0
    mainnet_initial_delay: float = 0.5
    backoff_factor: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")

    def initial_delay(self, is_mainnet: bool) -> float:
        return self.mainnet_initial_delay if is_mainnet else self.devnet_initial_delay


@dataclass
class RetryState:
    amount: int
    delay: float
    attempt: int = 0
    phase: RetryPhase = RetryPhase.IDLE
    attempted_amounts: List[int] = field(default_factory=list)
    delays: List[float] = field(default_factory=list)


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    value: T
    amount: int
    attempts: int
    delays: List[float]


class RetryController:
    """
    Runs `call(amount)` until it succeeds or the policy gives up.

    `call` receives the current base-unit amount, which shrinks on
    AMOUNT_TOO_LOW failures. The outcome reports the amount that succeeded.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        log: Optional[LogFn] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.log = log or (lambda _msg: None)
        self.sleep = sleep

    async def run(
        self,
        call: Callable[[int], Awaitable[T]],
        amount: int,
        is_mainnet: bool = False,
    ) -> RetryOutcome[T]:
        state = RetryState(amount=amount, delay=self.policy.initial_delay(is_mainnet))

        while True:
            state.phase = RetryPhase.ATTEMPTING
            state.attempted_amounts.append(state.amount)
            try:
                value = await call(state.amount)
            except Exception as e:
                state.attempt += 1
                self.log(f"swap attempt {state.attempt} failed: {e}")
                logger.warning(
                    f"RETRY | attempt_failed | attempt={state.attempt} | amount={state.amount} | {e}"
                )

                if is_amount_too_low(e):
                    if state.amount // 2 >= 1:
                        state.amount //= 2
                        self.log(f"decreasing amount to {state.amount} and retrying")
                    else:
                        state.phase = RetryPhase.FAILED
                        logger.error(f"RETRY | exhausted | amount={state.amount} cannot be halved")
                        raise

                await self.sleep(state.delay)
                state.delays.append(state.delay)
                state.delay *= self.policy.backoff_factor

                if state.attempt >= self.policy.max_attempts:
                    state.phase = RetryPhase.FAILED
                    logger.error(f"RETRY | exhausted | attempts={state.attempt}")
                    raise
                continue

            state.phase = RetryPhase.SUCCESS
            return RetryOutcome(
                value=value,
                amount=state.amount,
                attempts=state.attempt + 1,
                delays=list(state.delays),
            )
