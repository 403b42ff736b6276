"""
balance_gate.py - Pre-trade balance check against the host's cached balances

Policy:
- Buy needs sol >= amount + fee reserve; sell needs token >= amount
- Insufficient balance skips the trade; it is never an exception
- The first skip for a wallet logs once and latches it paused
- A successful trade clears the pause and debits the cached copy
- Wallets absent from the snapshot are not gated

Pause flags live as long as the gate (the worker). Cached balances are
reloaded from each invocation's context.
"""

from __future__ import annotations

from typing import Callable, Dict, Mapping, Optional

from loguru import logger

from sniper_engine.events import BalanceUpdateEvent
from sniper_engine.models import Side, WalletBalance


class BalanceGate:
    def __init__(self, fee_reserve_sol: float = 0.01):
        self.fee_reserve_sol = fee_reserve_sol
        self.paused: Dict[str, bool] = {}
        self._balances: Dict[str, WalletBalance] = {}

    def load_snapshot(self, balances: Mapping[str, WalletBalance]) -> None:
        self._balances = dict(balances)

    def balance_of(self, address: str) -> Optional[WalletBalance]:
        return self._balances.get(address)

    def is_paused(self, address: str) -> bool:
        return self.paused.get(address, False)

    def allow(
        self,
        address: str,
        side: Side,
        amount: float,
        log: Optional[Callable[[str], None]] = None,
    ) -> bool:
        balance = self._balances.get(address)
        if balance is None:
            return True

        if side is Side.BUY:
            required = amount + self.fee_reserve_sol
            have = balance.sol
            unit = "SOL"
        else:
            required = amount
            have = balance.token
            unit = "token"

        if have >= required:
            return True

        if not self.is_paused(address):
            self.paused[address] = True
            msg = (
                f"[gate] {address} paused: insufficient {unit} balance "
                f"(have {have}, need {required})"
            )
            logger.warning(f"BALANCE_GATE | paused | wallet={address[:8]}... | {unit} have={have} need={required}")
            if log is not None:
                log(msg)
        return False

    def record_success(self, address: str, side: Side, amount: float) -> BalanceUpdateEvent:
        if self.paused.pop(address, False):
            logger.info(f"BALANCE_GATE | resumed | wallet={address[:8]}...")

        balance = self._balances.get(address)
        if side is Side.BUY:
            if balance is not None:
                self._balances[address] = WalletBalance(sol=balance.sol - amount, token=balance.token)
            return BalanceUpdateEvent(wallet=address, sol_change=-amount)

        if balance is not None:
            self._balances[address] = WalletBalance(sol=balance.sol, token=balance.token - amount)
        return BalanceUpdateEvent(wallet=address, token_change=-amount)

    def reset(self) -> None:
        self.paused.clear()
        self._balances.clear()
