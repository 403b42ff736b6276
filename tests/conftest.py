from __future__ import annotations

from types import SimpleNamespace
from typing import Any, List, Optional, Sequence

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from sniper_engine.errors import AmountTooLowError, TradeError
from sniper_engine.execution.adapters.base import SwapRequest, SwapVenue
from sniper_engine.execution.wallets import WalletHandle


@pytest.fixture
def anyio_backend():
    return "asyncio"


def unsigned_tx(payer: Pubkey, co_signer: Optional[Pubkey] = None) -> VersionedTransaction:
    """Small V0 transfer with empty signature slots for every required signer."""
    ixs = [transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(), lamports=1))]
    if co_signer is not None:
        ixs.append(transfer(TransferParams(from_pubkey=co_signer, to_pubkey=Pubkey.new_unique(), lamports=1)))
    msg = MessageV0.try_compile(payer, ixs, [], Hash.default())
    return VersionedTransaction.populate(msg, [Signature.default()] * msg.header.num_required_signatures)


class FakeWallet(WalletHandle):
    """Records what it was asked to sign; returns transactions unchanged."""

    def __init__(self, public_key: Optional[Pubkey] = None):
        super().__init__(public_key or Pubkey.new_unique())
        self.signed: List[Any] = []

    async def sign_one(self, tx):
        self.signed.append(tx)
        return tx

    async def sign_many(self, txs: Sequence[Any]):
        self.signed.extend(txs)
        return list(txs)


class FakeVenue(SwapVenue):
    """
    Scripted venue. `script` is consumed one entry per call: an exception
    instance is raised, anything else is returned as the signature.
    """

    def __init__(self, name: str, script: Optional[list] = None):
        self.name = name
        self.script = list(script or [])
        self.requests: List[SwapRequest] = []
        self.closed = False

    async def execute(self, swap: SwapRequest) -> str:
        self.requests.append(swap)
        outcome = self.script.pop(0) if self.script else f"{self.name}-sig-{len(self.requests)}"
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def amounts(self) -> List[int]:
        return [r.amount for r in self.requests]

    async def close(self) -> None:
        self.closed = True


def too_low(venue: str = "raydium") -> AmountTooLowError:
    return AmountTooLowError("amount too low", venue=venue)


def failing(message: str = "boom") -> TradeError:
    return TradeError(message, venue="raydium")


class FakeConnection:
    """Stands in for solana.rpc.async_api.AsyncClient."""

    def __init__(self, send_error: Optional[Exception] = None, confirm_err: Any = None):
        self.send_error = send_error
        self.confirm_err = confirm_err
        self.sent: List[VersionedTransaction] = []
        self.opts: List[Any] = []
        self.confirmed: List[Any] = []
        self.closed = False

    async def send_raw_transaction(self, raw: bytes, opts=None):
        if self.send_error is not None:
            raise self.send_error
        tx = VersionedTransaction.from_bytes(raw)
        self.sent.append(tx)
        self.opts.append(opts)
        return SimpleNamespace(value=tx.signatures[0])

    async def get_latest_blockhash(self, commitment=None):
        return SimpleNamespace(value=SimpleNamespace(blockhash=Hash.default(), last_valid_block_height=1234))

    async def confirm_transaction(self, signature, commitment=None, last_valid_block_height=None):
        self.confirmed.append((signature, last_valid_block_height))
        return SimpleNamespace(value=[SimpleNamespace(err=self.confirm_err)])

    async def close(self):
        self.closed = True


async def no_sleep(seconds: float) -> None:
    return None


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()
