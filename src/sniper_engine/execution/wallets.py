"""
wallets.py - Wallet handles

Two explicit variants behind one interface:
- LocalKeypairHandle: holds a solders Keypair, signs in-process
- ExternalSignerHandle: delegates to an ExternalSigner (hardware, browser, KMS)

Handles are built by build_wallet_handle() only. Call sites never inspect
raw key material to decide which variant they have.

Policy:
- NEVER LOG: secret key bytes or decoded values
- Secret keys must be exactly 64 bytes (seed + pubkey)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, List, Optional, Sequence

import base58
from loguru import logger
from solders.keypair import Keypair
from solders.message import to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from sniper_engine.errors import WalletLoadError

SECRET_KEY_LENGTH = 64

B58_CHARS = set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")


def partial_sign(tx: VersionedTransaction, keypair: Keypair) -> VersionedTransaction:
    """
    Add `keypair`'s signature to `tx`, keeping any signatures already present.

    Raises ValueError if the keypair is not a required signer of the message.
    """
    message = tx.message
    signer_count = message.header.num_required_signatures
    signer_keys = list(message.account_keys[:signer_count])
    pubkey = keypair.pubkey()
    if pubkey not in signer_keys:
        raise ValueError(f"{pubkey} is not a required signer of this transaction")

    signatures = list(tx.signatures)
    if len(signatures) < signer_count:
        signatures.extend([Signature.default()] * (signer_count - len(signatures)))
    signatures[signer_keys.index(pubkey)] = keypair.sign_message(to_bytes_versioned(message))
    return VersionedTransaction.populate(message, signatures)


class ExternalSigner(ABC):
    """Signing capability that lives outside the engine."""

    @property
    @abstractmethod
    def public_key(self) -> str:
        ...

    @abstractmethod
    async def sign_transaction(self, tx: VersionedTransaction) -> VersionedTransaction:
        ...

    async def sign_all_transactions(
        self, txs: Sequence[VersionedTransaction]
    ) -> List[VersionedTransaction]:
        return [await self.sign_transaction(tx) for tx in txs]


class WalletHandle(ABC):
    """Uniform signing capability handed to venues and strategies."""

    def __init__(self, public_key: Pubkey):
        self.public_key = public_key
        self.address = str(public_key)

    @abstractmethod
    async def sign_one(self, tx: VersionedTransaction) -> VersionedTransaction:
        ...

    @abstractmethod
    async def sign_many(self, txs: Sequence[VersionedTransaction]) -> List[VersionedTransaction]:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"


class LocalKeypairHandle(WalletHandle):
    def __init__(self, keypair: Keypair):
        super().__init__(keypair.pubkey())
        self._keypair = keypair

    async def sign_one(self, tx: VersionedTransaction) -> VersionedTransaction:
        return partial_sign(tx, self._keypair)

    async def sign_many(self, txs: Sequence[VersionedTransaction]) -> List[VersionedTransaction]:
        return [partial_sign(tx, self._keypair) for tx in txs]


class ExternalSignerHandle(WalletHandle):
    def __init__(self, signer: ExternalSigner):
        try:
            public_key = Pubkey.from_string(str(signer.public_key))
        except ValueError as e:
            raise WalletLoadError(f"External signer has an invalid public key: {e}") from e
        super().__init__(public_key)
        self._signer = signer

    async def sign_one(self, tx: VersionedTransaction) -> VersionedTransaction:
        return await self._signer.sign_transaction(tx)

    async def sign_many(self, txs: Sequence[VersionedTransaction]) -> List[VersionedTransaction]:
        return list(await self._signer.sign_all_transactions(list(txs)))


def _secret_bytes(entry: Any) -> bytes:
    if isinstance(entry, str):
        raw = entry.strip()
        if not raw or not all(c in B58_CHARS for c in raw):
            raise WalletLoadError("secret key string must be base58")
        try:
            return base58.b58decode(raw)
        except ValueError as e:
            raise WalletLoadError(f"failed to decode base58 secret key: {e}") from e
    if isinstance(entry, (bytes, bytearray)):
        return bytes(entry)
    if isinstance(entry, Sequence):
        if not all(isinstance(b, int) and 0 <= b <= 255 for b in entry):
            raise WalletLoadError("secret key array must contain byte values 0-255")
        return bytes(entry)
    raise WalletLoadError(f"unsupported wallet entry type: {type(entry).__name__}")


def build_wallet_handle(entry: Any) -> WalletHandle:
    """
    Build a WalletHandle from raw key material or an ExternalSigner.

    ACCEPTS: 64 secret-key bytes (bytes, bytearray, list of ints),
             a base58 string decoding to 64 bytes, or an ExternalSigner.
    REJECTS: Everything else, with WalletLoadError.
    """
    if isinstance(entry, ExternalSigner):
        return ExternalSignerHandle(entry)

    key_bytes = _secret_bytes(entry)
    if len(key_bytes) != SECRET_KEY_LENGTH:
        raise WalletLoadError(
            f"secret key is {len(key_bytes)} bytes, expected {SECRET_KEY_LENGTH}"
        )
    try:
        keypair = Keypair.from_bytes(key_bytes)
    except ValueError as e:
        raise WalletLoadError(f"failed to create keypair: {e}") from e
    return LocalKeypairHandle(keypair)


def load_wallet_handles(
    entries: Iterable[Any],
    log: Optional[Callable[[str], None]] = None,
) -> List[WalletHandle]:
    """Build handles for every valid entry; invalid entries are logged and skipped."""
    handles: List[WalletHandle] = []
    for i, entry in enumerate(entries):
        try:
            handles.append(build_wallet_handle(entry))
        except WalletLoadError as e:
            logger.warning(f"WALLET_LOAD | skipped | index={i} | {e}")
            if log is not None:
                log(f"[worker] Failed to load bot {i}: {e}")
    return handles
