import base58
import pytest
from solders.keypair import Keypair
from solders.message import to_bytes_versioned
from solders.signature import Signature

from conftest import unsigned_tx
from sniper_engine.errors import WalletLoadError
from sniper_engine.execution.wallets import (
    ExternalSigner,
    ExternalSignerHandle,
    LocalKeypairHandle,
    build_wallet_handle,
    load_wallet_handles,
    partial_sign,
)


class RecordingSigner(ExternalSigner):
    def __init__(self, keypair: Keypair):
        self.keypair = keypair
        self.calls = 0

    @property
    def public_key(self) -> str:
        return str(self.keypair.pubkey())

    async def sign_transaction(self, tx):
        self.calls += 1
        return partial_sign(tx, self.keypair)


@pytest.mark.parametrize("encode", [list, bytes, bytearray, lambda raw: base58.b58encode(raw).decode()])
def test_local_handle_from_supported_encodings(keypair, encode) -> None:
    handle = build_wallet_handle(encode(bytes(keypair)))
    assert isinstance(handle, LocalKeypairHandle)
    assert handle.address == str(keypair.pubkey())
    assert handle.public_key == keypair.pubkey()


@pytest.mark.parametrize(
    "entry",
    [
        list(range(32)),
        "not base58 0OIl",
        "",
        [300] * 64,
        12345,
        None,
        {"secretKey": [1] * 64},
    ],
)
def test_invalid_entries_raise_wallet_load_error(entry) -> None:
    with pytest.raises(WalletLoadError):
        build_wallet_handle(entry)


def test_external_signer_gets_its_own_handle(keypair) -> None:
    handle = build_wallet_handle(RecordingSigner(keypair))
    assert isinstance(handle, ExternalSignerHandle)
    assert handle.address == str(keypair.pubkey())


def test_load_wallet_handles_skips_bad_entries_and_logs(keypair) -> None:
    logs = []
    handles = load_wallet_handles([list(bytes(keypair)), [1, 2, 3], list(bytes(Keypair()))], log=logs.append)
    assert len(handles) == 2
    assert handles[0].address == str(keypair.pubkey())
    assert len(logs) == 1
    assert logs[0].startswith("[worker] Failed to load bot 1:")


@pytest.mark.anyio
async def test_local_handle_signs_as_payer(keypair) -> None:
    handle = build_wallet_handle(list(bytes(keypair)))
    tx = unsigned_tx(keypair.pubkey())
    signed = await handle.sign_one(tx)
    msg_bytes = to_bytes_versioned(signed.message)
    assert signed.signatures[0].verify(keypair.pubkey(), msg_bytes)


@pytest.mark.anyio
async def test_partial_sign_keeps_co_signer_signature(keypair) -> None:
    co_signer = Keypair()
    tx = partial_sign(unsigned_tx(keypair.pubkey(), co_signer.pubkey()), co_signer)
    handle = build_wallet_handle(bytes(keypair))

    [signed] = await handle.sign_many([tx])

    msg_bytes = to_bytes_versioned(signed.message)
    assert signed.signatures[0].verify(keypair.pubkey(), msg_bytes)
    assert signed.signatures[1].verify(co_signer.pubkey(), msg_bytes)


def test_partial_sign_rejects_non_signer(keypair) -> None:
    tx = unsigned_tx(keypair.pubkey())
    with pytest.raises(ValueError):
        partial_sign(tx, Keypair())
    assert tx.signatures[0] == Signature.default()


@pytest.mark.anyio
async def test_external_handle_delegates_signing(keypair) -> None:
    signer = RecordingSigner(keypair)
    handle = build_wallet_handle(signer)
    txs = [unsigned_tx(keypair.pubkey()), unsigned_tx(keypair.pubkey())]
    signed = await handle.sign_many(txs)
    assert signer.calls == 2
    assert all(s.signatures[0] != Signature.default() for s in signed)
