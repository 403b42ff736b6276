import pytest

from conftest import FakeConnection, unsigned_tx
from sniper_engine.errors import FailureReason, SubmitError
from sniper_engine.execution.solana_client import TransactionSubmitter, classify_rpc_error
from sniper_engine.execution.wallets import partial_sign


@pytest.mark.parametrize(
    "message,reason",
    [
        ("Blockhash not found", FailureReason.BLOCKHASH_EXPIRED),
        ("Transaction simulation failed: Error processing Instruction 2", FailureReason.SIMULATION_FAILED),
        ("connection reset", FailureReason.SEND_FAILED),
    ],
)
def test_classify_rpc_error(message, reason) -> None:
    assert classify_rpc_error(message) is reason


@pytest.mark.anyio
async def test_submitter_returns_signature_string(keypair) -> None:
    conn = FakeConnection()
    tx = partial_sign(unsigned_tx(keypair.pubkey()), keypair)
    sig = await TransactionSubmitter(conn, max_retries=2).send_and_confirm(tx)
    assert sig == str(tx.signatures[0])
    assert conn.opts[0].max_retries == 2
    assert conn.confirmed == [(tx.signatures[0], 1234)]


@pytest.mark.anyio
async def test_submitter_without_signature_raises(keypair) -> None:
    class NoSig(FakeConnection):
        async def send_raw_transaction(self, raw, opts=None):
            return type("Resp", (), {"value": None})()

    with pytest.raises(SubmitError) as info:
        await TransactionSubmitter(NoSig(), venue="raydium").send_and_confirm(unsigned_tx(keypair.pubkey()))
    assert info.value.reason is FailureReason.SEND_FAILED
    assert info.value.venue == "raydium"
