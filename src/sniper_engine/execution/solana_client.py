"""
solana_client.py - Send-and-confirm for signed swap transactions

Both venues end the same way: a signed VersionedTransaction is sent with
preflight on and the node's own send retries, then confirmed once at
`Confirmed` commitment against the latest blockhash context.

Error classification feeds FailureReason on the raised SubmitError:
- "blockhash" in error -> BLOCKHASH_EXPIRED
- "simulation" in error -> SIMULATION_FAILED
- on-chain error after landing -> CONFIRM_FAILED
- anything else while sending -> SEND_FAILED

Only RPC-layer messages are classified here. Venue-level reasons such as
AMOUNT_TOO_LOW are decided by the venue adapters from structured responses.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import (
    RPCException,
    TransactionExpiredBlockheightExceededError,
    UnconfirmedTxError,
)
from solana.rpc.types import TxOpts
from solders.transaction import VersionedTransaction

from sniper_engine.errors import FailureReason, SubmitError


def classify_rpc_error(error_msg: str) -> FailureReason:
    """Classify an RPC error message into a failure reason."""
    error_lower = error_msg.lower()

    if "blockhash" in error_lower:
        return FailureReason.BLOCKHASH_EXPIRED
    if "simulation" in error_lower:
        return FailureReason.SIMULATION_FAILED

    return FailureReason.SEND_FAILED


class TransactionSubmitter:
    """
    Sends one signed transaction and waits for a single confirmation.

    Policy:
    1. Send raw bytes, skip_preflight=False, max_retries handed to the node
    2. Fetch the latest blockhash context at the confirm commitment
    3. confirm_transaction() bounded by last_valid_block_height
    4. Any failure raises SubmitError with a FailureReason; never returns None
    """

    def __init__(
        self,
        connection: AsyncClient,
        max_retries: int = 5,
        commitment: Commitment = Confirmed,
        venue: Optional[str] = None,
    ):
        self.connection = connection
        self.max_retries = max_retries
        self.commitment = commitment
        self.venue = venue

    async def send_and_confirm(self, signed_tx: VersionedTransaction) -> str:
        opts = TxOpts(
            skip_preflight=False,
            preflight_commitment=self.commitment,
            max_retries=self.max_retries,
        )

        try:
            resp = await self.connection.send_raw_transaction(bytes(signed_tx), opts=opts)
        except (RPCException, SolanaRpcException) as e:
            error_msg = str(e)
            logger.error(f"TX_SEND | error | {error_msg}")
            raise SubmitError(error_msg, reason=classify_rpc_error(error_msg), venue=self.venue) from e

        signature = getattr(resp, "value", None)
        if signature is None:
            logger.error("TX_SEND | no signature in response")
            raise SubmitError("no_signature_returned", venue=self.venue)

        logger.info(f"TX_SENT | sig={signature}")

        try:
            latest = await self.connection.get_latest_blockhash(self.commitment)
            confirm = await self.connection.confirm_transaction(
                signature,
                self.commitment,
                last_valid_block_height=latest.value.last_valid_block_height,
            )
        except TransactionExpiredBlockheightExceededError as e:
            logger.warning(f"TX_CONFIRM | blockhash expired | sig={signature}")
            raise SubmitError(
                f"blockhash expired before confirmation: {signature}",
                reason=FailureReason.BLOCKHASH_EXPIRED,
                venue=self.venue,
            ) from e
        except (UnconfirmedTxError, RPCException, SolanaRpcException) as e:
            logger.warning(f"TX_CONFIRM | error | sig={signature} | {e}")
            raise SubmitError(
                f"confirmation failed for {signature}: {e}",
                reason=FailureReason.CONFIRM_FAILED,
                venue=self.venue,
            ) from e

        statuses = getattr(confirm, "value", None) or []
        status = statuses[0] if statuses else None
        if status is not None and status.err:
            error_msg = str(status.err)
            logger.error(f"TX_FAILED | sig={signature} | error={error_msg}")
            raise SubmitError(
                f"transaction {signature} failed on-chain: {error_msg}",
                reason=FailureReason.CONFIRM_FAILED,
                venue=self.venue,
            )

        logger.info(f"TX_SUCCESS | sig={signature} | conf={self.commitment}")
        return str(signature)
