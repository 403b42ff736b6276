"""
jupiter_adapter.py - Jupiter quote-then-submit venue (mainnet)

Flow per swap:
1. GET /quote for the exact input amount
2. POST /swap for a prebuilt transaction
3. Deserialize, sign with the wallet handle, send and confirm once

Venue contract (what each step raises):
- /quote 4xx, `error` body, or missing fields   -> RouteError(NO_ROUTE)
- /quote outAmount of zero                       -> AmountTooLowError
- /swap with no usable swapTransaction           -> BuildError
- wallet signing failure                         -> BuildError(SIGN_FAILED)
- send / confirm failure                         -> SubmitError (see solana_client)

429, 5xx and timeouts are transport noise. Both endpoints retry them with
exponential backoff before giving up with the step's error above.

Priority fee: a positive `priority_fee_micro_lamports` on the request is sent
as an explicit compute unit price; otherwise Jupiter picks ("auto").
"""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

import httpx
from loguru import logger
from solders.transaction import VersionedTransaction

from sniper_engine.errors import AmountTooLowError, BuildError, FailureReason, RouteError, TradeError
from sniper_engine.execution.adapters.base import SwapRequest, SwapVenue
from sniper_engine.execution.solana_client import TransactionSubmitter

QUOTE_FIELDS = ("inAmount", "outAmount", "routePlan")


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class JupiterConfig:
    """Jupiter adapter configuration."""

    base_url: str = "https://quote-api.jup.ag/v6"
    http_timeout: float = 30.0

    # Transport-level retries for 429/5xx/timeouts on either endpoint.
    # Independent of the engine's RetryController, which wraps the whole swap.
    max_http_attempts: int = 3
    retry_delay_base: float = 1.0

    # Let Jupiter size the compute unit limit from simulation
    dynamic_compute_unit_limit: bool = True

    # Send retries handed to the RPC node
    send_max_retries: int = 5


def swap_payload(quote: Dict[str, Any], swap: SwapRequest, dynamic_cu_limit: bool = True) -> Dict[str, Any]:
    """Body for POST /swap."""
    payload: Dict[str, Any] = {
        "quoteResponse": quote,
        "userPublicKey": swap.wallet.address,
        "wrapAndUnwrapSol": True,
        "dynamicComputeUnitLimit": dynamic_cu_limit,
    }
    if swap.priority_fee_micro_lamports and swap.priority_fee_micro_lamports > 0:
        payload["computeUnitPriceMicroLamports"] = swap.priority_fee_micro_lamports
    else:
        payload["prioritizationFeeLamports"] = "auto"
    return payload


# =============================================================================
# JUPITER ADAPTER
# =============================================================================

class JupiterAdapter(SwapVenue):
    """Venue A: Jupiter aggregator via its v6 quote and swap endpoints."""

    name = "jupiter"

    def __init__(
        self,
        config: Optional[JupiterConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or JupiterConfig()
        self._client: Optional[httpx.AsyncClient] = client

        logger.info(f"JUPITER_ADAPTER | init | base_url={self.config.base_url}")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.http_timeout)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _call(
        self,
        event: str,
        error: Type[TradeError],
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        One endpoint call with transport retries.

        Returns the first response that is neither 429 nor 5xx. Raises `error`
        once attempts run out or on a non-retryable HTTP failure.
        """
        client = await self._get_client()
        url = f"{self.config.base_url}{path}"
        last = "no attempts"

        for attempt in range(1, self.config.max_http_attempts + 1):
            try:
                resp = await client.request(method, url, **kwargs)
            except httpx.TimeoutException:
                last = "timeout"
            except httpx.HTTPError as e:
                logger.error(f"{event} | error | {type(e).__name__}: {e}")
                raise error(f"{path} request failed: {e}", venue=self.name) from e
            else:
                if resp.status_code != 429 and resp.status_code < 500:
                    return resp
                last = f"status={resp.status_code}"

            logger.warning(f"{event} | transient | attempt={attempt} | {last}")
            if attempt < self.config.max_http_attempts:
                await asyncio.sleep(self.config.retry_delay_base * (2 ** (attempt - 1)))

        raise error(f"{path} unavailable after {self.config.max_http_attempts} attempts ({last})", venue=self.name)

    # =========================================================================
    # QUOTE / SWAP ENDPOINTS
    # =========================================================================

    async def quote(self, swap: SwapRequest) -> Dict[str, Any]:
        """Exact-input quote for the swap; raises RouteError or AmountTooLowError."""
        resp = await self._call(
            "JUPITER_QUOTE",
            RouteError,
            "GET",
            "/quote",
            params={
                "inputMint": swap.input_mint,
                "outputMint": swap.output_mint,
                "amount": str(swap.amount),
                "slippageBps": str(swap.slippage_bps),
            },
        )
        try:
            data = resp.json()
        except ValueError as e:
            raise RouteError(f"unreadable quote: {e}", venue=self.name) from e

        if resp.status_code >= 400 or data.get("error"):
            logger.warning(
                f"JUPITER_QUOTE | no_route | status={resp.status_code} | "
                f"code={data.get('errorCode')} | {data.get('error')}"
            )
            raise RouteError(
                f"no route for {swap.amount} {swap.input_mint[:8]}... -> {swap.output_mint[:8]}...: "
                f"{data.get('error') or resp.status_code}",
                reason=FailureReason.NO_ROUTE,
                venue=self.name,
            )

        missing = [f for f in QUOTE_FIELDS if f not in data]
        if missing:
            logger.error(f"JUPITER_QUOTE | invalid_response | missing={missing}")
            raise RouteError(f"quote is missing {', '.join(missing)}", venue=self.name)

        if int(data["outAmount"] or 0) <= 0:
            raise AmountTooLowError(f"amount {swap.amount} too low: quote returns no output", venue=self.name)

        logger.debug(f"JUPITER_QUOTE | success | in={data['inAmount']} out={data['outAmount']}")
        return data

    async def build_transaction(self, quote: Dict[str, Any], swap: SwapRequest) -> VersionedTransaction:
        """Prebuilt, unsigned swap transaction for a quote; raises BuildError."""
        payload = swap_payload(quote, swap, self.config.dynamic_compute_unit_limit)
        resp = await self._call("JUPITER_SWAP", BuildError, "POST", "/swap", json=payload)

        try:
            resp.raise_for_status()
            encoded = resp.json().get("swapTransaction")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"JUPITER_SWAP | error | {type(e).__name__}: {e}")
            raise BuildError(f"swap request failed: {e}", venue=self.name) from e
        if not encoded:
            logger.error("JUPITER_SWAP | missing swapTransaction")
            raise BuildError("no swap transaction returned", venue=self.name)

        try:
            tx = VersionedTransaction.from_bytes(base64.b64decode(encoded))
        except Exception as e:
            logger.error(f"TX_DESERIALIZE | error | {e}")
            raise BuildError(f"could not deserialize swap transaction: {e}", venue=self.name) from e

        fee = payload.get("computeUnitPriceMicroLamports", "auto")
        logger.debug(f"JUPITER_SWAP | success | priority={fee}")
        return tx

    # =========================================================================
    # EXECUTE
    # =========================================================================

    async def execute(self, swap: SwapRequest) -> str:
        """Quote, build, sign, submit and confirm one swap. Returns the signature."""
        quote = await self.quote(swap)
        tx = await self.build_transaction(quote, swap)

        try:
            signed = await swap.wallet.sign_one(tx)
        except Exception as e:
            logger.error(f"TX_SIGN | error | {e}")
            raise BuildError(str(e), reason=FailureReason.SIGN_FAILED, venue=self.name) from e

        submitter = TransactionSubmitter(
            swap.connection,
            max_retries=self.config.send_max_retries,
            venue=self.name,
        )
        signature = await submitter.send_and_confirm(signed)
        logger.info(
            f"JUPITER_EXECUTE | success | wallet={swap.wallet.address[:8]}... | "
            f"in={quote['inAmount']} out={quote['outAmount']} | sig={signature}"
        )
        return signature
