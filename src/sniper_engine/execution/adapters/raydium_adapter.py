"""
raydium_adapter.py - Raydium pool-based AMM venue (test/dev networks)

Flow per swap:
1. Resolve the pool: explicit pool id, else look it up by mint pair
2. Build exact-input swap params and ask the SwapBuilder for transactions
3. Apply auxiliary co-signer signatures, then the wallet's
4. Send and confirm each transaction in order; return the last signature

The SwapBuilder seam keeps transaction construction replaceable. The default
RaydiumTradeApiBuilder uses Raydium's hosted trade API, which returns
ready-to-sign serialized transactions and no auxiliary signers.
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from loguru import logger
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from sniper_engine.config.solana_tokens import NATIVE_MINT
from sniper_engine.errors import (
    AmountTooLowError,
    BuildError,
    FailureReason,
    RouteError,
)
from sniper_engine.execution.adapters.base import SwapRequest, SwapVenue
from sniper_engine.execution.solana_client import TransactionSubmitter
from sniper_engine.execution.wallets import partial_sign


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class RaydiumConfig:
    """Raydium adapter configuration. Defaults point at devnet hosts."""

    api_url: str = "https://api-v3-devnet.raydium.io"
    swap_url: str = "https://transaction-v1-devnet.raydium.io"
    http_timeout: float = 30.0
    tx_version: str = "V0"
    compute_unit_price_micro_lamports: int = 1000
    send_max_retries: int = 5


# =============================================================================
# SWAP BUILDER
# =============================================================================

@dataclass(frozen=True)
class SwapParams:
    pool_id: str
    input_mint: str
    output_mint: str
    amount: int
    slippage_bps: int
    owner: str
    swap_mode: str = "ExactIn"
    tx_version: str = "V0"
    unwrap_sol: bool = True


@dataclass
class BuiltSwap:
    """Unsigned transactions plus any auxiliary signers they require."""
    transactions: List[VersionedTransaction]
    signers: List[Keypair] = field(default_factory=list)
    output_amount: Optional[int] = None


class SwapBuilder(ABC):
    @abstractmethod
    async def build(self, params: SwapParams) -> BuiltSwap:
        ...

    async def close(self) -> None:
        return None


class RaydiumTradeApiBuilder(SwapBuilder):
    """
    Builds swaps through Raydium's trade API.

    compute/swap-base-in  -> swap quote; every routePlan hop must use the
                             resolved pool, else RouteError(POOL_NOT_FOUND)
    transaction/swap-base-in -> base64 serialized transactions
    """

    def __init__(self, config: RaydiumConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.http_timeout)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def build(self, params: SwapParams) -> BuiltSwap:
        client = await self._get_client()

        try:
            resp = await client.get(
                f"{self.config.swap_url}/compute/swap-base-in",
                params={
                    "inputMint": params.input_mint,
                    "outputMint": params.output_mint,
                    "amount": str(params.amount),
                    "slippageBps": str(params.slippage_bps),
                    "txVersion": params.tx_version,
                },
            )
            resp.raise_for_status()
            compute = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"RAYDIUM_COMPUTE | error | {type(e).__name__}: {e}")
            raise BuildError(f"swap compute request failed: {e}", venue="raydium") from e

        if not compute.get("success") or not compute.get("data"):
            msg = compute.get("msg") or "no swap route"
            logger.warning(f"RAYDIUM_COMPUTE | no_route | pool={params.pool_id} | {msg}")
            raise RouteError(f"no swap route through pool {params.pool_id}: {msg}", venue="raydium")

        swap_response = compute["data"]
        route_pools = [step.get("poolId") for step in swap_response.get("routePlan") or []]
        if not route_pools or any(pool != params.pool_id for pool in route_pools):
            logger.warning(f"RAYDIUM_COMPUTE | pool_mismatch | want={params.pool_id} | route={route_pools}")
            raise RouteError(
                f"swap route does not trade through pool {params.pool_id}",
                reason=FailureReason.POOL_NOT_FOUND,
                venue="raydium",
            )

        output_amount = int(swap_response.get("outputAmount") or 0)
        if output_amount <= 0:
            raise AmountTooLowError(
                f"amount {params.amount} too low: pool {params.pool_id} returns no output",
                venue="raydium",
            )

        payload = {
            "computeUnitPriceMicroLamports": str(self.config.compute_unit_price_micro_lamports),
            "swapResponse": swap_response,
            "txVersion": params.tx_version,
            "wallet": params.owner,
            "wrapSol": params.input_mint == NATIVE_MINT,
            "unwrapSol": params.unwrap_sol and params.output_mint == NATIVE_MINT,
        }

        try:
            resp = await client.post(f"{self.config.swap_url}/transaction/swap-base-in", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"RAYDIUM_TX | error | {type(e).__name__}: {e}")
            raise BuildError(f"swap transaction request failed: {e}", venue="raydium") from e

        encoded = [item.get("transaction") for item in (data.get("data") or []) if item.get("transaction")]
        if not data.get("success") or not encoded:
            logger.error(f"RAYDIUM_TX | missing transactions | {data.get('msg')}")
            raise BuildError("no swap transaction returned", venue="raydium")

        try:
            transactions = [VersionedTransaction.from_bytes(base64.b64decode(tx)) for tx in encoded]
        except Exception as e:
            logger.error(f"TX_DESERIALIZE | error | {e}")
            raise BuildError(f"could not deserialize swap transaction: {e}", venue="raydium") from e

        logger.debug(
            f"RAYDIUM_TX | success | txs={len(transactions)} | in={params.amount} out={output_amount}"
        )
        return BuiltSwap(transactions=transactions, output_amount=output_amount)


# =============================================================================
# RAYDIUM ADAPTER
# =============================================================================

class RaydiumAdapter(SwapVenue):
    """Venue B: Raydium AMM pools."""

    name = "raydium"

    def __init__(
        self,
        config: Optional[RaydiumConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        builder: Optional[SwapBuilder] = None,
    ):
        self.config = config or RaydiumConfig()
        self._client = client
        self.builder = builder or RaydiumTradeApiBuilder(self.config, client=client)

        logger.info(f"RAYDIUM_ADAPTER | init | api={self.config.api_url}")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.http_timeout)
        return self._client

    async def close(self):
        await self.builder.close()
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def find_pool_id(self, mint_a: str, mint_b: str) -> Optional[str]:
        """Look up the deepest pool for a mint pair. None if there is none."""
        client = await self._get_client()
        try:
            resp = await client.get(
                f"{self.config.api_url}/pools/info/mint",
                params={
                    "mint1": mint_a,
                    "mint2": mint_b,
                    "poolType": "all",
                    "poolSortField": "liquidity",
                    "sortType": "desc",
                    "pageSize": "1",
                    "page": "1",
                },
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"RAYDIUM_POOL | error | {type(e).__name__}: {e}")
            return None

        pools = ((data.get("data") or {}).get("data")) or []
        if not pools:
            logger.warning(f"RAYDIUM_POOL | not_found | {mint_a[:8]}.../{mint_b[:8]}...")
            return None
        pool_id = pools[0].get("id")
        logger.debug(f"RAYDIUM_POOL | found | id={pool_id}")
        return pool_id

    async def execute(self, swap: SwapRequest) -> str:
        """
        Resolve pool, build, sign, submit and confirm one swap.

        Raises:
            RouteError: no pool (or route through it) for the pair
            AmountTooLowError: the pool returns zero output for this amount
            BuildError: no transaction returned
            SubmitError: send or confirmation failed
        """
        pool_id = swap.pool_id or await self.find_pool_id(swap.input_mint, swap.output_mint)
        if not pool_id:
            raise RouteError("Pool not found", reason=FailureReason.POOL_NOT_FOUND, venue=self.name)

        params = SwapParams(
            pool_id=pool_id,
            input_mint=swap.input_mint,
            output_mint=swap.output_mint,
            amount=swap.amount,
            slippage_bps=swap.slippage_bps,
            owner=swap.wallet.address,
            tx_version=self.config.tx_version,
        )
        built = await self.builder.build(params)
        if not built.transactions:
            raise BuildError("swap builder returned no transactions", venue=self.name)

        try:
            transactions = built.transactions
            for signer in built.signers:
                transactions = [
                    partial_sign(tx, signer) if signer.pubkey() in tx.message.account_keys else tx
                    for tx in transactions
                ]
            signed = await swap.wallet.sign_many(transactions)
        except Exception as e:
            logger.error(f"TX_SIGN | error | {e}")
            raise BuildError(str(e), reason=FailureReason.SIGN_FAILED, venue=self.name) from e

        submitter = TransactionSubmitter(
            swap.connection,
            max_retries=self.config.send_max_retries,
            venue=self.name,
        )
        signature = ""
        for tx in signed:
            signature = await submitter.send_and_confirm(tx)

        logger.info(
            f"RAYDIUM_EXECUTE | success | wallet={swap.wallet.address[:8]}... | pool={pool_id} | "
            f"in={swap.amount} out={built.output_amount} | sig={signature}"
        )
        return signature
