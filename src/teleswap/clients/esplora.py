"""Blockstream esplora client for the Bitcoin side of a swap.

Free API, no authentication required.
Docs: https://github.com/Blockstream/esplora/blob/master/API.md
"""

import logging
import math
from decimal import Decimal
from typing import Optional, Sequence

import httpx

from teleswap.clients.base import TransactionInfo, TransactionRequest, TransactionSigner
from teleswap.errors import RpcError, TransactionNotFound

logger = logging.getLogger(__name__)

# Virtual sizes (vbytes) used for fee estimation of a single-input P2WPKH spend
TX_OVERHEAD_VBYTES = Decimal("10.5")
P2WPKH_INPUT_VBYTES = Decimal("68")
P2WPKH_OUTPUT_VBYTES = Decimal("31")
OP_RETURN_OUTPUT_BASE_VBYTES = Decimal("11")


class EsploraClient:
    """Bitcoin chain client backed by an esplora instance.

    Reads go straight to the API. Sending asks the injected signer for a raw
    transaction and broadcasts it through `POST /tx`.
    """

    def __init__(
        self,
        base_url: str,
        signer: Optional[TransactionSigner] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize esplora client.

        Args:
            base_url: API root, e.g. https://blockstream.info/testnet/api
            signer: Wallet signer used by send_transaction
            client: Pre-built HTTP client (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._signer = signer
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def _get(self, path: str) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.get(f"{self.base_url}{path}")
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError:
            raise
        except httpx.HTTPError as e:
            raise RpcError(f"Esplora request {path} failed: {e}") from e

    async def get_current_block_height(self) -> int:
        """Get current Bitcoin block height."""
        try:
            response = await self._get("/blocks/tip/height")
        except httpx.HTTPStatusError as e:
            raise RpcError(f"Esplora tip height failed: {e}") from e
        return int(response.text)

    async def get_transaction_by_hash(self, tx_hash: str) -> TransactionInfo:
        """Get confirmation state of a transaction.

        Raises:
            TransactionNotFound: esplora answered 404 (not broadcast or not indexed yet)
            RpcError: any other failure
        """
        try:
            response = await self._get(f"/tx/{tx_hash}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise TransactionNotFound(tx_hash, chain="bitcoin") from e
            raise RpcError(f"Esplora tx lookup failed for {tx_hash}: {e}") from e

        tx = response.json()
        status = tx.get("status", {})
        block_height = status.get("block_height") if status.get("confirmed") else None

        if block_height is None:
            return TransactionInfo(tx_hash=tx_hash, confirmations=0)

        current_height = await self.get_current_block_height()
        confirmations = max(current_height - block_height + 1, 0)
        return TransactionInfo(
            tx_hash=tx_hash, confirmations=confirmations, block_height=block_height
        )

    async def get_fee_estimates(self) -> dict[str, Decimal]:
        """Get fee rates (sat/vB) keyed by confirmation target in blocks."""
        try:
            response = await self._get("/fee-estimates")
        except httpx.HTTPStatusError as e:
            raise RpcError(f"Esplora fee estimates failed: {e}") from e
        return {target: Decimal(str(rate)) for target, rate in response.json().items()}

    @staticmethod
    def estimate_vsize(request: TransactionRequest, max_spend: bool) -> Decimal:
        """Estimate the virtual size of a funding transaction.

        One P2WPKH input, the payment output, an OP_RETURN output when data is
        attached, and a change output unless the whole balance is spent.
        """
        vsize = TX_OVERHEAD_VBYTES + P2WPKH_INPUT_VBYTES + P2WPKH_OUTPUT_VBYTES
        if request.data:
            vsize += OP_RETURN_OUTPUT_BASE_VBYTES + len(request.data)
        if not max_spend:
            vsize += P2WPKH_OUTPUT_VBYTES
        return vsize

    async def get_total_fees(
        self, requests: Sequence[TransactionRequest], max_spend: bool
    ) -> dict[Decimal, int]:
        """Total fee in satoshi for each candidate's fee rate."""
        totals = {}
        for request in requests:
            if request.fee is None:
                continue
            vsize = self.estimate_vsize(request, max_spend)
            totals[request.fee] = math.ceil(vsize * request.fee)
        return totals

    async def send_transaction(self, request: TransactionRequest) -> str:
        """Sign via the wallet signer and broadcast.

        Returns:
            Transaction id reported by esplora
        """
        if self._signer is None:
            raise RpcError("No signer configured for Bitcoin transactions")

        raw_tx = await self._signer.sign_transaction(request)
        client = await self._get_client()
        try:
            response = await client.post(f"{self.base_url}/tx", content=raw_tx)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RpcError(f"Esplora broadcast failed: {e}") from e

        txid = response.text.strip()
        logger.info(f"Broadcast Bitcoin transaction {txid} to {request.to}")
        return txid

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
