"""Polygon access through web3.py.

Two adapters:
- EvmChainClient: transaction confirmations and broadcast for an account
- TeleSwapContracts: bridge routers, TeleBTC and QuickSwap (UniswapV2) reads
"""

import logging
from decimal import Decimal
from typing import Any, Optional, Sequence

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import TransactionNotFound as Web3TransactionNotFound

from teleswap.clients.base import TransactionInfo, TransactionRequest, TransactionSigner
from teleswap.config import TargetNetworkConfig
from teleswap.errors import (
    EncodingError,
    RpcError,
    TeleSwapError,
    TransactionNotFound,
    TransactionReverted,
)

logger = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

CC_BURN_ROUTER_ABI = [
    {
        "name": "ccBurn",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_amount", "type": "uint256"},
            {"name": "_userScript", "type": "bytes"},
            {"name": "_scriptType", "type": "uint8"},
            {"name": "_lockerLockingScript", "type": "bytes"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

# Shared by the transfer and the exchange router
CC_ROUTER_ABI = [
    {
        "name": "isRequestUsed",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "_txId", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

UNISWAP_V2_FACTORY_ABI = [
    {
        "name": "getPair",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
        ],
        "outputs": [{"name": "pair", "type": "address"}],
    },
]

UNISWAP_V2_ROUTER_ABI = [
    {
        "name": "getAmountsOut",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "path", "type": "address[]"},
        ],
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
    },
]

# Which contract ABI encodes which method
_ENCODABLE_METHODS = {
    "approve": ERC20_ABI,
    "ccBurn": CC_BURN_ROUTER_ABI,
}


def _checksum(address: str) -> str:
    return AsyncWeb3.to_checksum_address(address)


class EvmChainClient:
    """Chain client for a Polygon account."""

    def __init__(self, w3: AsyncWeb3, signer: Optional[TransactionSigner] = None):
        self.w3 = w3
        self._signer = signer

    @classmethod
    def from_rpc_url(cls, rpc_url: str, signer: Optional[TransactionSigner] = None):
        return cls(AsyncWeb3(AsyncHTTPProvider(rpc_url)), signer)

    async def get_transaction_by_hash(self, tx_hash: str) -> TransactionInfo:
        """Get confirmation state of a Polygon transaction.

        A transaction that is known but not yet mined has 0 confirmations.
        """
        try:
            receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
        except Web3TransactionNotFound:
            # Not mined yet; check the mempool before calling it missing
            try:
                await self.w3.eth.get_transaction(tx_hash)
            except Web3TransactionNotFound as e:
                raise TransactionNotFound(tx_hash, chain="polygon") from e
            except Exception as e:
                raise RpcError(f"Polygon tx lookup failed for {tx_hash}: {e}") from e
            return TransactionInfo(tx_hash=tx_hash, confirmations=0)
        except Exception as e:
            raise RpcError(f"Polygon receipt lookup failed for {tx_hash}: {e}") from e

        if receipt.get("status") == 0:
            raise TransactionReverted(tx_hash, chain="polygon")

        try:
            latest = await self.w3.eth.block_number
        except Exception as e:
            raise RpcError(f"Polygon block number failed: {e}") from e

        block_number = receipt["blockNumber"]
        return TransactionInfo(
            tx_hash=tx_hash,
            confirmations=max(latest - block_number + 1, 0),
            block_height=block_number,
        )

    async def get_total_fees(
        self, requests: Sequence[TransactionRequest], max_spend: bool
    ) -> dict[Decimal, int]:
        """Total fee in wei for each candidate's gas price (gwei)."""
        totals = {}
        for request in requests:
            if request.fee is None:
                continue
            try:
                gas = await self.w3.eth.estimate_gas(
                    {"to": _checksum(request.to), "value": request.value, "data": request.data or b""}
                )
            except Exception as e:
                raise RpcError(f"Polygon gas estimation failed: {e}") from e
            totals[request.fee] = int(gas * request.fee * Decimal(10**9))
        return totals

    async def send_transaction(self, request: TransactionRequest) -> str:
        """Sign via the wallet signer and broadcast."""
        if self._signer is None:
            raise RpcError("No signer configured for Polygon transactions")

        raw_tx = await self._signer.sign_transaction(request)
        try:
            tx_hash = await self.w3.eth.send_raw_transaction(raw_tx)
        except Exception as e:
            raise RpcError(f"Polygon broadcast failed: {e}") from e

        tx_hash_hex = tx_hash.to_0x_hex() if hasattr(tx_hash, "to_0x_hex") else tx_hash.hex()
        logger.info(f"Broadcast Polygon transaction {tx_hash_hex} to {request.to}")
        return tx_hash_hex


class TeleSwapContracts:
    """Destination-chain contract client.

    Wraps the TeleSwap routers, the TeleBTC token and the QuickSwap factory
    and router for one network tier.
    """

    def __init__(self, w3: AsyncWeb3, config: TargetNetworkConfig):
        self.w3 = w3
        self.config = config
        self._factory = w3.eth.contract(
            address=_checksum(config.quickswap_factory_address), abi=UNISWAP_V2_FACTORY_ABI
        )
        self._router = w3.eth.contract(
            address=_checksum(config.quickswap_router_address), abi=UNISWAP_V2_ROUTER_ABI
        )

    @classmethod
    def from_config(cls, config: TargetNetworkConfig) -> "TeleSwapContracts":
        return cls(AsyncWeb3(AsyncHTTPProvider(config.polygon_rpc_url)), config)

    async def _call(self, description: str, fn) -> Any:
        try:
            return await fn.call()
        except TeleSwapError:
            raise
        except Exception as e:
            raise RpcError(f"{description} failed: {e}") from e

    async def is_request_used(self, router_address: str, request_id: str) -> bool:
        """Check whether the teleporter already relayed a Bitcoin request."""
        router = self.w3.eth.contract(address=_checksum(router_address), abi=CC_ROUTER_ABI)
        used = await self._call(
            f"isRequestUsed({request_id})", router.functions.isRequestUsed(request_id)
        )
        return bool(used)

    def encode_function_data(self, method: str, args: Sequence[Any]) -> bytes:
        """ABI-encode calldata for `approve` or `ccBurn`."""
        abi = _ENCODABLE_METHODS.get(method)
        if abi is None:
            raise EncodingError(f"Unknown contract method: {method}")

        contract = self.w3.eth.contract(abi=abi)
        args = [
            _checksum(a) if isinstance(a, str) and AsyncWeb3.is_address(a) else a for a in args
        ]
        try:
            encoded = contract.encode_abi(method, args=args)
        except Exception as e:
            raise EncodingError(f"Could not encode {method}{tuple(args)}: {e}") from e
        return bytes.fromhex(encoded[2:] if encoded.startswith("0x") else encoded)

    async def get_pair(self, token_a: str, token_b: str) -> str:
        pair = await self._call(
            "getPair",
            self._factory.functions.getPair(_checksum(token_a), _checksum(token_b)),
        )
        return str(pair)

    async def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> list[int]:
        amounts = await self._call(
            "getAmountsOut",
            self._router.functions.getAmountsOut(amount_in, [_checksum(p) for p in path]),
        )
        return [int(a) for a in amounts]

    async def get_latest_block_timestamp(self) -> int:
        try:
            block = await self.w3.eth.get_block("latest")
        except Exception as e:
            raise RpcError(f"Polygon latest block failed: {e}") from e
        return int(block["timestamp"])
