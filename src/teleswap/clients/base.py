"""Interfaces for the collaborators the orchestrator consumes.

The orchestrator never talks to a chain node, contract or HTTP API
directly. It depends on the protocols below; concrete adapters live next to
this module (esplora, evm, teleport_api, address).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Protocol, Sequence


@dataclass
class TransactionInfo:
    """Confirmation state of a submitted transaction."""

    tx_hash: str
    confirmations: int
    block_height: Optional[int] = None

    @property
    def is_confirmed(self) -> bool:
        return self.confirmations > 0


@dataclass
class TransactionRequest:
    """A transaction for the wallet to sign and broadcast.

    `value` is always in the asset's smallest unit; `data` is the raw payload
    (OP_RETURN on Bitcoin, calldata on Polygon).
    """

    to: str
    value: int
    data: Optional[bytes] = None
    fee: Optional[Decimal] = None  # fee rate: sat/vB on Bitcoin, gwei on Polygon


@dataclass
class ParsedAddress:
    """A Bitcoin address split into script hash and type."""

    script_hash: bytes
    address_type: str  # p2pk, p2pkh, p2sh, p2wpkh


class ChainClient(Protocol):
    """Per-chain client for one account."""

    async def get_transaction_by_hash(self, tx_hash: str) -> TransactionInfo:
        """Raises TransactionNotFound if the node has not indexed the hash, RpcError otherwise."""
        ...

    async def send_transaction(self, request: TransactionRequest) -> str:
        """Sign and broadcast, returning the transaction hash."""
        ...

    async def get_total_fees(
        self, requests: Sequence[TransactionRequest], max_spend: bool
    ) -> dict[Decimal, int]:
        """Total fee in smallest units for each candidate's fee rate."""
        ...


class WalletProvider(Protocol):
    """Hands out chain clients and receiving addresses for wallet accounts."""

    def get_client(self, asset: str, account_id: Optional[str] = None) -> ChainClient:
        ...

    async def get_address(self, asset: str, account_id: Optional[str] = None) -> str:
        ...


class ContractClient(Protocol):
    """Read and encode access to the destination chain contracts."""

    async def is_request_used(self, router_address: str, request_id: str) -> bool:
        ...

    def encode_function_data(self, method: str, args: Sequence[Any]) -> bytes:
        """Calldata for `approve` (ERC20) or `ccBurn` (burn router)."""
        ...

    async def get_pair(self, token_a: str, token_b: str) -> str:
        """Pair address, or the zero address when no pool exists."""
        ...

    async def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> list[int]:
        ...

    async def get_latest_block_timestamp(self) -> int:
        ...


class FeeOracle(Protocol):
    """Bridge fee oracle. `amount` is in BTC display units."""

    async def calculate_fee(self, amount: Decimal, fee_type: str, testnet: bool) -> dict:
        ...


class LockerRegistry(Protocol):
    """Locker registry. Returns the raw preferred locker, or None."""

    async def get_lockers(self, amount: Decimal, locker_type: str, testnet: bool) -> Optional[dict]:
        ...


class AddressCodec(Protocol):
    """Source chain address parser."""

    def parse_address(self, raw: str) -> ParsedAddress:
        ...


class TransactionSigner(Protocol):
    """Wallet signer. Key management stays outside the orchestrator."""

    async def sign_transaction(self, request: TransactionRequest) -> str:
        """Return the signed raw transaction as hex."""
        ...
