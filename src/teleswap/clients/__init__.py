"""Collaborator interfaces and chain/API adapters."""

from teleswap.clients.base import (
    AddressCodec,
    ChainClient,
    ContractClient,
    FeeOracle,
    LockerRegistry,
    ParsedAddress,
    TransactionInfo,
    TransactionRequest,
    TransactionSigner,
    WalletProvider,
)

__all__ = [
    "AddressCodec",
    "ChainClient",
    "ContractClient",
    "FeeOracle",
    "LockerRegistry",
    "ParsedAddress",
    "TransactionInfo",
    "TransactionRequest",
    "TransactionSigner",
    "WalletProvider",
]
