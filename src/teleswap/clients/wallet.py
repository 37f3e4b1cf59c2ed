"""Wallet provider backed by configured addresses and optional signers."""

import logging
from typing import Optional

from teleswap.assets import ChainId, get_asset
from teleswap.clients.base import ChainClient, TransactionSigner
from teleswap.clients.esplora import EsploraClient
from teleswap.clients.evm import EvmChainClient
from teleswap.config import TargetNetworkConfig
from teleswap.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ConfiguredWallet:
    """One Bitcoin and one Polygon account.

    Without signers the wallet can only poll; sending raises RpcError from
    the chain client.
    """

    def __init__(
        self,
        config: TargetNetworkConfig,
        bitcoin_address: Optional[str] = None,
        polygon_address: Optional[str] = None,
        bitcoin_signer: Optional[TransactionSigner] = None,
        polygon_signer: Optional[TransactionSigner] = None,
    ):
        self.config = config
        self._addresses = {
            ChainId.BITCOIN: bitcoin_address,
            ChainId.POLYGON: polygon_address,
        }
        self._esplora = EsploraClient(config.esplora_url, signer=bitcoin_signer)
        self._clients: dict[ChainId, ChainClient] = {
            ChainId.BITCOIN: self._esplora,
            ChainId.POLYGON: EvmChainClient.from_rpc_url(config.polygon_rpc_url, signer=polygon_signer),
        }

    def _chain(self, asset: str) -> ChainId:
        info = get_asset(asset)
        if info is None:
            raise ConfigurationError(f"Unknown asset {asset}")
        return info.chain

    def get_client(self, asset: str, account_id: Optional[str] = None) -> ChainClient:
        return self._clients[self._chain(asset)]

    async def get_address(self, asset: str, account_id: Optional[str] = None) -> str:
        chain = self._chain(asset)
        address = self._addresses[chain]
        if not address:
            raise ConfigurationError(f"No {chain.value} receive address configured")
        return address

    async def close(self) -> None:
        await self._esplora.close()
