"""Builds a TeleSwapProvider from application settings."""

import logging
from typing import Optional

from teleswap.bridge.fees import FeeEstimator
from teleswap.bridge.lifecycle import TeleSwapProvider
from teleswap.bridge.lockers import LockerSelector
from teleswap.bridge.payload import PayloadEncoder
from teleswap.clients.address import BitcoinAddressCodec
from teleswap.clients.base import WalletProvider
from teleswap.clients.evm import TeleSwapContracts
from teleswap.clients.teleport_api import TeleportApiClient
from teleswap.clients.wallet import ConfiguredWallet
from teleswap.config import Settings, get_settings
from teleswap.routing.catalog import SwapCatalog
from teleswap.routing.quoter import RouteQuoter
from teleswap.utils.scheduler import Scheduler

logger = logging.getLogger(__name__)


def create_provider(
    settings: Optional[Settings] = None,
    wallet: Optional[WalletProvider] = None,
) -> TeleSwapProvider:
    """Create the provider and its real collaborators.

    Args:
        settings: Settings to use (cached settings if not provided)
        wallet: Wallet to sign with; a read-only ConfiguredWallet otherwise

    Raises:
        ConfigurationError: the target network configuration is invalid
    """
    settings = settings or get_settings()
    config = settings.target_network()

    api = TeleportApiClient.from_config(config)
    contracts = TeleSwapContracts.from_config(config)
    fee_estimator = FeeEstimator(api)
    quoter = RouteQuoter(contracts, config)

    if wallet is None:
        wallet = ConfiguredWallet(
            config,
            bitcoin_address=settings.bitcoin_address,
            polygon_address=settings.polygon_address,
        )

    logger.info(f"TeleSwap provider for {config.network.value} via {config.api_url}")
    return TeleSwapProvider(
        catalog=SwapCatalog(),
        fee_estimator=fee_estimator,
        quoter=quoter,
        locker_selector=LockerSelector(api),
        payload_encoder=PayloadEncoder(
            fee_estimator,
            quoter,
            contracts,
            config,
            slippage_percent=settings.slippage_percent,
            deadline_window_seconds=settings.deadline_window_seconds,
        ),
        wallet=wallet,
        contracts=contracts,
        address_codec=BitcoinAddressCodec(testnet=config.testnet),
        config=config,
        scheduler=Scheduler(
            interval_seconds=settings.poll_interval_seconds,
            lock_timeout_seconds=settings.lock_timeout_seconds,
        ),
        finalization_confirmations=settings.finalization_confirmations,
    )
