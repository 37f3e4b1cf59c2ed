"""Registry of supported (from chain, to chain, network) routes."""

import logging
from typing import Iterable, Optional

from teleswap.assets import ChainId, Network, get_asset
from teleswap.errors import UnsupportedRoute

logger = logging.getLogger(__name__)

SUPPORTED_ROUTES: frozenset[tuple[ChainId, ChainId, Network]] = frozenset(
    {
        (ChainId.BITCOIN, ChainId.POLYGON, Network.TESTNET),
        (ChainId.POLYGON, ChainId.BITCOIN, Network.TESTNET),
    }
)


class SwapCatalog:
    """Static allow-list consulted before quoting and again before swapping."""

    def __init__(self, routes: Optional[Iterable[tuple[ChainId, ChainId, Network]]] = None):
        self.routes = frozenset(routes) if routes is not None else SUPPORTED_ROUTES

    def is_supported(self, from_asset: str, to_asset: str, network: str) -> bool:
        """Check whether a route is registered. Never raises."""
        source = get_asset(from_asset)
        target = get_asset(to_asset)
        if source is None or target is None:
            return False
        try:
            network = Network(network)
        except ValueError:
            return False
        return (source.chain, target.chain, network) in self.routes

    def ensure_supported(self, from_asset: str, to_asset: str, network: str) -> None:
        """Raise UnsupportedRoute unless the route is registered."""
        if not self.is_supported(from_asset, to_asset, network):
            logger.info(f"Rejected unsupported route {from_asset} -> {to_asset} ({network})")
            raise UnsupportedRoute(from_asset, to_asset, str(getattr(network, "value", network)))
