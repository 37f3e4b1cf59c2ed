"""Tests for the route catalog."""

import itertools

import pytest

from teleswap.assets import ASSETS, ChainId, Network
from teleswap.errors import UnsupportedRoute
from teleswap.routing.catalog import SUPPORTED_ROUTES, SwapCatalog


class TestSwapCatalog:
    """Tests for SwapCatalog."""

    def test_registered_routes_are_supported(self):
        """Every registered triple is reported as supported."""
        catalog = SwapCatalog()
        assert catalog.is_supported("BTC", "TELEBTC", "testnet")
        assert catalog.is_supported("BTC", "USDT", "testnet")
        assert catalog.is_supported("TELEBTC", "BTC", "testnet")

    def test_every_asset_pair_matches_route_table(self):
        """Support is exactly membership of (from chain, to chain, network)."""
        catalog = SwapCatalog()
        for (from_asset, to_asset), network in itertools.product(
            itertools.permutations(ASSETS, 2), Network
        ):
            expected = (
                ASSETS[from_asset].chain,
                ASSETS[to_asset].chain,
                network,
            ) in SUPPORTED_ROUTES
            assert catalog.is_supported(from_asset, to_asset, network) is expected

    def test_mainnet_not_supported(self):
        """Only testnet routes are registered."""
        catalog = SwapCatalog()
        assert not catalog.is_supported("BTC", "TELEBTC", "mainnet")

    def test_same_chain_not_supported(self):
        """Polygon to Polygon is not a bridge route."""
        catalog = SwapCatalog()
        assert not catalog.is_supported("USDT", "TELEBTC", "testnet")

    def test_unknown_values_return_false(self):
        """Unknown assets and networks never raise."""
        catalog = SwapCatalog()
        assert not catalog.is_supported("DOGE", "TELEBTC", "testnet")
        assert not catalog.is_supported("BTC", "TELEBTC", "regtest")

    def test_legacy_symbol_accepted(self):
        """TeleBTC spelling variants resolve to the same asset."""
        catalog = SwapCatalog()
        assert catalog.is_supported("BTC", "TeleBTC", "testnet")

    def test_ensure_supported_raises(self):
        """ensure_supported raises UnsupportedRoute with the route details."""
        catalog = SwapCatalog()
        with pytest.raises(UnsupportedRoute) as exc_info:
            catalog.ensure_supported("BTC", "TELEBTC", Network.MAINNET)

        assert exc_info.value.from_asset == "BTC"
        assert exc_info.value.network == "mainnet"

    def test_custom_routes(self):
        """A catalog can be built with its own route table."""
        catalog = SwapCatalog(routes=[(ChainId.BITCOIN, ChainId.POLYGON, Network.MAINNET)])
        assert catalog.is_supported("BTC", "TELEBTC", "mainnet")
        assert not catalog.is_supported("BTC", "TELEBTC", "testnet")
