"""QuickSwap route quoting for TeleBTC on Polygon.

Wrap (BTC -> TELEBTC) and burn (TELEBTC -> BTC) are priced 1:1. Anything
else is an exchange of freshly minted TeleBTC through QuickSwap, either
directly or through WMATIC when TeleBTC has no pool with the target token.

Amounts sent to the router are rounded up to whole units, so a quote can be
fractionally less favourable than exact math but never more.
"""

import logging

from teleswap.assets import BRIDGE_TOKEN, TELEBTC, is_burn_pair, is_wrap_pair, normalize_symbol
from teleswap.clients.base import ContractClient
from teleswap.config import ZERO_ADDRESS, TargetNetworkConfig
from teleswap.errors import NoRouteFound
from teleswap.units import BaseUnits, CurrencyAmount

logger = logging.getLogger(__name__)


def _is_zero_address(address: str) -> bool:
    return not address or int(address, 16) == 0


class RouteQuoter:
    """Turns a net (after fee) amount into a destination amount."""

    def __init__(self, contracts: ContractClient, config: TargetNetworkConfig):
        self.contracts = contracts
        self.config = config

    def _token(self, symbol: str) -> str:
        address = self.config.token_address(symbol)
        if not address:
            raise NoRouteFound(TELEBTC, symbol)
        return address

    async def find_path(self, to_asset: str) -> list[str]:
        """Find a TeleBTC -> `to_asset` path.

        Returns:
            [TeleBTC, to] when a direct pair exists, else [TeleBTC, WMATIC, to]

        Raises:
            NoRouteFound: if neither pair exists
        """
        telebtc = self._token(TELEBTC)
        target = self._token(to_asset)

        pair = await self.contracts.get_pair(telebtc, target)
        if not _is_zero_address(pair):
            return [telebtc, target]

        bridge = self._token(BRIDGE_TOKEN)
        bridge_pair = await self.contracts.get_pair(bridge, target)
        if _is_zero_address(bridge_pair):
            logger.info(f"No QuickSwap pool for TELEBTC or {BRIDGE_TOKEN} with {to_asset}")
            raise NoRouteFound(TELEBTC, to_asset)

        logger.debug(f"Routing TELEBTC -> {to_asset} through {BRIDGE_TOKEN}")
        return [telebtc, bridge, target]

    async def quote(
        self, net_amount: CurrencyAmount, from_asset: str, to_asset: str
    ) -> BaseUnits:
        """Quote the destination amount for `net_amount` of the source asset.

        Args:
            net_amount: Input after bridge fees, in display units
            from_asset: Source asset
            to_asset: Destination asset

        Returns:
            Destination amount in smallest units
        """
        from_asset = normalize_symbol(from_asset)
        to_asset = normalize_symbol(to_asset)

        if is_wrap_pair(from_asset, to_asset) or is_burn_pair(from_asset, to_asset):
            units = CurrencyAmount(net_amount.value, to_asset).to_units()
            return units

        path = await self.find_path(to_asset)
        amount_in = CurrencyAmount(net_amount.value, TELEBTC).to_units_ceil()
        amounts = await self.contracts.get_amounts_out(amount_in.value, path)
        if not amounts:
            raise NoRouteFound(from_asset, to_asset)

        amount_out = int(str(amounts[-1]))
        logger.debug(
            f"QuickSwap quote: {amount_in.value} TELEBTC units -> {amount_out} {to_asset} units "
            f"({len(path) - 1} hop(s))"
        )
        return BaseUnits(amount_out, to_asset)
