"""Custodial locker selection.

A locker is chosen when a transaction is about to be built, never at quote
time, and never cached: capacity moves between the two.
"""

import logging
from dataclasses import dataclass

from teleswap.assets import BTC, Network
from teleswap.clients.base import LockerRegistry
from teleswap.errors import NoLockerAvailable
from teleswap.units import BaseUnits

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Locker:
    """Locker details copied out of the registry response."""

    bitcoin_address: str
    locking_script: str


class LockerSelector:
    """Asks the locker registry for the preferred locker."""

    def __init__(self, registry: LockerRegistry):
        self.registry = registry

    async def choose(self, amount: BaseUnits, network: Network) -> Locker:
        """Choose a locker able to take `amount`.

        The registry works in display units, so the amount is converted with
        the source asset's decimals before the query.

        Raises:
            NoLockerAvailable: no active locker has enough capacity
        """
        display_amount = amount.to_currency()
        locker_type = "transfer" if amount.asset == BTC else "burn"
        testnet = Network(network).is_testnet

        preferred = await self.registry.get_lockers(display_amount.value, locker_type, testnet)
        if not preferred:
            logger.warning(
                f"No {locker_type} locker available for {display_amount} {amount.asset} "
                f"({'testnet' if testnet else 'mainnet'})"
            )
            raise NoLockerAvailable(
                f"No locker can take {display_amount} {amount.asset} right now"
            )

        bitcoin_address = preferred.get("bitcoinAddress")
        locking_script = (preferred.get("lockerInfo") or {}).get("lockerLockingScript")
        if not bitcoin_address or not locking_script:
            logger.warning(f"Locker registry returned an incomplete locker: {preferred}")
            raise NoLockerAvailable("Preferred locker is missing its address or locking script")

        return Locker(bitcoin_address=bitcoin_address, locking_script=locking_script)
