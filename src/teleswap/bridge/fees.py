"""Bridge fee estimation (protocol + locker + teleporter)."""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from teleswap.assets import BTC, Network
from teleswap.clients.base import FeeOracle
from teleswap.errors import RpcError
from teleswap.units import CurrencyAmount

logger = logging.getLogger(__name__)

TRANSFER_FEE_TYPE = "transfer"
BURN_FEE_TYPE = "burn"


@dataclass(frozen=True)
class FeeBreakdown:
    """Fees for one request, in BTC display units.

    `total_fee` is what gets subtracted from the gross amount; it is never
    lower than `teleporter_fee`.
    """

    teleporter_fee: Decimal
    teleporter_percentage_fee: Decimal
    transaction_fee: Decimal
    total_fee: Decimal


def fee_type_for(from_asset: str) -> str:
    """Transfer model when leaving Bitcoin, burn model when going back."""
    return TRANSFER_FEE_TYPE if from_asset == BTC else BURN_FEE_TYPE


def _read_decimal(data: dict, *keys: str, default: Optional[Decimal] = None) -> Decimal:
    value: Any = None
    for key in keys:
        if data.get(key) is not None:
            value = data[key]
            break
    if value is None:
        if default is not None:
            return default
        raise RpcError(f"Fee oracle response missing {keys[0]}")
    try:
        parsed = Decimal(str(value))
    except InvalidOperation as e:
        raise RpcError(f"Fee oracle returned non-numeric {keys[0]}: {value!r}") from e
    if parsed < 0:
        raise RpcError(f"Fee oracle returned negative {keys[0]}: {parsed}")
    return parsed


class FeeEstimator:
    """Pure query against the fee oracle. Retries are the caller's concern."""

    def __init__(self, oracle: FeeOracle):
        self.oracle = oracle

    async def estimate(self, amount: CurrencyAmount, network: Network) -> FeeBreakdown:
        """Estimate fees for moving `amount` of its asset.

        `amount` may be zero, which yields the size-independent minimum.
        """
        fee_type = fee_type_for(amount.asset)
        data = await self.oracle.calculate_fee(
            amount.value, fee_type, Network(network).is_testnet
        )

        teleporter_fee = _read_decimal(data, "teleporterFeeInBTC", "teleporter_fee")
        percentage_fee = _read_decimal(
            data, "teleporterPercentageFee", "teleporter_percentage_fee", default=Decimal("0")
        )
        transaction_fee = _read_decimal(
            data,
            "transactionFeeInBTC",
            "TransactionFeeInBTC",
            "transaction_fee",
            default=Decimal("0"),
        )
        total_fee = _read_decimal(data, "totalFeeInBTC", "total_fee")

        if total_fee < teleporter_fee:
            logger.warning(
                f"Fee oracle total {total_fee} below teleporter fee {teleporter_fee} "
                f"for {amount} {amount.asset}; using teleporter fee"
            )
            total_fee = teleporter_fee

        return FeeBreakdown(
            teleporter_fee=teleporter_fee,
            teleporter_percentage_fee=percentage_fee,
            transaction_fee=transaction_fee,
            total_fee=total_fee,
        )

    async def minimum(self, from_asset: str, network: Network) -> Decimal:
        """Smallest meaningful input: the fixed teleporter fee."""
        fees = await self.estimate(CurrencyAmount(Decimal("0"), from_asset), network)
        return fees.teleporter_fee
