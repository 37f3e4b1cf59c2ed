"""Denominated amounts.

Amounts cross component boundaries either in smallest units (satoshi, wei)
or in display units (BTC, MATIC). Both are wrapped so that a function
declares which one it takes and conversion is always explicit.

Example:
    units = CurrencyAmount(Decimal("0.01"), "BTC").to_units()
    # BaseUnits(value=1000000, asset='BTC')
"""

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal

from teleswap.assets import get_decimals, normalize_symbol


@dataclass(frozen=True)
class BaseUnits:
    """Integer amount in the asset's smallest unit."""

    value: int
    asset: str

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"BaseUnits value must be int, got {type(self.value).__name__}")
        if self.value < 0:
            raise ValueError(f"BaseUnits cannot be negative: {self.value}")
        object.__setattr__(self, "asset", normalize_symbol(self.asset))

    def to_currency(self) -> "CurrencyAmount":
        """Convert to display units (exact)."""
        decimals = get_decimals(self.asset)
        return CurrencyAmount(Decimal(self.value).scaleb(-decimals), self.asset)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class CurrencyAmount:
    """Decimal amount in the asset's display unit."""

    value: Decimal
    asset: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, Decimal):
            object.__setattr__(self, "value", Decimal(str(self.value)))
        object.__setattr__(self, "asset", normalize_symbol(self.asset))

    def scaled(self) -> Decimal:
        """Amount in smallest units, possibly fractional."""
        return self.value.scaleb(get_decimals(self.asset))

    def to_units(self, rounding: str = ROUND_FLOOR) -> BaseUnits:
        """Convert to smallest units, rounding fractional units.

        Args:
            rounding: decimal rounding mode (floor by default, so that
                output amounts are never over-stated)
        """
        scaled = self.scaled()
        if scaled < 0:
            raise ValueError(f"Cannot convert negative amount {self.value} {self.asset}")
        return BaseUnits(int(scaled.to_integral_value(rounding=rounding)), self.asset)

    def to_units_ceil(self) -> BaseUnits:
        """Convert to smallest units rounding up."""
        return self.to_units(rounding=ROUND_CEILING)

    def __str__(self) -> str:
        return f"{self.value.normalize():f}"
