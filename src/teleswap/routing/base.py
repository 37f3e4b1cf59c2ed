"""Swap provider capability interface and quote types."""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from teleswap.assets import Network, normalize_symbol


class RequestType(str, Enum):
    """What the destination chain does with a Bitcoin funding transaction."""

    WRAP = "WRAP"  # mint TeleBTC to the recipient
    SWAP = "SWAP"  # mint TeleBTC and exchange it on QuickSwap


@dataclass(frozen=True)
class SwapRequest:
    """A request to quote or start a swap. `amount` is in display units."""

    from_asset: str
    to_asset: str
    network: Network
    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "from_asset", normalize_symbol(self.from_asset))
        object.__setattr__(self, "to_asset", normalize_symbol(self.to_asset))
        object.__setattr__(self, "network", Network(self.network))
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))
        if not self.amount.is_finite():
            raise ValueError(f"Amount must be finite: {self.amount}")
        if self.amount < 0:
            raise ValueError(f"Amount cannot be negative: {self.amount}")


@dataclass
class Quote:
    """A quote in smallest units of each side."""

    from_asset: str
    to_asset: str
    from_amount: int
    to_amount: int
    fee: Optional[Decimal] = None  # total bridge fee in BTC
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Amounts as integer strings, never floats."""
        return {
            "from": self.from_asset,
            "to": self.to_asset,
            "fromAmount": str(self.from_amount),
            "toAmount": str(self.to_amount),
            "fee": str(self.fee) if self.fee is not None else None,
        }


@dataclass
class StatusInfo:
    """How a status is presented to the notification layer."""

    step: int
    label: str
    filter_status: str  # PENDING, COMPLETED, REFUNDED
    notification: Callable[[Any], str]


class SwapProvider(Protocol):
    """Capability interface every swap provider implements."""

    async def get_quote(self, request: SwapRequest) -> Quote:
        ...

    async def new_swap(self, request: SwapRequest, **kwargs: Any) -> Any:
        ...

    async def perform_next_action(self, swap_id: str) -> Optional[Any]:
        ...

    def status_table(self) -> dict[Any, StatusInfo]:
        ...
