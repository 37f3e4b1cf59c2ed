"""SQLAlchemy models for swap records."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from teleswap.units import BaseUnits


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class SwapStatus(str, Enum):
    """Status of a swap.

    Bitcoin funding branch:
        NEW -> WAITING_FOR_SEND_CONFIRMATIONS -> WAITING_FOR_RECEIVE -> SUCCESS
    TeleBTC unwind branch:
        NEW -> WAITING_FOR_APPROVE_CONFIRMATIONS -> APPROVE_CONFIRMED
            -> WAITING_FOR_BURN_CONFIRMATIONS -> SUCCESS
    Any non-terminal status may move to FAILED.
    """

    NEW = "NEW"
    WAITING_FOR_SEND_CONFIRMATIONS = "WAITING_FOR_SEND_CONFIRMATIONS"
    WAITING_FOR_RECEIVE = "WAITING_FOR_RECEIVE"
    WAITING_FOR_APPROVE_CONFIRMATIONS = "WAITING_FOR_APPROVE_CONFIRMATIONS"
    APPROVE_CONFIRMED = "APPROVE_CONFIRMED"
    WAITING_FOR_BURN_CONFIRMATIONS = "WAITING_FOR_BURN_CONFIRMATIONS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (SwapStatus.SUCCESS, SwapStatus.FAILED)


# Forward edges of the state graph (FAILED is reachable from every non-terminal state)
TRANSITIONS: dict[SwapStatus, frozenset[SwapStatus]] = {
    SwapStatus.NEW: frozenset(
        {SwapStatus.WAITING_FOR_SEND_CONFIRMATIONS, SwapStatus.WAITING_FOR_APPROVE_CONFIRMATIONS}
    ),
    SwapStatus.WAITING_FOR_SEND_CONFIRMATIONS: frozenset({SwapStatus.WAITING_FOR_RECEIVE}),
    SwapStatus.WAITING_FOR_RECEIVE: frozenset({SwapStatus.SUCCESS}),
    SwapStatus.WAITING_FOR_APPROVE_CONFIRMATIONS: frozenset({SwapStatus.APPROVE_CONFIRMED}),
    SwapStatus.APPROVE_CONFIRMED: frozenset({SwapStatus.WAITING_FOR_BURN_CONFIRMATIONS}),
    SwapStatus.WAITING_FOR_BURN_CONFIRMATIONS: frozenset({SwapStatus.SUCCESS}),
    SwapStatus.SUCCESS: frozenset(),
    SwapStatus.FAILED: frozenset(),
}


def can_transition(current: SwapStatus, requested: SwapStatus) -> bool:
    """Check a status change against the state graph."""
    if current.is_terminal:
        return False
    if requested == SwapStatus.FAILED:
        return True
    return requested in TRANSITIONS[current]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SwapRecord(Base):
    """A TeleSwap swap.

    Amounts are integer strings in smallest units so that wei-sized values
    survive every database backend without rounding.
    """

    __tablename__ = "swap_records"
    __table_args__ = (Index("ix_swap_records_status", "status"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    network: Mapped[str] = mapped_column(String(10), nullable=False)
    from_asset: Mapped[str] = mapped_column(String(20), nullable=False)
    to_asset: Mapped[str] = mapped_column(String(20), nullable=False)
    from_amount: Mapped[str] = mapped_column(String(80), nullable=False)
    to_amount: Mapped[str] = mapped_column(String(80), nullable=False)
    fee: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)  # source tx fee rate
    from_account_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    to_account_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[SwapStatus] = mapped_column(
        String(40), default=SwapStatus.NEW, nullable=False
    )
    bitcoin_tx_hash: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    approve_tx_hash: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    burn_tx_hash: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    number_of_bitcoin_confirmations: Mapped[int] = mapped_column(default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    status_changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def swap_status(self) -> SwapStatus:
        return SwapStatus(self.status)

    @property
    def from_units(self) -> BaseUnits:
        return BaseUnits(int(self.from_amount), self.from_asset)

    @property
    def to_units(self) -> BaseUnits:
        return BaseUnits(int(self.to_amount), self.to_asset)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "network": self.network,
            "from": self.from_asset,
            "to": self.to_asset,
            "fromAmount": self.from_amount,
            "toAmount": self.to_amount,
            "fee": self.fee,
            "status": SwapStatus(self.status).value,
            "bitcoinTxHash": self.bitcoin_tx_hash,
            "approveTxHash": self.approve_tx_hash,
            "burnTxHash": self.burn_tx_hash,
            "numberOfBitcoinConfirmations": self.number_of_bitcoin_confirmations,
            "errorMessage": self.error_message,
            "endTime": self.end_time.isoformat() if self.end_time else None,
        }
