"""Ledger module for swap record tracking."""

from teleswap.ledger.database import close_db, get_db, init_db
from teleswap.ledger.models import SwapRecord, SwapStatus, can_transition
from teleswap.ledger.repository import SwapRepository

__all__ = [
    # Models
    "SwapRecord",
    # Enums
    "SwapStatus",
    "can_transition",
    # Database
    "get_db",
    "init_db",
    "close_db",
    "SwapRepository",
]
