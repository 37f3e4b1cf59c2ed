"""Bridge components: fees, lockers, payloads and the swap lifecycle."""

from teleswap.bridge.fees import FeeBreakdown, FeeEstimator
from teleswap.bridge.lifecycle import TeleSwapProvider
from teleswap.bridge.lockers import Locker, LockerSelector
from teleswap.bridge.payload import PayloadEncoder, TeleportPayment

__all__ = [
    "FeeBreakdown",
    "FeeEstimator",
    "Locker",
    "LockerSelector",
    "PayloadEncoder",
    "TeleSwapProvider",
    "TeleportPayment",
]
