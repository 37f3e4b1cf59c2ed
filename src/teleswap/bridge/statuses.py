"""Presentation metadata for swap statuses."""

from teleswap.ledger.models import SwapStatus
from teleswap.routing.base import StatusInfo
from teleswap.units import BaseUnits

TIMELINE_STEPS = ("REQUEST", "WAITING", "RECEIVE")


def _pretty(amount: str, asset: str) -> str:
    try:
        return str(BaseUnits(int(amount), asset).to_currency())
    except (KeyError, TypeError, ValueError):
        return amount


def build_status_table(finalization_confirmations: int) -> dict[SwapStatus, StatusInfo]:
    """Step, label, filter status and notification text for every status."""

    def initiated(swap) -> str:
        return "Swap initiated"

    def receiving(swap) -> str:
        return (
            f"Waiting for confirmations: {swap.number_of_bitcoin_confirmations or 0} "
            f"/ {finalization_confirmations}"
        )

    def completed(swap) -> str:
        return f"Swap completed, {_pretty(swap.to_amount, swap.to_asset)} {swap.to_asset} ready to use"

    def failed(swap) -> str:
        return f"Swap failed, {_pretty(swap.from_amount, swap.from_asset)} {swap.from_asset} refunded"

    return {
        SwapStatus.NEW: StatusInfo(0, "Swapping {from}", "PENDING", initiated),
        SwapStatus.WAITING_FOR_APPROVE_CONFIRMATIONS: StatusInfo(
            0, "Approve {from}", "PENDING", initiated
        ),
        SwapStatus.APPROVE_CONFIRMED: StatusInfo(0, "Swapping {from}", "PENDING", initiated),
        SwapStatus.WAITING_FOR_BURN_CONFIRMATIONS: StatusInfo(
            1, "Burning {from}", "PENDING", initiated
        ),
        SwapStatus.WAITING_FOR_SEND_CONFIRMATIONS: StatusInfo(
            0, "Swapping {from}", "PENDING", initiated
        ),
        SwapStatus.WAITING_FOR_RECEIVE: StatusInfo(1, "Receiving {to}", "PENDING", receiving),
        SwapStatus.SUCCESS: StatusInfo(2, "Completed", "COMPLETED", completed),
        SwapStatus.FAILED: StatusInfo(2, "Swap Failed", "REFUNDED", failed),
    }
