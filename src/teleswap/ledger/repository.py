"""Repository for swap record persistence."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teleswap.errors import InvalidTransition, SwapNotFound
from teleswap.ledger.models import SwapRecord, SwapStatus, can_transition

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "fee",
        "bitcoin_tx_hash",
        "approve_tx_hash",
        "burn_tx_hash",
        "number_of_bitcoin_confirmations",
        "error_message",
        "end_time",
    }
)

ACTIVE_STATUSES = tuple(s for s in SwapStatus if not s.is_terminal)


class SwapRepository:
    """All swap record reads and writes go through here.

    Status changes are checked against the state graph, so a stale handler
    can never move a record backwards or revive a terminal one.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_swap(
        self,
        network: str,
        from_asset: str,
        to_asset: str,
        from_amount: int,
        to_amount: int,
        from_account_id: Optional[str] = None,
        to_account_id: Optional[str] = None,
        swap_id: Optional[str] = None,
    ) -> SwapRecord:
        """Persist a NEW swap. Amounts are in smallest units."""
        swap = SwapRecord(
            network=network,
            from_asset=from_asset,
            to_asset=to_asset,
            from_amount=str(from_amount),
            to_amount=str(to_amount),
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            status=SwapStatus.NEW,
        )
        if swap_id:
            swap.id = swap_id
        self.session.add(swap)
        await self.session.flush()
        logger.info(f"Created swap {swap.id}: {from_amount} {from_asset} -> {to_asset} ({network})")
        return swap

    async def get_swap(self, swap_id: str) -> Optional[SwapRecord]:
        """Get swap by id."""
        stmt = select(SwapRecord).where(SwapRecord.id == swap_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_swap_or_raise(self, swap_id: str) -> SwapRecord:
        swap = await self.get_swap(swap_id)
        if swap is None:
            raise SwapNotFound(f"Swap {swap_id} not found")
        return swap

    async def apply_updates(self, swap_id: str, updates: dict[str, Any]) -> SwapRecord:
        """Apply a handler's update set to the stored record.

        Confirmation counts only ever grow. Reaching a terminal status stamps
        `end_time` unless the update carries one.

        Raises:
            SwapNotFound: unknown swap id
            InvalidTransition: the record is terminal or the status change
                is not an edge of the state graph
            ValueError: an update names a field that may not be changed
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        swap = await self.get_swap_or_raise(swap_id)
        current = SwapStatus(swap.status)
        requested = SwapStatus(updates.get("status", current))

        if current.is_terminal and updates:
            raise InvalidTransition(swap_id, current.value, requested.value)
        if requested != current and not can_transition(current, requested):
            raise InvalidTransition(swap_id, current.value, requested.value)

        for field, value in updates.items():
            if field == "status":
                continue
            if field == "number_of_bitcoin_confirmations":
                value = max(int(value), swap.number_of_bitcoin_confirmations or 0)
            setattr(swap, field, value)

        if requested != current:
            now = datetime.now(timezone.utc)
            swap.status = requested
            swap.status_changed_at = now
            if requested.is_terminal and swap.end_time is None:
                swap.end_time = now
            logger.info(f"Swap {swap_id}: {current.value} -> {requested.value}")

        await self.session.flush()
        return swap

    async def mark_failed(self, swap_id: str, reason: str) -> SwapRecord:
        """Move a non-terminal swap to FAILED with an operator-supplied reason."""
        swap = await self.apply_updates(
            swap_id, {"status": SwapStatus.FAILED, "error_message": reason}
        )
        logger.warning(f"Swap {swap_id} marked failed: {reason}")
        return swap

    async def list_swaps(
        self, limit: int = 50, offset: int = 0, status: Optional[SwapStatus] = None
    ) -> list[SwapRecord]:
        """List swaps, newest first."""
        stmt = select(SwapRecord)
        if status is not None:
            stmt = stmt.where(SwapRecord.status == status)
        stmt = stmt.order_by(SwapRecord.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_active(self) -> list[SwapRecord]:
        """All swaps that still need driving."""
        stmt = (
            select(SwapRecord)
            .where(SwapRecord.status.in_(ACTIVE_STATUSES))
            .order_by(SwapRecord.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_stalled(self, since: datetime) -> list[SwapRecord]:
        """Swaps that entered WAITING_FOR_RECEIVE before `since` and are still there."""
        stmt = select(SwapRecord).where(
            SwapRecord.status == SwapStatus.WAITING_FOR_RECEIVE,
            SwapRecord.status_changed_at < since,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
