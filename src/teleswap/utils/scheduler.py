"""Polling and locking helpers for swap handlers."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Protocol

from teleswap.errors import RpcError
from teleswap.utils.locks import SwapLock

logger = logging.getLogger(__name__)

PollAction = Callable[[], Awaitable[Optional[dict[str, Any]]]]
StillCurrent = Callable[[], Awaitable[bool]]


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall clock with asyncio sleeping."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class Scheduler:
    """Re-runs polling actions on a fixed interval and hands out swap locks.

    A polling action returns an update dict when it has something to record,
    or None to be polled again. RpcError is logged and retried on the next
    tick; TransactionNotFound is expected to be handled by the action itself.
    """

    def __init__(
        self,
        interval_seconds: float = 15.0,
        lock_timeout_seconds: Optional[float] = 30.0,
        clock: Optional[Clock] = None,
        max_attempts: Optional[int] = None,
    ):
        self.interval_seconds = interval_seconds
        self.lock_timeout_seconds = lock_timeout_seconds
        self.clock = clock or SystemClock()
        self.max_attempts = max_attempts

    async def with_interval(
        self,
        swap_id: str,
        action: PollAction,
        still_current: Optional[StillCurrent] = None,
    ) -> Optional[dict[str, Any]]:
        """Poll `action` until it returns an update.

        Args:
            swap_id: Swap being polled, for logging
            action: The polling step
            still_current: Checked before every tick; polling stops with None
                once it returns False (swap failed externally or moved on)

        Returns:
            The first non-empty update, or None when polling was abandoned
        """
        attempts = 0
        while True:
            if still_current is not None and not await still_current():
                logger.info(f"Swap {swap_id} changed outside this poller, stopping")
                return None

            try:
                updates = await action()
            except RpcError as e:
                logger.warning(f"Swap {swap_id}: poll failed, retrying in {self.interval_seconds}s: {e}")
                updates = None

            if updates:
                return updates

            attempts += 1
            if self.max_attempts is not None and attempts >= self.max_attempts:
                return None
            await self.clock.sleep(self.interval_seconds)

    def with_lock(self, asset: str, swap_id: str, operation: str) -> SwapLock:
        """Exclusive lock for a side-effecting step of one swap."""
        return SwapLock(asset, swap_id, timeout=self.lock_timeout_seconds, operation=operation)
