"""Swap runner.

Polls the database for active swaps and drives each one through its
lifecycle, one task per swap.

Usage:
    python -m teleswap.runner --interval 15

Environment variables:
    DATABASE_URL: Swap database (default: sqlite+aiosqlite:///./data/teleswap.db)
    POLL_INTERVAL_SECONDS: Seconds between confirmation polls (default: 15)
    RECEIVE_ALERT_AFTER_HOURS: Warn about relays pending longer than this (default: 6)
"""

import argparse
import asyncio
import logging
from datetime import timedelta
from typing import Optional

from teleswap.bridge.lifecycle import TeleSwapProvider
from teleswap.config import get_settings
from teleswap.ledger.database import close_db, configure_database, get_db, init_db
from teleswap.ledger.repository import SwapRepository
from teleswap.utils.scheduler import Clock, SystemClock

logger = logging.getLogger(__name__)


class SwapRunner:
    """Keeps one driving task per active swap."""

    def __init__(
        self,
        provider: TeleSwapProvider,
        interval: float = 15.0,
        receive_alert_after: timedelta = timedelta(hours=6),
        clock: Optional[Clock] = None,
    ):
        """Initialize swap runner.

        Args:
            provider: Lifecycle that advances swaps
            interval: Seconds between database scans
            receive_alert_after: Dwell time in WAITING_FOR_RECEIVE before warning
            clock: Time source (tests use a fake)
        """
        self.provider = provider
        self.interval = interval
        self.receive_alert_after = receive_alert_after
        self.clock = clock or SystemClock()
        self._tasks: dict[str, asyncio.Task] = {}

    async def get_active_swap_ids(self) -> list[str]:
        async with get_db() as session:
            repo = SwapRepository(session)
            return [swap.id for swap in await repo.list_active()]

    async def report_stalled(self) -> list[str]:
        """Warn about swaps whose relay has been pending too long.

        No status change is made; failing them is an operator decision.
        """
        since = self.clock.now() - self.receive_alert_after
        async with get_db() as session:
            repo = SwapRepository(session)
            stalled = await repo.list_stalled(since)

        for swap in stalled:
            logger.warning(
                f"Swap {swap.id} waiting for teleporter since {swap.status_changed_at} "
                f"({swap.number_of_bitcoin_confirmations} confirmations, tx {swap.bitcoin_tx_hash})"
            )
        return [swap.id for swap in stalled]

    async def _drive(self, swap_id: str) -> None:
        try:
            record = await self.provider.drive(swap_id)
            if record is not None:
                logger.info(f"Swap {swap_id} now {record.swap_status.value}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # picked up again on the next scan
            logger.error(f"Swap {swap_id} action failed: {e}")

    def _reap(self) -> None:
        done = [swap_id for swap_id, task in self._tasks.items() if task.done()]
        for swap_id in done:
            del self._tasks[swap_id]

    async def scan_once(self) -> int:
        """Start tasks for active swaps not already being driven.

        Returns:
            Number of tasks started
        """
        self._reap()
        started = 0
        for swap_id in await self.get_active_swap_ids():
            if swap_id in self._tasks:
                continue
            self._tasks[swap_id] = asyncio.create_task(self._drive(swap_id))
            started += 1

        if started:
            logger.info(f"Driving {started} new swap(s), {len(self._tasks)} in flight")
        await self.report_stalled()
        return started

    async def run(self) -> None:
        """Run continuous scanning loop."""
        logger.info(f"Starting swap runner (interval: {self.interval}s)")

        await init_db()

        try:
            while True:
                try:
                    await self.scan_once()
                except Exception as e:
                    logger.error(f"Runner error: {e}")

                await self.clock.sleep(self.interval)
        finally:
            await self.stop()

    async def stop(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks.clear()


async def main():
    """Main entry point."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Drive active TeleSwap swaps")
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.poll_interval_seconds,
        help=f"Seconds between database scans (default: {settings.poll_interval_seconds})",
    )
    parser.add_argument(
        "--alert-after-hours",
        type=float,
        default=settings.receive_alert_after_hours,
        help="Warn about relays pending longer than this",
    )
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.database_url:
        configure_database(args.database_url)

    from teleswap.factory import create_provider

    provider = create_provider(settings)
    runner = SwapRunner(
        provider,
        interval=args.interval,
        receive_alert_after=timedelta(hours=args.alert_after_hours),
    )

    try:
        await runner.run()
    finally:
        await close_db()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Runner stopped")
