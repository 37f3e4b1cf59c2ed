"""Tests for the swap runner."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from conftest import FakeClock
from teleswap.ledger.database import close_db, get_db, get_engine
from teleswap.ledger.models import Base, SwapStatus
from teleswap.ledger.repository import SwapRepository
from teleswap.runner import SwapRunner


@pytest_asyncio.fixture
async def database():
    """Fresh in-memory database behind get_db()."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


async def seed_swap(status: SwapStatus) -> str:
    async with get_db() as session:
        swap = await SwapRepository(session).create_swap("testnet", "BTC", "TELEBTC", 1_000_000, 990_000)
        swap.status = status
        return swap.id


@pytest.fixture
def provider():
    mock = MagicMock()
    mock.drive = AsyncMock(return_value=None)
    return mock


class TestSwapRunner:
    """Tests for SwapRunner."""

    @pytest.mark.asyncio
    async def test_scan_drives_active_swaps(self, database, provider):
        active = await seed_swap(SwapStatus.WAITING_FOR_SEND_CONFIRMATIONS)
        await seed_swap(SwapStatus.SUCCESS)
        runner = SwapRunner(provider, clock=FakeClock(datetime.now(timezone.utc)))

        started = await runner.scan_once()
        await asyncio.gather(*runner._tasks.values())

        assert started == 1
        provider.drive.assert_awaited_once_with(active)

    @pytest.mark.asyncio
    async def test_scan_skips_swaps_in_flight(self, database, provider):
        await seed_swap(SwapStatus.WAITING_FOR_RECEIVE)
        release = asyncio.Event()

        async def drive(swap_id):
            await release.wait()

        provider.drive = AsyncMock(side_effect=drive)
        runner = SwapRunner(provider, clock=FakeClock(datetime.now(timezone.utc)))

        assert await runner.scan_once() == 1
        assert await runner.scan_once() == 0

        release.set()
        await runner.stop()

    @pytest.mark.asyncio
    async def test_drive_errors_are_logged(self, database, provider, caplog):
        swap_id = await seed_swap(SwapStatus.WAITING_FOR_SEND_CONFIRMATIONS)
        provider.drive = AsyncMock(side_effect=RuntimeError("node down"))
        runner = SwapRunner(provider, clock=FakeClock(datetime.now(timezone.utc)))

        with caplog.at_level(logging.ERROR, logger="teleswap.runner"):
            await runner.scan_once()
            await asyncio.gather(*runner._tasks.values())

        assert f"Swap {swap_id} action failed" in caplog.text

    @pytest.mark.asyncio
    async def test_report_stalled(self, database, provider, caplog):
        """Relays pending past the alert window are reported, not failed."""
        stalled = await seed_swap(SwapStatus.WAITING_FOR_RECEIVE)
        await seed_swap(SwapStatus.WAITING_FOR_SEND_CONFIRMATIONS)
        clock = FakeClock(datetime.now(timezone.utc) + timedelta(hours=7))
        runner = SwapRunner(provider, receive_alert_after=timedelta(hours=6), clock=clock)

        with caplog.at_level(logging.WARNING, logger="teleswap.runner"):
            assert await runner.report_stalled() == [stalled]

        assert "waiting for teleporter" in caplog.text
        async with get_db() as session:
            swap = await SwapRepository(session).get_swap(stalled)
        assert swap.swap_status == SwapStatus.WAITING_FOR_RECEIVE

    @pytest.mark.asyncio
    async def test_nothing_stalled_inside_window(self, database, provider):
        await seed_swap(SwapStatus.WAITING_FOR_RECEIVE)
        runner = SwapRunner(provider, clock=FakeClock(datetime.now(timezone.utc)))

        assert await runner.report_stalled() == []
