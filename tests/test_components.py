"""Component tests for locks, polling and configuration."""

import asyncio

import pytest

from conftest import FakeClock
from teleswap.errors import ConfigurationError, RpcError
from teleswap.utils import locks
from teleswap.utils.locks import (
    LockTimeoutError,
    SwapLock,
    clear_swap_locks,
    get_swap_lock,
    is_swap_locked,
    swap_lock,
)
from teleswap.utils.scheduler import Scheduler


class TestSwapLocks:
    """Tests for the concurrency locks module."""

    @pytest.mark.asyncio
    async def test_get_swap_lock_reuses_lock(self):
        """Test that get_swap_lock returns one lock per swap."""
        lock1 = await get_swap_lock("BTC", "swap-1")
        lock2 = await get_swap_lock("btc", "swap-1")

        assert lock1 is lock2

    @pytest.mark.asyncio
    async def test_different_swaps_get_different_locks(self):
        """Test that different swaps and assets get different locks."""
        lock1 = await get_swap_lock("BTC", "swap-1")
        lock2 = await get_swap_lock("BTC", "swap-2")
        lock3 = await get_swap_lock("TELEBTC", "swap-1")

        assert lock1 is not lock2
        assert lock1 is not lock3

    @pytest.mark.asyncio
    async def test_swap_lock_context_manager(self):
        """Test SwapLock as context manager."""
        async with SwapLock("BTC", "swap-100", operation="test"):
            assert is_swap_locked("BTC", "swap-100")

        assert not is_swap_locked("BTC", "swap-100")

    @pytest.mark.asyncio
    async def test_swap_lock_prevents_concurrent_access(self):
        """Test that a second handler waits for the first."""
        results = []

        async def task(name, delay):
            async with SwapLock("BTC", "swap-200", timeout=10.0, operation=f"task_{name}"):
                results.append(f"{name}_start")
                await asyncio.sleep(delay)
                results.append(f"{name}_end")

        await asyncio.gather(
            task("A", 0.05),
            task("B", 0.05),
        )

        assert results in [
            ["A_start", "A_end", "B_start", "B_end"],
            ["B_start", "B_end", "A_start", "A_end"],
        ]

    @pytest.mark.asyncio
    async def test_lock_timeout_raises_error(self):
        """Test that lock timeout raises LockTimeoutError."""

        async def hold_lock():
            async with SwapLock("BTC", "swap-300", timeout=5.0):
                await asyncio.sleep(0.5)

        hold_task = asyncio.create_task(hold_lock())
        await asyncio.sleep(0.05)

        with pytest.raises(LockTimeoutError):
            async with SwapLock("BTC", "swap-300", timeout=0.1):
                pass

        await hold_task

    @pytest.mark.asyncio
    async def test_functional_context_manager(self):
        """Test swap_lock functional context manager."""
        async with swap_lock("BTC", "swap-400", operation="test"):
            assert is_swap_locked("BTC", "swap-400")

        assert not is_swap_locked("BTC", "swap-400")

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        with pytest.raises(RuntimeError):
            async with SwapLock("BTC", "swap-500"):
                raise RuntimeError("boom")

        assert not is_swap_locked("BTC", "swap-500")

    @pytest.mark.asyncio
    async def test_released_locks_leave_registry(self):
        """Test that a swap lock is dropped once its last user releases it."""
        async with SwapLock("BTC", "swap-600"):
            assert ("BTC", "swap-600") in locks._swap_locks

        assert ("BTC", "swap-600") not in locks._swap_locks
        assert locks._swap_lock_users == {}

    @pytest.mark.asyncio
    async def test_registry_entry_kept_while_waiters_remain(self):
        """Test that a queued handler still shares the holder's lock."""
        order = []

        async def task(name):
            async with SwapLock("BTC", "swap-700", timeout=5.0):
                order.append(f"{name}_start")
                await asyncio.sleep(0.05)
                order.append(f"{name}_end")

        await asyncio.gather(task("A"), task("B"), task("C"))

        assert [o for o in order if o.endswith("_start")] == ["A_start", "B_start", "C_start"]
        for name in ("A", "B", "C"):
            assert order.index(f"{name}_end") == order.index(f"{name}_start") + 1
        assert locks._swap_locks == {}

    @pytest.mark.asyncio
    async def test_timed_out_waiter_leaves_no_entry(self):
        async def hold_lock():
            async with SwapLock("BTC", "swap-800", timeout=5.0):
                await asyncio.sleep(0.3)

        hold_task = asyncio.create_task(hold_lock())
        await asyncio.sleep(0.05)

        with pytest.raises(LockTimeoutError):
            async with SwapLock("BTC", "swap-800", timeout=0.05):
                pass

        await hold_task
        assert locks._swap_locks == {}
        assert locks._swap_lock_users == {}

    @pytest.mark.asyncio
    async def test_clear_swap_locks(self):
        """Test that clear_swap_locks drops every lock."""
        lock1 = await get_swap_lock("BTC", "swap-1")
        await get_swap_lock("BTC", "swap-2")

        clear_swap_locks()

        assert await get_swap_lock("BTC", "swap-1") is not lock1


class TestScheduler:
    """Tests for interval polling."""

    @pytest.mark.asyncio
    async def test_returns_first_update(self):
        clock = FakeClock()
        scheduler = Scheduler(interval_seconds=15, clock=clock)
        results = iter([None, {}, {"status": "X"}])

        async def action():
            return next(results)

        assert await scheduler.with_interval("swap-1", action) == {"status": "X"}
        assert clock.sleeps == [15, 15]

    @pytest.mark.asyncio
    async def test_rpc_error_retried(self):
        clock = FakeClock()
        scheduler = Scheduler(interval_seconds=3, clock=clock)
        calls = []

        async def action():
            calls.append(1)
            if len(calls) < 3:
                raise RpcError("node unavailable")
            return {"done": True}

        assert await scheduler.with_interval("swap-1", action) == {"done": True}
        assert clock.sleeps == [3, 3]

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        scheduler = Scheduler(clock=FakeClock())

        async def action():
            raise ValueError("bug")

        with pytest.raises(ValueError):
            await scheduler.with_interval("swap-1", action)

    @pytest.mark.asyncio
    async def test_stops_when_swap_moves_on(self):
        """Polling stops once the swap is no longer in the polled status."""
        clock = FakeClock()
        scheduler = Scheduler(interval_seconds=1, clock=clock)
        current = iter([True, True, False])
        polled = []

        async def still_current():
            return next(current)

        async def action():
            polled.append(1)
            return None

        assert await scheduler.with_interval("swap-1", action, still_current) is None
        assert len(polled) == 2

    @pytest.mark.asyncio
    async def test_max_attempts(self):
        clock = FakeClock()
        scheduler = Scheduler(interval_seconds=1, clock=clock, max_attempts=2)

        async def action():
            return None

        assert await scheduler.with_interval("swap-1", action) is None
        assert clock.sleeps == [1]

    @pytest.mark.asyncio
    async def test_with_lock(self):
        scheduler = Scheduler(lock_timeout_seconds=0.1, clock=FakeClock())

        async with scheduler.with_lock("BTC", "swap-1", "send_bitcoin_swap"):
            assert is_swap_locked("BTC", "swap-1")
            with pytest.raises(LockTimeoutError):
                async with scheduler.with_lock("BTC", "swap-1", "send_bitcoin_swap"):
                    pass


class TestConfig:
    """Tests for configuration module."""

    def test_get_settings(self):
        """Test getting settings instance."""
        from teleswap.config import get_settings

        settings = get_settings()

        assert hasattr(settings, "database_url")
        assert hasattr(settings, "teleswap_network")
        assert hasattr(settings, "admin_token")

    def test_settings_safe_dict(self):
        """Test that safe_dict redacts secrets."""
        from teleswap.config import Settings

        settings = Settings(
            database_url="postgresql+asyncpg://swap:hunter2@db/teleswap",
            teleport_api_token="secret",
        )
        safe = settings.get_safe_dict()

        assert safe["database_url"] == "postgresql+asyncpg://swap:***@db/teleswap"
        assert safe["teleport_api"]["token"] == "***"
        assert "secret" not in str(safe)
        assert safe["policy"]["finalization_confirmations"] == 1

    def test_missing_contracts_rejected(self):
        from teleswap.config import Settings

        with pytest.raises(ConfigurationError):
            Settings(telebtc_address="").target_network()

    def test_target_network_built(self):
        from teleswap.config import Settings

        address = "0x" + "ab" * 20
        target = Settings(
            telebtc_address=address,
            cc_transfer_router_address=address,
            cc_exchange_router_address=address,
            cc_burn_router_address=address,
            token_addresses={"usdt": address},
        ).target_network()

        assert target.testnet is True
        assert target.esplora_url == "https://blockstream.info/testnet/api"
        assert target.token_address("USDT") == address
        assert target.token_address("BTC") == address
        assert target.token_address("WMATIC") is None
        assert target.payload_chain_id == 137

    def test_bad_url_rejected(self):
        from teleswap.config import Settings

        address = "0x" + "ab" * 20
        with pytest.raises(ConfigurationError):
            Settings(
                polygon_rpc_url="polygon-rpc.com",
                telebtc_address=address,
                cc_transfer_router_address=address,
                cc_exchange_router_address=address,
                cc_burn_router_address=address,
            ).target_network()


class TestFactory:
    """Tests for provider wiring."""

    def test_create_provider(self):
        from teleswap.bridge.lifecycle import TeleSwapProvider
        from teleswap.clients.wallet import ConfiguredWallet
        from teleswap.config import Settings
        from teleswap.factory import create_provider

        address = "0x" + "ab" * 20
        settings = Settings(
            telebtc_address=address,
            cc_transfer_router_address=address,
            cc_exchange_router_address=address,
            cc_burn_router_address=address,
            finalization_confirmations=2,
            poll_interval_seconds=5,
        )

        provider = create_provider(settings)

        assert isinstance(provider, TeleSwapProvider)
        assert isinstance(provider.wallet, ConfiguredWallet)
        assert provider.finalization_confirmations == 2
        assert provider.scheduler.interval_seconds == 5
        assert provider.address_codec.testnet is True

    def test_create_provider_without_contracts(self):
        from teleswap.config import Settings
        from teleswap.factory import create_provider

        with pytest.raises(ConfigurationError):
            create_provider(Settings())
