"""Concurrency control for swap handlers.

Every state-changing handler for a swap runs under a lock keyed by
(source asset, swap id), so two pollers can never drive the same swap at
once. Locks are per process; the repository's transition guard covers
writers in other processes.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

SwapLockKey = tuple[str, str]

# Global lock registry: (asset, swap_id) -> asyncio.Lock
_swap_locks: dict[SwapLockKey, asyncio.Lock] = {}
# Number of SwapLock holders and waiters per key
_swap_lock_users: dict[SwapLockKey, int] = {}
_registry_lock = asyncio.Lock()


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


async def get_swap_lock(asset: str, swap_id: str) -> asyncio.Lock:
    """Get or create the lock for one swap.

    Args:
        asset: Source asset of the swap
        swap_id: Swap record id

    Returns:
        asyncio.Lock for the swap
    """
    key = (asset.upper(), swap_id)
    async with _registry_lock:
        if key not in _swap_locks:
            _swap_locks[key] = asyncio.Lock()
        return _swap_locks[key]


async def _checkout_swap_lock(asset: str, swap_id: str) -> asyncio.Lock:
    key = (asset.upper(), swap_id)
    async with _registry_lock:
        lock = _swap_locks.setdefault(key, asyncio.Lock())
        _swap_lock_users[key] = _swap_lock_users.get(key, 0) + 1
        return lock


async def _return_swap_lock(asset: str, swap_id: str) -> None:
    """Release one user of a swap lock, dropping the entry with the last one."""
    key = (asset.upper(), swap_id)
    async with _registry_lock:
        remaining = _swap_lock_users.get(key, 0) - 1
        if remaining > 0:
            _swap_lock_users[key] = remaining
            return
        _swap_lock_users.pop(key, None)
        _swap_locks.pop(key, None)


class SwapLock:
    """Context manager for exclusive access to one swap.

    Example:
        async with SwapLock("BTC", swap.id, operation="send_bitcoin_swap"):
            record = await repo.get_swap(swap.id)
            ...
    """

    def __init__(
        self,
        asset: str,
        swap_id: str,
        timeout: Optional[float] = 30.0,
        operation: str = "swap_operation",
    ):
        self.asset = asset
        self.swap_id = swap_id
        self.timeout = timeout
        self.operation = operation
        self._lock: Optional[asyncio.Lock] = None
        self._acquired = False

    async def __aenter__(self) -> "SwapLock":
        self._lock = await _checkout_swap_lock(self.asset, self.swap_id)

        try:
            if self.timeout:
                await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
            else:
                await self._lock.acquire()
            self._acquired = True
            logger.debug(f"Lock acquired for swap {self.swap_id}: {self.operation}")
            return self

        except asyncio.TimeoutError:
            logger.warning(
                f"Lock timeout for swap {self.swap_id} after {self.timeout}s: {self.operation}"
            )
            await _return_swap_lock(self.asset, self.swap_id)
            raise LockTimeoutError(
                f"Could not acquire lock for swap {self.swap_id} within {self.timeout}s"
            )
        except asyncio.CancelledError:
            await _return_swap_lock(self.asset, self.swap_id)
            raise

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._acquired and self._lock:
            self._lock.release()
            self._acquired = False
            logger.debug(f"Lock released for swap {self.swap_id}: {self.operation}")
            await _return_swap_lock(self.asset, self.swap_id)
        return False


@asynccontextmanager
async def swap_lock(
    asset: str,
    swap_id: str,
    timeout: Optional[float] = 30.0,
    operation: str = "swap_operation",
):
    """Functional form of SwapLock."""
    async with SwapLock(asset, swap_id, timeout=timeout, operation=operation):
        yield


def is_swap_locked(asset: str, swap_id: str) -> bool:
    lock = _swap_locks.get((asset.upper(), swap_id))
    return lock is not None and lock.locked()


def clear_swap_locks() -> None:
    """Clear all swap locks (useful for testing)."""
    _swap_locks.clear()
    _swap_lock_users.clear()
