"""Utility modules for TeleSwap."""

from teleswap.utils.locks import LockTimeoutError, SwapLock, get_swap_lock, swap_lock

__all__ = ["LockTimeoutError", "SwapLock", "get_swap_lock", "swap_lock"]
