"""Exception hierarchy for the TeleSwap orchestrator."""

from typing import Optional


class TeleSwapError(Exception):
    """Base exception for all orchestrator failures."""
    pass


class UnsupportedRoute(TeleSwapError):
    """Raised when a (from, to, network) triple is not in the catalog."""

    def __init__(self, from_asset: str, to_asset: str, network: str):
        self.from_asset = from_asset
        self.to_asset = to_asset
        self.network = network
        super().__init__(f"Unsupported route: {from_asset} -> {to_asset} on {network}")


class NoRouteFound(TeleSwapError):
    """Raised when neither a direct nor a two-hop liquidity path exists."""

    def __init__(self, from_asset: str, to_asset: str):
        self.from_asset = from_asset
        self.to_asset = to_asset
        super().__init__(f"No liquidity path from {from_asset} to {to_asset}")


class NoLockerAvailable(TeleSwapError):
    """Raised when the locker registry has no eligible locker."""
    pass


class TransactionNotFound(TeleSwapError):
    """Raised when a submitted transaction is not indexed yet."""

    def __init__(self, tx_hash: str, chain: Optional[str] = None):
        self.tx_hash = tx_hash
        self.chain = chain
        where = f" on {chain}" if chain else ""
        super().__init__(f"Transaction {tx_hash} not found{where}")


class RpcError(TeleSwapError):
    """Raised for any other chain, contract or oracle client failure."""
    pass


class EncodingError(TeleSwapError):
    """Raised when a chain payload cannot be constructed."""
    pass


class InvalidTransition(TeleSwapError):
    """Raised when a status update would move a swap backwards."""

    def __init__(self, swap_id: str, current: str, requested: str):
        self.swap_id = swap_id
        self.current = current
        self.requested = requested
        super().__init__(f"Swap {swap_id}: cannot move from {current} to {requested}")


class SwapNotFound(TeleSwapError):
    """Raised when a swap id has no persisted record."""
    pass


class ConfigurationError(TeleSwapError):
    """Raised when the target network configuration is incomplete."""
    pass


class AmountTooLow(TeleSwapError):
    """Raised when nothing is left of an amount once bridge fees are taken."""
    pass


class TransactionReverted(TeleSwapError):
    """Raised when a mined transaction failed on-chain; retrying cannot help."""

    def __init__(self, tx_hash: str, chain: Optional[str] = None):
        self.tx_hash = tx_hash
        self.chain = chain
        where = f" on {chain}" if chain else ""
        super().__init__(f"Transaction {tx_hash} reverted{where}")
