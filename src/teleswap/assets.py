"""Asset and chain registry for the Bitcoin <-> Polygon bridge.

Every asset the orchestrator can quote lives on one of two chains: the
Bitcoin UTXO chain (source) or Polygon (destination, where TeleBTC and the
QuickSwap liquidity pools live).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Network(str, Enum):
    """Network tier the swap runs on."""

    MAINNET = "mainnet"
    TESTNET = "testnet"

    @property
    def is_testnet(self) -> bool:
        return self is Network.TESTNET


class ChainId(str, Enum):
    """Chains known to the catalog."""

    BITCOIN = "bitcoin"
    POLYGON = "polygon"


@dataclass(frozen=True)
class AssetInfo:
    """Static description of an asset."""

    symbol: str
    name: str
    chain: ChainId
    decimals: int


# Source asset and its wrapped representation on Polygon
BTC = "BTC"
TELEBTC = "TELEBTC"

# Bridging token used for two-hop routes when no direct TeleBTC pair exists
BRIDGE_TOKEN = "WMATIC"

ASSETS: dict[str, AssetInfo] = {
    "BTC": AssetInfo(symbol="BTC", name="Bitcoin", chain=ChainId.BITCOIN, decimals=8),
    "TELEBTC": AssetInfo(symbol="TELEBTC", name="TeleBTC", chain=ChainId.POLYGON, decimals=8),
    "MATIC": AssetInfo(symbol="MATIC", name="Polygon", chain=ChainId.POLYGON, decimals=18),
    "WMATIC": AssetInfo(symbol="WMATIC", name="Wrapped Matic", chain=ChainId.POLYGON, decimals=18),
    "USDT": AssetInfo(symbol="USDT", name="Tether USD", chain=ChainId.POLYGON, decimals=6),
    "USDC": AssetInfo(symbol="USDC", name="USD Coin", chain=ChainId.POLYGON, decimals=6),
    "WETH": AssetInfo(symbol="WETH", name="Wrapped Ether", chain=ChainId.POLYGON, decimals=18),
    "WBTC": AssetInfo(symbol="WBTC", name="Wrapped Bitcoin", chain=ChainId.POLYGON, decimals=8),
    "QUICK": AssetInfo(symbol="QUICK", name="QuickSwap", chain=ChainId.POLYGON, decimals=18),
}

# Legacy spellings accepted from callers
_ALIASES = {
    "TELEBTC": "TELEBTC",
    "TBTC": "TELEBTC",
}


def normalize_symbol(symbol: str) -> str:
    """Upper-case a symbol and resolve aliases (TeleBTC -> TELEBTC)."""
    upper = symbol.strip().upper()
    return _ALIASES.get(upper, upper)


def get_asset(symbol: str) -> Optional[AssetInfo]:
    """Look up an asset, returning None for unknown symbols."""
    return ASSETS.get(normalize_symbol(symbol))


def get_decimals(symbol: str) -> int:
    """Get decimals for a known asset. Raises KeyError for unknown symbols."""
    asset = get_asset(symbol)
    if asset is None:
        raise KeyError(f"Unknown asset: {symbol}")
    return asset.decimals


def is_wrap_pair(from_asset: str, to_asset: str) -> bool:
    """BTC -> TELEBTC: minting the wrapped representation."""
    return normalize_symbol(from_asset) == BTC and normalize_symbol(to_asset) == TELEBTC


def is_burn_pair(from_asset: str, to_asset: str) -> bool:
    """TELEBTC -> BTC: burning the wrapped representation."""
    return normalize_symbol(from_asset) == TELEBTC and normalize_symbol(to_asset) == BTC
