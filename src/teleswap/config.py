"""Application configuration using pydantic-settings.

Connection details for the destination network are gathered into an explicit
`TargetNetworkConfig` that is validated once, at construction, instead of
being passed around as an untyped mapping.
"""

import re
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from teleswap.assets import BRIDGE_TOKEN, BTC, TELEBTC, Network, normalize_symbol
from teleswap.errors import ConfigurationError

_EVM_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# QuickSwap (UniswapV2 fork) on Polygon mainnet
QUICKSWAP_FACTORY = "0x5757371414417b8C6CAad45bAeF941aBc7d3Ab32"
QUICKSWAP_ROUTER = "0xa5E0829CaCEd8fFDD4De3c43696c57F7D7A678ff"

# Polygon mainnet token addresses
POLYGON_TOKENS = {
    "WMATIC": "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",
    "USDT": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
    "USDC": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
    "WETH": "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
    "WBTC": "0x1BFD67037B42Cf73acF2047067bd4F2C47D9BfD6",
    "QUICK": "0xB5C064F955D8e7F38fE0460C556a72987494eE17",
}

ESPLORA_MAINNET = "https://blockstream.info/api"
ESPLORA_TESTNET = "https://blockstream.info/testnet/api"

# Bridge-level id of Polygon in payloads. The relayers read 137 on both tiers;
# Mumbai's EVM chain id (80001) does not fit the 2-byte field.
PAYLOAD_POLYGON_CHAIN_ID = 137


class TargetNetworkConfig(BaseModel):
    """Everything needed to talk to the bridge on one network tier."""

    network: Network
    api_url: str = Field(..., description="TeleportDAO API endpoint (fees, lockers)")
    api_token: Optional[str] = Field(default=None, description="TeleportDAO API auth token")
    polygon_rpc_url: str = Field(..., description="Polygon JSON-RPC URL")
    esplora_url: str = Field(..., description="Bitcoin esplora API URL")

    telebtc_address: str
    cc_transfer_router_address: str
    cc_exchange_router_address: str
    cc_burn_router_address: str
    quickswap_factory_address: str = QUICKSWAP_FACTORY
    quickswap_router_address: str = QUICKSWAP_ROUTER
    token_addresses: dict[str, str] = Field(default_factory=lambda: dict(POLYGON_TOKENS))

    payload_chain_id: int = Field(default=PAYLOAD_POLYGON_CHAIN_ID, ge=0, le=0xFFFF)

    @field_validator("api_url", "polygon_rpc_url", "esplora_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Expected an http(s) URL, got: {v!r}")
        return v

    @field_validator(
        "telebtc_address",
        "cc_transfer_router_address",
        "cc_exchange_router_address",
        "cc_burn_router_address",
        "quickswap_factory_address",
        "quickswap_router_address",
    )
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not _EVM_ADDRESS.match(v):
            raise ValueError(f"Invalid EVM address: {v!r}")
        return v

    @field_validator("token_addresses")
    @classmethod
    def validate_tokens(cls, v: dict[str, str]) -> dict[str, str]:
        tokens = {}
        for symbol, address in v.items():
            if not _EVM_ADDRESS.match(address):
                raise ValueError(f"Invalid EVM address for {symbol}: {address!r}")
            tokens[normalize_symbol(symbol)] = address
        return tokens

    @property
    def testnet(self) -> bool:
        return self.network.is_testnet

    def token_address(self, symbol: str) -> Optional[str]:
        """Resolve the Polygon token address used in pools for an asset.

        BTC resolves to TeleBTC (it is wrapped before any swap) and native
        MATIC resolves to WMATIC.
        """
        symbol = normalize_symbol(symbol)
        if symbol in (BTC, TELEBTC):
            return self.telebtc_address
        if symbol == "MATIC":
            symbol = BRIDGE_TOKEN
        return self.token_addresses.get(symbol)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/teleswap.db",
        description="Database connection URL",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")
    admin_token: str = Field(default="", description="Token required to mark swaps failed")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # Target network
    # ======================
    teleswap_network: Network = Field(default=Network.TESTNET, description="mainnet or testnet")
    teleport_api_url: str = Field(
        default="https://api.teleportdao.xyz", description="TeleportDAO API URL"
    )
    teleport_api_token: Optional[str] = Field(default=None, description="TeleportDAO API token")
    polygon_rpc_url: str = Field(default="https://polygon-rpc.com", description="Polygon RPC URL")
    esplora_url: Optional[str] = Field(
        default=None, description="Esplora API URL (defaults to Blockstream)"
    )

    # ======================
    # Contracts
    # ======================
    telebtc_address: str = Field(default="", description="TeleBTC ERC20 address")
    cc_transfer_router_address: str = Field(default="", description="CC transfer router")
    cc_exchange_router_address: str = Field(default="", description="CC exchange router")
    cc_burn_router_address: str = Field(default="", description="CC burn router")
    quickswap_factory_address: str = Field(default=QUICKSWAP_FACTORY)
    quickswap_router_address: str = Field(default=QUICKSWAP_ROUTER)
    token_addresses: dict[str, str] = Field(
        default_factory=lambda: dict(POLYGON_TOKENS),
        description="Polygon token addresses by symbol (JSON in env)",
    )
    payload_chain_id: int = Field(
        default=PAYLOAD_POLYGON_CHAIN_ID, description="Bridge chain id written into payloads"
    )

    # ======================
    # Wallet (receiving addresses; signing happens outside this service)
    # ======================
    bitcoin_address: Optional[str] = Field(default=None, description="Bitcoin receive address")
    polygon_address: Optional[str] = Field(default=None, description="Polygon receive address")

    # ======================
    # Swap policy
    # ======================
    finalization_confirmations: int = Field(
        default=1, ge=1, description="Bitcoin confirmations before the teleporter can relay"
    )
    slippage_percent: Decimal = Field(
        default=Decimal("10"), ge=0, lt=100, description="Slippage buffer for exchange payloads"
    )
    deadline_window_seconds: int = Field(
        default=86400, gt=0, description="Exchange deadline added to the latest block time"
    )
    poll_interval_seconds: float = Field(default=15.0, gt=0, description="Polling interval")
    lock_timeout_seconds: float = Field(default=30.0, gt=0, description="Swap lock timeout")
    receive_alert_after_hours: float = Field(
        default=6.0, gt=0, description="Alert when a relay is pending longer than this"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def target_network(self) -> TargetNetworkConfig:
        """Build and validate the target network configuration.

        Raises:
            ConfigurationError: if a required address or URL is missing or malformed
        """
        esplora_url = self.esplora_url or (
            ESPLORA_TESTNET if self.teleswap_network.is_testnet else ESPLORA_MAINNET
        )
        try:
            return TargetNetworkConfig(
                network=self.teleswap_network,
                api_url=self.teleport_api_url,
                api_token=self.teleport_api_token,
                polygon_rpc_url=self.polygon_rpc_url,
                esplora_url=esplora_url,
                telebtc_address=self.telebtc_address,
                cc_transfer_router_address=self.cc_transfer_router_address,
                cc_exchange_router_address=self.cc_exchange_router_address,
                cc_burn_router_address=self.cc_burn_router_address,
                quickswap_factory_address=self.quickswap_factory_address,
                quickswap_router_address=self.quickswap_router_address,
                token_addresses=self.token_addresses,
                payload_chain_id=self.payload_chain_id,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid target network configuration: {e}") from e

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "network": self.teleswap_network.value,
            "teleport_api": {
                "url": self.teleport_api_url,
                "token": "***" if self.teleport_api_token else "(not set)",
            },
            "polygon_rpc": self.polygon_rpc_url,
            "policy": {
                "finalization_confirmations": self.finalization_confirmations,
                "slippage_percent": str(self.slippage_percent),
                "deadline_window_seconds": self.deadline_window_seconds,
                "poll_interval_seconds": self.poll_interval_seconds,
                "receive_alert_after_hours": self.receive_alert_after_hours,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
