"""Pytest configuration and fixtures."""

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "false"
os.environ["ADMIN_TOKEN"] = ""

from teleswap.assets import Network
from teleswap.bridge.fees import FeeEstimator
from teleswap.bridge.lifecycle import TeleSwapProvider
from teleswap.bridge.lockers import LockerSelector
from teleswap.bridge.payload import PayloadEncoder
from teleswap.clients.address import BitcoinAddressCodec
from teleswap.clients.base import TransactionInfo
from teleswap.config import TargetNetworkConfig
from teleswap.ledger.models import Base
from teleswap.ledger.repository import SwapRepository
from teleswap.routing.catalog import SwapCatalog
from teleswap.routing.quoter import RouteQuoter
from teleswap.utils.locks import clear_swap_locks
from teleswap.utils.scheduler import Scheduler

TELEBTC_ADDRESS = "0x3BF668Fe1ec79a84cA8481CEAD5dbb30d61cC685"
TRANSFER_ROUTER = "0x1111111111111111111111111111111111111111"
EXCHANGE_ROUTER = "0x2222222222222222222222222222222222222222"
BURN_ROUTER = "0x3333333333333333333333333333333333333333"
USDT_ADDRESS = "0xc2132D05D31c914a87C6611C10748AEb04B58e8F"
WMATIC_ADDRESS = "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270"
PAIR_ADDRESS = "0x4444444444444444444444444444444444444444"
POLYGON_RECIPIENT = "0x5555555555555555555555555555555555555555"
BITCOIN_RECIPIENT = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"
LOCKER_ADDRESS = "tb1qlockerxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx"
LOCKER_SCRIPT = "0x0014751e76e8199196d454941c45d1b3a323f1433bd6"


class FakeClock:
    """Clock whose sleep only records the requested delay."""

    def __init__(self, now=None):
        self._now = now or datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.sleeps: list[float] = []

    def now(self):
        return self._now

    def advance(self, delta):
        self._now = self._now + delta

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


def fee_response(
    total: str = "0.0001",
    teleporter: str = "0.00005",
    percentage: str = "0",
    transaction: str = "0.00002",
) -> dict:
    """A fee oracle response in the TeleportDAO shape."""
    return {
        "totalFeeInBTC": total,
        "teleporterFeeInBTC": teleporter,
        "teleporterPercentageFee": percentage,
        "TransactionFeeInBTC": transaction,
    }


def preferred_locker(
    address: Optional[str] = LOCKER_ADDRESS, script: Optional[str] = LOCKER_SCRIPT
) -> dict:
    return {"bitcoinAddress": address, "lockerInfo": {"lockerLockingScript": script}}


@pytest.fixture(autouse=True)
def reset_locks():
    """Clear swap locks before each test."""
    clear_swap_locks()


@pytest.fixture
def target_config() -> TargetNetworkConfig:
    """Target network configuration with test contract addresses."""
    return TargetNetworkConfig(
        network=Network.TESTNET,
        api_url="https://api.teleport.test",
        polygon_rpc_url="https://polygon.test",
        esplora_url="https://esplora.test/api",
        telebtc_address=TELEBTC_ADDRESS,
        cc_transfer_router_address=TRANSFER_ROUTER,
        cc_exchange_router_address=EXCHANGE_ROUTER,
        cc_burn_router_address=BURN_ROUTER,
    )


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def swap_repo(db_session: AsyncSession) -> SwapRepository:
    """Create swap repository for testing."""
    return SwapRepository(db_session)


@pytest.fixture
def session_factory(db_engine):
    """get_db() equivalent bound to the test engine."""
    factory = async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def get_test_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return get_test_db


@pytest.fixture
def fee_oracle():
    oracle = MagicMock()
    oracle.calculate_fee = AsyncMock(return_value=fee_response())
    return oracle


@pytest.fixture
def locker_registry():
    registry = MagicMock()
    registry.get_lockers = AsyncMock(return_value=preferred_locker())
    return registry


@pytest.fixture
def contracts():
    """Destination chain contracts with a direct TELEBTC/USDT pool."""
    mock = MagicMock()
    mock.get_pair = AsyncMock(return_value=PAIR_ADDRESS)
    mock.get_amounts_out = AsyncMock(return_value=[990000, 6123456789])
    mock.get_latest_block_timestamp = AsyncMock(return_value=1_700_000_000)
    mock.is_request_used = AsyncMock(return_value=False)
    mock.encode_function_data = MagicMock(side_effect=lambda method, args: method.encode())
    return mock


@pytest.fixture
def bitcoin_client():
    client = MagicMock()
    client.send_transaction = AsyncMock(return_value="ab" * 32)
    client.get_transaction_by_hash = AsyncMock(
        return_value=TransactionInfo(tx_hash="ab" * 32, confirmations=0)
    )
    client.get_total_fees = AsyncMock(return_value={})
    return client


@pytest.fixture
def polygon_client():
    client = MagicMock()
    client.send_transaction = AsyncMock(side_effect=["0xapprove", "0xburn"])
    client.get_transaction_by_hash = AsyncMock(
        return_value=TransactionInfo(tx_hash="0xapprove", confirmations=0)
    )
    return client


@pytest.fixture
def wallet(bitcoin_client, polygon_client):
    """Wallet handing out the Bitcoin client for BTC and the Polygon client otherwise."""
    mock = MagicMock()
    mock.get_client = MagicMock(
        side_effect=lambda asset, account_id=None: bitcoin_client if asset == "BTC" else polygon_client
    )

    async def get_address(asset, account_id=None):
        return BITCOIN_RECIPIENT if asset == "BTC" else POLYGON_RECIPIENT

    mock.get_address = AsyncMock(side_effect=get_address)
    return mock


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider(
    target_config,
    fee_oracle,
    locker_registry,
    contracts,
    wallet,
    session_factory,
    fake_clock,
) -> TeleSwapProvider:
    """Provider wired to mocks; polling gives up after one attempt."""
    fee_estimator = FeeEstimator(fee_oracle)
    quoter = RouteQuoter(contracts, target_config)
    return TeleSwapProvider(
        catalog=SwapCatalog(),
        fee_estimator=fee_estimator,
        quoter=quoter,
        locker_selector=LockerSelector(locker_registry),
        payload_encoder=PayloadEncoder(fee_estimator, quoter, contracts, target_config),
        wallet=wallet,
        contracts=contracts,
        address_codec=BitcoinAddressCodec(testnet=True),
        config=target_config,
        scheduler=Scheduler(interval_seconds=5, lock_timeout_seconds=1, clock=fake_clock, max_attempts=1),
        finalization_confirmations=3,
        session_factory=session_factory,
    )

