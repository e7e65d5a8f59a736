"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["DEBUG"] = "true"
os.environ["DRY_RUN"] = "true"

from sendswap.config import Settings
from sendswap.hdwallet.factory import WalletManager
from sendswap.ledger.database import build_engine, build_session_factory, init_db
from sendswap.ledger.repository import QuoteRepository
from sendswap.notifications.base import NotificationSink
from sendswap.quotes.models import Quote, QuoteRequest, QuoteStatus
from sendswap.quotes.routing import DryRunRouteSelector
from sendswap.quotes.service import QuoteLifecycleManager
from sendswap.utils.locks import clear_account_locks

TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)

ETH_ASSET_ID = "eip155:1/slip44:60"
BTC_ASSET_ID = "bip122:000000000019d6689c085ae165831e93/slip44:0"
ATOM_ASSET_ID = "cosmos:cosmoshub-4/slip44:118"
BTC_RECEIVE_ADDRESS = "bc1qxy2kgdygjrsqtzq2n0yrf2493p83kkfjhx0wlh"

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class RecordingNotifier(NotificationSink):
    """Collects status changes instead of sending them."""

    def __init__(self):
        self.events: list[tuple[str, Optional[QuoteStatus], QuoteStatus]] = []

    async def notify_status_changed(self, quote: Quote, previous_status: Optional[QuoteStatus]) -> None:
        self.events.append((quote.quote_id, previous_status, quote.status))


@pytest.fixture(autouse=True)
def reset_account_locks():
    """Clear account locks between tests."""
    clear_account_locks()
    yield
    clear_account_locks()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        environment="test",
        debug=False,
        dry_run=True,
        wallet_seed_phrase=None,
        telegram_bot_token="",
        chainflip_api_url="",
        near_intents_api_url="",
    )


@pytest_asyncio.fixture
async def db_engine(settings):
    """Create a file-backed SQLite engine for one test."""
    engine = build_engine(settings.database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def quote_repo(db_session: AsyncSession) -> QuoteRepository:
    return QuoteRepository(db_session)


@pytest.fixture
def wallets() -> WalletManager:
    """Simulated wallet (no seed)."""
    return WalletManager()


@pytest.fixture(scope="session")
def seed_wallets() -> WalletManager:
    """Seed-backed wallet using the BIP39 test mnemonic."""
    return WalletManager(TEST_MNEMONIC)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def lifecycle(session_factory, wallets, notifier) -> QuoteLifecycleManager:
    return QuoteLifecycleManager(
        session_factory,
        wallets,
        route_selector=DryRunRouteSelector(),
        notifier=notifier,
        ttl_minutes=15,
    )


def make_request(**overrides) -> QuoteRequest:
    """ETH -> BTC request via Chainflip, 1 ETH."""
    fields = dict(
        sell_asset_id=ETH_ASSET_ID,
        buy_asset_id=BTC_ASSET_ID,
        sell_amount_base_unit="1000000000000000000",
        receive_address=BTC_RECEIVE_ADDRESS,
        swapper_name="Chainflip",
        expected_buy_amount_base_unit="3900000",
    )
    fields.update(overrides)
    return QuoteRequest(**fields)
