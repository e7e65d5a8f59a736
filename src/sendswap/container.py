"""Composition root.

Builds every long-lived service once from ``Settings`` and wires them
together. The HTTP app and the monitor task share one container.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from aiogram import Bot
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from sendswap.chains import ChainFamily, supported_chains
from sendswap.config import Settings
from sendswap.execution import (
    PLACEHOLDER_SWAPPERS,
    ChainflipStrategy,
    MayachainStrategy,
    NearIntentsStrategy,
    PlaceholderStrategy,
    SwapExecutor,
    ThorchainStrategy,
)
from sendswap.hdwallet.factory import WalletManager
from sendswap.ledger.database import build_engine, build_session_factory, init_db
from sendswap.notifications import LoggingNotifier, NotificationSink, TelegramNotifier
from sendswap.quotes.routing import DryRunRouteSelector, RouteSelector
from sendswap.quotes.service import QuoteLifecycleManager
from sendswap.scanner.factory import ScannerFactory
from sendswap.scanner.monitor import DepositMonitor
from sendswap.signing import EvmRpcClient, LocalSigner
from sendswap.swappers import GasCalculator, SwapperRegistry

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    http_client: httpx.AsyncClient
    wallets: WalletManager
    registry: SwapperRegistry
    gas: GasCalculator
    notifier: NotificationSink
    quotes: QuoteLifecycleManager
    scanners: ScannerFactory
    executor: SwapExecutor
    monitor: DepositMonitor

    async def init(self) -> None:
        await init_db(self.engine)

    async def close(self) -> None:
        self.monitor.stop()
        await self.quotes.drain_notifications()
        await self.scanners.close()
        await self.notifier.close()
        await self.http_client.aclose()
        await self.engine.dispose()


def build_notifier(settings: Settings) -> NotificationSink:
    if settings.telegram_bot_token and settings.telegram_notify_chat_id:
        return TelegramNotifier(Bot(token=settings.telegram_bot_token), settings.telegram_notify_chat_id)
    logger.info("Telegram notifications not configured - logging status changes only")
    return LoggingNotifier()


def build_executor(
    settings: Settings,
    wallets: WalletManager,
    registry: SwapperRegistry,
    client: Optional[httpx.AsyncClient] = None,
) -> SwapExecutor:
    """Register one strategy per supported swapper."""
    timeout = settings.external_call_timeout
    signer = None if wallets.is_simulated else LocalSigner(wallets)

    rpc_clients = {}
    for chain in supported_chains(ChainFamily.EVM):
        url = settings.get_rpc_url(chain.symbol)
        if url:
            rpc_clients[chain.chain_id] = EvmRpcClient(url, timeout, client)

    executor = SwapExecutor(registry=registry)
    executor.register(ChainflipStrategy(settings.chainflip_api_url, client, timeout))
    executor.register(
        NearIntentsStrategy(settings.near_intents_api_url, settings.near_intents_api_key, client, timeout)
    )
    executor.register(
        ThorchainStrategy(settings.thornode_url, signer, rpc_clients, client, timeout, dry_run=settings.dry_run)
    )
    executor.register(
        MayachainStrategy(settings.mayanode_url, signer, rpc_clients, client, timeout, dry_run=settings.dry_run)
    )
    for name in PLACEHOLDER_SWAPPERS:
        executor.register(PlaceholderStrategy(name))

    missing = [n.value for n in registry.valid_swappers() if executor.get_strategy(n.value) is None]
    if missing:
        logger.warning(f"No execution strategy registered for: {', '.join(missing)}")
    return executor


def build_container(
    settings: Settings,
    route_selector: Optional[RouteSelector] = None,
    notifier: Optional[NotificationSink] = None,
) -> ServiceContainer:
    engine = build_engine(settings.database_url, echo=settings.debug and not settings.is_production)
    session_factory = build_session_factory(engine)
    http_client = httpx.AsyncClient(timeout=settings.external_call_timeout)

    wallets = WalletManager(settings.wallet_seed_phrase, settings.wallet_passphrase)
    registry = SwapperRegistry()
    gas = GasCalculator()
    notifier = notifier or build_notifier(settings)

    if route_selector is None and settings.dry_run:
        route_selector = DryRunRouteSelector()

    quotes = QuoteLifecycleManager(
        session_factory,
        wallets,
        registry=registry,
        gas=gas,
        route_selector=route_selector,
        notifier=notifier,
        ttl_minutes=settings.quote_ttl_minutes,
    )
    scanners = ScannerFactory(settings, http_client)
    executor = build_executor(settings, wallets, registry, http_client)
    monitor = DepositMonitor(
        quotes,
        scanners,
        executor,
        interval_seconds=settings.monitor_interval_seconds,
        concurrency=settings.monitor_concurrency,
        call_timeout=settings.external_call_timeout,
        tolerance_bps=settings.deposit_tolerance_bps,
    )

    return ServiceContainer(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        http_client=http_client,
        wallets=wallets,
        registry=registry,
        gas=gas,
        notifier=notifier,
        quotes=quotes,
        scanners=scanners,
        executor=executor,
        monitor=monitor,
    )
