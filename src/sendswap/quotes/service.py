"""Quote lifecycle manager.

Creates quotes, answers lookups and applies every status transition
through a version-checked store update. The deposit monitor and the
HTTP layer both go through this class; nothing else writes quotes.
"""

import asyncio
import logging
import re
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sendswap.chains import ChainConfig, build_payment_uri, get_chain, resolve_chain
from sendswap.errors import ConcurrentUpdateError, QuoteNotFoundError, ValidationError
from sendswap.execution.base import SwapExecutionResult
from sendswap.hdwallet.factory import WalletManager
from sendswap.ledger.database import session_scope
from sendswap.ledger.repository import QuoteRepository
from sendswap.notifications.base import LoggingNotifier, NotificationSink
from sendswap.quotes.models import TERMINAL_STATUSES, AssetInfo, Quote, QuoteRequest, QuoteStatus
from sendswap.quotes.routing import RouteSelector
from sendswap.quotes.state import ensure_transition, validate_fields
from sendswap.swappers.gas import GasCalculator
from sendswap.swappers.registry import SwapperRegistry
from sendswap.swappers.types import SwapperName, SwapperType

logger = logging.getLogger(__name__)

DEFAULT_QUOTE_TTL_MINUTES = 15


def new_quote_id() -> str:
    return f"quote_{uuid.uuid4().hex[:16]}"


def quote_qr_data(quote: Quote) -> str:
    """Payment URI for the deposit QR code."""
    chain = get_chain(quote.deposit_chain_id)
    if chain is None:
        return quote.deposit_address
    return build_payment_uri(chain, quote.deposit_address, quote.sell_amount_base_unit)


# A uint256 has at most 78 decimal digits
MAX_AMOUNT_DIGITS = 78
_BASE_UNITS = re.compile(rf"[0-9]{{1,{MAX_AMOUNT_DIGITS}}}")


def parse_base_units(value: Optional[str], label: str, allow_zero: bool = False) -> int:
    """Parse a base-unit amount (ASCII digits only) or raise ValidationError."""
    text = (value or "").strip()
    if not _BASE_UNITS.fullmatch(text):
        raise ValidationError(f"Invalid {label}: {text[:40]!r} (expected an integer in base units)")
    amount = int(text)
    if amount == 0 and not allow_zero:
        raise ValidationError(f"Invalid {label}: must be positive")
    return amount


def _resolve_asset(asset_id: str, provided: Optional[AssetInfo]) -> AssetInfo:
    """Use the caller's descriptor, or describe a chain's native asset."""
    if provided is not None:
        return provided
    chain = resolve_chain(asset_id)
    if chain is not None and chain.native_asset_id == asset_id:
        return AssetInfo(
            asset_id=asset_id,
            symbol=chain.native_symbol,
            name=chain.native_name,
            precision=chain.decimals,
        )
    raise ValidationError(f"Asset details required for {asset_id}")


class QuoteLifecycleManager:
    """Quote creation, lookup and state transitions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        wallets: WalletManager,
        registry: Optional[SwapperRegistry] = None,
        gas: Optional[GasCalculator] = None,
        route_selector: Optional[RouteSelector] = None,
        notifier: Optional[NotificationSink] = None,
        ttl_minutes: int = DEFAULT_QUOTE_TTL_MINUTES,
    ):
        self.session_factory = session_factory
        self.wallets = wallets
        self.registry = registry or SwapperRegistry()
        self.gas = gas or GasCalculator()
        self.route_selector = route_selector
        self.notifier = notifier or LoggingNotifier()
        self.ttl = timedelta(minutes=ttl_minutes)
        self._pending_notifications: set[asyncio.Task] = set()

    # ===================
    # Creation and lookup
    # ===================

    async def create_quote(self, request: QuoteRequest, now: Optional[datetime] = None) -> Quote:
        """Create an ACTIVE quote with a fresh deposit address.

        Raises:
            ValidationError: bad amount, address, asset or chain
            InvalidSwapperError: preferred swapper unknown or excluded
        """
        now = now or datetime.now(timezone.utc)

        sell_amount = str(parse_base_units(request.sell_amount_base_unit, "sell amount"))
        receive_address = (request.receive_address or "").strip()
        if not receive_address:
            raise ValidationError("Receive address is required")

        sell_chain = resolve_chain(request.sell_asset_id)
        if sell_chain is None:
            raise ValidationError(f"Unsupported chain for asset: {request.sell_asset_id}")

        sell_asset = _resolve_asset(request.sell_asset_id, request.sell_asset)
        buy_asset = _resolve_asset(request.buy_asset_id, request.buy_asset)

        swapper_name, expected_buy = await self._resolve_swapper(request, sell_asset, buy_asset, sell_amount)
        swapper_type = self.registry.classify(swapper_name)

        gas_overhead = None
        if swapper_type == SwapperType.SERVICE_WALLET:
            gas_overhead = self.gas.calculate(sell_chain.chain_id, swapper_type)
            logger.debug(f"Gas overhead for {swapper_name.value} on {sell_chain.chain_id}: {gas_overhead}")

        index, deposit_address = await self._allocate_deposit_address(sell_chain)

        quote = Quote(
            quote_id=new_quote_id(),
            sell_asset=sell_asset,
            buy_asset=buy_asset,
            sell_amount_base_unit=sell_amount,
            expected_buy_amount_base_unit=expected_buy,
            deposit_address=deposit_address,
            deposit_chain_id=sell_chain.chain_id,
            deposit_address_index=index,
            receive_address=receive_address,
            swapper_name=swapper_name.value,
            swapper_type=swapper_type,
            created_at=now,
            expires_at=now + self.ttl,
            gas_overhead_base_unit=gas_overhead,
        )

        async with session_scope(self.session_factory) as session:
            await QuoteRepository(session).create(quote)

        logger.info(
            f"Quote created: {quote.quote_id}, swapper: {quote.swapper_name}, "
            f"type: {swapper_type.value}, deposit: {deposit_address} (#{index} on {sell_chain.symbol}), "
            f"expires: {quote.expires_at.isoformat()}"
        )
        return quote

    async def _resolve_swapper(
        self,
        request: QuoteRequest,
        sell_asset: AssetInfo,
        buy_asset: AssetInfo,
        sell_amount: str,
    ) -> tuple[SwapperName, str]:
        expected = request.expected_buy_amount_base_unit
        if expected is not None:
            expected = str(parse_base_units(expected, "expected buy amount", allow_zero=True))

        if request.swapper_name:
            name = self.registry.validate_for_quote(request.swapper_name)
            if expected is None and self.route_selector is not None:
                route = await self.route_selector.select_route(sell_asset, buy_asset, sell_amount)
                expected = route.expected_buy_amount_base_unit if route else None
            return name, expected or "0"

        if self.route_selector is None:
            raise ValidationError("No swapper specified and no route selector configured")

        route = await self.route_selector.select_route(sell_asset, buy_asset, sell_amount)
        if route is None:
            raise ValidationError(f"No route available for {sell_asset.symbol} -> {buy_asset.symbol}")
        name = self.registry.validate_for_quote(route.swapper_name)
        return name, expected or route.expected_buy_amount_base_unit

    async def _allocate_deposit_address(self, chain: ChainConfig) -> tuple[int, str]:
        """Reserve the next index for ``chain`` and derive its address.

        The index is committed on its own so concurrent creators never see
        the same value; an aborted creation leaves a gap.
        """
        async with session_scope(self.session_factory) as session:
            index = await QuoteRepository(session).next_address_index(chain.chain_id)
        info = self.wallets.derive_address(chain.chain_id, index)
        return index, info.address

    async def get_quote(self, quote_id: str) -> Quote:
        """Get a quote by id. Never mutates the stored record.

        Raises:
            QuoteNotFoundError: no such quote
        """
        async with session_scope(self.session_factory) as session:
            quote = await QuoteRepository(session).get(quote_id)
        if quote is None:
            raise QuoteNotFoundError(quote_id)
        return quote

    async def get_quote_by_deposit_address(self, deposit_address: str) -> Optional[Quote]:
        """ACTIVE quote waiting on ``deposit_address``, if any."""
        async with session_scope(self.session_factory) as session:
            return await QuoteRepository(session).get_active_by_deposit_address(deposit_address)

    async def list_quotes_to_monitor(self, now: datetime) -> tuple[list[Quote], list[Quote]]:
        """ACTIVE quotes still accepting deposits, and quotes awaiting execution."""
        async with session_scope(self.session_factory) as session:
            repo = QuoteRepository(session)
            active = await repo.list_by_status([QuoteStatus.ACTIVE], expires_after=now)
            awaiting = await repo.list_by_status([QuoteStatus.DEPOSIT_RECEIVED, QuoteStatus.EXECUTING])
        return active, awaiting

    async def stats(self) -> dict[str, int]:
        async with session_scope(self.session_factory) as session:
            return await QuoteRepository(session).count_by_status()

    # ===================
    # Transitions
    # ===================

    async def _transition(self, quote: Quote, target: QuoteStatus, **changes) -> Quote:
        """Validate and store one transition; the caller's object is left as-is."""
        ensure_transition(quote, target)
        updated = replace(quote, status=target, **changes)
        validate_fields(updated)

        async with session_scope(self.session_factory) as session:
            await QuoteRepository(session).compare_and_swap(updated, quote.status, quote.version)

        if target != quote.status:
            logger.info(f"Quote {quote.quote_id}: {quote.status.value} -> {target.value}")
            if target in TERMINAL_STATUSES:
                self._notify(updated, quote.status)
        return updated

    def _notify(self, quote: Quote, previous: QuoteStatus) -> None:
        task = asyncio.create_task(self._deliver(quote, previous))
        self._pending_notifications.add(task)
        task.add_done_callback(self._pending_notifications.discard)

    async def _deliver(self, quote: Quote, previous: QuoteStatus) -> None:
        try:
            await self.notifier.notify_status_changed(quote, previous)
        except Exception as e:
            logger.error(f"Notification for {quote.quote_id} failed: {e}")

    async def drain_notifications(self) -> None:
        """Wait for in-flight notifications (shutdown and tests)."""
        if self._pending_notifications:
            await asyncio.gather(*list(self._pending_notifications), return_exceptions=True)

    async def expire(self, quote: Quote) -> Quote:
        return await self._transition(quote, QuoteStatus.EXPIRED)

    async def expire_due(self, now: datetime) -> int:
        """Expire every ACTIVE quote whose TTL has passed. Returns the count."""
        async with session_scope(self.session_factory) as session:
            due = await QuoteRepository(session).list_by_status([QuoteStatus.ACTIVE], expires_before=now)

        expired = 0
        for quote in due:
            try:
                await self.expire(quote)
                expired += 1
            except ConcurrentUpdateError:
                logger.debug(f"Quote {quote.quote_id} changed before expiry, skipping")
        if expired:
            logger.info(f"Expired {expired} quote(s)")
        return expired

    async def mark_deposit_received(self, quote: Quote, deposit_tx_hash: str, now: Optional[datetime] = None) -> Quote:
        now = now or datetime.now(timezone.utc)
        if quote.status == QuoteStatus.ACTIVE and quote.is_expired_at(now):
            raise ValidationError(f"Quote {quote.quote_id} has expired")
        updated = await self._transition(quote, QuoteStatus.DEPOSIT_RECEIVED, deposit_tx_hash=deposit_tx_hash)
        logger.info(f"Deposit received for quote {quote.quote_id}: {deposit_tx_hash}")
        return updated

    async def mark_executing(self, quote: Quote) -> Quote:
        return await self._transition(quote, QuoteStatus.EXECUTING)

    async def apply_execution_result(
        self,
        quote: Quote,
        result: SwapExecutionResult,
        now: Optional[datetime] = None,
    ) -> Quote:
        """Fold an execution attempt into the quote.

        Success completes the quote; only a non-retryable failure fails it.
        Anything else leaves it EXECUTING for the next poll.
        """
        now = now or datetime.now(timezone.utc)
        if quote.status == QuoteStatus.DEPOSIT_RECEIVED:
            quote = await self.mark_executing(quote)

        metadata = {**quote.metadata, **result.metadata}

        if result.success:
            return await self._transition(
                quote,
                QuoteStatus.COMPLETED,
                execution_tx_hash=result.execution_tx_hash,
                executed_at=now,
                last_error=None,
                metadata=metadata,
            )

        if result.non_retryable:
            logger.error(f"Quote {quote.quote_id} failed permanently: {result.error}")
            return await self._transition(quote, QuoteStatus.FAILED, last_error=result.error, metadata=metadata)

        if quote.last_error == result.error and quote.metadata == metadata:
            return quote
        return await self._transition(quote, QuoteStatus.EXECUTING, last_error=result.error, metadata=metadata)
