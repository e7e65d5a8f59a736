"""Deposit monitor.

Each tick expires stale quotes, scans the deposit address of every ACTIVE
quote on its sell chain, moves matched quotes to DEPOSIT_RECEIVED and
hands them to the swap executor. Quotes already awaiting execution are
re-polled on every tick until they complete or fail.

``run_tick`` takes ``now`` so it can be driven from tests; ``run`` is the
scheduler loop around it.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable, Optional

from sendswap.errors import ConcurrentUpdateError, ExternalUnavailableError, InvalidTransitionError
from sendswap.execution.base import SwapExecutionResult
from sendswap.execution.executor import SwapExecutor
from sendswap.quotes.models import Quote, QuoteStatus
from sendswap.quotes.service import QuoteLifecycleManager
from sendswap.scanner.base import TransactionInfo
from sendswap.scanner.factory import ScannerFactory

logger = logging.getLogger(__name__)

# Upper bound for one execute_swap call, account lock wait included
DEFAULT_EXECUTION_TIMEOUT = 60.0

# Block times may trail the quote's creation time slightly
SCAN_SINCE_MARGIN = timedelta(minutes=5)


@dataclass
class TickSummary:
    processed: int = 0
    expired: int = 0
    matched: int = 0
    executed: int = 0
    failed: int = 0
    pending: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def tolerance_threshold(expected: int, tolerance_bps: int) -> int:
    """Smallest amount accepted for ``expected`` (tolerance below only)."""
    return expected - expected * tolerance_bps // 10_000


def find_matching_deposit(
    txs: Iterable[TransactionInfo],
    asset_id: str,
    expected: int,
    min_confirmations: int,
    tolerance_bps: int,
) -> Optional[TransactionInfo]:
    """First confirmed transfer covering ``expected`` within tolerance.

    Transfers of any other asset, partial and unconfirmed transfers are
    skipped; over-deposits match.
    """
    threshold = tolerance_threshold(expected, tolerance_bps)
    for tx in txs:
        if not tx.is_asset(asset_id):
            logger.info(f"Ignoring {tx.txid}: carries {tx.asset_id}, expected {asset_id}")
            continue
        if not tx.has_confirmations(min_confirmations):
            logger.debug(f"Deposit {tx.txid} has {tx.confirmations}/{min_confirmations} confirmations")
            continue
        if tx.amount < threshold:
            logger.info(f"Partial deposit {tx.txid}: {tx.amount} < {expected} expected, skipping")
            continue
        if tx.amount > expected:
            logger.info(f"Over-deposit {tx.txid}: {tx.amount} > {expected} expected, accepting")
        return tx
    return None


class DepositMonitor:
    """Polls chains for deposits and drives quotes through execution."""

    def __init__(
        self,
        quotes: QuoteLifecycleManager,
        scanners: ScannerFactory,
        executor: SwapExecutor,
        interval_seconds: float = 30,
        concurrency: int = 10,
        call_timeout: float = 15.0,
        execution_timeout: float = DEFAULT_EXECUTION_TIMEOUT,
        tolerance_bps: int = 10,
    ):
        self.quotes = quotes
        self.scanners = scanners
        self.executor = executor
        self.interval_seconds = interval_seconds
        self.concurrency = concurrency
        self.call_timeout = call_timeout
        self.execution_timeout = execution_timeout
        self.tolerance_bps = tolerance_bps
        self._tick_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()

    # ===================
    # Tick
    # ===================

    async def run_tick(self, now: Optional[datetime] = None) -> Optional[TickSummary]:
        """Run one monitoring pass. Returns None if a tick is already running."""
        if self._tick_lock.locked():
            logger.warning("Previous monitor tick still running, skipping")
            return None

        async with self._tick_lock:
            now = now or datetime.now(timezone.utc)
            summary = TickSummary()

            summary.expired = await self.quotes.expire_due(now)
            active, awaiting = await self.quotes.list_quotes_to_monitor(now)
            summary.processed = len(active) + len(awaiting)

            semaphore = asyncio.Semaphore(self.concurrency)
            await asyncio.gather(
                *(self._isolated(semaphore, self._check_deposit, q, now, summary) for q in active),
                *(self._isolated(semaphore, self._execute, q, now, summary) for q in awaiting),
            )

            logger.info(
                f"Monitor tick: processed={summary.processed} expired={summary.expired} "
                f"matched={summary.matched} executed={summary.executed} failed={summary.failed} "
                f"pending={summary.pending} skipped={summary.skipped} errors={summary.errors}"
            )
            return summary

    async def _isolated(
        self,
        semaphore: asyncio.Semaphore,
        handler: Callable[[Quote, datetime, TickSummary], Awaitable[None]],
        quote: Quote,
        now: datetime,
        summary: TickSummary,
    ) -> None:
        async with semaphore:
            try:
                await handler(quote, now, summary)
            except ConcurrentUpdateError as e:
                logger.debug(f"Skipping {quote.quote_id}: {e}")
                summary.skipped += 1
            except InvalidTransitionError as e:
                logger.warning(f"Skipping {quote.quote_id}: {e}")
                summary.skipped += 1
            except Exception as e:
                logger.exception(f"Error processing quote {quote.quote_id}: {e}")
                summary.errors += 1

    async def _check_deposit(self, quote: Quote, now: datetime, summary: TickSummary) -> None:
        scanner = self.scanners.get_scanner(quote.deposit_chain_id)
        since = quote.created_at - SCAN_SINCE_MARGIN

        try:
            txs = await asyncio.wait_for(
                scanner.get_deposits(quote.deposit_address, since),
                timeout=self.call_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Deposit check timed out for {quote.quote_id} ({quote.deposit_address})")
            summary.skipped += 1
            return
        except ExternalUnavailableError as e:
            logger.warning(f"Deposit check unavailable for {quote.quote_id}: {e}")
            summary.skipped += 1
            return

        tx = find_matching_deposit(
            txs,
            quote.sell_asset.asset_id,
            int(quote.sell_amount_base_unit),
            scanner.min_confirmations,
            self.tolerance_bps,
        )
        if tx is None:
            return

        quote = await self.quotes.mark_deposit_received(quote, tx.txid, now)
        summary.matched += 1
        await self._execute(quote, now, summary)

    async def _execute(self, quote: Quote, now: datetime, summary: TickSummary) -> None:
        if not self.executor.is_swap_pending(quote):
            summary.skipped += 1
            return

        try:
            result = await asyncio.wait_for(self.executor.execute_swap(quote), timeout=self.execution_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Execution timed out for {quote.quote_id}")
            result = SwapExecutionResult(
                success=False,
                swapper_name=quote.swapper_name,
                swapper_type=quote.swapper_type,
                error="Swap execution timed out",
                metadata={"pendingExternalCheck": True},
            )

        updated = await self.quotes.apply_execution_result(quote, result, now)
        if updated.status == QuoteStatus.COMPLETED:
            summary.executed += 1
        elif updated.status == QuoteStatus.FAILED:
            summary.failed += 1
        else:
            summary.pending += 1

    # ===================
    # Scheduler
    # ===================

    async def run(self) -> None:
        """Tick every ``interval_seconds`` until stopped."""
        logger.info(
            f"Deposit monitor started (interval: {self.interval_seconds}s, "
            f"concurrency: {self.concurrency}, tolerance: {self.tolerance_bps} bps)"
        )
        self._stop_event.clear()
        while not self._stop_event.is_set():
            try:
                await self.run_tick()
            except Exception as e:
                logger.error(f"Monitor tick failed: {e}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Deposit monitor stopped")

    def stop(self) -> None:
        self._stop_event.set()
