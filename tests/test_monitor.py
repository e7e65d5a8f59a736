"""Tests for the deposit monitor."""

import asyncio
from datetime import timedelta
from typing import Optional

import pytest

from sendswap.errors import ExternalUnavailableError
from sendswap.execution import ChainflipStrategy, PlaceholderStrategy, SwapExecutor
from sendswap.execution.base import SwapExecutionResult, SwapStrategy
from sendswap.quotes.models import AssetInfo, Quote, QuoteStatus
from sendswap.scanner.base import DepositScanner, SimulatedScanner, TransactionInfo
from sendswap.scanner.factory import ScannerFactory
from sendswap.scanner.monitor import DepositMonitor, find_matching_deposit, tolerance_threshold
from sendswap.swappers.types import SwapperName, SwapperType

from conftest import ETH_ASSET_ID, NOW, make_request

USDT_ASSET_ID = "eip155:1/erc20:0xdac17f958d2ee523a2206206994597c13d831ec7"
USDT_CHECKSUMMED = "eip155:1/erc20:0xdAC17F958D2ee523a2206206994597C13D831ec7"

ONE_ETH = 10**18


class ScriptedStrategy(SwapStrategy):
    """Returns queued results in order, repeating the last one."""

    swapper_type = SwapperType.DIRECT

    def __init__(self, swapper_name: SwapperName, *results: str):
        self.swapper_name = swapper_name
        self.script = list(results) or ["pending"]
        self.calls: list[str] = []

    async def execute(self, quote: Quote) -> SwapExecutionResult:
        self.calls.append(quote.quote_id)
        outcome = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if outcome == "complete":
            return self.success("0xoutput", swapId="1")
        if outcome == "fail":
            return self.failure("refunded", nonRetryable=True)
        if outcome == "crash":
            raise RuntimeError("provider exploded")
        return self.failure("Swap still processing: waiting", status="waiting")


class BrokenScanner(DepositScanner):
    async def get_deposits(self, address, since=None):
        raise ExternalUnavailableError("Unchained ETH", "HTTP 503")


class SlowScanner(DepositScanner):
    async def get_deposits(self, address, since=None):
        await asyncio.sleep(5)
        return []


def _tx(
    amount: int, confirmations: int = 12, txid: str = "0xdep", asset_id: Optional[str] = ETH_ASSET_ID
) -> TransactionInfo:
    return TransactionInfo(
        txid=txid,
        chain_id="eip155:1",
        to_address="0xabc",
        amount=amount,
        confirmations=confirmations,
        asset_id=asset_id,
    )


@pytest.fixture
def scanners(settings) -> ScannerFactory:
    return ScannerFactory(settings)


@pytest.fixture
def strategy() -> ScriptedStrategy:
    return ScriptedStrategy(SwapperName.CHAINFLIP, "complete")


@pytest.fixture
def monitor(lifecycle, scanners, strategy) -> DepositMonitor:
    executor = SwapExecutor([strategy, PlaceholderStrategy(SwapperName.JUPITER)])
    return DepositMonitor(lifecycle, scanners, executor, call_timeout=1.0, execution_timeout=1.0)


def _eth_scanner(scanners: ScannerFactory) -> SimulatedScanner:
    return scanners.get_scanner("eip155:1")


def _deposit(scanners, quote, amount: Optional[int] = None, **kwargs):
    return _eth_scanner(scanners).add_simulated_deposit(
        quote.deposit_address,
        int(quote.sell_amount_base_unit) if amount is None else amount,
        block_time=NOW + timedelta(minutes=1),
        **kwargs,
    )


class TestDepositMatching:
    """Tests for deposit amount matching."""

    def test_tolerance_threshold(self):
        assert tolerance_threshold(10_000, 10) == 9_990
        assert tolerance_threshold(ONE_ETH, 10) == ONE_ETH - ONE_ETH // 1000
        assert tolerance_threshold(5, 10) == 5

    def test_exact_match(self):
        assert find_matching_deposit([_tx(ONE_ETH)], ETH_ASSET_ID, ONE_ETH, 12, 10).txid == "0xdep"

    def test_within_tolerance(self):
        threshold = tolerance_threshold(ONE_ETH, 10)
        assert find_matching_deposit([_tx(threshold)], ETH_ASSET_ID, ONE_ETH, 12, 10) is not None
        assert find_matching_deposit([_tx(threshold - 1)], ETH_ASSET_ID, ONE_ETH, 12, 10) is None

    def test_over_deposit_matches(self):
        assert find_matching_deposit([_tx(ONE_ETH * 2)], ETH_ASSET_ID, ONE_ETH, 12, 10) is not None

    def test_unconfirmed_skipped(self):
        assert find_matching_deposit([_tx(ONE_ETH, confirmations=11)], ETH_ASSET_ID, ONE_ETH, 12, 10) is None

    def test_first_qualifying_transfer_wins(self):
        txs = [_tx(ONE_ETH // 2, txid="0xpartial"), _tx(ONE_ETH, txid="0xfull")]
        assert find_matching_deposit(txs, ETH_ASSET_ID, ONE_ETH, 12, 10).txid == "0xfull"

    def test_token_transfer_does_not_satisfy_native_quote(self):
        spam = _tx(ONE_ETH, txid="0xspam", asset_id=f"eip155:1/erc20:{'de' * 20}")
        assert find_matching_deposit([spam], ETH_ASSET_ID, ONE_ETH, 12, 10) is None

    def test_native_transfer_does_not_satisfy_token_quote(self):
        """100 USDT and 1e8 wei have the same base-unit amount."""
        native = _tx(10**8, txid="0xdust")
        assert find_matching_deposit([native], USDT_ASSET_ID, 10**8, 12, 10) is None
        token = _tx(10**8, txid="0xusdt", asset_id=USDT_CHECKSUMMED)
        assert find_matching_deposit([native, token], USDT_ASSET_ID, 10**8, 12, 10).txid == "0xusdt"

    def test_unknown_asset_never_matches(self):
        assert find_matching_deposit([_tx(ONE_ETH, asset_id=None)], ETH_ASSET_ID, ONE_ETH, 12, 10) is None


class TestMonitorTick:
    """Tests for a single monitor pass."""

    @pytest.mark.asyncio
    async def test_idle_tick(self, monitor: DepositMonitor):
        summary = await monitor.run_tick(NOW)
        assert summary.to_dict() == {
            "processed": 0, "expired": 0, "matched": 0, "executed": 0,
            "failed": 0, "pending": 0, "skipped": 0, "errors": 0,
        }

    @pytest.mark.asyncio
    async def test_expires_stale_quotes(self, monitor: DepositMonitor, lifecycle):
        quote = await lifecycle.create_quote(make_request(), now=NOW)

        summary = await monitor.run_tick(NOW + timedelta(minutes=15))

        assert summary.expired == 1
        assert summary.processed == 0
        assert (await lifecycle.get_quote(quote.quote_id)).status == QuoteStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_no_deposit_leaves_quote_active(self, monitor: DepositMonitor, lifecycle, strategy):
        quote = await lifecycle.create_quote(make_request(), now=NOW)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.processed == 1
        assert summary.matched == 0
        assert strategy.calls == []
        assert (await lifecycle.get_quote(quote.quote_id)).status == QuoteStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_deposit_then_direct_completion(self, monitor: DepositMonitor, lifecycle, scanners):
        quote = await lifecycle.create_quote(make_request(), now=NOW)
        tx = _deposit(scanners, quote)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.matched == 1
        assert summary.executed == 1
        stored = await lifecycle.get_quote(quote.quote_id)
        assert stored.status == QuoteStatus.COMPLETED
        assert stored.deposit_tx_hash == tx.txid
        assert stored.execution_tx_hash == "0xoutput"

    @pytest.mark.asyncio
    async def test_pending_swap_is_repolled(self, lifecycle, scanners):
        strategy = ScriptedStrategy(SwapperName.CHAINFLIP, "pending", "pending", "complete")
        monitor = DepositMonitor(lifecycle, scanners, SwapExecutor([strategy]))
        quote = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, quote)

        first = await monitor.run_tick(NOW + timedelta(minutes=2))
        after_first = await lifecycle.get_quote(quote.quote_id)
        second = await monitor.run_tick(NOW + timedelta(minutes=3))
        after_second = await lifecycle.get_quote(quote.quote_id)
        third = await monitor.run_tick(NOW + timedelta(minutes=4))

        assert (first.matched, first.pending) == (1, 1)
        assert after_first.status == QuoteStatus.EXECUTING
        assert second.pending == 1
        assert after_second.version == after_first.version
        assert third.executed == 1
        assert len(strategy.calls) == 3
        assert (await lifecycle.get_quote(quote.quote_id)).status == QuoteStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_executing_quote_outlives_ttl(self, lifecycle, scanners):
        strategy = ScriptedStrategy(SwapperName.CHAINFLIP, "pending")
        monitor = DepositMonitor(lifecycle, scanners, SwapExecutor([strategy]))
        quote = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, quote)

        await monitor.run_tick(NOW + timedelta(minutes=2))
        summary = await monitor.run_tick(NOW + timedelta(hours=2))

        assert summary.expired == 0
        assert (await lifecycle.get_quote(quote.quote_id)).status == QuoteStatus.EXECUTING

    @pytest.mark.asyncio
    async def test_non_retryable_failure(self, lifecycle, scanners):
        strategy = ScriptedStrategy(SwapperName.CHAINFLIP, "fail")
        monitor = DepositMonitor(lifecycle, scanners, SwapExecutor([strategy]))
        quote = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, quote)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.failed == 1
        stored = await lifecycle.get_quote(quote.quote_id)
        assert stored.status == QuoteStatus.FAILED
        assert stored.last_error == "refunded"

    @pytest.mark.asyncio
    async def test_placeholder_swapper_waits(self, monitor: DepositMonitor, lifecycle, scanners):
        quote = await lifecycle.create_quote(make_request(swapper_name="Jupiter"), now=NOW)
        _deposit(scanners, quote)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.pending == 1
        stored = await lifecycle.get_quote(quote.quote_id)
        assert stored.status == QuoteStatus.EXECUTING
        assert stored.metadata["needsImplementation"] is True

    @pytest.mark.asyncio
    async def test_partial_deposit_ignored(self, monitor: DepositMonitor, lifecycle, scanners):
        quote = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, quote, amount=ONE_ETH // 2)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.matched == 0
        assert (await lifecycle.get_quote(quote.quote_id)).status == QuoteStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_over_deposit_accepted(self, monitor: DepositMonitor, lifecycle, scanners):
        quote = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, quote, amount=ONE_ETH * 3)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.matched == 1

    @pytest.mark.asyncio
    async def test_token_deposit_ignored_for_native_quote(self, monitor: DepositMonitor, lifecycle, scanners):
        quote = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, quote, asset_id=USDT_ASSET_ID)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.matched == 0
        assert (await lifecycle.get_quote(quote.quote_id)).status == QuoteStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_native_deposit_ignored_for_token_quote(self, monitor: DepositMonitor, lifecycle, scanners):
        quote = await lifecycle.create_quote(
            make_request(
                sell_asset_id=USDT_ASSET_ID,
                sell_asset=AssetInfo(USDT_ASSET_ID, "USDT", "Tether USD", 6),
                sell_amount_base_unit="100000000",
            ),
            now=NOW,
        )
        _deposit(scanners, quote, txid="0xdust")

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))
        assert summary.matched == 0

        _deposit(scanners, quote, txid="0xusdt", asset_id=USDT_CHECKSUMMED)
        summary = await monitor.run_tick(NOW + timedelta(minutes=3))

        assert summary.matched == 1
        assert (await lifecycle.get_quote(quote.quote_id)).deposit_tx_hash == "0xusdt"

    @pytest.mark.asyncio
    async def test_unconfirmed_deposit_waits(self, monitor: DepositMonitor, lifecycle, scanners):
        quote = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, quote, confirmations=3)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.matched == 0

    @pytest.mark.asyncio
    async def test_deposit_to_other_address_ignored(self, monitor: DepositMonitor, lifecycle, scanners):
        first = await lifecycle.create_quote(make_request(), now=NOW)
        second = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, second)

        await monitor.run_tick(NOW + timedelta(minutes=2))

        assert (await lifecycle.get_quote(first.quote_id)).status == QuoteStatus.ACTIVE
        assert (await lifecycle.get_quote(second.quote_id)).status == QuoteStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_late_deposit_after_expiry(self, monitor: DepositMonitor, lifecycle, scanners):
        quote = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, quote)

        summary = await monitor.run_tick(NOW + timedelta(minutes=16))

        assert summary.expired == 1
        assert summary.matched == 0
        stored = await lifecycle.get_quote(quote.quote_id)
        assert stored.status == QuoteStatus.EXPIRED
        assert stored.deposit_tx_hash is None


class TestMonitorIsolation:
    """Tests for per-quote error isolation."""

    @pytest.mark.asyncio
    async def test_unavailable_scanner_skips_quote(self, monitor: DepositMonitor, lifecycle, scanners):
        scanners.register("eip155:1", BrokenScanner(_eth_scanner(scanners).chain))
        quote = await lifecycle.create_quote(make_request(), now=NOW)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.skipped == 1
        assert summary.errors == 0
        assert (await lifecycle.get_quote(quote.quote_id)).status == QuoteStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_scanner_timeout_skips_quote(self, monitor: DepositMonitor, lifecycle, scanners):
        monitor.call_timeout = 0.05
        scanners.register("eip155:1", SlowScanner(_eth_scanner(scanners).chain))
        await lifecycle.create_quote(make_request(), now=NOW)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.skipped == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_others(self, lifecycle, scanners):
        """A crashing strategy on one quote leaves the rest of the tick intact."""
        crashing = ScriptedStrategy(SwapperName.NEAR_INTENTS, "crash")
        working = ScriptedStrategy(SwapperName.CHAINFLIP, "complete")
        monitor = DepositMonitor(lifecycle, scanners, SwapExecutor([crashing, working]))

        bad = await lifecycle.create_quote(make_request(swapper_name="NearIntents"), now=NOW)
        good = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, bad)
        _deposit(scanners, good)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.matched == 2
        assert summary.executed == 1
        assert summary.pending == 1
        assert (await lifecycle.get_quote(good.quote_id)).status == QuoteStatus.COMPLETED
        crashed = await lifecycle.get_quote(bad.quote_id)
        assert crashed.status == QuoteStatus.EXECUTING
        assert "provider exploded" in crashed.last_error

    @pytest.mark.asyncio
    async def test_direct_status_api_down(self, lifecycle, scanners):
        """Unconfigured status API keeps the quote EXECUTING."""
        monitor = DepositMonitor(lifecycle, scanners, SwapExecutor([ChainflipStrategy("")]))
        quote = await lifecycle.create_quote(make_request(), now=NOW)
        _deposit(scanners, quote)

        summary = await monitor.run_tick(NOW + timedelta(minutes=2))

        assert summary.pending == 1
        stored = await lifecycle.get_quote(quote.quote_id)
        assert stored.status == QuoteStatus.EXECUTING
        assert stored.metadata["pendingExternalCheck"] is True

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self, monitor: DepositMonitor):
        async with monitor._tick_lock:
            assert await monitor.run_tick(NOW) is None

    @pytest.mark.asyncio
    async def test_run_stops(self, monitor: DepositMonitor):
        monitor.interval_seconds = 0.01
        task = asyncio.create_task(monitor.run())
        await asyncio.sleep(0.05)
        monitor.stop()
        await asyncio.wait_for(task, timeout=1.0)
        assert task.done()
