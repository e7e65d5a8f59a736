"""Swap executor: routes a quote with a confirmed deposit to its strategy."""

import logging
from typing import Iterable, Optional

from sendswap.errors import ExecutionError, ExternalUnavailableError
from sendswap.execution.base import SwapExecutionResult, SwapStrategy
from sendswap.quotes.models import TERMINAL_STATUSES, Quote
from sendswap.swappers.registry import SwapperRegistry
from sendswap.swappers.types import SwapperType
from sendswap.utils.locks import LockTimeoutError

logger = logging.getLogger(__name__)


class SwapExecutor:
    """Dispatches execution by swapper name.

    Never raises: every strategy error becomes a failed
    ``SwapExecutionResult`` and the caller decides what it means for the
    quote.
    """

    def __init__(self, strategies: Iterable[SwapStrategy] = (), registry: Optional[SwapperRegistry] = None):
        self.registry = registry or SwapperRegistry()
        self._strategies: dict[str, SwapStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: SwapStrategy) -> None:
        self._strategies[strategy.name] = strategy

    def get_strategy(self, swapper_name: str) -> Optional[SwapStrategy]:
        return self._strategies.get(swapper_name)

    @property
    def registered(self) -> list[str]:
        return sorted(self._strategies)

    async def execute_swap(self, quote: Quote) -> SwapExecutionResult:
        logger.info(
            f"Executing swap for quote {quote.quote_id}: {quote.swapper_name} "
            f"({quote.swapper_type.value}) {quote.sell_asset.symbol} -> {quote.buy_asset.symbol}"
        )

        strategy = self._strategies.get(quote.swapper_name)
        if strategy is None:
            logger.error(f"No execution strategy for swapper {quote.swapper_name} (quote {quote.quote_id})")
            return SwapExecutionResult(
                success=False,
                swapper_name=quote.swapper_name,
                swapper_type=quote.swapper_type,
                error=f"Unsupported swapper: {quote.swapper_name}",
                metadata={"nonRetryable": True},
            )

        if quote.execution_tx_hash and quote.swapper_type == SwapperType.SERVICE_WALLET:
            logger.info(f"Quote {quote.quote_id} already executed: {quote.execution_tx_hash}")
            return strategy.success(quote.execution_tx_hash, alreadyExecuted=True)

        try:
            result = await strategy.execute(quote)
        except ExecutionError as e:
            logger.error(f"{strategy.name} execution failed for {quote.quote_id}: {e}")
            metadata = {"nonRetryable": True} if e.non_retryable else {}
            return strategy.failure(str(e), **metadata)
        except (ExternalUnavailableError, LockTimeoutError) as e:
            logger.warning(f"{strategy.name} execution for {quote.quote_id} deferred: {e}")
            return strategy.pending(str(e))
        except Exception as e:
            logger.exception(f"Unexpected {strategy.name} execution error for {quote.quote_id}")
            return strategy.failure(f"{strategy.name} execution error: {e}")

        if result.success:
            logger.info(f"Swap {quote.quote_id} executed: {result.execution_tx_hash}")
        else:
            logger.debug(f"Swap {quote.quote_id} not complete: {result.error}")
        return result

    def is_swap_pending(self, quote: Quote) -> bool:
        """True while the swap may still need execution or status checks."""
        if quote.execution_tx_hash:
            return False
        return quote.status not in TERMINAL_STATUSES

    async def retry_swap(self, quote: Quote) -> SwapExecutionResult:
        logger.info(f"Retrying swap for quote {quote.quote_id}")
        return await self.execute_swap(quote)
