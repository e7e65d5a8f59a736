"""Swap strategy interfaces and the execution result type."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from sendswap.quotes.models import Quote
from sendswap.swappers.types import SwapperName, SwapperType

logger = logging.getLogger(__name__)


@dataclass
class SwapExecutionResult:
    """Outcome of one execution attempt.

    Produced fresh on every attempt. ``metadata`` carries provider
    diagnostics; the flag keys below decide how the quote is updated.
    """

    success: bool
    swapper_name: str
    swapper_type: SwapperType
    execution_tx_hash: Optional[str] = None
    error: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def pending_external_check(self) -> bool:
        """Outcome unknown (provider or chain unreachable); check again later."""
        return bool(self.metadata.get("pendingExternalCheck"))

    @property
    def needs_implementation(self) -> bool:
        return bool(self.metadata.get("needsImplementation"))

    @property
    def non_retryable(self) -> bool:
        """Confirmed permanent failure; the quote may be marked FAILED."""
        return bool(self.metadata.get("nonRetryable"))

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "execution_tx_hash": self.execution_tx_hash,
            "error": self.error,
            "swapper_name": self.swapper_name,
            "swapper_type": self.swapper_type.value,
            "metadata": self.metadata,
        }


class SwapStrategy(ABC):
    """Executes (or checks) the swap for one provider."""

    swapper_name: SwapperName
    swapper_type: SwapperType

    @property
    def name(self) -> str:
        return self.swapper_name.value

    @abstractmethod
    async def execute(self, quote: Quote) -> SwapExecutionResult:
        """Run one execution attempt for a quote with a confirmed deposit.

        Must be safe to call repeatedly for the same quote.
        """
        pass

    def success(self, tx_hash: str, **metadata) -> SwapExecutionResult:
        return SwapExecutionResult(
            success=True,
            swapper_name=self.name,
            swapper_type=self.swapper_type,
            execution_tx_hash=tx_hash,
            metadata=metadata,
        )

    def failure(self, error: str, **metadata) -> SwapExecutionResult:
        return SwapExecutionResult(
            success=False,
            swapper_name=self.name,
            swapper_type=self.swapper_type,
            error=error,
            metadata=metadata,
        )

    def pending(self, error: str, **metadata) -> SwapExecutionResult:
        """Unknown outcome: the swap may still settle."""
        return self.failure(error, pendingExternalCheck=True, **metadata)

    def not_implemented(self, quote: Quote, detail: str = "") -> SwapExecutionResult:
        """Tagged placeholder result for provider paths that are not built yet."""
        suffix = f" {detail}" if detail else ""
        logger.warning(f"{self.name} execution{suffix} not implemented (quote {quote.quote_id})")
        return self.failure(
            f"{self.name} swap execution{suffix} not yet implemented",
            receiveAddress=quote.receive_address,
            sellAmount=quote.sell_amount_base_unit,
            needsImplementation=True,
        )
