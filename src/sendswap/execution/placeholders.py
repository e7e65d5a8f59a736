"""SERVICE_WALLET swappers whose transaction building is not implemented yet.

They stay selectable for quotes; execution reports a tagged
``needsImplementation`` result and the quote remains EXECUTING until an
operator completes or retries it.
"""

from sendswap.execution.base import SwapExecutionResult, SwapStrategy
from sendswap.quotes.models import Quote
from sendswap.swappers.types import SwapperName, SwapperType


class PlaceholderStrategy(SwapStrategy):
    swapper_type = SwapperType.SERVICE_WALLET

    def __init__(self, swapper_name: SwapperName):
        self.swapper_name = swapper_name

    async def execute(self, quote: Quote) -> SwapExecutionResult:
        return self.not_implemented(quote)


PLACEHOLDER_SWAPPERS = (
    SwapperName.JUPITER,
    SwapperName.RELAY,
    SwapperName.BUTTERSWAP,
    SwapperName.BEBOP,
)
