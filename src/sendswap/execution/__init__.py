"""Swap execution strategies and the executor that routes to them."""

from sendswap.execution.base import SwapExecutionResult, SwapStrategy
from sendswap.execution.direct import ChainflipStrategy, NearIntentsStrategy
from sendswap.execution.executor import SwapExecutor
from sendswap.execution.memo import MayachainStrategy, ThorchainStrategy
from sendswap.execution.placeholders import PLACEHOLDER_SWAPPERS, PlaceholderStrategy

__all__ = [
    "ChainflipStrategy",
    "MayachainStrategy",
    "NearIntentsStrategy",
    "PLACEHOLDER_SWAPPERS",
    "PlaceholderStrategy",
    "SwapExecutionResult",
    "SwapExecutor",
    "SwapStrategy",
    "ThorchainStrategy",
]
