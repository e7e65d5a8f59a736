"""Swap provider classification and gas overhead estimation."""

from sendswap.swappers.gas import GasCalculator
from sendswap.swappers.registry import SWAPPER_CONFIGS, SwapperRegistry
from sendswap.swappers.types import SwapperConfig, SwapperName, SwapperType

__all__ = [
    "GasCalculator",
    "SWAPPER_CONFIGS",
    "SwapperConfig",
    "SwapperName",
    "SwapperRegistry",
    "SwapperType",
]
