"""Route selection interface used when a quote request names no swapper.

Aggregating live provider quotes is out of scope here; the dry-run selector
prices with simulated USD rates so the full lifecycle can run without
provider access.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Optional

from sendswap.quotes.models import AssetInfo
from sendswap.swappers.types import SwapperName

logger = logging.getLogger(__name__)


@dataclass
class RouteChoice:
    """Best route for a pair, as chosen by a selector."""

    swapper_name: SwapperName
    expected_buy_amount_base_unit: str
    is_simulated: bool = False


class RouteSelector(ABC):
    """Picks the swapper (and expected output) for a sell/buy pair."""

    @abstractmethod
    async def select_route(
        self,
        sell_asset: AssetInfo,
        buy_asset: AssetInfo,
        sell_amount_base_unit: str,
    ) -> Optional[RouteChoice]:
        """Return the best route, or None when no provider supports the pair."""
        pass


# Simulated market prices in USD, for dry-run quotes only
SIMULATED_PRICES: dict[str, Decimal] = {
    "BTC": Decimal("100000.00"),
    "ETH": Decimal("3900.00"),
    "LTC": Decimal("115.00"),
    "BCH": Decimal("480.00"),
    "DOGE": Decimal("0.42"),
    "SOL": Decimal("225.00"),
    "BNB": Decimal("710.00"),
    "AVAX": Decimal("52.00"),
    "POL": Decimal("0.62"),
    "ATOM": Decimal("12.50"),
    "OSMO": Decimal("0.55"),
    "xDAI": Decimal("1.00"),
    "USDT": Decimal("1.00"),
    "USDC": Decimal("1.00"),
    "DAI": Decimal("1.00"),
    "WBTC": Decimal("100000.00"),
}


class DryRunRouteSelector(RouteSelector):
    """Simulated selector with fixed prices and a flat fee."""

    def __init__(
        self,
        swapper_name: SwapperName = SwapperName.CHAINFLIP,
        fee_percent: Decimal = Decimal("0.005"),
        prices: Optional[dict[str, Decimal]] = None,
    ):
        self.swapper_name = swapper_name
        self.fee_percent = fee_percent
        self._prices = dict(prices if prices is not None else SIMULATED_PRICES)

    def set_price(self, symbol: str, price: Decimal) -> None:
        self._prices[symbol] = price

    def get_price(self, symbol: str) -> Optional[Decimal]:
        return self._prices.get(symbol) or self._prices.get(symbol.upper())

    async def select_route(
        self,
        sell_asset: AssetInfo,
        buy_asset: AssetInfo,
        sell_amount_base_unit: str,
    ) -> Optional[RouteChoice]:
        from_price = self.get_price(sell_asset.symbol)
        to_price = self.get_price(buy_asset.symbol)
        if from_price is None or to_price is None:
            logger.debug(f"No simulated price for {sell_asset.symbol} or {buy_asset.symbol}")
            return None

        amount = Decimal(int(sell_amount_base_unit)) / Decimal(10**sell_asset.precision)
        to_amount = amount * from_price / to_price * (Decimal("1") - self.fee_percent)
        to_base = (to_amount * Decimal(10**buy_asset.precision)).quantize(Decimal("1"), rounding=ROUND_DOWN)
        if to_base <= 0:
            return None

        logger.debug(
            f"[dry-run] route {amount} {sell_asset.symbol} -> {to_amount:.8f} {buy_asset.symbol} "
            f"via {self.swapper_name.value}"
        )
        return RouteChoice(
            swapper_name=self.swapper_name,
            expected_buy_amount_base_unit=str(int(to_base)),
            is_simulated=True,
        )
