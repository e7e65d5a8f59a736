"""Quote domain types."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from sendswap.swappers.types import SwapperType


class QuoteStatus(str, Enum):
    """Lifecycle status of a quote."""

    ACTIVE = "ACTIVE"  # Waiting for the user deposit
    EXPIRED = "EXPIRED"  # TTL passed without a matching deposit
    DEPOSIT_RECEIVED = "DEPOSIT_RECEIVED"  # Deposit observed on chain
    EXECUTING = "EXECUTING"  # Swap submitted or pending provider settlement
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({QuoteStatus.EXPIRED, QuoteStatus.COMPLETED, QuoteStatus.FAILED})


@dataclass(frozen=True)
class AssetInfo:
    """Asset descriptor carried on a quote."""

    asset_id: str  # CAIP-19
    symbol: str
    name: str
    precision: int

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "symbol": self.symbol,
            "name": self.name,
            "precision": self.precision,
        }


@dataclass
class QuoteRequest:
    """Input for quote creation."""

    sell_asset_id: str
    buy_asset_id: str
    sell_amount_base_unit: str
    receive_address: str
    swapper_name: Optional[str] = None
    expected_buy_amount_base_unit: Optional[str] = None
    sell_asset: Optional[AssetInfo] = None
    buy_asset: Optional[AssetInfo] = None


@dataclass
class Quote:
    """A send-swap quote and its lifecycle state."""

    quote_id: str
    sell_asset: AssetInfo
    buy_asset: AssetInfo
    sell_amount_base_unit: str
    expected_buy_amount_base_unit: str
    deposit_address: str
    deposit_chain_id: str
    deposit_address_index: int
    receive_address: str
    swapper_name: str
    swapper_type: SwapperType
    created_at: datetime
    expires_at: datetime
    status: QuoteStatus = QuoteStatus.ACTIVE
    gas_overhead_base_unit: Optional[str] = None
    executed_at: Optional[datetime] = None
    deposit_tx_hash: Optional[str] = None
    execution_tx_hash: Optional[str] = None
    last_error: Optional[str] = None
    version: int = 1
    metadata: dict = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_expired_at(self, now: datetime) -> bool:
        """Check if the quote stopped accepting deposits at ``now``."""
        return self.expires_at <= now
