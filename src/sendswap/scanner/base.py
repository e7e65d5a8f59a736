"""Base interface for deposit scanners.

A scanner answers one question for the deposit monitor: which incoming
transfers has a deposit address received on its chain.
"""

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sendswap.chains import ChainConfig

logger = logging.getLogger(__name__)


@dataclass
class TransactionInfo:
    """An incoming transfer to a deposit address."""

    txid: str
    chain_id: str
    to_address: str
    amount: int  # base units
    confirmations: int
    block_time: Optional[datetime] = None
    from_address: Optional[str] = None
    asset_id: Optional[str] = None  # CAIP-19 of the transferred asset

    def has_confirmations(self, required: int) -> bool:
        return self.confirmations >= required

    def is_asset(self, asset_id: str) -> bool:
        """Check the transfer carries ``asset_id``; unknown assets never match."""
        return self.asset_id is not None and self.asset_id.lower() == asset_id.lower()


class DepositScanner(ABC):
    """Abstract base class for blockchain deposit scanners.

    Implementations raise ``ExternalUnavailableError`` when the chain data
    source fails or times out; the monitor treats that as "unknown, retry
    next tick".
    """

    def __init__(self, chain: ChainConfig):
        self.chain = chain

    @property
    def min_confirmations(self) -> int:
        return self.chain.min_confirmations

    @abstractmethod
    async def get_deposits(
        self, address: str, since: Optional[datetime] = None
    ) -> list[TransactionInfo]:
        """Get incoming transfers to an address.

        Args:
            address: Deposit address to check
            since: Ignore transfers with a known block time before this

        Returns:
            Incoming transfers, newest first where the source orders them
        """
        pass

    async def close(self) -> None:
        """Release HTTP resources."""
        pass

    @staticmethod
    def _after(tx: TransactionInfo, since: Optional[datetime]) -> bool:
        if since is None or tx.block_time is None:
            return True
        return tx.block_time >= since


class SimulatedScanner(DepositScanner):
    """Simulated scanner for testing and dry-run (no real blockchain queries)."""

    def __init__(self, chain: ChainConfig):
        super().__init__(chain)
        self._simulated_txs: list[TransactionInfo] = []

    async def get_deposits(
        self, address: str, since: Optional[datetime] = None
    ) -> list[TransactionInfo]:
        """Return simulated transactions for an address."""
        return [
            tx
            for tx in self._simulated_txs
            if tx.to_address.lower() == address.lower() and self._after(tx, since)
        ]

    def add_simulated_deposit(
        self,
        address: str,
        amount: int,
        txid: Optional[str] = None,
        confirmations: Optional[int] = None,
        block_time: Optional[datetime] = None,
        asset_id: Optional[str] = None,
    ) -> TransactionInfo:
        """Add a simulated deposit for testing (native asset unless given)."""
        tx = TransactionInfo(
            txid=txid or f"sim_tx_{secrets.token_hex(16)}",
            chain_id=self.chain.chain_id,
            to_address=address,
            amount=int(amount),
            confirmations=self.min_confirmations if confirmations is None else confirmations,
            block_time=block_time or datetime.now(timezone.utc),
            asset_id=asset_id or self.chain.native_asset_id,
        )
        self._simulated_txs.append(tx)
        logger.info(f"Simulated {self.chain.symbol} deposit of {amount} to {address}")
        return tx
