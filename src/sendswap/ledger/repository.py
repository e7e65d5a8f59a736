"""Repository for quote store operations."""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sendswap.errors import ConcurrentUpdateError
from sendswap.ledger.models import HDWalletState, QuoteRecord
from sendswap.quotes.models import AssetInfo, Quote, QuoteStatus
from sendswap.swappers.types import SwapperType

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def record_to_quote(record: QuoteRecord) -> Quote:
    return Quote(
        quote_id=record.quote_id,
        sell_asset=AssetInfo(
            asset_id=record.sell_asset_id,
            symbol=record.sell_asset_symbol,
            name=record.sell_asset_name,
            precision=record.sell_asset_precision,
        ),
        buy_asset=AssetInfo(
            asset_id=record.buy_asset_id,
            symbol=record.buy_asset_symbol,
            name=record.buy_asset_name,
            precision=record.buy_asset_precision,
        ),
        sell_amount_base_unit=record.sell_amount_base_unit,
        expected_buy_amount_base_unit=record.expected_buy_amount_base_unit,
        deposit_address=record.deposit_address,
        deposit_chain_id=record.deposit_chain_id,
        deposit_address_index=record.deposit_address_index,
        receive_address=record.receive_address,
        swapper_name=record.swapper_name,
        swapper_type=SwapperType(record.swapper_type),
        created_at=_as_utc(record.created_at),
        expires_at=_as_utc(record.expires_at),
        status=QuoteStatus(record.status),
        gas_overhead_base_unit=record.gas_overhead_base_unit,
        executed_at=_as_utc(record.executed_at),
        deposit_tx_hash=record.deposit_tx_hash,
        execution_tx_hash=record.execution_tx_hash,
        last_error=record.last_error,
        version=record.version,
        metadata=dict(record.metadata_json or {}),
    )


def _mutable_fields(quote: Quote) -> dict:
    """Columns a state transition may change."""
    return {
        "status": quote.status.value,
        "deposit_tx_hash": quote.deposit_tx_hash,
        "execution_tx_hash": quote.execution_tx_hash,
        "executed_at": quote.executed_at,
        "last_error": quote.last_error,
        "metadata_json": quote.metadata or None,
    }


class QuoteRepository:
    """Repository for all quote-related database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Quote operations
    async def create(self, quote: Quote) -> Quote:
        """Insert a new quote."""
        record = QuoteRecord(
            quote_id=quote.quote_id,
            sell_asset_id=quote.sell_asset.asset_id,
            sell_asset_symbol=quote.sell_asset.symbol,
            sell_asset_name=quote.sell_asset.name,
            sell_asset_precision=quote.sell_asset.precision,
            buy_asset_id=quote.buy_asset.asset_id,
            buy_asset_symbol=quote.buy_asset.symbol,
            buy_asset_name=quote.buy_asset.name,
            buy_asset_precision=quote.buy_asset.precision,
            sell_amount_base_unit=quote.sell_amount_base_unit,
            expected_buy_amount_base_unit=quote.expected_buy_amount_base_unit,
            gas_overhead_base_unit=quote.gas_overhead_base_unit,
            deposit_address=quote.deposit_address,
            deposit_chain_id=quote.deposit_chain_id,
            deposit_address_index=quote.deposit_address_index,
            receive_address=quote.receive_address,
            swapper_name=quote.swapper_name,
            swapper_type=quote.swapper_type.value,
            status=quote.status.value,
            version=quote.version,
            deposit_tx_hash=quote.deposit_tx_hash,
            execution_tx_hash=quote.execution_tx_hash,
            last_error=quote.last_error,
            metadata_json=quote.metadata or None,
            created_at=quote.created_at,
            expires_at=quote.expires_at,
            executed_at=quote.executed_at,
        )
        self.session.add(record)
        await self.session.flush()
        return record_to_quote(record)

    async def get(self, quote_id: str) -> Optional[Quote]:
        """Get quote by id."""
        stmt = select(QuoteRecord).where(QuoteRecord.quote_id == quote_id)
        result = await self.session.execute(stmt)
        record = result.scalar_one_or_none()
        return record_to_quote(record) if record else None

    async def get_active_by_deposit_address(self, deposit_address: str) -> Optional[Quote]:
        stmt = select(QuoteRecord).where(
            QuoteRecord.deposit_address == deposit_address,
            QuoteRecord.status == QuoteStatus.ACTIVE.value,
        )
        result = await self.session.execute(stmt)
        record = result.scalars().first()
        return record_to_quote(record) if record else None

    async def compare_and_swap(
        self,
        quote: Quote,
        expected_status: QuoteStatus,
        expected_version: int,
    ) -> Quote:
        """Write the mutable fields of ``quote`` if the stored row is unchanged.

        Raises:
            ConcurrentUpdateError: stored version or status moved on
        """
        new_version = expected_version + 1
        stmt = (
            update(QuoteRecord)
            .where(
                QuoteRecord.quote_id == quote.quote_id,
                QuoteRecord.version == expected_version,
                QuoteRecord.status == expected_status.value,
            )
            .values(version=new_version, **_mutable_fields(quote))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            logger.debug(
                f"CAS miss for {quote.quote_id}: expected {expected_status.value} v{expected_version}"
            )
            raise ConcurrentUpdateError(quote.quote_id, expected_status.value, quote.status.value)

        quote.version = new_version
        return quote

    async def list_by_status(
        self,
        statuses: Iterable[QuoteStatus],
        expires_before: Optional[datetime] = None,
        expires_after: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Quote]:
        """List quotes in any of ``statuses``, oldest first.

        ``expires_before`` is inclusive, ``expires_after`` exclusive.
        """
        stmt = select(QuoteRecord).where(QuoteRecord.status.in_([s.value for s in statuses]))
        if expires_before is not None:
            stmt = stmt.where(QuoteRecord.expires_at <= expires_before)
        if expires_after is not None:
            stmt = stmt.where(QuoteRecord.expires_at > expires_after)
        stmt = stmt.order_by(QuoteRecord.created_at, QuoteRecord.id)
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [record_to_quote(r) for r in result.scalars().all()]

    async def count_by_status(self) -> dict[str, int]:
        stmt = select(QuoteRecord.status, func.count()).group_by(QuoteRecord.status)
        result = await self.session.execute(stmt)
        return {status: count for status, count in result.all()}

    # HD Wallet State operations
    async def get_hd_wallet_state(self, chain_id: str) -> Optional[HDWalletState]:
        """Get HD wallet state for a chain."""
        stmt = select(HDWalletState).where(HDWalletState.chain_id == chain_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def next_address_index(self, chain_id: str) -> int:
        """Atomically allocate the next derivation index for a chain.

        The increment happens in SQL so concurrent allocators serialize on
        the row. The first allocation for a chain returns 0.
        """
        stmt = (
            update(HDWalletState)
            .where(HDWalletState.chain_id == chain_id)
            .values(last_index=HDWalletState.last_index + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        if result.rowcount == 0:
            try:
                async with self.session.begin_nested():
                    self.session.add(HDWalletState(chain_id=chain_id, last_index=0))
                return 0
            except IntegrityError:
                # Another allocator created the row first
                await self.session.execute(stmt)

        stmt = select(HDWalletState.last_index).where(HDWalletState.chain_id == chain_id)
        return (await self.session.execute(stmt)).scalar_one()
