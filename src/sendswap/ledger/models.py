"""SQLAlchemy models for the quote store."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class QuoteRecord(Base):
    """Persisted send-swap quote.

    ``version`` is bumped on every update; writers must present the version
    and status they read (compare-and-swap).
    """

    __tablename__ = "quotes"
    __table_args__ = (
        Index("ix_quotes_status_expires", "status", "expires_at"),
        Index(
            "ix_quotes_deposit_chain_index",
            "deposit_chain_id",
            "deposit_address_index",
            unique=True,
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    quote_id: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)

    # Assets
    sell_asset_id: Mapped[str] = mapped_column(String(200), nullable=False)
    sell_asset_symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    sell_asset_name: Mapped[str] = mapped_column(String(100), nullable=False)
    sell_asset_precision: Mapped[int] = mapped_column(Integer, nullable=False)
    buy_asset_id: Mapped[str] = mapped_column(String(200), nullable=False)
    buy_asset_symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    buy_asset_name: Mapped[str] = mapped_column(String(100), nullable=False)
    buy_asset_precision: Mapped[int] = mapped_column(Integer, nullable=False)

    # Amounts in base units, stored as decimal strings
    sell_amount_base_unit: Mapped[str] = mapped_column(String(80), nullable=False)
    expected_buy_amount_base_unit: Mapped[str] = mapped_column(String(80), nullable=False)
    gas_overhead_base_unit: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)

    # Deposit
    deposit_address: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    deposit_chain_id: Mapped[str] = mapped_column(String(100), nullable=False)
    deposit_address_index: Mapped[int] = mapped_column(Integer, nullable=False)
    receive_address: Mapped[str] = mapped_column(String(128), nullable=False)

    # Routing
    swapper_name: Mapped[str] = mapped_column(String(40), nullable=False)
    swapper_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    deposit_tx_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    execution_tx_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    executed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class HDWalletState(Base):
    """Tracks the last used derivation index for each deposit chain.

    This ensures deterministic address generation without collisions.
    """

    __tablename__ = "hd_wallet_state"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    chain_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    last_index: Mapped[int] = mapped_column(default=0)  # Last used child index
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
