"""Quote store backed by SQLAlchemy."""

from sendswap.ledger.models import Base, HDWalletState, QuoteRecord
from sendswap.ledger.repository import QuoteRepository

__all__ = ["Base", "HDWalletState", "QuoteRecord", "QuoteRepository"]
