"""Quote domain: models, state machine and lifecycle."""

from sendswap.quotes.models import TERMINAL_STATUSES, AssetInfo, Quote, QuoteRequest, QuoteStatus

__all__ = ["AssetInfo", "Quote", "QuoteRequest", "QuoteStatus", "TERMINAL_STATUSES"]
