"""Notification sink interface.

Notifications are fire-and-forget: a sink must never raise into the
quote lifecycle.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sendswap.quotes.models import Quote, QuoteStatus

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Receives quote status changes."""

    @abstractmethod
    async def notify_status_changed(self, quote: Quote, previous_status: Optional[QuoteStatus]) -> None:
        pass

    async def close(self) -> None:
        """Release any held resources."""
        pass


class LoggingNotifier(NotificationSink):
    """Writes status changes to the log (used when no bot is configured)."""

    async def notify_status_changed(self, quote: Quote, previous_status: Optional[QuoteStatus]) -> None:
        previous = previous_status.value if previous_status else "-"
        logger.info(f"Quote {quote.quote_id}: {previous} -> {quote.status.value}")
