"""Telegram operator notifications.

Posts quote status changes to a single operator chat.
"""

import logging
from typing import Optional

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError

from sendswap.chains import format_base_units
from sendswap.notifications.base import NotificationSink
from sendswap.quotes.models import Quote, QuoteStatus

logger = logging.getLogger(__name__)

STATUS_TITLES = {
    QuoteStatus.DEPOSIT_RECEIVED: "Deposit Received",
    QuoteStatus.EXECUTING: "Swap Executing",
    QuoteStatus.COMPLETED: "Swap Completed",
    QuoteStatus.FAILED: "Swap Failed",
    QuoteStatus.EXPIRED: "Quote Expired",
}


def _short(tx_hash: str) -> str:
    return f"{tx_hash[:8]}...{tx_hash[-8:]}" if len(tx_hash) > 20 else tx_hash


def format_status_message(quote: Quote, previous_status: Optional[QuoteStatus]) -> str:
    """HTML message for a status change."""
    title = STATUS_TITLES.get(quote.status, quote.status.value)
    amount = format_base_units(quote.sell_amount_base_unit, quote.sell_asset.precision)

    message = (
        f"<b>{title}</b>\n\n"
        f"Quote: <code>{quote.quote_id}</code>\n"
        f"Swap: <code>{amount} {quote.sell_asset.symbol}</code> → {quote.buy_asset.symbol}\n"
        f"Via: {quote.swapper_name} ({quote.swapper_type.value})\n"
    )
    if previous_status:
        message += f"Status: {previous_status.value} → {quote.status.value}\n"
    if quote.deposit_tx_hash:
        message += f"Deposit TX: <code>{_short(quote.deposit_tx_hash)}</code>\n"
    if quote.execution_tx_hash:
        message += f"Execution TX: <code>{_short(quote.execution_tx_hash)}</code>\n"
    if quote.status == QuoteStatus.FAILED and quote.last_error:
        message += f"\nError: {quote.last_error[:200]}"
    return message


class TelegramNotifier(NotificationSink):
    """Sends status changes to the operator chat via aiogram."""

    def __init__(self, bot: Bot, chat_id: int):
        self._bot = bot
        self.chat_id = chat_id

    async def send_message(self, message: str, parse_mode: Optional[str] = "HTML") -> bool:
        try:
            await self._bot.send_message(chat_id=self.chat_id, text=message, parse_mode=parse_mode)
            return True
        except TelegramForbiddenError:
            logger.warning(f"Chat {self.chat_id} has blocked the bot")
            return False
        except TelegramBadRequest as e:
            logger.error(f"Bad request sending to {self.chat_id}: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to send notification to {self.chat_id}: {e}")
            return False

    async def notify_status_changed(self, quote: Quote, previous_status: Optional[QuoteStatus]) -> None:
        await self.send_message(format_status_message(quote, previous_status))

    async def close(self) -> None:
        await self._bot.session.close()
