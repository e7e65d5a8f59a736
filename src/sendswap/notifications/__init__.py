"""Quote status notifications."""

from sendswap.notifications.base import LoggingNotifier, NotificationSink
from sendswap.notifications.telegram import TelegramNotifier

__all__ = ["LoggingNotifier", "NotificationSink", "TelegramNotifier"]
