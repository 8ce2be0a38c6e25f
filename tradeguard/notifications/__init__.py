"""Notification sinks and recipient storage."""

from .notifier import Notifier, RecipientStore, TelegramNotifier

__all__ = ["Notifier", "RecipientStore", "TelegramNotifier"]
