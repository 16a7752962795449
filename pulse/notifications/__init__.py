"""Alert delivery channels."""

from .base import AlertNotice, Notifier
from .dispatcher import LogNotifier, NotificationDispatcher, build_dispatcher

__all__ = ["AlertNotice", "Notifier", "LogNotifier", "NotificationDispatcher", "build_dispatcher"]
