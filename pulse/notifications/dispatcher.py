"""Per-project routing of alerts to delivery channels."""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from pulse.config import NotificationConfig
from pulse.notifications.base import AlertNotice, Notifier
from pulse.notifications.email import ResendConfig, ResendEmailNotifier
from pulse.notifications.messages import build_alert_text
from pulse.notifications.telegram import TelegramConfig, TelegramNotifier


logger = structlog.get_logger(__name__)

CHANNEL_NONE = "none"
CHANNEL_LOG = "log"


class LogNotifier:
    """Fallback channel: writes the alert to the service log."""

    async def notify(self, notice: AlertNotice) -> bool:
        logger.warning("Alert", website_id=notice.website_id, kind=notice.kind, text=build_alert_text(notice))
        return True


class NotificationDispatcher:
    """Routes a notice to the channel named by the project's notify type."""

    def __init__(self, channels: dict[str, Notifier], *, default_channel: str = CHANNEL_LOG):
        self.channels = dict(channels)
        self.channels.setdefault(CHANNEL_LOG, LogNotifier())
        self.default_channel = default_channel if default_channel in self.channels else CHANNEL_LOG

    def resolve_channel(self, requested: Optional[str]) -> Optional[str]:
        name = (requested or "").strip().lower()
        if name == CHANNEL_NONE:
            return None
        if name in self.channels:
            return name
        if name:
            logger.warning("Unknown notify type, using default channel", notify_type=name, channel=self.default_channel)
        return self.default_channel

    async def notify(self, notice: AlertNotice) -> bool:
        channel = self.resolve_channel(notice.channel)
        if channel is None:
            logger.info("Notifications disabled for project", website_id=notice.website_id)
            return False
        return await self.channels[channel].notify(notice)


def build_dispatcher(config: NotificationConfig, client: httpx.AsyncClient) -> NotificationDispatcher:
    channels: dict[str, Notifier] = {}
    if config.resend_api_key:
        channels["email"] = ResendEmailNotifier(
            client,
            ResendConfig(api_key=config.resend_api_key, sender=config.email_from, api_url=config.resend_api_url),
            timeout=config.timeout_seconds,
        )
    else:
        logger.warning("Resend API key not configured; e-mail alerts go to the log")
    if config.telegram_bot_token and config.telegram_chat_id:
        channels["telegram"] = TelegramNotifier(
            client,
            TelegramConfig(bot_token=config.telegram_bot_token, chat_id=config.telegram_chat_id),
            timeout=config.timeout_seconds,
        )
    return NotificationDispatcher(channels, default_channel=config.default_channel)
