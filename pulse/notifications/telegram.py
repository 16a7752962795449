from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from pulse.notifications.base import AlertNotice
from pulse.notifications.messages import build_alert_text


logger = structlog.get_logger(__name__)

TELEGRAM_MAX_MESSAGE_LEN = 3900


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: str
    chat_id: str


def pack_alert_lines(text: str, *, limit: int = TELEGRAM_MAX_MESSAGE_LEN) -> list[str]:
    """Group the alert's lines into as few messages as fit; a line longer than `limit` is cut."""
    limit = max(1, int(limit))
    messages: list[str] = []
    current: list[str] = []
    size = 0
    for line in (text or "").strip().splitlines():
        pieces = [line[i : i + limit] for i in range(0, len(line), limit)] or [""]
        for piece in pieces:
            added = len(piece) + (1 if current else 0)
            if current and size + added > limit:
                messages.append("\n".join(current))
                current, size = [], 0
                added = len(piece)
            current.append(piece)
            size += added
    if current or not messages:
        messages.append("\n".join(current))
    return messages


def send_result_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Log fields for a sendMessage reply, without the echoed chat or text."""
    fields: dict[str, Any] = {"ok": bool(data.get("ok"))}
    result = data.get("result")
    if isinstance(result, dict) and result.get("message_id") is not None:
        fields["message_id"] = result["message_id"]
    for key in ("description", "error"):
        if data.get(key):
            fields[key] = data[key]
    return fields


class TelegramNotifier:
    """Sends alerts to a Telegram chat through the Bot API.

    The recipient on the notice overrides the configured chat id when it looks
    like a chat id (numeric or ``@channel``); e-mail recipients are ignored.
    """

    def __init__(self, client: httpx.AsyncClient, config: TelegramConfig, *, timeout: float = 15.0):
        self.client = client
        self.config = config
        self.timeout = timeout

    def _chat_id(self, notice: AlertNotice) -> str:
        recipient = (notice.recipient or "").strip()
        if recipient.startswith("@") or recipient.lstrip("-").isdigit():
            return recipient
        return self.config.chat_id

    async def _send(self, chat_id: str, text: str) -> tuple[bool, dict]:
        url = f"https://api.telegram.org/bot{self.config.bot_token}/sendMessage"
        try:
            resp = await self.client.post(url, json={"chat_id": chat_id, "text": text}, timeout=self.timeout)
            data = resp.json()
            return bool(data.get("ok")), data
        except (httpx.HTTPError, ValueError) as e:
            msg = f"{type(e).__name__}: {e}"
            if self.config.bot_token:
                msg = msg.replace(self.config.bot_token, "<redacted>")
            return False, {"ok": False, "error": msg}

    async def notify(self, notice: AlertNotice) -> bool:
        chat_id = self._chat_id(notice)
        ok_all = True
        for part in pack_alert_lines(build_alert_text(notice)):
            ok, data = await self._send(chat_id, part)
            ok_all = ok_all and ok
            if not ok:
                logger.warning("Telegram send failed", website_id=notice.website_id, **send_result_fields(data))
        return ok_all
