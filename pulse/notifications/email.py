from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from pulse.notifications.base import AlertNotice
from pulse.notifications.messages import build_alert_html, build_alert_subject


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResendConfig:
    api_key: str
    sender: str
    api_url: str = "https://api.resend.com/emails"


class ResendEmailNotifier:
    """Sends HTML alert e-mails to the project owner through the Resend API."""

    def __init__(self, client: httpx.AsyncClient, config: ResendConfig, *, timeout: float = 15.0):
        self.client = client
        self.config = config
        self.timeout = timeout

    async def notify(self, notice: AlertNotice) -> bool:
        recipient = (notice.recipient or "").strip()
        if "@" not in recipient:
            logger.warning("No e-mail recipient for alert", website_id=notice.website_id, url=notice.url)
            return False

        payload = {
            "from": self.config.sender,
            "to": [recipient],
            "subject": build_alert_subject(notice),
            "html": build_alert_html(notice),
        }
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        try:
            resp = await self.client.post(self.config.api_url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error("Alert e-mail failed", website_id=notice.website_id, error=f"{type(e).__name__}: {e}")
            return False

        if resp.status_code >= 400:
            logger.error(
                "Alert e-mail rejected",
                website_id=notice.website_id,
                status_code=resp.status_code,
                body=resp.text[:300],
            )
            return False

        logger.info("Alert e-mail sent", website_id=notice.website_id, url=notice.url)
        return True
