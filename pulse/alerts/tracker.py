"""Alert state machine: one open alert per website, one notification per outage."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from pulse.checks.probe import ProbeOutcome
from pulse.models import AlertRecord, MonitorTarget
from pulse.notifications.base import KIND_DOWN, KIND_RECOVERED, AlertNotice, Notifier
from pulse.notifications.messages import build_alert_message
from pulse.storage import MonitorStore


logger = structlog.get_logger(__name__)

ACTION_NONE = "none"
ACTION_OPENED = "opened"
ACTION_ALREADY_OPEN = "already_open"
ACTION_RESOLVED = "resolved"


@dataclass(frozen=True)
class AlertTransition:
    action: str
    alert: Optional[AlertRecord] = None
    notified: bool = False


class AlertStateTracker:
    """Opens and resolves alerts from persisted state.

    The open alert is looked up in the store on every call rather than cached,
    so alerts repaired or closed outside this process are respected.
    """

    def __init__(self, store: MonitorStore, notifier: Notifier, *, notify_on_recovery: bool = False):
        self.store = store
        self.notifier = notifier
        self.notify_on_recovery = notify_on_recovery

    async def handle(self, target: MonitorTarget, outcome: ProbeOutcome) -> AlertTransition:
        open_alert = await self.store.find_open_alert(target.website_id)

        if outcome.success:
            if open_alert is None:
                return AlertTransition(ACTION_NONE)
            # Closes every open row, so a store holding duplicates converges back to one state.
            await self.store.resolve_open_alerts(target.website_id)
            logger.info("Alert resolved", website_id=target.website_id, url=target.url, alert_id=open_alert.id)
            notified = False
            if self.notify_on_recovery:
                notified = await self._notify(target, outcome, open_alert.message, KIND_RECOVERED)
            return AlertTransition(ACTION_RESOLVED, alert=open_alert, notified=notified)

        if open_alert is not None:
            return AlertTransition(ACTION_ALREADY_OPEN, alert=open_alert)

        message = build_alert_message(target.url, status_code=outcome.status_code)
        alert = await self.store.create_alert(target.website_id, message)
        notified = await self._notify(target, outcome, message, KIND_DOWN)
        return AlertTransition(ACTION_OPENED, alert=alert, notified=notified)

    async def _notify(self, target: MonitorTarget, outcome: ProbeOutcome, message: str, kind: str) -> bool:
        # Delivery failures are logged; the alert row stays as written.
        try:
            recipient = await self.store.get_notification_recipient(target.project_id)
            notice = AlertNotice(
                website_id=target.website_id,
                url=target.url,
                message=message,
                recipient=recipient,
                project_name=target.project_name,
                triggered_at=datetime.now(timezone.utc),
                kind=kind,
                channel=target.notify_type,
                status_code=outcome.status_code,
                error_type=outcome.error_type,
                error_message=outcome.error_message,
                response_time_ms=outcome.response_time_ms,
            )
            return await self.notifier.notify(notice)
        except Exception as e:
            logger.error(
                "Failed to send alert notification",
                website_id=target.website_id,
                kind=kind,
                error=f"{type(e).__name__}: {e}",
            )
            return False
