"""Per-target tick: guard, probe, record, drive alerts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from pulse.alerts.tracker import AlertStateTracker, AlertTransition
from pulse.checks.probe import DEFAULT_PROBE_TIMEOUT_SECONDS, ProbeOutcome, probe_url
from pulse.checks.recorder import CheckRecorder
from pulse.models import MonitorTarget
from pulse.storage import MonitorStore


logger = structlog.get_logger(__name__)

PROJECT_ONLINE = "online"
PROJECT_OFFLINE = "offline"


@dataclass(frozen=True)
class TickResult:
    target: MonitorTarget
    outcome: ProbeOutcome
    alert: AlertTransition


class CheckRunner:
    """Executes one scheduled check for a target."""

    def __init__(
        self,
        store: MonitorStore,
        client: httpx.AsyncClient,
        tracker: AlertStateTracker,
        *,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    ):
        self.store = store
        self.client = client
        self.tracker = tracker
        self.recorder = CheckRecorder(store)
        self.probe_timeout = probe_timeout

    async def _should_run(self, target: MonitorTarget) -> bool:
        if not await self.store.website_exists(target.website_id):
            logger.info(
                "Website no longer exists, skipping check",
                project=target.project_name,
                website_id=target.website_id,
                url=target.url,
            )
            return False
        if not await self.store.is_monitoring_enabled(target.project_id):
            logger.info("Monitoring is disabled for project, skipping check", project=target.project_name, url=target.url)
            return False
        return True

    async def run(self, target: MonitorTarget) -> Optional[TickResult]:
        if not await self._should_run(target):
            return None

        outcome = await probe_url(self.client, target.url, timeout=self.probe_timeout)
        await self.recorder.record(target.website_id, outcome)
        await self.store.update_project_status(target.project_id, PROJECT_ONLINE if outcome.success else PROJECT_OFFLINE)
        transition = await self.tracker.handle(target, outcome)

        if outcome.success:
            logger.info(
                "UP",
                project=target.project_name,
                url=target.url,
                status_code=outcome.status_code,
                response_time_ms=outcome.response_time_ms,
                alert=transition.action,
            )
        else:
            logger.warning(
                "DOWN",
                project=target.project_name,
                url=target.url,
                status_code=outcome.status_code,
                error_type=outcome.error_type,
                error=outcome.error_message,
                response_time_ms=outcome.response_time_ms,
                alert=transition.action,
            )
        return TickResult(target=target, outcome=outcome, alert=transition)

    async def tick(self, target: MonitorTarget) -> Optional[TickResult]:
        """Scheduler entry point: errors stop at this boundary."""
        try:
            return await self.run(target)
        except Exception as e:
            logger.error(
                "Check tick failed",
                project=target.project_name,
                website_id=target.website_id,
                url=target.url,
                error=f"{type(e).__name__}: {e}",
            )
            return None
