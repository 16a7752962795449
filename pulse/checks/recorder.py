"""Persistence of raw probe results."""

from __future__ import annotations

from pulse.checks.probe import ProbeOutcome
from pulse.models import CheckResult, PerformanceMetric
from pulse.storage import MonitorStore


class CheckRecorder:
    """Writes one check row and one performance row per probe, success or failure."""

    def __init__(self, store: MonitorStore):
        self.store = store

    async def record(self, website_id: str, outcome: ProbeOutcome) -> CheckResult:
        check = CheckResult(
            website_id=website_id,
            checked_at=outcome.checked_at,
            success=outcome.success,
            response_time_ms=outcome.response_time_ms,
            status_code=outcome.status_code,
            error_type=outcome.error_type,
            error_message=outcome.error_message,
            content_size=outcome.content_size,
        )
        await self.store.append_check(website_id, check)

        metric = PerformanceMetric(
            website_id=website_id,
            recorded_at=outcome.checked_at,
            response_time_ms=outcome.response_time_ms,
            status_code=outcome.status_code,
            content_size=outcome.content_size,
        )
        await self.store.append_performance(website_id, metric)
        return check
