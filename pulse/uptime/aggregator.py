"""Uptime aggregation over a trailing window, with optional raw-history pruning."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

import structlog

from pulse.models import CheckResult, UptimeSummary
from pulse.storage import MonitorStore


logger = structlog.get_logger(__name__)


@dataclass
class AggregationReport:
    window_start: datetime
    window_end: datetime
    summaries: list[UptimeSummary] = field(default_factory=list)
    skipped_websites: int = 0
    deleted_checks: int = 0
    deleted_metrics: int = 0
    pruned: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def summarize_checks(website_id: str, window_start: datetime, checks: Iterable[CheckResult]) -> Optional[UptimeSummary]:
    """
    Returns None for an empty window. Average latency ignores checks without a
    recorded response time.
    """
    items = list(checks)
    total = len(items)
    if total <= 0:
        return None

    ok_count = sum(1 for c in items if c.success)
    uptime = (ok_count / float(total)) * 100.0
    latencies = [float(c.response_time_ms) for c in items if c.response_time_ms is not None]
    avg_ms = (sum(latencies) / len(latencies)) if latencies else None

    return UptimeSummary(
        website_id=website_id,
        window_start=window_start,
        uptime=uptime,
        downtime=100.0 - uptime,
        checks=total,
        failures=total - ok_count,
        avg_response_time_ms=avg_ms,
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UptimeAggregator:
    """Summarizes raw checks per website; prunes raw rows only after every summary is written."""

    def __init__(
        self,
        store: MonitorStore,
        *,
        window_minutes: int = 30,
        retention_enabled: bool = False,
        clock: Callable[[], datetime] = _utc_now,
    ):
        if window_minutes <= 0:
            raise ValueError("window_minutes must be positive")
        self.store = store
        self.window = timedelta(minutes=window_minutes)
        self.retention_enabled = retention_enabled
        self.clock = clock

    async def run(self) -> AggregationReport:
        now = self.clock()
        window_start = now - self.window
        report = AggregationReport(window_start=window_start, window_end=now)
        logger.info("Starting uptime calculation", window_start=window_start.isoformat(), retention=self.retention_enabled)

        try:
            config = await self.store.fetch_config()
            for project in config.projects:
                for website in project.websites:
                    checks = await self.store.list_checks(website.id, window_start, now)
                    summary = summarize_checks(website.id, window_start, checks)
                    if summary is None:
                        report.skipped_websites += 1
                        continue
                    await self.store.append_uptime_summary(website.id, summary)
                    report.summaries.append(summary)
                    logger.info(
                        "Uptime summary written",
                        url=website.url,
                        uptime=round(summary.uptime, 2),
                        checks=summary.checks,
                        failures=summary.failures,
                    )

            if self.retention_enabled:
                report.deleted_checks = await self.store.delete_checks_older_than(window_start)
                report.deleted_metrics = await self.store.delete_performance_older_than(window_start)
                report.pruned = True
                logger.info(
                    "Pruned raw history",
                    before=window_start.isoformat(),
                    deleted_checks=report.deleted_checks,
                    deleted_metrics=report.deleted_metrics,
                )
        except Exception as e:
            # The next scheduled run starts over; no partial-window state is kept.
            report.error = f"{type(e).__name__}: {e}"
            logger.error("Uptime calculation failed", error=report.error, summaries_written=len(report.summaries))
            return report

        logger.info(
            "Uptime calculation finished",
            summaries=len(report.summaries),
            skipped=report.skipped_websites,
        )
        return report
