"""Wires the poller, reconciler, check runner and uptime job together."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
import structlog

from pulse.alerts.tracker import AlertStateTracker
from pulse.checks.runner import CheckRunner
from pulse.config import MonitorSettings, get_config
from pulse.notifications import Notifier, build_dispatcher
from pulse.scheduler.config_poller import ConfigPoller
from pulse.scheduler.job_scheduler import JobScheduler
from pulse.scheduler.reconciler import Reconciler
from pulse.storage import MonitorStore, SqliteMonitorStore
from pulse.uptime.aggregator import AggregationReport, UptimeAggregator


logger = structlog.get_logger(__name__)

CONFIG_POLL_JOB_ID = "config_poll"
UPTIME_JOB_ID = "uptime_aggregation"


class MonitoringCoordinator:
    """Coordinates the monitoring jobs for one process."""

    def __init__(
        self,
        settings: Optional[MonitorSettings] = None,
        *,
        store: Optional[MonitorStore] = None,
        client: Optional[httpx.AsyncClient] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.settings = settings or get_config()
        self.store = store or SqliteMonitorStore(self.settings.db_path)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(headers={"User-Agent": self.settings.user_agent})
        self.notifier = notifier or build_dispatcher(self.settings.notifications, self.client)

        self.scheduler = JobScheduler(misfire_grace_seconds=self.settings.misfire_grace_seconds)
        self.tracker = AlertStateTracker(
            self.store,
            self.notifier,
            notify_on_recovery=self.settings.notifications.notify_on_recovery,
        )
        self.runner = CheckRunner(
            self.store,
            self.client,
            self.tracker,
            probe_timeout=self.settings.probe_timeout_seconds,
        )
        self.reconciler = Reconciler(
            self.scheduler,
            self.runner.tick,
            default_interval_seconds=self.settings.default_check_interval_seconds,
            max_instances=self.settings.max_overlapping_probes,
        )
        self.poller = ConfigPoller(self.store, self.reconciler)
        self.aggregator = UptimeAggregator(
            self.store,
            window_minutes=self.settings.uptime.window_minutes,
            retention_enabled=self.settings.uptime.retention_enabled,
        )
        self.started_at: Optional[datetime] = None
        self.last_aggregation: Optional[AggregationReport] = None

    async def start(self):
        """Start the scheduler, load the configuration and register the periodic jobs."""
        await self.scheduler.start()
        self.started_at = datetime.now(timezone.utc)

        await self.poll_config()

        self.scheduler.add_interval_job(
            job_id=CONFIG_POLL_JOB_ID,
            func=self.poll_config,
            seconds=self.settings.config_poll_seconds,
            description="Re-read monitoring configuration",
        )

        minutes = int(self.settings.uptime.cron_minutes)
        if 1 <= minutes <= 59:
            self.scheduler.add_cron_job(
                job_id=UPTIME_JOB_ID,
                func=self.calculate_uptime,
                cron_expression=f"*/{minutes} * * * *",
                description="Calculate uptime statistics",
            )
        else:
            self.scheduler.add_interval_job(
                job_id=UPTIME_JOB_ID,
                func=self.calculate_uptime,
                seconds=max(1, minutes) * 60,
                description="Calculate uptime statistics",
            )

        logger.info(
            "Monitoring coordinator started",
            poll_seconds=self.settings.config_poll_seconds,
            uptime_every_minutes=minutes,
            active_tasks=self.reconciler.task_count(),
        )

    async def stop(self):
        """Stop every job and release the HTTP client."""
        removed = await self.reconciler.shutdown()
        await self.scheduler.stop()
        if self._owns_client:
            await self.client.aclose()
        logger.info("Monitoring coordinator stopped", tasks_removed=removed)

    async def poll_config(self) -> bool:
        try:
            return await self.poller.poll()
        except Exception as e:
            logger.error("Configuration poll failed", error=f"{type(e).__name__}: {e}")
            return False

    async def calculate_uptime(self) -> AggregationReport:
        self.last_aggregation = await self.aggregator.run()
        return self.last_aggregation

    async def run_once(self) -> Dict[str, Any]:
        """One poll, one check per live target, one aggregation; then tear the tasks down."""
        await self.poll_config()
        tasks = list(self.reconciler.tasks().values())
        results = await asyncio.gather(*(self.runner.tick(t.target) for t in tasks))
        report = await self.calculate_uptime()
        await self.stop()

        return {
            "targets": len(tasks),
            "up": sum(1 for r in results if r is not None and r.outcome.success),
            "down": sum(1 for r in results if r is not None and not r.outcome.success),
            "skipped": sum(1 for r in results if r is None),
            "summaries": len(report.summaries),
            "aggregation_error": report.error,
        }

    def status(self) -> Dict[str, Any]:
        poller = self.poller
        return {
            "running": self.scheduler.running,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "active_tasks": self.reconciler.task_count(),
            "last_poll_at": poller.last_poll_at.isoformat() if poller.last_poll_at else None,
            "last_change_at": poller.last_change_at.isoformat() if poller.last_change_at else None,
            "last_poll_error": poller.last_error,
            "scheduler": self.scheduler.get_scheduler_status(),
            "jobs": self.scheduler.list_jobs(),
        }
