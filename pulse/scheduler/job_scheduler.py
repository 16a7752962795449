"""Job scheduling for periodic monitoring tasks."""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger


logger = structlog.get_logger(__name__)


def parse_cron_expression(cron_expression: str, tz_name: str = "UTC") -> CronTrigger:
    """Build a CronTrigger from a 5-field or 6-field (leading seconds) expression."""
    cron_parts = cron_expression.split()
    if len(cron_parts) == 5:
        cron_parts = ["0"] + cron_parts
    if len(cron_parts) != 6:
        raise ValueError(f"Invalid cron expression: {cron_expression}")

    return CronTrigger(
        second=cron_parts[0],
        minute=cron_parts[1],
        hour=cron_parts[2],
        day=cron_parts[3],
        month=cron_parts[4],
        day_of_week=cron_parts[5],
        timezone=tz_name,
    )


class JobScheduler:
    """Manages scheduled jobs using APScheduler."""

    def __init__(self, *, misfire_grace_seconds: int = 30, tz_name: str = "UTC"):
        self.tz_name = tz_name
        self.scheduler = AsyncIOScheduler(timezone=tz_name)
        self.misfire_grace_seconds = misfire_grace_seconds
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.running = False

    async def start(self):
        """Start the job scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.start()
        self.running = True
        logger.info("Job scheduler started")

    async def stop(self):
        """Stop the job scheduler."""
        if not self.running:
            return

        self.scheduler.shutdown(wait=False)
        self.running = False
        self.jobs.clear()
        logger.info("Job scheduler stopped")

    def _add(
        self,
        job_id: str,
        func: Callable,
        trigger,
        job_type: str,
        schedule: Any,
        args: Optional[tuple],
        kwargs: Optional[Dict[str, Any]],
        description: Optional[str],
        max_instances: int,
    ):
        if job_id in self.jobs:
            logger.warning("Job already exists, replacing", job_id=job_id)
            self.remove_job(job_id)

        job = self.scheduler.add_job(
            func=func,
            trigger=trigger,
            id=job_id,
            args=args or (),
            kwargs=kwargs or {},
            name=description or job_id,
            max_instances=max(1, int(max_instances)),
            coalesce=True,
            misfire_grace_time=self.misfire_grace_seconds,
        )

        self.jobs[job_id] = {
            "job": job,
            "type": job_type,
            "schedule": schedule,
            "description": description,
            "added_at": datetime.now(timezone.utc),
        }
        return job

    def add_cron_job(
        self,
        job_id: str,
        func: Callable,
        cron_expression: str,
        args: Optional[tuple] = None,
        kwargs: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
        max_instances: int = 1,
    ):
        """Add a cron-scheduled job."""
        trigger = parse_cron_expression(cron_expression, tz_name=self.tz_name)
        job = self._add(job_id, func, trigger, "cron", cron_expression, args, kwargs, description, max_instances)
        logger.debug("Added cron job", job_id=job_id, cron=cron_expression, description=description)
        return job

    def add_interval_job(
        self,
        job_id: str,
        func: Callable,
        seconds: int,
        args: Optional[tuple] = None,
        kwargs: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
        max_instances: int = 1,
    ):
        """Add an interval-based job."""
        trigger = IntervalTrigger(seconds=seconds, timezone=self.tz_name)
        job = self._add(job_id, func, trigger, "interval", seconds, args, kwargs, description, max_instances)
        logger.debug("Added interval job", job_id=job_id, interval_seconds=seconds, description=description)
        return job

    def remove_job(self, job_id: str) -> bool:
        """Remove a scheduled job. The bookkeeping entry is dropped even if APScheduler no longer knows the job."""
        if job_id not in self.jobs:
            logger.warning("Job not found", job_id=job_id)
            return False

        del self.jobs[job_id]
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            logger.warning("Job already gone from scheduler", job_id=job_id)
            return False
        logger.debug("Removed job", job_id=job_id)
        return True

    def update_job_args(self, job_id: str, args: tuple) -> None:
        """Replace the arguments of an existing job; its trigger and next run time are kept."""
        if job_id not in self.jobs:
            raise KeyError(job_id)
        self.jobs[job_id]["job"] = self.scheduler.modify_job(job_id, args=args)
        logger.debug("Updated job arguments", job_id=job_id)

    def has_job(self, job_id: str) -> bool:
        return job_id in self.jobs

    def job_count(self) -> int:
        return len(self.jobs)

    def get_job_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Get status information for a job."""
        if job_id not in self.jobs:
            return None

        job_info = self.jobs[job_id]
        scheduler_job = self.scheduler.get_job(job_id)
        if scheduler_job is None:
            return None

        # Jobs added before start() have no next_run_time yet.
        next_run = getattr(scheduler_job, "next_run_time", None)
        return {
            "job_id": job_id,
            "name": scheduler_job.name,
            "type": job_info["type"],
            "schedule": job_info["schedule"],
            "next_run": next_run.isoformat() if next_run else None,
            "added_at": job_info["added_at"].isoformat(),
            "description": job_info.get("description"),
        }

    def list_jobs(self) -> List[Dict[str, Any]]:
        """List all scheduled jobs."""
        job_statuses = []
        for job_id in self.jobs:
            status = self.get_job_status(job_id)
            if status:
                job_statuses.append(status)
        return job_statuses

    def get_scheduler_status(self) -> Dict[str, Any]:
        """Get overall scheduler status."""
        next_runs = [
            getattr(job, "next_run_time", None) for job in self.scheduler.get_jobs()
        ]
        next_run = min((t for t in next_runs if t), default=None)
        return {
            "running": self.running,
            "job_count": len(self.jobs),
            "next_run": next_run.isoformat() if next_run else None,
        }
