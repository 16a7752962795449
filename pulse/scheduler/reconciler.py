"""Keeps the live set of check jobs in sync with the desired targets."""

from __future__ import annotations

import asyncio
from dataclasses import astuple, dataclass, field, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Optional

import structlog

from pulse.errors import UnsupportedIntervalError
from pulse.models import MonitorTarget, TargetKey
from pulse.scheduler.cadence import KIND_CRON, Cadence, cadence_for_interval
from pulse.scheduler.job_scheduler import JobScheduler


logger = structlog.get_logger(__name__)

TickFunc = Callable[[MonitorTarget], Awaitable[object]]


@dataclass(frozen=True)
class ScheduledTask:
    key: TargetKey
    target: MonitorTarget
    job_id: str
    cadence: Cadence
    created_at: datetime


@dataclass
class ReconcileResult:
    added: list[TargetKey] = field(default_factory=list)
    removed: list[TargetKey] = field(default_factory=list)
    refreshed: list[TargetKey] = field(default_factory=list)
    unchanged: int = 0
    skipped: dict[TargetKey, str] = field(default_factory=dict)
    active: int = 0


def is_eligible(target: MonitorTarget) -> bool:
    """Monitoring not explicitly disabled and the project has at least one website."""
    return bool(target.monitoring_enabled) and target.project_website_count > 0


def job_id_for(target: MonitorTarget) -> str:
    return f"check:{target.describe()}"


class Reconciler:
    """Owns the task table: one scheduled job per eligible target identity.

    Mutations happen only inside ``reconcile``/``shutdown`` under one lock, so a
    reconciliation that arrives while another is running waits for it.
    ``task_count`` reads without the lock.
    """

    def __init__(
        self,
        scheduler: JobScheduler,
        tick: TickFunc,
        *,
        default_interval_seconds: Optional[int] = None,
        max_instances: int = 3,
    ):
        self.scheduler = scheduler
        self.tick = tick
        self.default_interval_seconds = default_interval_seconds
        self.max_instances = max_instances
        self._tasks: dict[TargetKey, ScheduledTask] = {}
        self._lock = asyncio.Lock()

    def task_count(self) -> int:
        return len(self._tasks)

    def tasks(self) -> dict[TargetKey, ScheduledTask]:
        return dict(self._tasks)

    def _start(self, target: MonitorTarget) -> ScheduledTask:
        interval = target.interval_seconds
        if interval is None:
            interval = self.default_interval_seconds
        cadence = cadence_for_interval(interval)

        job_id = job_id_for(target)
        description = f"Check {target.url} every {cadence.interval_seconds}s"
        if cadence.kind == KIND_CRON:
            self.scheduler.add_cron_job(
                job_id=job_id,
                func=self.tick,
                cron_expression=str(cadence.expression),
                args=(target,),
                description=description,
                max_instances=self.max_instances,
            )
        else:
            self.scheduler.add_interval_job(
                job_id=job_id,
                func=self.tick,
                seconds=int(cadence.minutes or 0) * 60,
                args=(target,),
                description=description,
                max_instances=self.max_instances,
            )

        task = ScheduledTask(
            key=target.key,
            target=target,
            job_id=job_id,
            cadence=cadence,
            created_at=datetime.now(timezone.utc),
        )
        self._tasks[target.key] = task
        logger.info(
            "Started monitoring",
            url=target.url,
            interval_seconds=cadence.interval_seconds,
            cadence=cadence.describe(),
            job_key=target.describe(),
        )
        return task

    def _refresh(self, task: ScheduledTask, target: MonitorTarget) -> None:
        """Swap project context (name, notify_type) into a live job without restarting it."""
        self.scheduler.update_job_args(task.job_id, args=(target,))
        self._tasks[task.key] = replace(task, target=target)
        logger.info(
            "Updated monitoring job context",
            job_key=target.describe(),
            project=target.project_name,
            notify_type=target.notify_type,
        )

    def _stop(self, key: TargetKey) -> None:
        task = self._tasks.pop(key)
        self.scheduler.remove_job(task.job_id)
        logger.info("Stopped monitoring job", job_key=task.target.describe())

    async def reconcile(self, targets: Iterable[MonitorTarget]) -> ReconcileResult:
        result = ReconcileResult()
        async with self._lock:
            desired: dict[TargetKey, MonitorTarget] = {}
            for target in targets:
                if is_eligible(target):
                    desired.setdefault(target.key, target)

            for key, target in desired.items():
                task = self._tasks.get(key)
                if task is not None:
                    # Target equality covers identity only; the rest is context.
                    if astuple(task.target) == astuple(target):
                        result.unchanged += 1
                        continue
                    try:
                        self._refresh(task, target)
                    except Exception as e:
                        logger.error("Failed to update target", job_key=target.describe(), error=f"{type(e).__name__}: {e}")
                        result.unchanged += 1
                        continue
                    result.refreshed.append(key)
                    continue
                try:
                    self._start(target)
                except UnsupportedIntervalError as e:
                    result.skipped[key] = str(e)
                    logger.error("Failed to schedule target", job_key=target.describe(), error=str(e))
                    continue
                except Exception as e:
                    result.skipped[key] = f"{type(e).__name__}: {e}"
                    logger.error("Failed to schedule target", job_key=target.describe(), error=result.skipped[key])
                    continue
                result.added.append(key)

            for key in list(self._tasks):
                if key not in desired:
                    self._stop(key)
                    result.removed.append(key)

            result.active = len(self._tasks)

        logger.info(
            "Active jobs after update",
            active=result.active,
            added=len(result.added),
            removed=len(result.removed),
            refreshed=len(result.refreshed),
            skipped=len(result.skipped),
        )
        return result

    async def shutdown(self) -> int:
        async with self._lock:
            keys = list(self._tasks)
            for key in keys:
                self._stop(key)
        return len(keys)
