"""Persistence interface consumed by the monitoring core."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional, Protocol

from pulse.models import AlertRecord, CheckResult, MonitoringConfig, PerformanceMetric, UptimeSummary
from pulse.storage import db as dbm


class MonitorStore(Protocol):
    """Read/write operations on projects, websites, checks, alerts and uptime logs."""

    async def fetch_config(self) -> MonitoringConfig: ...

    async def website_exists(self, website_id: str) -> bool: ...

    async def is_monitoring_enabled(self, project_id: str) -> bool: ...

    async def update_project_status(self, project_id: str, status: str) -> None: ...

    async def get_notification_recipient(self, project_id: str) -> Optional[str]: ...

    async def append_check(self, website_id: str, check: CheckResult) -> None: ...

    async def append_performance(self, website_id: str, metric: PerformanceMetric) -> None: ...

    async def list_checks(self, website_id: str, since: datetime, until: datetime) -> list[CheckResult]: ...

    async def find_open_alert(self, website_id: str) -> Optional[AlertRecord]: ...

    async def create_alert(self, website_id: str, message: str) -> AlertRecord: ...

    async def resolve_alert(self, alert_id: str) -> bool: ...

    async def resolve_open_alerts(self, website_id: str) -> int: ...

    async def append_uptime_summary(self, website_id: str, summary: UptimeSummary) -> None: ...

    async def delete_checks_older_than(self, before: datetime) -> int: ...

    async def delete_performance_older_than(self, before: datetime) -> int: ...


class SqliteMonitorStore:
    """MonitorStore backed by a local SQLite file.

    Every call opens its own connection in a worker thread, so concurrent
    ticks never share a connection and never block the event loop.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        dbm.ensure_schema(db_path)

    async def fetch_config(self) -> MonitoringConfig:
        return await asyncio.to_thread(dbm.fetch_config, self.db_path)

    async def website_exists(self, website_id: str) -> bool:
        return await asyncio.to_thread(dbm.website_exists, self.db_path, website_id=website_id)

    async def is_monitoring_enabled(self, project_id: str) -> bool:
        return await asyncio.to_thread(dbm.is_monitoring_enabled, self.db_path, project_id=project_id)

    async def update_project_status(self, project_id: str, status: str) -> None:
        await asyncio.to_thread(dbm.update_project_status, self.db_path, project_id=project_id, status=status)

    async def get_notification_recipient(self, project_id: str) -> Optional[str]:
        return await asyncio.to_thread(dbm.get_notification_recipient, self.db_path, project_id=project_id)

    async def append_check(self, website_id: str, check: CheckResult) -> None:
        if check.website_id != website_id:
            raise ValueError(f"Check belongs to {check.website_id}, not {website_id}")
        await asyncio.to_thread(dbm.append_check, self.db_path, check=check)

    async def append_performance(self, website_id: str, metric: PerformanceMetric) -> None:
        if metric.website_id != website_id:
            raise ValueError(f"Metric belongs to {metric.website_id}, not {website_id}")
        await asyncio.to_thread(dbm.append_performance, self.db_path, metric=metric)

    async def list_checks(self, website_id: str, since: datetime, until: datetime) -> list[CheckResult]:
        return await asyncio.to_thread(dbm.list_checks, self.db_path, website_id=website_id, since=since, until=until)

    async def find_open_alert(self, website_id: str) -> Optional[AlertRecord]:
        return await asyncio.to_thread(dbm.find_open_alert, self.db_path, website_id=website_id)

    async def create_alert(self, website_id: str, message: str) -> AlertRecord:
        return await asyncio.to_thread(dbm.create_alert, self.db_path, website_id=website_id, message=message)

    async def resolve_alert(self, alert_id: str) -> bool:
        return await asyncio.to_thread(dbm.resolve_alert, self.db_path, alert_id=alert_id)

    async def resolve_open_alerts(self, website_id: str) -> int:
        return await asyncio.to_thread(dbm.resolve_open_alerts, self.db_path, website_id=website_id)

    async def append_uptime_summary(self, website_id: str, summary: UptimeSummary) -> None:
        if summary.website_id != website_id:
            raise ValueError(f"Summary belongs to {summary.website_id}, not {website_id}")
        await asyncio.to_thread(dbm.append_uptime_summary, self.db_path, summary=summary)

    async def delete_checks_older_than(self, before: datetime) -> int:
        return await asyncio.to_thread(dbm.delete_checks_older_than, self.db_path, before=before)

    async def delete_performance_older_than(self, before: datetime) -> int:
        return await asyncio.to_thread(dbm.delete_performance_older_than, self.db_path, before=before)
