from __future__ import annotations

from typing import Optional

import pytest
from structlog.testing import capture_logs

from pulse.models import MonitoringConfig, Project, ProjectSetting, Website
from pulse.scheduler.config_poller import ConfigPoller, changed_urls
from pulse.scheduler.job_scheduler import JobScheduler
from pulse.scheduler.reconciler import Reconciler
from pulse.storage import db as dbm


class QueueStore:
    """Returns queued configs (or raises queued exceptions) from fetch_config."""

    def __init__(self, *items) -> None:
        self.items = list(items)
        self.calls = 0

    async def fetch_config(self) -> MonitoringConfig:
        self.calls += 1
        item = self.items.pop(0) if len(self.items) > 1 else self.items[0]
        if isinstance(item, Exception):
            raise item
        return item


class CountingReconciler(Reconciler):
    def __init__(self) -> None:
        super().__init__(JobScheduler(), _noop_tick)
        self.calls = 0

    async def reconcile(self, targets):
        self.calls += 1
        return await super().reconcile(targets)


async def _noop_tick(target) -> None:
    return None


def _project(
    project_id: str = "p1",
    *,
    status: Optional[bool] = True,
    interval: Optional[int] = 60,
    websites: tuple[tuple[str, str], ...] = (("w1", "https://a.example.com"),),
) -> Project:
    return Project(
        id=project_id,
        name=f"Project {project_id}",
        setting=ProjectSetting(status=status, interval=interval),
        websites=[Website(id=wid, project_id=project_id, url=url) for wid, url in websites],
    )


@pytest.mark.asyncio
async def test_first_poll_reconciles_immediately() -> None:
    config = MonitoringConfig(projects=[_project(websites=(("w1", "https://a.example.com"), ("w2", "https://b.example.com")))])
    rec = CountingReconciler()
    poller = ConfigPoller(QueueStore(config), rec)

    changed = await poller.poll()

    assert changed is True
    assert rec.calls == 1
    assert rec.task_count() == 2
    assert poller.snapshot == config
    assert poller.last_change_at is not None


@pytest.mark.asyncio
async def test_unchanged_poll_does_nothing() -> None:
    config = MonitoringConfig(projects=[_project()])
    rec = CountingReconciler()
    poller = ConfigPoller(QueueStore(config), rec)
    await poller.poll()
    tasks_before = rec.tasks()

    with capture_logs() as logs:
        changed = await poller.poll()

    assert changed is False
    assert rec.calls == 1
    assert rec.tasks() == tasks_before
    events = [entry["event"] for entry in logs]
    assert "No changes" in events
    assert "Configuration changes detected" not in events
    assert "Active jobs after update" not in events


@pytest.mark.asyncio
async def test_reordered_rows_are_not_a_change() -> None:
    first = MonitoringConfig(
        projects=[
            _project("p1", websites=(("w1", "https://a.example.com"), ("w2", "https://b.example.com"))),
            _project("p2", websites=(("w3", "https://c.example.com"),)),
        ]
    )
    shuffled = MonitoringConfig(
        projects=[
            _project("p2", websites=(("w3", "https://c.example.com"),)),
            _project("p1", websites=(("w2", "https://b.example.com"), ("w1", "https://a.example.com"))),
        ]
    )
    rec = CountingReconciler()
    poller = ConfigPoller(QueueStore(first, shuffled), rec)

    assert await poller.poll() is True
    assert await poller.poll() is False
    assert rec.calls == 1


@pytest.mark.asyncio
async def test_disabling_between_polls_removes_tasks() -> None:
    enabled = MonitoringConfig(projects=[_project(status=True)])
    disabled = MonitoringConfig(projects=[_project(status=False)])
    rec = CountingReconciler()
    poller = ConfigPoller(QueueStore(enabled, disabled), rec)

    await poller.poll()
    assert rec.task_count() == 1

    assert await poller.poll() is True
    assert rec.task_count() == 0


@pytest.mark.asyncio
async def test_fetch_failure_keeps_snapshot_and_tasks() -> None:
    config = MonitoringConfig(projects=[_project()])
    rec = CountingReconciler()
    store = QueueStore(config, RuntimeError("database is locked"), config)
    poller = ConfigPoller(store, rec)

    await poller.poll()
    changed = await poller.poll()

    assert changed is False
    assert poller.snapshot == config
    assert rec.task_count() == 1
    assert "database is locked" in (poller.last_error or "")

    assert await poller.poll() is False
    assert poller.last_error is None
    assert rec.calls == 1


@pytest.mark.asyncio
async def test_url_change_is_logged_and_rescheduled() -> None:
    before = MonitoringConfig(projects=[_project(websites=(("w1", "https://old.example.com"),))])
    after = MonitoringConfig(projects=[_project(websites=(("w1", "https://new.example.com"),))])
    rec = CountingReconciler()
    poller = ConfigPoller(QueueStore(before, after), rec)
    await poller.poll()

    with capture_logs() as logs:
        assert await poller.poll() is True

    assert set(rec.tasks()) == {("w1", "https://new.example.com", 60)}
    url_logs = [entry for entry in logs if entry["event"] == "URL changed for website"]
    assert url_logs and url_logs[0]["old_url"] == "https://old.example.com"


def test_changed_urls_ignores_added_and_removed_websites() -> None:
    before = MonitoringConfig(projects=[_project(websites=(("w1", "https://a"), ("w2", "https://b")))])
    after = MonitoringConfig(projects=[_project(websites=(("w1", "https://a2"), ("w3", "https://c")))])

    assert changed_urls(before, after) == [("w1", "https://a", "https://a2")]


@pytest.mark.asyncio
async def test_poller_follows_database_edits(store, db_path, seed) -> None:
    project_id, (website_id,) = seed(urls=("https://old.example.com",), interval=300)
    rec = CountingReconciler()
    poller = ConfigPoller(store, rec)

    await poller.poll()
    assert set(rec.tasks()) == {(website_id, "https://old.example.com", 300)}

    dbm.update_website_url(db_path, website_id=website_id, url="https://new.example.com")
    assert await poller.poll() is True
    assert set(rec.tasks()) == {(website_id, "https://new.example.com", 300)}

    dbm.set_project_setting(db_path, project_id=project_id, status=False, interval=300)
    assert await poller.poll() is True
    assert rec.task_count() == 0


@pytest.mark.asyncio
async def test_notify_type_change_reaches_live_job(store, db_path, seed) -> None:
    project_id, (website_id,) = seed(urls=("https://down.example.com",), interval=60, notify_type="email")
    rec = CountingReconciler()
    poller = ConfigPoller(store, rec)
    await poller.poll()
    key = (website_id, "https://down.example.com", 60)
    before = rec.tasks()[key]

    dbm.set_project_setting(db_path, project_id=project_id, status=True, interval=60, notify_type="none")
    assert await poller.poll() is True

    after = rec.tasks()[key]
    assert after.job_id == before.job_id
    assert after.created_at == before.created_at
    assert after.target.notify_type == "none"
    job = rec.scheduler.scheduler.get_job(after.job_id)
    assert job.args[0].notify_type == "none"
