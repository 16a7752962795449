from __future__ import annotations

import httpx
import pytest

from pulse.alerts.tracker import ACTION_OPENED, AlertStateTracker
from pulse.checks.runner import CheckRunner
from pulse.models import MonitorTarget
from pulse.storage import db as dbm


URL = "https://example.com"


class CountingHandler:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        return httpx.Response(self.status_code, text="ok")


def _target(project_id: str, website_id: str) -> MonitorTarget:
    return MonitorTarget(
        website_id=website_id,
        url=URL,
        interval_seconds=60,
        project_id=project_id,
        project_name="Example",
    )


def _runner(store, notifier, handler) -> tuple[CheckRunner, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CheckRunner(store, client, AlertStateTracker(store, notifier)), client


@pytest.mark.asyncio
async def test_healthy_tick_records_check_and_metric(store, db_path, seed, notifier) -> None:
    project_id, (website_id,) = seed(urls=(URL,))
    handler = CountingHandler(200)
    runner, client = _runner(store, notifier, handler)

    async with client:
        result = await runner.run(_target(project_id, website_id))

    assert result is not None and result.outcome.success
    checks = dbm.list_checks(db_path, website_id=website_id)
    assert len(checks) == 1
    assert checks[0].success is True
    assert checks[0].status_code == 200
    assert checks[0].content_size == 2
    assert dbm.count_performance(db_path, website_id=website_id) == 1
    assert dbm.get_project_status(db_path, project_id=project_id) == "online"
    assert dbm.list_alerts(db_path, website_id=website_id) == []


@pytest.mark.asyncio
async def test_failing_tick_opens_alert_and_marks_project_offline(store, db_path, seed, notifier) -> None:
    project_id, (website_id,) = seed(urls=(URL,))
    runner, client = _runner(store, notifier, CountingHandler(503))

    async with client:
        result = await runner.run(_target(project_id, website_id))

    assert result is not None
    assert result.alert.action == ACTION_OPENED
    checks = dbm.list_checks(db_path, website_id=website_id)
    assert checks[0].success is False
    assert checks[0].error_type == "http_error"
    assert dbm.get_project_status(db_path, project_id=project_id) == "offline"
    assert len(notifier.notices) == 1


@pytest.mark.asyncio
async def test_deleted_website_is_not_probed(store, db_path, seed, notifier) -> None:
    project_id, (website_id,) = seed(urls=(URL,))
    dbm.delete_website(db_path, website_id=website_id)
    handler = CountingHandler(200)
    runner, client = _runner(store, notifier, handler)

    async with client:
        result = await runner.run(_target(project_id, website_id))

    assert result is None
    assert handler.calls == 0


@pytest.mark.asyncio
async def test_disabled_project_is_not_probed(store, db_path, seed, notifier) -> None:
    project_id, (website_id,) = seed(urls=(URL,))
    dbm.set_project_setting(db_path, project_id=project_id, status=False, interval=60)
    handler = CountingHandler(200)
    runner, client = _runner(store, notifier, handler)

    async with client:
        result = await runner.run(_target(project_id, website_id))

    assert result is None
    assert handler.calls == 0
    assert dbm.list_checks(db_path, website_id=website_id) == []


@pytest.mark.asyncio
async def test_project_without_setting_is_probed(store, db_path, seed, notifier) -> None:
    project_id, (website_id,) = seed(urls=(URL,), with_setting=False)
    handler = CountingHandler(200)
    runner, client = _runner(store, notifier, handler)

    async with client:
        result = await runner.run(_target(project_id, website_id))

    assert result is not None
    assert handler.calls == 1


class BrokenStore:
    async def website_exists(self, website_id: str) -> bool:
        raise RuntimeError("disk I/O error")


@pytest.mark.asyncio
async def test_tick_contains_errors(notifier) -> None:
    store = BrokenStore()
    runner, client = _runner(store, notifier, CountingHandler(200))

    async with client:
        result = await runner.tick(_target("p1", "w1"))

    assert result is None
