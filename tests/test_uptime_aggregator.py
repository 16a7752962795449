from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pulse.models import CheckResult, PerformanceMetric
from pulse.storage import db as dbm
from pulse.uptime.aggregator import UptimeAggregator, summarize_checks


NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _check(website_id: str, minutes_ago: float, success: bool, latency: float | None = 100.0) -> CheckResult:
    return CheckResult(
        website_id=website_id,
        checked_at=NOW - timedelta(minutes=minutes_ago),
        success=success,
        response_time_ms=latency,
        status_code=200 if success else 503,
    )


def _add_checks(db_path: str, checks: list[CheckResult]) -> None:
    for check in checks:
        dbm.append_check(db_path, check=check)
        dbm.append_performance(
            db_path,
            metric=PerformanceMetric(
                website_id=check.website_id,
                recorded_at=check.checked_at,
                response_time_ms=check.response_time_ms,
                status_code=check.status_code,
            ),
        )


def test_summarize_checks_math() -> None:
    checks = [
        _check("w1", 1, True, 100.0),
        _check("w1", 2, True, None),
        _check("w1", 3, False, 300.0),
        _check("w1", 4, True, 200.0),
    ]

    summary = summarize_checks("w1", NOW - timedelta(minutes=30), checks)

    assert summary is not None
    assert summary.uptime == pytest.approx(75.0)
    assert summary.downtime == pytest.approx(25.0)
    assert summary.checks == 4
    assert summary.failures == 1
    assert summary.avg_response_time_ms == pytest.approx(200.0)


def test_summarize_empty_window() -> None:
    assert summarize_checks("w1", NOW, []) is None


@pytest.mark.asyncio
async def test_aggregation_writes_summary_for_window(store, db_path, seed) -> None:
    _, (website_id,) = seed(urls=("https://example.com",))
    _add_checks(
        db_path,
        [
            _check(website_id, 5, True),
            _check(website_id, 10, True),
            _check(website_id, 15, False),
            _check(website_id, 20, True),
            _check(website_id, 45, False),  # outside the window
        ],
    )
    aggregator = UptimeAggregator(store, window_minutes=30, clock=lambda: NOW)

    report = await aggregator.run()

    assert report.ok
    assert len(report.summaries) == 1
    summaries = dbm.list_uptime_summaries(db_path, website_id=website_id)
    assert len(summaries) == 1
    assert summaries[0].uptime == pytest.approx(75.0)
    assert summaries[0].downtime == pytest.approx(25.0)
    assert summaries[0].window_start == NOW - timedelta(minutes=30)
    assert report.pruned is False
    assert len(dbm.list_checks(db_path, website_id=website_id)) == 5


@pytest.mark.asyncio
async def test_website_without_checks_gets_no_summary(store, db_path, seed) -> None:
    _, (quiet, busy) = seed(urls=("https://quiet.example.com", "https://busy.example.com"))
    _add_checks(db_path, [_check(busy, 1, True)])
    aggregator = UptimeAggregator(store, clock=lambda: NOW)

    report = await aggregator.run()

    assert report.skipped_websites == 1
    assert dbm.list_uptime_summaries(db_path, website_id=quiet) == []
    assert len(dbm.list_uptime_summaries(db_path, website_id=busy)) == 1


@pytest.mark.asyncio
async def test_retention_prunes_only_rows_before_window(store, db_path, seed) -> None:
    _, (website_id,) = seed(urls=("https://example.com",))
    _add_checks(db_path, [_check(website_id, 5, True), _check(website_id, 90, False)])
    aggregator = UptimeAggregator(store, retention_enabled=True, clock=lambda: NOW)

    report = await aggregator.run()

    assert report.pruned is True
    assert report.deleted_checks == 1
    assert report.deleted_metrics == 1
    remaining = dbm.list_checks(db_path, website_id=website_id)
    assert [c.success for c in remaining] == [True]
    assert dbm.list_uptime_summaries(db_path, website_id=website_id)[0].uptime == pytest.approx(100.0)


class RecordingStore:
    """Wraps a real store and records the order of write operations."""

    def __init__(self, inner, fail_list_checks_for: str | None = None) -> None:
        self.inner = inner
        self.fail_list_checks_for = fail_list_checks_for
        self.calls: list[str] = []

    async def fetch_config(self):
        return await self.inner.fetch_config()

    async def list_checks(self, website_id, since, until):
        if website_id == self.fail_list_checks_for:
            raise RuntimeError("database is locked")
        return await self.inner.list_checks(website_id, since, until)

    async def append_uptime_summary(self, website_id, summary):
        self.calls.append("summary")
        await self.inner.append_uptime_summary(website_id, summary)

    async def delete_checks_older_than(self, before):
        self.calls.append("delete_checks")
        return await self.inner.delete_checks_older_than(before)

    async def delete_performance_older_than(self, before):
        self.calls.append("delete_performance")
        return await self.inner.delete_performance_older_than(before)


@pytest.mark.asyncio
async def test_pruning_happens_after_all_summaries(store, db_path, seed) -> None:
    _, website_ids = seed(urls=("https://a.example.com", "https://b.example.com"))
    _add_checks(db_path, [_check(w, 5, True) for w in website_ids])
    recording = RecordingStore(store)
    aggregator = UptimeAggregator(recording, retention_enabled=True, clock=lambda: NOW)

    await aggregator.run()

    assert recording.calls == ["summary", "summary", "delete_checks", "delete_performance"]


@pytest.mark.asyncio
async def test_failed_run_aborts_without_pruning(store, db_path, seed) -> None:
    _, website_ids = seed(urls=("https://a.example.com", "https://b.example.com"))
    _add_checks(db_path, [_check(w, 5, True) for w in website_ids] + [_check(w, 90, True) for w in website_ids])
    recording = RecordingStore(store, fail_list_checks_for=max(website_ids))
    aggregator = UptimeAggregator(recording, retention_enabled=True, clock=lambda: NOW)

    report = await aggregator.run()

    assert not report.ok
    assert "database is locked" in (report.error or "")
    assert "delete_checks" not in recording.calls
    assert report.pruned is False
    for website_id in website_ids:
        assert len(dbm.list_checks(db_path, website_id=website_id)) == 2
