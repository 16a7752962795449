from __future__ import annotations

from typing import Callable

import pytest

from pulse.notifications.base import AlertNotice
from pulse.storage import SqliteMonitorStore
from pulse.storage import db as dbm


class RecordingNotifier:
    def __init__(self, *, ok: bool = True, error: Exception | None = None) -> None:
        self.ok = ok
        self.error = error
        self.notices: list[AlertNotice] = []

    async def notify(self, notice: AlertNotice) -> bool:
        self.notices.append(notice)
        if self.error is not None:
            raise self.error
        return self.ok


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "pulse.db")


@pytest.fixture
def store(db_path: str) -> SqliteMonitorStore:
    return SqliteMonitorStore(db_path)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def seed(db_path: str) -> Callable[..., tuple[str, list[str]]]:
    """Create a user-owned project with an optional setting and websites; returns (project_id, website_ids)."""

    def _seed(
        *,
        name: str = "Example",
        urls: tuple[str, ...] = ("https://example.com",),
        status: bool | None = True,
        interval: int | None = 60,
        notify_type: str | None = None,
        with_setting: bool = True,
        email: str = "owner@example.com",
    ) -> tuple[str, list[str]]:
        user_id = dbm.create_user(db_path, email=email)
        project_id = dbm.create_project(db_path, name=name, user_id=user_id)
        if with_setting:
            dbm.set_project_setting(
                db_path, project_id=project_id, status=status, interval=interval, notify_type=notify_type
            )
        website_ids = [dbm.add_website(db_path, project_id=project_id, url=u) for u in urls]
        return project_id, website_ids

    return _seed


@pytest.fixture
def make_notifier() -> Callable[..., RecordingNotifier]:
    return RecordingNotifier
