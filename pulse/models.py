"""Core data structures shared by the scheduler, checks, alerts and storage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


# Desired configuration snapshot (read-only to the core).


class ProjectSetting(BaseModel):
    status: Optional[bool] = Field(default=None, description="Monitoring enabled flag; None means not set")
    interval: Optional[int] = Field(default=None, description="Check interval in seconds")
    notify_type: Optional[str] = Field(default=None, description="Notification channel for this project")


class Website(BaseModel):
    id: str
    project_id: str
    url: str


class Project(BaseModel):
    id: str
    name: str
    user_id: Optional[str] = None
    setting: Optional[ProjectSetting] = None
    websites: list[Website] = Field(default_factory=list)

    @property
    def monitoring_enabled(self) -> bool:
        # Only an explicit False disables monitoring.
        return not (self.setting is not None and self.setting.status is False)


class MonitoringConfig(BaseModel):
    """Snapshot of every project with its setting and websites.

    Projects and websites are kept sorted by id so that two snapshots holding
    the same rows compare equal regardless of the order the store returned them.
    """

    projects: list[Project] = Field(default_factory=list)

    @model_validator(mode="after")
    def _canonical_order(self) -> "MonitoringConfig":
        for project in self.projects:
            project.websites.sort(key=lambda w: w.id)
        self.projects.sort(key=lambda p: p.id)
        return self

    def website_count(self) -> int:
        return sum(len(p.websites) for p in self.projects)

    def websites_by_id(self) -> dict[str, Website]:
        return {w.id: w for p in self.projects for w in p.websites}


# Runtime targets.

TargetKey = tuple[str, str, Optional[int]]


@dataclass(frozen=True)
class MonitorTarget:
    website_id: str
    url: str
    interval_seconds: Optional[int]
    project_id: str = field(default="", compare=False)
    project_name: str = field(default="", compare=False)
    monitoring_enabled: bool = field(default=True, compare=False)
    project_website_count: int = field(default=1, compare=False)
    notify_type: Optional[str] = field(default=None, compare=False)

    @property
    def key(self) -> TargetKey:
        return (self.website_id, self.url, self.interval_seconds)

    def describe(self) -> str:
        return f"{self.website_id}-{self.url}-{self.interval_seconds}"


def flatten_targets(config: MonitoringConfig) -> list[MonitorTarget]:
    """Expand project -> setting -> websites into one target per website."""
    targets: list[MonitorTarget] = []
    for project in config.projects:
        setting = project.setting
        for website in project.websites:
            targets.append(
                MonitorTarget(
                    website_id=website.id,
                    url=website.url,
                    interval_seconds=setting.interval if setting else None,
                    project_id=project.id,
                    project_name=project.name,
                    monitoring_enabled=project.monitoring_enabled,
                    project_website_count=len(project.websites),
                    notify_type=setting.notify_type if setting else None,
                )
            )
    return targets


# Persisted records.


@dataclass(frozen=True)
class CheckResult:
    website_id: str
    checked_at: datetime
    success: bool
    response_time_ms: Optional[float] = None
    status_code: Optional[int] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    content_size: Optional[int] = None


@dataclass(frozen=True)
class PerformanceMetric:
    website_id: str
    recorded_at: datetime
    response_time_ms: Optional[float] = None
    status_code: Optional[int] = None
    content_size: Optional[int] = None


@dataclass(frozen=True)
class AlertRecord:
    id: str
    website_id: str
    message: str
    created_at: datetime
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None


@dataclass(frozen=True)
class UptimeSummary:
    website_id: str
    window_start: datetime
    uptime: float
    downtime: float
    checks: int
    failures: int
    avg_response_time_ms: Optional[float] = None
