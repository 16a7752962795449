"""Scheduler module for orchestrating monitoring tasks."""

from .config_poller import ConfigPoller
from .coordinator import MonitoringCoordinator
from .job_scheduler import JobScheduler
from .reconciler import Reconciler, ScheduledTask

__all__ = ["ConfigPoller", "JobScheduler", "MonitoringCoordinator", "Reconciler", "ScheduledTask"]
