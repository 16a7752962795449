"""Persistence for monitoring configuration and results."""

from .store import MonitorStore, SqliteMonitorStore

__all__ = ["MonitorStore", "SqliteMonitorStore"]
