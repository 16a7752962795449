"""Pulse: scheduled website health checks, alerting and uptime statistics."""

__version__ = "0.1.0"
