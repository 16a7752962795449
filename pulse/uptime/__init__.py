"""Uptime statistics."""

from .aggregator import AggregationReport, UptimeAggregator, summarize_checks

__all__ = ["AggregationReport", "UptimeAggregator", "summarize_checks"]
