"""Reachability probes and their persistence."""

from .probe import ProbeOutcome, classify_request_error, probe_url
from .recorder import CheckRecorder

__all__ = ["ProbeOutcome", "classify_request_error", "probe_url", "CheckRecorder"]
