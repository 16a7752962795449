"""Alert deduplication."""

from .tracker import AlertStateTracker, AlertTransition

__all__ = ["AlertStateTracker", "AlertTransition"]
