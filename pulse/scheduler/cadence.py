"""Mapping of check intervals (seconds) onto scheduler cadences."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pulse.errors import UnsupportedIntervalError


KIND_CRON = "cron"
KIND_INTERVAL = "interval"

# Six-field cron expressions: second minute hour day month day_of_week.
PRESET_CADENCES: dict[int, str] = {
    30: "*/30 * * * * *",
    60: "0 * * * * *",
    300: "0 */5 * * * *",
    600: "0 */10 * * * *",
    900: "0 */15 * * * *",
}


@dataclass(frozen=True)
class Cadence:
    interval_seconds: int
    kind: str
    expression: Optional[str] = None
    minutes: Optional[int] = None

    def describe(self) -> str:
        if self.kind == KIND_CRON:
            return str(self.expression)
        return f"every {self.minutes} minutes"


def cadence_for_interval(interval_seconds: Optional[int]) -> Cadence:
    """
    Presets for common intervals; otherwise fire every floor(interval / 60)
    minutes. Sub-minute intervals other than 30s are rejected.
    """
    if interval_seconds is None or isinstance(interval_seconds, bool):
        raise UnsupportedIntervalError(interval_seconds)
    try:
        seconds = int(interval_seconds)
    except (TypeError, ValueError):
        raise UnsupportedIntervalError(interval_seconds) from None
    if seconds <= 0:
        raise UnsupportedIntervalError(interval_seconds)

    preset = PRESET_CADENCES.get(seconds)
    if preset is not None:
        return Cadence(interval_seconds=seconds, kind=KIND_CRON, expression=preset)

    minutes = seconds // 60
    if minutes < 1:
        raise UnsupportedIntervalError(interval_seconds)
    if minutes <= 59:
        return Cadence(interval_seconds=seconds, kind=KIND_CRON, expression=f"0 */{minutes} * * * *", minutes=minutes)
    # A cron minute step cannot exceed the hour.
    return Cadence(interval_seconds=seconds, kind=KIND_INTERVAL, minutes=minutes)
