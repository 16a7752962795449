"""Error types raised by the monitoring core."""


class PulseError(Exception):
    """Base class for monitoring errors."""


class ConfigFetchError(PulseError):
    """The desired configuration could not be read; the previous snapshot stays in effect."""


class UnsupportedIntervalError(PulseError, ValueError):
    """A check interval cannot be mapped onto a cadence."""

    def __init__(self, interval_seconds):
        self.interval_seconds = interval_seconds
        super().__init__(f"Unsupported check interval: {interval_seconds!r} seconds")
