from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


KIND_DOWN = "down"
KIND_RECOVERED = "recovered"


@dataclass(frozen=True)
class AlertNotice:
    website_id: str
    url: str
    message: str
    recipient: Optional[str]
    project_name: str
    triggered_at: datetime
    kind: str = KIND_DOWN
    channel: Optional[str] = None
    status_code: Optional[int] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    response_time_ms: Optional[float] = None


class Notifier(Protocol):
    """Delivers one formatted alert. Returns True when the provider accepted it."""

    async def notify(self, notice: AlertNotice) -> bool: ...
