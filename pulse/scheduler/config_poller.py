"""Periodic re-read of the desired configuration with change detection."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog

from pulse.errors import ConfigFetchError
from pulse.models import MonitoringConfig, flatten_targets
from pulse.scheduler.reconciler import Reconciler
from pulse.storage import MonitorStore


logger = structlog.get_logger(__name__)


def changed_urls(previous: MonitoringConfig, current: MonitoringConfig) -> list[tuple[str, str, str]]:
    """(website_id, old_url, new_url) for websites present in both snapshots whose URL changed."""
    before = previous.websites_by_id()
    out: list[tuple[str, str, str]] = []
    for website_id, website in current.websites_by_id().items():
        old = before.get(website_id)
        if old is not None and old.url != website.url:
            out.append((website_id, old.url, website.url))
    return out


class ConfigPoller:
    """Holds the last snapshot and reconciles only when a new one differs from it."""

    def __init__(self, store: MonitorStore, reconciler: Reconciler):
        self.store = store
        self.reconciler = reconciler
        self.snapshot: Optional[MonitoringConfig] = None
        self.last_poll_at: Optional[datetime] = None
        self.last_change_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    async def fetch(self) -> MonitoringConfig:
        try:
            return await self.store.fetch_config()
        except Exception as e:
            raise ConfigFetchError(f"{type(e).__name__}: {e}") from e

    async def poll(self) -> bool:
        """Returns True when a reconciliation was triggered."""
        self.last_poll_at = datetime.now(timezone.utc)
        try:
            config = await self.fetch()
        except ConfigFetchError as e:
            self.last_error = str(e)
            logger.error("Failed to fetch monitoring configuration, keeping previous snapshot", error=str(e))
            return False
        self.last_error = None

        previous = self.snapshot
        if previous is not None and config == previous:
            logger.debug("No changes")
            return False

        if previous is None:
            logger.info("Loaded monitoring configuration", projects=len(config.projects), websites=config.website_count())
        else:
            logger.info(
                "Configuration changes detected",
                previous_projects=len(previous.projects),
                new_projects=len(config.projects),
            )
            for website_id, old_url, new_url in changed_urls(previous, config):
                logger.info("URL changed for website", website_id=website_id, old_url=old_url, new_url=new_url)

        await self.reconciler.reconcile(flatten_targets(config))
        # Stored only after reconciling so a failed reconciliation is retried on the next poll.
        self.snapshot = config
        self.last_change_at = self.last_poll_at
        return True
