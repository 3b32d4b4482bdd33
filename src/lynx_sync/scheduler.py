"""Periodic feed synchronization."""

import asyncio
import logging
import threading

import httpx

from lynx_sync.config import DEFAULT_FETCH_TIMEOUT, DEFAULT_SYNC_INTERVAL
from lynx_sync.database import Database
from lynx_sync.errors import LynxError, PersistenceFailure
from lynx_sync.feeds import refresh_feed
from lynx_sync.models import Feed

logger = logging.getLogger(__name__)


class FeedScheduler:
    """Refreshes every feed in the store on a fixed interval.

    Feeds are processed one after another and a failing feed never stops the
    rest of the cycle. Only one cycle runs at a time; a cycle triggered while
    another is in progress is skipped.
    """

    def __init__(
        self,
        db: Database,
        *,
        interval: int = DEFAULT_SYNC_INTERVAL,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        client: httpx.Client | None = None,
    ):
        self.db = db
        self.interval = interval
        self.timeout = timeout
        self.client = client
        self._cycle_lock = threading.Lock()

    async def run_cycle(self) -> int:
        """Refresh all feeds once. Returns count of new items found."""
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Previous sync cycle still running, skipping")
            return 0
        try:
            return await self._refresh_all()
        finally:
            self._cycle_lock.release()

    async def _refresh_all(self) -> int:
        feeds = await asyncio.to_thread(self.db.get_all_feeds)
        total_new = 0

        for feed in feeds:
            try:
                total_new += await asyncio.to_thread(
                    refresh_feed,
                    self.db,
                    feed,
                    timeout=self.timeout,
                    client=self.client,
                )
                await asyncio.to_thread(self.db.reset_feed_error, feed.id)
            except LynxError as e:
                logger.warning("Feed '%s' error: %s", feed.name, e)
                await asyncio.to_thread(self._record_error, feed, str(e))
            except Exception as e:
                logger.warning("Feed '%s' unexpected error: %s", feed.name, e)
                await asyncio.to_thread(self._record_error, feed, str(e))

        return total_new

    def _record_error(self, feed: Feed, message: str) -> None:
        try:
            self.db.update_feed_error(feed.id, message)
        except PersistenceFailure as e:
            logger.warning("Could not record error for feed '%s': %s", feed.name, e)

    async def run_forever(self) -> None:
        """Run the sync loop indefinitely."""
        logger.info("Scheduler started (interval: %ds)", self.interval)

        while True:
            try:
                new_count = await self.run_cycle()
                if new_count > 0:
                    logger.info("Sync cycle complete: %d new items", new_count)
            except Exception as e:
                logger.error("Sync cycle failed: %s", e)

            await asyncio.sleep(self.interval)
