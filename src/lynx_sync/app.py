"""Action surface tying the store, sync engine and enrichment together."""

import httpx

from lynx_sync import archive, feeds, links
from lynx_sync.config import Settings
from lynx_sync.database import Database
from lynx_sync.dispatcher import Dispatcher
from lynx_sync.enrichment import (
    Archiver,
    FeedItemConverter,
    LibraryConverter,
    LLMSummarizer,
    SingleFileArchiver,
    Summarizer,
)
from lynx_sync.models import Link
from lynx_sync.scheduler import FeedScheduler


class Lynx:
    """Feeds, links and their background enrichment for one store.

    Collaborators default to the production implementations and can be
    replaced through the constructor.
    """

    def __init__(
        self,
        db: Database,
        settings: Settings | None = None,
        *,
        summarizer: Summarizer | None = None,
        archiver: Archiver | None = None,
        converter: FeedItemConverter | None = None,
        client: httpx.Client | None = None,
    ):
        self.db = db
        self.settings = settings or Settings()
        self.client = client

        self.dispatcher = Dispatcher(
            summarizer or LLMSummarizer(db, model_name=self.settings.summary_model),
            archiver
            or SingleFileArchiver(
                db,
                binary=self.settings.singlefile_bin,
                archive_dir=self.settings.archive_dir,
            ),
            converter or LibraryConverter(db, self._create_link),
            max_workers=self.settings.enrichment_workers,
        )
        db.add_listener(self.dispatcher.on_entity_created)

        self.scheduler = FeedScheduler(
            db,
            interval=self.settings.sync_interval,
            timeout=self.settings.fetch_timeout,
            client=client,
        )

    def create_feed(self, owner_id: str, url: str) -> int:
        feed = feeds.create_feed(
            self.db, owner_id, url, timeout=self.settings.fetch_timeout, client=self.client
        )
        return feed.id

    def create_link_from_url(self, owner_id: str, url: str) -> int:
        return self._create_link(owner_id, url).id

    def request_archive(self, caller_id: str, link_id: int) -> dict:
        return archive.request_archive(self.db, self.dispatcher, caller_id, link_id)

    def set_auto_add_items(self, caller_id: str, feed_id: int, enabled: bool) -> None:
        feeds.set_auto_add_items(self.db, caller_id, feed_id, enabled)

    async def run_scheduled_sync(self) -> int:
        """Run one sync cycle over every feed."""
        return await self.scheduler.run_cycle()

    def close(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """Stop the enrichment pool, optionally dropping attempts not yet started."""
        self.dispatcher.shutdown(wait=wait, cancel_futures=cancel_pending)

    def _create_link(self, owner_id: str, url: str) -> Link:
        return links.create_link_from_url(
            self.db, owner_id, url, timeout=self.settings.fetch_timeout, client=self.client
        )
