"""Fire-and-forget enrichment dispatch on entity creation."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from lynx_sync.config import DEFAULT_ENRICHMENT_WORKERS
from lynx_sync.enrichment import Archiver, FeedItemConverter, Summarizer
from lynx_sync.models import EntityKind

logger = logging.getLogger(__name__)


class Dispatcher:
    """Launches enrichment attempts when links and feed items are created.

    Attempts are queued on a bounded thread pool and run exactly once, with
    no retry and no cancellation. Submitting never waits for an attempt to
    start. Each attempt gets a Future carrying its result or exception;
    failures are logged here and go nowhere else.
    """

    def __init__(
        self,
        summarizer: Summarizer,
        archiver: Archiver,
        converter: FeedItemConverter,
        *,
        max_workers: int = DEFAULT_ENRICHMENT_WORKERS,
    ):
        self.summarizer = summarizer
        self.archiver = archiver
        self.converter = converter
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="enrichment"
        )

    def on_entity_created(self, kind: EntityKind, entity_id: int) -> list[Future]:
        """Store creation listener: fan out the attempts owed for an entity."""
        if kind == EntityKind.LINK:
            return [
                self._submit("summarize", self.summarizer.maybe_summarize, entity_id),
                self._submit("archive", self.archiver.maybe_archive, entity_id),
            ]
        if kind == EntityKind.FEED_ITEM:
            return [self._submit("convert", self.converter.maybe_convert, entity_id)]
        return []

    def dispatch_archive(self, link_id: int) -> Future:
        """Launch a single archive attempt for a link."""
        return self._submit("archive", self.archiver.maybe_archive, link_id)

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        """Stop accepting attempts. Queued attempts are not persisted.

        With ``cancel_futures`` attempts that have not started yet are dropped.
        """
        self._executor.shutdown(wait=wait, cancel_futures=cancel_futures)

    def _submit(self, name: str, fn: Callable[[int], None], entity_id: int) -> Future:
        try:
            future = self._executor.submit(fn, entity_id)
        except RuntimeError as e:
            # Pool already shut down; the creator must not see this
            logger.exception("Enrichment '%s' not started for %s", name, entity_id)
            future = Future()
            future.set_exception(e)
            return future
        future.add_done_callback(lambda f: _log_failure(name, entity_id, f))
        return future


def _log_failure(name: str, entity_id: int, future: Future) -> None:
    if future.cancelled():
        logger.info("Enrichment '%s' dropped for %s", name, entity_id)
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Enrichment '%s' failed for %s: %s", name, entity_id, exc, exc_info=exc)
