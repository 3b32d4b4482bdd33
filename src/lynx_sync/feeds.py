"""Feed subscription and item synchronization."""

import logging
from datetime import datetime

import httpx

from lynx_sync.config import DEFAULT_FETCH_TIMEOUT
from lynx_sync.database import Database
from lynx_sync.errors import AuthorizationFailure, NotFound, ParseFailure
from lynx_sync.feed_parser import FetchOutcome, fetch_feed, parse_http_date
from lynx_sync.models import Feed, FeedItem, utcnow

logger = logging.getLogger(__name__)


def sync_feed_items(
    db: Database,
    feed: Feed,
    outcome: FetchOutcome,
    previous_boundary: datetime | None,
) -> int:
    """Persist the new items of a fetched feed.

    Validators and last_fetched_at are written first whenever the fetch
    produced a body, even if no item turns out to be new. A dated item is
    only considered if it was published strictly after ``previous_boundary``;
    undated items always go through the guid check.

    Returns:
        Number of feed items inserted.

    Raises:
        PersistenceFailure: If a write is rejected. Items inserted before the
            failure are kept.
    """
    if outcome.unchanged:
        return 0

    db.update_feed_fetch_state(feed.id, outcome.etag, outcome.last_modified, utcnow())

    inserted = _save_new_items(db, feed, outcome.feed.items, previous_boundary)
    if inserted:
        logger.info("Feed '%s': %d new items", feed.name, inserted)
    return inserted


def _save_new_items(
    db: Database, feed: Feed, items: list[dict], boundary: datetime | None
) -> int:
    inserted = 0
    for item_data in items:
        published_at = item_data.get("published_at")
        # Dated items at or before the boundary were already seen
        if published_at is not None and boundary is not None and not published_at > boundary:
            continue
        if db.feed_item_exists(feed.id, item_data["guid"]):
            continue
        db.add_feed_item(
            FeedItem(
                feed_id=feed.id,
                owner_id=feed.owner_id,
                guid=item_data["guid"],
                title=item_data["title"],
                description=item_data.get("description"),
                url=item_data.get("link"),
                published_at=published_at,
            )
        )
        inserted += 1
    return inserted


def refresh_feed(
    db: Database,
    feed: Feed,
    *,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    client: httpx.Client | None = None,
) -> int:
    """Conditionally fetch one feed and store its new items."""
    previous_boundary = feed.last_fetched_at
    outcome = fetch_feed(
        feed.url,
        feed.etag,
        parse_http_date(feed.last_modified),
        timeout=timeout,
        client=client,
    )
    return sync_feed_items(db, feed, outcome, previous_boundary)


def create_feed(
    db: Database,
    owner_id: str,
    url: str,
    *,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    client: httpx.Client | None = None,
) -> Feed:
    """Subscribe a user to a feed and import its current items.

    Raises:
        AuthorizationFailure: If no owner is given.
        ParseFailure: If the URL or the document cannot be parsed.
        TransportFailure: If the feed cannot be fetched.
        PersistenceFailure: If the user is already subscribed or a write fails.
    """
    if not owner_id:
        raise AuthorizationFailure("Not authenticated")

    outcome = fetch_feed(url, timeout=timeout, client=client)
    parsed = outcome.feed
    if parsed is None:
        raise ParseFailure("Feed returned no content")
    for warning in parsed.warnings:
        logger.warning("Feed %s: %s", url, warning)

    feed = db.add_feed(
        Feed(
            owner_id=owner_id,
            url=url,
            name=parsed.title,
            description=parsed.description,
            image_url=parsed.image_url,
            etag=outcome.etag,
            last_modified=outcome.last_modified,
            last_fetched_at=utcnow(),
            auto_add_items_to_links=False,
        )
    )

    inserted = _save_new_items(db, feed, parsed.items, None)
    logger.info("Subscribed %s to '%s' (%d items)", owner_id, feed.name, inserted)
    return feed


def set_auto_add_items(
    db: Database, caller_id: str, feed_id: int, enabled: bool
) -> None:
    """Toggle whether new items of a feed are saved as links."""
    if not caller_id:
        raise AuthorizationFailure("Not authenticated")
    feed = db.get_feed_by_id(feed_id)
    if feed is None:
        raise NotFound("Feed not found")
    if feed.owner_id != caller_id:
        raise AuthorizationFailure("You don't have permission to modify this feed")
    db.set_auto_add_items(feed_id, enabled)
