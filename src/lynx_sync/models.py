"""Data models for lynx-sync."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class EntityKind(str, Enum):
    """Entity kinds whose creation triggers enrichment."""

    LINK = "links"
    FEED_ITEM = "feed_items"


@dataclass
class Feed:
    """Represents a subscribed RSS/Atom source owned by one user."""

    owner_id: str
    url: str
    name: str
    description: str | None = None
    image_url: str | None = None
    # Opaque validators echoed back to the server, never interpreted
    etag: str = ""
    last_modified: str = ""
    last_fetched_at: datetime | None = None
    auto_add_items_to_links: bool = False
    error_count: int = 0
    last_error: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None


@dataclass
class FeedItem:
    """Represents a single entry discovered in a feed."""

    feed_id: int
    owner_id: str
    guid: str
    title: str
    description: str | None = None
    url: str | None = None
    published_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None


@dataclass
class Link:
    """A saved article, submitted directly or converted from a feed item."""

    owner_id: str
    original_url: str
    cleaned_url: str
    hostname: str | None = None
    title: str | None = None
    excerpt: str | None = None
    author: str | None = None
    article_html: str | None = None
    raw_text_content: str | None = None
    header_image_url: str | None = None
    article_date: str | None = None
    full_page_html: str | None = None
    read_time_seconds: int = 0
    read_time_display: str = "0 min"
    summary: str | None = None
    archive_path: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None
