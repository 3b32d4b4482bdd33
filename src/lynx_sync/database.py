"""SQLite store for feeds, feed items and links."""

import sqlite3
import threading
from datetime import datetime
from typing import Callable

from lynx_sync.errors import PersistenceFailure
from lynx_sync.models import EntityKind, Feed, FeedItem, Link, utcnow

CreationListener = Callable[[EntityKind, int], None]

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS feeds (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    url TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    image_url TEXT,
    etag TEXT NOT NULL DEFAULT '',
    last_modified TEXT NOT NULL DEFAULT '',
    last_fetched_at TEXT,
    auto_add_items_to_links INTEGER DEFAULT 0,
    error_count INTEGER DEFAULT 0,
    last_error TEXT,
    created_at TEXT NOT NULL,
    UNIQUE(owner_id, url)
);

CREATE TABLE IF NOT EXISTS feed_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    feed_id INTEGER NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    owner_id TEXT NOT NULL,
    guid TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    url TEXT,
    published_at TEXT,
    created_at TEXT NOT NULL,
    UNIQUE(feed_id, guid)
);

CREATE TABLE IF NOT EXISTS links (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    original_url TEXT NOT NULL,
    cleaned_url TEXT NOT NULL,
    hostname TEXT,
    title TEXT,
    excerpt TEXT,
    author TEXT,
    article_html TEXT,
    raw_text_content TEXT,
    header_image_url TEXT,
    article_date TEXT,
    full_page_html TEXT,
    read_time_seconds INTEGER DEFAULT 0,
    read_time_display TEXT,
    summary TEXT,
    archive_path TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_feed_items_feed_id ON feed_items(feed_id);
CREATE INDEX IF NOT EXISTS idx_links_owner_url ON links(owner_id, original_url);
"""


class Database:
    """SQLite database manager for feeds, feed items and links.

    One connection is shared by the scheduler and every enrichment worker,
    so each operation runs under a lock.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._listeners: list[CreationListener] = []

    def connect(self) -> None:
        """Open database connection and initialize schema."""
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    # --- Creation events ---

    def add_listener(self, listener: CreationListener) -> None:
        """Register a callback run after each committed link or feed item insert."""
        self._listeners.append(listener)

    def _emit(self, kind: EntityKind, entity_id: int) -> None:
        for listener in self._listeners:
            listener(kind, entity_id)

    def _write(self, sql: str, params: tuple) -> sqlite3.Cursor:
        """Execute and commit a single write, mapping store errors."""
        with self._lock:
            try:
                cursor = self.conn.execute(sql, params)
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                raise PersistenceFailure(str(e)) from e
        return cursor

    def _fetchone(self, sql: str, params: tuple) -> sqlite3.Row | None:
        with self._lock:
            return self.conn.execute(sql, params).fetchone()

    # --- Feed operations ---

    def add_feed(self, feed: Feed) -> Feed:
        """Insert a new feed and return it with its assigned id.

        Raises:
            PersistenceFailure: If the owner is already subscribed to this URL.
        """
        if self.get_feed_by_url(feed.owner_id, feed.url):
            raise PersistenceFailure("Already subscribed to this feed")
        cursor = self._write(
            """INSERT INTO feeds (owner_id, url, name, description, image_url,
               etag, last_modified, last_fetched_at, auto_add_items_to_links,
               error_count, last_error, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                feed.owner_id,
                feed.url,
                feed.name,
                feed.description,
                feed.image_url,
                feed.etag,
                feed.last_modified,
                _dt_to_str(feed.last_fetched_at),
                int(feed.auto_add_items_to_links),
                feed.error_count,
                feed.last_error,
                _dt_to_str(feed.created_at),
            ),
        )
        feed.id = cursor.lastrowid
        return feed

    def get_feed_by_id(self, feed_id: int) -> Feed | None:
        """Look up a feed by its id."""
        row = self._fetchone("SELECT * FROM feeds WHERE id = ?", (feed_id,))
        return _row_to_feed(row) if row else None

    def get_feed_by_url(self, owner_id: str, url: str) -> Feed | None:
        """Look up one owner's subscription to a URL."""
        row = self._fetchone(
            "SELECT * FROM feeds WHERE owner_id = ? AND url = ?", (owner_id, url)
        )
        return _row_to_feed(row) if row else None

    def get_all_feeds(self) -> list[Feed]:
        """Return every feed regardless of owner."""
        with self._lock:
            rows = self.conn.execute("SELECT * FROM feeds ORDER BY id").fetchall()
        return [_row_to_feed(r) for r in rows]

    def update_feed_fetch_state(
        self, feed_id: int, etag: str, last_modified: str, last_fetched_at: datetime
    ) -> None:
        """Write validators and last_fetched_at together in one statement."""
        self._write(
            """UPDATE feeds SET etag = ?, last_modified = ?, last_fetched_at = ?
               WHERE id = ?""",
            (etag, last_modified, _dt_to_str(last_fetched_at), feed_id),
        )

    def update_feed_error(self, feed_id: int, error_message: str) -> None:
        """Increment error count and store error message for a feed."""
        self._write(
            """UPDATE feeds SET error_count = error_count + 1, last_error = ?
               WHERE id = ?""",
            (error_message, feed_id),
        )

    def reset_feed_error(self, feed_id: int) -> None:
        """Reset error count and clear error message on successful fetch."""
        self._write(
            "UPDATE feeds SET error_count = 0, last_error = NULL WHERE id = ?",
            (feed_id,),
        )

    def set_auto_add_items(self, feed_id: int, enabled: bool) -> None:
        self._write(
            "UPDATE feeds SET auto_add_items_to_links = ? WHERE id = ?",
            (int(enabled), feed_id),
        )

    # --- Feed item operations ---

    def feed_item_exists(self, feed_id: int, guid: str) -> bool:
        """Check if an item with the given guid exists for a feed."""
        row = self._fetchone(
            "SELECT 1 FROM feed_items WHERE feed_id = ? AND guid = ?",
            (feed_id, guid),
        )
        return row is not None

    def add_feed_item(self, item: FeedItem) -> FeedItem:
        """Insert a feed item and fire the creation event.

        Raises:
            PersistenceFailure: If the write is rejected, including a
                duplicate (feed_id, guid).
        """
        cursor = self._write(
            """INSERT INTO feed_items (feed_id, owner_id, guid, title, description,
               url, published_at, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                item.feed_id,
                item.owner_id,
                item.guid,
                item.title,
                item.description,
                item.url,
                _dt_to_str(item.published_at),
                _dt_to_str(item.created_at),
            ),
        )
        item.id = cursor.lastrowid
        self._emit(EntityKind.FEED_ITEM, item.id)
        return item

    def get_feed_item_by_id(self, item_id: int) -> FeedItem | None:
        row = self._fetchone("SELECT * FROM feed_items WHERE id = ?", (item_id,))
        return _row_to_feed_item(row) if row else None

    def get_feed_items(self, feed_id: int) -> list[FeedItem]:
        """Get all items stored for a feed, oldest insert first."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM feed_items WHERE feed_id = ? ORDER BY id", (feed_id,)
            ).fetchall()
        return [_row_to_feed_item(r) for r in rows]

    def get_item_count_for_feed(self, feed_id: int) -> int:
        """Get the number of items stored for a feed."""
        row = self._fetchone(
            "SELECT COUNT(*) as cnt FROM feed_items WHERE feed_id = ?", (feed_id,)
        )
        return row["cnt"] if row else 0

    # --- Link operations ---

    def add_link(self, link: Link) -> Link:
        """Insert a link and fire the creation event."""
        cursor = self._write(
            """INSERT INTO links (owner_id, original_url, cleaned_url, hostname,
               title, excerpt, author, article_html, raw_text_content,
               header_image_url, article_date, full_page_html, read_time_seconds,
               read_time_display, summary, archive_path, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                link.owner_id,
                link.original_url,
                link.cleaned_url,
                link.hostname,
                link.title,
                link.excerpt,
                link.author,
                link.article_html,
                link.raw_text_content,
                link.header_image_url,
                link.article_date,
                link.full_page_html,
                link.read_time_seconds,
                link.read_time_display,
                link.summary,
                link.archive_path,
                _dt_to_str(link.created_at),
            ),
        )
        link.id = cursor.lastrowid
        self._emit(EntityKind.LINK, link.id)
        return link

    def get_link_by_id(self, link_id: int) -> Link | None:
        row = self._fetchone("SELECT * FROM links WHERE id = ?", (link_id,))
        return _row_to_link(row) if row else None

    def find_link_by_url(self, owner_id: str, url: str) -> Link | None:
        """Find an owner's link by its original or cleaned URL."""
        row = self._fetchone(
            """SELECT * FROM links WHERE owner_id = ?
               AND (original_url = ? OR cleaned_url = ?)""",
            (owner_id, url, url),
        )
        return _row_to_link(row) if row else None

    def update_link_summary(self, link_id: int, summary: str) -> None:
        self._write("UPDATE links SET summary = ? WHERE id = ?", (summary, link_id))

    def update_link_archive(self, link_id: int, archive_path: str) -> None:
        self._write(
            "UPDATE links SET archive_path = ? WHERE id = ?", (archive_path, link_id)
        )


# --- Helper functions ---


def _dt_to_str(dt: datetime | None) -> str | None:
    """Convert datetime to ISO string for storage."""
    return dt.isoformat() if dt else None


def _str_to_dt(s: str | None) -> datetime | None:
    """Convert stored ISO string back to datetime."""
    if not s:
        return None
    return datetime.fromisoformat(s)


def _row_to_feed(row: sqlite3.Row) -> Feed:
    """Convert a database row to a Feed dataclass."""
    return Feed(
        id=row["id"],
        owner_id=row["owner_id"],
        url=row["url"],
        name=row["name"],
        description=row["description"],
        image_url=row["image_url"],
        etag=row["etag"],
        last_modified=row["last_modified"],
        last_fetched_at=_str_to_dt(row["last_fetched_at"]),
        auto_add_items_to_links=bool(row["auto_add_items_to_links"]),
        error_count=row["error_count"],
        last_error=row["last_error"],
        created_at=_str_to_dt(row["created_at"]) or utcnow(),
    )


def _row_to_feed_item(row: sqlite3.Row) -> FeedItem:
    """Convert a database row to a FeedItem dataclass."""
    return FeedItem(
        id=row["id"],
        feed_id=row["feed_id"],
        owner_id=row["owner_id"],
        guid=row["guid"],
        title=row["title"],
        description=row["description"],
        url=row["url"],
        published_at=_str_to_dt(row["published_at"]),
        created_at=_str_to_dt(row["created_at"]) or utcnow(),
    )


def _row_to_link(row: sqlite3.Row) -> Link:
    """Convert a database row to a Link dataclass."""
    return Link(
        id=row["id"],
        owner_id=row["owner_id"],
        original_url=row["original_url"],
        cleaned_url=row["cleaned_url"],
        hostname=row["hostname"],
        title=row["title"],
        excerpt=row["excerpt"],
        author=row["author"],
        article_html=row["article_html"],
        raw_text_content=row["raw_text_content"],
        header_image_url=row["header_image_url"],
        article_date=row["article_date"],
        full_page_html=row["full_page_html"],
        read_time_seconds=row["read_time_seconds"],
        read_time_display=row["read_time_display"],
        summary=row["summary"],
        archive_path=row["archive_path"],
        created_at=_str_to_dt(row["created_at"]) or utcnow(),
    )
