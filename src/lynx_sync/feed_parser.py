"""Conditional RSS/Atom fetching using httpx and feedparser."""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from time import struct_time
from urllib.parse import urlparse

import feedparser
import httpx

from lynx_sync.config import DEFAULT_FETCH_TIMEOUT
from lynx_sync.errors import ParseFailure, TransportFailure

logger = logging.getLogger(__name__)

USER_AGENT = "lynx-sync/0.1 (+feed reader)"


@dataclass
class ParsedFeed:
    """Result of parsing an RSS/Atom document."""

    title: str
    description: str | None
    image_url: str | None
    site_link: str | None
    items: list[dict]
    warnings: list[str] = field(default_factory=list)


@dataclass
class FetchOutcome:
    """What a conditional fetch produced.

    ``feed`` is None when the server answered 304 Not Modified. Otherwise
    ``etag`` and ``last_modified`` hold the response headers verbatim, or an
    empty string when the server did not send them.
    """

    feed: ParsedFeed | None = None
    etag: str = ""
    last_modified: str = ""

    @property
    def unchanged(self) -> bool:
        return self.feed is None


def fetch_feed(
    url: str,
    etag: str | None = None,
    last_modified: datetime | None = None,
    *,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    client: httpx.Client | None = None,
) -> FetchOutcome:
    """Fetch a feed, sending conditional headers when validators are known.

    Args:
        url: The feed URL.
        etag: Previously received entity tag, sent as If-None-Match.
        last_modified: Previously received Last-Modified time, sent as
            If-Modified-Since.
        timeout: Seconds before the request is abandoned.
        client: Optional httpx client to send the request with.

    Returns:
        FetchOutcome, with no feed when the content is unchanged.

    Raises:
        TransportFailure: If the server is unreachable or answers with an error.
        ParseFailure: If the URL is invalid or the body is not a feed.
    """
    validate_url(url)

    headers = {}
    if etag:
        headers["If-None-Match"] = etag
    if last_modified is not None:
        headers["If-Modified-Since"] = format_http_date(last_modified)

    response = _get(url, headers, timeout, client)

    if response.status_code == httpx.codes.NOT_MODIFIED:
        logger.debug("Feed %s not modified", url)
        return FetchOutcome()

    if response.status_code in (401, 403):
        raise TransportFailure(
            "Feed requires authentication. Ensure the URL is publicly accessible."
        )
    if response.status_code >= 400:
        raise TransportFailure(f"Could not reach URL: HTTP {response.status_code}")

    feed = parse_feed(response.content, dict(response.headers))
    return FetchOutcome(
        feed=feed,
        etag=response.headers.get("ETag", ""),
        last_modified=response.headers.get("Last-Modified", ""),
    )


def parse_feed(content: bytes, response_headers: dict | None = None) -> ParsedFeed:
    """Parse a feed document body.

    Raises:
        ParseFailure: If the body is not recognisable as RSS or Atom.
    """
    parsed = feedparser.parse(content, response_headers=response_headers or {})

    if not parsed.get("version"):
        raise ParseFailure("URL does not point to a valid RSS or Atom feed")

    warnings: list[str] = []
    if parsed.bozo:
        warnings.append(f"Feed has formatting issues: {parsed.bozo_exception}")

    image = parsed.feed.get("image") or {}
    return ParsedFeed(
        title=parsed.feed.get("title", "Untitled Feed"),
        description=parsed.feed.get("description") or parsed.feed.get("subtitle"),
        image_url=(
            image.get("href")
            or image.get("url")
            or parsed.feed.get("logo")
            or parsed.feed.get("icon")
        ),
        site_link=parsed.feed.get("link"),
        items=_extract_items(parsed.entries, warnings),
        warnings=warnings,
    )


def validate_url(url: str) -> None:
    """Validate that the URL is an absolute http(s) URL."""
    try:
        result = urlparse(url)
    except ValueError:
        raise ParseFailure("Invalid URL format")
    if not result.scheme or not result.netloc:
        raise ParseFailure("Invalid URL format")
    if result.scheme not in ("http", "https"):
        raise ParseFailure("Invalid URL format: only http and https are supported")


def format_http_date(dt: datetime) -> str:
    """Format a datetime as an RFC 7231 HTTP-date."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


def parse_http_date(value: str | None) -> datetime | None:
    """Parse an HTTP-date header value, returning None if it is not one."""
    if not value:
        return None
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _get(
    url: str, headers: dict, timeout: float, client: httpx.Client | None
) -> httpx.Response:
    try:
        if client is not None:
            return client.get(url, headers=headers, timeout=timeout, follow_redirects=True)
        with new_client(timeout) as own_client:
            return own_client.get(url, headers=headers)
    except httpx.TimeoutException as e:
        raise TransportFailure(f"Timed out fetching {url}") from e
    except httpx.HTTPError as e:
        raise TransportFailure(f"Could not reach URL: {e}") from e


def new_client(timeout: float = DEFAULT_FETCH_TIMEOUT) -> httpx.Client:
    """Create the httpx client used for feed and page requests."""
    return httpx.Client(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


def _extract_items(entries: list, warnings: list[str]) -> list[dict]:
    """Extract normalized item dicts from feedparser entries, in document order."""
    items = []
    for entry in entries:
        try:
            guid = entry.get("id") or entry.get("guid") or entry.get("link")
            if not guid:
                warnings.append(
                    f"Skipping entry with no identifier: {entry.get('title', 'unknown')}"
                )
                continue

            items.append({
                "guid": guid,
                "title": entry.get("title", "Untitled"),
                "link": entry.get("link"),
                "description": entry.get("summary") or entry.get("description"),
                "published_at": _parse_date(entry),
            })
        except Exception as e:
            warnings.append(f"Skipping malformed entry: {e}")
            continue
    return items


def _parse_date(entry: dict) -> datetime | None:
    """Parse publication date from a feedparser entry as UTC."""
    for name in ("published_parsed", "updated_parsed"):
        time_struct = entry.get(name)
        if isinstance(time_struct, struct_time):
            try:
                return datetime.fromtimestamp(calendar.timegm(time_struct), tz=timezone.utc)
            except (ValueError, OverflowError):
                continue
    return None
