"""Saving web pages as links, with article extraction via trafilatura."""

import logging
from urllib.parse import urlparse

import httpx
import trafilatura

from lynx_sync.config import DEFAULT_FETCH_TIMEOUT
from lynx_sync.database import Database
from lynx_sync.errors import AuthorizationFailure, ParseFailure, TransportFailure
from lynx_sync.feed_parser import new_client, validate_url
from lynx_sync.models import Link

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 285
EXCERPT_LENGTH = 200


def create_link_from_url(
    db: Database,
    owner_id: str,
    url: str,
    *,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    client: httpx.Client | None = None,
) -> Link:
    """Fetch a page, extract its article and save it as the owner's link.

    Raises:
        AuthorizationFailure: If no owner is given.
        ParseFailure: If the URL is invalid or no article can be extracted.
        TransportFailure: If the page cannot be fetched.
        PersistenceFailure: If the link cannot be stored.
    """
    if not owner_id:
        raise AuthorizationFailure("Not authenticated")
    validate_url(url)

    response = _get_page(url, timeout, client)
    html = response.text
    final_url = str(response.url)

    text = trafilatura.extract(
        html, url=final_url, include_comments=False, include_tables=False
    )
    if not text:
        raise ParseFailure("Failed to parse webpage content")
    article_html = trafilatura.extract(
        html, url=final_url, output_format="html", include_comments=False
    )
    metadata = trafilatura.extract_metadata(html, default_url=final_url)

    seconds, display = read_time(text)
    link = Link(
        owner_id=owner_id,
        original_url=url,
        cleaned_url=final_url,
        hostname=urlparse(final_url).hostname,
        title=_meta(metadata, "title"),
        excerpt=_meta(metadata, "description") or text[:EXCERPT_LENGTH],
        author=_meta(metadata, "author"),
        article_html=article_html,
        raw_text_content=text,
        header_image_url=_meta(metadata, "image"),
        article_date=_meta(metadata, "date"),
        full_page_html=html,
        read_time_seconds=seconds,
        read_time_display=display,
    )
    db.add_link(link)
    logger.info("Saved link %s for %s: %s", link.id, owner_id, final_url)
    return link


def read_time(text: str) -> tuple[int, str]:
    """Estimate reading time as (seconds, "N min")."""
    minutes = len(text.split()) / WORDS_PER_MINUTE
    return round(minutes * 60), f"{round(minutes)} min"


def _get_page(url: str, timeout: float, client: httpx.Client | None) -> httpx.Response:
    try:
        if client is not None:
            response = client.get(url, timeout=timeout, follow_redirects=True)
        else:
            with new_client(timeout) as own_client:
                response = own_client.get(url)
    except httpx.HTTPError as e:
        raise TransportFailure(f"Failed to fetch {url}: {e}") from e
    if response.status_code >= 400:
        raise TransportFailure(f"Could not reach URL: HTTP {response.status_code}")
    return response


def _meta(metadata, name: str) -> str | None:
    if metadata is None:
        return None
    return getattr(metadata, name, None) or None
