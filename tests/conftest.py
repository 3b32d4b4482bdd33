"""Shared test fixtures for lynx-sync tests."""

import os
import tempfile

import httpx
import pytest

from lynx_sync.database import Database


SAMPLE_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Test Feed</title>
    <link>https://example.com</link>
    <description>A test RSS feed</description>
    <image>
      <url>https://example.com/logo.png</url>
      <title>Test Feed</title>
      <link>https://example.com</link>
    </image>
    <item>
      <title>First Article</title>
      <link>https://example.com/article-1</link>
      <guid>article-1</guid>
      <description>Description of the first article</description>
      <pubDate>Fri, 13 Feb 2026 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Second Article</title>
      <link>https://example.com/article-2</link>
      <guid>article-2</guid>
      <description>Description of the second article</description>
      <pubDate>Fri, 13 Feb 2026 09:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>"""

SAMPLE_ATOM_XML = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Test Atom Feed</title>
  <link href="https://example.com"/>
  <subtitle>A test Atom feed</subtitle>
  <entry>
    <title>Atom Entry 1</title>
    <link href="https://example.com/entry-1"/>
    <id>urn:uuid:entry-1</id>
    <summary>Summary of entry 1</summary>
    <updated>2026-02-13T10:00:00Z</updated>
  </entry>
</feed>"""

SAMPLE_UNDATED_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Undated Feed</title>
    <link>https://example.com</link>
    <description>Items without dates</description>
    <item>
      <title>Timeless</title>
      <link>https://example.com/timeless</link>
      <guid>timeless</guid>
    </item>
  </channel>
</rss>"""

SAMPLE_NOT_A_FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<html>
  <body>This is not a feed</body>
</html>"""

SAMPLE_ARTICLE_HTML = """<html>
<head><title>An Article</title></head>
<body><article><h1>An Article</h1><p>Some words worth reading.</p></article></body>
</html>"""


class FakeServer:
    """Routes httpx requests to canned responses and records them."""

    def __init__(self):
        self.routes = {}
        self.requests: list[httpx.Request] = []
        self.client = httpx.Client(transport=httpx.MockTransport(self.handle))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404)
        if callable(route):
            return route(request)
        return route

    def requests_for(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]


@pytest.fixture
def tmp_db_path():
    """Provide a temporary SQLite database path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    yield path
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(path + suffix)
        except OSError:
            pass


@pytest.fixture
def db(tmp_db_path):
    """A connected database on a temporary file."""
    database = Database(tmp_db_path)
    database.connect()
    yield database
    database.close()


@pytest.fixture
def server():
    """A fake HTTP server reachable through ``server.client``."""
    fake = FakeServer()
    yield fake
    fake.client.close()


@pytest.fixture
def rss_factory():
    """Build an RSS document from (guid, pubDate or None) pairs."""

    def build(entries, title="Generated Feed"):
        items = []
        for guid, pub_date in entries:
            date_xml = f"<pubDate>{pub_date}</pubDate>" if pub_date else ""
            items.append(
                f"<item><title>{guid}</title>"
                f"<link>https://example.com/{guid}</link>"
                f"<guid>{guid}</guid>{date_xml}</item>"
            )
        return (
            '<?xml version="1.0" encoding="UTF-8"?><rss version="2.0"><channel>'
            f"<title>{title}</title><link>https://example.com</link>"
            f"<description>generated</description>{''.join(items)}</channel></rss>"
        )

    return build


@pytest.fixture
def sample_rss_xml():
    """Sample valid RSS 2.0 XML."""
    return SAMPLE_RSS_XML


@pytest.fixture
def sample_atom_xml():
    """Sample valid Atom XML."""
    return SAMPLE_ATOM_XML


@pytest.fixture
def sample_undated_rss_xml():
    """Sample RSS whose only item has no publication date."""
    return SAMPLE_UNDATED_RSS_XML


@pytest.fixture
def sample_not_a_feed_xml():
    """Sample XML that is not a feed."""
    return SAMPLE_NOT_A_FEED_XML


@pytest.fixture
def sample_article_html():
    return SAMPLE_ARTICLE_HTML
