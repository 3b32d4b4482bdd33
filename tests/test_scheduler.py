"""Tests for the periodic sync cycle."""

import asyncio

import httpx

from lynx_sync.errors import PersistenceFailure
from lynx_sync.models import Feed
from lynx_sync.scheduler import FeedScheduler

FEED_A = "https://a.example.com/feed.xml"
FEED_B = "https://b.example.com/feed.xml"


def _add_feed(db, url, owner="user-1"):
    return db.add_feed(Feed(owner_id=owner, url=url, name=url))


def test_failing_feed_does_not_stop_the_cycle(db, server, sample_rss_xml):
    feed_a = _add_feed(db, FEED_A)
    feed_b = _add_feed(db, FEED_B, owner="user-2")

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    server.routes[FEED_A] = refuse
    server.routes[FEED_B] = httpx.Response(200, text=sample_rss_xml)
    scheduler = FeedScheduler(db, client=server.client)

    new_count = asyncio.run(scheduler.run_cycle())

    assert new_count == 2
    assert db.get_item_count_for_feed(feed_b.id) == 2
    assert db.get_item_count_for_feed(feed_a.id) == 0
    failed = db.get_feed_by_id(feed_a.id)
    assert failed.error_count == 1
    assert "connection refused" in failed.last_error
    assert failed.last_fetched_at is None


def test_parse_failure_is_recorded_and_cleared_on_success(
    db, server, sample_not_a_feed_xml, sample_rss_xml
):
    feed = _add_feed(db, FEED_A)
    server.routes[FEED_A] = httpx.Response(200, text=sample_not_a_feed_xml)
    scheduler = FeedScheduler(db, client=server.client)

    asyncio.run(scheduler.run_cycle())
    assert db.get_feed_by_id(feed.id).error_count == 1

    server.routes[FEED_A] = httpx.Response(200, text=sample_rss_xml)
    asyncio.run(scheduler.run_cycle())

    stored = db.get_feed_by_id(feed.id)
    assert stored.error_count == 0
    assert stored.last_error is None


def test_unchanged_cycle_keeps_items_and_validators(db, server, sample_rss_xml):
    feed = _add_feed(db, FEED_A)
    server.routes[FEED_A] = httpx.Response(
        200,
        text=sample_rss_xml,
        headers={"ETag": '"v1"', "Last-Modified": "Fri, 13 Feb 2026 10:00:00 GMT"},
    )
    scheduler = FeedScheduler(db, client=server.client)
    asyncio.run(scheduler.run_cycle())
    after_first = db.get_feed_by_id(feed.id)

    server.routes[FEED_A] = httpx.Response(304)
    new_count = asyncio.run(scheduler.run_cycle())

    after_second = db.get_feed_by_id(feed.id)
    assert new_count == 0
    assert db.get_item_count_for_feed(feed.id) == 2
    assert after_second.etag == '"v1"'
    assert after_second.last_modified == "Fri, 13 Feb 2026 10:00:00 GMT"
    assert after_second.last_fetched_at == after_first.last_fetched_at
    second_request = server.requests_for(FEED_A)[1]
    assert second_request.headers["If-None-Match"] == '"v1"'


def test_cycle_covers_feeds_of_every_owner(db, server, rss_factory):
    urls = [f"https://{n}.example.com/feed" for n in ("one", "two", "three")]
    for n, url in enumerate(urls):
        _add_feed(db, url, owner=f"user-{n}")
        server.routes[url] = httpx.Response(200, text=rss_factory([(f"g{n}", None)]))

    new_count = asyncio.run(FeedScheduler(db, client=server.client).run_cycle())

    assert new_count == 3
    assert sorted(str(r.url) for r in server.requests) == sorted(urls)


def test_overlapping_cycle_is_skipped(db, server, sample_rss_xml):
    _add_feed(db, FEED_A)
    server.routes[FEED_A] = httpx.Response(200, text=sample_rss_xml)
    scheduler = FeedScheduler(db, client=server.client)

    scheduler._cycle_lock.acquire()
    try:
        new_count = asyncio.run(scheduler.run_cycle())
    finally:
        scheduler._cycle_lock.release()

    assert new_count == 0
    assert server.requests == []


def test_empty_store(db, server):
    assert asyncio.run(FeedScheduler(db, client=server.client).run_cycle()) == 0


def test_persistence_failure_keeps_earlier_writes(db, server, rss_factory, monkeypatch):
    feed_a = _add_feed(db, FEED_A)
    feed_b = _add_feed(db, FEED_B, owner="user-2")
    server.routes[FEED_A] = httpx.Response(
        200,
        text=rss_factory([("a1", None), ("a2", None), ("a3", None)]),
        headers={"ETag": '"a-v2"'},
    )
    server.routes[FEED_B] = httpx.Response(200, text=rss_factory([("b1", None)]))
    add_feed_item = db.add_feed_item

    def reject_a2(item):
        if item.guid == "a2":
            raise PersistenceFailure("disk I/O error")
        return add_feed_item(item)

    monkeypatch.setattr(db, "add_feed_item", reject_a2)

    new_count = asyncio.run(FeedScheduler(db, client=server.client).run_cycle())

    assert [i.guid for i in db.get_feed_items(feed_a.id)] == ["a1"]
    failed = db.get_feed_by_id(feed_a.id)
    assert failed.etag == '"a-v2"'
    assert failed.last_fetched_at is not None
    assert failed.error_count == 1
    assert "disk I/O error" in failed.last_error
    assert [i.guid for i in db.get_feed_items(feed_b.id)] == ["b1"]
    assert new_count == 1
