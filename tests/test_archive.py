"""Tests for on-demand archiving."""

import pytest

from lynx_sync.archive import request_archive
from lynx_sync.dispatcher import Dispatcher
from lynx_sync.errors import AuthorizationFailure, NotFound
from lynx_sync.models import Link


class FakeArchiver:
    def __init__(self):
        self.calls = []

    def maybe_archive(self, link_id):
        self.calls.append(link_id)


class Noop:
    def maybe_summarize(self, link_id):
        pass

    def maybe_convert(self, feed_item_id):
        pass


@pytest.fixture
def archiver():
    return FakeArchiver()


@pytest.fixture
def dispatcher(archiver):
    d = Dispatcher(Noop(), archiver, Noop())
    yield d
    d.shutdown()


@pytest.fixture
def link(db):
    return db.add_link(
        Link(owner_id="owner", original_url="https://example.com/a", cleaned_url="https://example.com/a")
    )


def test_owner_starts_archive(db, dispatcher, archiver, link):
    ack = request_archive(db, dispatcher, "owner", link.id)
    dispatcher.shutdown(wait=True)

    assert ack == {"message": "Archive process started"}
    assert archiver.calls == [link.id]


def test_non_owner_is_forbidden(db, dispatcher, archiver, link):
    with pytest.raises(AuthorizationFailure):
        request_archive(db, dispatcher, "someone-else", link.id)
    dispatcher.shutdown(wait=True)

    assert archiver.calls == []


def test_unauthenticated_caller_is_forbidden(db, dispatcher, archiver, link):
    with pytest.raises(AuthorizationFailure, match="Not authenticated"):
        request_archive(db, dispatcher, "", link.id)
    dispatcher.shutdown(wait=True)

    assert archiver.calls == []


def test_missing_link(db, dispatcher, archiver):
    with pytest.raises(NotFound):
        request_archive(db, dispatcher, "owner", 12345)
    dispatcher.shutdown(wait=True)

    assert archiver.calls == []
