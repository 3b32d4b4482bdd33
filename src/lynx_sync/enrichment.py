"""Enrichment collaborators run in the background after entity creation."""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Protocol

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from lynx_sync.config import (
    DEFAULT_ARCHIVE_DIR,
    DEFAULT_SINGLEFILE_BIN,
    DEFAULT_SUMMARY_MODEL,
)
from lynx_sync.database import Database
from lynx_sync.models import Link

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """You summarize saved articles for a read-it-later library.
Return one short paragraph (at most three sentences) stating what the article
is about and its main takeaway. No preface, no title, no bullets."""

MAX_SUMMARY_INPUT_CHARS = 12000
ARCHIVE_TIMEOUT = 120


class Summarizer(Protocol):
    def maybe_summarize(self, link_id: int) -> None: ...


class Archiver(Protocol):
    def maybe_archive(self, link_id: int) -> None: ...


class FeedItemConverter(Protocol):
    def maybe_convert(self, feed_item_id: int) -> None: ...


class LLMSummarizer:
    """Summarizes a link's extracted text with a chat model.

    Does nothing when the link is gone, already summarized, has no text, or
    when no model is configured and ANTHROPIC_API_KEY is unset.
    """

    def __init__(
        self,
        db: Database,
        model_name: str = DEFAULT_SUMMARY_MODEL,
        model: BaseChatModel | None = None,
        max_input_chars: int = MAX_SUMMARY_INPUT_CHARS,
    ):
        self.db = db
        self.model_name = model_name
        self.max_input_chars = max_input_chars
        self._model = model

    def _get_model(self) -> BaseChatModel | None:
        if self._model is None and os.environ.get("ANTHROPIC_API_KEY"):
            self._model = ChatAnthropic(model=self.model_name, temperature=0)
        return self._model

    def maybe_summarize(self, link_id: int) -> None:
        link = self.db.get_link_by_id(link_id)
        if link is None or link.summary or not link.raw_text_content:
            return
        model = self._get_model()
        if model is None:
            logger.debug("No summarization model configured, skipping link %s", link_id)
            return

        text = link.raw_text_content[: self.max_input_chars]
        response = model.invoke([
            SystemMessage(content=SUMMARY_PROMPT),
            HumanMessage(content=f"Title: {link.title or ''}\n\n{text}"),
        ])
        summary = response.content if isinstance(response.content, str) else str(response.content)
        summary = summary.strip()
        if summary:
            self.db.update_link_summary(link_id, summary)
            logger.info("Summarized link %s", link_id)


class SingleFileArchiver:
    """Snapshots a link's page to a standalone HTML file with the single-file CLI."""

    def __init__(
        self,
        db: Database,
        binary: str = DEFAULT_SINGLEFILE_BIN,
        archive_dir: str = DEFAULT_ARCHIVE_DIR,
        timeout: int = ARCHIVE_TIMEOUT,
    ):
        self.db = db
        self.binary = binary
        self.archive_dir = Path(archive_dir)
        self.timeout = timeout

    def maybe_archive(self, link_id: int) -> None:
        executable = shutil.which(self.binary)
        if executable is None:
            logger.debug("%s not installed, skipping archive of link %s", self.binary, link_id)
            return
        link = self.db.get_link_by_id(link_id)
        if link is None:
            return

        self.archive_dir.mkdir(parents=True, exist_ok=True)
        output = self.archive_dir / f"{link_id}.html"
        subprocess.run(
            [executable, link.cleaned_url, str(output)],
            check=True,
            capture_output=True,
            timeout=self.timeout,
        )
        self.db.update_link_archive(link_id, str(output))
        logger.info("Archived link %s to %s", link_id, output)


class LibraryConverter:
    """Saves a new feed item as a link when its feed opts in."""

    def __init__(self, db: Database, create_link: Callable[[str, str], Link]):
        self.db = db
        self.create_link = create_link

    def maybe_convert(self, feed_item_id: int) -> None:
        item = self.db.get_feed_item_by_id(feed_item_id)
        if item is None or not item.url:
            return
        feed = self.db.get_feed_by_id(item.feed_id)
        if feed is None or not feed.auto_add_items_to_links:
            return
        if self.db.find_link_by_url(item.owner_id, item.url):
            return

        link = self.create_link(item.owner_id, item.url)
        logger.info("Feed item %s saved as link %s", feed_item_id, link.id)
