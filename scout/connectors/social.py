"""
Curated social-search connectors.

Two ways to consume a curated social feed:
- SocialFeedConnector: an RSS/Atom feed URL (e.g. a saved social search exported as RSS).
- SocialSearchConnector: a site-restricted DuckDuckGo search.

Items are assumed to be pre-filtered by whoever curated the feed or query.
"""

import asyncio
import logging
import re

import feedparser
import httpx
from ddgs import DDGS

from ..errors import SourceUnavailable
from ..signals import RawSignal, SignalFamily
from .base import SourceConnector
from .forum import make_snippet

logger = logging.getLogger("scout.connectors.social")

_TAG_RE = re.compile(r"<[^>]+>")


def strip_html(text: str) -> str:
    return re.sub(r"\s+", " ", _TAG_RE.sub(" ", text or "")).strip()


class SocialFeedConnector(SourceConnector):
    """Entries of one RSS/Atom feed."""

    def __init__(self, client: httpx.AsyncClient, feed_url: str, **kwargs):
        super().__init__(client, **kwargs)
        self.feed_url = feed_url

    @property
    def name(self) -> str:
        return f"feed:{httpx.URL(self.feed_url).host}"

    @property
    def family(self) -> SignalFamily:
        return SignalFamily.SOCIAL

    async def _fetch(self) -> list[RawSignal]:
        try:
            response = await self._get(self.feed_url)
        except httpx.HTTPError as e:
            raise SourceUnavailable(self.name, f"request failed: {e}") from e

        parsed = feedparser.parse(response.text)
        if parsed.bozo and not parsed.entries:
            raise SourceUnavailable(self.name, f"unparseable feed: {parsed.get('bozo_exception')}")

        feed_title = parsed.feed.get("title") or self.name
        signals = []
        for entry in parsed.entries:
            link = entry.get("link")
            if not link:
                continue
            title = strip_html(entry.get("title", "")) or link
            signals.append(RawSignal(
                identifier=f"social:{link}",
                title=title,
                url=link,
                source_label=feed_title,
                family=SignalFamily.SOCIAL,
                summary=make_snippet(strip_html(entry.get("summary", ""))),
            ))
        return signals


class SocialSearchConnector(SourceConnector):
    """Results of one web search, typically restricted with site: operators."""

    def __init__(self, client: httpx.AsyncClient, query: str, max_results: int = 10, **kwargs):
        super().__init__(client, **kwargs)
        self.query = query
        self.max_results = max_results

    @property
    def name(self) -> str:
        return f"search:{self.query}"

    @property
    def family(self) -> SignalFamily:
        return SignalFamily.SOCIAL

    async def _fetch(self) -> list[RawSignal]:
        loop = asyncio.get_running_loop()

        def run_search():
            return DDGS().text(self.query, max_results=self.max_results)

        # DDGS is synchronous, run it in the default executor
        try:
            results = await loop.run_in_executor(None, run_search)
        except Exception as e:
            raise SourceUnavailable(self.name, f"search failed: {e}") from e

        signals = []
        for r in results or []:
            url = r.get("href") or r.get("url")
            if not url:
                continue
            signals.append(RawSignal(
                identifier=f"social:{url}",
                title=r.get("title") or url,
                url=url,
                source_label=httpx.URL(url).host or "web",
                family=SignalFamily.SOCIAL,
                summary=make_snippet(r.get("body", "")),
            ))
        return signals
