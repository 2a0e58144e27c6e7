"""
Reddit connector.

Reads the newest posts of one subreddit from the public JSON listing.
"""

import logging

import httpx

from ..errors import SourceUnavailable
from ..signals import RawSignal, SignalFamily
from .base import SourceConnector

logger = logging.getLogger("scout.connectors.forum")

REDDIT_BASE_URL = "https://www.reddit.com"
SNIPPET_LENGTH = 200


def make_snippet(text: str, length: int = SNIPPET_LENGTH) -> str:
    text = (text or "").strip()
    if not text:
        return ""
    if len(text) <= length:
        return text
    return text[:length] + "..."


class SubredditConnector(SourceConnector):
    """Newest posts of a subreddit."""

    def __init__(self, client: httpx.AsyncClient, subreddit: str, limit: int = 25, **kwargs):
        super().__init__(client, **kwargs)
        self.subreddit = subreddit
        self.limit = limit

    @property
    def name(self) -> str:
        return f"r/{self.subreddit}"

    @property
    def family(self) -> SignalFamily:
        return SignalFamily.FORUM

    async def _fetch(self) -> list[RawSignal]:
        url = f"{REDDIT_BASE_URL}/r/{self.subreddit}/new.json"
        data = await self._get_json(url, params={"limit": self.limit})

        try:
            children = data["data"]["children"]
        except (KeyError, TypeError) as e:
            raise SourceUnavailable(self.name, f"unexpected listing shape: {e}") from e

        signals = []
        for child in children:
            post = child.get("data") or {}
            post_id = post.get("id")
            title = post.get("title") or ""
            if not post_id or not title:
                logger.debug(f"Skipping malformed post in {self.name}")
                continue

            signals.append(RawSignal(
                identifier=f"reddit:{post_id}",
                title=title,
                url=f"{REDDIT_BASE_URL}{post.get('permalink', '')}",
                source_label=self.name,
                family=SignalFamily.FORUM,
                summary=make_snippet(post.get("selftext", "")),
            ))
        return signals
