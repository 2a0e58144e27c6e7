"""
Source connectors.

One connector per logical source; `create_connectors` builds the full set
for a run from configuration.
"""

import httpx

from .base import FetchResult, SourceConnector
from .forum import SubredditConnector
from .social import SocialFeedConnector, SocialSearchConnector
from .storefront import StorefrontConnector
from ..config import ForumConfig, SocialConfig, StorefrontConfig

__all__ = [
    "FetchResult",
    "SourceConnector",
    "SubredditConnector",
    "SocialFeedConnector",
    "SocialSearchConnector",
    "StorefrontConnector",
    "create_connectors",
]


def create_connectors(
    client: httpx.AsyncClient,
    forum: ForumConfig,
    social: SocialConfig,
    storefront: StorefrontConfig,
) -> list[SourceConnector]:
    """Build every connector for a run."""
    connectors: list[SourceConnector] = []

    for subreddit in forum.subreddits:
        connectors.append(SubredditConnector(client, subreddit, limit=forum.posts_per_subreddit))

    for feed_url in social.feeds:
        connectors.append(SocialFeedConnector(client, feed_url))
    for query in social.search_queries:
        connectors.append(SocialSearchConnector(client, query, max_results=social.results_per_query))

    # Both arbitrage markets are always fetched
    tracked = [*storefront.markets, storefront.arbitrage_source, storefront.arbitrage_comparison]
    markets = list(dict.fromkeys(m.lower() for m in tracked if m))
    for market in markets:
        connectors.append(StorefrontConnector(client, market, limit=storefront.fetch_limit))

    return connectors
