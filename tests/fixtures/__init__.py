"""
Test fixtures and sample data for Scout tests.
"""

from scout.signals import RawSignal, SignalFamily


def make_forum_signal(
    post_id: str = "abc123",
    title: str = "Looking for an alternative to Trello",
    subreddit: str = "SaaS",
    summary: str = "",
) -> RawSignal:
    """Create a sample forum signal."""
    return RawSignal(
        identifier=f"reddit:{post_id}",
        title=title,
        url=f"https://www.reddit.com/r/{subreddit}/comments/{post_id}/",
        source_label=f"r/{subreddit}",
        family=SignalFamily.FORUM,
        summary=summary,
    )


def make_social_signal(
    url: str = "https://x.com/someone/status/1",
    title: str = "Is there an app that tracks invoices?",
    source_label: str = "x.com",
) -> RawSignal:
    """Create a sample social signal."""
    return RawSignal(
        identifier=f"social:{url}",
        title=title,
        url=url,
        source_label=source_label,
        family=SignalFamily.SOCIAL,
    )


def make_app_signal(
    app_id: str = "1000",
    rank: int = 60,
    market: str = "us",
    price: float | None = 4.99,
    category: str | None = "Photo & Video",
    rating: float | None = 4.5,
    title: str | None = None,
) -> RawSignal:
    """Create a sample App Store signal."""
    return RawSignal(
        identifier=f"appstore:{app_id}",
        title=title or f"App {app_id}",
        url=f"https://apps.apple.com/{market}/app/id{app_id}",
        source_label=f"App Store ({market.upper()})",
        family=SignalFamily.STOREFRONT,
        market=market,
        rank=rank,
        price=price,
        price_formatted=f"${price}" if price is not None else None,
        category=category,
        rating=rating,
        rating_count=120,
        developer="Indie Dev",
    )
