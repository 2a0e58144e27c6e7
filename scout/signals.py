"""
Signal data model.

RawSignal is what a connector yields; ScoredCandidate is a signal that
survived scoring, dedup and selection and is headed for the digest.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SignalFamily(str, Enum):
    """Source family of a signal. Each family has its own scoring rules."""
    FORUM = "forum"
    SOCIAL = "social"
    STOREFRONT = "storefront"


@dataclass(frozen=True)
class RawSignal:
    """A single item fetched from a source, before scoring."""
    identifier: str  # Source-unique, e.g. "reddit:abc123" or "appstore:12345"
    title: str
    url: str
    source_label: str  # Human-readable origin, e.g. "r/SaaS" or "App Store (US)"
    family: SignalFamily
    summary: str = ""

    # Storefront only
    market: Optional[str] = None
    rank: Optional[int] = None
    price: Optional[float] = None
    price_formatted: Optional[str] = None
    category: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    developer: Optional[str] = None
    icon_url: Optional[str] = None

    @property
    def item_id(self) -> str:
        """Identifier without the source prefix."""
        return self.identifier.split(":", 1)[-1]


@dataclass
class ScoredCandidate:
    """A signal selected for analysis and reporting."""
    signal: RawSignal
    score: float = 0.0

    # Storefront only
    rank_delta: Optional[int] = None  # Positions climbed since the last snapshot
    is_arbitrage: Optional[bool] = None
    is_low_rating: Optional[bool] = None
    bucket: str = ""  # "riser", "low_rating", "general" for storefront picks

    analysis: str = ""

    @property
    def identifier(self) -> str:
        return self.signal.identifier

    @property
    def title(self) -> str:
        return self.signal.title

    @property
    def url(self) -> str:
        return self.signal.url

    @property
    def family(self) -> SignalFamily:
        return self.signal.family

    @property
    def badges(self) -> list[str]:
        """Short labels describing why a storefront item stands out."""
        labels = []
        if self.rank_delta is not None and self.bucket == "riser":
            labels.append(f"+{self.rank_delta} ranks")
        if self.is_arbitrage:
            labels.append("Arbitrage")
        if self.is_low_rating:
            labels.append("Low rating")
        return labels
