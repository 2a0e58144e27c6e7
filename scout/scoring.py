"""
Signal scoring.

- KeywordScorer: weighted keyword relevance for forum titles.
- PriorityScorer: desirability of an App Store item from rank, price and category.
- TrendAnnotator: rank movement since the last run, cross-market arbitrage
  and low-rating flags for App Store items.

All scorers take their settings explicitly and hold no other state.
"""

import logging
from typing import Iterable, Mapping, Optional

from .config import ForumConfig, StorefrontConfig
from .signals import RawSignal, ScoredCandidate
from .state import RankSnapshotStore

logger = logging.getLogger("scout.scoring")

IMPULSE_PRICE_BOOST = 1.5
PRODUCTIVITY_BOOST = 1.2


class KeywordScorer:
    """Scores forum titles by summing the weights of matched keywords."""

    def __init__(self, keywords: Mapping[str, int], threshold: int):
        # Lower-case once; duplicate keys after lowering keep the last weight
        self.keywords = {k.lower(): w for k, w in keywords.items()}
        self.threshold = threshold

    @classmethod
    def from_config(cls, forum: ForumConfig) -> "KeywordScorer":
        return cls(keywords=forum.keywords, threshold=forum.threshold)

    def score(self, title: str) -> int:
        """
        Sum the weight of every keyword found in the title (case-insensitive).

        Every matching keyword counts once, so titles can stack weights.
        An empty title always scores 0.
        """
        if not title:
            return 0
        text = title.lower()
        return sum(weight for keyword, weight in self.keywords.items() if keyword in text)

    def is_eligible(self, score: int) -> bool:
        return score >= self.threshold


class PriorityScorer:
    """
    Scores App Store items: (W - rank) / W, boosted for cheap and productivity apps.
    """

    def __init__(
        self,
        window: int = 200,
        productivity_categories: Iterable[str] = (),
        impulse_price_ceiling: float = 10.0,
    ):
        if window <= 0:
            raise ValueError("window must be positive")
        self.window = window
        self.productivity_categories = set(productivity_categories)
        self.impulse_price_ceiling = impulse_price_ceiling

    @classmethod
    def from_config(cls, storefront: StorefrontConfig) -> "PriorityScorer":
        return cls(
            window=storefront.priority_window,
            productivity_categories=storefront.productivity_categories,
            impulse_price_ceiling=storefront.impulse_price_ceiling,
        )

    def score(self, rank: int, price: Optional[float] = None, category: Optional[str] = None) -> float:
        # Ranks past the window score 0 rather than going negative
        score = max(0.0, (self.window - rank) / self.window)
        if price is not None and 0 < price < self.impulse_price_ceiling:
            score *= IMPULSE_PRICE_BOOST
        if category and category in self.productivity_categories:
            score *= PRODUCTIVITY_BOOST
        return score


class TrendAnnotator:
    """Adds rank delta, arbitrage and low-rating flags to App Store signals."""

    def __init__(
        self,
        snapshot: RankSnapshotStore,
        arbitrage_source: str,
        comparison_ids: Optional[set[str]],
        rating_floor: float = 3.8,
    ):
        """
        Args:
            snapshot: Rank snapshot loaded from the previous run.
            arbitrage_source: Market whose items are checked for arbitrage.
            comparison_ids: Item ids seen in the comparison market this run,
                or None if that market could not be fetched.
            rating_floor: Ratings below this are flagged as low.
        """
        self.snapshot = snapshot
        self.arbitrage_source = arbitrage_source
        self.comparison_ids = comparison_ids
        self.rating_floor = rating_floor

    def rank_delta(self, signal: RawSignal) -> int:
        """Positions climbed since the last snapshot. Positive means the item rose."""
        return self.snapshot.previous_rank(signal.market, signal.item_id) - signal.rank

    def is_arbitrage(self, signal: RawSignal) -> Optional[bool]:
        if signal.market != self.arbitrage_source or self.comparison_ids is None:
            return None
        return signal.item_id not in self.comparison_ids

    def is_low_rating(self, signal: RawSignal) -> bool:
        return signal.rating is not None and signal.rating < self.rating_floor

    def annotate(self, signal: RawSignal, score: float) -> ScoredCandidate:
        return ScoredCandidate(
            signal=signal,
            score=score,
            rank_delta=self.rank_delta(signal),
            is_arbitrage=self.is_arbitrage(signal),
            is_low_rating=self.is_low_rating(signal),
        )
