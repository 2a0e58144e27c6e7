"""
Candidate selection.

Turns each family's raw signals into a short, deduplicated, ordered list
of candidates worth an AI analysis. Nothing already in the history is
ever selected, and no identifier is selected twice in one run.
"""

import logging
from typing import Iterable

from .config import ForumConfig, SocialConfig, StorefrontConfig
from .scoring import KeywordScorer, PriorityScorer, TrendAnnotator
from .signals import RawSignal, ScoredCandidate, SignalFamily
from .state import HistoryStore

logger = logging.getLogger("scout.selector")


def _storefront_tiebreak(candidate: ScoredCandidate) -> tuple:
    signal = candidate.signal
    return (signal.rank, signal.market or "", signal.identifier)


class CandidateSelector:
    """
    Per-family selection: dedup against history, filter, order, truncate.

    Storefront candidates are picked from three buckets in order:
    fast risers (biggest climb first), low-rated apps (worst rating first),
    then the general pool (highest priority first). Ties within a bucket
    fall back to current rank, then market, then identifier.
    """

    def __init__(
        self,
        history: HistoryStore,
        forum: ForumConfig,
        social: SocialConfig,
        storefront: StorefrontConfig,
    ):
        self.history = history
        self.forum = forum
        self.social = social
        self.storefront = storefront
        self._selected: set[str] = set()

    def _is_new(self, signal: RawSignal) -> bool:
        return not self.history.contains(signal.identifier) and signal.identifier not in self._selected

    def _take(self, candidates: Iterable[ScoredCandidate], limit: int) -> list[ScoredCandidate]:
        picked: list[ScoredCandidate] = []
        for candidate in candidates:
            if len(picked) >= limit:
                break
            if candidate.identifier in self._selected:
                continue
            self._selected.add(candidate.identifier)
            picked.append(candidate)
        return picked

    def select_forum(self, signals: Iterable[RawSignal], scorer: KeywordScorer) -> list[ScoredCandidate]:
        """Keep new posts whose keyword score meets the threshold, in discovery order."""
        eligible = []
        seen = dropped = 0
        for signal in signals:
            seen += 1
            if not self._is_new(signal):
                continue
            score = scorer.score(signal.title)
            if not scorer.is_eligible(score):
                dropped += 1
                continue
            eligible.append(ScoredCandidate(signal=signal, score=float(score)))

        picked = self._take(eligible, self.forum.max_candidates)
        logger.info(
            f"Forum: {len(picked)} selected from {seen} posts "
            f"({len(eligible)} eligible, {dropped} below threshold)"
        )
        return picked

    def select_social(self, signals: Iterable[RawSignal]) -> list[ScoredCandidate]:
        """Keep new items with a URL not seen earlier in this run."""
        seen_urls: set[str] = set()
        eligible = []
        for signal in signals:
            if signal.url in seen_urls or not self._is_new(signal):
                continue
            seen_urls.add(signal.url)
            eligible.append(ScoredCandidate(signal=signal))

        picked = self._take(eligible, self.social.max_candidates)
        logger.info(f"Social: {len(picked)} selected from {len(eligible)} new items")
        return picked

    def select_storefront(
        self,
        signals: Iterable[RawSignal],
        scorer: PriorityScorer,
        annotator: TrendAnnotator,
    ) -> list[ScoredCandidate]:
        """Pick App Store items by bucket: fast risers, low ratings, general pool."""
        cfg = self.storefront
        pool: list[ScoredCandidate] = []
        for signal in signals:
            if signal.rank is None or not self._is_new(signal):
                continue
            if not cfg.min_rank <= signal.rank <= cfg.tracked_ranks:
                continue
            if signal.category == cfg.excluded_category:
                continue
            score = scorer.score(signal.rank, signal.price, signal.category)
            pool.append(annotator.annotate(signal, score))

        chosen: set[str] = set()

        risers = sorted(
            (c for c in pool if c.rank_delta is not None and c.rank_delta > cfg.riser_threshold),
            key=lambda c: (-c.rank_delta, *_storefront_tiebreak(c)),
        )
        for c in risers:
            c.bucket = "riser"
        chosen.update(id(c) for c in risers)

        low_rated = sorted(
            (c for c in pool if c.is_low_rating and id(c) not in chosen),
            key=lambda c: (c.signal.rating, *_storefront_tiebreak(c)),
        )
        for c in low_rated:
            c.bucket = "low_rating"
        chosen.update(id(c) for c in low_rated)

        general = sorted(
            (c for c in pool if id(c) not in chosen),
            key=lambda c: (-c.score, *_storefront_tiebreak(c)),
        )
        for c in general:
            c.bucket = "general"

        picked = self._take(risers + low_rated + general, cfg.max_candidates)
        logger.info(
            f"Storefront: {len(picked)} selected from {len(pool)} in window "
            f"({len(risers)} risers, {len(low_rated)} low-rated)"
        )
        return picked
