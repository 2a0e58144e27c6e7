"""
AI analysis of selected candidates.

Calls are made one at a time, in candidate order: the text-generation
services tolerate a trickle of requests far better than a burst. A
failed call never drops a candidate; it gets a fixed fallback text.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .errors import AnalysisFailed
from .llm import LLMProvider
from .signals import ScoredCandidate, SignalFamily

logger = logging.getLogger("scout.analyst")

ANALYSIS_FALLBACK = "AI analysis unavailable."
ANALYSIS_NOT_CONFIGURED = "AI analysis not configured."

FORUM_SYSTEM_PROMPT = """You are a pragmatic indie product researcher. You read forum posts and decide whether they reveal a real, paid problem.

For the post you are given, answer in this format:

**Pain Point**: [one sentence, the underlying problem in plain words]
**Who Has It**: [the kind of person or business]
**Product Idea**: [one concrete product or feature that would solve it]
**Verdict**: [WORTH EXPLORING / WEAK SIGNAL / NOISE] - [one sentence why]

Be skeptical. Most posts are venting, not demand. Keep it under 120 words."""

STOREFRONT_SYSTEM_PROMPT = """You are an App Store market analyst looking for apps a small team could build or localize.

For the app you are given, answer in this format:

**Why It Sells**: [one or two sentences]
**Opportunity**: [clone, improve, or localize - and the angle]
**Risk**: [one sentence on what makes it hard to copy]

If the app is flagged as an arbitrage item it ranks in the source market but is missing from the comparison market; say whether that gap looks real.
If it is flagged low rating, focus on what users are unhappy about. Keep it under 120 words."""

SOCIAL_SYSTEM_PROMPT = """You are a trend scout. You are given a short list of curated social posts.

Write a brief digest:
- One bullet per post with the opportunity it hints at (or "no clear opportunity").
- Finish with **Common Thread**: one sentence on what, if anything, connects them.

Be concise and do not invent details that are not in the posts. Keep it under 200 words."""


@dataclass
class AnalysisResult:
    """Outcome of one analysis call."""
    text: str
    ok: bool
    error: Optional[str] = None
    tokens: int = 0


def format_forum_prompt(candidate: ScoredCandidate) -> str:
    signal = candidate.signal
    parts = [
        f"Source: {signal.source_label}",
        f"Title: {signal.title}",
    ]
    if signal.summary:
        parts.append(f"Excerpt: {signal.summary}")
    parts.append(f"URL: {signal.url}")
    return "\n".join(parts)


def format_storefront_prompt(candidate: ScoredCandidate) -> str:
    signal = candidate.signal
    parts = [
        f"App: {signal.title}",
        f"Developer: {signal.developer or 'Unknown'}",
        f"Market: {(signal.market or '').upper()} | Rank: #{signal.rank}",
        f"Category: {signal.category or 'Unknown'}",
        f"Price: {signal.price_formatted or signal.price}",
    ]
    if signal.rating is not None:
        parts.append(f"Rating: {signal.rating:.1f} ({signal.rating_count or 0} ratings)")
    if candidate.rank_delta is not None:
        parts.append(f"Rank change since last run: {candidate.rank_delta:+d}")
    if candidate.is_arbitrage:
        parts.append("Flag: ARBITRAGE (absent from the comparison market)")
    if candidate.is_low_rating:
        parts.append("Flag: LOW RATING")
    if signal.summary:
        parts.append(f"Description: {signal.summary[:600]}")
    return "\n".join(parts)


def format_social_prompt(candidates: list[ScoredCandidate]) -> str:
    lines = [f"{len(candidates)} social posts:\n"]
    for i, candidate in enumerate(candidates, 1):
        signal = candidate.signal
        lines.append(f"{i}. [{signal.source_label}] {signal.title}")
        if signal.summary:
            lines.append(f"   {signal.summary[:300]}")
        lines.append(f"   {signal.url}")
    return "\n".join(lines)


class AnalysisDispatcher:
    """
    Sends candidates to the LLM one call at a time.

    Forum and storefront candidates get one call each; the social list is
    analyzed as a single batch and every social candidate shares that text.
    """

    def __init__(
        self,
        llm: Optional[LLMProvider],
        timeout: float = 60.0,
        temperature: float = 0.5,
        max_tokens: int = 600,
    ):
        self.llm = llm
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.calls_made = 0
        self.failures = 0
        self.tokens_used = 0

    @property
    def configured(self) -> bool:
        return self.llm is not None and self.llm.is_configured()

    async def _generate(self, system_prompt: str, prompt: str, label: str) -> AnalysisResult:
        if not self.configured:
            return AnalysisResult(text=ANALYSIS_NOT_CONFIGURED, ok=False, error="not configured")

        self.calls_made += 1
        try:
            response = await asyncio.wait_for(
                self.llm.generate(
                    prompt=prompt,
                    system_prompt=system_prompt,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout,
            )
            content = (response.content or "").strip()
            if not content:
                raise AnalysisFailed("empty response")
        except asyncio.TimeoutError:
            self.failures += 1
            logger.warning(f"Analysis timed out after {self.timeout}s for {label}")
            return AnalysisResult(text=ANALYSIS_FALLBACK, ok=False, error="timeout")
        except Exception as e:
            # Any provider error degrades to the fallback; the run goes on
            self.failures += 1
            logger.warning(f"Analysis failed for {label}: {e}")
            return AnalysisResult(text=ANALYSIS_FALLBACK, ok=False, error=str(e))

        self.tokens_used += response.token_count
        logger.info(f"Analysis done for {label} ({response.token_count} tokens)")
        return AnalysisResult(text=content, ok=True, tokens=response.token_count)

    async def analyze_candidate(self, candidate: ScoredCandidate) -> AnalysisResult:
        """Analyze a single forum or storefront candidate."""
        if candidate.family == SignalFamily.STOREFRONT:
            system_prompt = STOREFRONT_SYSTEM_PROMPT
            prompt = format_storefront_prompt(candidate)
        else:
            system_prompt = FORUM_SYSTEM_PROMPT
            prompt = format_forum_prompt(candidate)
        return await self._generate(system_prompt, prompt, candidate.identifier)

    async def analyze_social_batch(self, candidates: list[ScoredCandidate]) -> AnalysisResult:
        """Analyze the whole social list in one call."""
        return await self._generate(
            SOCIAL_SYSTEM_PROMPT,
            format_social_prompt(candidates),
            f"{len(candidates)} social posts",
        )

    async def dispatch(self, candidates: list[ScoredCandidate]) -> dict[str, AnalysisResult]:
        """
        Analyze every candidate in order, strictly one call at a time.

        Sets `candidate.analysis` in place and returns the results keyed by
        identifier.
        """
        results: dict[str, AnalysisResult] = {}

        if not self.configured:
            logger.warning("No LLM credentials, skipping AI analysis")

        social = [c for c in candidates if c.family == SignalFamily.SOCIAL]
        social_done = False

        for candidate in candidates:
            if candidate.family == SignalFamily.SOCIAL:
                if social_done:
                    continue
                batch_result = await self.analyze_social_batch(social)
                for item in social:
                    item.analysis = batch_result.text
                    results[item.identifier] = batch_result
                social_done = True
                continue

            result = await self.analyze_candidate(candidate)
            candidate.analysis = result.text
            results[candidate.identifier] = result

        return results
