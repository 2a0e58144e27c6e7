"""
Unit tests for scout/analyst.py

Tests prompt formatting, sequential dispatch and fallback texts.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from scout.analyst import (
    ANALYSIS_FALLBACK,
    ANALYSIS_NOT_CONFIGURED,
    FORUM_SYSTEM_PROMPT,
    SOCIAL_SYSTEM_PROMPT,
    STOREFRONT_SYSTEM_PROMPT,
    AnalysisDispatcher,
    format_forum_prompt,
    format_social_prompt,
    format_storefront_prompt,
)
from scout.errors import AnalysisFailed
from scout.llm.base import LLMResponse
from scout.signals import ScoredCandidate
from tests.fixtures import make_app_signal, make_forum_signal, make_social_signal


def _mock_llm(content: str = "Solid opportunity.", side_effect=None) -> MagicMock:
    llm = MagicMock()
    llm.is_configured.return_value = True
    llm.generate = AsyncMock(
        return_value=LLMResponse(content=content, model="test", usage={"total_tokens": 42}),
        side_effect=side_effect,
    )
    return llm


class TestPromptFormatting:
    """Tests for prompt builders."""

    def test_forum_prompt(self):
        candidate = ScoredCandidate(signal=make_forum_signal(summary="We pay $50/mo and hate it"))
        prompt = format_forum_prompt(candidate)

        assert "Source: r/SaaS" in prompt
        assert "Title: Looking for an alternative to Trello" in prompt
        assert "Excerpt: We pay $50/mo and hate it" in prompt

    def test_storefront_prompt_flags(self):
        candidate = ScoredCandidate(
            signal=make_app_signal(rank=75, rating=3.1),
            rank_delta=40,
            is_arbitrage=True,
            is_low_rating=True,
        )
        prompt = format_storefront_prompt(candidate)

        assert "Market: US | Rank: #75" in prompt
        assert "Rank change since last run: +40" in prompt
        assert "ARBITRAGE" in prompt
        assert "LOW RATING" in prompt

    def test_social_prompt_lists_every_post(self):
        candidates = [
            ScoredCandidate(signal=make_social_signal(f"https://x.com/u/status/{i}", title=f"Post {i}"))
            for i in range(3)
        ]
        prompt = format_social_prompt(candidates)

        assert prompt.startswith("3 social posts")
        assert "3. [x.com] Post 2" in prompt


class TestAnalysisDispatcher:
    """Tests for AnalysisDispatcher."""

    @pytest.mark.asyncio
    async def test_dispatch_sets_analysis(self):
        llm = _mock_llm()
        dispatcher = AnalysisDispatcher(llm)
        candidates = [
            ScoredCandidate(signal=make_app_signal()),
            ScoredCandidate(signal=make_forum_signal()),
        ]

        results = await dispatcher.dispatch(candidates)

        assert [c.analysis for c in candidates] == ["Solid opportunity.", "Solid opportunity."]
        assert set(results) == {"appstore:1000", "reddit:abc123"}
        assert dispatcher.calls_made == 2
        assert dispatcher.tokens_used == 84

    @pytest.mark.asyncio
    async def test_uses_family_system_prompt(self):
        llm = _mock_llm()
        dispatcher = AnalysisDispatcher(llm)

        await dispatcher.dispatch([
            ScoredCandidate(signal=make_app_signal()),
            ScoredCandidate(signal=make_forum_signal()),
        ])

        prompts = [call.kwargs["system_prompt"] for call in llm.generate.await_args_list]
        assert prompts == [STOREFRONT_SYSTEM_PROMPT, FORUM_SYSTEM_PROMPT]

    @pytest.mark.asyncio
    async def test_social_batch_single_call(self):
        llm = _mock_llm("Digest of posts")
        dispatcher = AnalysisDispatcher(llm)
        candidates = [
            ScoredCandidate(signal=make_social_signal(f"https://x.com/u/status/{i}"))
            for i in range(3)
        ]

        results = await dispatcher.dispatch(candidates)

        llm.generate.assert_awaited_once()
        assert llm.generate.await_args.kwargs["system_prompt"] == SOCIAL_SYSTEM_PROMPT
        assert all(c.analysis == "Digest of posts" for c in candidates)
        assert len(results) == 3

    @pytest.mark.asyncio
    async def test_calls_are_sequential(self):
        active = 0
        peak = 0

        async def slow_generate(**kwargs):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return LLMResponse(content="ok", model="test")

        llm = MagicMock()
        llm.is_configured.return_value = True
        llm.generate = slow_generate
        dispatcher = AnalysisDispatcher(llm)

        await dispatcher.dispatch([ScoredCandidate(signal=make_forum_signal(str(i))) for i in range(4)])

        assert peak == 1

    @pytest.mark.asyncio
    async def test_failure_falls_back(self):
        llm = _mock_llm(side_effect=AnalysisFailed("rate limited"))
        dispatcher = AnalysisDispatcher(llm)
        candidate = ScoredCandidate(signal=make_forum_signal())

        results = await dispatcher.dispatch([candidate])

        assert candidate.analysis == ANALYSIS_FALLBACK
        assert results["reddit:abc123"].ok is False
        assert dispatcher.failures == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_rest(self):
        llm = _mock_llm()
        llm.generate.side_effect = [
            AnalysisFailed("boom"),
            LLMResponse(content="Second worked", model="test"),
        ]
        dispatcher = AnalysisDispatcher(llm)
        candidates = [
            ScoredCandidate(signal=make_forum_signal("a")),
            ScoredCandidate(signal=make_forum_signal("b")),
        ]

        await dispatcher.dispatch(candidates)

        assert [c.analysis for c in candidates] == [ANALYSIS_FALLBACK, "Second worked"]

    @pytest.mark.asyncio
    async def test_empty_response_falls_back(self):
        dispatcher = AnalysisDispatcher(_mock_llm(content="   "))
        candidate = ScoredCandidate(signal=make_forum_signal())

        await dispatcher.dispatch([candidate])

        assert candidate.analysis == ANALYSIS_FALLBACK

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        async def hang(**kwargs):
            await asyncio.sleep(10)

        llm = MagicMock()
        llm.is_configured.return_value = True
        llm.generate = hang
        dispatcher = AnalysisDispatcher(llm, timeout=0.01)
        candidate = ScoredCandidate(signal=make_app_signal())

        result = await dispatcher.analyze_candidate(candidate)

        assert result.text == ANALYSIS_FALLBACK
        assert result.error == "timeout"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        dispatcher = AnalysisDispatcher(None)
        candidates = [
            ScoredCandidate(signal=make_forum_signal()),
            ScoredCandidate(signal=make_social_signal()),
        ]

        await dispatcher.dispatch(candidates)

        assert all(c.analysis == ANALYSIS_NOT_CONFIGURED for c in candidates)
        assert dispatcher.calls_made == 0
