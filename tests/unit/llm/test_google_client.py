"""
Unit tests for scout/llm/google_client.py

Tests Google Generative AI provider with mocked genai.Client.
"""

from unittest.mock import AsyncMock

import pytest

from scout.errors import AnalysisFailed
from scout.llm.google_client import GoogleProvider


class TestGoogleProvider:
    """Tests for GoogleProvider class."""

    def test_init(self, mock_google_genai):
        provider = GoogleProvider(api_key="test-key", model="gemini-2.0-flash", timeout=30)

        assert provider._client is not None
        assert provider.provider_name == "Google"
        assert provider.model_name == "gemini-2.0-flash"
        http_options = mock_google_genai.call_args.kwargs["http_options"]
        assert http_options.timeout == 30000

    def test_init_no_key(self):
        provider = GoogleProvider(api_key="")

        assert provider._client is None
        assert provider.is_configured() is False

    @pytest.mark.asyncio
    async def test_generate(self, mock_google_genai):
        provider = GoogleProvider(api_key="test-key")

        response = await provider.generate(
            prompt="Analyze this",
            system_prompt="You are an analyst",
            temperature=0.5,
            max_tokens=100,
        )

        assert response.content == "This is a test response from Gemini."
        assert response.token_count == 150

        call_kwargs = mock_google_genai.return_value.aio.models.generate_content.call_args.kwargs
        assert call_kwargs["contents"] == "Analyze this"
        assert call_kwargs["config"].system_instruction == "You are an analyst"
        assert call_kwargs["config"].max_output_tokens == 100

    @pytest.mark.asyncio
    async def test_generate_no_key_raises(self):
        provider = GoogleProvider(api_key="")

        with pytest.raises(AnalysisFailed):
            await provider.generate(prompt="Hello")

    @pytest.mark.asyncio
    async def test_api_error_raises_analysis_failed(self, mock_google_genai):
        mock_google_genai.return_value.aio.models.generate_content = AsyncMock(
            side_effect=RuntimeError("quota exceeded")
        )
        provider = GoogleProvider(api_key="test-key")

        with pytest.raises(AnalysisFailed, match="quota exceeded"):
            await provider.generate(prompt="Hello")
