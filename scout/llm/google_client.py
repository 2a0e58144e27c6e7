"""
Google Generative AI (Gemini) LLM Provider Implementation.
"""

import logging

from google import genai
from google.genai import types

from ..errors import AnalysisFailed
from .base import LLMProvider, LLMResponse

logger = logging.getLogger("scout.llm.google")


class GoogleProvider(LLMProvider):
    """Google Gemini provider using the google-genai async client."""

    def __init__(self, api_key: str, model: str = "gemini-2.0-flash", timeout: float = 60.0):
        """
        Initialize the Google provider.

        Args:
            api_key: Google API key.
            model: Model to use (default: gemini-2.0-flash).
            timeout: Per-request timeout in seconds.
        """
        self._api_key = api_key
        self._model = model
        self._client = None

        if api_key:
            # HttpOptions.timeout is in milliseconds
            self._client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(timeout * 1000)),
            )

    @property
    def provider_name(self) -> str:
        return "Google"

    @property
    def model_name(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return self._client is not None and bool(self._api_key)

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> LLMResponse:
        if self._client is None:
            raise AnalysisFailed("Google provider has no API key")

        logger.debug(f"Sending request to Google ({self._model})")

        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                ),
            )
        except Exception as e:
            # google-genai raises a mix of its own errors and httpx errors
            logger.error(f"Google API error: {e}")
            raise AnalysisFailed(f"Google request failed: {e}") from e

        content = response.text or ""

        usage = None
        if getattr(response, "usage_metadata", None):
            usage = {
                "prompt_tokens": response.usage_metadata.prompt_token_count,
                "completion_tokens": response.usage_metadata.candidates_token_count,
                "total_tokens": response.usage_metadata.total_token_count,
            }

        logger.debug(f"Google response received, tokens used: {usage}")

        return LLMResponse(
            content=content,
            model=self._model,
            usage=usage,
            raw_response=response,
        )
