"""
OpenAI LLM Provider Implementation.
"""

import logging

from openai import AsyncOpenAI, OpenAIError

from ..errors import AnalysisFailed
from .base import LLMProvider, LLMResponse

logger = logging.getLogger("scout.llm.openai")


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions provider."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout: float = 60.0):
        """
        Initialize the OpenAI provider.

        Args:
            api_key: OpenAI API key.
            model: Model to use (default: gpt-4o-mini).
            timeout: Per-request timeout in seconds.
        """
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._client: AsyncOpenAI | None = None

    @property
    def provider_name(self) -> str:
        return "OpenAI"

    @property
    def model_name(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> AsyncOpenAI:
        """Get or create the async OpenAI client."""
        if self._client is None:
            # Retries are left to the caller, which has none
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout, max_retries=0)
        return self._client

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> LLMResponse:
        client = self._get_client()

        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        logger.debug(f"Sending request to OpenAI ({self._model})")

        try:
            response = await client.chat.completions.create(
                model=self._model,
                messages=messages,  # type: ignore
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise AnalysisFailed(f"OpenAI request failed: {e}") from e

        if not response.choices:
            raise AnalysisFailed("OpenAI returned no choices")

        content = response.choices[0].message.content or ""
        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.debug(f"OpenAI response received, tokens used: {usage}")

        return LLMResponse(
            content=content,
            model=response.model,
            usage=usage,
            raw_response=response,
        )
