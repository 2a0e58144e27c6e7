"""
Abstract base class for LLM providers.

Defines the text-generation interface the analysis dispatcher consumes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class LLMResponse:
    """Standardized response from LLM providers."""
    content: str
    model: str
    usage: dict[str, int] | None = None
    raw_response: Any = None

    @property
    def token_count(self) -> int:
        """Return total tokens used if available."""
        if self.usage:
            return self.usage.get("total_tokens", 0)
        return 0


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implementations raise AnalysisFailed for any service error so callers
    only have one exception type to handle.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the LLM provider."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model being used."""
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> LLMResponse:
        """
        Generate a response from the LLM.

        Args:
            prompt: The user content.
            system_prompt: Optional instruction that frames the task.
            temperature: Creativity setting (0.0-1.0).
            max_tokens: Maximum tokens in response.

        Returns:
            LLMResponse containing the generated content.

        Raises:
            AnalysisFailed: If the service call fails.
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the provider is properly configured with API keys."""
        pass
