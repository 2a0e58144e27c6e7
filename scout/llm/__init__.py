"""
Text-generation providers.

A single interface over OpenAI and Google Gemini so the analysis
dispatcher does not care which service is configured.
"""

from .base import LLMProvider, LLMResponse
from .openai_client import OpenAIProvider
from .google_client import GoogleProvider
from .factory import create_llm_provider

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "GoogleProvider",
    "create_llm_provider",
]
