"""LLM provider abstraction module."""

from gokigen.providers.base import LLMProvider, LLMResponse
from gokigen.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider"]
