"""LiteLLM provider implementation for multi-provider support."""

import os
from typing import Any

import litellm
from litellm import acompletion

from gokigen.providers.base import LLMProvider, LLMResponse

# Standard OpenAI chat-completion message keys; extras are stripped for strict providers.
_ALLOWED_MSG_KEYS = frozenset({"role", "content", "name"})

# Provider prefix -> environment variable LiteLLM reads the key from.
_ENV_KEYS = {
    "gemini": "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "groq": "GROQ_API_KEY",
}


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM for multi-provider support.

    The default model is Gemini Flash; any model string LiteLLM understands
    (e.g. "openai/gpt-4o-mini", "ollama/llama3.1") works the same way.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "gemini/gemini-1.5-flash",
        extra_headers: dict[str, str] | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.extra_headers = extra_headers or {}

        if api_key:
            self._setup_env(api_key, default_model)

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers
        litellm.drop_params = True

    def _setup_env(self, api_key: str, model: str) -> None:
        """Export the key under the provider's env var without clobbering an existing one."""
        prefix = model.split("/", 1)[0].lower() if "/" in model else ""
        env_key = _ENV_KEYS.get(prefix)
        if env_key:
            os.environ.setdefault(env_key, api_key)

    @staticmethod
    def _sanitize_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Strip non-standard keys."""
        return [{k: v for k, v in msg.items() if k in _ALLOWED_MSG_KEYS} for msg in messages]

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (e.g., 'gemini/gemini-1.5-flash').
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.

        Returns:
            LLMResponse with content, or finish_reason="error" on failure.
        """
        # Clamp max_tokens to at least 1; LiteLLM rejects zero or negative values.
        max_tokens = max(1, max_tokens)

        kwargs: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": self._sanitize_messages(self._sanitize_empty_content(messages)),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        # Pass api_key directly, more reliable than env vars alone
        if self.api_key:
            kwargs["api_key"] = self.api_key

        if self.api_base:
            kwargs["api_base"] = self.api_base

        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers

        try:
            response = await acompletion(**kwargs)
            return self._parse_response(response)
        except Exception as e:
            # Return error as content for graceful handling
            return LLMResponse(
                content=f"Error calling LLM: {str(e)}",
                finish_reason="error",
            )

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        choice = response.choices[0]
        message = choice.message

        usage = {}
        if hasattr(response, "usage") and response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=message.content,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
