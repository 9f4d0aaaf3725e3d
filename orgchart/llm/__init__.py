"""LLM abstraction layer - provider-agnostic interface for chat completions.

Re-exports the public API so consumers can write:
    from orgchart.llm import LLMAdapter, LLMResponse, ToolCall, create_adapter
"""

import config
from config import get_api_key

from ..errors import ConfigError
from .base import LLMAdapter, LLMResponse, ToolCall, UsageMetadata, FunctionSchema
from .openai_adapter import OpenAIAdapter
from .anthropic_adapter import AnthropicAdapter


def create_adapter(provider: str | None = None) -> LLMAdapter:
    """Create the LLM adapter based on config (llm_provider, base_url, etc.).

    Args:
        provider: Override ``config.LLM_PROVIDER`` ("openrouter", "openai",
            or "anthropic").

    Raises:
        ConfigError: unknown provider or no API key in the environment.
    """
    provider = (provider or config.LLM_PROVIDER).lower()
    api_key = get_api_key(provider)
    if not api_key:
        raise ConfigError(
            f"No API key for provider {provider!r}; "
            f"set {config._PROVIDER_ENV_KEYS.get(provider, 'the provider API key')} in .env"
        )
    base_url = config._provider_get("base_url", provider=provider)
    common = dict(
        timeout_ms=config._provider_get("timeout_ms", 300_000, provider=provider),
        max_retries=config._provider_get("max_retries", 3, provider=provider),
    )
    if provider == "openrouter":
        return OpenAIAdapter(
            api_key=api_key,
            base_url=base_url,
            provider="openrouter",
            **common,
        )
    elif provider == "openai":
        return OpenAIAdapter(
            api_key=api_key,
            base_url=base_url,
            strip_vendor_prefix=True,
            provider="openai",
            **common,
        )
    elif provider == "anthropic":
        return AnthropicAdapter(api_key=api_key, base_url=base_url, **common)
    raise ConfigError(f"Unknown llm_provider {provider!r}")
