"""OpenAI adapter - wraps the ``openai`` SDK for OpenAI and compatible APIs.

Covers: OpenRouter (the default provider), OpenAI itself, and any other
provider exposing an OpenAI-compatible ``/chat/completions`` endpoint.

This is the **only** module that imports the ``openai`` package.
"""

from __future__ import annotations

import logging
from typing import Any

import openai

from ..errors import TransportError
from .base import (
    FunctionSchema,
    LLMAdapter,
    LLMResponse,
    ToolCall,
    UsageMetadata,
)

logger = logging.getLogger("orgchart")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_tools(schemas: list[FunctionSchema] | None) -> list[dict] | None:
    """Convert FunctionSchema list to OpenAI tool format."""
    if not schemas:
        return None
    return [
        {
            "type": "function",
            "function": {
                "name": s.name,
                "description": s.description,
                "parameters": s.parameters,
            },
        }
        for s in schemas
    ]


def _parse_tool_calls(raw_tool_calls) -> list[ToolCall]:
    """Parse OpenAI tool calls into our ToolCall dataclass.

    Arguments are kept as the raw JSON string.
    """
    if not raw_tool_calls:
        return []
    result = []
    for tc in raw_tool_calls:
        function = getattr(tc, "function", None)
        if function is None:
            continue
        result.append(
            ToolCall(
                name=function.name,
                arguments=function.arguments or "",
                id=tc.id or "",
            )
        )
    return result


def _parse_response(raw) -> LLMResponse:
    """Parse a raw OpenAI ChatCompletion into a provider-agnostic LLMResponse."""
    if not raw.choices:
        return LLMResponse(raw=raw)

    message = raw.choices[0].message

    text = message.content or ""
    tool_calls = _parse_tool_calls(message.tool_calls)

    # Reasoning models (and OpenRouter) expose reasoning text separately
    thoughts: list[str] = []
    reasoning = getattr(message, "reasoning_content", None) or getattr(message, "reasoning", None)
    if reasoning:
        thoughts.append(reasoning)

    usage = None
    if raw.usage:
        cached = getattr(raw.usage, "prompt_tokens_details", None)
        cached_tokens = getattr(cached, "cached_tokens", 0) if cached else 0
        details = getattr(raw.usage, "completion_tokens_details", None)
        usage = UsageMetadata(
            input_tokens=raw.usage.prompt_tokens or 0,
            output_tokens=raw.usage.completion_tokens or 0,
            thinking_tokens=(getattr(details, "reasoning_tokens", 0) or 0) if details else 0,
            cached_tokens=cached_tokens or 0,
        )

    return LLMResponse(
        text=text,
        tool_calls=tool_calls,
        usage=usage,
        thoughts=thoughts,
        raw=raw,
    )


# ---------------------------------------------------------------------------
# OpenAIAdapter
# ---------------------------------------------------------------------------


class OpenAIAdapter(LLMAdapter):
    """Adapter that wraps the ``openai`` SDK for OpenAI and compatible APIs."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout_ms: int = 300_000,
        max_retries: int = 3,
        strip_vendor_prefix: bool = False,
        provider: str = "openai",
    ):
        self.base_url = base_url
        self.provider = provider
        self._strip_vendor_prefix = strip_vendor_prefix
        kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": max_retries}
        if base_url:
            kwargs["base_url"] = base_url
        kwargs["timeout"] = timeout_ms / 1000.0  # openai SDK uses seconds
        self._client = openai.OpenAI(**kwargs)

    def _resolve_model(self, model: str) -> str:
        # "openai/gpt-4o-mini" → "gpt-4o-mini" when talking to OpenAI directly
        if self._strip_vendor_prefix and "/" in model:
            return model.split("/", 1)[1]
        return model

    # -- LLMAdapter interface --------------------------------------------------

    def complete(
        self,
        model: str,
        messages: list[dict],
        tools: list[FunctionSchema],
        temperature: float,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": self._resolve_model(model),
            "messages": messages,
            "temperature": temperature,
        }
        openai_tools = _build_tools(tools)
        if openai_tools:
            kwargs["tools"] = openai_tools
            kwargs["tool_choice"] = "required"
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            raw = self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            logger.warning(f"[{self.provider}] chat completion failed for {model}: {e}")
            raise TransportError(str(e), provider=self.provider, cause=e) from e
        return _parse_response(raw)

    def close(self) -> None:
        self._client.close()

    # -- Convenience properties ------------------------------------------------

    @property
    def client(self):
        """Escape hatch - the underlying ``openai.OpenAI`` client."""
        return self._client
