"""Anthropic adapter - wraps the ``anthropic`` SDK for Claude models.

This is the **only** module that imports the ``anthropic`` package.

Key Anthropic API differences from the OpenAI message format the engine uses:
- System prompt is a separate ``system`` parameter, not a message.
- Strict user/assistant alternation required - consecutive same-role messages
  must be merged.
- Assistant tool calls are ``tool_use`` content blocks; their results are sent
  inside a ``user`` message as ``tool_result`` blocks.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import anthropic

from ..errors import TransportError
from .base import (
    FunctionSchema,
    LLMAdapter,
    LLMResponse,
    ToolCall,
    UsageMetadata,
)

logger = logging.getLogger("orgchart")

# OpenRouter-style ids → ids the Anthropic API accepts
_MODEL_ALIASES = {
    "claude-opus-4": "claude-opus-4-0",
    "claude-sonnet-4": "claude-sonnet-4-0",
}

_DEFAULT_MAX_TOKENS = 8192


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_tools(schemas: list[FunctionSchema] | None) -> list[dict] | None:
    """Convert FunctionSchema list to Anthropic tool format."""
    if not schemas:
        return None
    return [
        {
            "name": s.name,
            "description": s.description,
            "input_schema": s.parameters,
        }
        for s in schemas
    ]


def _tool_input(arguments: str) -> dict:
    try:
        value = json.loads(arguments) if arguments else {}
    except json.JSONDecodeError:
        return {"_raw_arguments": arguments}
    return value if isinstance(value, dict) else {"_value": value}


def _convert_messages(messages: list[dict]) -> tuple[str, list[dict]]:
    """Split OpenAI-format messages into ``(system, anthropic_messages)``."""
    system_parts: list[str] = []
    converted: list[dict] = []
    for msg in messages:
        role = msg.get("role")
        content = msg.get("content") or ""
        if role == "system":
            system_parts.append(content)
        elif role == "user":
            converted.append({"role": "user", "content": content})
        elif role == "assistant":
            blocks: list[dict] = []
            if content:
                blocks.append({"type": "text", "text": content})
            for tc in msg.get("tool_calls") or []:
                function = tc.get("function", {})
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": tc.get("id", ""),
                        "name": function.get("name", ""),
                        "input": _tool_input(function.get("arguments", "")),
                    }
                )
            if not blocks:
                blocks.append({"type": "text", "text": "(no content)"})
            converted.append({"role": "assistant", "content": blocks})
        elif role == "tool":
            converted.append(
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": msg.get("tool_call_id", ""),
                            "content": content,
                        }
                    ],
                }
            )
    return "\n\n".join(p for p in system_parts if p), _ensure_alternation(converted)


def _parse_response(raw) -> LLMResponse:
    """Parse an Anthropic Messages response into a provider-agnostic LLMResponse."""
    text_parts: list[str] = []
    tool_calls: list[ToolCall] = []
    thoughts: list[str] = []

    for block in raw.content:
        if block.type == "text":
            text_parts.append(block.text)
        elif block.type == "tool_use":
            tool_calls.append(
                ToolCall(
                    name=block.name,
                    arguments=json.dumps(block.input if isinstance(block.input, dict) else {}),
                    id=block.id,
                )
            )
        elif block.type == "thinking":
            thinking_text = getattr(block, "thinking", None)
            if thinking_text:
                thoughts.append(thinking_text)

    usage = None
    if raw.usage:
        usage = UsageMetadata(
            input_tokens=getattr(raw.usage, "input_tokens", 0) or 0,
            output_tokens=getattr(raw.usage, "output_tokens", 0) or 0,
            cached_tokens=getattr(raw.usage, "cache_read_input_tokens", 0) or 0,
        )

    return LLMResponse(
        text="\n".join(text_parts) if text_parts else "",
        tool_calls=tool_calls,
        usage=usage,
        thoughts=thoughts,
        raw=raw,
    )


def _ensure_alternation(messages: list[dict]) -> list[dict]:
    """Merge consecutive same-role messages to satisfy Anthropic's alternation rule."""
    merged: list[dict] = []
    for msg in messages:
        if merged and merged[-1]["role"] == msg["role"]:
            prev = merged[-1]
            prev["content"] = _as_blocks(prev.get("content", "")) + _as_blocks(msg.get("content", ""))
        else:
            merged.append(dict(msg))
    return merged


def _as_blocks(content) -> list[dict]:
    if isinstance(content, str):
        return [{"type": "text", "text": content}] if content else []
    return list(content)


# ---------------------------------------------------------------------------
# AnthropicAdapter
# ---------------------------------------------------------------------------


class AnthropicAdapter(LLMAdapter):
    """Adapter that wraps the ``anthropic`` SDK for Claude models."""

    provider = "anthropic"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout_ms: int = 300_000,
        max_retries: int = 3,
    ):
        kwargs: dict[str, Any] = {
            "api_key": api_key,
            "timeout": timeout_ms / 1000.0,
            "max_retries": max_retries,
        }
        if base_url:
            kwargs["base_url"] = base_url
        self._client = anthropic.Anthropic(**kwargs)

    @staticmethod
    def _resolve_model(model: str) -> str:
        bare = model.split("/", 1)[1] if model.startswith("anthropic/") else model
        return _MODEL_ALIASES.get(bare, bare)

    # -- LLMAdapter interface --------------------------------------------------

    def complete(
        self,
        model: str,
        messages: list[dict],
        tools: list[FunctionSchema],
        temperature: float,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        system, anthropic_messages = _convert_messages(messages)
        kwargs: dict[str, Any] = {
            "model": self._resolve_model(model),
            "messages": anthropic_messages,
            "max_tokens": max_tokens or _DEFAULT_MAX_TOKENS,
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system
        anthropic_tools = _build_tools(tools)
        if anthropic_tools:
            kwargs["tools"] = anthropic_tools
            kwargs["tool_choice"] = {"type": "any"}

        try:
            raw = self._client.messages.create(**kwargs)
        except anthropic.AnthropicError as e:
            logger.warning(f"[anthropic] messages.create failed for {model}: {e}")
            raise TransportError(str(e), provider=self.provider, cause=e) from e
        return _parse_response(raw)

    def close(self) -> None:
        self._client.close()

    # -- Convenience properties ------------------------------------------------

    @property
    def client(self):
        """Escape hatch - the underlying ``anthropic.Anthropic`` client."""
        return self._client
