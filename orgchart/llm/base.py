"""Provider-agnostic types and abstract base class for LLM adapters.

Engine code depends on these types, never on provider-specific SDKs.
Messages passed to ``LLMAdapter.complete`` are always OpenAI-format chat
dicts; adapters for other providers convert them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class ToolCall:
    """A single function/tool invocation extracted from the LLM response.

    Attributes:
        name: Tool/function name.
        arguments: Raw JSON argument string exactly as the model produced it.
            Parsing happens in the worker so that malformed JSON becomes a
            tool result instead of an adapter failure.
        id: Provider-assigned call ID (e.g. ``call_xxxxx`` for OpenAI,
            ``toolu_xxxxx`` for Anthropic).
    """
    name: str
    arguments: str = "{}"
    id: str = ""

    def to_message_dict(self) -> dict:
        """OpenAI-format ``tool_calls`` entry for an assistant message."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class UsageMetadata:
    """Normalized token counts."""
    input_tokens: int = 0
    output_tokens: int = 0
    thinking_tokens: int = 0
    cached_tokens: int = 0


@dataclass
class LLMResponse:
    """Provider-agnostic response from an LLM call.

    Attributes:
        text: Concatenated text output (excludes thinking text).
        tool_calls: Extracted function/tool calls, in the order returned.
        usage: Token usage for this call, or None if the provider sent none.
        thoughts: Thinking/reasoning text blocks (for verbose logging).
        raw: The original provider-specific response object.
    """
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: UsageMetadata | None = None
    thoughts: list[str] = field(default_factory=list)
    raw: Any = None


@dataclass
class FunctionSchema:
    """Wraps a tool/function schema dict for type clarity.

    The ``parameters`` dict is already JSON-schema-shaped and provider-agnostic.
    """
    name: str
    description: str
    parameters: dict


# ---------------------------------------------------------------------------
# LLMAdapter ABC
# ---------------------------------------------------------------------------

class LLMAdapter(ABC):
    """Abstract interface that every LLM provider adapter must implement."""

    provider: str = ""

    @abstractmethod
    def complete(
        self,
        model: str,
        messages: list[dict],
        tools: list[FunctionSchema],
        temperature: float,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Run one chat completion that must answer with tool calls.

        Args:
            model: Model identifier (e.g. ``"anthropic/claude-sonnet-4"``).
            messages: Flattened OpenAI-format conversation, system first.
            tools: Tool schemas the model may call. When non-empty the
                adapter requires the model to call at least one.
            temperature: Sampling temperature.
            max_tokens: Optional completion token ceiling.

        Raises:
            TransportError: the call failed after the SDK's own retries.
        """

    def close(self) -> None:
        """Release network resources. Default: no-op."""
