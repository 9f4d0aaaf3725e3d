"""
Shared LLM utilities used by Worker.

All functions are stateless (operate on passed-in responses and the
event bus).
"""

from __future__ import annotations

from .event_bus import EventBus, LLM_CALL, TOKEN_USAGE
from .llm import LLMResponse, ToolCall
from .model_info import price
from .truncation import trunc


def summarize_tool_calls(tool_calls: list[ToolCall]) -> str:
    """``"Read, Read, Write"`` style one-liner for logs."""
    return ", ".join(tc.name for tc in tool_calls) if tool_calls else "(no tool calls)"


def emit_llm_call(
    events: EventBus,
    *,
    agent: str,
    agent_id: str,
    model: str,
    iteration: int,
    message_count: int,
    tool_names: list[str],
) -> None:
    events.emit(
        LLM_CALL,
        agent=agent,
        agent_id=agent_id,
        level="debug",
        title=f"LLM call #{iteration} ({model})",
        content=f"{message_count} messages, tools: {', '.join(tool_names) or '(none)'}",
        data={
            "model": model,
            "iteration": iteration,
            "message_count": message_count,
            "tools": tool_names,
        },
    )


def track_llm_usage(
    response: LLMResponse,
    model: str,
    events: EventBus,
    *,
    agent: str,
    agent_id: str,
    cumulative_cost: float = 0.0,
) -> tuple[float, int]:
    """Price one response and emit a TOKEN_USAGE event.

    Args:
        response: The LLMResponse to extract usage from. Must carry usage.
        model: Model id the call was made with (for pricing).
        events: Bus to emit on.
        agent: Role name of the calling worker.
        agent_id: Instance id of the calling worker.
        cumulative_cost: Worker cost before this call, for the log line.

    Returns:
        ``(call_cost, prompt_tokens)``.
    """
    usage = response.usage
    call_cost = price(model, usage.input_tokens, usage.output_tokens)
    events.emit(
        TOKEN_USAGE,
        agent=agent,
        agent_id=agent_id,
        level="debug",
        title=(
            f"[Tokens] {agent} in:{usage.input_tokens} out:{usage.output_tokens} "
            f"think:{usage.thinking_tokens} | ${call_cost:.4f} "
            f"(total ${cumulative_cost + call_cost:.4f})"
        ),
        content=trunc(response.text, "console.summary") if response.text else (),
        data={
            "model": model,
            "input_tokens": usage.input_tokens,
            "output_tokens": usage.output_tokens,
            "thinking_tokens": usage.thinking_tokens,
            "cached_tokens": usage.cached_tokens,
            "cost": call_cost,
            "tool_calls": summarize_tool_calls(response.tool_calls),
        },
    )
    return call_cost, usage.input_tokens
