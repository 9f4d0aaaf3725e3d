"""Context windows and token prices per model.

Keys are OpenRouter-style ``vendor/model`` ids. Lookups also accept the
bare model name (``claude-sonnet-4``) and dated variants
(``claude-sonnet-4-20250514``) via longest-prefix matching.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger("orgchart")


@dataclass(frozen=True)
class ModelInfo:
    """Context window size and USD price per million tokens."""
    context: int
    input_cost_per_m: float
    output_cost_per_m: float


MODEL_INFO: dict[str, ModelInfo] = {
    # Claude models
    "anthropic/claude-opus-4": ModelInfo(200_000, 15.0, 75.0),
    "anthropic/claude-sonnet-4": ModelInfo(200_000, 3.0, 15.0),
    # Gemini models
    "google/gemini-2.5-flash-lite": ModelInfo(1_048_576, 0.3, 2.5),
    "google/gemini-2.5-flash": ModelInfo(1_048_576, 0.1, 0.4),
    "google/gemini-2.5-pro": ModelInfo(1_048_576, 1.25, 10.0),
    # Other models
    "openai/gpt-4o-mini": ModelInfo(128_000, 0.15, 0.6),
    "openai/gpt-oss-120b": ModelInfo(131_072, 0.25, 0.69),
    "moonshotai/kimi-k2": ModelInfo(32_768, 0.14, 2.49),
    "qwen/qwen3-coder": ModelInfo(262_144, 0.3, 1.2),
    "deepseek/deepseek-chat-v3-0324": ModelInfo(163_840, 0.34, 0.88),
    "deepseek/deepseek-r1-0528": ModelInfo(163_840, 0.5, 0.85),
}

_warned: set[str] = set()


def _bare(name: str) -> str:
    return name.split("/", 1)[1] if "/" in name else name


def get_model_info(model_name: str) -> ModelInfo | None:
    """Return the ModelInfo for *model_name* (longest prefix match), or None."""
    if not model_name:
        return None
    if model_name in MODEL_INFO:
        return MODEL_INFO[model_name]
    bare = _bare(model_name)
    best, best_len = None, 0
    for key, info in MODEL_INFO.items():
        for prefix in (key, _bare(key)):
            candidate = model_name if "/" in prefix else bare
            if candidate.startswith(prefix) and len(prefix) > best_len:
                best, best_len = info, len(prefix)
    return best


def get_context_limit(model_name: str) -> int:
    """Return context window size for a model, or 0 if unknown."""
    info = get_model_info(model_name)
    return info.context if info else 0


def price(model_name: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Return the USD cost of one completion.

    Unknown models cost 0.0; a warning is logged once per model name.
    """
    info = get_model_info(model_name)
    if info is None:
        if model_name not in _warned:
            _warned.add(model_name)
            logger.warning(f"No pricing information for model {model_name!r}; cost recorded as 0")
        return 0.0
    return (
        prompt_tokens * info.input_cost_per_m
        + completion_tokens * info.output_cost_per_m
    ) / 1_000_000
