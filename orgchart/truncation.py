"""orgchart/truncation.py - Central truncation registry.

Every truncation limit for log lines and event previews lives here as a
named constant. Config.json overrides via ``"truncation"``. Setting a
limit to ``0`` disables truncation for that key. Tool results that go back
into a worker's context are never truncated.

Public API:
    trunc(text, limit_name)  - truncate text, append "..." if cut
    head_lines(text, n)      - first *n* lines of text
    get_limit(name)          - raw lookup (int)
    reload()                 - re-read config overrides
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Default limits - text character counts
# ---------------------------------------------------------------------------

DEFAULTS: dict[str, int] = {
    # Console / log previews
    "console.summary":        300,
    "console.args":           500,
    "console.result":         200,
    "console.error":          500,
    # Event content chunks
    "event.task":            2000,
    "event.result":          2000,
    "event.tool_result":      500,
}


# ---------------------------------------------------------------------------
# Runtime state - overrides from config.json
# ---------------------------------------------------------------------------

_text_overrides: dict[str, int] = {}


def reload() -> None:
    """Re-read config.json overrides for truncation limits.

    Called by ``config.reload_config()`` and at import time.
    """
    global _text_overrides
    import config
    _text_overrides = config.get("truncation", {}) or {}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_limit(name: str) -> int:
    """Return the effective text character limit for *name*.

    Raises ``KeyError`` if *name* is not in DEFAULTS (catches typos).
    Config override of ``0`` means "no truncation" - returned as 0.
    """
    if name not in DEFAULTS:
        raise KeyError(f"Unknown truncation limit: {name!r}")
    override = _text_overrides.get(name)
    if override is not None:
        return int(override)
    return DEFAULTS[name]


def trunc(text: str, limit_name: str) -> str:
    """Truncate *text* to the named limit, appending ``"..."`` if cut.

    A limit of ``0`` (from config override) disables truncation.
    """
    n = get_limit(limit_name)
    if n == 0 or len(text) <= n:
        return text
    return text[: n - 3] + "..."


def head_lines(text: str, n: int) -> str:
    """Return the first *n* lines of *text*."""
    return "\n".join(text.split("\n")[:n])


# ---------------------------------------------------------------------------
# Initialize overrides at import time
# ---------------------------------------------------------------------------

try:
    reload()
except Exception:
    pass  # config may not be loadable yet (e.g., during testing)
