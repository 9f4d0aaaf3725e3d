import json
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# Secret - stays in .env (per-provider env vars: OPENROUTER_API_KEY, OPENAI_API_KEY, ANTHROPIC_API_KEY)

# User config - loaded from ~/.orgchart/config.json, with the project-local
# .orgchart/config.json (under the working directory) overlaid on top.
CONFIG_PATH = Path.home() / ".orgchart" / "config.json"
_LOCAL_CONFIG_PATH = Path.cwd() / ".orgchart" / "config.json"
_user_config: dict = {}


def _load_config() -> dict:
    # Project level takes precedence over user level
    merged: dict = {}
    for path in (CONFIG_PATH, _LOCAL_CONFIG_PATH):
        if path is not None and path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    merged.update(json.load(f))
            except (json.JSONDecodeError, OSError):
                pass
    return merged


def get(key: str, default=None):
    """Get a config value by dot-separated key. E.g. get('bash.timeout_seconds', 10)"""
    keys = key.split(".")
    val = _user_config
    for k in keys:
        if isinstance(val, dict):
            val = val.get(k)
        else:
            return default
    return val if val is not None else default


def set_value(key: str, value) -> None:
    """Override a config value in memory (not written back to disk)."""
    keys = key.split(".")
    target = _user_config
    for k in keys[:-1]:
        target = target.setdefault(k, {})
    target[keys[-1]] = value


_user_config = _load_config()


# ---- Data directory -----------------------------------------------------------
# Single source of truth for the base data directory (logs, event logs).
# Priority: ORGCHART_DIR env var > "data_dir" config key > ~/.orgchart

_data_dir: Optional[Path] = None


def get_data_dir() -> Path:
    """Return the resolved base data directory.

    Resolution order:
    1. ``ORGCHART_DIR`` environment variable (highest - useful for CI/Docker)
    2. ``"data_dir"`` key in config.json
    3. ``~/.orgchart`` (default)
    """
    global _data_dir
    if _data_dir is not None:
        return _data_dir
    env_val = os.environ.get("ORGCHART_DIR")
    if env_val:
        _data_dir = Path(env_val).expanduser().resolve()
    else:
        configured = get("data_dir")
        if configured:
            _data_dir = Path(configured).expanduser().resolve()
        else:
            _data_dir = Path.home() / ".orgchart"
    return _data_dir


def _reset_data_dir() -> None:
    """Reset the cached data directory (for testing only)."""
    global _data_dir
    _data_dir = None


def get_working_dir() -> Path:
    """Directory the file and shell tools operate in."""
    configured = get("working_dir")
    if configured:
        return Path(configured).expanduser().resolve()
    return Path.cwd()


# ---- LLM provider config ------------------------------------------------------
LLM_PROVIDER = get("llm_provider", "openrouter")  # "openrouter", "openai", "anthropic"

_PROVIDER_ENV_KEYS = {
    "openrouter": "OPENROUTER_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def get_api_key(provider: str | None = None) -> str | None:
    """Return the API key for the given provider.

    Each provider uses its own env var:
      openrouter → OPENROUTER_API_KEY
      openai     → OPENAI_API_KEY
      anthropic  → ANTHROPIC_API_KEY
    """
    p = (provider or LLM_PROVIDER).lower()
    env_key = _PROVIDER_ENV_KEYS.get(p)
    if env_key:
        return os.getenv(env_key)
    return None


# ---- Per-provider defaults ---------------------------------------------------
# Used as final fallback when neither providers.<active>.key nor a top-level
# key is set in config.json.
_PROVIDER_DEFAULTS = {
    "openrouter": {
        "base_url": "https://openrouter.ai/api/v1",
        "timeout_ms": 300_000,
        "max_retries": 3,
    },
    "openai": {
        "base_url": None,
        "timeout_ms": 300_000,
        "max_retries": 3,
    },
    "anthropic": {
        "base_url": None,
        "timeout_ms": 300_000,
        "max_retries": 3,
    },
}


def _provider_get(key: str, default=None, provider: str | None = None):
    """Get a config value with provider-section priority.

    Resolution order:
    1. providers.<provider>.key         (provider-specific; active provider by default)
    2. Top-level key                    (override)
    3. _PROVIDER_DEFAULTS[provider].key (hardcoded defaults)
    4. default argument
    """
    provider = (provider or get("llm_provider", "openrouter")).lower()
    val = get(f"providers.{provider}.{key}")
    if val is not None:
        return val
    val = get(key)
    if val is not None:
        return val
    provider_defaults = _PROVIDER_DEFAULTS.get(provider, {})
    if key in provider_defaults:
        return provider_defaults[key]
    return default


LLM_BASE_URL = _provider_get("base_url")
LLM_TIMEOUT_MS = _provider_get("timeout_ms", 300_000)
LLM_MAX_RETRIES = _provider_get("max_retries", 3)

# ---- Engine -------------------------------------------------------------------
DEFAULT_AGENT = get("default_agent", "TechnicalProductManager")
TICK_INTERVAL_MS = get("tick_interval_ms", 250)
EXECUTOR_MAX_WORKERS = get("executor_max_workers", 8)
IGNORE_PATTERNS = get(
    "ignore_patterns",
    [".git", ".env", "node_modules", "dist", "build", "__pycache__", ".venv"],
)
FILE_LISTING_TTL_SECONDS = get("file_listing_ttl_seconds", 5)

# ---- Shell tool ---------------------------------------------------------------
BASH_TIMEOUT_SECONDS = get("bash.timeout_seconds", 10)
BASH_BLOCKED_PATTERNS = get("bash.blocked_patterns", ["rm -rf", "~", "shutdown"])


# ---- Setting descriptions (single source of truth for --help / API) ----------
CONFIG_DESCRIPTIONS: dict[str, str] = {
    "llm_provider": "LLM backend: 'openrouter' (default, OpenAI-compatible), 'openai', or 'anthropic'.",
    "default_agent": "Role id of the root worker when none is given on the command line.",
    "tick_interval_ms": "Milliseconds between orchestrator ticks of the worker tree.",
    "executor_max_workers": "Thread pool size for in-flight LLM and tool calls across the whole tree.",
    "working_dir": "Directory the file and shell tools operate in. Defaults to the process working directory.",
    "ignore_patterns": "Path fragments skipped by Grep, LS and FileTree.",
    "file_listing_ttl_seconds": "Seconds a rendered project file tree is reused for new workers' prompts. File-changing tools reset it.",
    "bash.timeout_seconds": "Seconds before a Bash tool command is killed.",
    "bash.blocked_patterns": "Substrings that make the Bash tool refuse a command.",
    "turn_limits": "Override worker loop limits. Keys are named limits (e.g. 'worker.max_iterations'). See orgchart/turn_limits.py.",
    "truncation": "Override text character limits for log and event previews. See orgchart/truncation.py.",
    "console_format": "Console log style: 'simple' (default), 'full', or 'clean' (no console output).",
}


def reload_config() -> None:
    """Re-read config from disk and reassign all module-level constants.

    Existing orchestrators keep their current adapter; only new ones pick
    up changes.
    """
    global _user_config
    global LLM_PROVIDER, LLM_BASE_URL, LLM_TIMEOUT_MS, LLM_MAX_RETRIES
    global DEFAULT_AGENT, TICK_INTERVAL_MS, EXECUTOR_MAX_WORKERS, IGNORE_PATTERNS
    global FILE_LISTING_TTL_SECONDS, BASH_TIMEOUT_SECONDS, BASH_BLOCKED_PATTERNS

    load_dotenv(override=True)

    _user_config = _load_config()
    _reset_data_dir()

    LLM_PROVIDER = get("llm_provider", "openrouter")
    LLM_BASE_URL = _provider_get("base_url")
    LLM_TIMEOUT_MS = _provider_get("timeout_ms", 300_000)
    LLM_MAX_RETRIES = _provider_get("max_retries", 3)
    DEFAULT_AGENT = get("default_agent", "TechnicalProductManager")
    TICK_INTERVAL_MS = get("tick_interval_ms", 250)
    EXECUTOR_MAX_WORKERS = get("executor_max_workers", 8)
    IGNORE_PATTERNS = get(
        "ignore_patterns",
        [".git", ".env", "node_modules", "dist", "build", "__pycache__", ".venv"],
    )
    FILE_LISTING_TTL_SECONDS = get("file_listing_ttl_seconds", 5)
    BASH_TIMEOUT_SECONDS = get("bash.timeout_seconds", 10)
    BASH_BLOCKED_PATTERNS = get("bash.blocked_patterns", ["rm -rf", "~", "shutdown"])

    # Reload truncation overrides from config
    try:
        from orgchart.truncation import reload as _reload_truncation

        _reload_truncation()
    except ImportError:
        pass

    # Reload turn limits overrides from config
    try:
        from orgchart.turn_limits import reload as _reload_turn_limits

        _reload_turn_limits()
    except ImportError:
        pass
