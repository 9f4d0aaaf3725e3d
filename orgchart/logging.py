"""
Logging configuration for orgchart.

Two destinations:

  - Console: DEBUG if --verbose, WARNING+ otherwise
    Config console_format options:
    - "simple" - (default) bare messages for DEBUG/INFO, [LEVEL] prefix for WARNING+
    - "full"   - same structured format as the file handler
    - "clean"  - no console output at all (file logging still active)
  - File: always DEBUG level, one file per run, attached by attach_log_file()
    Format: "timestamp | level | name | run_id | tag | message"

Log files are stored in ~/.orgchart/logs/ (see config.get_data_dir()).
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import get_data_dir


LOGGER_NAME = "orgchart"

_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(run_id)s | %(log_tag)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def tagged(tag: str) -> dict:
    """Return ``extra`` dict for logger calls: ``logger.debug("...", extra=tagged("x"))``."""
    return {"log_tag": tag}


# Module-level state (shared across re-inits)
_run_filter: Optional["_RunFilter"] = None
_current_log_file: Optional[Path] = None


def get_log_dir() -> Path:
    return get_data_dir() / "logs"


class _RunFilter(logging.Filter):
    """Injects run_id into every log record."""

    def __init__(self) -> None:
        super().__init__()
        self.run_id = ""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.run_id or "-"
        if not hasattr(record, "log_tag"):
            record.log_tag = ""
        return True


class _ConsoleFormatter(logging.Formatter):
    """Console formatter: shows [LEVEL] prefix only for WARNING and above."""

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            return f"  [{record.levelname}] {record.getMessage()}"
        return f"  {record.getMessage()}"


def attach_log_file(run_id: str) -> Path:
    """Attach a per-run file handler writing ``orgchart_{run_id}.log``.

    Any previously attached file handler is removed first.

    Returns:
        Path of the log file.
    """
    global _current_log_file
    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"orgchart_{run_id}.log"
    _current_log_file = log_file
    set_run_id(run_id)

    logger = get_logger()
    logger.handlers = [h for h in logger.handlers if not isinstance(h, logging.FileHandler)]

    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(file_handler)

    logger.info("=" * 60)
    logger.info(f"Run started at {datetime.now().isoformat()}")
    logger.info(f"Log file: {log_file}")
    return log_file


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure console logging for the engine.

    File handlers are attached later by ``attach_log_file()`` once a
    run ID is known.

    Args:
        verbose: If True, show DEBUG level on console; otherwise WARNING+.

    Returns:
        Configured logger instance.
    """
    global _run_filter

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture everything, filter at handler level
    logger.propagate = False

    # Clear existing handlers (in case of re-init)
    logger.handlers.clear()

    # Reuse the filter so run_id survives re-inits
    if _run_filter is None:
        _run_filter = _RunFilter()
    if _run_filter not in logger.filters:
        logger.addFilter(_run_filter)

    import config as _config
    console_format = _config.get("console_format", "simple")

    if console_format != "clean":
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        if console_format == "full":
            console_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
        else:
            console_handler.setFormatter(_ConsoleFormatter())
        logger.addHandler(console_handler)

    return logger


def get_logger() -> logging.Logger:
    """Get the orgchart logger instance.

    Returns:
        The orgchart logger (creates with defaults if not configured)
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        return setup_logging(verbose=False)
    return logger


def set_run_id(run_id: str) -> None:
    """Set the run ID included in all subsequent log lines."""
    global _run_filter
    if _run_filter is None:
        _run_filter = _RunFilter()
    _run_filter.run_id = run_id


def get_current_log_path() -> Optional[Path]:
    """Return the path to the current run's log file, if one is attached."""
    return _current_log_file
