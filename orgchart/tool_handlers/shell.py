"""Shell tool handler."""

from __future__ import annotations
import logging
import subprocess
from typing import TYPE_CHECKING

import config
from orgchart.tool_handlers.filesystem import invalidate_file_listing
from orgchart.truncation import trunc

if TYPE_CHECKING:
    from orgchart.event_bus import EventBus
    from orgchart.worker import Worker

logger = logging.getLogger("orgchart")


def handle_bash(tool_args: dict, worker: "Worker", events: "EventBus") -> str:
    # requires_approval is accepted for schema compatibility; there is no
    # approval step, blocked patterns are the only guard.
    command = tool_args.get("command", "")
    if not command:
        raise ValueError("Missing required parameter: command")

    blocked = list(config.BASH_BLOCKED_PATTERNS)
    if any(p in command for p in blocked):
        logger.info(f"Blocking execution of: {command}")
        return f"Unable to execute commands matching {blocked}"

    timeout = config.BASH_TIMEOUT_SECONDS
    logger.info(f"Executing command: {command}")
    try:
        proc = subprocess.run(
            command,
            shell=True,
            cwd=worker.working_dir,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise TimeoutError(f"Command timed out after {timeout}s: {command}") from e
    finally:
        invalidate_file_listing()

    output = (proc.stdout or "") + (proc.stderr or "")
    logger.debug(f"Command result: {trunc(output, 'console.result')}")
    if proc.returncode != 0:
        return f"Command exited with status {proc.returncode}\n{output}".rstrip("\n")
    return output or "(no output)"
