from __future__ import annotations
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from orgchart.event_bus import EventBus
    from orgchart.worker import Worker

ToolHandler = Callable[[dict, "Worker", "EventBus"], str]

# Tools whose handler is None here are intercepted by the worker itself
# (AttemptCompletion, DelegateWork).
TOOL_REGISTRY: dict[str, ToolHandler] = {}

# ── Planning, interaction ──
from orgchart.tool_handlers.planning import handle_update_todo_list
from orgchart.tool_handlers.interaction import handle_ask_question

# ── Filesystem ──
from orgchart.tool_handlers.filesystem import (
    handle_read,
    handle_write,
    handle_multi_edit,
    handle_ls,
    handle_grep,
    handle_file_tree,
)

# ── Shell ──
from orgchart.tool_handlers.shell import handle_bash

TOOL_REGISTRY.update({
    "UpdateTodoList": handle_update_todo_list,
    "AskQuestion": handle_ask_question,
    "Read": handle_read,
    "Write": handle_write,
    "MultiEdit": handle_multi_edit,
    "LS": handle_ls,
    "Grep": handle_grep,
    "FileTree": handle_file_tree,
    "Bash": handle_bash,
})
