"""
Tool definitions for worker function calling.

Each schema defines what the LLM can call and what parameters it needs.
Tools are executed by the worker based on LLM decisions; the handlers live
in ``orgchart/tool_handlers``.

Tool access per role is controlled by explicit name lists in roles.py.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Mapping, Optional

from .llm.base import FunctionSchema
from .tool_handlers import TOOL_REGISTRY, ToolHandler
from .tool_handlers import delegation
from .truncation import head_lines

if TYPE_CHECKING:
    from .event_bus import EventBus
    from .roles import Role
    from .worker import Worker


COMPLETION_TOOL = "AttemptCompletion"
DELEGATION_TOOL = "DelegateWork"

# Run synchronously inside step(); they only touch the worker and the bus.
INLINE_TOOLS = frozenset({"UpdateTodoList", "AskQuestion"})


TOOL_SCHEMAS = [
    {
        "name": COMPLETION_TOOL,
        "description": """This tool is used to let the requester know that the work has been completed. You should present a concise and poignant summary of the results of your work through the "result" parameter. This summary should give a high level overview of everything you managed to accomplish relating to the task as well as anything you did not manage to accomplish.
You should attempt to accomplish all components of the requested task before using this tool.""",
        "parameters": {
            "type": "object",
            "properties": {
                "result": {
                    "type": "string",
                    "description": "The result of the task. Formulate this result in a way that is final and does not require further input from the user. Don't end your result with questions or offers for further assistance."
                }
            },
            "required": ["result"]
        }
    },
    {
        # The offered schema is rebuilt per caller level by delegation.build_schema().
        "name": DELEGATION_TOOL,
        "description": "Delegate a portion of your assigned task to another agent.",
        "parameters": {
            "type": "object",
            "properties": {
                "reasoning": {"type": "string"},
                "task": {"type": "string"},
                "agent_id": {"type": "string"}
            },
            "required": ["reasoning", "task", "agent_id"]
        }
    },
    {
        "name": "UpdateTodoList",
        "description": "Update your TODO list",
        "parameters": {
            "type": "object",
            "properties": {
                "todo_items": {
                    "type": "array",
                    "description": "Comprehensive list of subtasks required to complete your current task",
                    "items": {
                        "type": "object",
                        "properties": {
                            "title": {
                                "type": "string",
                                "description": "A concise title for the subtask"
                            },
                            "detailed_description": {
                                "type": "string",
                                "description": "A detailed description of what must be completed in scope of the subtask"
                            },
                            "best_agent_for_task": {
                                "type": "string",
                                "description": "The agent id best suited to the subtask, if it should be delegated"
                            },
                            "status": {
                                "type": "string",
                                "description": "Progress of the subtask",
                                "enum": ["pending", "in_progress", "completed"]
                            }
                        },
                        "required": ["title", "status"]
                    }
                }
            },
            "required": ["todo_items"]
        }
    },
    {
        "name": "AskQuestion",
        "description": """Ask the user a question to gather additional information needed to complete the task. Use this tool when you encounter ambiguities, need clarification, or require more details to proceed effectively. Use it judiciously to maintain a balance between gathering necessary information and avoiding excessive back-and-forth.""",
        "parameters": {
            "type": "object",
            "properties": {
                "question": {
                    "type": "string",
                    "description": "The question to ask the user. This should be a clear, specific question that addresses the information you need."
                },
                "reasoning": {
                    "type": "string",
                    "description": "A brief explanation (1-2 sentences) of why you need to ask this question and how it will help accomplish the task."
                }
            },
            "required": ["question", "reasoning"]
        }
    },
    {
        "name": "Read",
        "description": """Read the contents of a file at the specified path. Use this when you need to examine the contents of an existing file you do not know the contents of, for example to analyze code, review text files, or extract information from configuration files.""",
        "parameters": {
            "type": "object",
            "properties": {
                "file_path": {
                    "type": "string",
                    "description": "The path of the file to read (relative to the current working directory)"
                },
                "justification": {
                    "type": "string",
                    "description": "A short justification describing why you are reading this file"
                }
            },
            "required": ["file_path", "justification"]
        }
    },
    {
        "name": "Write",
        "description": """Request to write content to a file at the specified path. If the file exists, it will be overwritten with the provided content. If the file doesn't exist, it will be created, along with any directories needed.

Usage:
- The file_path parameter must be a path relative to the current working directory
- If this is an existing file, you MUST use the Read tool first to read the file's contents.
- ALWAYS prefer editing existing files in the codebase. NEVER write new files unless explicitly required.""",
        "parameters": {
            "type": "object",
            "properties": {
                "file_path": {
                    "type": "string",
                    "description": "The path of the file to write to (relative to the current working directory)"
                },
                "content": {
                    "type": "string",
                    "description": "The content to write to the file. ALWAYS provide the COMPLETE intended content of the file, without any truncation or omissions."
                }
            },
            "required": ["file_path", "content"]
        }
    },
    {
        "name": "MultiEdit",
        "description": "Makes multiple changes to a single file in one operation. Use this tool to edit files by providing the exact text to replace and the new text. Each old_string must match exactly one location; if any edit fails, none are applied.",
        "parameters": {
            "type": "object",
            "properties": {
                "file_path": {
                    "type": "string",
                    "description": "Path to the file to modify"
                },
                "edits": {
                    "type": "array",
                    "description": "Array of edit operations, each containing old_string and new_string",
                    "items": {
                        "type": "object",
                        "properties": {
                            "old_string": {"type": "string", "description": "Exact text to replace"},
                            "new_string": {"type": "string", "description": "The replacement text"}
                        },
                        "required": ["old_string", "new_string"]
                    }
                }
            },
            "required": ["file_path", "edits"]
        }
    },
    {
        "name": "LS",
        "description": "Lists files and directories in a given path. Directories are listed first and end with '/'. You should generally prefer the Grep tool if you know which directories to search.",
        "parameters": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "The path of the directory to list contents for"
                }
            },
            "required": ["path"]
        }
    },
    {
        "name": "Grep",
        "description": """- Fast content search tool that works with any codebase size
- Searches file contents using regular expressions
- Supports full regex syntax (eg. "log.*Error", "def\\s+\\w+", etc.)
- Filter files by pattern with the include parameter (eg. "*.py", "*.{ts,tsx}")
- Returns matching lines as "file:line: text"
- Do not use this tool to read the entirety of files""",
        "parameters": {
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "The regular expression pattern to search for in file contents"
                },
                "path": {
                    "type": "string",
                    "description": "The directory to search in."
                },
                "include": {
                    "type": "string",
                    "description": "File pattern to filter which files to search (e.g., '*.py')"
                }
            },
            "required": ["pattern", "path"]
        }
    },
    {
        "name": "FileTree",
        "description": "Get the directory tree structure under a given directory.",
        "parameters": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "The path of the directory to create the tree from"
                }
            },
            "required": ["path"]
        }
    },
    {
        "name": "Bash",
        "description": """Request to execute a CLI command on the system. Use this when you need to perform system operations or run specific commands to accomplish any step in the requester's task. Provide a clear explanation of what the command does. Prefer to execute complex CLI commands over creating executable scripts. Commands will be executed in the current working directory and are killed after a timeout.""",
        "parameters": {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The CLI command to execute. This should be valid for the current operating system."
                },
                "requires_approval": {
                    "type": "boolean",
                    "description": "Whether this command is potentially impactful (installing packages, deleting or overwriting files, network operations)."
                }
            },
            "required": ["command", "requires_approval"]
        }
    },
]


# ---- Event titles / previews ----

def _describe_path(name: str, key: str) -> Callable[[dict], str]:
    return lambda args: f"{name}({args.get(key, '')})"


_DESCRIBE: dict[str, Callable[[dict], str]] = {
    "Read": _describe_path("Read", "file_path"),
    "Write": _describe_path("Write", "file_path"),
    "MultiEdit": _describe_path("Edit File", "file_path"),
    "LS": _describe_path("LS", "path"),
    "FileTree": _describe_path("FileTree", "path"),
    "Bash": _describe_path("Bash", "command"),
    "Grep": lambda args: (
        f"Grep({args.get('pattern', '')} in {args.get('include') or '*'} "
        f"under {args.get('path', '.')})"
    ),
}

_PREVIEW: dict[str, Callable[[dict], str]] = {
    "Write": lambda args: head_lines(str(args.get("content", "")), 8),
    "MultiEdit": lambda args: "\n\n".join(
        f"SEARCH: {e.get('old_string', '')}\nREPLACE: {e.get('new_string', '')}"
        for e in (args.get("edits") or [])
        if isinstance(e, dict)
    ),
}


# ---- Tool ----

@dataclass(frozen=True)
class Tool:
    """A registered tool: schema plus the handler that enacts it.

    ``handler`` is None for the completion and delegation tools; the worker
    intercepts those. ``inline`` tools run synchronously inside step();
    the rest are submitted to the executor.
    """
    name: str
    description: str
    parameters: dict
    handler: Optional[ToolHandler] = None
    inline: bool = False

    def schema(self) -> FunctionSchema:
        return FunctionSchema(
            name=self.name, description=self.description, parameters=self.parameters
        )

    def describe(self, args: dict) -> str:
        """One-line event title for a call with *args*."""
        fn = _DESCRIBE.get(self.name)
        if fn is not None:
            return fn(args)
        return f"{self.name}({json.dumps(args, default=str)[:80]})"

    def preview(self, args: dict) -> str:
        fn = _PREVIEW.get(self.name)
        return fn(args) if fn is not None else ""

    def enact(self, args: dict, worker: "Worker", events: "EventBus") -> str:
        if self.handler is None:
            raise NotImplementedError(f"{self.name} is handled by the worker")
        return self.handler(args, worker, events)


def _build_registry() -> Mapping[str, Tool]:
    tools = {}
    for s in TOOL_SCHEMAS:
        tools[s["name"]] = Tool(
            name=s["name"],
            description=s["description"],
            parameters=s["parameters"],
            handler=TOOL_REGISTRY.get(s["name"]),
            inline=s["name"] in INLINE_TOOLS,
        )
    return MappingProxyType(tools)


TOOLS: Mapping[str, Tool] = _build_registry()


def resolve_tool_schemas(
    role: "Role",
    tools: Mapping[str, Tool],
    roles: Mapping[str, "Role"],
) -> list[FunctionSchema]:
    """Schemas offered to a worker of *role*, in the role's tool order.

    DelegateWork is rebuilt for the role's level with an ``agent_id`` enum
    of strictly lower roles, and dropped when there are none.
    """
    schemas = []
    for name in role.tool_names:
        if name == DELEGATION_TOOL:
            schema = delegation.build_schema(role.level, roles)
            if schema is not None:
                schemas.append(schema)
        elif name in tools:
            schemas.append(tools[name].schema())
    return schemas
