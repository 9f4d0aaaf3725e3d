"""DelegateWork: per-level schema and request validation.

The worker intercepts DelegateWork calls; spawning the child and wiring
its mailbox happens in ``Worker``. This module only decides what the model
is offered and whether a given request is allowed.
"""

from __future__ import annotations
from typing import TYPE_CHECKING, Mapping

from orgchart.errors import DelegationError, UnknownRoleError
from orgchart.llm.base import FunctionSchema
from orgchart.turn_limits import get_limit

if TYPE_CHECKING:
    from orgchart.roles import Role


DELEGATION_GUIDANCE = """\
This tool allows you to delegate a portion of your assigned task to another agent. The amount, type, and scope of work delegated should be commensurate to the agent's job title. For instance:
 * Design tasks should not be given to a Software Engineer but rather a Designer.
 * Designing an entire feature service is too large for a Junior Designer
 * Writing a few unit tests is too small for a Senior Software engineer but if we're making sweeping changes to all tests that's too big for a Junior Software Engineer
You should delegate work to the most logical agent and utilize agents as often as possible. If your assigned task is manageable in only a few small steps, you should not delegate. If your assigned task could be broken down into two sets of code changes, it should be broken down and delegated in dependency order.
Here is a list of agentIds and their descriptions:
"""


def eligible_roles(level: int, roles: Mapping[str, "Role"]) -> list["Role"]:
    """Roles a worker at *level* may delegate to, in registry order."""
    return [r for r in roles.values() if r.level < level]


def build_schema(level: int, roles: Mapping[str, "Role"]) -> FunctionSchema | None:
    """DelegateWork schema for a caller at *level*, or None if nobody ranks below it."""
    targets = eligible_roles(level, roles)
    if not targets:
        return None
    description = DELEGATION_GUIDANCE + "\n".join(
        f"* {r.id}: {r.description}" for r in targets
    )
    return FunctionSchema(
        name="DelegateWork",
        description=description,
        parameters={
            "type": "object",
            "properties": {
                "reasoning": {
                    "type": "string",
                    "description": (
                        "A brief explanation (1-2 sentences) of why you are delegating "
                        "this task and how it fits into the overall work."
                    ),
                },
                "task": {
                    "type": "string",
                    "description": (
                        "The description of the work to be delegated. Formulate this such "
                        "that the agent will not require ANY further clarification of the "
                        "task and can begin work."
                    ),
                },
                "agent_id": {
                    "type": "string",
                    "description": "The id of the agent to delegate the task to",
                    "enum": [r.id for r in targets],
                },
            },
            "required": ["reasoning", "task", "agent_id"],
        },
    )


def validate_delegation(
    caller: "Role",
    tool_args: dict,
    roles: Mapping[str, "Role"],
    child_count: int = 0,
) -> "Role":
    """Check a DelegateWork request and return the target role.

    Raises:
        UnknownRoleError: ``agent_id`` is not a registered role.
        DelegationError: missing task, target not strictly below the caller,
            or the caller already has ``worker.max_children`` children.
    """
    agent_id = tool_args.get("agent_id", "")
    if agent_id not in roles:
        raise UnknownRoleError(f"Cannot delegate to agent '{agent_id}' as it does not exist")
    target = roles[agent_id]
    if target.level >= caller.level:
        raise DelegationError(
            f"Cannot delegate to agent '{agent_id}': its level ({target.level}) "
            f"must be below yours ({caller.level})"
        )
    if not tool_args.get("task"):
        raise DelegationError("Cannot delegate without a task description")
    max_children = get_limit("worker.max_children")
    if child_count >= max_children:
        raise DelegationError(
            f"Cannot delegate to agent '{agent_id}': sub-agent limit reached ({max_children})"
        )
    return target
