"""orgchart/roles.py - Single source of truth for roles and their tool access.

A Role is the immutable definition a Worker is instantiated from: model,
temperature, rank in the hierarchy, system prompt and tool names. ROLES is
a closed registry built at import time.

A worker may only delegate to roles whose level is strictly below its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from . import prompts
from .errors import UnknownRoleError
from .tools import COMPLETION_TOOL, DELEGATION_TOOL


@dataclass(frozen=True)
class Role:
    """Immutable role definition.

    Attributes:
        id: Registry key, e.g. ``"JuniorSoftwareEngineer"``.
        name: Display name used in events and the tree view.
        model: Model id passed to ``LLMAdapter.complete``.
        temperature: Sampling temperature.
        level: Rank; delegation only goes to strictly lower levels.
        description: One-line description shown to delegating workers.
        system_prompt: Builds the system prompt for a working directory.
        tool_names: Tools a worker of this role may call, in offer order.
        max_tokens: Completion token ceiling per LLM call (None = provider default).
    """
    id: str
    name: str
    model: str
    temperature: float
    level: int
    description: str
    system_prompt: Callable[[Path], str]
    tool_names: tuple[str, ...]
    max_tokens: Optional[int] = None


# ── Toolsets ──

COMMON_TOOLS = (COMPLETION_TOOL, "UpdateTodoList")
READ_TOOLS = ("Read", "LS", "Grep", "FileTree")
WRITE_TOOLS = ("Write", "MultiEdit")


def toolset(level: int, can_read: bool, can_write: bool) -> tuple[str, ...]:
    """Standard tool list for a role.

    Every role above level 0 gets DelegateWork; it is dropped from the
    offered schemas when no role ranks below the caller.
    """
    names = list(COMMON_TOOLS)
    if level > 0:
        names.append(DELEGATION_TOOL)
    if can_read:
        names.extend(READ_TOOLS)
    if can_write:
        names.extend(WRITE_TOOLS)
    return tuple(names)


# ── Role definitions ──

_ROLE_LIST = [
    Role(
        id="TechnicalProductManager",
        name="Technical Product Manager",
        model="anthropic/claude-sonnet-4",
        temperature=0.7,
        level=9,
        description="Coordinates complex projects across teams, ensuring quality delivery of technical solutions",
        system_prompt=prompts.technical_product_manager_prompt,
        tool_names=toolset(9, False, False) + ("AskQuestion",),
    ),
    Role(
        id="SeniorSoftwareEngineer",
        name="Senior Software Engineer",
        model="anthropic/claude-sonnet-4",
        temperature=0.2,
        level=6,
        description=(
            "Owns, and orchestrates the implementation of, large software systems or features "
            "from designs. Use for a single feature or system but not multiple; separate work "
            "along high-level boundaries such as frontend, backend or CLI."
        ),
        system_prompt=prompts.senior_software_engineer_prompt,
        tool_names=toolset(6, True, True),
    ),
    Role(
        id="SeniorDesigner",
        name="Senior Designer",
        model="anthropic/claude-sonnet-4",
        temperature=0.2,
        level=6,
        description="Owns and orchestrates the design of large projects or features from well-defined specifications",
        system_prompt=prompts.senior_designer_prompt,
        tool_names=toolset(6, True, True),
    ),
    Role(
        id="AssociateSoftwareEngineer",
        name="Associate Software Engineer",
        model="google/gemini-2.5-flash",
        temperature=0.5,
        level=5,
        description="Performs software engineering tasks with a well defined scope that require modification of code or config files",
        system_prompt=prompts.associate_software_engineer_prompt,
        tool_names=toolset(5, True, True),
    ),
    Role(
        id="AssociateDesigner",
        name="Associate Designer",
        model="google/gemini-2.5-flash",
        temperature=0.5,
        level=5,
        description=(
            "Performs design tasks with a well-defined scope that require modification of design "
            "files or components. Handles small-medium sized tasks (less than 3 self-contained changes)."
        ),
        system_prompt=prompts.associate_designer_prompt,
        tool_names=toolset(5, True, True),
    ),
    Role(
        id="JuniorSoftwareEngineer",
        name="Junior Software Engineer",
        model="anthropic/claude-sonnet-4",
        temperature=0.6,
        level=4,
        description=(
            "Performs small software engineering tasks with a well defined scope that require "
            "modification of only a few code or config files"
        ),
        system_prompt=prompts.junior_software_engineer_prompt,
        tool_names=toolset(4, True, True),
    ),
    Role(
        id="JuniorDesigner",
        name="Junior Designer",
        model="google/gemini-2.5-flash",
        temperature=0.6,
        level=4,
        description=(
            "Performs small design tasks with a well-defined scope that require modification of "
            "only a few design files or components."
        ),
        system_prompt=prompts.junior_designer_prompt,
        tool_names=toolset(4, True, True),
    ),
    Role(
        id="ProjectResearcher",
        name="Project Researcher",
        model="google/gemini-2.5-flash",
        temperature=0.1,
        level=0,
        description="Performs research on a single, specific question and returns a concise answer",
        system_prompt=prompts.project_researcher_prompt,
        tool_names=toolset(0, True, False),
    ),
    Role(
        id="CodeReviewer",
        name="Code Reviewer",
        model="google/gemini-2.5-flash",
        temperature=0.1,
        level=0,
        description=(
            "Specializes in reviewing code for quality, readability, and adherence to best "
            "practices. Provides constructive feedback, identifies potential bugs, and suggests improvements."
        ),
        system_prompt=prompts.code_reviewer_prompt,
        tool_names=(COMPLETION_TOOL, "Read"),
    ),
    Role(
        id="CommandRunner",
        name="Command Runner",
        model="google/gemini-2.5-flash",
        temperature=0.1,
        level=0,
        description="Executes a provided shell command and provides a summary of the results",
        system_prompt=prompts.command_runner_prompt,
        tool_names=COMMON_TOOLS + ("Bash",),
    ),
]

ROLES: Mapping[str, Role] = MappingProxyType({r.id: r for r in _ROLE_LIST})


def get_role(role_id: str, roles: Mapping[str, Role] = ROLES) -> Role:
    """Look up a role by id.

    Raises:
        UnknownRoleError: *role_id* is not registered.
    """
    try:
        return roles[role_id]
    except KeyError:
        raise UnknownRoleError(f"Unknown role {role_id!r}; known roles: {', '.join(roles)}") from None
