"""Block-structured conversation history for a single worker.

Every message a worker sends to its LLM lives in exactly one ContextBlock.
Blocks are appended in order and flattened by ``to_completion_messages()``
into the exact OpenAI-format list passed to ``LLMAdapter.complete``.

Mutation rules:
  - CONTEXT blocks may be removed and re-added wholesale (refresh).
  - A TOOL block created pending is resolved in place exactly once.
  - Every other block is immutable once appended.
"""

from __future__ import annotations

import copy
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .llm.base import ToolCall


PENDING_SUFFIX = " (pending)"
PENDING_RESULT = "Tool execution in progress..."
CONTEXT_ACK = (
    "I understand the current project context and will use this information "
    "to assist effectively."
)


class BlockType(str, Enum):
    SYSTEM = "SYSTEM"
    USER = "USER"
    ASSISTANT = "ASSISTANT"
    PARENT = "PARENT"
    CONTEXT = "CONTEXT"
    TOOL = "TOOL"


@dataclass
class ContextBlock:
    """A group of 1-2 chat messages that belong together.

    Attributes:
        type: Block kind.
        label: Human-readable tag (tool name, "Parent Message", ...).
        messages: OpenAI-format chat dicts. A TOOL block holds exactly an
            assistant tool-call message followed by its tool-result message.
        metadata: ``timestamp`` always; ``tool_call_id``,
            ``parent_conversation_id`` and ``context_version`` as applicable.
    """
    type: BlockType
    label: str
    messages: list[dict]
    metadata: dict = field(default_factory=dict)

    @property
    def is_pending(self) -> bool:
        return self.type is BlockType.TOOL and self.label.endswith(PENDING_SUFFIX)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _tool_call_message(tool_call: ToolCall, text: str = "") -> dict:
    return {
        "role": "assistant",
        "content": text,
        "tool_calls": [tool_call.to_message_dict()],
    }


def _tool_result_message(tool_call: ToolCall, result: str) -> dict:
    return {"role": "tool", "tool_call_id": tool_call.id, "content": result}


class ContextLog:
    """Ordered, typed blocks making up one worker's LLM conversation."""

    def __init__(self, system_prompt: Optional[str] = None):
        self._blocks: list[ContextBlock] = []
        self._context_version = 0
        if system_prompt is not None:
            self.add_system_block(system_prompt)

    # ------------------------------------------------------------------
    # Appending
    # ------------------------------------------------------------------

    def _append(self, block_type: BlockType, label: str, messages: list[dict], **metadata) -> ContextBlock:
        metadata["timestamp"] = _now_ms()
        block = ContextBlock(type=block_type, label=label, messages=messages, metadata=metadata)
        self._blocks.append(block)
        return block

    def add_system_block(self, content: str) -> ContextBlock:
        """Add the system prompt. A log holds at most one SYSTEM block."""
        if self.get_blocks_by_type(BlockType.SYSTEM):
            raise ValueError("ContextLog already has a system block")
        return self._append(
            BlockType.SYSTEM, "System Prompt", [{"role": "system", "content": content}]
        )

    def add_user_block(self, content: str, label: Optional[str] = None) -> ContextBlock:
        return self._append(
            BlockType.USER, label or "User Input", [{"role": "user", "content": content}]
        )

    def add_assistant_block(self, content: str, label: Optional[str] = None) -> ContextBlock:
        """Add an assistant message that is not a tool call."""
        return self._append(
            BlockType.ASSISTANT,
            label or "Assistant Response",
            [{"role": "assistant", "content": content}],
        )

    def add_parent_block(self, content: str, parent_conversation_id: Optional[str] = None) -> ContextBlock:
        """Add a message sent down by the parent worker."""
        return self._append(
            BlockType.PARENT,
            "Parent Message",
            [{"role": "user", "content": content}],
            parent_conversation_id=parent_conversation_id,
        )

    def add_context_block(self, content: str, simulated_response: Optional[str] = None) -> ContextBlock:
        """Add project context, optionally followed by a canned acknowledgement."""
        messages = [{"role": "user", "content": content}]
        if simulated_response:
            messages.append({"role": "assistant", "content": simulated_response})
        self._context_version += 1
        return self._append(
            BlockType.CONTEXT,
            "Project Context",
            messages,
            context_version=self._context_version,
        )

    def add_single_tool_block(self, tool_call: ToolCall, result: str, text: str = "") -> ContextBlock:
        """Add a tool call whose result is already known."""
        return self._append(
            BlockType.TOOL,
            tool_call.name,
            [_tool_call_message(tool_call, text), _tool_result_message(tool_call, result)],
            tool_call_id=tool_call.id,
        )

    def add_pending_tool_block(
        self, tool_call: ToolCall, label: Optional[str] = None, text: str = ""
    ) -> ContextBlock:
        """Add a tool call whose result arrives later via update_tool_block_result()."""
        return self._append(
            BlockType.TOOL,
            f"{label or tool_call.name}{PENDING_SUFFIX}",
            [_tool_call_message(tool_call, text), _tool_result_message(tool_call, PENDING_RESULT)],
            tool_call_id=tool_call.id,
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update_tool_block_result(self, tool_call_id: str, result: str) -> bool:
        """Resolve the pending TOOL block for *tool_call_id*.

        Returns:
            True if a pending block was found and updated. Resolved blocks
            are never touched again, so a second call returns False.
        """
        for block in self._blocks:
            if (
                block.type is BlockType.TOOL
                and block.metadata.get("tool_call_id") == tool_call_id
                and block.is_pending
            ):
                block.messages[1]["content"] = result
                block.label = block.label[: -len(PENDING_SUFFIX)] or "Tool"
                return True
        return False

    def remove_blocks_by_type(self, block_type: BlockType) -> int:
        """Remove every block of *block_type*. Only CONTEXT blocks may be removed.

        Returns:
            Number of blocks removed.
        """
        if block_type is not BlockType.CONTEXT:
            raise ValueError(f"{block_type.value} blocks are immutable once appended")
        before = len(self._blocks)
        self._blocks = [b for b in self._blocks if b.type is not block_type]
        return before - len(self._blocks)

    def refresh_context_block(self, content: str) -> ContextBlock:
        """Replace any CONTEXT blocks with a fresh one carrying *content*."""
        self.remove_blocks_by_type(BlockType.CONTEXT)
        return self.add_context_block(content, CONTEXT_ACK)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def to_completion_messages(self) -> list[dict]:
        """Flatten all blocks' messages in block order.

        Returns deep copies so an in-flight request never observes a later
        in-place update.
        """
        messages: list[dict] = []
        for block in self._blocks:
            messages.extend(copy.deepcopy(block.messages))
        return messages

    def get_blocks(self) -> list[ContextBlock]:
        return list(self._blocks)

    def get_blocks_by_type(self, block_type: BlockType) -> list[ContextBlock]:
        return [b for b in self._blocks if b.type is block_type]

    def get_latest_block_by_type(self, block_type: BlockType) -> Optional[ContextBlock]:
        blocks = self.get_blocks_by_type(block_type)
        return blocks[-1] if blocks else None

    def find_tool_block(self, tool_call_id: str) -> Optional[ContextBlock]:
        for block in self._blocks:
            if block.type is BlockType.TOOL and block.metadata.get("tool_call_id") == tool_call_id:
                return block
        return None

    def last_message(self) -> Optional[dict]:
        if not self._blocks:
            return None
        return self._blocks[-1].messages[-1]

    def __len__(self) -> int:
        return len(self._blocks)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Block/message counts and a rough token estimate (4 chars per token)."""
        blocks_by_type = {t.value: 0 for t in BlockType}
        total_messages = 0
        estimated_tokens = 0
        for block in self._blocks:
            blocks_by_type[block.type.value] += 1
            total_messages += len(block.messages)
            for message in block.messages:
                estimated_tokens += math.ceil(len(message.get("content") or "") / 4)
        return {
            "total_blocks": len(self._blocks),
            "total_messages": total_messages,
            "blocks_by_type": blocks_by_type,
            "estimated_tokens": estimated_tokens,
        }

    def generate_debug_summary(self) -> str:
        stats = self.get_stats()
        lines = [
            "Agent Context Summary:",
            f"- Total Blocks: {stats['total_blocks']}",
            f"- Total Messages: {stats['total_messages']}",
            f"- Estimated Tokens: {stats['estimated_tokens']}",
            "",
            "Blocks by Type:",
        ]
        for block_type, count in stats["blocks_by_type"].items():
            if count > 0:
                lines.append(f"- {block_type}: {count}")
        lines.append("")
        lines.append("Block Details:")
        for i, block in enumerate(self._blocks, 1):
            lines.append(
                f"{i}. [{block.type.value}] {block.label or 'Unlabeled'} ({len(block.messages)} messages)"
            )
        return "\n".join(lines) + "\n"
