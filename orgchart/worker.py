"""Worker - one node of the delegation tree.

A Worker is a small state machine driven by ``step()``:

    IDLE ──parent message──▶ THINKING ──tool calls──▶ ACTING ──last call──▶ THINKING
                               │                        │ DelegateWork
                               │ error / no tool calls  ▼
                               ▼                      WAITING ──child reply──▶ THINKING
                             PAUSED                     │
                                                        └ AttemptCompletion ──▶ IDLE

Each ``step()`` advances at most one unit of work and never blocks: the
LLM call and ordinary tool calls are submitted to a
``concurrent.futures.Executor`` and the Future is harvested on a later
step. All state mutation happens inside ``step()`` on the ticking thread;
futures never call back into the worker.

Children are stepped before their parent, so a child's reply is visible to
the parent in the same tick it was posted.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Optional
from uuid import uuid4

from .context import CONTEXT_ACK, ContextLog
from .errors import DelegationError
from .event_bus import (
    EventBus,
    AGENT_STATE_CHANGE,
    CONTEXT_REFRESH,
    DELEGATION,
    DELEGATION_DONE,
    DELEGATION_FAILED,
    MAX_ITERATIONS,
    TASK_COMPLETE,
    TASK_ERROR,
    TASK_STARTED,
    TOOL_CALL,
    TOOL_ERROR,
    TOOL_RESULT,
)
from .llm import FunctionSchema, LLMAdapter, LLMResponse, ToolCall
from .logging import tagged
from .llm_utils import emit_llm_call, summarize_tool_calls, track_llm_usage
from .mailbox import Mailbox
from .model_info import get_context_limit
from .roles import Role
from .tool_handlers.delegation import validate_delegation
from .tool_handlers.planning import TodoItem
from .tool_timing import timed
from .tools import COMPLETION_TOOL, DELEGATION_TOOL, Tool, resolve_tool_schemas
from .truncation import trunc
from .turn_limits import get_limit

logger = logging.getLogger("orgchart")

ContextProvider = Callable[[], Optional[str]]

FURTHER_INPUT_PROMPT = "Do you have any further input before I continue?"
COMPLETION_ACK = "Task completion reported to the requester."
SKIPPED_RESULT = (
    "Not executed: an earlier DelegateWork call in the same response handed off "
    "the work. Issue this call again if it is still needed."
)
ORPHANED_DELEGATION_RESULT = "The delegated agent stopped without reporting a result."


class WorkerStatus(str, Enum):
    IDLE = "idle"
    THINKING = "thinking"
    ACTING = "acting"
    WAITING = "waiting"
    PAUSED = "paused"


@dataclass(frozen=True)
class WorkerSnapshot:
    """Read-only view of a worker and its subtree."""
    instance_id: str
    role_id: str
    name: str
    status: str
    cost: float
    context_used: int
    max_context: int
    children: tuple["WorkerSnapshot", ...] = ()

    @property
    def total_cost(self) -> float:
        return self.cost + sum(c.total_cost for c in self.children)

    def to_dict(self) -> dict:
        return {
            "instance_id": self.instance_id,
            "role_id": self.role_id,
            "name": self.name,
            "status": self.status,
            "cost": self.cost,
            "context_used": self.context_used,
            "max_context": self.max_context,
            "children": [c.to_dict() for c in self.children],
        }


class Worker:
    """An LLM-driven node that works a task itself or delegates parts of it.

    Args:
        role: Immutable role definition (model, prompt, tools, level).
        mailbox: Mailbox shared with the parent. The root worker's mailbox is
            written by the Orchestrator.
        roles: Role registry used for delegation.
        tools: Tool registry.
        adapter: LLM transport.
        events: Event bus for progress events.
        executor: Runs LLM calls and non-inline tool calls.
        context_provider: Optional callable returning project context text.
        working_dir: Directory file and shell tools operate in.
        depth: 0 for the root worker; children are parent depth + 1.
    """

    def __init__(
        self,
        role: Role,
        mailbox: Mailbox,
        *,
        roles: Mapping[str, Role],
        tools: Mapping[str, Tool],
        adapter: LLMAdapter,
        events: EventBus,
        executor: Executor,
        context_provider: Optional[ContextProvider] = None,
        working_dir: Optional[Path] = None,
        depth: int = 0,
    ):
        self.instance_id = uuid4().hex
        self.role = role
        self.mailbox = mailbox
        self.roles = roles
        self.tools = tools
        self.adapter = adapter
        self.events = events
        self.executor = executor
        self.context_provider = context_provider
        self.working_dir = Path(working_dir) if working_dir is not None else Path.cwd()
        self.depth = depth

        self.status = WorkerStatus.IDLE
        self.children: list[Worker] = []
        self.child_mailboxes: dict[Worker, Mailbox] = {}
        self.todo_list: list[TodoItem] = []
        self.cost = 0.0
        self.context_used = 0
        self.iteration_count = 0
        self.final_result: Optional[str] = None

        self.context = ContextLog(role.system_prompt(self.working_dir))
        if context_provider is not None:
            content = context_provider()
            if content:
                self.context.add_context_block(content, CONTEXT_ACK)

        self._schemas: list[FunctionSchema] = []
        self._offered: set[str] = set()
        self._llm_future: Optional[Future] = None
        self._tool_future: Optional[Future] = None
        self._tool_call: Optional[ToolCall] = None
        self._batch: list[ToolCall] = []
        self._batch_index = 0
        self._batch_text = ""
        self._status_before_pause: Optional[WorkerStatus] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.role.name

    @property
    def is_root(self) -> bool:
        return self.depth == 0

    @property
    def llm_call_in_flight(self) -> bool:
        return self._llm_future is not None

    @property
    def tool_call_in_flight(self) -> bool:
        return self._tool_future is not None

    def snapshot(self) -> WorkerSnapshot:
        return WorkerSnapshot(
            instance_id=self.instance_id,
            role_id=self.role.id,
            name=self.role.name,
            status=self.status.value,
            cost=self.cost,
            context_used=self.context_used,
            max_context=get_context_limit(self.role.model),
            children=tuple(c.snapshot() for c in self.children),
        )

    def __repr__(self) -> str:
        return f"Worker({self.role.id}, {self.instance_id[:8]}, {self.status.value})"

    # ------------------------------------------------------------------
    # Public control
    # ------------------------------------------------------------------

    def step(self) -> None:
        """Advance this worker's subtree by at most one unit of work per node."""
        if self.status is WorkerStatus.PAUSED:
            return
        for child in list(self.children):
            child.step()

        if self.status is WorkerStatus.IDLE:
            self._step_idle()
        elif self.status is WorkerStatus.THINKING:
            if not self._fold_parent_message():
                self._step_thinking()
        elif self.status is WorkerStatus.ACTING:
            if not self._fold_parent_message():
                self._step_acting()
        elif self.status is WorkerStatus.WAITING:
            self._step_waiting()

    def pause(self) -> bool:
        """Stop stepping this worker and its subtree.

        In-flight futures keep running; their results are harvested after
        ``resume()``. Returns False if the worker is IDLE or already PAUSED.
        """
        if self.status in (WorkerStatus.IDLE, WorkerStatus.PAUSED):
            return False
        self._status_before_pause = self.status
        self._set_status(WorkerStatus.PAUSED)
        return True

    def resume(self) -> bool:
        """Leave PAUSED for the state matching whatever is in flight."""
        if self.status is not WorkerStatus.PAUSED:
            return False
        if self._llm_future is not None:
            target = WorkerStatus.THINKING
        elif self._tool_future is not None:
            target = WorkerStatus.ACTING
        else:
            target = self._status_before_pause or WorkerStatus.THINKING
        self._status_before_pause = None
        self._set_status(target)
        return True

    def refresh_context(self) -> bool:
        """Replace the CONTEXT block with fresh provider content.

        Returns True if the provider returned content.
        """
        if self.context_provider is None:
            return False
        content = self.context_provider()
        if not content:
            return False
        block = self.context.refresh_context_block(content)
        self._emit(
            CONTEXT_REFRESH,
            level="debug",
            title=f"Project context refreshed (v{block.metadata['context_version']})",
        )
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _emit(self, type: str, **kwargs) -> None:
        self.events.emit(type, agent=self.role.name, agent_id=self.instance_id, **kwargs)

    def _set_status(self, status: WorkerStatus) -> None:
        if status is self.status:
            return
        previous, self.status = self.status, status
        self._emit(
            AGENT_STATE_CHANGE,
            level="debug",
            title=f"{previous.value} -> {status.value}",
            data={"from": previous.value, "to": status.value},
        )

    def _add_incoming(self, message: str) -> None:
        if self.is_root:
            self.context.add_user_block(message)
        else:
            self.context.add_parent_block(message, self.mailbox.id)

    def _pause_with_error(self, title: str, detail: str) -> None:
        logger.warning(
            f"[{self.role.name}] {title}: {trunc(detail, 'console.error')}",
            extra=tagged("task_error"),
        )
        self._status_before_pause = WorkerStatus.THINKING
        self._set_status(WorkerStatus.PAUSED)
        self._emit(TASK_ERROR, level="error", title=title, content=detail)

    def _finish(self, result: str) -> None:
        """Clear the subtree, hand *result* to the parent and go IDLE."""
        self.children.clear()
        self.child_mailboxes.clear()
        self._batch = []
        self._batch_index = 0
        self._batch_text = ""
        self.final_result = result
        self.mailbox.post_from_child(result)
        self._set_status(WorkerStatus.IDLE)

    def _take_batch_text(self) -> str:
        # The model's text accompanies the first TOOL block of the batch only.
        text, self._batch_text = self._batch_text, ""
        return text

    def _advance_batch(self) -> None:
        self._batch_index += 1
        if self._batch_index >= len(self._batch):
            self._batch = []
            self._batch_index = 0
            self._set_status(WorkerStatus.THINKING)

    def _tool_error(self, call: ToolCall, error: BaseException) -> str:
        message = str(error) or type(error).__name__
        logger.warning(
            f"[{self.role.name}] {call.name} failed: {trunc(message, 'console.error')}",
            extra=tagged("tool_error"),
        )
        self._emit(
            TOOL_ERROR,
            level="warning",
            title=f"Failure({call.name})",
            content=f"Error: {message}",
            data={"tool": call.name, "tool_call_id": call.id},
        )
        return f"Error: {message}"

    # ------------------------------------------------------------------
    # IDLE
    # ------------------------------------------------------------------

    def _step_idle(self) -> None:
        message = self.mailbox.take_from_parent()
        if message is None:
            return
        self._add_incoming(message)
        self.iteration_count = 0
        self.final_result = None
        self._schemas = resolve_tool_schemas(self.role, self.tools, self.roles)
        self._emit(
            TASK_STARTED,
            title=f"Starting Task - {self.role.name}",
            content=trunc(message, "event.task"),
            data={"role_id": self.role.id, "depth": self.depth},
        )
        self._set_status(WorkerStatus.THINKING)

    def _fold_parent_message(self) -> bool:
        """Fold a mid-task parent message into the context without touching
        in-flight work or the iteration count."""
        message = self.mailbox.take_from_parent()
        if message is None:
            return False
        last = self.context.last_message()
        # Two user/tool messages in a row can make the model ignore one.
        if last is not None and last.get("role") in ("tool", "user"):
            self.context.add_assistant_block(FURTHER_INPUT_PROMPT)
        self._add_incoming(message)
        logger.info(f"[{self.role.name}] new input while {self.status.value}: {trunc(message, 'console.summary')}")
        return True

    # ------------------------------------------------------------------
    # THINKING
    # ------------------------------------------------------------------

    def _step_thinking(self) -> None:
        if self._llm_future is not None:
            if not self._llm_future.done():
                return
            future, self._llm_future = self._llm_future, None
            try:
                response = future.result()
            except Exception as e:
                self._pause_with_error("Task Error", f"LLM call failed: {e}")
                return
            self._process_response(response)
            return

        max_iterations = get_limit("worker.max_iterations")
        if self.iteration_count >= max_iterations:
            self._give_up(max_iterations)
            return

        schemas = self._schemas
        if self.iteration_count == max_iterations - 1:
            schemas = [self.tools[COMPLETION_TOOL].schema()]
        self._offered = {s.name for s in schemas}
        self.iteration_count += 1
        messages = self.context.to_completion_messages()
        emit_llm_call(
            self.events,
            agent=self.role.name,
            agent_id=self.instance_id,
            model=self.role.model,
            iteration=self.iteration_count,
            message_count=len(messages),
            tool_names=[s.name for s in schemas],
        )
        self._llm_future = self.executor.submit(
            self.adapter.complete,
            self.role.model,
            messages,
            schemas,
            self.role.temperature,
            self.role.max_tokens,
        )

    def _process_response(self, response: LLMResponse) -> None:
        if response.usage is not None:
            call_cost, prompt_tokens = track_llm_usage(
                response,
                self.role.model,
                self.events,
                agent=self.role.name,
                agent_id=self.instance_id,
                cumulative_cost=self.cost,
            )
            self.cost += call_cost
            self.context_used = prompt_tokens
        for thought in response.thoughts:
            logger.debug(f"[{self.role.name}] thinking: {trunc(thought, 'console.summary')}")

        if not response.tool_calls:
            if response.text:
                self.context.add_assistant_block(response.text)
            self._pause_with_error(
                "Task Error",
                "No Tool Calls" + (f": {trunc(response.text, 'console.error')}" if response.text else ""),
            )
            return

        for tc in response.tool_calls:
            if not tc.id:
                tc.id = f"call_{uuid4().hex[:24]}"
        logger.debug(f"[{self.role.name}] tool calls: {summarize_tool_calls(response.tool_calls)}")
        self._batch = list(response.tool_calls)
        self._batch_index = 0
        self._batch_text = response.text or ""
        self._set_status(WorkerStatus.ACTING)

    def _give_up(self, max_iterations: int) -> None:
        result = (
            f"Task failed: {self.role.name} exceeded max loops ({max_iterations}) "
            "without completing the task."
        )
        self._emit(
            MAX_ITERATIONS,
            level="warning",
            title=f"Agent exceeded max loops ({max_iterations})",
            content="max cycles exceeded",
            data={"max_iterations": max_iterations},
        )
        self._finish(result)

    # ------------------------------------------------------------------
    # ACTING
    # ------------------------------------------------------------------

    def _step_acting(self) -> None:
        if self._tool_future is not None:
            if not self._tool_future.done():
                return
            future, call = self._tool_future, self._tool_call
            self._tool_future, self._tool_call = None, None
            try:
                result, elapsed_ms = future.result()
            except Exception as e:
                result = self._tool_error(call, e)
            else:
                result = str(result)
                self._emit(
                    TOOL_RESULT,
                    level="debug",
                    title=f"{call.name} ({elapsed_ms} ms)",
                    content=trunc(result, "event.tool_result"),
                    data={"tool": call.name, "tool_call_id": call.id, "elapsed_ms": elapsed_ms},
                )
            self.context.update_tool_block_result(call.id, result)
            self._advance_batch()
            return

        if self._batch_index >= len(self._batch):
            self._batch = []
            self._batch_index = 0
            self._set_status(WorkerStatus.THINKING)
            return
        self._execute(self._batch[self._batch_index])

    def _execute(self, call: ToolCall) -> None:
        text = self._take_batch_text()

        try:
            args = json.loads(call.arguments or "{}")
            if not isinstance(args, dict):
                raise ValueError(f"expected a JSON object, got {type(args).__name__}")
        except ValueError as e:
            logger.warning(f"[{self.role.name}] bad arguments for {call.name}: {e}")
            self.context.add_single_tool_block(
                call, f"Invalid tool use, unable to parse tool arguments: {e}", text
            )
            self._advance_batch()
            return

        if call.name not in self._offered or call.name not in self.tools:
            logger.warning(f"[{self.role.name}] called unavailable tool {call.name!r}")
            self.context.add_single_tool_block(
                call, "Failed to use tool, no tool of that type exists", text
            )
            self._advance_batch()
            return

        if call.name == COMPLETION_TOOL:
            self._complete(call, args, text)
            return
        if call.name == DELEGATION_TOOL:
            self._delegate(call, args, text)
            return

        tool = self.tools[call.name]
        self._emit(
            TOOL_CALL,
            title=tool.describe(args),
            content=tool.preview(args),
            data={"tool": call.name, "tool_call_id": call.id, "args": trunc(call.arguments, "console.args")},
        )

        if tool.inline:
            try:
                result = tool.enact(args, self, self.events)
            except Exception as e:
                result = self._tool_error(call, e)
            self.context.add_single_tool_block(call, result, text)
            self._advance_batch()
            return

        self.context.add_pending_tool_block(call, text=text)
        self._tool_call = call
        self._tool_future = self.executor.submit(timed, tool.enact, args, self, self.events)

    def _complete(self, call: ToolCall, args: dict, text: str) -> None:
        result = str(args.get("result", ""))
        self.context.add_single_tool_block(call, COMPLETION_ACK, text)
        self._emit(
            TASK_COMPLETE,
            title="Task Complete",
            content=trunc(result, "event.result"),
            data={"iterations": self.iteration_count, "cost": self.cost},
        )
        self._finish(result)

    def _delegate(self, call: ToolCall, args: dict, text: str) -> None:
        try:
            target = validate_delegation(self.role, args, self.roles, len(self.children))
        except DelegationError as e:
            self._emit(
                DELEGATION_FAILED,
                level="warning",
                title="DelegateWork - Failed",
                content=[args.get("reasoning", ""), f"Failed: {e}", args.get("task", "")],
                data={"agent_id": args.get("agent_id")},
            )
            self.context.add_single_tool_block(call, str(e), text)
            self._advance_batch()
            return

        task = args["task"]
        mailbox = Mailbox(pending_tool_call_id=call.id)
        child = Worker(
            target,
            mailbox,
            roles=self.roles,
            tools=self.tools,
            adapter=self.adapter,
            events=self.events,
            executor=self.executor,
            context_provider=self.context_provider,
            working_dir=self.working_dir,
            depth=self.depth + 1,
        )
        mailbox.post_from_parent(task)
        self.children.append(child)
        self.child_mailboxes[child] = mailbox
        self.context.add_pending_tool_block(call, text=text)
        self._emit(
            DELEGATION,
            title=f"DelegateWork({target.name})",
            content=[args.get("reasoning", ""), trunc(task, "event.task")],
            data={"agent_id": target.id, "child_id": child.instance_id, "tool_call_id": call.id},
        )

        # Every tool call the model issued needs a paired result.
        for skipped in self._batch[self._batch_index + 1:]:
            self.context.add_single_tool_block(skipped, SKIPPED_RESULT)
        self._batch = []
        self._batch_index = 0
        self._set_status(WorkerStatus.WAITING)

    # ------------------------------------------------------------------
    # WAITING
    # ------------------------------------------------------------------

    def _step_waiting(self) -> None:
        for child, mailbox in list(self.child_mailboxes.items()):
            message = mailbox.take_from_child()
            if message is None:
                continue
            if mailbox.pending_tool_call_id:
                self.context.update_tool_block_result(mailbox.pending_tool_call_id, message)
                mailbox.pending_tool_call_id = None
                self._emit(
                    DELEGATION_DONE,
                    title=f"{child.name} finished",
                    content=trunc(message, "event.result"),
                    data={"child_id": child.instance_id, "cost": child.cost},
                )
            else:
                self.context.add_user_block(f"{child.name} reported: {message}", label=child.name)
            self.refresh_context()
            self._set_status(WorkerStatus.THINKING)
            return  # one child reply per step

        if all(c.status is WorkerStatus.IDLE for c in self.children):
            for mailbox in self.child_mailboxes.values():
                if mailbox.pending_tool_call_id:
                    self.context.update_tool_block_result(
                        mailbox.pending_tool_call_id, ORPHANED_DELEGATION_RESULT
                    )
                    mailbox.pending_tool_call_id = None
            self._set_status(WorkerStatus.THINKING)
