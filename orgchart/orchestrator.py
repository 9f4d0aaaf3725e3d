"""Orchestrator - owns the worker tree and drives it with a fixed-interval tick.

The Orchestrator receives every collaborator explicitly (role and tool
registries, LLM adapter, event bus, executor); there is no process-wide
worker registry. One daemon thread calls ``tick()``; API and CLI threads
use the public methods, which take the same lock.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Mapping, Optional

import config

from .event_bus import EventBus, DebugLogListener, EventLogWriter
from .llm import LLMAdapter, create_adapter
from .logging import attach_log_file, get_log_dir
from .mailbox import Mailbox
from .project_context import ProjectContextProvider
from .roles import ROLES, Role, get_role
from .tools import TOOLS, Tool
from .truncation import trunc
from .worker import ContextProvider, Worker, WorkerSnapshot, WorkerStatus

logger = logging.getLogger("orgchart")


class Orchestrator:
    """Runs one worker tree.

    Args:
        roles: Role registry.
        tools: Tool registry.
        adapter: LLM transport shared by every worker.
        events: Event bus shared by every worker.
        executor: Runs LLM and tool calls. Defaults to a
            ``ThreadPoolExecutor`` owned (and shut down) by this orchestrator.
        context_provider: Optional project context source for new workers.
        working_dir: Directory file and shell tools operate in.
        event_log: Optional JSONL writer subscribed to ``events``; closed
            on ``shutdown()``.
    """

    def __init__(
        self,
        roles: Mapping[str, Role],
        tools: Mapping[str, Tool],
        adapter: LLMAdapter,
        events: EventBus,
        executor: Optional[Executor] = None,
        context_provider: Optional[ContextProvider] = None,
        working_dir: Optional[Path] = None,
        event_log: Optional[EventLogWriter] = None,
    ):
        self.roles = roles
        self.tools = tools
        self.adapter = adapter
        self.events = events
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=config.EXECUTOR_MAX_WORKERS, thread_name_prefix="orgchart"
        )
        self.context_provider = context_provider
        self.working_dir = Path(working_dir) if working_dir is not None else config.get_working_dir()
        self.event_log = event_log

        self.root: Optional[Worker] = None
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    # ------------------------------------------------------------------
    # Task lifecycle
    # ------------------------------------------------------------------

    def start_task(self, agent_id: str, task: str) -> Worker:
        """Create the root worker for *agent_id* and hand it *task*.

        Raises:
            UnknownRoleError: *agent_id* is not a registered role.
            RuntimeError: a task is already running.
        """
        role = get_role(agent_id, self.roles)
        with self._lock:
            if not self.is_idle():
                raise RuntimeError("A task is already running; send input or wait for it to finish")
            mailbox = Mailbox()
            self.root = Worker(
                role,
                mailbox,
                roles=self.roles,
                tools=self.tools,
                adapter=self.adapter,
                events=self.events,
                executor=self.executor,
                context_provider=self.context_provider,
                working_dir=self.working_dir,
            )
            mailbox.post_from_parent(task)
        logger.info(f"Task started with {role.name}: {trunc(task, 'console.summary')}")
        return self.root

    def tick(self) -> None:
        """Step the whole tree once."""
        with self._lock:
            if self.root is not None:
                self.root.step()

    def run(self, interval: Optional[float] = None) -> None:
        """Start ticking on a daemon thread every *interval* seconds."""
        if self._thread is not None and self._thread.is_alive():
            return
        interval = interval if interval is not None else config.TICK_INTERVAL_MS / 1000.0
        self._stop.clear()

        def _loop() -> None:
            while not self._stop.wait(interval):
                try:
                    self.tick()
                except Exception:
                    logger.exception("Tick failed; stopping the orchestrator loop")
                    return

        self._thread = threading.Thread(target=_loop, name="orgchart-tick", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def shutdown(self) -> None:
        """Stop ticking and release the executor, adapter and event log."""
        self.stop()
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)
        self.adapter.close()
        if self.event_log is not None:
            self.events.unsubscribe(self.event_log)
            self.event_log.close()
            self.event_log = None

    # ------------------------------------------------------------------
    # User control
    # ------------------------------------------------------------------

    def current_worker(self) -> Optional[Worker]:
        """Deepest non-idle worker along the most-recent-child chain."""
        with self._lock:
            worker = self.root
            if worker is None:
                return None
            while worker.children and worker.children[-1].status is not WorkerStatus.IDLE:
                worker = worker.children[-1]
            return worker

    def send_input(self, text: str) -> Worker:
        """Deliver user input to the currently executing worker (or the root).

        A paused target is resumed so the message is folded in on the next tick.
        """
        with self._lock:
            if self.root is None:
                raise RuntimeError("No task has been started")
            target = self.current_worker()
            if target is None or target.status is WorkerStatus.IDLE:
                target = self.root
            target.mailbox.post_from_parent(text)
            if target.status is WorkerStatus.PAUSED:
                target.resume()
            logger.info(f"User input sent to {target.name}: {trunc(text, 'console.summary')}")
            return target

    def pause(self) -> Optional[Worker]:
        """Pause the currently executing worker. Returns it, or None."""
        with self._lock:
            target = self.current_worker()
            if target is not None and target.pause():
                return target
            return None

    def resume(self) -> list[Worker]:
        """Resume every paused worker in the tree. Returns the resumed workers."""
        with self._lock:
            resumed = []
            stack = [self.root] if self.root is not None else []
            while stack:
                worker = stack.pop()
                if worker.resume():
                    resumed.append(worker)
                stack.extend(worker.children)
            return resumed

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def snapshot(self) -> Optional[WorkerSnapshot]:
        with self._lock:
            return self.root.snapshot() if self.root is not None else None

    def result(self) -> Optional[str]:
        with self._lock:
            return self.root.final_result if self.root is not None else None

    def is_idle(self) -> bool:
        """True when no task is running or waiting to start."""
        with self._lock:
            if self.root is None:
                return True
            return self.root.status is WorkerStatus.IDLE and not self.root.mailbox.has_from_parent()

    def is_paused(self) -> bool:
        """True if any worker in the tree is PAUSED."""
        with self._lock:
            stack = [self.root] if self.root is not None else []
            while stack:
                worker = stack.pop()
                if worker.status is WorkerStatus.PAUSED:
                    return True
                stack.extend(worker.children)
            return False


def create_orchestrator(
    *,
    provider: Optional[str] = None,
    working_dir: Optional[Path] = None,
    run_id: str = "",
    executor: Optional[Executor] = None,
) -> Orchestrator:
    """Build an Orchestrator from config: adapter, event bus with the debug-log
    and JSONL listeners, and the file-backed project context provider."""
    adapter = create_adapter(provider)
    working_dir = Path(working_dir) if working_dir is not None else config.get_working_dir()

    if run_id:
        attach_log_file(run_id)
    events = EventBus(run_id=run_id)
    events.subscribe(DebugLogListener(logger))
    event_log = None
    if run_id:
        event_log = EventLogWriter(get_log_dir() / f"events_{run_id}.jsonl")
        events.subscribe(event_log)

    return Orchestrator(
        ROLES,
        TOOLS,
        adapter,
        events,
        executor=executor,
        context_provider=ProjectContextProvider(working_dir),
        working_dir=working_dir,
        event_log=event_log,
    )
