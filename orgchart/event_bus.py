"""
Structured EventBus - the human-readable progress stream of a run.

Architecture:
    bus.emit() → OrgchartEvent → listeners[]
      ├── DebugLogListener → Python logger (file + console)
      ├── EventLogWriter   → JSONL file on disk
      └── SSEBridge        → api/streaming.py, live to HTTP clients

Workers never wait on the bus: emit() dispatches synchronously to the
listeners and swallows their failures.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional


# ---- Event type constants ----

# Task lifecycle
TASK_STARTED = "task_started"
TASK_COMPLETE = "task_complete"
TASK_ERROR = "task_error"
MAX_ITERATIONS = "max_iterations"

# LLM
LLM_CALL = "llm_call"
TOKEN_USAGE = "token_usage"

# Tool lifecycle
TOOL_CALL = "tool_call"
TOOL_RESULT = "tool_result"
TOOL_ERROR = "tool_error"

# Delegation
DELEGATION = "delegation"
DELEGATION_FAILED = "delegation_failed"
DELEGATION_DONE = "delegation_done"

# Worker lifecycle
AGENT_STATE_CHANGE = "agent_state_change"

# Tool side channels
TODO_UPDATED = "todo_updated"
QUESTION = "question"
CONTEXT_REFRESH = "context_refresh"

EVENT_TYPES = frozenset({
    TASK_STARTED, TASK_COMPLETE, TASK_ERROR, MAX_ITERATIONS,
    LLM_CALL, TOKEN_USAGE,
    TOOL_CALL, TOOL_RESULT, TOOL_ERROR,
    DELEGATION, DELEGATION_FAILED, DELEGATION_DONE,
    AGENT_STATE_CHANGE,
    TODO_UPDATED, QUESTION, CONTEXT_REFRESH,
})

# Shown in the CLI / web event stream; the rest only reach the debug log.
DISPLAY_EVENTS = frozenset({
    TASK_STARTED, TASK_COMPLETE, TASK_ERROR, MAX_ITERATIONS,
    TOOL_CALL, TOOL_ERROR,
    DELEGATION, DELEGATION_FAILED, DELEGATION_DONE,
    TODO_UPDATED, QUESTION,
})


# ---- OrgchartEvent ----

@dataclass(frozen=True)
class OrgchartEvent:
    """A single progress event.

    Fields:
        id: Run-unique event ID (e.g. "evt_0001").
        type: Event type constant (e.g. "tool_call", "delegation").
        ts: ISO 8601 timestamp (UTC, millisecond precision).
        agent: Display name of the emitting worker's role.
        agent_id: Instance id of the emitting worker ("" for the engine).
        level: Log level (debug/info/warning/error).
        title: One-line headline, e.g. "DelegateWork(Junior Software Engineer)".
        content: Text chunks shown under the title.
        data: Structured machine-readable payload.
    """
    id: str
    type: str
    ts: str
    agent: str
    agent_id: str
    level: str
    title: str
    content: tuple = ()
    data: dict = field(default_factory=dict)

    @property
    def summary(self) -> str:
        return self.title

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "ts": self.ts,
            "agent": self.agent,
            "agent_id": self.agent_id,
            "level": self.level,
            "title": self.title,
            "content": list(self.content),
            "data": self.data,
        }


class EventBus:
    """Per-run event bus with synchronous listener dispatch.

    Thread-safe: emit() and subscribe() use a lock. Events are kept in
    memory for replay via get_events().
    """

    def __init__(self, run_id: str = ""):
        self._events: list[OrgchartEvent] = []
        self._lock = threading.Lock()
        self._listeners: list[Callable[[OrgchartEvent], None]] = []
        self.run_id = run_id
        self._next_event_id: int = 0

    def emit(
        self,
        type: str,
        *,
        agent: str = "orchestrator",
        agent_id: str = "",
        level: str = "info",
        title: str = "",
        content: tuple | list | str = (),
        data: Optional[dict] = None,
    ) -> OrgchartEvent:
        """Create, store, and dispatch an OrgchartEvent.

        Args:
            type: Event type constant (e.g. TOOL_CALL, DELEGATION).
            agent: Source worker's role name.
            agent_id: Source worker's instance id.
            level: Log level (debug/info/warning/error).
            title: Headline; defaults to the event type.
            content: A string or a sequence of text chunks.
            data: Structured payload.

        Returns:
            The created OrgchartEvent.
        """
        if isinstance(content, str):
            content = (content,) if content else ()
        with self._lock:
            self._next_event_id += 1
            event = OrgchartEvent(
                id=f"evt_{self._next_event_id:04d}",
                type=type,
                ts=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
                agent=agent,
                agent_id=agent_id,
                level=level,
                title=title or type,
                content=tuple(str(c) for c in content),
                data=data or {},
            )
            self._events.append(event)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                pass  # Never let a listener break the emitter
        return event

    def subscribe(self, listener: Callable[[OrgchartEvent], None]) -> None:
        """Register a listener called synchronously on each emit()."""
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[OrgchartEvent], None]) -> None:
        """Remove a previously registered listener."""
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def get_events(
        self,
        *,
        types: Optional[set[str]] = None,
        agent_id: Optional[str] = None,
        since_index: int = 0,
    ) -> list[OrgchartEvent]:
        """Return filtered events.

        Args:
            types: If set, only return events with type in this set.
            agent_id: If set, only return events from this worker.
            since_index: Skip events before this index.

        Returns:
            Filtered list of OrgchartEvents.
        """
        with self._lock:
            events = self._events[since_index:]
        return [
            e for e in events
            if (not types or e.type in types)
            and (agent_id is None or e.agent_id == agent_id)
        ]

    def clear(self) -> None:
        """Remove all stored events."""
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


# ---- Listeners ----

class DebugLogListener:
    """Writes every OrgchartEvent to the Python logger."""

    _LEVEL_MAP = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def __call__(self, event: OrgchartEvent) -> None:
        level = self._LEVEL_MAP.get(event.level, logging.DEBUG)
        prefix = f"[{event.agent}] " if event.agent else ""
        lines = [f"{prefix}{event.title}"]
        lines.extend(f"  {chunk}" for chunk in event.content if chunk)
        self._logger.log(level, "\n".join(lines), extra={"log_tag": event.type})


class EventLogWriter:
    """Appends every event to a JSONL file on disk.

    The file is opened in append mode and flushed after each write,
    so it survives crashes and can be read while the run is active.
    """

    def __init__(self, path: Path):
        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(path, "a", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    def __call__(self, event: OrgchartEvent) -> None:
        try:
            self._file.write(json.dumps(event.to_dict(), default=str) + "\n")
            self._file.flush()
        except Exception:
            pass  # Never break the emitter

    def close(self) -> None:
        """Flush and close the underlying file."""
        try:
            self._file.close()
        except Exception:
            pass


def load_event_log(path: Path) -> list[dict]:
    """Read a JSONL event log file back into a list of dicts.

    Returns an empty list if the file doesn't exist.
    """
    if not path.exists():
        return []
    events = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    return events
