"""Shared test fixtures: a scripted LLM adapter, synchronous executors and
a small role registry."""

from __future__ import annotations

import itertools
import json
import re
import threading
from collections import deque
from concurrent.futures import Executor, Future
from types import MappingProxyType

import pytest

import config
from orgchart import turn_limits
from orgchart.errors import TransportError
from orgchart.event_bus import EventBus
from orgchart.llm.base import LLMAdapter, LLMResponse, ToolCall, UsageMetadata
from orgchart.mailbox import Mailbox
from orgchart.roles import COMMON_TOOLS, Role, toolset
from orgchart.tool_handlers.filesystem import invalidate_file_listing
from orgchart.tools import TOOLS
from orgchart.worker import Worker, WorkerStatus

TEST_MODEL = "anthropic/claude-sonnet-4"

_ROLE_MARKER = re.compile(r"You are the (\w+) test role")
_call_ids = itertools.count(1)


# ---- LLM responses ----

def call(name: str, **args) -> ToolCall:
    """A tool call with JSON-encoded *args* and a unique id."""
    return ToolCall(name=name, arguments=json.dumps(args), id=f"call_{next(_call_ids)}")


def reply(*calls: ToolCall, text: str = "", usage: UsageMetadata | None = None) -> LLMResponse:
    return LLMResponse(text=text, tool_calls=list(calls), usage=usage)


def complete(result: str = "done") -> LLMResponse:
    return reply(call("AttemptCompletion", result=result))


class FakeAdapter(LLMAdapter):
    """Returns scripted responses per role and records every call.

    ``scripts`` maps role ids to response lists. A scripted Exception is
    raised instead of returned; running out of script raises TransportError.
    """

    provider = "fake"

    def __init__(self, scripts: dict[str, list] | None = None):
        self.scripts = {k: deque(v) for k, v in (scripts or {}).items()}
        self.calls: list[dict] = []
        self.closed = False
        self._lock = threading.Lock()

    def add(self, role_id: str, *responses) -> None:
        with self._lock:
            self.scripts.setdefault(role_id, deque()).extend(responses)

    def calls_for(self, role_id: str) -> list[dict]:
        return [c for c in self.calls if c["role_id"] == role_id]

    def complete(self, model, messages, tools, temperature, max_tokens=None):
        m = _ROLE_MARKER.search(messages[0]["content"]) if messages else None
        role_id = m.group(1) if m else ""
        with self._lock:
            self.calls.append(
                {
                    "role_id": role_id,
                    "model": model,
                    "messages": messages,
                    "tools": [t.name for t in tools],
                    "temperature": temperature,
                }
            )
            script = self.scripts.get(role_id)
            if not script:
                raise TransportError(f"no scripted response for {role_id!r}", provider=self.provider)
            item = script.popleft()
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


# ---- Executors ----

class ImmediateExecutor(Executor):
    """Runs every submission on the calling thread before returning."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        future.set_running_or_notify_cancel()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class ManualExecutor(Executor):
    """Holds submissions until the test runs them."""

    def __init__(self):
        self.pending: list[tuple[Future, object, tuple, dict]] = []

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run(self, index: int = 0) -> None:
        future, fn, args, kwargs = self.pending.pop(index)
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)

    def run_pending(self) -> None:
        while self.pending:
            self.run()


# ---- Roles ----

def _prompt(role_id: str):
    return lambda working_dir: f"You are the {role_id} test role. Work in {working_dir}."


def _role(role_id: str, level: int, tool_names: tuple[str, ...]) -> Role:
    return Role(
        id=role_id,
        name=f"{role_id} Agent",
        model=TEST_MODEL,
        temperature=0.0,
        level=level,
        description=f"{role_id} description",
        system_prompt=_prompt(role_id),
        tool_names=tool_names,
    )


TEST_ROLES = MappingProxyType(
    {
        "Boss": _role("Boss", 9, toolset(9, False, False) + ("AskQuestion",)),
        "Lead": _role("Lead", 6, toolset(6, True, True)),
        "Dev": _role("Dev", 4, toolset(4, True, True)),
        "Runner": _role("Runner", 0, COMMON_TOOLS + ("Bash",)),
    }
)


# ---- Fixtures ----

@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Point the data directory at a temp dir, clear limit overrides and
    turn off file listing reuse."""
    path = tmp_path / "orgchart-data"
    monkeypatch.setenv("ORGCHART_DIR", str(path))
    config._reset_data_dir()
    monkeypatch.setattr(turn_limits, "_overrides", {})
    monkeypatch.setattr(config, "FILE_LISTING_TTL_SECONDS", 0)
    invalidate_file_listing()
    yield path
    config._reset_data_dir()


@pytest.fixture
def workdir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def events():
    return EventBus(run_id="test")


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def executor():
    return ImmediateExecutor()


@pytest.fixture
def make_worker(adapter, events, executor, workdir):
    """Factory for a root worker of a test role with *task* already posted."""

    def _make(role_id: str, task: str | None = "Do the thing", **kwargs) -> Worker:
        mailbox = Mailbox()
        options = dict(
            roles=TEST_ROLES,
            tools=TOOLS,
            adapter=adapter,
            events=events,
            executor=executor,
            working_dir=workdir,
        )
        options.update(kwargs)
        worker = Worker(TEST_ROLES[role_id], mailbox, **options)
        if task is not None:
            mailbox.post_from_parent(task)
        return worker

    return _make


def run_until_idle(worker: Worker, max_steps: int = 200) -> int:
    """Step *worker* until it returns to IDLE with nothing queued. Returns the step count."""
    for steps in range(1, max_steps + 1):
        worker.step()
        if worker.status is WorkerStatus.IDLE and not worker.mailbox.has_from_parent():
            return steps
        if worker.status is WorkerStatus.PAUSED:
            raise AssertionError(f"{worker!r} paused unexpectedly")
    raise AssertionError(f"{worker!r} did not finish within {max_steps} steps")


def step_until(worker: Worker, status: WorkerStatus, max_steps: int = 50) -> None:
    for _ in range(max_steps):
        if worker.status is status:
            return
        worker.step()
    if worker.status is not status:
        raise AssertionError(f"{worker!r} never reached {status.value}")
