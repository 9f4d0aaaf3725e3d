import os
import time

import pytest

from orgchart.errors import UnknownRoleError
from orgchart.event_bus import TASK_STARTED, EventLogWriter, load_event_log
from orgchart.orchestrator import Orchestrator
from orgchart.project_context import CONTEXT_FILE, CONTEXT_HEADER, ProjectContextProvider
from orgchart.tools import TOOLS
from orgchart.worker import WorkerStatus

from conftest import TEST_ROLES, call, complete, reply


@pytest.fixture
def orchestrator(adapter, events, executor, workdir):
    return Orchestrator(TEST_ROLES, TOOLS, adapter, events, executor=executor, working_dir=workdir)


def tick_until_idle(orchestrator, max_ticks=200):
    for _ in range(max_ticks):
        if orchestrator.is_idle():
            return
        orchestrator.tick()
    raise AssertionError("orchestrator did not go idle")


def test_runs_a_task_to_completion(orchestrator, adapter):
    adapter.add("Lead", reply(call("DelegateWork", reasoning="r", task="t", agent_id="Dev")), complete("lead done"))
    adapter.add("Dev", complete("dev done"))

    root = orchestrator.start_task("Lead", "Ship it")
    assert root.is_root
    assert not orchestrator.is_idle()

    tick_until_idle(orchestrator)
    assert orchestrator.result() == "lead done"
    assert orchestrator.snapshot().status == WorkerStatus.IDLE.value


def test_start_task_rejects_unknown_role(orchestrator):
    with pytest.raises(UnknownRoleError):
        orchestrator.start_task("Ghost", "Boo")
    assert orchestrator.snapshot() is None


def test_only_one_task_at_a_time(orchestrator, adapter):
    adapter.add("Dev", complete("first"), complete("second"))
    orchestrator.start_task("Dev", "First")
    with pytest.raises(RuntimeError):
        orchestrator.start_task("Dev", "Second")

    tick_until_idle(orchestrator)
    orchestrator.start_task("Dev", "Second")
    tick_until_idle(orchestrator)
    assert orchestrator.result() == "second"


def test_send_input_requires_a_task(orchestrator):
    with pytest.raises(RuntimeError):
        orchestrator.send_input("hello")


def test_send_input_reaches_the_executing_worker(orchestrator, adapter):
    adapter.add("Lead", reply(call("DelegateWork", reasoning="r", task="t", agent_id="Dev")))
    orchestrator.start_task("Lead", "Ship it")
    for _ in range(6):
        orchestrator.tick()

    current = orchestrator.current_worker()
    assert current.role.id == "Dev"
    target = orchestrator.send_input("Use tabs")
    assert target is current
    assert current.mailbox.has_from_parent()


def test_send_input_after_completion_continues_the_root(orchestrator, adapter):
    adapter.add("Dev", complete("first"), complete("follow-up"))
    root = orchestrator.start_task("Dev", "First")
    tick_until_idle(orchestrator)

    assert orchestrator.send_input("One more thing") is root
    tick_until_idle(orchestrator)
    assert orchestrator.result() == "follow-up"


def test_pause_and_resume(orchestrator, adapter):
    adapter.add("Dev", complete("ok"))
    orchestrator.start_task("Dev", "Task")
    orchestrator.tick()

    paused = orchestrator.pause()
    assert paused is orchestrator.root
    assert orchestrator.is_paused()
    orchestrator.tick()
    assert orchestrator.root.status is WorkerStatus.PAUSED

    assert orchestrator.resume() == [orchestrator.root]
    assert not orchestrator.is_paused()
    tick_until_idle(orchestrator)
    assert orchestrator.result() == "ok"


def test_pause_with_nothing_running(orchestrator):
    assert orchestrator.pause() is None
    assert orchestrator.resume() == []


def test_snapshot_tree(orchestrator, adapter):
    adapter.add("Lead", reply(call("DelegateWork", reasoning="r", task="t", agent_id="Dev")))
    orchestrator.start_task("Lead", "Ship it")
    for _ in range(4):
        orchestrator.tick()

    snap = orchestrator.snapshot()
    assert snap.role_id == "Lead"
    assert [c.role_id for c in snap.children] == ["Dev"]
    as_dict = snap.to_dict()
    assert as_dict["children"][0]["name"] == "Dev Agent"


def test_background_loop(orchestrator, adapter):
    adapter.add("Dev", complete("threaded"))
    orchestrator.start_task("Dev", "Task")
    orchestrator.run(interval=0.001)
    try:
        deadline = time.monotonic() + 5
        while not orchestrator.is_idle() and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        orchestrator.stop()
    assert orchestrator.result() == "threaded"


def test_shutdown_closes_adapter(orchestrator, adapter):
    orchestrator.shutdown()
    assert adapter.closed


def test_shutdown_closes_event_log(adapter, events, executor, workdir, tmp_path):
    path = tmp_path / "logs" / "events_r1.jsonl"
    writer = EventLogWriter(path)
    events.subscribe(writer)
    orch = Orchestrator(TEST_ROLES, TOOLS, adapter, events, executor=executor, working_dir=workdir, event_log=writer)
    events.emit(TASK_STARTED, agent="Lead")

    orch.shutdown()
    events.emit(TASK_STARTED, agent="Dev")

    assert orch.event_log is None
    assert [e["agent"] for e in load_event_log(path)] == ["Lead"]


def test_project_context_file(orchestrator, adapter, workdir):
    (workdir / CONTEXT_FILE).parent.mkdir()
    (workdir / CONTEXT_FILE).write_text("The API lives in api/.")
    orchestrator.context_provider = ProjectContextProvider(workdir)
    adapter.add("Dev", complete())

    orchestrator.start_task("Dev", "Task")
    tick_until_idle(orchestrator)

    first_call = adapter.calls[0]["messages"]
    assert first_call[1]["content"].startswith(CONTEXT_HEADER)
    assert first_call[1]["content"].endswith("The API lives in api/.")


def test_project_context_provider_tracks_file(workdir):
    provider = ProjectContextProvider(workdir)
    assert provider() is None

    path = workdir / CONTEXT_FILE
    path.parent.mkdir()
    path.write_text("   ")
    assert provider() is None

    path.write_text("Backend is FastAPI")
    # Force a different mtime on filesystems with coarse timestamps
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))
    assert provider().endswith("Backend is FastAPI")


def test_unreadable_project_context_keeps_last_good_copy(workdir):
    path = workdir / CONTEXT_FILE
    path.parent.mkdir()
    path.write_text("Backend is FastAPI")
    provider = ProjectContextProvider(workdir)
    good = provider()

    path.write_bytes(b"\xff\xfe bad")
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))
    assert good.endswith("Backend is FastAPI")
    assert provider() == good


def test_corrupt_context_file_does_not_stop_the_tree(orchestrator, adapter, workdir):
    path = workdir / CONTEXT_FILE
    path.parent.mkdir()
    path.write_text("The API lives in api/.")
    orchestrator.context_provider = ProjectContextProvider(workdir)
    adapter.add("Lead", reply(call("DelegateWork", reasoning="r", task="t", agent_id="Dev")), complete("lead done"))
    adapter.add("Dev", complete("dev done"))

    orchestrator.start_task("Lead", "Ship it")
    for _ in range(50):
        orchestrator.tick()
        if orchestrator.root.status is WorkerStatus.WAITING:
            break
    assert orchestrator.root.status is WorkerStatus.WAITING

    path.write_bytes(b"\xff\xfe bad")
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))

    tick_until_idle(orchestrator)
    assert orchestrator.result() == "lead done"
    last_lead_call = adapter.calls_for("Lead")[-1]["messages"]
    assert last_lead_call[1]["content"].endswith("The API lives in api/.")
